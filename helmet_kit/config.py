from __future__ import annotations

import json
import numbers
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from .errors import InvalidThresholdError

NMS_BACKENDS = ("numpy", "torch")


def check_threshold(name: str, value: Optional[float], *, nullable: bool = False) -> None:
    if value is None:
        if nullable:
            return
        raise InvalidThresholdError(f"{name} must be a number, got None")
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise InvalidThresholdError(f"{name} must be a number, got {value!r}")
    if not (0.0 <= float(value) <= 1.0):
        raise InvalidThresholdError(f"{name} must be within [0, 1], got {value}")


def check_max_outputs(value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, numbers.Integral):
        raise ValueError("max_outputs must be an integer")
    if value < 0:
        raise ValueError("max_outputs must be >= 0")


@dataclass(frozen=True)
class DetectionConfig:
    max_outputs: int = 100
    iou_threshold: float = 0.4
    # None disables score filtering during NMS.
    score_threshold: Optional[float] = 0.4
    nms_backend: str = "numpy"
    # Optional (w, h) stretch-resize applied before inference.
    input_size: Optional[Tuple[int, int]] = None
    warmup: bool = True
    warmup_shape: Tuple[int, int, int, int] = (1, 300, 300, 3)

    def __post_init__(self) -> None:
        check_threshold("iou_threshold", self.iou_threshold)
        check_threshold("score_threshold", self.score_threshold, nullable=True)
        check_max_outputs(self.max_outputs)
        if self.nms_backend not in NMS_BACKENDS:
            raise ValueError(f"nms_backend must be one of {NMS_BACKENDS}, got {self.nms_backend!r}")
        if self.input_size is not None:
            if len(self.input_size) != 2 or min(self.input_size) <= 0:
                raise ValueError("input_size must be a (width, height) pair of positive integers")
        if len(self.warmup_shape) != 4 or min(self.warmup_shape) <= 0:
            raise ValueError("warmup_shape must be four positive integers (N, H, W, C)")


def _optional_number(payload: Dict[str, Any], key: str, default: Optional[float]) -> Optional[float]:
    if key not in payload:
        return default
    value = payload[key]
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number")
    return float(value)


def _int_pair(payload: Dict[str, Any], key: str, size: int) -> Optional[Tuple[int, ...]]:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, list) or len(value) != size:
        raise ValueError(f"{key} must be a list of {size} integers")
    if any(isinstance(v, bool) or not isinstance(v, int) for v in value):
        raise ValueError(f"{key} must be a list of {size} integers")
    return tuple(value)


def load_detection_config(path: Path) -> DetectionConfig:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Detection config not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid detection config JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Detection config must be a JSON object")

    allowed = {
        "max_outputs",
        "iou_threshold",
        "score_threshold",
        "nms_backend",
        "input_size",
        "warmup",
        "warmup_shape",
    }
    unknown = sorted(set(payload.keys()) - allowed)
    if unknown:
        raise ValueError(f"Unknown detection config keys: {unknown}")

    defaults = DetectionConfig()
    max_outputs = payload.get("max_outputs", defaults.max_outputs)
    if isinstance(max_outputs, bool) or not isinstance(max_outputs, int):
        raise ValueError("max_outputs must be an integer")
    iou_threshold = _optional_number(payload, "iou_threshold", defaults.iou_threshold)
    if iou_threshold is None:
        raise ValueError("iou_threshold must be a number")
    nms_backend = payload.get("nms_backend", defaults.nms_backend)
    if not isinstance(nms_backend, str):
        raise ValueError("nms_backend must be a string")
    warmup = payload.get("warmup", defaults.warmup)
    if not isinstance(warmup, bool):
        raise ValueError("warmup must be a boolean")

    return DetectionConfig(
        max_outputs=max_outputs,
        iou_threshold=iou_threshold,
        score_threshold=_optional_number(payload, "score_threshold", defaults.score_threshold),
        nms_backend=nms_backend,
        input_size=_int_pair(payload, "input_size", 2),
        warmup=warmup,
        warmup_shape=_int_pair(payload, "warmup_shape", 4) or defaults.warmup_shape,
    )
