from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Union

import numpy as np


PathLike = Union[str, Path]

_ORT_DTYPES = {
    "tensor(uint8)": np.uint8,
    "tensor(float)": np.float32,
    "tensor(float16)": np.float16,
    "tensor(int32)": np.int32,
}


@dataclass(frozen=True)
class OnnxRuntimeBackendConfig:
    """
    Configuration for ONNX Runtime inference.

    - providers: ORT execution providers (e.g., ["CUDAExecutionProvider", "CPUExecutionProvider"])
    - input_name: override the auto-selected input name if needed
    """

    providers: Optional[Sequence[str]] = None
    input_name: Optional[str] = None


class OnnxRuntimeBackend:
    """
    ONNX Runtime backend for detection graphs with several named outputs.

    Expects an NHWC blob shaped (1, H, W, 3), as exported by the TF object
    detection API. Returns every graph output keyed by name.
    """

    def __init__(self, model_path: PathLike, cfg: OnnxRuntimeBackendConfig = OnnxRuntimeBackendConfig()):
        try:
            import onnxruntime as ort  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError(
                "onnxruntime is required for the ONNX backend. Install it with `pip install onnxruntime` "
                "(or `onnxruntime-gpu`)."
            ) from e

        self._ort = ort
        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise FileNotFoundError(str(self.model_path))

        sess_opts = ort.SessionOptions()
        providers = list(cfg.providers) if cfg.providers is not None else None
        self.session = ort.InferenceSession(str(self.model_path), sess_options=sess_opts, providers=providers)

        inputs = {i.name: i for i in self.session.get_inputs()}
        self.input_name = cfg.input_name or self.session.get_inputs()[0].name
        if self.input_name not in inputs:
            raise ValueError(f"Input name {self.input_name!r} not found. Available: {sorted(inputs)}")
        self.input_dtype = _ORT_DTYPES.get(inputs[self.input_name].type, np.float32)
        self.output_names = [o.name for o in self.session.get_outputs()]

    @property
    def providers_in_use(self) -> Sequence[str]:
        # ORT returns providers in priority order for this session.
        return tuple(self.session.get_providers())

    def run(self, batch: np.ndarray, extra_inputs: Optional[Dict[str, Any]] = None) -> Dict[str, np.ndarray]:
        if self.session is None:
            raise RuntimeError("ONNX Runtime session is closed.")
        inputs: Dict[str, Any] = {self.input_name: np.asarray(batch).astype(self.input_dtype, copy=False)}
        if extra_inputs:
            inputs.update(extra_inputs)
        outputs = self.session.run(self.output_names, inputs)
        return dict(zip(self.output_names, outputs))

    def close(self) -> None:
        self.session = None
