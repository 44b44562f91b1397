from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Sequence, Union

import numpy as np


PathLike = Union[str, Path]


@dataclass(frozen=True)
class TorchScriptBackendConfig:
    """
    Configuration for TorchScript inference.

    - device: "cpu" or "cuda" (if available)
    - half: cast input to float16 (only if the model expects it)
    - output_names: names given to tuple/list outputs, in order; dict outputs keep their keys
    """

    device: str = "cpu"
    half: bool = False
    output_names: Sequence[str] = ("detection_boxes", "detection_scores", "detection_classes")


class TorchScriptBackend:
    """
    TorchScript backend using `torch.jit.load`.

    The module receives the NHWC batch unchanged and may return a tensor, a
    tuple/list of tensors, or a dict of tensors.
    """

    def __init__(self, model_path: PathLike, cfg: TorchScriptBackendConfig = TorchScriptBackendConfig()):
        try:
            import torch  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError("torch is required for the TorchScript backend. Install with `pip install torch`.") from e

        self._torch = torch
        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise FileNotFoundError(str(self.model_path))

        self.device = torch.device(cfg.device)
        self.half = cfg.half
        self.output_names = tuple(cfg.output_names)

        model = torch.jit.load(str(self.model_path), map_location=self.device)
        model.eval()
        self.model: Optional[object] = model

    def run(self, batch: np.ndarray) -> Dict[str, np.ndarray]:
        if self.model is None:
            raise RuntimeError("TorchScript module is closed.")
        torch = self._torch
        x = torch.as_tensor(np.asarray(batch), device=self.device)
        if self.half:
            x = x.half()
        else:
            x = x.float()
        x = x.contiguous()

        with torch.no_grad():
            y = self.model(x)

        if isinstance(y, dict):
            named = dict(y)
        elif isinstance(y, (tuple, list)):
            if len(y) > len(self.output_names):
                raise ValueError(f"Model returned {len(y)} outputs but only {len(self.output_names)} names are configured.")
            named = dict(zip(self.output_names, y))
        else:
            named = {self.output_names[0]: y}

        out: Dict[str, np.ndarray] = {}
        for name, t in named.items():
            if hasattr(t, "detach"):
                t = t.detach().to("cpu").numpy()
            out[name] = np.asarray(t)
        return out

    def close(self) -> None:
        self.model = None
