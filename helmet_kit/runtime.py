from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple, Union

import numpy as np

from .classes import DEFAULT_REGISTRY, ClassRegistry
from .config import DetectionConfig
from .errors import ModelLoadError, ShapeMismatchError, WarmupError
from .image import ImageInput, resize_to, to_pixel_array
from .postprocess import DetectionPostprocessor
from .types import DetectedObject, RawDetections

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class InferenceBackend(Protocol):
    def run(self, batch: np.ndarray) -> Dict[str, np.ndarray]:
        ...

    def close(self) -> None:
        ...


BackendFactory = Callable[[Path], InferenceBackend]


def find_project_root(
    start: Optional[PathLike] = None,
    markers: Sequence[str] = ("pyproject.toml", "setup.py", ".git", "requirements.txt"),
) -> Path:
    """
    Best-effort project root discovery, so relative model paths such as
    `models/helmet.onnx` work regardless of the current directory.
    """

    p = Path(start) if start is not None else Path.cwd()
    p = p.resolve()

    # If a file is provided, start from its directory.
    if p.is_file():
        p = p.parent

    for parent in (p, *p.parents):
        for m in markers:
            if (parent / m).exists():
                return parent
    return p


def resolve_path(path: PathLike, root: Optional[PathLike] = "auto") -> Path:
    """
    Resolve `path` to an absolute Path.

    - Absolute paths are returned as-is.
    - Relative paths are resolved against `root` if provided, the project root otherwise.
    """

    p = Path(path)
    if p.is_absolute():
        return p

    if root == "auto" or root is None:
        base = find_project_root()
    else:
        base = Path(root).resolve()

    return (base / p).resolve()


@dataclass(frozen=True)
class OutputNames:
    """
    Graph output names the adapter extracts.

    When `multiclass_scores` is set, `scores`/`classes` are ignored and the best
    class per box is taken from the (N, C) score matrix instead.
    """

    boxes: str = "detection_boxes"
    scores: str = "detection_scores"
    classes: str = "detection_classes"
    multiclass_scores: Optional[str] = None
    background_class: bool = True


# Pre-NMS outputs of TF object-detection SSD exports: 1917 anchors x (background + classes).
RAW_SSD_OUTPUTS = OutputNames(boxes="raw_detection_boxes", multiclass_scores="raw_detection_scores")


class InferenceAdapter:
    """
    Runs one frame through a backend and copies out the buffers post-processing needs.
    """

    def __init__(
        self,
        backend: InferenceBackend,
        output_names: OutputNames = OutputNames(),
        *,
        input_size: Optional[Tuple[int, int]] = None,
        bgr: bool = False,
    ):
        self.backend: Optional[InferenceBackend] = backend
        self.output_names = output_names
        self.input_size = input_size
        self.bgr = bgr

    def _require_backend(self) -> InferenceBackend:
        if self.backend is None:
            raise RuntimeError("Inference adapter has been disposed.")
        return self.backend

    def warmup(self, shape: Tuple[int, ...] = (1, 300, 300, 3)) -> None:
        backend = self._require_backend()
        outputs: Optional[Dict[str, np.ndarray]] = None
        try:
            outputs = backend.run(np.zeros(shape, dtype=np.uint8))
        except Exception as exc:
            raise WarmupError(f"Warmup inference failed: {exc}") from exc
        finally:
            if outputs is not None:
                outputs.clear()

    def _take(self, outputs: Dict[str, np.ndarray], name: str) -> np.ndarray:
        if name not in outputs:
            raise ShapeMismatchError(f"Model output {name!r} not found. Available: {sorted(outputs)}")
        # Copy so nothing returned aliases runtime-owned memory.
        return np.array(outputs[name], copy=True)

    def extract(self, outputs: Dict[str, np.ndarray], width: int, height: int) -> RawDetections:
        names = self.output_names
        boxes = self._take(outputs, names.boxes)
        if names.multiclass_scores is not None:
            return RawDetections.from_multiclass(
                boxes,
                self._take(outputs, names.multiclass_scores),
                width,
                height,
                background_class=names.background_class,
            )
        return RawDetections.from_flat(
            boxes,
            self._take(outputs, names.scores),
            self._take(outputs, names.classes),
            width,
            height,
        )

    def run_inference(self, image: ImageInput) -> RawDetections:
        backend = self._require_backend()
        pixels = to_pixel_array(image, bgr=self.bgr)
        height, width = pixels.shape[:2]

        batched: Optional[np.ndarray] = None
        outputs: Optional[Dict[str, np.ndarray]] = None
        try:
            if self.input_size is not None:
                pixels = resize_to(pixels, self.input_size)
            # Reshape to a single-element batch.
            batched = pixels[None, ...]
            outputs = backend.run(batched)
            return self.extract(outputs, width, height)
        finally:
            if outputs is not None:
                outputs.clear()
            del batched, pixels

    def dispose(self) -> None:
        if self.backend is None:
            return
        backend, self.backend = self.backend, None
        backend.close()


class DetectionModel:
    """
    Loaded detector: inference adapter + post-processor.

    Each `detect()` call is independent; raw buffers never outlive the call.
    """

    def __init__(
        self,
        adapter: InferenceAdapter,
        config: DetectionConfig = DetectionConfig(),
        registry: ClassRegistry = DEFAULT_REGISTRY,
        *,
        warmed_up: bool = False,
    ):
        self.adapter = adapter
        self.config = config
        self.registry = registry
        self.post = DetectionPostprocessor(config, registry)
        self.warmed_up = warmed_up

    @property
    def disposed(self) -> bool:
        return self.adapter.backend is None

    def detect_sync(self, image: ImageInput) -> List[DetectedObject]:
        if self.disposed:
            raise RuntimeError("DetectionModel has been disposed.")
        raw = self.adapter.run_inference(image)
        detections = self.post.process(raw)
        logger.debug("detected %d objects in %dx%d frame", len(detections), raw.width, raw.height)
        return detections

    async def detect(self, image: ImageInput) -> List[DetectedObject]:
        """
        Detect objects in one frame, returning boxes with label and score in NMS order.

        Inference runs in a worker thread; post-processing runs on the caller's loop.
        """

        if self.disposed:
            raise RuntimeError("DetectionModel has been disposed.")
        raw = await asyncio.to_thread(self.adapter.run_inference, image)
        return self.post.process(raw)

    def dispose(self) -> None:
        self.adapter.dispose()

    def __enter__(self) -> "DetectionModel":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.dispose()


def infer_backend_name(model_path: Path) -> str:
    suffix = model_path.suffix.lower()
    if suffix == ".onnx":
        return "onnxruntime"
    if suffix in {".torchscript", ".ts", ".pt"}:
        return "torchscript"
    raise ValueError(f"Could not infer backend from extension '{suffix}'. Pass backend=... explicitly.")


def create_backend(
    model_path: Path,
    backend: Optional[str] = None,
    *,
    onnx_providers: Optional[Sequence[str]] = None,
    onnx_input_name: Optional[str] = None,
    torch_device: str = "cpu",
    torch_half: bool = False,
    torch_output_names: Optional[Sequence[str]] = None,
) -> InferenceBackend:
    chosen = (backend or infer_backend_name(model_path)).lower()

    if chosen == "onnxruntime":
        from .backends.onnxruntime_backend import OnnxRuntimeBackend, OnnxRuntimeBackendConfig

        return OnnxRuntimeBackend(
            model_path,
            OnnxRuntimeBackendConfig(providers=onnx_providers, input_name=onnx_input_name),
        )

    if chosen == "torchscript":
        from .backends.torchscript_backend import TorchScriptBackend, TorchScriptBackendConfig

        ts_cfg = TorchScriptBackendConfig(device=torch_device, half=torch_half)
        if torch_output_names is not None:
            ts_cfg = TorchScriptBackendConfig(device=torch_device, half=torch_half, output_names=tuple(torch_output_names))
        return TorchScriptBackend(model_path, ts_cfg)

    raise ValueError(f"Unsupported backend: {backend!r}")


def load_sync(
    model_path: PathLike,
    config: Optional[DetectionConfig] = None,
    *,
    registry: Optional[ClassRegistry] = None,
    backend: Union[str, BackendFactory, None] = None,
    output_names: OutputNames = OutputNames(),
    root: Optional[PathLike] = "auto",
    bgr: bool = False,
    **backend_options: Any,
) -> DetectionModel:
    """
    Load a model from disk and return a ready `DetectionModel`.

    Args:
        model_path: model file; relative paths resolve against the project root by default
        backend: "onnxruntime", "torchscript", a factory `(path) -> backend`, or None to infer from extension
        output_names: graph outputs to extract (see `RAW_SSD_OUTPUTS` for pre-NMS SSD exports)
        bgr: set when frames passed to `detect()` are OpenCV BGR arrays
    """

    cfg = config or DetectionConfig()
    resolved = resolve_path(model_path, root=root)
    if not resolved.exists():
        raise ModelLoadError(f"Model not found: {resolved}")

    factory: BackendFactory
    if callable(backend):
        factory = backend
    else:
        name = backend

        def factory(p: Path) -> InferenceBackend:
            return create_backend(p, name, **backend_options)

    logger.info("Loading model from %s", resolved)
    try:
        runtime_backend = factory(resolved)
    except Exception as exc:
        logger.error("Failed to load model %s: %s", resolved, exc)
        raise ModelLoadError(f"Failed to load model {resolved}: {exc}") from exc

    adapter = InferenceAdapter(runtime_backend, output_names, input_size=cfg.input_size, bgr=bgr)

    warmed_up = False
    if cfg.warmup:
        try:
            adapter.warmup(cfg.warmup_shape)
            warmed_up = True
        except WarmupError as exc:
            logger.warning("%s; continuing without warmup", exc)

    return DetectionModel(adapter, cfg, registry or DEFAULT_REGISTRY, warmed_up=warmed_up)


async def load(
    model_path: PathLike,
    config: Optional[DetectionConfig] = None,
    **kwargs: Any,
) -> DetectionModel:
    """
    Async `load_sync()`: model loading and warmup run in a worker thread.
    """

    return await asyncio.to_thread(load_sync, model_path, config, **kwargs)
