"""
Person/helmet detection on top of a pretrained SSD graph.

`load()` a model, `await model.detect(frame)` to get labelled boxes. The
post-processing core (NMS, rescaling, labelling) only needs NumPy; inference
runtimes and OpenCV are imported lazily where they are used.
"""

from .classes import DEFAULT_CLASSES, DEFAULT_REGISTRY, ClassEntry, ClassRegistry, load_class_registry
from .config import DetectionConfig, load_detection_config
from .errors import (
    HelmetKitError,
    InvalidThresholdError,
    ModelLoadError,
    ShapeMismatchError,
    UnknownClassError,
    WarmupError,
)
from .log import setup_logging
from .nms import NMSConfig, box_iou, nms
from .postprocess import DetectionPostprocessor, postprocess, scale_boxes
from .runtime import (
    RAW_SSD_OUTPUTS,
    DetectionModel,
    InferenceAdapter,
    OutputNames,
    create_backend,
    find_project_root,
    load,
    load_sync,
    resolve_path,
)
from .types import DetectedObject, RawDetections
from .visualize import draw_detections

__all__ = [
    "DEFAULT_CLASSES",
    "DEFAULT_REGISTRY",
    "ClassEntry",
    "ClassRegistry",
    "load_class_registry",
    "DetectionConfig",
    "load_detection_config",
    "HelmetKitError",
    "InvalidThresholdError",
    "ModelLoadError",
    "ShapeMismatchError",
    "UnknownClassError",
    "WarmupError",
    "setup_logging",
    "NMSConfig",
    "box_iou",
    "nms",
    "DetectionPostprocessor",
    "postprocess",
    "scale_boxes",
    "RAW_SSD_OUTPUTS",
    "DetectionModel",
    "InferenceAdapter",
    "OutputNames",
    "create_backend",
    "find_project_root",
    "load",
    "load_sync",
    "resolve_path",
    "DetectedObject",
    "RawDetections",
    "draw_detections",
]
