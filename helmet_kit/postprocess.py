import logging
from typing import List, Optional

import numpy as np

from .classes import DEFAULT_REGISTRY, ClassRegistry
from .config import DetectionConfig, check_max_outputs, check_threshold
from .errors import ShapeMismatchError, UnknownClassError
from .nms import NMSConfig, nms
from .types import DetectedObject, RawDetections

logger = logging.getLogger(__name__)


def _check_shapes(raw: RawDetections) -> None:
    n = int(np.asarray(raw.scores).reshape(-1).shape[0])
    if np.asarray(raw.classes).reshape(-1).shape[0] != n:
        raise ShapeMismatchError(f"classes has {np.asarray(raw.classes).size} entries, scores has {n}")
    if np.asarray(raw.boxes).size != 4 * n:
        raise ShapeMismatchError(f"boxes has {np.asarray(raw.boxes).size} values, expected 4 * {n}")


def scale_boxes(boxes_yxyx: np.ndarray, width: int, height: int) -> np.ndarray:
    """
    Map normalized [min_y, min_x, max_y, max_x] rows to pixel [x, y, w, h] rows.

    Degenerate boxes come out with non-positive width/height; they are not dropped here.
    """

    b = np.asarray(boxes_yxyx, dtype=np.float64).reshape(-1, 4)
    min_y = b[:, 0] * height
    min_x = b[:, 1] * width
    max_y = b[:, 2] * height
    max_x = b[:, 3] * width
    return np.stack([min_x, min_y, max_x - min_x, max_y - min_y], axis=1)


def postprocess(
    raw: RawDetections,
    max_outputs: int = 100,
    iou_threshold: float = 0.4,
    score_threshold: Optional[float] = 0.4,
    *,
    registry: ClassRegistry = DEFAULT_REGISTRY,
    nms_backend: str = "numpy",
) -> List[DetectedObject]:
    """
    Turn one inference pass into the final ranked detections.

    Steps: NMS in normalized space, pixel rescaling, label lookup, assembly.
    The result keeps the NMS selection order. An unknown class id raises
    `UnknownClassError` and no partial result is produced.
    """

    check_threshold("iou_threshold", iou_threshold)
    check_threshold("score_threshold", score_threshold, nullable=True)
    check_max_outputs(max_outputs)
    _check_shapes(raw)

    boxes = np.asarray(raw.boxes, dtype=np.float32).reshape(-1, 4)
    scores = np.asarray(raw.scores, dtype=np.float32).reshape(-1)
    classes = np.asarray(raw.classes).reshape(-1)

    keep = nms(
        boxes,
        scores,
        NMSConfig(iou_threshold=iou_threshold, max_detections=max_outputs, score_threshold=score_threshold),
        backend=nms_backend,
    )
    if keep.size == 0:
        return []

    kept_classes = classes[keep].astype(np.float64)
    bad = ~np.isfinite(kept_classes)
    if bad.any():
        raise UnknownClassError(kept_classes[bad][0])
    class_ids = [int(round(c)) for c in kept_classes]
    labels = [registry.resolve(cid) for cid in class_ids]
    bboxes = scale_boxes(boxes[keep], raw.width, raw.height)

    logger.debug("kept %d of %d candidates", keep.size, scores.shape[0])
    return [
        DetectedObject(
            bbox=(float(x), float(y), float(w), float(h)),
            label=label,
            score=float(score),
            class_id=cid,
        )
        for (x, y, w, h), label, score, cid in zip(bboxes, labels, scores[keep], class_ids)
    ]


class DetectionPostprocessor:
    """
    `postprocess()` bound to a config and registry.
    """

    def __init__(self, cfg: DetectionConfig = DetectionConfig(), registry: ClassRegistry = DEFAULT_REGISTRY):
        self.cfg = cfg
        self.registry = registry

    def process(self, raw: RawDetections) -> List[DetectedObject]:
        return postprocess(
            raw,
            max_outputs=self.cfg.max_outputs,
            iou_threshold=self.cfg.iou_threshold,
            score_threshold=self.cfg.score_threshold,
            registry=self.registry,
            nms_backend=self.cfg.nms_backend,
        )
