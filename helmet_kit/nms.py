from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np


@dataclass(frozen=True)
class NMSConfig:
    iou_threshold: float = 0.4
    max_detections: int = 100
    # Candidates scoring below this are never selected. None disables the filter.
    score_threshold: Optional[float] = None


def _corners(boxes: np.ndarray, box_format: str) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    if box_format == "yxyx":
        y1, x1, y2, x2 = boxes[:, 0], boxes[:, 1], boxes[:, 2], boxes[:, 3]
    elif box_format == "xyxy":
        x1, y1, x2, y2 = boxes[:, 0], boxes[:, 1], boxes[:, 2], boxes[:, 3]
    else:
        raise ValueError(f"Unsupported box_format: {box_format!r}")
    # Flipped corners still describe a box.
    return np.minimum(x1, x2), np.minimum(y1, y2), np.maximum(x1, x2), np.maximum(y1, y2)


def box_iou(box: np.ndarray, others: np.ndarray, box_format: str = "yxyx") -> np.ndarray:
    """
    IoU of one box against each row of `others`. Zero-area boxes have IoU 0.
    """

    both = np.vstack([np.asarray(box, dtype=np.float64).reshape(1, 4), np.asarray(others, dtype=np.float64).reshape(-1, 4)])
    x1, y1, x2, y2 = _corners(both, box_format)
    areas = (x2 - x1) * (y2 - y1)

    xx1 = np.maximum(x1[0], x1[1:])
    yy1 = np.maximum(y1[0], y1[1:])
    xx2 = np.minimum(x2[0], x2[1:])
    yy2 = np.minimum(y2[0], y2[1:])

    w = np.maximum(0.0, xx2 - xx1)
    h = np.maximum(0.0, yy2 - yy1)
    inter = w * h
    union = areas[0] + areas[1:] - inter
    return np.where(union > 0, inter / np.where(union > 0, union, 1.0), 0.0)


def _candidate_order(scores: np.ndarray, score_threshold: Optional[float]) -> np.ndarray:
    # Descending score; equal scores keep their original index order.
    order = np.argsort(-scores, kind="stable")
    if score_threshold is not None:
        order = order[scores[order] >= score_threshold]
    return order


def nms(
    boxes: np.ndarray,
    scores: np.ndarray,
    cfg: NMSConfig,
    *,
    box_format: str = "yxyx",
    backend: str = "numpy",
) -> np.ndarray:
    """
    Greedy NMS. Expects boxes shape (N,4) and scores shape (N,).
    Returns indices of kept boxes in selection order (highest score first).

    A candidate is suppressed when its IoU with a selected box is strictly greater
    than `cfg.iou_threshold`, so kept pairs always satisfy IoU <= threshold.
    """

    boxes = np.asarray(boxes, dtype=np.float32).reshape(-1, 4)
    scores = np.asarray(scores, dtype=np.float32).reshape(-1)
    if boxes.shape[0] != scores.shape[0]:
        raise ValueError(f"boxes ({boxes.shape[0]}) and scores ({scores.shape[0]}) disagree on N")

    if backend == "torch":
        return _nms_torch(boxes, scores, cfg, box_format)
    if backend != "numpy":
        raise ValueError(f"Unsupported NMS backend: {backend!r}")

    if boxes.size == 0 or cfg.max_detections <= 0:
        return np.empty((0,), dtype=np.int64)

    x1, y1, x2, y2 = _corners(boxes.astype(np.float64), box_format)
    areas = (x2 - x1) * (y2 - y1)

    order = _candidate_order(scores, cfg.score_threshold)
    keep = []

    while order.size > 0 and len(keep) < cfg.max_detections:
        i = order[0]
        keep.append(i)

        xx1 = np.maximum(x1[i], x1[order[1:]])
        yy1 = np.maximum(y1[i], y1[order[1:]])
        xx2 = np.minimum(x2[i], x2[order[1:]])
        yy2 = np.minimum(y2[i], y2[order[1:]])

        w = np.maximum(0.0, xx2 - xx1)
        h = np.maximum(0.0, yy2 - yy1)
        inter = w * h
        union = areas[i] + areas[order[1:]] - inter
        iou = np.where(union > 0, inter / np.where(union > 0, union, 1.0), 0.0)

        inds = np.where(iou <= cfg.iou_threshold)[0]
        order = order[inds + 1]

    return np.array(keep, dtype=np.int64)


def _nms_torch(boxes: np.ndarray, scores: np.ndarray, cfg: NMSConfig, box_format: str) -> np.ndarray:
    try:
        import torch  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("torch is required for the torch NMS backend. Install with `pip install torch`.") from e

    if boxes.size == 0 or cfg.max_detections <= 0:
        return np.empty((0,), dtype=np.int64)

    x1, y1, x2, y2 = (torch.from_numpy(np.ascontiguousarray(c)) for c in _corners(boxes.astype(np.float64), box_format))
    areas = (x2 - x1) * (y2 - y1)
    order = torch.from_numpy(_candidate_order(scores, cfg.score_threshold).astype(np.int64))
    keep = []

    with torch.no_grad():
        while order.numel() > 0 and len(keep) < cfg.max_detections:
            i = int(order[0])
            keep.append(i)
            rest = order[1:]

            w = (torch.minimum(x2[rest], x2[i]) - torch.maximum(x1[rest], x1[i])).clamp(min=0.0)
            h = (torch.minimum(y2[rest], y2[i]) - torch.maximum(y1[rest], y1[i])).clamp(min=0.0)
            inter = w * h
            union = areas[i] + areas[rest] - inter
            iou = torch.where(union > 0, inter / torch.where(union > 0, union, torch.ones_like(union)), torch.zeros_like(union))

            order = rest[iou <= cfg.iou_threshold]

    return np.array(keep, dtype=np.int64)
