from dataclasses import dataclass
from typing import Any, Dict, Tuple

import numpy as np

from .errors import ShapeMismatchError


@dataclass(frozen=True)
class DetectedObject:
    """
    One labelled detection in pixel space.

    `bbox` is (x, y, width, height) with a top-left origin.
    """

    bbox: Tuple[float, float, float, float]
    label: str
    score: float
    class_id: int

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        x, y, w, h = self.bbox
        return x, y, x + w, y + h

    def to_dict(self) -> Dict[str, Any]:
        return {"bbox": list(self.bbox), "class": self.label, "score": self.score}


@dataclass(frozen=True)
class RawDetections:
    """
    Output buffers of one inference pass, copied out of the runtime.

    boxes: (N, 4) normalized [min_y, min_x, max_y, max_x]
    scores: (N,) confidence per candidate box
    classes: (N,) class id per candidate box
    width/height: source image size in pixels, used for rescaling
    """

    boxes: np.ndarray
    scores: np.ndarray
    classes: np.ndarray
    width: int
    height: int

    @property
    def num_candidates(self) -> int:
        return int(self.scores.shape[0])

    @classmethod
    def from_flat(cls, boxes: Any, scores: Any, classes: Any, width: int, height: int) -> "RawDetections":
        """
        Build from buffers of any shape (flat 4N, (1, N, 4), ...). Only the element counts matter.
        """

        scores_arr = np.asarray(scores, dtype=np.float32).reshape(-1)
        classes_arr = np.asarray(classes).reshape(-1)
        boxes_arr = np.asarray(boxes, dtype=np.float32).reshape(-1)

        n = scores_arr.shape[0]
        if classes_arr.shape[0] != n:
            raise ShapeMismatchError(f"classes has {classes_arr.shape[0]} entries, scores has {n}")
        if boxes_arr.shape[0] != 4 * n:
            raise ShapeMismatchError(f"boxes has {boxes_arr.shape[0]} values, expected 4 * {n}")

        return cls(
            boxes=boxes_arr.reshape(n, 4),
            scores=scores_arr,
            classes=classes_arr,
            width=int(width),
            height=int(height),
        )

    @classmethod
    def from_multiclass(
        cls,
        boxes: Any,
        class_scores: Any,
        width: int,
        height: int,
        *,
        background_class: bool = True,
    ) -> "RawDetections":
        """
        Reduce an (N, C) per-class score matrix to a best class and score per box.

        With `background_class=True` column 0 is background and is never picked, and
        column j maps to class id j. Without a background column, column j maps to
        class id j + 1. Either way ids are 1-based, like registry ids.
        """

        p = np.asarray(class_scores, dtype=np.float32)
        if p.ndim == 3:
            if p.shape[0] != 1:
                raise ShapeMismatchError(f"Batch > 1 is not supported (got shape {p.shape}).")
            p = p[0]
        if p.ndim != 2:
            raise ShapeMismatchError(f"class_scores must be (N, C), got shape {p.shape}")

        offset = 1 if background_class else 0
        if p.shape[1] <= offset:
            raise ShapeMismatchError(f"class_scores has no foreground columns (shape {p.shape})")

        fg = p[:, offset:]
        best = np.argmax(fg, axis=1)
        scores = fg[np.arange(fg.shape[0]), best]
        classes = best + 1
        return cls.from_flat(boxes, scores, classes, width, height)
