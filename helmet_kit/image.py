from __future__ import annotations

from pathlib import Path
from typing import Any, Tuple, Union

import numpy as np

ImageInput = Union[np.ndarray, str, Path]


def _cv2() -> Any:
    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for image decoding/resizing. Install with `pip install opencv-python-headless`.") from e
    return cv2


def to_pixel_array(image: ImageInput, *, bgr: bool = False) -> np.ndarray:
    """
    Normalize a frame to a contiguous uint8 (H, W, 3) RGB array.

    Accepts (H, W, 3), (H, W, 4) (alpha dropped) or (H, W) arrays, or a path to
    an image file. Set `bgr=True` for frames coming from OpenCV.
    """

    if isinstance(image, (str, Path)):
        cv2 = _cv2()
        img = cv2.imread(str(image), cv2.IMREAD_COLOR)
        if img is None:
            raise FileNotFoundError(f"Could not read image at path: {image}")
        return np.ascontiguousarray(img[:, :, ::-1])

    if image is None or not hasattr(image, "shape"):
        raise TypeError(f"image must be a NumPy array or a path, got {type(image).__name__}")

    img = np.asarray(image)
    if img.ndim == 2:
        img = np.repeat(img[:, :, None], 3, axis=2)
    elif img.ndim == 3 and img.shape[2] == 4:
        img = img[:, :, :3]
    elif img.ndim != 3 or img.shape[2] != 3:
        raise ValueError(f"Expected image shape (H, W, 3), got {img.shape}")
    if img.shape[0] == 0 or img.shape[1] == 0:
        raise ValueError(f"Image has no pixels (shape {img.shape})")

    if bgr:
        img = img[:, :, ::-1]
    if img.dtype != np.uint8:
        img = np.clip(img, 0, 255).astype(np.uint8)
    return np.ascontiguousarray(img)


def resize_to(image: np.ndarray, size: Tuple[int, int]) -> np.ndarray:
    """
    Stretch-resize to (width, height). Normalized box coordinates are unaffected by a stretch.
    """

    h, w = image.shape[:2]
    new_w, new_h = size
    if (w, h) == (new_w, new_h):
        return image
    cv2 = _cv2()
    return cv2.resize(image, (int(new_w), int(new_h)), interpolation=cv2.INTER_LINEAR)
