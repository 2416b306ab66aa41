"""Image input/output utilities built on OpenCV."""
from __future__ import annotations

from pathlib import Path

import cv2
import numpy as np

from ancv.core.exceptions import InputError
from ancv.core.logger import get_logger
from ancv.core.types import BBox

logger = get_logger("image_io")


def read_bgr(path: Path) -> np.ndarray:
    """Load an image in BGR colour order.

    Args:
        path: Path to image file.

    Returns:
        HxWx3 uint8 array.

    Raises:
        InputError: If the file is missing, unreadable or empty.
    """
    if not path.is_file():
        raise InputError(f"Invalid input image: {path}")
    image = cv2.imread(str(path), cv2.IMREAD_COLOR)
    if image is None or image.size == 0:
        raise InputError(f"Invalid input image: {path}")
    return image


def write_image(path: Path, image: np.ndarray) -> bool:
    """Write an image, creating the parent directory if needed.

    Failures, including a path whose extension OpenCV has no encoder for,
    are logged and reported through the return value.

    Returns:
        True if the image was written.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        ok = bool(cv2.imwrite(str(path), image))
    except (cv2.error, OSError) as e:
        logger.warning(f"Failed to write image {path}: {e}")
        return False
    if not ok:
        logger.warning(f"Failed to write image: {path}")
    return ok


def crop(image: np.ndarray, box: BBox) -> np.ndarray:
    """Return the region of ``image`` inside ``box``."""
    h, w = image.shape[:2]
    box = box.clamp(w, h)
    return image[box.top : box.bottom, box.left : box.right]


def to_gray(image: np.ndarray) -> np.ndarray:
    """Convert a BGR image to single channel grayscale."""
    if image.ndim == 2:
        return image
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
