"""Face location using an OpenCV cascade classifier."""
from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, List

import cv2
import numpy as np

from ancv.core.exceptions import ModelLoadError
from ancv.core.logger import get_logger
from ancv.core.types import BBox

logger = get_logger("face_locate")


class FaceLocator:
    """Finds face rectangles in an image, independent of identity.

    Attributes:
        classifier: Loaded ``cv2.CascadeClassifier``.
    """

    def __init__(self, classifier: Any) -> None:
        self.classifier = classifier
        self._lock = threading.Lock()

    @classmethod
    def load(cls, cascade_file: Path) -> "FaceLocator":
        """Load a cascade file.

        Raises:
            ModelLoadError: If the cascade is missing or cannot be parsed.
        """
        if not cascade_file.exists():
            raise ModelLoadError(f"Cascade file not found: {cascade_file}")
        classifier = cv2.CascadeClassifier()
        if not classifier.load(str(cascade_file)):
            raise ModelLoadError(f"Error reading cascade from: {cascade_file}")
        return cls(classifier)

    def locate(self, image_bgr: np.ndarray) -> List[BBox]:
        """Return face boxes in detection order."""
        with self._lock:
            rects = self.classifier.detectMultiScale(image_bgr)
        return [BBox.from_xywh(*r) for r in rects]
