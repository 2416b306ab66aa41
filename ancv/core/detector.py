"""Object detection using an SSD network loaded through OpenCV DNN."""
from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, List, Sequence

import cv2
import numpy as np

from ancv.config import DetectorPaths
from ancv.core.exceptions import ModelLoadError
from ancv.core.logger import get_logger
from ancv.core.types import BBox, Detection

logger = get_logger("detector")

CONFIDENCE_THRESHOLD = 0.3
INPUT_SIZE = (300, 300)


def load_class_names(path: Path) -> list[str]:
    """Read a class table with one name per line.

    Raises:
        ModelLoadError: If the file cannot be read.
    """
    try:
        with path.open(encoding="utf-8") as f:
            return [line.strip() for line in f]
    except OSError as e:
        raise ModelLoadError(f"Cannot read class names from {path}: {e}") from e


def decode_detections(
    raw: np.ndarray,
    width: int,
    height: int,
    classes: Sequence[str],
    threshold: float = CONFIDENCE_THRESHOLD,
) -> List[Detection]:
    """Decode SSD output rows into pixel-space detections.

    The output is read as consecutive groups of 7 values
    ``[_, class_id, confidence, left, top, right, bottom]`` with normalized
    coordinates. Rows are kept in output order.

    Args:
        raw: Network output of any shape holding a multiple of 7 values.
        width: Image width in pixels.
        height: Image height in pixels.
        classes: Class name table indexed by class id.
        threshold: Rows with confidence not above this are dropped.

    Returns:
        List of Detection objects.
    """
    # network outputs are float32 tensors; comparing in float32 keeps a 0.3 score out
    rows = np.asarray(raw, dtype=np.float32).reshape(-1, 7)
    cutoff = np.float32(threshold)
    detections: List[Detection] = []
    for row in rows:
        if row[2] <= cutoff:
            continue
        confidence = float(row[2])
        class_id = int(row[1])
        class_name = classes[class_id] if 0 <= class_id < len(classes) else str(class_id)
        box = BBox(
            left=int(row[3] * width),
            top=int(row[4] * height),
            right=int(row[5] * width),
            bottom=int(row[6] * height),
        )
        detections.append(
            Detection(
                class_id=class_id,
                class_name=class_name,
                confidence=confidence,
                box=box,
            )
        )
    return detections


class ObjectDetector:
    """SSD object detector.

    Attributes:
        net: OpenCV DNN network (anything with ``setInput``/``forward``).
        classes: Class name table.
        caffe: Whether the weights are a Caffe model, which changes
            preprocessing.
    """

    def __init__(self, net: Any, classes: Sequence[str], caffe: bool = False) -> None:
        self.net = net
        self.classes = list(classes)
        self.caffe = caffe
        # cv2.dnn.Net is not safe for concurrent forward passes
        self._lock = threading.Lock()

    @classmethod
    def load(cls, paths: DetectorPaths) -> "ObjectDetector":
        """Load the network and class table.

        Raises:
            ModelLoadError: If a file is missing or the network is empty.
        """
        for f in (paths.model, paths.config, paths.classes):
            if not f.exists():
                raise ModelLoadError(f"Detector file not found: {f}")
        classes = load_class_names(paths.classes)
        try:
            net = cv2.dnn.readNet(str(paths.model), str(paths.config))
        except cv2.error as e:
            raise ModelLoadError(
                f"Error reading network model from: {paths.model} {paths.config}: {e}"
            ) from e
        if net.empty():
            raise ModelLoadError(
                f"Error reading network model from: {paths.model} {paths.config}"
            )
        logger.info(f"Loaded detector {paths.model} with {len(classes)} classes")
        return cls(net, classes, caffe=paths.model.suffix == ".caffemodel")

    def _blob(self, image_bgr: np.ndarray) -> np.ndarray:
        if self.caffe:
            return cv2.dnn.blobFromImage(
                image_bgr, 1.0, INPUT_SIZE, (104, 177, 123), swapRB=False, crop=False
            )
        return cv2.dnn.blobFromImage(
            image_bgr,
            1.0 / 127.5,
            INPUT_SIZE,
            (127.5, 127.5, 127.5),
            swapRB=True,
            crop=False,
        )

    def detect(self, image_bgr: np.ndarray) -> List[Detection]:
        """Run the detector and return detections in image coordinates.

        Args:
            image_bgr: Input BGR image.

        Returns:
            List of Detection objects above the confidence threshold.
        """
        height, width = image_bgr.shape[:2]
        blob = self._blob(image_bgr)
        with self._lock:
            self.net.setInput(blob)
            raw = self.net.forward()
        return decode_detections(raw, width, height, self.classes)
