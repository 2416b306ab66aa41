"""Annotation drawing for detection and recognition output images."""
from __future__ import annotations

import cv2
import numpy as np

from ancv.core.types import BBox, Detection


class AnnotationSink:
    """Draws boxes and labels onto a working image."""

    def __init__(
        self,
        detection_color: tuple[int, int, int] = (0, 255, 0),
        face_color: tuple[int, int, int] = (0, 0, 255),
        text_color: tuple[int, int, int] = (0, 0, 0),
        box_thickness: int = 2,
        font_scale: float = 1.2,
        font_thickness: int = 2,
    ) -> None:
        """Initialize the renderer.

        Args:
            detection_color: BGR color for object boxes (default: green).
            face_color: BGR color for face boxes (default: red).
            text_color: BGR color for text labels (default: black).
            box_thickness: Thickness of bounding box lines.
            font_scale: Scale factor for text font.
            font_thickness: Thickness of text font.
        """
        self.detection_color = detection_color
        self.face_color = face_color
        self.text_color = text_color
        self.box_thickness = box_thickness
        self.font_scale = font_scale
        self.font_thickness = font_thickness
        self.font = cv2.FONT_HERSHEY_PLAIN

    def draw_detection(self, image: np.ndarray, index: int, detection: Detection) -> None:
        """Draw an object box labelled ``"{index} {class}({id})"`` in place."""
        box = detection.box
        cv2.rectangle(
            image,
            (box.left, box.top),
            (box.right, box.bottom),
            self.detection_color,
            self.box_thickness,
        )
        cv2.putText(
            image,
            f"{index} {detection.class_name}({detection.class_id})",
            (box.left, box.top - 10),
            self.font,
            self.font_scale,
            self.text_color,
            self.font_thickness,
        )

    def draw_face(self, image: np.ndarray, box: BBox) -> None:
        cv2.rectangle(
            image,
            (box.left, box.top),
            (box.right, box.bottom),
            self.face_color,
            self.box_thickness,
        )
