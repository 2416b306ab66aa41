"""Data types for the detection and recognition pipelines."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

# Distances at or above this carry no match signal.
MAX_DISTANCE = 200.0
# Minimum match ratio for a confidently known face.
ACCEPT_RATIO = 90.0
# Operator label that stops labeling for the rest of a call.
ABORT_LABEL = -1


@dataclass(frozen=True)
class BBox:
    """Bounding box with pixel coordinates.

    Attributes:
        left: Left edge x-coordinate.
        top: Top edge y-coordinate.
        right: Right edge x-coordinate.
        bottom: Bottom edge y-coordinate.
    """

    left: int
    top: int
    right: int
    bottom: int

    @property
    def width(self) -> int:
        return self.right - self.left

    @property
    def height(self) -> int:
        return self.bottom - self.top

    def clamp(self, width: int, height: int) -> "BBox":
        """Clamp bounding box coordinates to image dimensions.

        Args:
            width: Image width in pixels.
            height: Image height in pixels.

        Returns:
            New BBox with clamped coordinates.
        """
        return BBox(
            left=max(0, min(self.left, width)),
            top=max(0, min(self.top, height)),
            right=max(0, min(self.right, width)),
            bottom=max(0, min(self.bottom, height)),
        )

    def is_valid(self) -> bool:
        """Check if bounding box has positive area."""
        return self.right > self.left and self.bottom > self.top

    @classmethod
    def from_xywh(cls, x: int, y: int, w: int, h: int) -> "BBox":
        """Build a box from an OpenCV ``(x, y, w, h)`` rectangle."""
        return cls(left=int(x), top=int(y), right=int(x + w), bottom=int(y + h))

    def to_dict(self) -> dict[str, int]:
        return {
            "left": self.left,
            "top": self.top,
            "right": self.right,
            "bottom": self.bottom,
        }


@dataclass(frozen=True)
class Detection:
    """Object detection result.

    Attributes:
        class_id: Index into the detector's class table.
        class_name: Human readable class name.
        confidence: Confidence score (0.0 to 1.0).
        box: Bounding box in pixel coordinates.
    """

    class_id: int
    class_name: str
    confidence: float
    box: BBox

    def to_dict(self) -> dict[str, Any]:
        return {
            "cid": self.class_id,
            "class": self.class_name,
            "confidence": self.confidence,
            **self.box.to_dict(),
        }


class RecognitionDecision(Enum):
    """Outcome for a single located face."""

    KNOWN = "known"
    UNKNOWN = "unknown"
    TRAINED = "trained"


@dataclass(frozen=True)
class FaceObservation:
    """Recognition result for a single located face.

    Attributes:
        box: Face bounding box in pixel coordinates.
        label: Identity settled for this call, 0 when there is none.
        predicted_label: Recognizer guess, 0 without a prediction.
        distance: Recognizer distance, None without a prediction.
        ratio: Match ratio in [0, 100], None without a match signal.
        decision: How the face was resolved.
    """

    box: BBox
    label: int = 0
    predicted_label: int = 0
    distance: Optional[float] = None
    ratio: Optional[float] = None
    decision: RecognitionDecision = RecognitionDecision.UNKNOWN

    @property
    def is_known(self) -> bool:
        return self.label > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "predicted_label": self.predicted_label,
            "distance": self.distance,
            "ratio": self.ratio,
            "decision": self.decision.value,
            **self.box.to_dict(),
        }


def match_ratio(distance: Optional[float]) -> Optional[float]:
    """Normalize a recognizer distance into a match percentage.

    Args:
        distance: Distance reported by the recognizer.

    Returns:
        Ratio in [0, 100], or None when the distance carries no signal.
    """
    if distance is None or distance >= MAX_DISTANCE:
        return None
    return max(0.0, (MAX_DISTANCE - distance) * 100.0 / MAX_DISTANCE)


def is_confidently_known(label: int, ratio: Optional[float]) -> bool:
    """Return True if a prediction is accepted without operator help."""
    return label > 0 and ratio is not None and ratio >= ACCEPT_RATIO


@dataclass(frozen=True)
class DetectResult:
    """Result of one Detect call."""

    detections: list[Detection]
    runtime: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "detections": [d.to_dict() for d in self.detections],
            "runtime": self.runtime,
        }


@dataclass(frozen=True)
class RecognizeResult:
    """Result of one Recognize call."""

    known: list[FaceObservation]
    unknown: list[FaceObservation]
    runtime: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "known": [f.to_dict() for f in self.known],
            "unknown": [f.to_dict() for f in self.unknown],
            "runtime": self.runtime,
        }


def format_runtime(seconds: float) -> str:
    """Format elapsed wall-clock seconds for a response."""
    return f"{seconds:.6f}"
