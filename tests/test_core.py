"""Core functionality tests for types, decoding and validation."""
from __future__ import annotations

import numpy as np
import pytest

from ancv.core.detector import decode_detections
from ancv.core.exceptions import ProtocolError
from ancv.core.image_io import write_image
from ancv.core.requests import DetectRequest, RecognizeRequest
from ancv.core.types import (
    BBox,
    Detection,
    FaceObservation,
    RecognitionDecision,
    is_confidently_known,
    match_ratio,
)
from ancv.core.validation import parse_label


class TestTypes:
    """Tests for type definitions."""

    def test_bbox_clamp(self):
        """Test bounding box clamping."""
        bbox = BBox(left=-10, top=-5, right=650, bottom=490)
        clamped = bbox.clamp(640, 480)

        assert clamped == BBox(left=0, top=0, right=640, bottom=480)

    def test_bbox_is_valid(self):
        """Test bounding box validation."""
        assert BBox(left=10, top=10, right=100, bottom=100).is_valid()
        assert not BBox(left=100, top=10, right=10, bottom=100).is_valid()
        assert not BBox(left=10, top=100, right=100, bottom=10).is_valid()

    def test_bbox_from_opencv_rect(self):
        """Test conversion from (x, y, w, h)."""
        bbox = BBox.from_xywh(10, 20, 30, 40)
        assert bbox == BBox(left=10, top=20, right=40, bottom=60)
        assert bbox.width == 30
        assert bbox.height == 40

    def test_detection_to_dict(self):
        """Test detection wire format."""
        detection = Detection(
            class_id=1,
            class_name="person",
            confidence=0.9,
            box=BBox(left=1, top=2, right=3, bottom=4),
        )
        assert detection.to_dict() == {
            "cid": 1,
            "class": "person",
            "confidence": 0.9,
            "left": 1,
            "top": 2,
            "right": 3,
            "bottom": 4,
        }

    def test_face_observation_to_dict(self):
        """Test face observation wire format."""
        face = FaceObservation(
            box=BBox(left=0, top=0, right=5, bottom=5),
            label=3,
            predicted_label=3,
            distance=10.0,
            ratio=95.0,
            decision=RecognitionDecision.KNOWN,
        )
        data = face.to_dict()
        assert data["label"] == 3
        assert data["ratio"] == 95.0
        assert data["decision"] == "known"
        assert data["right"] == 5


class TestMatchRatio:
    """Tests for distance normalization."""

    @pytest.mark.parametrize(
        "distance, expected",
        [(0.0, 100.0), (10.0, 95.0), (20.0, 90.0), (100.0, 50.0), (199.0, 0.5)],
    )
    def test_ratio_below_ceiling(self, distance, expected):
        assert match_ratio(distance) == pytest.approx(expected)

    def test_ratio_at_twenty_is_exactly_ninety(self):
        assert match_ratio(20.0) == 90.0

    @pytest.mark.parametrize("distance", [200.0, 250.0, 1e6])
    def test_no_ratio_at_or_above_ceiling(self, distance):
        assert match_ratio(distance) is None

    def test_no_ratio_without_distance(self):
        assert match_ratio(None) is None


class TestAcceptance:
    """Tests for the confidently-known rule."""

    def test_just_below_cutoff_is_not_known(self):
        assert not is_confidently_known(5, 89.999)

    def test_cutoff_is_known(self):
        assert is_confidently_known(5, 90.0)

    def test_non_positive_label_is_never_known(self):
        assert not is_confidently_known(0, 100.0)
        assert not is_confidently_known(-1, 100.0)

    def test_missing_ratio_is_not_known(self):
        assert not is_confidently_known(5, None)


class TestDecodeDetections:
    """Tests for SSD output decoding."""

    CLASSES = ["background", "person", "bicycle"]

    def _rows(self, *confidences):
        return np.array(
            [[0, 1, c, 0.1, 0.2, 0.5, 0.6] for c in confidences], dtype=np.float32
        ).reshape(1, 1, -1, 7)

    def test_threshold_is_exclusive(self):
        """Test a confidence equal to the threshold is dropped."""
        assert decode_detections(self._rows(0.3), 100, 100, self.CLASSES) == []

    def test_just_above_threshold_is_kept(self):
        detections = decode_detections(self._rows(0.3 + 1e-6), 100, 100, self.CLASSES)
        assert len(detections) == 1

    def test_keeps_output_order(self):
        detections = decode_detections(
            self._rows(0.5, 0.1, 0.9), 100, 100, self.CLASSES
        )
        assert [round(d.confidence, 2) for d in detections] == [0.5, 0.9]

    def test_pixel_coordinates(self):
        """Test normalized coordinates are scaled by width and height."""
        (detection,) = decode_detections(self._rows(0.8), 200, 100, self.CLASSES)
        assert detection.box == BBox(left=20, top=20, right=100, bottom=60)
        assert detection.class_id == 1
        assert detection.class_name == "person"

    def test_unknown_class_id_falls_back_to_number(self):
        raw = np.array([0, 42, 0.9, 0, 0, 1, 1], dtype=np.float32)
        (detection,) = decode_detections(raw, 10, 10, self.CLASSES)
        assert detection.class_name == "42"

    def test_flat_output(self):
        raw = np.zeros(14, dtype=np.float32)
        assert decode_detections(raw, 10, 10, self.CLASSES) == []


class TestParseLabel:
    """Tests for operator label parsing."""

    @pytest.mark.parametrize(
        "raw, expected",
        [("7", 7), (" 12 ", 12), ("-1", -1), ("0", 0), (3, 3), (4.0, 4)],
    )
    def test_numeric(self, raw, expected):
        assert parse_label(raw) == expected

    @pytest.mark.parametrize("raw", ["alice", "", None, "1.5", 2.5, True])
    def test_non_numeric_means_no_label(self, raw):
        assert parse_label(raw) == 0


class TestRequests:
    """Tests for RPC request parsing."""

    def test_detect_requires_input(self):
        with pytest.raises(ProtocolError):
            DetectRequest.from_payload({"output": "out.jpg"})

    def test_payload_must_be_object(self):
        with pytest.raises(ProtocolError):
            DetectRequest.from_payload(["input.jpg"])

    def test_detect_accepts_coco_dir_alias(self):
        request = DetectRequest.from_payload({"input": "a.jpg", "coco-dir": "/models"})
        assert str(request.model_dir) == "/models"

    def test_recognize_defaults(self):
        request = RecognizeRequest.from_payload({"input": "a.jpg"})
        assert request.interactive is False
        assert request.output is None
        assert request.storage is None

    def test_recognize_aliases(self):
        request = RecognizeRequest.from_payload(
            {"input": "a.jpg", "ask": True, "recognized": "r.xml", "lbpcascades": "c"}
        )
        assert request.interactive is True
        assert str(request.recognized_file) == "r.xml"
        assert str(request.cascade_dir) == "c"

    def test_recognize_rejects_non_bool_interactive(self):
        with pytest.raises(ProtocolError):
            RecognizeRequest.from_payload({"input": "a.jpg", "interactive": "yes"})

    def test_recognize_rejects_non_string_path(self):
        with pytest.raises(ProtocolError):
            RecognizeRequest.from_payload({"input": 12})

    def test_payload_round_trip(self):
        request = RecognizeRequest.from_payload(
            {"input": "a.jpg", "faces_dir": "/tmp/faces", "interactive": True}
        )
        assert RecognizeRequest.from_payload(request.to_payload()) == request


class TestImageIO:
    """Tests for image writing."""

    def test_write_image_creates_parent(self, tmp_path, sample_image):
        path = tmp_path / "nested" / "out.png"
        assert write_image(path, sample_image)
        assert path.exists()

    def test_unknown_extension_returns_false(self, tmp_path, sample_image):
        path = tmp_path / "annotated"
        assert write_image(path, sample_image) is False
        assert not path.exists()

    def test_unwritable_parent_returns_false(self, tmp_path, sample_image):
        blocker = tmp_path / "file"
        blocker.write_text("x", encoding="utf-8")
        assert write_image(blocker / "out.png", sample_image) is False
