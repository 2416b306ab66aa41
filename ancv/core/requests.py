"""Request types for the Detect and Recognize operations."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from ancv.core.validation import (
    validate_bool_field,
    validate_path_field,
    validate_payload,
)


@dataclass(frozen=True)
class DetectRequest:
    """Parameters of a Detect call.

    Attributes:
        input: Image to run the detector on.
        output: Where to write the annotated image.
        model_dir: Detector model directory.
    """

    input: Path
    output: Optional[Path] = None
    model_dir: Optional[Path] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "DetectRequest":
        """Build a request from an RPC payload.

        Raises:
            ProtocolError: If required fields are missing or mistyped.
        """
        data = validate_payload(payload)
        return cls(
            input=validate_path_field(data, "input", required=True),
            output=validate_path_field(data, "output"),
            model_dir=validate_path_field(data, "model_dir", "coco-dir", "coco_dir"),
        )

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"input": str(self.input)}
        if self.output is not None:
            payload["output"] = str(self.output)
        if self.model_dir is not None:
            payload["model_dir"] = str(self.model_dir)
        return payload


@dataclass(frozen=True)
class RecognizeRequest:
    """Parameters of a Recognize call.

    Attributes:
        input: Image to recognize faces in.
        output: Where to write the annotated image and face crops.
        storage: Recognizer storage directory.
        recognized_file: Recognizer file, overrides ``storage``.
        cascade_dir: Face locator cascade directory.
        faces_dir: Directory for crops shown to the operator.
        interactive: Ask an operator to label uncertain faces.
    """

    input: Path
    output: Optional[Path] = None
    storage: Optional[Path] = None
    recognized_file: Optional[Path] = None
    cascade_dir: Optional[Path] = None
    faces_dir: Optional[Path] = None
    interactive: bool = False

    @classmethod
    def from_payload(cls, payload: Any) -> "RecognizeRequest":
        """Build a request from an RPC payload.

        Raises:
            ProtocolError: If required fields are missing or mistyped.
        """
        data = validate_payload(payload)
        return cls(
            input=validate_path_field(data, "input", required=True),
            output=validate_path_field(data, "output"),
            storage=validate_path_field(data, "storage"),
            recognized_file=validate_path_field(data, "recognized_file", "recognized"),
            cascade_dir=validate_path_field(data, "cascade_dir", "lbpcascades"),
            faces_dir=validate_path_field(data, "faces_dir"),
            interactive=validate_bool_field(data, "interactive", "ask"),
        )

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"input": str(self.input), "interactive": self.interactive}
        for name in ("output", "storage", "recognized_file", "cascade_dir", "faces_dir"):
            value = getattr(self, name)
            if value is not None:
                payload[name] = str(value)
        return payload
