"""Labeling oracles: where operator labels for uncertain faces come from."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Protocol

import typer

from ancv.core.types import ABORT_LABEL
from ancv.core.validation import parse_label


@dataclass(frozen=True)
class LabelPrompt:
    """A face waiting for an operator label.

    Attributes:
        index: 1-based position of the face in the image.
        crop_path: Temporary file holding the face crop.
        label: Predicted label, 0 without a prediction.
        ratio: Match ratio of the prediction, if any.
    """

    index: int
    crop_path: Path
    label: int = 0
    ratio: Optional[float] = None

    @property
    def message(self) -> str:
        msg = "Face located but its identity is uncertain"
        if self.label > 0 and self.ratio is not None:
            msg += f", it may be {self.label} ({self.ratio:.3f}%)"
        return msg

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "path": str(self.crop_path),
            "label": self.label,
            "ratio": self.ratio,
            "message": self.message,
        }


class LabelOracle(Protocol):
    """Synchronous source of operator labels.

    Returns a positive label to train, ``-1`` to stop labeling for the rest
    of the call, or anything else to leave the face unlabeled.
    """

    def ask(self, prompt: LabelPrompt) -> int:
        ...


class ConsoleLabelOracle:
    """Asks on the terminal that runs the call."""

    def ask(self, prompt: LabelPrompt) -> int:
        typer.echo(prompt.message)
        typer.echo(str(prompt.crop_path))
        answer = typer.prompt(
            f"Label (positive id, 0 to skip, {ABORT_LABEL} to stop)",
            default="0",
            show_default=False,
        )
        return parse_label(answer)


class SkipLabelOracle:
    """Never labels anything; for deployments without an operator."""

    def ask(self, prompt: LabelPrompt) -> int:
        return 0
