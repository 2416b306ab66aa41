"""Per-face recognition state machine with operator-driven training."""
from __future__ import annotations

import os
from contextlib import ExitStack
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Sequence

import cv2
import numpy as np

from ancv.core.image_io import crop, to_gray, write_image
from ancv.core.logger import get_logger
from ancv.core.oracle import LabelOracle, LabelPrompt, SkipLabelOracle
from ancv.core.recognizer import RecognizerModel
from ancv.core.render import AnnotationSink
from ancv.core.types import (
    ABORT_LABEL,
    BBox,
    FaceObservation,
    RecognitionDecision,
    is_confidently_known,
    match_ratio,
)

logger = get_logger("orchestrator")


@dataclass
class RecognitionOutcome:
    """Faces of one image split by outcome.

    Attributes:
        known: Faces that ended with a positive label.
        unknown: Everything else, in detection order.
        trained: Number of model mutations made.
        aborted: Whether the operator stopped labeling.
    """

    known: list[FaceObservation] = field(default_factory=list)
    unknown: list[FaceObservation] = field(default_factory=list)
    trained: int = 0
    aborted: bool = False

    def add(self, observation: FaceObservation) -> None:
        if observation.is_known:
            self.known.append(observation)
        else:
            self.unknown.append(observation)


class RecognitionOrchestrator:
    """Turns located faces into known/unknown lists, training on the way.

    For every face the model is asked for a prediction. Faces that pass
    the acceptance rule are known. The rest are training candidates: in
    interactive mode the operator is shown a temporary crop and asked for a
    label, which trains (first time) or updates the model.

    Attributes:
        model: Recognizer loaded for this call.
        oracle: Source of operator labels.
        sink: Draws face rectangles on the working image.
        faces_dir: Directory for temporary operator crops.
        crop_ext: File extension of operator crops.
        crop_prefix: When set, every face crop is also saved as
            ``{crop_prefix}-{i}.jpg``.
    """

    def __init__(
        self,
        model: RecognizerModel,
        oracle: Optional[LabelOracle] = None,
        sink: Optional[AnnotationSink] = None,
        faces_dir: Path = Path("."),
        crop_ext: str = ".jpg",
        crop_prefix: Optional[Path] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.model = model
        self.oracle = oracle or SkipLabelOracle()
        self.sink = sink or AnnotationSink()
        self.faces_dir = faces_dir
        self.crop_ext = crop_ext or ".jpg"
        self.crop_prefix = crop_prefix
        self.clock = clock

    def run(
        self, image: np.ndarray, boxes: Sequence[BBox], interactive: bool = False
    ) -> RecognitionOutcome:
        """Classify each face of ``image`` in order.

        Rectangles are drawn on ``image`` for every face. Operator crops
        are removed before returning, whatever the exit path.

        Args:
            image: Working BGR image, annotated in place.
            boxes: Located faces in detection order.
            interactive: Ask the oracle about training candidates.

        Returns:
            RecognitionOutcome for this image.
        """
        outcome = RecognitionOutcome()
        height, width = image.shape[:2]
        with ExitStack() as cleanup:
            for i, box in enumerate(boxes):
                if not box.clamp(width, height).is_valid():
                    logger.warning(f"Face {i + 1} at {box} is outside the image")
                    outcome.add(FaceObservation(box=box))
                    self.sink.draw_face(image, box)
                    continue
                face = crop(image, box)
                if self.crop_prefix is not None:
                    write_image(Path(f"{self.crop_prefix}-{i}.jpg"), face)
                gray = to_gray(face)

                observation = self._observe(box, gray)
                if observation.decision is not RecognitionDecision.KNOWN and interactive:
                    answer = self._ask(cleanup, i, face, observation)
                    if answer == ABORT_LABEL:
                        logger.info(f"Labeling stopped by operator at face {i + 1}")
                        outcome.aborted = True
                        outcome.add(observation)
                        self.sink.draw_face(image, box)
                        # remaining faces are left unlabeled without a prediction
                        for rest in boxes[i + 1 :]:
                            outcome.add(FaceObservation(box=rest))
                            self.sink.draw_face(image, rest)
                        break
                    if answer > 0:
                        self.model.learn(gray, answer)
                        outcome.trained += 1
                        observation = replace(
                            observation,
                            label=answer,
                            decision=RecognitionDecision.TRAINED,
                        )
                        logger.info(f"Labelled face {i + 1} as {answer}")

                outcome.add(observation)
                self.sink.draw_face(image, box)
        return outcome

    def _observe(self, box: BBox, gray: np.ndarray) -> FaceObservation:
        if self.model.is_empty:
            return FaceObservation(box=box)
        try:
            label, distance = self.model.predict(gray)
        except cv2.error as e:
            logger.warning(f"Prediction failed for face at {box}: {e}")
            return FaceObservation(box=box)

        ratio = match_ratio(distance)
        if is_confidently_known(label, ratio):
            return FaceObservation(
                box=box,
                label=label,
                predicted_label=label,
                distance=distance,
                ratio=ratio,
                decision=RecognitionDecision.KNOWN,
            )
        return FaceObservation(
            box=box, predicted_label=label, distance=distance, ratio=ratio
        )

    def _ask(
        self,
        cleanup: ExitStack,
        index: int,
        face: np.ndarray,
        observation: FaceObservation,
    ) -> int:
        stamp = self.clock().strftime("%Y%m%d_%H%M%S")
        crop_path = self.faces_dir / f"{stamp}-{index + 1}{self.crop_ext}"
        if write_image(crop_path, face):
            cleanup.callback(_remove_artifact, crop_path)
        prompt = LabelPrompt(
            index=index + 1,
            crop_path=crop_path,
            label=observation.predicted_label,
            ratio=observation.ratio,
        )
        return self.oracle.ask(prompt)


def _remove_artifact(path: Path) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Could not remove face crop {path}: {e}")
