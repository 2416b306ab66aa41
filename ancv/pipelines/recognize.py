"""Face recognition pipeline: locate, recognize, train, persist, annotate."""
from __future__ import annotations

import time
from pathlib import Path
from typing import Any, Callable, Optional

from ancv.config import Paths, resolve_recognizer_paths
from ancv.core.exceptions import InputError, ModelLoadError
from ancv.core.face_locate import FaceLocator
from ancv.core.image_io import read_bgr, write_image
from ancv.core.locks import StorageLockRegistry
from ancv.core.logger import get_logger
from ancv.core.model_cache import get_cached_model
from ancv.core.oracle import LabelOracle
from ancv.core.orchestrator import RecognitionOrchestrator
from ancv.core.recognizer import RecognizerStore, create_lbph_backend
from ancv.core.render import AnnotationSink
from ancv.core.requests import RecognizeRequest
from ancv.core.types import RecognizeResult, format_runtime

logger = get_logger("pipelines.recognize")


def load_cached_locator(cascade_file: Path) -> FaceLocator:
    """Load a face locator once per cascade file and reuse it."""
    return get_cached_model(
        f"cascade:{cascade_file.resolve()}",
        lambda: FaceLocator.load(cascade_file),
    )


def _empty(start: float) -> RecognizeResult:
    return RecognizeResult(
        known=[], unknown=[], runtime=format_runtime(time.perf_counter() - start)
    )


def recognize_faces(
    *,
    request: RecognizeRequest,
    paths: Paths,
    locks: StorageLockRegistry,
    oracle: Optional[LabelOracle] = None,
    locator_loader: Callable[[Path], FaceLocator] = load_cached_locator,
    backend_factory: Callable[[], Any] = create_lbph_backend,
    lock_timeout: Optional[float] = None,
    sink: Optional[AnnotationSink] = None,
) -> RecognizeResult:
    """Recognize faces in one image, optionally training on operator labels.

    Steps:
      1. Decode the image and locate faces
      2. Load the recognizer (empty when no state file exists yet)
      3. Classify each face; in interactive mode ask the oracle about
         uncertain faces and train on positive labels
      4. Save the recognizer if it changed
      5. Write the annotated image if requested

    Interactive calls hold the storage lock from load until save.
    Unreadable images, cascades or recognizer files give an empty result.

    Args:
        request: Recognize parameters.
        paths: Configuration paths object.
        locks: Registry guarding recognizer files.
        oracle: Label source used in interactive mode.
        locator_loader: Returns a face locator for a cascade file.
        backend_factory: Creates a fresh recognizer backend.
        lock_timeout: Seconds to wait for the storage lock.
        sink: Renderer for the annotated output image.

    Returns:
        RecognizeResult with known and unknown faces.

    Raises:
        LockTimeoutError: If the recognizer file stays locked too long.
        PersistenceError: If the trained recognizer cannot be saved.
    """
    start = time.perf_counter()
    try:
        image = read_bgr(request.input)
    except InputError as e:
        logger.warning(str(e))
        return _empty(start)

    rpaths = resolve_recognizer_paths(
        paths,
        storage=request.storage,
        recognized_file=request.recognized_file,
        cascade_dir=request.cascade_dir,
        faces_dir=request.faces_dir,
    )
    try:
        locator = locator_loader(rpaths.cascade)
    except ModelLoadError as e:
        logger.warning(str(e))
        return _empty(start)

    boxes = locator.locate(image)
    if boxes:
        logger.info(f"Found {len(boxes):2d} faces in {request.input}")

    store = RecognizerStore(
        rpaths.recognized_file,
        locks,
        backend_factory=backend_factory,
        lock_timeout=lock_timeout,
    )
    try:
        with store.open(exclusive=request.interactive) as model:
            orchestrator = RecognitionOrchestrator(
                model,
                oracle=oracle,
                sink=sink,
                faces_dir=rpaths.faces_dir,
                crop_ext=request.input.suffix,
                crop_prefix=request.output,
            )
            outcome = orchestrator.run(image, boxes, interactive=request.interactive)
    except ModelLoadError as e:
        logger.warning(str(e))
        return _empty(start)

    if outcome.trained:
        logger.info(
            f"Saved {outcome.trained} new label(s) to {rpaths.recognized_file}"
        )

    if request.output is not None:
        write_image(request.output, image)

    return RecognizeResult(
        known=outcome.known,
        unknown=outcome.unknown,
        runtime=format_runtime(time.perf_counter() - start),
    )
