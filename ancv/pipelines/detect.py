"""Object detection pipeline: decode, detect, annotate, and return results."""
from __future__ import annotations

import time
from typing import Callable, Optional

from ancv.config import DetectorPaths, Paths, resolve_detector_paths
from ancv.core.detector import ObjectDetector
from ancv.core.exceptions import InputError
from ancv.core.image_io import read_bgr, write_image
from ancv.core.logger import get_logger
from ancv.core.model_cache import get_cached_model
from ancv.core.render import AnnotationSink
from ancv.core.requests import DetectRequest
from ancv.core.types import DetectResult, format_runtime

logger = get_logger("pipelines.detect")


def load_cached_detector(detector_paths: DetectorPaths) -> ObjectDetector:
    """Load a detector once per model file and reuse it."""
    return get_cached_model(
        f"detector:{detector_paths.model.resolve()}",
        lambda: ObjectDetector.load(detector_paths),
    )


def detect_objects(
    *,
    request: DetectRequest,
    paths: Paths,
    detector_loader: Callable[[DetectorPaths], ObjectDetector] = load_cached_detector,
    sink: Optional[AnnotationSink] = None,
) -> DetectResult:
    """Detect objects in one image.

    An unreadable input image yields an empty result. A missing or broken
    model directory is an error.

    Args:
        request: Detect parameters.
        paths: Configuration paths object.
        detector_loader: Returns a detector for the resolved model files.
        sink: Renderer for the annotated output image.

    Returns:
        DetectResult with kept detections and elapsed time.

    Raises:
        ModelLoadError: If the detector cannot be loaded.
    """
    start = time.perf_counter()
    try:
        image = read_bgr(request.input)
    except InputError as e:
        logger.warning(str(e))
        return DetectResult(detections=[], runtime=format_runtime(time.perf_counter() - start))

    detector = detector_loader(resolve_detector_paths(paths, request.model_dir))
    detections = detector.detect(image)
    if detections:
        logger.info(f"Found {len(detections):2d} objects in {request.input}")

    if request.output is not None:
        sink = sink or AnnotationSink()
        for idx, detection in enumerate(detections, start=1):
            sink.draw_detection(image, idx, detection)
        write_image(request.output, image)

    return DetectResult(
        detections=detections, runtime=format_runtime(time.perf_counter() - start)
    )
