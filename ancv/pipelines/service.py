"""Service facade binding pipelines to one data directory."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

from ancv.config import DetectorPaths, Paths
from ancv.core.detector import ObjectDetector
from ancv.core.face_locate import FaceLocator
from ancv.core.locks import StorageLockRegistry
from ancv.core.oracle import LabelOracle
from ancv.core.recognizer import create_lbph_backend
from ancv.core.requests import DetectRequest, RecognizeRequest
from ancv.core.types import DetectResult, RecognizeResult
from ancv.pipelines.detect import detect_objects, load_cached_detector
from ancv.pipelines.recognize import load_cached_locator, recognize_faces


@dataclass
class VisionService:
    """Entry point for Detect and Recognize calls.

    One instance is shared by every connection of a server, so the storage
    lock registry is shared too.

    Attributes:
        paths: Default resource layout.
        locks: Registry guarding recognizer files.
        lock_timeout: Seconds to wait for a recognizer file lock.
        detector_loader: Loads detectors by model files.
        locator_loader: Loads face locators by cascade file.
        backend_factory: Creates recognizer backends.
    """

    paths: Paths
    locks: StorageLockRegistry = field(default_factory=StorageLockRegistry)
    lock_timeout: Optional[float] = None
    detector_loader: Callable[[DetectorPaths], ObjectDetector] = load_cached_detector
    locator_loader: Callable[[Path], FaceLocator] = load_cached_locator
    backend_factory: Callable[[], Any] = create_lbph_backend

    def detect(self, request: DetectRequest) -> DetectResult:
        return detect_objects(
            request=request,
            paths=self.paths,
            detector_loader=self.detector_loader,
        )

    def recognize(
        self, request: RecognizeRequest, oracle: Optional[LabelOracle] = None
    ) -> RecognizeResult:
        return recognize_faces(
            request=request,
            paths=self.paths,
            locks=self.locks,
            oracle=oracle,
            locator_loader=self.locator_loader,
            backend_factory=self.backend_factory,
            lock_timeout=self.lock_timeout,
        )
