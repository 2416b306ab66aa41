"""Incrementally trainable face recognizer and its persisted state."""
from __future__ import annotations

import os
import tempfile
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterator, Optional, Sequence

import cv2
import numpy as np

from ancv.core.exceptions import ModelLoadError, ModelStateError, PersistenceError
from ancv.core.locks import StorageLockRegistry
from ancv.core.logger import get_logger

logger = get_logger("recognizer")


class ModelState(Enum):
    """Recognizer lifecycle states."""

    EMPTY = "empty"  # No training yet, only train() is legal
    TRAINED = "trained"  # predict() and update() are legal


def create_lbph_backend() -> Any:
    """Create an OpenCV LBPH recognizer.

    Raises:
        ModelLoadError: If OpenCV was built without the contrib face module.
    """
    if not hasattr(cv2, "face"):
        raise ModelLoadError(
            "cv2.face is not available, install opencv-contrib-python-headless"
        )
    return cv2.face.LBPHFaceRecognizer_create()


class RecognizerModel:
    """Recognizer with an explicit EMPTY/TRAINED lifecycle.

    The backend is any object exposing the OpenCV ``FaceRecognizer``
    methods ``train``, ``update``, ``predict``, ``read`` and ``write``.

    Attributes:
        state: Current lifecycle state.
        mutations: Number of train/update calls since construction or load.
    """

    def __init__(self, backend: Any) -> None:
        self._backend = backend
        self.state = ModelState.EMPTY
        self.mutations = 0

    @property
    def is_empty(self) -> bool:
        return self.state is ModelState.EMPTY

    @property
    def dirty(self) -> bool:
        return self.mutations > 0

    def predict(self, face_gray: np.ndarray) -> tuple[int, float]:
        """Guess the identity of a grayscale face crop.

        Returns:
            Tuple of (label, distance); lower distance is a closer match.

        Raises:
            ModelStateError: If the model has never been trained.
        """
        if self.state is not ModelState.TRAINED:
            raise ModelStateError("predict() called on an empty recognizer")
        label, distance = self._backend.predict(face_gray)
        return int(label), float(distance)

    def train(self, faces: Sequence[np.ndarray], labels: Sequence[int]) -> None:
        """Initialize the model from scratch.

        Raises:
            ModelStateError: If the model is already trained.
        """
        if self.state is not ModelState.EMPTY:
            raise ModelStateError("train() called on a trained recognizer, use update()")
        self._backend.train(list(faces), _as_labels(labels))
        self.state = ModelState.TRAINED
        self.mutations += 1

    def update(self, faces: Sequence[np.ndarray], labels: Sequence[int]) -> None:
        """Add samples to a trained model.

        Raises:
            ModelStateError: If the model is empty.
        """
        if self.state is not ModelState.TRAINED:
            raise ModelStateError("update() called on an empty recognizer, use train()")
        self._backend.update(list(faces), _as_labels(labels))
        self.mutations += 1

    def learn(self, face_gray: np.ndarray, label: int) -> None:
        """Apply one labelled face with the operation the current state allows."""
        if self.is_empty:
            self.train([face_gray], [label])
        else:
            self.update([face_gray], [label])

    def load(self, path: Path) -> bool:
        """Load persisted state.

        Returns:
            False if ``path`` does not exist, True once loaded.

        Raises:
            ModelLoadError: If the file exists but cannot be read.
        """
        if not path.exists():
            return False
        try:
            self._backend.read(str(path))
        except cv2.error as e:
            raise ModelLoadError(f"Cannot read recognizer state {path}: {e}") from e
        self.state = ModelState.TRAINED
        self.mutations = 0
        return True

    def save(self, path: Path) -> None:
        """Persist state atomically.

        The state is written to a temporary file next to ``path`` (same
        suffix, which selects the OpenCV storage format) and renamed over it.

        Raises:
            ModelStateError: If there is nothing to save.
            PersistenceError: If writing fails.
        """
        if self.state is not ModelState.TRAINED:
            raise ModelStateError("save() called on an empty recognizer")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=path.parent, prefix=f".{path.stem}-", suffix=path.suffix
            )
            os.close(fd)
        except OSError as e:
            raise PersistenceError(f"Cannot save recognizer state to {path}: {e}") from e

        try:
            self._backend.write(tmp_name)
            if os.path.getsize(tmp_name) == 0:
                raise PersistenceError(f"Recognizer wrote no data for {path}")
            os.replace(tmp_name, path)
        except (cv2.error, OSError) as e:
            _discard(tmp_name)
            raise PersistenceError(f"Cannot save recognizer state to {path}: {e}") from e
        except PersistenceError:
            _discard(tmp_name)
            raise
        logger.info(f"Saved recognizer state to {path}")


class RecognizerStore:
    """Handle on one persisted recognizer file.

    ``open()`` scopes a model's load, mutation and flush. Exclusive opens
    hold the storage lock for the whole scope.
    """

    def __init__(
        self,
        path: Path,
        locks: StorageLockRegistry,
        backend_factory: Callable[[], Any] = create_lbph_backend,
        lock_timeout: Optional[float] = None,
    ) -> None:
        self.path = path
        self.locks = locks
        self.backend_factory = backend_factory
        self.lock_timeout = lock_timeout

    @contextmanager
    def open(self, exclusive: bool = False) -> Iterator[RecognizerModel]:
        """Load the model and flush it on exit if it was mutated.

        The flush only happens when the block exits normally. The lock, when
        taken, is released on every exit path.

        Args:
            exclusive: Take the storage lock. Required for any mutation.

        Raises:
            LockTimeoutError: If the lock is busy past ``lock_timeout``.
            ModelLoadError: If the existing file cannot be read.
            PersistenceError: If the flush fails.
        """
        if exclusive:
            with self.locks.hold(self.path, self.lock_timeout):
                model = self._load()
                yield model
                self._flush(model)
        else:
            model = self._load()
            yield model
            if model.dirty:
                raise ModelStateError("recognizer mutated outside an exclusive scope")

    def _load(self) -> RecognizerModel:
        model = RecognizerModel(self.backend_factory())
        if model.load(self.path):
            logger.debug(f"Loaded recognizer state from {self.path}")
        else:
            logger.debug(f"No recognizer state at {self.path}, starting empty")
        return model

    def _flush(self, model: RecognizerModel) -> None:
        if model.dirty:
            model.save(self.path)


def _as_labels(labels: Sequence[int]) -> np.ndarray:
    return np.asarray([int(label) for label in labels], dtype=np.int32)


def _discard(name: str) -> None:
    try:
        os.remove(name)
    except FileNotFoundError:
        pass
