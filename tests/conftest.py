"""Pytest fixtures and test doubles for ancv tests."""
from __future__ import annotations

import json
import tempfile
from pathlib import Path
from typing import Generator, Iterable

import cv2
import numpy as np
import pytest

from ancv.config import Paths, ServiceConfig
from ancv.core.detector import ObjectDetector
from ancv.core.locks import StorageLockRegistry
from ancv.core.model_cache import clear_model_cache
from ancv.core.oracle import LabelPrompt
from ancv.core.recognizer import RecognizerModel
from ancv.core.types import BBox
from ancv.pipelines.service import VisionService
from ancv.web.app import create_app

CLASSES = ["background", "person", "bicycle", "car"]


class FakeRecognizerBackend:
    """Stands in for cv2.face.LBPHFaceRecognizer.

    Predictions are served from a queue in call order; once it is empty
    every face is a non-match.
    """

    def __init__(self, predictions: Iterable[tuple[int, float]] = ()) -> None:
        self.predictions = list(predictions)
        self.calls: list[tuple[str, list[int]]] = []
        self.read_paths: list[str] = []
        self.fail_write = False

    def train(self, faces, labels) -> None:
        self.calls.append(("train", [int(x) for x in labels]))

    def update(self, faces, labels) -> None:
        self.calls.append(("update", [int(x) for x in labels]))

    def predict(self, face):
        if self.predictions:
            return self.predictions.pop(0)
        return 0, 250.0

    def read(self, path: str) -> None:
        self.read_paths.append(path)

    def write(self, path: str) -> None:
        if self.fail_write:
            raise OSError("disk full")
        Path(path).write_text(json.dumps(self.calls), encoding="utf-8")


class FakeFaceLocator:
    """Returns a fixed list of face boxes."""

    def __init__(self, boxes: Iterable[BBox]) -> None:
        self.boxes = list(boxes)

    def locate(self, image):
        return list(self.boxes)


class ScriptedOracle:
    """Answers label prompts from a script and records what it was asked."""

    def __init__(self, answers: Iterable[int]) -> None:
        self.answers = list(answers)
        self.prompts: list[LabelPrompt] = []
        self.crop_existed: list[bool] = []

    def ask(self, prompt: LabelPrompt) -> int:
        self.prompts.append(prompt)
        self.crop_existed.append(prompt.crop_path.exists())
        if not self.answers:
            raise AssertionError("oracle asked more often than scripted")
        return self.answers.pop(0)


class FakeNet:
    """Stands in for cv2.dnn.Net, returning a fixed SSD output."""

    def __init__(self, rows: Iterable[Iterable[float]]) -> None:
        self.output = np.asarray(list(rows), dtype=np.float32).reshape(1, 1, -1, 7)
        self.forward_calls = 0

    def setInput(self, blob) -> None:
        self.blob = blob

    def forward(self):
        self.forward_calls += 1
        return self.output


def make_trained_model(
    tmp_path: Path, predictions: Iterable[tuple[int, float]] = ()
) -> tuple[RecognizerModel, FakeRecognizerBackend]:
    """Return a model in the TRAINED state with scripted predictions."""
    state_file = tmp_path / "existing_state.xml"
    state_file.write_text("{}", encoding="utf-8")
    backend = FakeRecognizerBackend(predictions)
    model = RecognizerModel(backend)
    assert model.load(state_file)
    return model, backend


def face_boxes(count: int) -> list[BBox]:
    """Non-overlapping 30x30 boxes along the top of a 160x120 image."""
    return [BBox(left=5 + 40 * i, top=10, right=35 + 40 * i, bottom=40) for i in range(count)]


@pytest.fixture(autouse=True)
def reset_model_cache() -> Generator[None, None, None]:
    """Keep loaded models from leaking between tests."""
    clear_model_cache()
    yield
    clear_model_cache()


@pytest.fixture
def temp_data_dir() -> Generator[Path, None, None]:
    """Create a temporary data directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        data_dir = Path(tmpdir)
        (data_dir / "lbph").mkdir(parents=True)
        yield data_dir


@pytest.fixture
def paths(temp_data_dir: Path) -> Paths:
    return Paths(data_dir=temp_data_dir)


@pytest.fixture
def sample_image() -> np.ndarray:
    """A 160x120 BGR image with some texture."""
    rng = np.random.default_rng(7)
    return rng.integers(0, 255, size=(120, 160, 3), dtype=np.uint8)


@pytest.fixture
def sample_image_path(temp_data_dir: Path, sample_image: np.ndarray) -> Path:
    """The sample image written to disk as PNG."""
    path = temp_data_dir / "input.png"
    assert cv2.imwrite(str(path), sample_image)
    return path


@pytest.fixture
def faces_dir(temp_data_dir: Path) -> Path:
    path = temp_data_dir / "faces"
    path.mkdir()
    return path


@pytest.fixture
def locks() -> StorageLockRegistry:
    return StorageLockRegistry()


@pytest.fixture
def fake_net() -> FakeNet:
    return FakeNet(
        [
            [0, 1, 0.9, 0.1, 0.2, 0.5, 0.6],
            [0, 3, 0.3, 0.0, 0.0, 1.0, 1.0],
            [0, 2, 0.45, 0.5, 0.5, 0.75, 1.0],
        ]
    )


@pytest.fixture
def fake_backend() -> FakeRecognizerBackend:
    return FakeRecognizerBackend()


@pytest.fixture
def vision_service(
    paths: Paths,
    locks: StorageLockRegistry,
    fake_net: FakeNet,
    fake_backend: FakeRecognizerBackend,
) -> VisionService:
    """Service wired to fakes for the detector, locator and recognizer."""
    detector = ObjectDetector(fake_net, CLASSES)
    locator = FakeFaceLocator(face_boxes(2))
    return VisionService(
        paths=paths,
        locks=locks,
        lock_timeout=1.0,
        detector_loader=lambda detector_paths: detector,
        locator_loader=lambda cascade: locator,
        backend_factory=lambda: fake_backend,
    )


@pytest.fixture
def scripted_oracle() -> ScriptedOracle:
    return ScriptedOracle([5, 6])


@pytest.fixture
def app(temp_data_dir: Path, vision_service: VisionService, scripted_oracle: ScriptedOracle):
    """Create the Flask app for testing with faked pipelines."""
    app = create_app(
        data_dir=temp_data_dir,
        config=ServiceConfig(),
        service=vision_service,
        oracle_factory=lambda sid: scripted_oracle,
    )
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    """Create Flask test client."""
    return app.test_client()


@pytest.fixture
def rpc_client(app):
    """Create a connected Socket.IO test client."""
    socketio = app.extensions["socketio"]
    client = socketio.test_client(app)
    yield client
    if client.is_connected():
        client.disconnect()

