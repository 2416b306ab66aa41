"""Configuration paths and service settings for ancv."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

DEFAULT_PORT = 8861


@dataclass(frozen=True)
class Paths:
    """Default resource layout under the data directory.

    Attributes:
        data_dir: Root data directory containing models and recognizer state.
    """

    data_dir: Path

    @property
    def coco_dir(self) -> Path:
        """Return path to the SSD detector model directory."""
        return self.data_dir / "ssdlite_mobilenet_v2_coco"

    @property
    def lbpcascades_dir(self) -> Path:
        """Return path to the face locator cascade directory."""
        return self.data_dir / "lbpcascades"

    @property
    def lbph_dir(self) -> Path:
        """Return path to the recognizer storage directory."""
        return self.data_dir / "lbph"


@dataclass(frozen=True)
class DetectorPaths:
    """Files making up an SSD detector.

    Attributes:
        model: Frozen network weights.
        config: Network text description.
        classes: Class name table, one name per line.
    """

    model: Path
    config: Path
    classes: Path


@dataclass(frozen=True)
class RecognizerPaths:
    """Files used by a recognition call.

    Attributes:
        cascade: Face locator cascade file.
        recognized_file: Persisted recognizer state.
        faces_dir: Directory for face crops shown to the operator.
    """

    cascade: Path
    recognized_file: Path
    faces_dir: Path


@dataclass(frozen=True)
class ServiceConfig:
    """Settings for the RPC service.

    Attributes:
        host: Address to bind to.
        port: Port to bind to.
        label_timeout: Seconds to wait for a remote operator label.
        lock_timeout: Seconds to wait for the recognizer storage lock.
        api_key: Optional key clients must present on connect.
        async_mode: Flask-SocketIO async mode.
    """

    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    label_timeout: float = 300.0
    lock_timeout: float = 600.0
    api_key: Optional[str] = None
    async_mode: str = "threading"


def get_data_dir_from_env(default: str = "./data") -> Path:
    """Get data directory path from environment variable.

    Args:
        default: Default path if DATA_DIR is not set.

    Returns:
        Path to data directory.
    """
    return Path(os.getenv("DATA_DIR", default))


def get_service_config_from_env() -> ServiceConfig:
    """Build service settings from ANCV_* environment variables.

    Returns:
        ServiceConfig with environment overrides applied.
    """
    return ServiceConfig(
        host=os.getenv("ANCV_HOST", "0.0.0.0"),
        port=int(os.getenv("ANCV_PORT", str(DEFAULT_PORT))),
        label_timeout=float(os.getenv("ANCV_LABEL_TIMEOUT", "300")),
        lock_timeout=float(os.getenv("ANCV_LOCK_TIMEOUT", "600")),
        api_key=os.getenv("ANCV_API_KEY") or None,
        async_mode=os.getenv("ANCV_ASYNC_MODE", "threading"),
    )


def resolve_detector_paths(paths: Paths, model_dir: Optional[Path] = None) -> DetectorPaths:
    """Resolve SSD detector files.

    Args:
        paths: Configuration paths object.
        model_dir: Explicit model directory, overriding the default.

    Returns:
        DetectorPaths for the chosen directory.
    """
    coco_dir = model_dir or paths.coco_dir
    return DetectorPaths(
        model=coco_dir / "frozen_inference_graph.pb",
        config=coco_dir / "ssdlite_mobilenet_v2_coco.pbtxt",
        classes=coco_dir / "classes.txt",
    )


def resolve_recognizer_paths(
    paths: Paths,
    storage: Optional[Path] = None,
    recognized_file: Optional[Path] = None,
    cascade_dir: Optional[Path] = None,
    faces_dir: Optional[Path] = None,
) -> RecognizerPaths:
    """Resolve the files a recognition call reads and writes.

    Args:
        paths: Configuration paths object.
        storage: Recognizer storage directory.
        recognized_file: Explicit recognizer file, overriding storage.
        cascade_dir: Cascade directory.
        faces_dir: Directory for operator face crops.

    Returns:
        RecognizerPaths with defaults filled in.
    """
    storage_dir = storage or paths.lbph_dir
    return RecognizerPaths(
        cascade=(cascade_dir or paths.lbpcascades_dir) / "lbpcascade_frontalface.xml",
        recognized_file=recognized_file or storage_dir / "recognized_faces.xml",
        faces_dir=faces_dir or Path("."),
    )
