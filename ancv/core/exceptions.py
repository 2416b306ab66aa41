"""Custom exceptions for ancv.

Every exception carries a short ``kind`` that the RPC layer reports to
callers alongside the message.
"""

from __future__ import annotations


class AncvError(Exception):
    """Base exception for all ancv errors."""

    kind = "internal"


class InputError(AncvError):
    """Unreadable or empty input image, or an unusable input path."""

    kind = "input"


class ProtocolError(AncvError):
    """Malformed RPC request."""

    kind = "protocol"


class ModelLoadError(AncvError):
    """Error loading a detector, cascade or recognizer file."""

    kind = "model_load"


class ModelStateError(AncvError):
    """Illegal recognizer lifecycle transition."""

    kind = "model_state"


class PersistenceError(AncvError):
    """Recognizer state could not be written."""

    kind = "persistence"


class LockTimeoutError(AncvError):
    """Recognizer storage lock was not acquired in time."""

    kind = "lock_timeout"
