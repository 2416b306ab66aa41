"""Acknowledgement payloads returned by RPC handlers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from ancv.core.exceptions import AncvError


@dataclass
class RPCResponse:
    """One RPC acknowledgement.

    Exactly one of ``data`` and ``error`` is reported, depending on
    ``success``.
    """

    success: bool
    data: Any = None
    error: Optional[dict[str, str]] = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"success": self.success}
        if self.success:
            result["data"] = self.data if self.data is not None else {}
        elif self.error:
            result["error"] = self.error
        return result


def success_payload(data: Any = None) -> dict[str, Any]:
    """Acknowledge a completed call.

    Args:
        data: Operation result, already converted to plain types.
    """
    return RPCResponse(success=True, data=data).to_dict()


def error_payload(kind: str, message: str) -> dict[str, Any]:
    """Acknowledge a failed call.

    Only the error kind and message are reported, never internal state.

    Args:
        kind: Error category, one of the ``AncvError.kind`` values.
        message: Human readable message.
    """
    return RPCResponse(
        success=False, error={"kind": kind, "message": message}
    ).to_dict()


def error_from_exception(exc: AncvError) -> dict[str, Any]:
    return error_payload(exc.kind, str(exc))
