"""Client for the ancv Socket.IO RPC service."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import socketio
from socketio.exceptions import BadNamespaceError
from socketio.exceptions import ConnectionError as SocketIOConnectionError
from socketio.exceptions import TimeoutError as SocketIOTimeoutError

from ancv.core.exceptions import AncvError
from ancv.core.logger import get_logger
from ancv.core.oracle import LabelOracle, LabelPrompt
from ancv.core.requests import DetectRequest, RecognizeRequest
from ancv.web.rpc import LABEL_REQUEST_EVENT

logger = get_logger("client")


class RemoteCallError(AncvError):
    """A call that failed on the server or never reached it.

    ``kind`` is the server's error kind, or ``connection``/``timeout`` for
    transport failures.
    """

    def __init__(self, kind: str, message: str) -> None:
        super().__init__(message)
        self.kind = kind


def normalize_url(address: str) -> str:
    """Turn ``host:port`` or ``:port`` into an http URL."""
    if "://" in address:
        return address
    if address.startswith(":"):
        address = "127.0.0.1" + address
    return f"http://{address}"


class RPCClient:
    """Synchronous RPC client over one persistent connection.

    When an oracle is given, ``label_request`` events sent by the server
    during interactive recognition are answered with its labels.

    Attributes:
        timeout: Seconds to wait for a reply to a non-interactive call.
            Interactive recognition waits on the operator and has no limit.
    """

    def __init__(
        self,
        address: str,
        api_key: Optional[str] = None,
        oracle: Optional[LabelOracle] = None,
        timeout: float = 600.0,
        connect_timeout: float = 10.0,
    ) -> None:
        self.url = normalize_url(address)
        self.api_key = api_key
        self.oracle = oracle
        self.timeout = timeout
        self.connect_timeout = connect_timeout
        self._sio = socketio.Client()
        if oracle is not None:
            self._sio.on(LABEL_REQUEST_EVENT, self._answer_label)

    def connect(self) -> "RPCClient":
        """Open the connection.

        Raises:
            RemoteCallError: With kind ``connection`` if the server is
                unreachable or rejects the connection.
        """
        auth = {"api_key": self.api_key} if self.api_key else None
        try:
            self._sio.connect(self.url, auth=auth, wait_timeout=self.connect_timeout)
        except SocketIOConnectionError as e:
            raise RemoteCallError("connection", f"Cannot connect to {self.url}: {e}") from e
        logger.debug(f"Connected to {self.url}")
        return self

    def close(self) -> None:
        if self._sio.connected:
            self._sio.disconnect()

    def __enter__(self) -> "RPCClient":
        return self.connect()

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def _answer_label(self, data: dict[str, Any]) -> int:
        prompt = LabelPrompt(
            index=int(data.get("index", 0)),
            crop_path=Path(data.get("path", "")),
            label=int(data.get("label") or 0),
            ratio=data.get("ratio"),
        )
        return self.oracle.ask(prompt)

    def _call(
        self, event: str, payload: dict[str, Any], timeout: Optional[float]
    ) -> dict[str, Any]:
        try:
            ack = self._sio.call(event, payload, timeout=timeout)
        except SocketIOTimeoutError as e:
            raise RemoteCallError("timeout", f"No reply to {event} within {timeout}s") from e
        except BadNamespaceError as e:
            raise RemoteCallError("connection", f"Not connected to {self.url}") from e
        if not isinstance(ack, dict):
            raise RemoteCallError("protocol", f"unexpected reply to {event}: {ack!r}")
        if not ack.get("success"):
            error = ack.get("error") or {}
            raise RemoteCallError(
                error.get("kind", "internal"), error.get("message", "call failed")
            )
        return ack.get("data", {})

    def detect(self, request: DetectRequest) -> dict[str, Any]:
        """Run Detect on the server.

        Raises:
            RemoteCallError: If the call fails or gets no reply in time.
        """
        return self._call("detect", request.to_payload(), self.timeout)

    def recognize(self, request: RecognizeRequest) -> dict[str, Any]:
        """Run Recognize on the server.

        Raises:
            RemoteCallError: If the call fails or gets no reply in time.
        """
        timeout = None if request.interactive else self.timeout
        return self._call("recognize", request.to_payload(), timeout)
