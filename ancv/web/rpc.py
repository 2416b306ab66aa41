"""Socket.IO RPC handlers for the Detect and Recognize operations."""
from __future__ import annotations

import threading
from collections import Counter
from typing import Any, Callable, Optional

from flask import request
from flask_socketio import SocketIO
from socketio.exceptions import TimeoutError as SocketIOTimeoutError

from ancv.config import ServiceConfig
from ancv.core.exceptions import AncvError, InputError, ProtocolError
from ancv.core.logger import get_logger
from ancv.core.oracle import LabelOracle, LabelPrompt
from ancv.core.requests import DetectRequest, RecognizeRequest
from ancv.core.types import ABORT_LABEL
from ancv.core.validation import parse_label
from ancv.pipelines.service import VisionService
from ancv.web.response_utils import error_from_exception, error_payload, success_payload

logger = get_logger("rpc")

LABEL_REQUEST_EVENT = "label_request"

OracleFactory = Callable[[str], LabelOracle]


class CallStats:
    """Thread-safe per-event call counters for the metrics endpoint."""

    def __init__(self) -> None:
        self._calls: Counter[str] = Counter()
        self._failures: Counter[str] = Counter()
        self._lock = threading.Lock()

    def record_call(self, event: str) -> None:
        with self._lock:
            self._calls[event] += 1

    def record_failure(self, event: str, kind: str) -> None:
        with self._lock:
            self._failures[f"{event}:{kind}"] += 1

    def snapshot(self) -> dict[str, dict[str, int]]:
        with self._lock:
            return {"calls": dict(self._calls), "failures": dict(self._failures)}


class RemoteLabelOracle:
    """Asks the calling client for a label over its own connection.

    The client answers the ``label_request`` event through its
    acknowledgement. No answer within the timeout stops labeling for the
    rest of the call.
    """

    def __init__(
        self,
        socketio: SocketIO,
        sid: str,
        timeout: float,
        namespace: str = "/",
    ) -> None:
        self.socketio = socketio
        self.sid = sid
        self.timeout = timeout
        self.namespace = namespace

    def ask(self, prompt: LabelPrompt) -> int:
        try:
            answer = self.socketio.server.call(
                LABEL_REQUEST_EVENT,
                prompt.to_dict(),
                to=self.sid,
                namespace=self.namespace,
                timeout=self.timeout,
            )
        except SocketIOTimeoutError:
            logger.warning(
                f"No label from {self.sid} within {self.timeout}s, stopping labeling"
            )
            return ABORT_LABEL
        return parse_label(answer)


def register_rpc_handlers(
    socketio: SocketIO,
    service: VisionService,
    config: ServiceConfig,
    stats: CallStats,
    oracle_factory: Optional[OracleFactory] = None,
) -> None:
    """Register connection and RPC event handlers.

    Every handler returns its result as the Socket.IO acknowledgement.
    Errors are confined to the call that raised them.

    Args:
        socketio: SocketIO instance bound to the Flask app.
        service: Pipelines shared by all connections.
        config: Service settings.
        stats: Counters exposed on the metrics endpoint.
        oracle_factory: Builds the label oracle for a client session id.
            Defaults to asking the client itself.
    """
    if oracle_factory is None:

        def oracle_factory(sid: str) -> LabelOracle:
            return RemoteLabelOracle(socketio, sid, timeout=config.label_timeout)

    def dispatch(event: str, call: Callable[[Any], Any], data: Any) -> dict[str, Any]:
        stats.record_call(event)
        try:
            result = call(data)
            return success_payload(result.to_dict())
        except (ProtocolError, InputError) as e:
            stats.record_failure(event, e.kind)
            logger.warning(f"Rejected {event} call: {e}")
            return error_from_exception(e)
        except AncvError as e:
            stats.record_failure(event, e.kind)
            logger.error(f"{event} call failed: {e}", exc_info=True)
            return error_from_exception(e)
        except Exception as e:
            stats.record_failure(event, "internal")
            logger.error(f"Unexpected error in {event} call: {e}", exc_info=True)
            return error_payload("internal", "Internal server error")

    @socketio.on("connect")
    def handle_connect(auth: Optional[dict[str, Any]] = None) -> Optional[bool]:
        """Handle a new persistent connection."""
        if config.api_key:
            provided = None
            if auth:
                provided = auth.get("api_key") or auth.get("X-API-Key")
            if not provided:
                provided = request.args.get("api_key")
            if provided != config.api_key:
                logger.warning(
                    f"Connection rejected: invalid or missing API key from {request.remote_addr}"
                )
                return False
        logger.info(f"Client connected: {request.sid} from {request.remote_addr}")
        return None

    @socketio.on("disconnect")
    def handle_disconnect(*args: Any) -> None:
        """Handle a closed connection."""
        logger.info(f"Client disconnected: {request.sid}")

    @socketio.on("detect")
    def handle_detect(data: Any = None) -> dict[str, Any]:
        """Detect objects in an image."""
        return dispatch(
            "detect", lambda d: service.detect(DetectRequest.from_payload(d)), data
        )

    @socketio.on("recognize")
    def handle_recognize(data: Any = None) -> dict[str, Any]:
        """Recognize faces in an image, optionally asking the client for labels."""
        sid = request.sid

        def run(payload: Any) -> Any:
            req = RecognizeRequest.from_payload(payload)
            oracle = oracle_factory(sid) if req.interactive else None
            return service.recognize(req, oracle=oracle)

        return dispatch("recognize", run, data)
