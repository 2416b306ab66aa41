"""Flask application factory hosting the ancv Socket.IO RPC service."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

from flask import Flask, jsonify
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_socketio import SocketIO

from ancv.config import (
    Paths,
    ServiceConfig,
    get_data_dir_from_env,
    get_service_config_from_env,
    resolve_detector_paths,
    resolve_recognizer_paths,
)
from ancv.core.logger import get_logger
from ancv.core.model_cache import get_cache_size
from ancv.pipelines.service import VisionService
from ancv.web.rpc import CallStats, OracleFactory, register_rpc_handlers

logger = get_logger("web")

# Set by create_app(), served by run_server()
socketio: Optional[SocketIO] = None


def create_app(
    data_dir: Optional[Path] = None,
    config: Optional[ServiceConfig] = None,
    service: Optional[VisionService] = None,
    oracle_factory: Optional[OracleFactory] = None,
) -> Flask:
    """Create and configure the Flask application.

    Args:
        data_dir: Path to data directory containing models.
        config: Service settings, read from the environment when omitted.
        service: Pipelines to serve, built for ``data_dir`` when omitted.
        oracle_factory: Label oracle per client session, defaults to
            asking the calling client.

    Returns:
        Configured Flask application instance.
    """
    if data_dir is None:
        data_dir = get_data_dir_from_env()
    if config is None:
        config = get_service_config_from_env()

    paths = Paths(data_dir=data_dir)
    if service is None:
        service = VisionService(paths=paths, lock_timeout=config.lock_timeout)

    app = Flask(__name__)
    app.config["DATA_DIR"] = data_dir
    app.config["SERVICE_CONFIG"] = config

    if config.api_key:
        logger.info("API key authentication enabled")

    limiter = Limiter(
        app=app,
        key_func=get_remote_address,
        default_limits=["600 per hour"],
        storage_uri=os.getenv("REDIS_URL", "memory://"),
    )
    app.config["LIMITER"] = limiter

    global socketio
    socketio = SocketIO(
        app,
        async_mode=config.async_mode,
        cors_allowed_origins="*",
        logger=False,
        engineio_logger=False,
    )
    logger.info(f"SocketIO initialized with async_mode={config.async_mode}")

    stats = CallStats()
    register_rpc_handlers(
        socketio=socketio,
        service=service,
        config=config,
        stats=stats,
        oracle_factory=oracle_factory,
    )

    @app.route("/health", methods=["GET"])
    def health() -> tuple[Any, int]:
        """Report whether the default resources are in place."""
        detector = resolve_detector_paths(paths)
        recognizer = resolve_recognizer_paths(paths)
        checks: dict[str, Any] = {
            "data_dir": {
                "status": "healthy" if data_dir.is_dir() else "missing",
                "path": str(data_dir),
            },
            "detector": {
                "status": "healthy"
                if all(f.exists() for f in (detector.model, detector.config, detector.classes))
                else "missing",
                "path": str(detector.model.parent),
            },
            "cascade": {
                "status": "healthy" if recognizer.cascade.exists() else "missing",
                "path": str(recognizer.cascade),
            },
            "recognizer": {
                "status": "trained" if recognizer.recognized_file.exists() else "empty",
                "path": str(recognizer.recognized_file),
                "locked": service.locks.is_locked(recognizer.recognized_file),
            },
        }
        degraded = any(c["status"] == "missing" for c in checks.values())
        return (
            jsonify({"status": "degraded" if degraded else "healthy", "checks": checks}),
            200,
        )

    @app.route("/metrics", methods=["GET"])
    def metrics() -> tuple[Any, int]:
        """Expose per-event call and failure counters."""
        return (
            jsonify(
                {
                    **stats.snapshot(),
                    "models_cached": get_cache_size(),
                    "storage_locks": service.locks.get_lock_count(),
                }
            ),
            200,
        )

    @app.errorhandler(404)
    def not_found(error: Any) -> tuple[Any, int]:
        return jsonify({"error": "Endpoint not found"}), 404

    return app


def run_server(
    data_dir: Optional[Path] = None,
    config: Optional[ServiceConfig] = None,
    debug: bool = False,
) -> None:
    """Run the RPC server until interrupted.

    Args:
        data_dir: Data directory path.
        config: Service settings, read from the environment when omitted.
        debug: Enable debug mode.
    """
    if config is None:
        config = get_service_config_from_env()
    app = create_app(data_dir=data_dir, config=config)

    if socketio is None:
        raise RuntimeError("SocketIO not initialized")

    logger.info(f"Starting RPC server on {config.host}:{config.port}")
    run_kwargs: dict[str, Any] = {
        "host": config.host,
        "port": config.port,
        "debug": debug,
        "use_reloader": False,
    }
    if config.async_mode == "threading":
        run_kwargs["allow_unsafe_werkzeug"] = True
    socketio.run(app, **run_kwargs)
