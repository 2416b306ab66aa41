"""Model caching utilities to avoid reloading models unnecessarily."""

from __future__ import annotations

import threading
from typing import Any, Callable, TypeVar

from ancv.core.logger import get_logger

logger = get_logger("model_cache")

T = TypeVar("T")

# Global model cache with thread safety
_model_cache: dict[str, Any] = {}
_model_lock = threading.Lock()


def get_cached_model(cache_key: str, loader: Callable[[], T]) -> T:
    """Get or create a cached model.

    Loader failures propagate and leave nothing cached, so a later call
    retries the load.

    Args:
        cache_key: Key identifying the model, usually its resolved path.
        loader: Builds the model on a cache miss.

    Returns:
        Cached model instance.
    """
    with _model_lock:
        if cache_key not in _model_cache:
            logger.debug(f"Loading model into cache: {cache_key}")
            _model_cache[cache_key] = loader()
        else:
            logger.debug(f"Using cached model: {cache_key}")

        return _model_cache[cache_key]


def clear_model_cache() -> None:
    """Clear the model cache.

    Useful for testing or when models need to be reloaded.
    """
    with _model_lock:
        _model_cache.clear()
        logger.info("Model cache cleared")


def get_cache_size() -> int:
    """Get the number of models currently cached."""
    with _model_lock:
        return len(_model_cache)
