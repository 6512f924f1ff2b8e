"""
Thread-safe rate-limited logging.

Confirmation polling can hit the same RPC error once per second for minutes;
this keeps one line per distinct error per window while counting the rest.
"""
import logging
import threading
from typing import Optional

from cachetools import TTLCache

logger = logging.getLogger(__name__)

# Keys logged within the suppression window
_log_cache: TTLCache = TTLCache(maxsize=256, ttl=60)
# Suppressed repeats per key; a key that never comes back is dropped after an hour
_suppressed: TTLCache = TTLCache(maxsize=256, ttl=3600)
_log_cache_lock = threading.RLock()


def rate_limited_log(
    message: str,
    level: str = "warning",
    key: Optional[str] = None,
    logger_instance: Optional[logging.Logger] = None
) -> bool:
    """
    Log a message unless the same key was logged within the current window.

    When a key comes back after its window expired, the message notes how many
    repeats were swallowed in between.

    Args:
        message: Message to log
        level: Log level (debug, info, warning, error, critical)
        key: Deduplication key (defaults to level and message)
        logger_instance: Logger to use (defaults to module logger)

    Returns:
        True if the message was emitted, False if it was suppressed
    """
    log_instance = logger_instance or logger
    log_method = getattr(log_instance, level.lower(), log_instance.warning)
    cache_key = key or f"{level}:{message}"

    with _log_cache_lock:
        if cache_key in _log_cache:
            _suppressed[cache_key] = _suppressed.get(cache_key, 0) + 1
            return False

        repeats = _suppressed.pop(cache_key, 0)
        if repeats:
            message = f"{message} (suppressed {repeats} similar messages)"
        log_method(message)
        _log_cache[cache_key] = True
        return True


def suppressed_count(key: str) -> int:
    """Number of times ``key`` was suppressed since it was last logged."""
    with _log_cache_lock:
        return _suppressed.get(key, 0)


def reset() -> None:
    """Forget every key (used between tests)."""
    with _log_cache_lock:
        _log_cache.clear()
        _suppressed.clear()
