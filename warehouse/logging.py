"""Logging setup for the warehouse monitor.

Everything logs under the ``warehouse`` namespace to stderr. uvicorn shares
the handler so server and monitor lines interleave in one format.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s - %(message)s"

_handler: logging.Handler | None = None


def _resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelNamesMapping().get(level.strip().upper())
    if resolved is None:
        raise ValueError(f"Unknown log level: {level!r}")
    return resolved


def configure(level: int | str = logging.INFO) -> None:
    """Attach the stderr handler once and set the ``warehouse`` level.

    Calling again only changes the level.

    Raises:
        ValueError: If ``level`` is not a known level name.
    """
    global _handler
    app_logger = logging.getLogger("warehouse")
    app_logger.setLevel(_resolve_level(level))
    if _handler is not None:
        return

    _handler = logging.StreamHandler(sys.stderr)
    _handler.setFormatter(logging.Formatter(LOG_FORMAT))
    app_logger.addHandler(_handler)

    uv_log = logging.getLogger("uvicorn")
    uv_log.handlers.clear()
    uv_log.addHandler(_handler)

    # Health checks are polled, keep their access lines out of the log
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Return the ``warehouse.<name>`` logger."""
    return logging.getLogger(f"warehouse.{name}")
