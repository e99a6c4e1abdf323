"""Logging utilities for dtree_python.

The package logs through loguru and is silent by default: importing this
module disables the ``dtree_python`` logger. ``enable_logging`` adds a
filtered stderr handler and re-enables the logger until the returned handle
is disabled.

Notes
-----
Importing this module removes loguru's default stderr handler (ID 0) to
prevent duplicate output when ``enable_logging()`` adds its own handler.
If another library already removed handler 0 the removal is a no-op.
"""

from __future__ import annotations

import contextlib
import sys
import threading
from typing import TYPE_CHECKING, ClassVar, Final, Literal

from loguru import logger

if TYPE_CHECKING:
    from types import TracebackType

    from loguru import Record

PACKAGE_NAME: Final[str] = __name__.split(".")[0]

with contextlib.suppress(ValueError):
    logger.remove(0)

logger.disable(PACKAGE_NAME)

LogLevel = Literal["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"]
LogFormat = Literal["short", "full"]

_FORMATS: Final[dict[str, str]] = {
    "short": (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{function}</cyan> - "
        "<level>{message}</level>"
    ),
    "full": (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
        "<level>{message}</level>"
    ),
}


class LoggingHandle:
    """Handle owning one loguru handler added by ``enable_logging``.

    When the last active handle is disabled the package logger is disabled
    again.

    Examples
    --------
    >>> with enable_logging(level="DEBUG"):  # doctest: +SKIP
    ...     DecisionTreeClassifier().fit(X, y)
    """

    _active_ids: ClassVar[set[int]] = set()
    _lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self, handler_id: int) -> None:
        self.handler_id: int | None = handler_id
        with LoggingHandle._lock:
            LoggingHandle._active_ids.add(handler_id)

    def disable(self) -> None:
        """Remove the handler; idempotent."""
        with LoggingHandle._lock:
            if self.handler_id is None:
                return
            LoggingHandle._active_ids.discard(self.handler_id)
            with contextlib.suppress(ValueError):
                logger.remove(self.handler_id)
            self.handler_id = None
            if not LoggingHandle._active_ids:
                logger.disable(PACKAGE_NAME)

    def __enter__(self) -> LoggingHandle:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.disable()

    @classmethod
    def get_active_handle_count(cls) -> int:
        """Return the number of handles that have not been disabled."""
        with cls._lock:
            return len(cls._active_ids)


def enable_logging(
    *,
    level: LogLevel = "INFO",
    log_format: LogFormat = "short",
    sink=sys.stderr,
) -> LoggingHandle:
    """Enable dtree_python logging.

    Parameters
    ----------
    level : LogLevel, default="INFO"
        Minimum level to display. "INFO" reports one line per fit; "DEBUG"
        adds tree builder summaries and rejected inputs.
    log_format : {"short", "full"}, default="short"
        "short" shows the function name, "full" the module, function and line.
    sink : loguru sink, default=sys.stderr
        Any sink loguru accepts.

    Returns
    -------
    LoggingHandle
        Handle removing the handler on ``disable()`` or on leaving a ``with``
        block.
    """
    logger.enable(PACKAGE_NAME)
    handler_id = logger.add(
        sink,
        level=level,
        filter=_is_package_record,
        format=_FORMATS[log_format],
    )
    return LoggingHandle(handler_id)


def _is_package_record(record: Record) -> bool:
    """Pass records emitted from this package only."""
    name = record["name"]
    return name is not None and name.startswith(PACKAGE_NAME)
