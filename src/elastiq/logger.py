"""Logging for elastiq.

Every logger lives under the ``elastiq`` namespace. Global logging is
configured once, on the first Logger created, from ``LOG_LEVEL``.
Compiled requests are logged with :meth:`Logger.dsl` and executed requests
with :meth:`Logger.request`; both only render at DEBUG.
"""

import json
import logging
from typing import Any, Optional

from elastiq.settings import settings as api_settings

_NAMESPACE = "elastiq"

_LEVELS = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}

_configured = False


def setup_global_logging(level: str = "INFO") -> None:
    """Configure the root logger once.

    Args:
        level: Log level name; unknown names fall back to INFO
    """
    global _configured
    if _configured:
        return
    logging.basicConfig(
        level=_LEVELS.get(level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    _configured = True


def get_logger(name: Optional[str] = None) -> "Logger":
    return Logger(name)


def _qualified(name: Optional[str]) -> str:
    if not name:
        return _NAMESPACE
    if name == _NAMESPACE or name.startswith(f"{_NAMESPACE}."):
        return name
    return f"{_NAMESPACE}.{name}"


class Logger:
    """Wrapper over a ``logging.Logger`` in the elastiq namespace.

    ``Logger("SearchQuery")`` logs as ``elastiq.SearchQuery``. `message()`
    logs operational events at the level named by LOG_LEVEL.
    """

    def __init__(self, name: Optional[str] = None) -> None:
        if not _configured:
            setup_global_logging(api_settings.LOG_LEVEL)
        self._logger = logging.getLogger(_qualified(name))

    @property
    def name(self) -> str:
        return self._logger.name

    def debug(self, msg: str, *args, **kwargs) -> None:
        self._logger.debug(msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs) -> None:
        self._logger.info(msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs) -> None:
        self._logger.warning(msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs) -> None:
        self._logger.error(msg, *args, **kwargs)

    def critical(self, msg: str, *args, **kwargs) -> None:
        self._logger.critical(msg, *args, **kwargs)

    def message(self, msg: str, *args, **kwargs) -> None:
        """Log at the LOG_LEVEL level (INFO when unset or unknown)."""
        level = _LEVELS.get((api_settings.LOG_LEVEL or "INFO").upper(), logging.INFO)
        self._logger.log(level, msg, *args, **kwargs)

    def dsl(self, label: str, payload: Any) -> None:
        """Log a compiled request as compact JSON at DEBUG."""
        if not self._logger.isEnabledFor(logging.DEBUG):
            return
        self._logger.debug("%s %s", label, json.dumps(payload, default=str, separators=(",", ":")))

    def request(self, operation: str, index: Optional[str], took: int) -> None:
        """Log one executed request at DEBUG."""
        self._logger.debug("%s on index=%s took %dms", operation, index or "-", took)
