import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

DEFAULT_LOGGER_NAME = "recommendation-service"

_CONFIGURED_LOGGERS: set[str] = set()


def _json_enabled() -> bool:
    return os.getenv("LOG_JSON", "1") not in ("0", "false", "False")


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a stdout logger configured once per name.

    Respects LOG_LEVEL (default INFO), LOG_JSON and LOG_FORMAT.
    """
    logger_name = name or DEFAULT_LOGGER_NAME
    logger = logging.getLogger(logger_name)

    if logger_name in _CONFIGURED_LOGGERS:
        return logger

    level_str = os.getenv("LOG_LEVEL", "INFO").upper()
    logger.setLevel(getattr(logging, level_str, logging.INFO))

    handler = logging.StreamHandler(stream=sys.stdout)
    if _json_enabled():
        # level prefix only; the JSON body stays parseable
        fmt = os.getenv("LOG_FORMAT") or "%(levelname)s:     %(message)s"
    else:
        fmt = os.getenv("LOG_FORMAT") or "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    handler.setFormatter(logging.Formatter(fmt))

    logger.handlers.clear()
    logger.addHandler(handler)
    logger.propagate = False

    _CONFIGURED_LOGGERS.add(logger_name)
    return logger


class Logger:
    """Structured logger for the HTTP host.

    Fields passed to ``bind`` are attached to every record emitted by the
    returned logger, e.g. ``Logger().bind(user_id="u1").info("cache hit")``.
    """

    def __init__(self, name: Optional[str] = None, **context: Any):
        self._name = name or DEFAULT_LOGGER_NAME
        self._log = get_logger(self._name)
        self._json = _json_enabled()
        self._context: Dict[str, Any] = dict(context)

    def bind(self, **context: Any) -> "Logger":
        merged = {**self._context, **context}
        return Logger(self._name, **merged)

    def _emit(self, level: int, msg: str, exc_info: bool = False, **kv: Any) -> None:
        fields = {**self._context, **kv}
        if self._json:
            payload: Dict[str, Any] = {
                "ts": datetime.now(timezone.utc).isoformat(),
                "logger": self._name,
                "event": msg,
            }
            payload.update(fields)
            line = json.dumps(payload, ensure_ascii=False, default=str)
        elif fields:
            line = f"{msg} | " + " ".join(f"{k}={v}" for k, v in fields.items())
        else:
            line = msg
        self._log.log(level, line, exc_info=exc_info)

    def debug(self, msg: str, **kv: Any) -> None:
        self._emit(logging.DEBUG, msg, **kv)

    def info(self, msg: str, **kv: Any) -> None:
        self._emit(logging.INFO, msg, **kv)

    def warn(self, msg: str, **kv: Any) -> None:
        self._emit(logging.WARNING, msg, **kv)

    def error(self, msg: str, **kv: Any) -> None:
        self._emit(logging.ERROR, msg, **kv)

    def exception(self, msg: str, **kv: Any) -> None:
        """Log at ERROR with the active exception's traceback."""
        self._emit(logging.ERROR, msg, exc_info=True, **kv)
