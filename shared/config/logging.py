"""
Structured logging for the relay.

Two output formats share one record layout:
- production: one JSON object per line (StructuredFormatter)
- development: coloured, human-readable lines (DevelopmentFormatter)

Loggers returned by get_logger() accept keyword context, which ends up in
``record.extra_data``:

    logger.info("Client connected", total=4, origin="http://localhost:5173")

Records emitted while a connection is being served also carry that
connection's client_id (see shared.infrastructure.correlation).
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from shared.config.settings import Settings, get_settings
from shared.infrastructure.correlation import ConnectionIdFilter

# Third-party loggers that are too chatty below these levels
NOISY_LOGGERS: dict[str, int] = {
    "uvicorn.access": logging.WARNING,
    "uvicorn.error": logging.INFO,
    "websockets": logging.WARNING,
    "asyncio": logging.WARNING,
}


def _client_id_of(record: logging.LogRecord) -> str | None:
    client_id = getattr(record, "client_id", None)
    if client_id and client_id != "-":
        return client_id
    return None


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for production.

    Keys: timestamp, level, logger, message, and when present client_id,
    data (keyword context), exception and source.
    """

    def __init__(self, include_source: bool = False) -> None:
        super().__init__()
        self.include_source = include_source

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        client_id = _client_id_of(record)
        if client_id:
            log_data["client_id"] = client_id

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            log_data["data"] = extra_data

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if self.include_source:
            log_data["source"] = {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            }

        return json.dumps(log_data, default=str)


class DevelopmentFormatter(logging.Formatter):
    """
    Human-readable formatter for development.

        [12:00:01] INFO     [client_1718..._k3x9q0z1a] ws_relay.server: Relay attached (path=/)
    """

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"
    DIM = "\033[2m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")

        client_id = _client_id_of(record)
        client_str = f"{self.DIM}[{client_id}]{self.RESET} " if client_id else ""

        message = (
            f"{color}[{timestamp}] {record.levelname:8}{self.RESET} "
            f"{client_str}{record.name}: {record.getMessage()}"
        )

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            message += " (" + " | ".join(f"{k}={v}" for k, v in extra_data.items()) + ")"

        if record.exc_info:
            message += f"\n{self.formatException(record.exc_info)}"

        return message


class StructuredLogger(logging.Logger):
    """
    Logger that takes keyword context instead of an ``extra`` dict.

    ``exc_info`` and ``extra`` keep their stdlib meaning; every other keyword
    argument is collected into ``record.extra_data``.
    """

    def _log_with_data(
        self,
        level: int,
        msg: str,
        args: tuple,
        exc_info: Any = None,
        extra: dict | None = None,
        **data: Any,
    ) -> None:
        if not self.isEnabledFor(level):
            return
        extra = dict(extra or {})
        extra["extra_data"] = data or None
        # Skip this method and the public wrapper so records point at the caller
        self._log(level, msg, args, exc_info=exc_info, extra=extra, stacklevel=3)

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.DEBUG, msg, args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.INFO, msg, args, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.WARNING, msg, args, **kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.ERROR, msg, args, **kwargs)

    def exception(self, msg: str, *args: Any, **kwargs: Any) -> None:
        kwargs["exc_info"] = True
        self._log_with_data(logging.ERROR, msg, args, **kwargs)

    def critical(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.CRITICAL, msg, args, **kwargs)


logging.setLoggerClass(StructuredLogger)


def setup_logging(settings: Settings | None = None) -> None:
    """
    Configure the root logger. Call once at application startup.

    Production gets JSON lines, everything else the coloured format. Debug
    mode lowers the level to DEBUG and adds source locations to JSON output.
    """
    settings = settings or get_settings()
    log_level = logging.DEBUG if settings.debug else logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.addFilter(ConnectionIdFilter())

    if settings.is_production:
        handler.setFormatter(StructuredFormatter(include_source=settings.debug))
    else:
        handler.setFormatter(DevelopmentFormatter())

    root = logging.getLogger()
    root.setLevel(log_level)
    root.handlers.clear()
    root.addHandler(handler)

    for name, level in NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(level)


def get_logger(name: str) -> StructuredLogger:
    """
    Get a logger instance with the given name.

    Usage:
        from shared.config.logging import get_logger
        logger = get_logger(__name__)

        logger.info("Client connected", total=4)
        logger.exception("Handler on_message failed", message_type="sendMessage")
    """
    return logging.getLogger(name)  # type: ignore


ws_relay_logger = get_logger("ws_relay")
audit_logger = get_logger("ws_relay.audit")


def audit_ws_connection(
    event_type: str,
    endpoint: str,
    client_id: str | None = None,
    origin: str | None = None,
    reason: str | None = None,
    **extra: Any,
) -> None:
    """
    Log a connection lifecycle event (CONNECT, DISCONNECT, CONNECT_REJECTED)
    on the audit logger.
    """
    audit_logger.info(
        f"WS_AUDIT: {event_type}",
        event_type=event_type,
        endpoint=endpoint,
        client_id=client_id,
        origin=origin,
        reason=reason,
        **extra,
    )
