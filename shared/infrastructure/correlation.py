"""
Connection correlation for logging.

Each WebSocket connection is served by its own task. The endpoint stores
the connection's client_id in a context variable, so every record logged
while serving that connection (including from the handler and routing
helpers) carries it.
"""

import logging
from contextvars import ContextVar

# Context variable for the client id of the connection being served
client_id_var: ContextVar[str] = ContextVar("client_id", default="")


def get_client_id() -> str:
    """Get the client id of the connection currently being served."""
    return client_id_var.get()


class ConnectionIdFilter(logging.Filter):
    """
    Logging filter that adds client_id to log records.

    An explicit client_id passed via extra= is left untouched.

    Usage:
        import logging
        handler = logging.StreamHandler()
        handler.addFilter(ConnectionIdFilter())
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "client_id", None):
            record.client_id = client_id_var.get() or "-"
        return True


def setup_correlation_logging() -> None:
    """
    Add the ConnectionIdFilter to every handler of the root logger.

    setup_logging() already does this for the handler it installs; use this
    when logging is configured by something else (e.g. uvicorn --log-config).
    """
    root_logger = logging.getLogger()
    connection_filter = ConnectionIdFilter()

    for handler in root_logger.handlers:
        handler.addFilter(connection_filter)
