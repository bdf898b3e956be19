"""
Logger factory and helpers.

Every module gets its logger via ``get_logger(__name__)`` and logs events as
snake_case names with keyword context:

    >>> log = get_logger(__name__)
    >>> log.info("otp_session_created", email="a@b.c")
"""

from structlog import get_logger as _structlog_get_logger
from structlog.stdlib import BoundLogger

from shared.logging_config import setup_logging


def get_logger(name: str) -> BoundLogger:
    """Return a structlog logger bound to *name*."""
    return _structlog_get_logger(name)


__all__ = ["get_logger", "setup_logging"]
