"""
Shared helpers.
"""
import logging
import os

_LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
_configured = False


def get_logger(name: str) -> logging.Logger:
    """
    Get a module logger.

    The root handler is configured on first use; LOG_LEVEL controls verbosity.

    Usage:
        from app.utils import get_logger

        log = get_logger(__name__)
        log.info("Granted module %s", slug)
    """
    global _configured
    if not _configured:
        logging.basicConfig(
            level=os.environ.get("LOG_LEVEL", "INFO").upper(),
            format=_LOG_FORMAT,
        )
        _configured = True
    return logging.getLogger(name)
