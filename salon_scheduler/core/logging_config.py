"""
Central logging setup for the scheduling service.
"""

import logging
import sys

_configured = False


def setup_logging(level: str = "INFO") -> None:
    """
    Configure the root logger once per process.

    Args:
        level: Level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    global _configured
    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    if _configured:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)-32s | %(message)s",
        datefmt="%H:%M:%S",
    ))
    root_logger.addHandler(handler)

    # Third-party chatter
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    _configured = True
    logging.getLogger(__name__).info("Logging initialised at %s", level.upper())
