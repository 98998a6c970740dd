"""
Logging setup shared by the API process and the maintenance scripts.
"""

import logging
import sys

# Client libraries that log full request URLs (token endpoints included) at INFO.
_QUIET_LOGGERS = ("httpx", "httpcore", "botocore", "boto3")


def configure_logging(level: str = "INFO") -> None:
    """Send pipe-delimited records to stdout at ``level``."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


__all__ = ["configure_logging"]
