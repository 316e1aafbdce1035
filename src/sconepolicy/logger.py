"""
Logging setup for sconepolicy.

All modules log through loguru. ``get_logger`` binds the module name so the
console format can show where a record came from.
"""

import sys
from typing import Optional

from loguru import logger as _logger

_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan> - <level>{message}</level>"
)

_logger.configure(extra={"name": "sconepolicy"})


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Replace the default loguru sinks.

    Args:
        level: Minimum level for the stderr sink.
        log_file: Optional path of an additional rotating file sink.
    """
    _logger.remove()
    _logger.add(sys.stderr, level=level.upper(), format=_FORMAT)
    if log_file:
        _logger.add(log_file, rotation="10 MB", retention=2, level="DEBUG")


def get_logger(name: str):
    """Return a logger bound to the given module name."""
    return _logger.bind(name=name)
