"""
Initialization - Logging Module.

Configures loguru: a stderr sink plus a rotating file sink.
"""

import sys

from loguru import logger

CONSOLE_FORMAT = "{time:HH:mm:ss} | {level: <8} | {message}"


def setup_logging(level: str = "INFO", log_file: str | None = "logs/chainsweep.log") -> None:
    """
    Configure logger with file rotation.

    Args:
        level: Minimum level for both sinks
        log_file: Rotating log file path (None disables the file sink)
    """
    logger.remove()
    logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT)

    if log_file:
        logger.add(
            log_file,
            rotation="1 day",
            retention="7 days",
            level=level,
            encoding="utf-8",
        )
