"""
Logging setup for vncproxy (loguru based).

All modules obtain their logger through get_logger(__name__). The process
entry point calls configure_logging() once before the server starts.
"""

import sys

from loguru import logger

from vncproxy.models.enums import LogLevel

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan> - <level>{message}</level>"
)

# LogLevel -> loguru level name
LEVEL_MAP = {
    LogLevel.FULL: "TRACE",
    LogLevel.DEBUG: "DEBUG",
    LogLevel.INFO: "INFO",
    LogLevel.WARNING: "WARNING",
}

logger.configure(extra={"name": "vncproxy"})


def configure_logging(
    level: LogLevel | str = LogLevel.INFO,
    log_file: str | None = None,
    sink=None,
) -> None:
    """
    Configure the global loguru logger.

    Args:
        level: Verbosity level.
        log_file: Optional path of an additional rotating log file.
        sink: Optional loguru sink replacing stderr (file object, callable,
            or anything else loguru.add() accepts).
    """
    loguru_level = LEVEL_MAP[LogLevel(level)]

    logger.remove()
    logger.add(
        sink if sink is not None else sys.stderr,
        level=loguru_level,
        format=LOG_FORMAT,
        backtrace=loguru_level == "TRACE",
        diagnose=False,
    )

    if log_file:
        logger.add(
            log_file,
            level=loguru_level,
            format=LOG_FORMAT,
            rotation="10 MB",
            retention=5,
            enqueue=True,
        )


def get_logger(name: str):
    """Get a logger bound to a module name."""
    return logger.bind(name=name)
