"""loguru sink configuration."""

import sys

from loguru import logger

from .config import LoggingConfig


CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


def configure_logging(config: LoggingConfig, verbose: bool = False) -> None:
    """Replace the default sink with stderr (and optionally a rotating file)."""
    logger.remove()
    logger.add(
        sys.stderr,
        format=CONSOLE_FORMAT,
        level="DEBUG" if verbose else config.level
    )

    if config.file is not None:
        log_file = config.file.expanduser()
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            rotation=config.rotation,
            retention=config.retention,
            level="DEBUG"
        )
