"""Loguru setup for souvenir."""

import sys
from pathlib import Path

from loguru import logger

from souvenir.config import LoggingConfig

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[module]}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[module]}:{line} - {message}"


def setup_logging(config: LoggingConfig | None = None) -> None:
    """
    Replace loguru's sinks with a stderr sink and, when enabled, a rotating file.

    Records emitted through the root ``logger`` (without ``get_logger``) get
    ``"souvenir"`` as their module so the formats always resolve.
    """
    config = config or LoggingConfig()
    logger.remove()
    logger.configure(extra={"module": "souvenir"})

    logger.add(sys.stderr, level=config.level, format=CONSOLE_FORMAT, colorize=True)

    if not config.log_to_file:
        return

    log_dir = Path(config.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    logger.add(
        log_dir / "souvenir_{time:YYYY-MM-DD}.log",
        level=config.level,
        format=FILE_FORMAT,
        rotation=config.file_rotation,
        retention=config.file_retention,
        compression=config.compression,
        serialize=config.serialize,
        enqueue=True,
    )


def get_logger(name: str, **context):
    """Module logger; extra keyword arguments are bound as structured fields."""
    return logger.bind(module=name, **context)
