import sys
from typing import Any

from loguru import logger

_FORMAT = "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | {message}"


def configure_logging(level: str = "INFO", sink: Any = None) -> None:
    # stdout carries streaming records
    logger.remove()
    logger.add(sink if sink is not None else sys.stderr, level=level.upper(), format=_FORMAT)
