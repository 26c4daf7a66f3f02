# combinator_contracts/log.py
from __future__ import annotations

import sys

from loguru import logger

from combinator_contracts.settings import LogConfig


def configure_logging(config: LogConfig) -> None:
    """Replace loguru's sinks with the one described by `config` and enable the package's log output."""
    logger.remove()
    logger.enable("combinator_contracts")

    if config.is_file_sink:
        logger.add(
            sink=config.sink,
            rotation=config.rotation,
            retention=config.retention,
            level=config.level,
            format=config.format,
            backtrace=True,
            diagnose=False,
        )
    else:
        logger.add(sys.stderr, level=config.level, format=config.format)

    logger.debug(f"[Logging] configured level={config.level} sink={config.sink}")
