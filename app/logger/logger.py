import logging
from typing import Dict, Optional

import colorlog

from app.config import settings

ROOT_LOGGER_NAME = "content_automation"


class AppLogger:
    _loggers: Dict[str, logging.Logger] = {}

    @staticmethod
    def setup_logger(name: str, level: Optional[str] = None) -> logging.Logger:
        if name not in AppLogger._loggers:
            logger = logging.getLogger(name)

            if not logger.handlers:
                log_colors = {
                    "DEBUG": "black,bg_green",
                    "INFO": "green",
                    "WARNING": "yellow",
                    "ERROR": "red",
                    "CRITICAL": "bold_red",
                }

                formatter = colorlog.ColoredFormatter(
                    "%(log_color)s%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
                    datefmt="%y-%m-%d %H:%M:%S",
                    reset=True,
                    log_colors=log_colors,
                    style="%",
                )

                handler = logging.StreamHandler()
                handler.setFormatter(formatter)

                logger.addHandler(handler)
                logger.setLevel((level or settings.LOG_LEVEL).upper())
                logger.propagate = False

            AppLogger._loggers[name] = logger

        return AppLogger._loggers[name]

    @staticmethod
    def set_level(level: int) -> None:
        """Change the level of every logger created so far."""
        for logger in AppLogger._loggers.values():
            logger.setLevel(level)


def get_logger(component: str) -> logging.Logger:
    """Logger for one area of the service, e.g. ``get_logger("ledger")``."""
    return AppLogger.setup_logger(f"{ROOT_LOGGER_NAME}.{component}")


logger = AppLogger.setup_logger(ROOT_LOGGER_NAME)
