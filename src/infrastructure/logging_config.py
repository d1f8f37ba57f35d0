"""Process-wide logging setup.

Modules log through logging.getLogger(__name__); this only installs handlers:
a console handler always, plus a file handler when a log file is configured.
"""

from __future__ import annotations

import logging
import logging.config

LOG_FORMAT = "[resource] %(asctime)s %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%y-%m-%d %H:%M:%S"


def configure_logging(level: str = "INFO", log_file: str | None = None) -> None:
    handlers: dict[str, dict] = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "default",
            "level": level,
        },
    }
    if log_file:
        handlers["file"] = {
            "class": "logging.FileHandler",
            "formatter": "default",
            "filename": log_file,
            "level": level,
        }

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"default": {"format": LOG_FORMAT, "datefmt": DATE_FORMAT}},
            "handlers": handlers,
            "root": {"level": level, "handlers": list(handlers)},
            "loggers": {
                # SQLAlchemy engine logging is controlled by echo=, keep it quiet here
                "sqlalchemy.engine": {"level": "WARNING"},
                "httpx": {"level": "WARNING"},
            },
        }
    )
