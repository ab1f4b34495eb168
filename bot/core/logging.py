from __future__ import annotations

import json
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from core.config import LoggingConfig

PLAIN_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Ids passed through ``extra=`` by the ticket lifecycle.
CONTEXT_FIELDS = ("guild_id", "channel_id", "user_id")

_QUIET_LOGGERS = {
    "discord": logging.INFO,
    "discord.http": logging.WARNING,
    "discord.gateway": logging.WARNING,
    "uvicorn.access": logging.WARNING,
}


class JsonFormatter(logging.Formatter):
    """One JSON object per line, carrying ticket context ids when present."""

    def format(self, record: logging.LogRecord) -> str:
        data = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        data.update(
            {name: getattr(record, name) for name in CONTEXT_FIELDS if getattr(record, name, None) is not None}
        )
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        return json.dumps(data, ensure_ascii=False)


def _file_handler(config: LoggingConfig, formatter: logging.Formatter) -> RotatingFileHandler:
    directory = Path(config.directory)
    directory.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        directory / config.file_name,
        maxBytes=config.max_bytes,
        backupCount=config.backup_count,
        encoding="utf-8",
    )
    handler.setFormatter(formatter)
    return handler


def configure_logging(config: LoggingConfig) -> None:
    plain = logging.Formatter(PLAIN_FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler()
    console.setFormatter(JsonFormatter() if config.json_console else plain)

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(getattr(logging, config.level.upper(), logging.INFO))
    root.addHandler(console)
    root.addHandler(_file_handler(config, plain))

    for name, level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)
