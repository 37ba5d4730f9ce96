from __future__ import annotations

import logging
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Optional

from shop_haul.config.models import FileLoggingSettings, LoggingSettings

LOG_FORMAT = "[%(asctime)s][%(levelname)s][%(name)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def resolve_level(name: str) -> int:
    level = logging.getLevelNamesMapping().get(name.strip().upper())
    if level is None:
        raise ValueError(f"Invalid logging level: {name}")
    return level


def _build_file_handler(
    settings: FileLoggingSettings, level: int, formatter: logging.Formatter
) -> Optional[logging.Handler]:
    file_path = settings.path.strip()
    if not file_path:
        return None

    try:
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = TimedRotatingFileHandler(
            filename=str(path),
            when="midnight",
            interval=1,
            backupCount=settings.rotation.backup_count,
            encoding="utf-8",
        )
    except OSError:
        logging.getLogger().error("File logging handler failed to initialize. path=%s", file_path, exc_info=True)
        return None

    handler.suffix = "%Y-%m-%d"
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def init_logging(settings: LoggingSettings) -> None:
    """
    Configure the root logger for the server and the CLI commands.

    Console output is always on; a daily-rotated file is added when
    logging.file.path is set. Named loggers listed under logging.loggers get
    their own level (aiohttp.access is held at WARNING by default since it
    logs every request).
    """
    level = resolve_level(settings.level)
    overrides = {name: resolve_level(value) for name, value in settings.loggers.items()}

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.setFormatter(formatter)
    root_logger.addHandler(stream_handler)

    file_handler = _build_file_handler(settings.file, level, formatter)
    if file_handler is not None:
        root_logger.addHandler(file_handler)

    for name, logger_level in overrides.items():
        logging.getLogger(name).setLevel(logger_level)


__all__ = ["init_logging", "resolve_level"]
