# resource_cache/logger.py

import logging
from logging.handlers import RotatingFileHandler

from resource_cache.config import Settings

# обработчики, установленные последним вызовом setup_logging
_installed_handlers: list = []


def setup_logging(settings: Settings):
    """
    Настройка логгера на основе pydantic-модели Settings.logging.
    Повторный вызов заменяет ранее установленные обработчики.
    """
    log_cfg = settings.logging

    # уровни
    console_level = logging.getLevelName(log_cfg.console.level.upper())
    levels = [console_level]

    root = logging.getLogger()
    while _installed_handlers:
        handler = _installed_handlers.pop()
        root.removeHandler(handler)
        handler.close()

    # консоль
    ch = logging.StreamHandler()
    ch.setLevel(console_level)
    ch.setFormatter(logging.Formatter(log_cfg.console.fmt, datefmt=log_cfg.date_format))
    root.addHandler(ch)
    _installed_handlers.append(ch)

    # файл с ротацией (необязателен)
    if log_cfg.file is not None:
        file_level = logging.getLevelName(log_cfg.file.level.upper())
        levels.append(file_level)
        fh = RotatingFileHandler(
            filename=log_cfg.file.path,
            maxBytes=log_cfg.file.max_bytes,
            backupCount=log_cfg.file.backup_count,
            encoding="utf-8"
        )
        fh.setLevel(file_level)
        fh.setFormatter(logging.Formatter(log_cfg.file.fmt, datefmt=log_cfg.date_format))
        root.addHandler(fh)
        _installed_handlers.append(fh)

    root.setLevel(min(levels))


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
