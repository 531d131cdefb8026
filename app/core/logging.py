import logging
import logging.config

from app.core.config import settings


def _rotating_file(filename: str, level: str) -> dict:
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "formatter": "default",
        "level": level,
        "filename": filename,
        "maxBytes": 5 * 1024 * 1024,
        "backupCount": 3,
        "encoding": "utf-8",
    }


def configure_logging():
    log_level = settings.log_level.upper()
    log_dir = settings.log_dir
    log_dir.mkdir(parents=True, exist_ok=True)

    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "level": log_level,
            },
            "file": _rotating_file(str(log_dir / "app.log"), log_level),
            "scheduler_file": _rotating_file(str(log_dir / "scheduler.log"), log_level),
            "monitor_file": _rotating_file(str(log_dir / "monitor.log"), log_level),
        },
        "root": {
            "level": log_level,
            "handlers": ["console", "file"],
        },
        "loggers": {
            "scheduler": {
                "level": log_level,
                "handlers": ["console", "scheduler_file"],
                "propagate": False,
            },
            "monitor": {
                "level": log_level,
                "handlers": ["console", "monitor_file"],
                "propagate": False,
            },
        },
    }

    logging.config.dictConfig(config)
