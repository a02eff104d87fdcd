import logging
import logging.config
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from joke_factory.config.loader import get_logging_settings

LOG_FILES = ("app.log", "error.log", "audit.log")


def _prune_backups(log_dir: Path, base_name: str, backup_count: int) -> None:
    if backup_count < 1:
        return
    candidates: Iterable[Path] = sorted(
        log_dir.glob(f"{base_name}.*"),
        key=lambda path: path.stat().st_mtime,
        reverse=True,
    )
    for stale in list(candidates)[backup_count:]:
        try:
            stale.unlink()
        except OSError:
            continue


def _rotating(log_dir: Path, name: str, level: str, settings: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "formatter": "default",
        "filename": str(log_dir / name),
        "maxBytes": settings["max_bytes"],
        "backupCount": settings["backup_count"],
        "level": level,
        "encoding": "utf8",
    }


def build_logging_config(settings: Dict[str, Any]) -> Dict[str, Any]:
    """dictConfig for the game server: engine, audit and uvicorn loggers."""
    log_dir = Path(settings["directory"])
    level = settings["level"]
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "level": level,
            },
            "file_app": _rotating(log_dir, "app.log", level, settings),
            "file_error": _rotating(log_dir, "error.log", "ERROR", settings),
            "file_audit": _rotating(log_dir, "audit.log", "INFO", settings),
        },
        "loggers": {
            "": {
                "handlers": ["console", "file_app", "file_error"],
                "level": level,
            },
            "uvicorn": {
                "handlers": ["console", "file_app"],
                "level": level,
                "propagate": False,
            },
            "uvicorn.error": {
                "handlers": ["console", "file_error"],
                "level": level,
                "propagate": False,
            },
            # Instructor mutations, one line per request.
            "audit": {
                "handlers": ["console", "file_audit"],
                "level": "INFO",
                "propagate": False,
            },
            "joke_factory": {
                "handlers": ["console", "file_app", "file_error"],
                "level": settings["engine_level"],
                "propagate": False,
            },
        },
    }


def setup_logging(settings: Optional[Dict[str, Any]] = None) -> Path:
    """
    Configures logging for the game server and returns the log directory.
    Round, batch and market events go to 'logs/app.log', failures also to
    'logs/error.log', and instructor actions to 'logs/audit.log'.
    """
    settings = settings or get_logging_settings()
    log_dir = Path(settings["directory"])
    log_dir.mkdir(parents=True, exist_ok=True)
    for name in LOG_FILES:
        _prune_backups(log_dir, name, settings["backup_count"])

    logging.config.dictConfig(build_logging_config(settings))
    logging.getLogger("joke_factory").info("Logging configured in %s.", log_dir)
    return log_dir
