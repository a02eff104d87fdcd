from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List

import yaml

_CONFIG_PATH = Path(__file__).resolve().parent / "config.yaml"

_DEFAULT_DATABASE_URL = "sqlite:///./joke_factory.db"
_DEFAULT_GAME = {
    "team_count": 20,
    "round1_batch_size": 5,
    "round2_batch_limit": 6,
    "customer_budget": 10,
    "pass_threshold": 3,
    "rating_min": 1,
    "rating_max": 5,
    "max_batch_size": 50,
}
_DEFAULT_TEAM_FORMATION = {
    "min_customers": 2,
    "max_customers": 10,
}
_DEFAULT_INSTRUCTOR = {
    "password": "joke-factory",
    "display_names": [],
}
_DEFAULT_AUTH_LOGIN_RATE_LIMIT = {
    "enabled": True,
    "window_seconds": 60,
    "max_failures_per_username": 8,
    "max_failures_per_ip": 40,
    "lockout_seconds": 60,
}
_DEFAULT_CLIENT = {
    "base_url": "http://localhost:8081",
    "poll_interval_seconds": 1.5,
    "request_timeout_seconds": 5.0,
}
_DEFAULT_LOGGING = {
    "directory": "logs",
    "level": "INFO",
    "engine_level": "DEBUG",
    "max_bytes": 5 * 1024 * 1024,
    "backup_count": 3,
}
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def load_config() -> Dict[str, Any]:
    """Load the application config from YAML, returning an empty mapping on error."""
    try:
        with _CONFIG_PATH.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
            if isinstance(data, dict):
                return data
            logging.warning(
                "Config file %s is not a mapping; using defaults.", _CONFIG_PATH
            )
            return {}
    except FileNotFoundError:
        logging.warning(
            "Configuration file %s not found; using defaults.", _CONFIG_PATH
        )
        return {}
    except Exception as exc:  # noqa: BLE001
        logging.error("Failed to load configuration from %s: %s", _CONFIG_PATH, exc)
        return {}


def _coerce_positive_int(value: Any, fallback: int) -> int:
    try:
        candidate = int(value)
        return candidate if candidate > 0 else fallback
    except Exception:  # noqa: BLE001
        return fallback


def _coerce_positive_float(value: Any, fallback: float) -> float:
    try:
        candidate = float(value)
        return candidate if candidate > 0 else fallback
    except Exception:  # noqa: BLE001
        return fallback


def _coerce_bool(value: Any, fallback: bool) -> bool:
    if value is None:
        return fallback
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def get_database_url() -> str:
    """
    Return the SQLAlchemy database URL.

    Priority:
    1) JOKE_FACTORY_DATABASE_URL env var
    2) config.yaml database_url
    3) local sqlite file
    """
    env_value = os.getenv("JOKE_FACTORY_DATABASE_URL")
    if env_value and env_value.strip():
        return env_value.strip()
    config = load_config()
    url = config.get("database_url")
    return str(url) if url else _DEFAULT_DATABASE_URL


def get_game_settings() -> Dict[str, int]:
    """Return round/batch/market defaults sourced from config with safe defaults."""
    config = load_config()
    section = config.get("game") or {}
    defaults = dict(_DEFAULT_GAME)
    settings = {
        key: _coerce_positive_int(section.get(key), fallback)
        for key, fallback in defaults.items()
    }
    # A zero budget is a legitimate classroom setting.
    try:
        budget = int(section.get("customer_budget", defaults["customer_budget"]))
        settings["customer_budget"] = budget if budget >= 0 else defaults["customer_budget"]
    except Exception:  # noqa: BLE001
        settings["customer_budget"] = defaults["customer_budget"]

    if settings["rating_max"] <= settings["rating_min"]:
        settings["rating_min"] = defaults["rating_min"]
        settings["rating_max"] = defaults["rating_max"]
    settings["pass_threshold"] = max(
        settings["rating_min"], min(settings["rating_max"], settings["pass_threshold"])
    )
    settings["max_batch_size"] = min(settings["max_batch_size"], 99)
    return settings


def get_team_formation_settings() -> Dict[str, int]:
    """Return the customer-count bounds used when forming teams."""
    config = load_config()
    section = config.get("team_formation") or {}
    defaults = dict(_DEFAULT_TEAM_FORMATION)
    min_customers = _coerce_positive_int(
        section.get("min_customers"), defaults["min_customers"]
    )
    max_customers = _coerce_positive_int(
        section.get("max_customers"), defaults["max_customers"]
    )
    if max_customers < min_customers:
        min_customers = defaults["min_customers"]
        max_customers = defaults["max_customers"]
    return {"min_customers": min_customers, "max_customers": max_customers}


def get_instructor_settings() -> Dict[str, Any]:
    """
    Return instructor login settings.

    The password comes from JOKE_FACTORY_INSTRUCTOR_PASSWORD when set,
    otherwise from config.yaml instructor.password.
    """
    config = load_config()
    section = config.get("instructor") or {}
    password = os.getenv("JOKE_FACTORY_INSTRUCTOR_PASSWORD")
    if not password:
        raw = section.get("password")
        password = str(raw) if raw else _DEFAULT_INSTRUCTOR["password"]

    display_names: List[str] = []
    raw_names = section.get("display_names")
    if isinstance(raw_names, list):
        for value in raw_names:
            name = str(value or "").strip()
            if name and name.lower() not in {n.lower() for n in display_names}:
                display_names.append(name)
    return {"password": password, "display_names": display_names}


def get_auth_login_rate_limit_settings() -> Dict[str, Any]:
    """Return failed-login rate limiting settings with env/config overrides."""
    config = load_config()
    auth_section = config.get("auth") or {}
    section = auth_section.get("login_rate_limit") or {}
    defaults = dict(_DEFAULT_AUTH_LOGIN_RATE_LIMIT)

    def _env_bool(name: str) -> Any:
        value = os.getenv(name)
        if value is None:
            return None
        return value.strip().lower() in {"1", "true", "yes", "on"}

    def _env_int(name: str) -> Any:
        value = os.getenv(name)
        if value is None:
            return None
        try:
            return int(value)
        except Exception:  # noqa: BLE001
            return None

    enabled = _env_bool("JOKE_FACTORY_LOGIN_RATE_LIMIT_ENABLED")
    if enabled is None:
        enabled = section.get("enabled")
    window_seconds = _env_int("JOKE_FACTORY_LOGIN_RATE_LIMIT_WINDOW_SECONDS")
    if window_seconds is None:
        window_seconds = section.get("window_seconds")
    max_fail_user = _env_int("JOKE_FACTORY_LOGIN_RATE_LIMIT_MAX_FAILURES_PER_USERNAME")
    if max_fail_user is None:
        max_fail_user = section.get("max_failures_per_username")
    max_fail_ip = _env_int("JOKE_FACTORY_LOGIN_RATE_LIMIT_MAX_FAILURES_PER_IP")
    if max_fail_ip is None:
        max_fail_ip = section.get("max_failures_per_ip")
    lockout_seconds = _env_int("JOKE_FACTORY_LOGIN_RATE_LIMIT_LOCKOUT_SECONDS")
    if lockout_seconds is None:
        lockout_seconds = section.get("lockout_seconds")

    return {
        "enabled": _coerce_bool(enabled, defaults["enabled"]),
        "window_seconds": _coerce_positive_int(
            window_seconds, defaults["window_seconds"]
        ),
        "max_failures_per_username": _coerce_positive_int(
            max_fail_user, defaults["max_failures_per_username"]
        ),
        "max_failures_per_ip": _coerce_positive_int(
            max_fail_ip, defaults["max_failures_per_ip"]
        ),
        "lockout_seconds": _coerce_positive_int(
            lockout_seconds, defaults["lockout_seconds"]
        ),
    }


def get_client_settings() -> Dict[str, Any]:
    """Return polling client defaults (base URL, poll cadence, request timeout)."""
    config = load_config()
    section = config.get("client") or {}
    defaults = dict(_DEFAULT_CLIENT)
    base_url = section.get("base_url")
    return {
        "base_url": str(base_url).strip() if base_url else defaults["base_url"],
        "poll_interval_seconds": _coerce_positive_float(
            section.get("poll_interval_seconds"), defaults["poll_interval_seconds"]
        ),
        "request_timeout_seconds": _coerce_positive_float(
            section.get("request_timeout_seconds"),
            defaults["request_timeout_seconds"],
        ),
    }


def _coerce_log_level(value: Any, fallback: str) -> str:
    level = str(value or "").strip().upper()
    return level if level in _LOG_LEVELS else fallback


def get_logging_settings() -> Dict[str, Any]:
    """
    Return log file settings.
    LOG_MAX_BYTES, LOG_BACKUP_COUNT and JOKE_FACTORY_LOG_DIR override the file.
    """
    config = load_config()
    section = config.get("logging") or {}
    defaults = dict(_DEFAULT_LOGGING)
    backup_count = os.getenv("LOG_BACKUP_COUNT", section.get("backup_count"))
    try:
        backup_count = max(0, int(backup_count))
    except (TypeError, ValueError):
        backup_count = defaults["backup_count"]
    directory = os.getenv("JOKE_FACTORY_LOG_DIR") or section.get("directory")
    return {
        "directory": str(directory).strip() if directory else defaults["directory"],
        "level": _coerce_log_level(section.get("level"), defaults["level"]),
        "engine_level": _coerce_log_level(
            section.get("engine_level"), defaults["engine_level"]
        ),
        "max_bytes": _coerce_positive_int(
            os.getenv("LOG_MAX_BYTES", section.get("max_bytes")), defaults["max_bytes"]
        ),
        "backup_count": backup_count,
    }
