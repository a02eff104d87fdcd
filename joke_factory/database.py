import logging
import sqlite3
import threading
import time
from pathlib import Path
import uuid

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from joke_factory.config.loader import get_database_url, load_config

_DEFAULT_SQLITE_BUSY_TIMEOUT_MS = 30000
_DEFAULT_SQLITE_JOURNAL_MODE = "WAL"
_DEFAULT_SQLITE_SYNCHRONOUS = "NORMAL"
_DEFAULT_SQLITE_WRITE_RETRIES = 5
_DEFAULT_SQLITE_RETRY_BACKOFF_MS = 200
_DEFAULT_POOL_SIZE = 20
_DEFAULT_MAX_OVERFLOW = 40
_DEFAULT_POOL_TIMEOUT_SECONDS = 15
_DEFAULT_POOL_RECYCLE_SECONDS = 1800


def _coerce_positive_int(value, fallback):
    try:
        candidate = int(value)
        return candidate if candidate > 0 else fallback
    except Exception:  # noqa: BLE001
        return fallback


def _get_sqlite_settings() -> dict:
    config = load_config()
    sqlite_config = config.get("sqlite") or {}
    journal_mode = sqlite_config.get("journal_mode") or _DEFAULT_SQLITE_JOURNAL_MODE
    synchronous = sqlite_config.get("synchronous") or _DEFAULT_SQLITE_SYNCHRONOUS
    return {
        "journal_mode": str(journal_mode),
        "synchronous": str(synchronous),
        "busy_timeout_ms": _coerce_positive_int(
            sqlite_config.get("busy_timeout_ms"), _DEFAULT_SQLITE_BUSY_TIMEOUT_MS
        ),
        "write_retries": _coerce_positive_int(
            sqlite_config.get("write_retries"), _DEFAULT_SQLITE_WRITE_RETRIES
        ),
        "retry_backoff_ms": _coerce_positive_int(
            sqlite_config.get("retry_backoff_ms"), _DEFAULT_SQLITE_RETRY_BACKOFF_MS
        ),
    }


def _get_pool_settings() -> dict:
    config = load_config()
    pool_config = config.get("database_pool") or {}
    return {
        "pool_size": _coerce_positive_int(
            pool_config.get("pool_size"), _DEFAULT_POOL_SIZE
        ),
        "max_overflow": _coerce_positive_int(
            pool_config.get("max_overflow"), _DEFAULT_MAX_OVERFLOW
        ),
        "pool_timeout": _coerce_positive_int(
            pool_config.get("pool_timeout_seconds"), _DEFAULT_POOL_TIMEOUT_SECONDS
        ),
        "pool_recycle": _coerce_positive_int(
            pool_config.get("pool_recycle_seconds"), _DEFAULT_POOL_RECYCLE_SECONDS
        ),
    }


def _is_memory_url(database_url: str) -> bool:
    if not database_url.startswith("sqlite"):
        return False
    db_url = make_url(database_url)
    return not db_url.database or db_url.database == ":memory:"


def _ensure_sqlite_directory(database_url: str) -> None:
    if not database_url.startswith("sqlite") or _is_memory_url(database_url):
        return
    db_path = Path(make_url(database_url).database)
    if not db_path.is_absolute():
        db_path = Path.cwd() / db_path
    db_path.parent.mkdir(parents=True, exist_ok=True)


DATABASE_URL = get_database_url()

logger = logging.getLogger("database")

_ensure_sqlite_directory(DATABASE_URL)

connect_args = {}
_sqlite_settings = None
if DATABASE_URL.startswith("sqlite"):
    _sqlite_settings = _get_sqlite_settings()
    connect_args["check_same_thread"] = False
    connect_args["timeout"] = max(1, _sqlite_settings["busy_timeout_ms"] / 1000)

if _is_memory_url(DATABASE_URL):
    # A single shared connection keeps the in-memory database alive.
    engine = create_engine(
        DATABASE_URL,
        connect_args=connect_args,
        poolclass=StaticPool,
    )
else:
    _pool_settings = _get_pool_settings()
    engine = create_engine(
        DATABASE_URL,
        connect_args=connect_args,
        pool_size=_pool_settings["pool_size"],
        max_overflow=_pool_settings["max_overflow"],
        pool_timeout=_pool_settings["pool_timeout"],
        pool_recycle=_pool_settings["pool_recycle"],
        pool_pre_ping=True,
        pool_use_lifo=True,
    )


if DATABASE_URL.startswith("sqlite"):
    _SQLITE_WRITE_LOCK = threading.RLock()

    @event.listens_for(Engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, _connection_record) -> None:
        if not isinstance(dbapi_connection, sqlite3.Connection):
            return
        cursor = dbapi_connection.cursor()
        cursor.execute(f"PRAGMA journal_mode={_sqlite_settings['journal_mode']}")
        cursor.execute(f"PRAGMA synchronous={_sqlite_settings['synchronous']}")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute(f"PRAGMA busy_timeout={_sqlite_settings['busy_timeout_ms']}")
        cursor.close()

    def _is_sqlite_locked_error(exc: OperationalError) -> bool:
        message = str(exc).lower()
        return "database is locked" in message or "database table is locked" in message

    class QueuedSession(Session):
        def commit(self) -> None:
            retries = max(1, _sqlite_settings["write_retries"])
            backoff = max(1, _sqlite_settings["retry_backoff_ms"]) / 1000
            with _SQLITE_WRITE_LOCK:
                for attempt in range(1, retries + 1):
                    try:
                        return super().commit()
                    except OperationalError as exc:
                        if not _is_sqlite_locked_error(exc):
                            raise
                        super().rollback()
                        if attempt >= retries:
                            raise
                        logger.warning(
                            "SQLite busy on commit (attempt %s/%s); retrying.",
                            attempt,
                            retries,
                        )
                        time.sleep(backoff * attempt)

        def flush(self, objects=None) -> None:
            with _SQLITE_WRITE_LOCK:
                return super().flush(objects)


SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    class_=QueuedSession if DATABASE_URL.startswith("sqlite") else Session,
)

Base = declarative_base()


def get_db():
    req_id = uuid.uuid4()
    logger.debug(f"[DB_SESSION_START][{req_id}] Creating database session.")
    db = SessionLocal()
    try:
        yield db
    finally:
        logger.debug(f"[DB_SESSION_END][{req_id}] Closing database session.")
        db.close()
