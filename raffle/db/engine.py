import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from .utils import resolve_sqlite_url

load_dotenv()
# Project root directory (repo root)
ROOT_DIR = Path(__file__).resolve().parents[2]
DEFAULT_SQLITE_URL = resolve_sqlite_url(
    os.getenv("DB_URL", "sqlite:///./dev.db"), ROOT_DIR
)

# Seconds a SQLite writer waits on a locked database before failing.
SQLITE_BUSY_TIMEOUT = 30


def _is_memory_sqlite(url: str) -> bool:
    parsed = make_url(url)
    return parsed.get_backend_name() == "sqlite" and parsed.database in (
        None,
        "",
        ":memory:",
    )


def make_engine(database_url: Optional[str] = None, echo: bool = False) -> Engine:
    """Create the engine backing raffle sessions.

    Draw triggers and coordinator callbacks may run on different threads. An
    in-memory SQLite database is therefore pinned to a single connection
    shared by every thread, otherwise each thread would see its own empty
    database. File-backed SQLite waits on locks instead of failing fast, and
    enforces foreign keys so settlement cascades behave as on other backends.
    """

    url = database_url or DEFAULT_SQLITE_URL
    if _is_memory_sqlite(url):
        engine = create_engine(
            url,
            echo=echo,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    elif url.startswith("sqlite"):
        engine = create_engine(
            url,
            echo=echo,
            future=True,
            connect_args={"timeout": SQLITE_BUSY_TIMEOUT},
        )
    else:
        # Row locks taken by the raffle need a live connection.
        engine = create_engine(url, echo=echo, future=True, pool_pre_ping=True)

    if engine.dialect.name == "sqlite":

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def get_sessionmaker(engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        expire_on_commit=False,  # Keep round snapshots readable after commit
        future=True,
    )
