# treasure_hunt/database.py
from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv
from sqlalchemy import event
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker

load_dotenv()

ASYNC_PG_DRIVER = "postgresql+asyncpg"
ASYNC_SQLITE_DRIVER = "sqlite+aiosqlite"

# libpq sslmode -> asyncpg ``ssl`` flag. "prefer"/"allow" map to None: drop it, keep driver defaults.
SSLMODE_TO_ASYNCPG = {
    "require": "true",
    "verify-ca": "true",
    "verify-full": "true",
    "disable": "false",
    "prefer": None,
    "allow": None,
}

# Environment variables holding a full URL, in order of preference.
URL_ENV_VARS = ("DATABASE_URL", "POSTGRES_URL")


def _default_db_url() -> str:
    """File-based SQLite next to the package, used when nothing is configured."""
    db_file = Path(__file__).resolve().parents[1] / "treasure_hunt.db"
    return f"{ASYNC_SQLITE_DRIVER}:///{db_file.as_posix()}"


def _ssl_flag(sslmode: str) -> Optional[str]:
    return SSLMODE_TO_ASYNCPG.get(sslmode.strip().lower())


def _with_async_driver(url: URL) -> URL:
    backend = url.get_backend_name()
    if backend in {"postgresql", "postgres"} and url.drivername != ASYNC_PG_DRIVER:
        return url.set(drivername=ASYNC_PG_DRIVER)
    if backend == "sqlite" and url.drivername != ASYNC_SQLITE_DRIVER:
        return url.set(drivername=ASYNC_SQLITE_DRIVER)
    return url


def _render(url: URL) -> str:
    # str(url) masks the password in SQLAlchemy 2.x.
    return url.render_as_string(hide_password=False)


def _normalize_database_url(raw_url: Optional[str]) -> Optional[str]:
    """Rewrite ``raw_url`` to use an async driver and asyncpg-style SSL flags."""

    if not raw_url:
        return raw_url

    try:
        url = make_url(raw_url)
    except ArgumentError:
        return raw_url

    # "postgres://" is accepted by libpq but not by SQLAlchemy's dialect registry.
    if url.drivername == "postgres":
        url = url.set(drivername="postgresql")
    url = _with_async_driver(url)

    if url.drivername == ASYNC_PG_DRIVER and "sslmode" in url.query:
        flag = _ssl_flag(url.query["sslmode"])
        url = url.difference_update_query(["sslmode"])
        if flag is not None:
            url = url.update_query_dict({"ssl": flag})

    return _render(url)


def _pg_env_database_url(env: Mapping[str, str]) -> Optional[str]:
    """Build a Postgres URL from PGHOST/PGDATABASE/PGUSER (plus optional extras)."""

    host, database, user = env.get("PGHOST"), env.get("PGDATABASE"), env.get("PGUSER")
    if not (host and database and user):
        return None

    port = env.get("PGPORT")
    query = {}
    if env.get("PGSSLMODE"):
        flag = _ssl_flag(env["PGSSLMODE"])
        if flag is not None:
            query["ssl"] = flag

    return _render(
        URL.create(
            drivername=ASYNC_PG_DRIVER,
            username=user,
            password=env.get("PGPASSWORD") or None,
            host=host,
            port=int(port) if port and port.isdigit() else None,
            database=database,
            query=query,
        )
    )


def _database_url_from_env(env: Mapping[str, str]) -> Optional[str]:
    """First configured URL variable wins; otherwise fall back to the PG* variables."""

    for name in URL_ENV_VARS:
        url = _normalize_database_url(env.get(name))
        if url:
            return url
    return _pg_env_database_url(env)


DATABASE_URL: str = _database_url_from_env(os.environ) or _default_db_url()
ECHO = os.getenv("SQLALCHEMY_ECHO", "0").lower() in {"1", "true", "yes"}

Base = declarative_base()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    # SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


# Module-level engine and session factory; ``configure_engine`` swaps both.
engine: AsyncEngine
SessionLocal: sessionmaker
CURRENT_DATABASE_URL: str


def configure_engine(database_url: str) -> None:
    """Point the application at ``database_url``.

    Tests use this to move onto a throwaway SQLite file after import.
    """

    global engine, SessionLocal, CURRENT_DATABASE_URL

    engine = create_async_engine(database_url, echo=ECHO, pool_pre_ping=True)
    if engine.dialect.name == "sqlite":
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

    SessionLocal = sessionmaker(
        bind=engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )
    CURRENT_DATABASE_URL = database_url


configure_engine(DATABASE_URL)


async def get_db():
    """FastAPI dependency that yields an AsyncSession."""

    async with SessionLocal() as session:
        yield session


async def init_models(bind: Optional[AsyncEngine] = None) -> None:
    """Register every model with ``Base`` and create any missing tables."""

    import treasure_hunt.models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
