"""
Plan collection persistence: async SQLAlchemy storage plus an in-memory twin.

Both repositories expose the same key-scoped blob interface, ``get(user_id)`` and
``set(user_id, snapshot)``. Writes are last-write-wins; merging is the store's job.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from functools import wraps
from typing import Any, Protocol, TypeVar

from sqlalchemy import select
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ..config import SETTINGS
from ..models import WeeklyBasePlan
from .models import Base, StoredPlans

_engine: AsyncEngine | None = None
_session: async_sessionmaker[AsyncSession] | None = None

# Type variable for the retry decorator
F = TypeVar("F", bound=Callable[..., Any])


@dataclass
class PlanSnapshot:
    """Everything persisted per user: the plans and the last-created watermark."""

    plans: list[WeeklyBasePlan] = field(default_factory=list)
    last_created_at: datetime | None = None


class PlanRepository(Protocol):
    async def get(self, user_id: str) -> PlanSnapshot: ...

    async def set(self, user_id: str, snapshot: PlanSnapshot) -> None: ...


def _dump(snapshot: PlanSnapshot) -> list[dict[str, Any]]:
    return [p.to_wire() for p in snapshot.plans]


def _load(rows: list[dict[str, Any]] | None) -> list[WeeklyBasePlan]:
    return [WeeklyBasePlan.model_validate(row) for row in rows or []]


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands timezone-aware columns back naive
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def retry_on_connection_error(max_retries: int = 3, delay: float = 0.1):
    """
    Decorator to retry database operations on connection errors.
    Useful for handling transient connection issues.
    """

    def decorator(func: F) -> F:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            for attempt in range(max_retries):
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    transient = any(
                        keyword in str(e).lower()
                        for keyword in (
                            "connection",
                            "server closed",
                            "operationalerror",
                            "database is locked",
                            "timeout",
                        )
                    )
                    if not transient or attempt == max_retries - 1:
                        raise
                    wait_time = delay * (2**attempt)
                    logging.warning(
                        "Database connection error on attempt %d/%d, retrying in %.2fs: %s",
                        attempt + 1,
                        max_retries,
                        wait_time,
                        e,
                    )
                    await asyncio.sleep(wait_time)
            raise RuntimeError("Retry mechanism failed unexpectedly")

        return wrapper  # type: ignore

    return decorator


def _prepare_url(url: str) -> tuple[str, dict]:
    """Return sanitized DB URL and connect args.

    ``sslmode``/``ssl`` query parameters become the ``ssl`` connect argument that
    asyncpg understands; ``ssl=false`` becomes ``disable``.
    """

    url_obj = make_url(url)
    query = dict(url_obj.query)
    connect_args: dict[str, object] = {}

    sslmode = query.pop("sslmode", None)
    ssl_val = query.pop("ssl", None)
    if ssl_val is not None:
        sslmode = "disable" if str(ssl_val).lower() in {"0", "false", "off", "no"} else "require"

    driver = url_obj.drivername or ""
    if driver.startswith("postgresql+asyncpg"):
        if sslmode:
            connect_args["ssl"] = sslmode
        connect_args.setdefault("statement_cache_size", 0)  # PgBouncer friendly

    url_obj = url_obj.set(query=query)
    return url_obj.render_as_string(hide_password=False), connect_args


async def init_db(database_url: str | None = None) -> None:
    """
    Initialize the async database engine and sessionmaker, and create tables if needed.
    """
    global _engine, _session
    if _engine:
        return
    url = database_url or SETTINGS.DATABASE_URL
    if not url:
        logging.error("DATABASE_URL is required for DB initialization.")
        raise RuntimeError("DATABASE_URL is required")
    db_url, connect_args = _prepare_url(url)
    engine_kwargs: dict[str, Any] = {"echo": False, "connect_args": connect_args}
    if not make_url(db_url).drivername.startswith("sqlite"):
        engine_kwargs.update(
            pool_pre_ping=True,
            pool_recycle=3600,
            pool_timeout=30,
            max_overflow=10,
            pool_size=20,
        )
    _engine = create_async_engine(db_url, **engine_kwargs)
    _session = async_sessionmaker(_engine, expire_on_commit=False)
    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def get_session() -> async_sessionmaker[AsyncSession]:
    """
    Get the async sessionmaker. Raises if DB is not initialized.
    """
    if not _session:
        raise RuntimeError("DB not initialized; call init_db() first")
    return _session


async def close_db() -> None:
    """Dispose of the database engine and reset session state."""

    global _engine, _session
    if _engine:
        await _engine.dispose()
    _engine = None
    _session = None


@retry_on_connection_error()
async def load_plans(user_id: str) -> PlanSnapshot:
    """Return the stored plan collection for a user (empty when never written)."""
    sessmaker = get_session()
    async with sessmaker() as s:
        res = await s.execute(select(StoredPlans).where(StoredPlans.user_id == user_id))
        row = res.scalar_one_or_none()
        if row is None:
            return PlanSnapshot()
        return PlanSnapshot(plans=_load(row.plans), last_created_at=_as_utc(row.last_created_at))


@retry_on_connection_error()
async def save_plans(user_id: str, snapshot: PlanSnapshot) -> None:
    """Insert or replace the stored plan collection for a user."""
    sessmaker = get_session()
    async with sessmaker() as s:
        res = await s.execute(select(StoredPlans).where(StoredPlans.user_id == user_id))
        row = res.scalar_one_or_none()
        if row is None:
            row = StoredPlans(
                user_id=user_id,
                plans=_dump(snapshot),
                last_created_at=snapshot.last_created_at,
            )
            s.add(row)
        else:
            row.plans = _dump(snapshot)
            row.last_created_at = snapshot.last_created_at
            row.updated_at = datetime.now(UTC)
        await s.commit()
    logging.info("Saved %d plans for user %s", len(snapshot.plans), user_id)


class SqlPlanRepository:
    """Repository backed by the module-level SQLAlchemy engine."""

    async def get(self, user_id: str) -> PlanSnapshot:
        return await load_plans(user_id)

    async def set(self, user_id: str, snapshot: PlanSnapshot) -> None:
        await save_plans(user_id, snapshot)


class InMemoryPlanRepository:
    """Process-local repository; stores wire dicts so callers never share objects."""

    def __init__(self) -> None:
        self._data: dict[str, tuple[list[dict[str, Any]], datetime | None]] = {}
        self.writes = 0

    async def get(self, user_id: str) -> PlanSnapshot:
        rows, last = self._data.get(user_id, ([], None))
        return PlanSnapshot(plans=_load(rows), last_created_at=last)

    async def set(self, user_id: str, snapshot: PlanSnapshot) -> None:
        self._data[user_id] = (_dump(snapshot), snapshot.last_created_at)
        self.writes += 1
