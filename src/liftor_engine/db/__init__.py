"""Database utilities exposed for external runtimes."""

from .repo import (
    InMemoryPlanRepository,
    PlanRepository,
    PlanSnapshot,
    SqlPlanRepository,
    close_db,
    get_session,
    init_db,
)

__all__ = [
    "InMemoryPlanRepository",
    "PlanRepository",
    "PlanSnapshot",
    "SqlPlanRepository",
    "close_db",
    "get_session",
    "init_db",
]
