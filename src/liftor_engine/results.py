"""
Tagged success/failure results shared by every pipeline stage and store operation.

Expected failures are returned, never raised. Callers branch with ``isinstance``:
transport and repair failures are recovered by the fallback generator, store
lifecycle failures are surfaced to the user as they are.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful result wrapping ``value``."""

    value: T


@dataclass(frozen=True)
class Failure:
    """Base class for every typed failure."""

    message: str = ""

    @property
    def kind(self) -> str:
        return type(self).__name__

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}" if self.message else self.kind


# ---- transport ---------------------------------------------------------------


@dataclass(frozen=True)
class NetworkError(Failure):
    status_code: int | None = None


@dataclass(frozen=True)
class Timeout(Failure):
    pass


# ---- response repair ---------------------------------------------------------


@dataclass(frozen=True)
class EmptyResponse(Failure):
    pass


@dataclass(frozen=True)
class MalformedJson(Failure):
    position: int = 0
    snippet: str = ""


@dataclass(frozen=True)
class Truncated(MalformedJson):
    """The object opened but never closed; ``position`` is the end of the text."""

    depth: int = 0


@dataclass(frozen=True)
class SchemaViolation(Failure):
    reason: str = ""


# ---- plan store lifecycle ----------------------------------------------------


@dataclass(frozen=True)
class TooSoon(Failure):
    time_remaining: timedelta = field(default_factory=timedelta)


@dataclass(frozen=True)
class NotFound(Failure):
    plan_id: str = ""


@dataclass(frozen=True)
class CannotDeleteActive(Failure):
    plan_id: str = ""


@dataclass(frozen=True)
class CannotDeleteLast(Failure):
    plan_id: str = ""


@dataclass(frozen=True)
class EmptyName(Failure):
    plan_id: str = ""


@dataclass(frozen=True)
class PlanNotActive(Failure):
    """The plan was archived while an adjustment for it was being prepared."""

    plan_id: str = ""


# ---- persistence -------------------------------------------------------------


@dataclass(frozen=True)
class StorageError(Failure):
    pass


RECOVERABLE_FAILURES: tuple[type[Failure], ...] = (
    NetworkError,
    Timeout,
    EmptyResponse,
    MalformedJson,
    SchemaViolation,
)

Result = Ok[T] | Failure
