import asyncio
import json
import os
from datetime import UTC, datetime, timedelta

import pytest

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("COMPLETION_API_KEY", "sk-test-key-123456")

from liftor_engine.fallback import fallback_week
from liftor_engine.models import Equipment, UserProfile, WeeklyBasePlan
from liftor_engine.results import Failure, Ok

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)  # a Monday


class FakeClock:
    """Trusted clock that returns a settable instant, or a scripted failure."""

    def __init__(self, now: datetime = T0):
        self.current = now
        self.failure: Failure | None = None
        self.calls = 0

    async def now(self):
        self.calls += 1
        if self.failure is not None:
            return self.failure
        return Ok(self.current)

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


class FakeClient:
    """Completion client replaying scripted texts or failures in order."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls: list[tuple[str, str]] = []

    async def complete(self, system: str, user: str):
        self.calls.append((system, user))
        if not self.responses:
            raise AssertionError("unexpected completion call")
        nxt = self.responses.pop(0)
        if isinstance(nxt, Failure):
            return nxt
        return Ok(nxt)


class BlockingClient:
    """Completion client that signals the call and then waits until released."""

    def __init__(self, text: str | None = None):
        self.text = text
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.calls = 0

    async def complete(self, system: str, user: str):
        self.calls += 1
        self.started.set()
        await self.release.wait()
        return Ok(self.text)


async def no_sleep(seconds: float) -> None:
    return None


def week_json(profile: UserProfile) -> str:
    """A valid base-plan completion body built from the deterministic week."""
    days = {k: v.to_wire() for k, v in fallback_week(profile).items()}
    return json.dumps({"days": days})


def make_plan(created_at: datetime = T0, **kwargs) -> WeeklyBasePlan:
    profile = kwargs.pop("profile", None) or UserProfile()
    return WeeklyBasePlan(created_at=created_at, days=fallback_week(profile), **kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def bodyweight_profile() -> UserProfile:
    return UserProfile(
        goal="MUSCLE_GAIN",
        equipment=[Equipment.BODYWEIGHT],
        dietary_prefs=["Vegetarian"],
        training_days=3,
        weight_kg=70,
    )


@pytest.fixture
def gym_profile() -> UserProfile:
    return UserProfile(
        goal="WEIGHT_LOSS",
        equipment=["Gym", "Dumbbells"],
        dietary_prefs=["Non-veg"],
        training_days=5,
        age=34,
        sex="Female",
        height_cm=168,
        weight_kg=72,
        activity_level="Lightly Active",
        session_length=60,
    )
