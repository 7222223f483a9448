"""
Daily titration: adjust one day of the active plan to today's check-in.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from ..config import SETTINGS
from ..fallback import adjust_day, constraint_violations
from ..models import (
    WEEKDAYS,
    CheckIn,
    DayPlan,
    PlanSource,
    UserProfile,
    WeeklyBasePlan,
    weekday_key,
)
from ..prompts import build_titration_prompt
from ..repair import repair_response
from ..results import Failure, NotFound, Ok, PlanNotActive, SchemaViolation
from ..store import PlanStore
from ..validator import validate_day
from .completion_client import CompletionClient


@dataclass(frozen=True)
class TitrationOutcome:
    plan: WeeklyBasePlan
    weekday: str
    day: DayPlan
    source: PlanSource
    reason: str | None = None
    failure: Failure | None = None


class DailyTitrator:
    """
    Runs the single-day pipeline and writes the result back through the store.

    One titration runs at a time per titrator, and the day is only written if the
    plan it was built from is still the active one.
    """

    def __init__(
        self,
        store: PlanStore,
        client: CompletionClient,
        max_attempts: int | None = None,
        ai_enabled: bool | None = None,
    ):
        self.store = store
        self.client = client
        self.max_attempts = max_attempts or SETTINGS.TITRATION_MAX_ATTEMPTS
        self.ai_enabled = SETTINGS.FF_AI_GENERATION if ai_enabled is None else ai_enabled
        self._lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    async def _ai_day(
        self, profile: UserProfile, weekday: str, base: DayPlan, checkin: CheckIn
    ) -> Ok[DayPlan] | Failure:
        prompt = build_titration_prompt(profile, weekday, base, checkin)
        result: Ok[DayPlan] | Failure = SchemaViolation("no attempt made")
        for _ in range(self.max_attempts):
            raw = await self.client.complete(prompt.system, prompt.user)
            if not isinstance(raw, Ok):
                result = raw
                continue
            parsed = repair_response(raw.value)
            if not isinstance(parsed, Ok):
                result = parsed
                continue
            result = validate_day(parsed.value, weekday)
            if not isinstance(result, Ok):
                continue
            problems = constraint_violations(result.value, profile)
            if problems:
                reason = "; ".join(problems[:5])
                result = SchemaViolation(reason, reason=reason)
                continue
            return result
        return result

    async def titrate(
        self, profile: UserProfile, checkin: CheckIn, weekday: str | None = None
    ) -> Ok[TitrationOutcome] | Failure:
        """
        Adjust the active plan's day for ``checkin``.

        Any model failure degrades to a rule-adjusted copy of the existing day. Only
        that one day is replaced; the other six stay as they were. Returns
        ``PlanNotActive`` when another plan was activated while the day was built.
        """
        async with self._lock:
            return await self._titrate(profile, checkin, weekday)

    async def _titrate(
        self, profile: UserProfile, checkin: CheckIn, weekday: str | None
    ) -> Ok[TitrationOutcome] | Failure:
        active = self.store.active()
        if active is None:
            return NotFound("no active plan")
        weekday = (weekday or weekday_key(checkin.date)).lower()
        if weekday not in WEEKDAYS:
            return NotFound(f"no weekday {weekday!r}", plan_id=active.id)
        base = active.days[weekday]

        day: DayPlan | None = None
        failure: Failure | None = None
        if self.ai_enabled:
            result = await self._ai_day(profile, weekday, base, checkin)
            if isinstance(result, Ok):
                day = result.value
            else:
                failure = result
                logging.warning("Titration for %s fell back to rules: %s", weekday, failure)

        source = PlanSource.AI
        if day is None:
            day, source = adjust_day(base, checkin, profile), PlanSource.FALLBACK

        updated = await self.store.update_day(active.id, weekday, day)
        if isinstance(updated, PlanNotActive):
            logging.warning("Plan %s was archived during titration; day discarded", active.id)
        if not isinstance(updated, Ok):
            return updated
        return Ok(
            TitrationOutcome(
                plan=updated.value,
                weekday=weekday,
                day=day,
                source=source,
                reason=day.reason,
                failure=failure,
            )
        )
