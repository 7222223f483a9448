"""
Base-plan generation: AI attempts with backoff, validation, fallback, commit.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from ..config import SETTINGS
from ..fallback import constraint_violations, fallback_week
from ..models import DayPlan, PlanSource, UserProfile, WeeklyBasePlan
from ..prompts import Prompt, build_base_plan_prompt
from ..repair import repair_response
from ..results import Failure, Ok, SchemaViolation, TooSoon
from ..store import PlanStore
from ..validator import validate_week
from .clock import TrustedClock
from .completion_client import CompletionClient


@dataclass(frozen=True)
class GenerationOutcome:
    plan: WeeklyBasePlan
    source: PlanSource
    attempts: int
    failures: tuple[Failure, ...] = field(default_factory=tuple)


class PlanGenerator:
    """
    Orchestrates one base-plan generation for one store.

    Only one generation runs at a time per generator; the store itself re-checks
    the cooldown at commit, so two generators on the same store cannot both win.
    """

    def __init__(
        self,
        store: PlanStore,
        client: CompletionClient,
        clock: TrustedClock,
        max_attempts: int | None = None,
        backoff_seconds: float | None = None,
        ai_enabled: bool | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.store = store
        self.client = client
        self.clock = clock
        self.max_attempts = max_attempts or SETTINGS.GENERATION_MAX_ATTEMPTS
        self.backoff_seconds = (
            backoff_seconds if backoff_seconds is not None else SETTINGS.GENERATION_BACKOFF_SECONDS
        )
        self.ai_enabled = SETTINGS.FF_AI_GENERATION if ai_enabled is None else ai_enabled
        self._sleep = sleep
        self._lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    async def _attempt(
        self, prompt: Prompt, profile: UserProfile
    ) -> Ok[dict[str, DayPlan]] | Failure:
        raw = await self.client.complete(prompt.system, prompt.user)
        if not isinstance(raw, Ok):
            return raw
        parsed = repair_response(raw.value)
        if not isinstance(parsed, Ok):
            return parsed
        week = validate_week(parsed.value)
        if not isinstance(week, Ok):
            return week
        problems = [
            f"{weekday}: {problem}"
            for weekday, day in week.value.items()
            for problem in constraint_violations(day, profile)
        ]
        if problems:
            reason = "; ".join(problems[:5])
            return SchemaViolation(reason, reason=reason)
        return week

    async def _ai_week(
        self, profile: UserProfile
    ) -> tuple[dict[str, DayPlan] | None, list[Failure]]:
        failures: list[Failure] = []
        if not self.ai_enabled:
            logging.info("AI generation disabled; using fallback plan")
            return None, failures

        prompt = build_base_plan_prompt(profile)
        for attempt in range(self.max_attempts):
            result = await self._attempt(prompt, profile)
            if isinstance(result, Ok):
                logging.info("AI plan accepted on attempt %d/%d", attempt + 1, self.max_attempts)
                return result.value, failures
            failures.append(result)
            logging.warning(
                "AI plan attempt %d/%d failed: %s", attempt + 1, self.max_attempts, result
            )
            if attempt < self.max_attempts - 1:
                await self._sleep(self.backoff_seconds * 2**attempt)
        return None, failures

    async def generate_base_plan(self, profile: UserProfile) -> Ok[GenerationOutcome] | Failure:
        """
        Generate, validate and commit a new active base plan.

        Returns ``TooSoon`` without calling the model while the cooldown runs, and
        a clock failure when trusted time is unavailable. Any AI failure ends in the
        fallback week, never in an error.
        """
        async with self._lock:
            started = await self.clock.now()
            if not isinstance(started, Ok):
                return started
            window = self.store.can_regenerate(started.value)
            if not window.allowed:
                logging.info("Regeneration refused for user %s", self.store.user_id)
                return TooSoon(
                    f"next plan allowed at {window.next_allowed_at.isoformat()}",
                    time_remaining=window.time_remaining,
                )

            days, failures = await self._ai_week(profile)
            source = PlanSource.AI
            if days is None:
                days = fallback_week(profile)
                source = PlanSource.FALLBACK

            finished = await self.clock.now()
            now = finished.value if isinstance(finished, Ok) else started.value
            plan = WeeklyBasePlan(created_at=now, days=days, source=source)
            created = await self.store.create(plan, now, activate=True)
            if not isinstance(created, Ok):
                return created
            return Ok(
                GenerationOutcome(
                    plan=created.value,
                    source=source,
                    attempts=len(failures) + (1 if source is PlanSource.AI else 0),
                    failures=tuple(failures),
                )
            )
