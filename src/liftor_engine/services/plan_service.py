"""
Service for per-user plan stores and the operations the API exposes.
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from collections.abc import Iterable
from dataclasses import dataclass

from ..config import SETTINGS
from ..db.repo import PlanRepository
from ..models import CheckIn, UserProfile, WeeklyBasePlan
from ..results import Failure, Ok
from ..store import PlanStore, RegenerationWindow
from .clock import TrustedClock
from .completion_client import CompletionClient
from .generation import GenerationOutcome, PlanGenerator
from .titration import DailyTitrator, TitrationOutcome


@dataclass
class UserPlans:
    """A user's loaded store with the generator and titrator bound to it."""

    store: PlanStore
    generator: PlanGenerator
    titrator: DailyTitrator

    def busy(self) -> bool:
        return self.store.busy or self.generator.busy or self.titrator.busy


class PlanService:
    """
    Owns one loaded ``UserPlans`` per user.

    At most ``max_users`` users are kept loaded. The least recently used idle user is
    dropped first and reloaded from the repository on their next request; users with
    an operation in flight are never dropped.
    """

    def __init__(
        self,
        repository: PlanRepository,
        client: CompletionClient,
        clock: TrustedClock,
        generator_options: dict | None = None,
        max_users: int | None = None,
    ):
        self.repository = repository
        self.client = client
        self.clock = clock
        self.max_users = max_users or SETTINGS.PLAN_SERVICE_MAX_USERS
        self._generator_options = generator_options or {}
        self._users: OrderedDict[str, UserPlans] = OrderedDict()
        self._registry_lock = asyncio.Lock()

    def _evict(self) -> None:
        for user_id in list(self._users):
            if len(self._users) <= self.max_users:
                return
            if not self._users[user_id].busy():
                del self._users[user_id]
                logging.info("Unloaded plans for idle user %s", user_id)

    async def plans_for(self, user_id: str) -> Ok[UserPlans] | Failure:
        async with self._registry_lock:
            entry = self._users.get(user_id)
            if entry is not None:
                self._users.move_to_end(user_id)
                return Ok(entry)

            store = PlanStore(user_id, self.repository)
            loaded = await store.load()
            if not isinstance(loaded, Ok):
                return loaded
            entry = UserPlans(
                store=store,
                generator=PlanGenerator(
                    store, self.client, self.clock, **self._generator_options
                ),
                titrator=DailyTitrator(store, self.client),
            )
            self._users[user_id] = entry
            logging.info("Loaded %d plans for user %s", len(store.plans), user_id)
            self._evict()
            return Ok(entry)

    async def store_for(self, user_id: str) -> Ok[PlanStore] | Failure:
        entry = await self.plans_for(user_id)
        if not isinstance(entry, Ok):
            return entry
        return Ok(entry.value.store)

    async def generate(self, user_id: str, profile: UserProfile) -> Ok[GenerationOutcome] | Failure:
        entry = await self.plans_for(user_id)
        if not isinstance(entry, Ok):
            return entry
        return await entry.value.generator.generate_base_plan(profile)

    async def list_plans(self, user_id: str) -> Ok[list[WeeklyBasePlan]] | Failure:
        store = await self.store_for(user_id)
        if not isinstance(store, Ok):
            return store
        return Ok(store.value.plans)

    async def regeneration(self, user_id: str) -> Ok[RegenerationWindow] | Failure:
        store = await self.store_for(user_id)
        if not isinstance(store, Ok):
            return store
        now = await self.clock.now()
        if not isinstance(now, Ok):
            return now
        return Ok(store.value.can_regenerate(now.value))

    async def activate(self, user_id: str, plan_id: str) -> Ok[WeeklyBasePlan] | Failure:
        store = await self.store_for(user_id)
        if not isinstance(store, Ok):
            return store
        now = await self.clock.now()
        if not isinstance(now, Ok):
            return now
        return await store.value.activate(plan_id, now.value)

    async def rename(self, user_id: str, plan_id: str, name: str) -> Ok[WeeklyBasePlan] | Failure:
        store = await self.store_for(user_id)
        if not isinstance(store, Ok):
            return store
        return await store.value.rename(plan_id, name)

    async def delete(self, user_id: str, plan_id: str) -> Ok[WeeklyBasePlan] | Failure:
        store = await self.store_for(user_id)
        if not isinstance(store, Ok):
            return store
        return await store.value.delete(plan_id)

    async def titrate(
        self,
        user_id: str,
        profile: UserProfile,
        checkin: CheckIn,
        weekday: str | None = None,
    ) -> Ok[TitrationOutcome] | Failure:
        entry = await self.plans_for(user_id)
        if not isinstance(entry, Ok):
            return entry
        return await entry.value.titrator.titrate(profile, checkin, weekday)

    async def refresh_stats(
        self, user_id: str, checkins: Iterable[CheckIn]
    ) -> Ok[list[WeeklyBasePlan]] | Failure:
        store = await self.store_for(user_id)
        if not isinstance(store, Ok):
            return store
        now = await self.clock.now()
        if not isinstance(now, Ok):
            return now
        return await store.value.refresh_stats(checkins, now.value)
