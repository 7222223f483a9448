"""
Versioned base-plan collection for one user.

Invariants held by ``PlanStore``:

* at most one plan has ``is_active``; ``status`` mirrors it and archived plans are locked
* the collection is never emptied by ``delete``
* a new plan is accepted only when ``now - last_created_at >= cooldown``, checked
  again inside ``create`` so a racing generation fails with ``TooSoon``
* ``last_created_at`` never moves backwards, deleting the newest plan keeps it

Every mutation runs under one ``asyncio.Lock`` and is written to the repository
before the in-memory collection changes, so a failed write leaves the store as it was
and comes back as ``StorageError``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from .config import SETTINGS
from .db.repo import PlanRepository, PlanSnapshot
from .models import (
    WEEKDAYS,
    CheckIn,
    DayPlan,
    PlanStats,
    PlanStatus,
    WeeklyBasePlan,
    weekday_key,
)
from .nutrition import is_training_day
from .results import (
    CannotDeleteActive,
    CannotDeleteLast,
    EmptyName,
    Failure,
    NotFound,
    Ok,
    PlanNotActive,
    StorageError,
    TooSoon,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegenerationWindow:
    allowed: bool
    last_created_at: datetime | None
    next_allowed_at: datetime | None
    time_remaining: timedelta


def regeneration_window(
    last_created_at: datetime | None, now: datetime, cooldown: timedelta
) -> RegenerationWindow:
    if last_created_at is None:
        return RegenerationWindow(True, None, None, timedelta(0))
    next_allowed = last_created_at + cooldown
    remaining = max(next_allowed - now, timedelta(0))
    return RegenerationWindow(now >= next_allowed, last_created_at, next_allowed, remaining)


def _order_key(plan: WeeklyBasePlan) -> tuple[datetime, str]:
    return plan.created_at, plan.id


def _activated(plan: WeeklyBasePlan, now: datetime) -> WeeklyBasePlan:
    return plan.model_copy(
        update={
            "is_active": True,
            "is_locked": False,
            "status": PlanStatus.ACTIVE,
            "activated_at": now,
            "deactivated_at": None,
        }
    )


def _deactivated(plan: WeeklyBasePlan, now: datetime) -> WeeklyBasePlan:
    return plan.model_copy(
        update={
            "is_active": False,
            "is_locked": True,
            "status": PlanStatus.ARCHIVED,
            "deactivated_at": now,
        }
    )


# ---- stats --------------------------------------------------------------------


def _active_window(plan: WeeklyBasePlan, now: datetime) -> tuple[date, date]:
    start = (plan.activated_at or plan.created_at).date()
    end = (plan.deactivated_at or now).date()
    return start, max(start, end)


def compute_stats(plan: WeeklyBasePlan, checkins: Iterable[CheckIn], now: datetime) -> PlanStats:
    """
    Derive stats for ``plan`` from check-ins inside its active window.

    Pure and order-independent: the same plan and the same set of check-ins give
    the same stats no matter how the check-ins are ordered.
    """
    start, end = _active_window(plan, now)
    in_window = [c for c in checkins if start <= c.date <= end]

    days_active = (end - start).days + 1
    checkin_days = {c.date for c in in_window}
    consistency = min(100, round(len(checkin_days) / days_active * 100))

    weights = sorted((c.date, c.weight_kg) for c in in_window if c.weight_kg is not None)
    weight_change = round(weights[-1][1] - weights[0][1], 1) if weights else None

    total_workouts = sum(
        1 for d in checkin_days if is_training_day(plan.days[weekday_key(d)].workout.focus)
    )
    return PlanStats(
        weight_change_kg=weight_change,
        consistency_percent=consistency,
        days_active=days_active,
        total_workouts=total_workouts,
    )


# ---- merge --------------------------------------------------------------------


def _fill_stats(remote: PlanStats | None, local: PlanStats | None) -> PlanStats | None:
    if remote is None:
        return local
    if local is None:
        return remote
    filled = {
        name: getattr(local, name) if getattr(remote, name) is None else getattr(remote, name)
        for name in PlanStats.model_fields
    }
    return PlanStats(**filled)


def _dedupe(plans: Iterable[WeeklyBasePlan]) -> dict[str, WeeklyBasePlan]:
    # Within one side a repeated id keeps the most recently created copy.
    by_id: dict[str, WeeklyBasePlan] = {}
    ordered = sorted(plans, key=lambda p: (p.created_at, json.dumps(p.to_wire(), sort_keys=True)))
    for plan in ordered:
        by_id[plan.id] = plan
    return by_id


def merge_local_and_remote(
    local: Iterable[WeeklyBasePlan], remote: Iterable[WeeklyBasePlan]
) -> list[WeeklyBasePlan]:
    """
    Union two plan collections by id.

    Remote core fields win on conflict; stats the remote left empty are filled from
    the local copy. If more than one plan ends up active the most recently activated
    one stays active. The result is ordered by ``(created_at, id)``.
    """
    local_by_id = _dedupe(local)
    remote_by_id = _dedupe(remote)

    merged: dict[str, WeeklyBasePlan] = dict(local_by_id)
    for plan_id, plan in remote_by_id.items():
        if plan_id in local_by_id:
            stats = _fill_stats(plan.stats, local_by_id[plan_id].stats)
            plan = plan.model_copy(update={"stats": stats})
        merged[plan_id] = plan

    active = [p for p in merged.values() if p.is_active]
    if len(active) > 1:
        keep = max(active, key=lambda p: (p.activated_at or p.created_at, p.id))
        for plan in active:
            if plan.id != keep.id:
                when = plan.deactivated_at or keep.activated_at or keep.created_at
                merged[plan.id] = _deactivated(plan, when)
        logger.warning("Merged collection had %d active plans; kept %s", len(active), keep.id)

    return sorted(merged.values(), key=_order_key)


# ---- store --------------------------------------------------------------------


class PlanStore:
    """Ordered base-plan collection for one user, persisted through a repository."""

    def __init__(
        self,
        user_id: str,
        repository: PlanRepository,
        cooldown: timedelta | None = None,
    ) -> None:
        self.user_id = user_id
        self._repo = repository
        if cooldown is None:
            cooldown = timedelta(days=SETTINGS.REGENERATION_COOLDOWN_DAYS)
        self._cooldown = cooldown
        self._plans: list[WeeklyBasePlan] = []
        self._last_created_at: datetime | None = None
        self._lock = asyncio.Lock()

    async def load(self) -> Ok[None] | Failure:
        """Read the persisted collection; call once before using the store."""
        async with self._lock:
            try:
                snapshot = await self._repo.get(self.user_id)
            except Exception as e:
                logger.exception("Failed to load plans for user %s: %s", self.user_id, e)
                return StorageError(f"failed to load plans: {e}")
            self._plans = sorted(snapshot.plans, key=_order_key)
            self._last_created_at = self._watermark(snapshot.last_created_at, self._plans)
            return Ok(None)

    @staticmethod
    def _watermark(current: datetime | None, plans: Iterable[WeeklyBasePlan]) -> datetime | None:
        stamps = [p.created_at for p in plans]
        if current is not None:
            stamps.append(current)
        return max(stamps) if stamps else None

    async def _commit(
        self, plans: list[WeeklyBasePlan], last_created_at: datetime | None
    ) -> StorageError | None:
        plans = sorted(plans, key=_order_key)
        snapshot = PlanSnapshot(plans=plans, last_created_at=last_created_at)
        try:
            await self._repo.set(self.user_id, snapshot)
        except Exception as e:
            logger.exception("Failed to persist plans for user %s: %s", self.user_id, e)
            return StorageError(f"failed to persist plans: {e}")
        self._plans = plans
        self._last_created_at = last_created_at
        return None

    def _index(self, plan_id: str) -> int | None:
        for i, plan in enumerate(self._plans):
            if plan.id == plan_id:
                return i
        return None

    # -- queries

    @property
    def plans(self) -> list[WeeklyBasePlan]:
        return list(self._plans)

    @property
    def last_created_at(self) -> datetime | None:
        return self._last_created_at

    def get(self, plan_id: str) -> WeeklyBasePlan | None:
        i = self._index(plan_id)
        return self._plans[i] if i is not None else None

    def active(self) -> WeeklyBasePlan | None:
        return next((p for p in self._plans if p.is_active), None)

    def can_regenerate(self, now: datetime) -> RegenerationWindow:
        return regeneration_window(self._last_created_at, now, self._cooldown)

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    # -- mutations

    async def create(
        self, plan: WeeklyBasePlan, now: datetime, activate: bool = False
    ) -> Ok[WeeklyBasePlan] | Failure:
        """
        Append a freshly generated plan.

        The first plan always becomes active. With ``activate=True`` the new plan
        replaces the current active one in the same step.
        """
        async with self._lock:
            window = self.can_regenerate(now)
            if not window.allowed:
                return TooSoon(
                    f"next plan allowed at {window.next_allowed_at.isoformat()}",
                    time_remaining=window.time_remaining,
                )

            new = plan.model_copy(
                update={
                    "created_at": now,
                    "name": plan.name or f"Plan - {now.date().isoformat()}",
                    "is_active": False,
                    "is_locked": True,
                    "status": PlanStatus.ARCHIVED,
                    "activated_at": None,
                    "deactivated_at": None,
                }
            )
            plans = list(self._plans)
            if not plans or activate:
                plans = [_deactivated(p, now) if p.is_active else p for p in plans]
                new = _activated(new, now)
            plans.append(new)

            failed = await self._commit(plans, self._watermark(self._last_created_at, [new]))
            if failed is not None:
                return failed
            logger.info(
                "Created plan %s for user %s (active=%s, source=%s)",
                new.id,
                self.user_id,
                new.is_active,
                new.source.value,
            )
            return Ok(new)

    async def activate(self, plan_id: str, now: datetime) -> Ok[WeeklyBasePlan] | Failure:
        async with self._lock:
            i = self._index(plan_id)
            if i is None:
                return NotFound(f"no plan {plan_id}", plan_id=plan_id)
            target = self._plans[i]
            if target.is_active:
                return Ok(target)

            plans = [_deactivated(p, now) if p.is_active else p for p in self._plans]
            plans[i] = _activated(target, now)
            failed = await self._commit(plans, self._last_created_at)
            if failed is not None:
                return failed
            logger.info("Activated plan %s for user %s", plan_id, self.user_id)
            return Ok(plans[i])

    async def rename(self, plan_id: str, name: str) -> Ok[WeeklyBasePlan] | Failure:
        async with self._lock:
            i = self._index(plan_id)
            if i is None:
                return NotFound(f"no plan {plan_id}", plan_id=plan_id)
            name = (name or "").strip()
            if not name:
                return EmptyName("plan name must not be blank", plan_id=plan_id)

            plans = list(self._plans)
            plans[i] = plans[i].model_copy(update={"name": name})
            failed = await self._commit(plans, self._last_created_at)
            if failed is not None:
                return failed
            return Ok(plans[i])

    async def delete(self, plan_id: str) -> Ok[WeeklyBasePlan] | Failure:
        async with self._lock:
            i = self._index(plan_id)
            if i is None:
                return NotFound(f"no plan {plan_id}", plan_id=plan_id)
            target = self._plans[i]
            if target.is_active:
                return CannotDeleteActive("activate another plan first", plan_id=plan_id)
            if len(self._plans) == 1:
                return CannotDeleteLast("the only plan cannot be deleted", plan_id=plan_id)

            plans = self._plans[:i] + self._plans[i + 1 :]
            failed = await self._commit(plans, self._last_created_at)
            if failed is not None:
                return failed
            logger.info("Deleted plan %s for user %s", plan_id, self.user_id)
            return Ok(target)

    async def update_day(
        self, plan_id: str, weekday: str, day: DayPlan
    ) -> Ok[WeeklyBasePlan] | Failure:
        """
        Replace one weekday of the active plan; the other six days are untouched.

        Archived plans are locked, so a plan that lost its active flag since the caller
        read it is refused with ``PlanNotActive``.
        """
        async with self._lock:
            i = self._index(plan_id)
            if i is None:
                return NotFound(f"no plan {plan_id}", plan_id=plan_id)
            if not self._plans[i].is_active:
                return PlanNotActive(f"plan {plan_id} is archived", plan_id=plan_id)
            if weekday not in WEEKDAYS:
                return NotFound(f"no weekday {weekday!r}", plan_id=plan_id)

            plans = list(self._plans)
            days = dict(plans[i].days)
            days[weekday] = day
            plans[i] = plans[i].model_copy(update={"days": days})
            failed = await self._commit(plans, self._last_created_at)
            if failed is not None:
                return failed
            return Ok(plans[i])

    async def refresh_stats(
        self, checkins: Iterable[CheckIn], now: datetime
    ) -> Ok[list[WeeklyBasePlan]] | Failure:
        """Snapshot computed stats onto every plan; the snapshot is only a cache."""
        checkins = list(checkins)
        async with self._lock:
            plans = [
                p.model_copy(update={"stats": compute_stats(p, checkins, now)}) for p in self._plans
            ]
            failed = await self._commit(plans, self._last_created_at)
            if failed is not None:
                return failed
            return Ok(list(plans))

    async def sync_remote(
        self, remote: Iterable[WeeklyBasePlan]
    ) -> Ok[list[WeeklyBasePlan]] | Failure:
        """Merge a remote copy of the collection into this store and persist the union."""
        remote = list(remote)
        async with self._lock:
            plans = merge_local_and_remote(self._plans, remote)
            failed = await self._commit(plans, self._watermark(self._last_created_at, plans))
            if failed is not None:
                return failed
            logger.info(
                "Synced %d remote plans for user %s; %d total",
                len(remote),
                self.user_id,
                len(plans),
            )
            return Ok(list(plans))
