import asyncio
import json
from datetime import date, timedelta

import pytest
from conftest import T0, BlockingClient, FakeClient, make_plan

from liftor_engine.db import InMemoryPlanRepository
from liftor_engine.fallback import adjust_day, fallback_day
from liftor_engine.models import CheckIn, PlanSource
from liftor_engine.results import NotFound, Ok, PlanNotActive, SchemaViolation, Timeout
from liftor_engine.services.titration import DailyTitrator
from liftor_engine.store import PlanStore

WEDNESDAY = date(2026, 3, 4)


async def _store(profile=None, with_plan=True) -> PlanStore:
    store = PlanStore("u1", InMemoryPlanRepository(), cooldown=timedelta(days=14))
    await store.load()
    if with_plan:
        await store.create(make_plan(profile=profile), T0)
    return store


@pytest.mark.asyncio
async def test_no_active_plan_is_not_found(gym_profile):
    store = await _store(with_plan=False)
    titrator = DailyTitrator(store, FakeClient(), ai_enabled=True)

    result = await titrator.titrate(gym_profile, CheckIn(date=WEDNESDAY, energy=6))

    assert isinstance(result, NotFound)


@pytest.mark.asyncio
async def test_ai_day_replaces_only_checkin_weekday(gym_profile):
    store = await _store(gym_profile)
    before = store.active()
    ai_day = fallback_day(gym_profile, "friday")
    client = FakeClient("Adjusted:\n" + json.dumps(ai_day.to_wire()))
    titrator = DailyTitrator(store, client, max_attempts=1, ai_enabled=True)

    result = await titrator.titrate(gym_profile, CheckIn(date=WEDNESDAY, energy=6))

    assert isinstance(result, Ok)
    outcome = result.value
    assert outcome.weekday == "wednesday"
    assert outcome.source is PlanSource.AI
    assert outcome.failure is None
    after = store.active()
    assert after.days["wednesday"] == ai_day
    for weekday in before.days:
        if weekday != "wednesday":
            assert after.days[weekday] == before.days[weekday]
    assert "TODAY'S CHECK-IN (wednesday)" in client.calls[0][1]


@pytest.mark.asyncio
async def test_model_failure_degrades_to_rule_adjustment(gym_profile):
    store = await _store(gym_profile)
    base = store.active().days["wednesday"]
    checkin = CheckIn(date=WEDNESDAY, energy=3)
    titrator = DailyTitrator(store, FakeClient(Timeout("slow")), max_attempts=1, ai_enabled=True)

    outcome = (await titrator.titrate(gym_profile, checkin)).value

    assert outcome.source is PlanSource.FALLBACK
    assert isinstance(outcome.failure, Timeout)
    assert outcome.day == adjust_day(base, checkin, gym_profile)
    assert store.active().days["wednesday"].workout.focus == ["Recovery"]


@pytest.mark.asyncio
async def test_ai_day_with_missing_equipment_is_rejected(bodyweight_profile, gym_profile):
    store = await _store(bodyweight_profile)
    gym_day = fallback_day(gym_profile, "monday")
    client = FakeClient(json.dumps(gym_day.to_wire()))
    titrator = DailyTitrator(store, client, max_attempts=1, ai_enabled=True)

    outcome = (
        await titrator.titrate(bodyweight_profile, CheckIn(date=WEDNESDAY), weekday="Monday")
    ).value

    assert outcome.weekday == "monday"
    assert outcome.source is PlanSource.FALLBACK
    assert isinstance(outcome.failure, SchemaViolation)


@pytest.mark.asyncio
async def test_titration_without_ai(gym_profile):
    store = await _store(gym_profile)
    client = FakeClient()
    titrator = DailyTitrator(store, client, ai_enabled=False)

    outcome = (await titrator.titrate(gym_profile, CheckIn(date=WEDNESDAY, travel=True))).value

    assert client.calls == []
    assert outcome.day.workout.blocks[0].name == "Hotel Circuit"


@pytest.mark.asyncio
async def test_unknown_weekday_is_not_found(gym_profile):
    store = await _store(gym_profile)
    titrator = DailyTitrator(store, FakeClient(), ai_enabled=False)

    result = await titrator.titrate(gym_profile, CheckIn(date=WEDNESDAY), weekday="someday")

    assert isinstance(result, NotFound)


@pytest.mark.asyncio
async def test_day_is_discarded_when_plan_is_archived_mid_call(gym_profile):
    store = await _store(gym_profile)
    plan_a = store.active()
    plan_b = (await store.create(make_plan(profile=gym_profile), T0 + timedelta(days=14))).value
    client = BlockingClient(json.dumps(fallback_day(gym_profile, "friday").to_wire()))
    titrator = DailyTitrator(store, client, max_attempts=1, ai_enabled=True)

    task = asyncio.create_task(titrator.titrate(gym_profile, CheckIn(date=WEDNESDAY, energy=6)))
    await client.started.wait()
    await store.activate(plan_b.id, T0 + timedelta(days=15))
    client.release.set()
    result = await task

    assert isinstance(result, PlanNotActive)
    assert result.plan_id == plan_a.id
    assert store.get(plan_a.id).days == plan_a.days
    assert store.get(plan_b.id).days == plan_b.days
    assert store.active().id == plan_b.id


class CountingClient:
    def __init__(self, text: str):
        self.text = text
        self.in_flight = 0
        self.max_in_flight = 0
        self.calls = 0

    async def complete(self, system: str, user: str):
        self.calls += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        self.in_flight -= 1
        return Ok(self.text)


@pytest.mark.asyncio
async def test_titrations_for_one_user_run_one_at_a_time(gym_profile):
    store = await _store(gym_profile)
    client = CountingClient(json.dumps(fallback_day(gym_profile, "friday").to_wire()))
    titrator = DailyTitrator(store, client, max_attempts=1, ai_enabled=True)
    checkin = CheckIn(date=WEDNESDAY, energy=6)

    results = await asyncio.gather(
        titrator.titrate(gym_profile, checkin), titrator.titrate(gym_profile, checkin)
    )

    assert all(isinstance(r, Ok) for r in results)
    assert client.calls == 2
    assert client.max_in_flight == 1
    assert not titrator.busy


@pytest.mark.asyncio
async def test_rule_reason_is_reported_but_not_stored(gym_profile):
    store = await _store(gym_profile)
    titrator = DailyTitrator(store, FakeClient(), ai_enabled=False)

    outcome = (await titrator.titrate(gym_profile, CheckIn(date=WEDNESDAY, energy=2))).value

    assert outcome.reason == "Energy below 5: recovery day"
    assert "reason" not in outcome.plan.to_wire()["days"]["wednesday"]
