from datetime import date, datetime

import pytest
from conftest import T0, make_plan
from pydantic import ValidationError

from liftor_engine.models import (
    DietaryPref,
    Equipment,
    UserProfile,
    WeeklyBasePlan,
    weekday_key,
)


def test_weekday_key() -> None:
    assert weekday_key(date(2026, 3, 2)) == "monday"
    assert weekday_key(date(2026, 3, 8)) == "sunday"


def test_profile_accepts_camel_case_and_cleans_lists() -> None:
    profile = UserProfile.model_validate(
        {
            "trainingDays": 4,
            "dietaryPrefs": ["Eggitarian"],
            "equipment": ["Dumbbells", "Dumbbells", "Bands"],
            "avoidExercises": [" Deadlift ", ""],
        }
    )
    assert profile.training_days == 4
    assert profile.dietary_pref is DietaryPref.EGGITARIAN
    assert profile.equipment == [Equipment.DUMBBELLS, Equipment.BANDS]
    assert profile.avoid_exercises == ["Deadlift"]


def test_multiple_dietary_prefs_collapse_to_strictest() -> None:
    profile = UserProfile(dietary_prefs=["Non-veg", "Vegetarian", "Eggitarian"])
    assert profile.dietary_prefs == [DietaryPref.VEGETARIAN]

    profile = UserProfile(dietary_prefs=["Non-veg", "Eggitarian"])
    assert profile.dietary_pref is DietaryPref.EGGITARIAN


def test_empty_equipment_means_bodyweight() -> None:
    assert UserProfile(equipment=[]).equipment == [Equipment.BODYWEIGHT]


def test_profile_rejects_out_of_range_training_days() -> None:
    with pytest.raises(ValidationError):
        UserProfile(training_days=8)


def test_plan_requires_all_seven_days() -> None:
    plan = make_plan()
    days = dict(plan.days)
    del days["sunday"]
    with pytest.raises(ValidationError):
        WeeklyBasePlan(created_at=T0, days=days)


def test_naive_timestamps_are_read_as_utc() -> None:
    plan = make_plan(created_at=datetime(2026, 3, 2, 9, 0))
    assert plan.created_at == T0


def test_plan_wire_shape() -> None:
    plan = make_plan(name="Base", is_active=True, status="active", activated_at=T0)

    wire = plan.to_wire()

    assert wire["createdAt"] == "2026-03-02T09:00:00Z"
    assert wire["isActive"] is True
    assert wire["status"] == "active"
    assert "deactivatedAt" not in wire
    assert list(wire["days"]) == [
        "monday",
        "tuesday",
        "wednesday",
        "thursday",
        "friday",
        "saturday",
        "sunday",
    ]
    assert WeeklyBasePlan.model_validate(wire) == plan
