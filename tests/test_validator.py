import copy
import json

import pytest

from liftor_engine.fallback import fallback_week
from liftor_engine.models import WEEKDAYS, DayPlan, UserProfile
from liftor_engine.results import Ok, SchemaViolation
from liftor_engine.validator import validate_day, validate_week


@pytest.fixture
def week() -> dict:
    days = fallback_week(UserProfile())
    return {"days": {k: v.to_wire() for k, v in days.items()}}


def test_valid_week_decodes_all_days(week) -> None:
    result = validate_week(week)
    assert isinstance(result, Ok)
    assert list(result.value) == list(WEEKDAYS)
    assert all(isinstance(d, DayPlan) for d in result.value.values())


def test_weekday_keys_are_case_normalized(week) -> None:
    week["days"] = {k.capitalize(): v for k, v in week["days"].items()}
    result = validate_week(week)
    assert isinstance(result, Ok)
    assert "monday" in result.value


def test_duplicate_weekday_after_normalization(week) -> None:
    week["days"]["Monday"] = copy.deepcopy(week["days"]["monday"])
    result = validate_week(week)
    assert isinstance(result, SchemaViolation)
    assert "duplicate" in result.reason


def test_missing_and_extra_days(week) -> None:
    del week["days"]["sunday"]
    week["days"]["funday"] = week["days"]["monday"]
    result = validate_week(week)
    assert isinstance(result, SchemaViolation)
    assert "sunday" in result.reason
    assert "funday" in result.reason


def test_missing_days_wrapper() -> None:
    assert isinstance(validate_week({"monday": {}}), SchemaViolation)
    assert isinstance(validate_week({"days": []}), SchemaViolation)


@pytest.mark.parametrize(
    "field,value",
    [
        ("total_kcal", 799),
        ("total_kcal", 6001),
        ("protein_g", 19),
        ("protein_g", 501),
        ("hydration_l", 0.4),
        ("hydration_l", 10.5),
        ("total_kcal", True),
        ("protein_g", "150"),
        ("hydration_l", float("nan")),
    ],
)
def test_out_of_range_or_non_numeric_is_rejected(week, field, value) -> None:
    week["days"]["wednesday"]["nutrition"][field] = value
    result = validate_week(week)
    assert isinstance(result, SchemaViolation)
    assert "wednesday" in result.reason
    assert field in result.reason


@pytest.mark.parametrize(
    "field,value", [("total_kcal", 800), ("total_kcal", 6000), ("hydration_l", 0.5)]
)
def test_bounds_are_inclusive(week, field, value) -> None:
    day = week["days"]["monday"]
    day["nutrition"][field] = value
    assert isinstance(validate_day(day), Ok)


def test_values_are_not_clamped(week) -> None:
    day = week["days"]["monday"]
    day["nutrition"]["total_kcal"] = 5999.5
    result = validate_day(day)
    assert isinstance(result, Ok)
    assert result.value.nutrition.total_kcal == 5999.5


def test_empty_blocks_and_meals_are_rejected(week) -> None:
    day = copy.deepcopy(week["days"]["monday"])
    day["workout"]["blocks"] = []
    assert "workout.blocks" in validate_day(day).reason

    day = copy.deepcopy(week["days"]["monday"])
    day["nutrition"]["meals"] = []
    assert "nutrition.meals" in validate_day(day).reason


def test_missing_recovery_is_rejected(week) -> None:
    day = week["days"]["monday"]
    del day["recovery"]
    assert isinstance(validate_day(day, "monday"), SchemaViolation)


def test_model_level_problems_become_schema_violations(week) -> None:
    day = week["days"]["monday"]
    day["workout"]["blocks"][0]["items"][0]["exercise"] = ""
    result = validate_day(day)
    assert isinstance(result, SchemaViolation)
    assert "exercise" in result.reason


def test_rir_alias_and_rep_ranges_are_accepted() -> None:
    raw = json.loads(
        """{
          "workout": {"focus": ["Push"], "blocks": [{"name": "Main", "items": [
            {"exercise": "Push-ups", "sets": "3-4", "reps": 12, "RIR": 2}]}]},
          "nutrition": {"total_kcal": 2200, "protein_g": 140, "hydration_l": 3,
            "meals": [{"name": "Lunch", "items": [{"food": "Dal", "qty": "200 g"}]}]},
          "recovery": {"mobility": ["Stretch"], "sleep": ["8 h"], "careNotes": "easy"}
        }"""
    )
    result = validate_day(raw)
    assert isinstance(result, Ok)
    item = result.value.workout.blocks[0].items[0]
    assert (item.sets, item.reps, item.rir) == (3, "12", 2)
    assert result.value.recovery.care_notes == "easy"
    assert result.value.to_wire()["workout"]["blocks"][0]["items"][0]["RIR"] == 2
