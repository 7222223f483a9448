import itertools
import re
from datetime import date

import pytest

from liftor_engine.fallback import (
    EQUIPMENT_MARKERS,
    adjust_day,
    classify_exercise,
    constraint_violations,
    fallback_day,
    fallback_week,
    main_exercise_count,
)
from liftor_engine.models import (
    WEEKDAYS,
    CheckIn,
    DietaryPref,
    Equipment,
    ExerciseItem,
    Goal,
    UserProfile,
)
from liftor_engine.nutrition import is_training_day
from liftor_engine.results import Ok
from liftor_engine.validator import validate_day

MEAT_OR_FISH = re.compile(r"chicken|beef|fish|salmon|tuna|turkey|meat|pork|bacon", re.IGNORECASE)
EGG = re.compile(r"\begg|omelette", re.IGNORECASE)


def _foods(day) -> list[str]:
    return [item.food for meal in day.nutrition.meals for item in meal.items]


@pytest.mark.parametrize(
    "equipment,diet,goal", list(itertools.product(Equipment, DietaryPref, Goal))
)
def test_fallback_week_is_valid_for_every_profile(equipment, diet, goal) -> None:
    profile = UserProfile(equipment=[equipment], dietary_prefs=[diet], goal=goal, weight_kg=80)

    week = fallback_week(profile)

    assert list(week) == list(WEEKDAYS)
    for weekday, day in week.items():
        assert isinstance(validate_day(day.to_wire(), weekday), Ok)
        assert constraint_violations(day, profile) == []
        assert len(day.nutrition.meals) == profile.meal_count
        foods = " ".join(_foods(day))
        if diet is not DietaryPref.NON_VEG:
            assert not MEAT_OR_FISH.search(foods)
        if diet is DietaryPref.VEGETARIAN:
            assert not EGG.search(foods)


def test_bodyweight_week_has_no_equipment_exercises(bodyweight_profile) -> None:
    for day in fallback_week(bodyweight_profile).values():
        for name in day.exercises():
            assert not any(marker.search(name) for marker in EQUIPMENT_MARKERS.values()), name


def test_fallback_is_deterministic(gym_profile) -> None:
    assert fallback_week(gym_profile) == fallback_week(gym_profile)


@pytest.mark.parametrize("days", [1, 2, 3, 4, 5, 6])
def test_training_day_count_matches_profile(days) -> None:
    week = fallback_week(UserProfile(training_days=days))
    trained = [d for d in week.values() if is_training_day(d.workout.focus)]
    assert len(trained) == days


def test_avoid_list_is_respected() -> None:
    profile = UserProfile(avoid_exercises=["push-ups", "plank"])
    for day in fallback_week(profile).values():
        for name in day.exercises():
            assert "push-up" not in name.lower()
            assert "plank" not in name.lower()


def test_session_length_caps_main_exercises() -> None:
    profile = UserProfile(session_length=30, equipment=["Gym"])
    day = fallback_week(profile)["monday"]
    main = [b for b in day.workout.blocks if b.name == "Main"][0]
    assert len(main.items) <= main_exercise_count(30) == 2


def test_classify_exercise_ordering() -> None:
    assert classify_exercise("Leg Press") == "squat"
    assert classify_exercise("Cable Pallof Press") == "core"
    assert classify_exercise("Bulgarian Split Squat") == "lunge"
    assert classify_exercise("Barbell Bench Press") == "push"
    assert classify_exercise("Juggling") is None


def test_constraint_violations_flag_missing_equipment_and_avoided(bodyweight_profile) -> None:
    profile = bodyweight_profile.model_copy(update={"avoid_exercises": ["burpees"]})
    day = fallback_day(profile, "monday")
    day.workout.blocks[-1].items.extend(
        [
            ExerciseItem(exercise="Barbell Back Squat", sets=3, reps="5"),
            ExerciseItem(exercise="DB Curl", sets=3, reps="10"),
            ExerciseItem(exercise="Burpees", sets=3, reps="10"),
        ]
    )

    problems = constraint_violations(day, profile)

    assert problems == [
        "Barbell Back Squat needs Gym",
        "DB Curl needs Dumbbells",
        "Burpees is on the avoid list",
    ]


def test_gym_covers_every_marker_but_not_the_avoid_list() -> None:
    profile = UserProfile(equipment=[Equipment.GYM], avoid_exercises=["deadlift"])
    day = fallback_day(profile, "monday")
    day.workout.blocks[-1].items.extend(
        [
            ExerciseItem(exercise="DB Curl", sets=3, reps="10"),
            ExerciseItem(exercise="Banded Face Pull", sets=3, reps="15"),
            ExerciseItem(exercise="Romanian Deadlift", sets=3, reps="8"),
        ]
    )

    assert constraint_violations(day, profile) == ["Romanian Deadlift is on the avoid list"]


def test_low_energy_checkin_turns_fallback_day_into_recovery(gym_profile) -> None:
    day = fallback_day(gym_profile, "monday", CheckIn(date=date(2026, 3, 2), energy=3))
    assert day.workout.focus == ["Recovery"]
    assert day.reason


# ---- adjust_day


def _checkin(**kwargs) -> CheckIn:
    return CheckIn(date=date(2026, 3, 4), **kwargs)


def test_adjust_without_checkin_returns_equal_copy(gym_profile) -> None:
    day = fallback_day(gym_profile, "monday")
    adjusted = adjust_day(day, None, gym_profile)
    assert adjusted == day
    assert adjusted is not day


def test_adjust_low_energy_is_recovery_and_keeps_nutrition(gym_profile) -> None:
    day = fallback_day(gym_profile, "monday")
    adjusted = adjust_day(day, _checkin(energy=3, travel=True), gym_profile)

    assert adjusted.workout.focus == ["Recovery"]
    assert adjusted.nutrition == day.nutrition
    assert "Energy" in adjusted.reason


def test_adjust_travel_uses_bodyweight_circuit(gym_profile) -> None:
    day = fallback_day(gym_profile, "monday")
    adjusted = adjust_day(day, _checkin(energy=7, travel=True), gym_profile)

    assert adjusted.workout.blocks[0].name == "Hotel Circuit"
    bodyweight_only = UserProfile(equipment=["Bodyweight"])
    assert constraint_violations(adjusted, bodyweight_only) == []


def test_adjust_short_sleep_reduces_volume(gym_profile) -> None:
    day = fallback_day(gym_profile, "monday")
    adjusted = adjust_day(day, _checkin(energy=6, sleep_hrs=5), gym_profile)

    before = [i for b in day.workout.blocks for i in b.items if i.sets is not None]
    after = [i for b in adjusted.workout.blocks for i in b.items if i.sets is not None]
    assert [i.exercise for i in before] == [i.exercise for i in after]
    for old, new in zip(before, after, strict=True):
        assert new.sets < old.sets or new.sets == 1
        assert new.rir >= 3
    assert "sleep" in adjusted.reason.lower()


def test_adjust_soreness_skips_affected_patterns(gym_profile) -> None:
    day = fallback_day(gym_profile, "wednesday")
    assert day.workout.focus == ["Legs"]

    adjusted = adjust_day(day, _checkin(energy=6, soreness=["legs"]), gym_profile)

    for name in adjusted.exercises():
        assert classify_exercise(name) not in {"squat", "hinge", "lunge"}
    assert "legs" in adjusted.reason


def test_adjust_soreness_empties_block_into_mobility(bodyweight_profile) -> None:
    day = fallback_day(bodyweight_profile, "monday")
    assert day.workout.focus == ["Push"]

    adjusted = adjust_day(day, _checkin(energy=6, soreness=["chest", "core"]), bodyweight_profile)

    names = [b.name for b in adjusted.workout.blocks]
    assert "Mobility" in names
    assert "Main" not in names
    assert isinstance(validate_day(adjusted.to_wire()), Ok)


def test_adjust_strong_recovery_adds_one_set(bodyweight_profile) -> None:
    day = fallback_day(bodyweight_profile, "monday")
    adjusted = adjust_day(day, _checkin(energy=9, sleep_hrs=8, stress=2), bodyweight_profile)

    main_before = [b for b in day.workout.blocks if b.name == "Main"][0]
    main_after = [b for b in adjusted.workout.blocks if b.name == "Main"][0]
    assert main_after.items[0].sets == main_before.items[0].sets + 1
    assert main_after.items[1:] == main_before.items[1:]
    assert "+1 set" in adjusted.reason


def test_adjust_neutral_checkin_changes_nothing(gym_profile) -> None:
    day = fallback_day(gym_profile, "monday")
    assert adjust_day(day, _checkin(sleep_hrs=8), gym_profile) == day


def test_adjust_is_pure(gym_profile) -> None:
    day = fallback_day(gym_profile, "monday")
    snapshot = day.model_copy(deep=True)
    checkin = _checkin(energy=6, sleep_hrs=5, soreness=["back"])

    first = adjust_day(day, checkin, gym_profile)
    second = adjust_day(day, checkin, gym_profile)

    assert first == second
    assert day == snapshot
