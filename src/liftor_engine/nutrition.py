"""
Energy and macro targets, weekly split and meal naming derived from a profile.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from .models import WEEKDAYS, ActivityLevel, Goal, Sex, UserProfile

# Plausible ranges shared with the validator; the fallback never produces values outside them.
KCAL_RANGE: tuple[float, float] = (800, 6000)
PROTEIN_RANGE: tuple[float, float] = (20, 500)
HYDRATION_RANGE: tuple[float, float] = (0.5, 10)

DEFAULT_BMR = 2000

ACTIVITY_MULTIPLIERS: dict[ActivityLevel, float] = {
    ActivityLevel.SEDENTARY: 1.2,
    ActivityLevel.LIGHTLY_ACTIVE: 1.375,
    ActivityLevel.MODERATELY_ACTIVE: 1.55,
    ActivityLevel.VERY_ACTIVE: 1.725,
    ActivityLevel.EXTRA_ACTIVE: 1.9,
}

GOAL_ADJUSTMENTS: dict[Goal, float] = {
    Goal.WEIGHT_LOSS: 0.85,
    Goal.MUSCLE_GAIN: 1.15,
}

REST = "Rest"
ACTIVE_RECOVERY = "Active Recovery"
_NON_TRAINING = re.compile(r"\b(rest|recovery|off)\b", re.IGNORECASE)

NAMED_SPLITS: dict[str, list[str]] = {
    "ppl": ["Push", "Pull", "Legs", "Push", "Pull", "Legs", REST],
    "push pull legs": ["Push", "Pull", "Legs", "Push", "Pull", "Legs", REST],
    "upper lower": ["Upper Body", "Lower Body", REST, "Upper Body", "Lower Body", REST, REST],
    "full body": ["Full Body", REST, "Full Body", REST, "Full Body", REST, REST],
    "bro split": ["Chest", "Back", "Shoulders", "Arms", "Legs", REST, REST],
}

SPLITS_BY_DAYS: dict[int, list[str]] = {
    1: ["Full Body", REST, REST, REST, REST, REST, REST],
    2: ["Upper Body", REST, REST, "Lower Body", REST, REST, REST],
    3: ["Push", REST, "Pull", REST, "Legs", REST, REST],
    4: ["Upper Body", "Lower Body", REST, "Upper Body", "Lower Body", REST, REST],
    5: ["Push", "Pull", "Legs", "Upper Body", "Lower Body", REST, REST],
    6: ["Push", "Pull", "Legs", "Push", "Pull", "Legs", REST],
    7: ["Push", "Pull", "Legs", "Upper Body", "Lower Body", "Full Body", ACTIVE_RECOVERY],
}

MEAL_NAMES: dict[int, list[str]] = {
    1: ["Main Meal"],
    2: ["First Meal", "Second Meal"],
    3: ["Breakfast", "Lunch", "Dinner"],
    4: ["Breakfast", "Lunch", "Afternoon Snack", "Dinner"],
    5: ["Breakfast", "Morning Snack", "Lunch", "Afternoon Snack", "Dinner"],
    6: ["Breakfast", "Morning Snack", "Lunch", "Afternoon Snack", "Dinner", "Evening Snack"],
    7: [
        "Breakfast",
        "Mid-Morning",
        "Lunch",
        "Afternoon Snack",
        "Post-Workout",
        "Dinner",
        "Before Bed",
    ],
    8: [
        "Breakfast",
        "Snack 1",
        "Lunch",
        "Snack 2",
        "Pre-Workout",
        "Post-Workout",
        "Dinner",
        "Before Bed",
    ],
}


@dataclass(frozen=True)
class NutritionTargets:
    bmr: int
    tdee: int
    kcal: int
    protein_g: int
    hydration_l: float


def _clamp(value: float, bounds: tuple[float, float]) -> float:
    lo, hi = bounds
    return max(lo, min(hi, value))


def calculate_bmr(profile: UserProfile) -> int:
    """Mifflin-St Jeor; a flat default when any input is missing."""
    if not (profile.weight_kg and profile.height_cm and profile.age and profile.sex):
        return DEFAULT_BMR
    base = 10 * profile.weight_kg + 6.25 * profile.height_cm - 5 * profile.age
    return round(base + 5 if profile.sex is Sex.MALE else base - 161)


def calculate_tdee(profile: UserProfile) -> int:
    level = profile.activity_level or ActivityLevel.MODERATELY_ACTIVE
    return round(calculate_bmr(profile) * ACTIVITY_MULTIPLIERS[level])


def calorie_target(profile: UserProfile) -> int:
    if profile.daily_calorie_target:
        kcal = float(profile.daily_calorie_target)
    else:
        kcal = calculate_tdee(profile) * GOAL_ADJUSTMENTS.get(profile.goal, 1.0)
    return round(_clamp(kcal, KCAL_RANGE))


def protein_target(profile: UserProfile) -> int:
    if not profile.weight_kg:
        grams = calorie_target(profile) * 0.3 / 4
    else:
        grams = profile.weight_kg * (2.2 if profile.goal is Goal.MUSCLE_GAIN else 1.8)
    return round(_clamp(grams, PROTEIN_RANGE))


def hydration_target(profile: UserProfile) -> float:
    """Roughly 35 ml per kg of body weight, 2.5 l without a weight."""
    if not profile.weight_kg:
        return 2.5
    return round(_clamp(profile.weight_kg * 0.035, (1.5, 5.0)), 1)


def targets_for(profile: UserProfile) -> NutritionTargets:
    return NutritionTargets(
        bmr=calculate_bmr(profile),
        tdee=calculate_tdee(profile),
        kcal=calorie_target(profile),
        protein_g=protein_target(profile),
        hydration_l=hydration_target(profile),
    )


def weekly_split(profile: UserProfile) -> dict[str, str]:
    """Map each weekday to its training focus."""
    split = None
    if profile.preferred_split:
        split = NAMED_SPLITS.get(profile.preferred_split.strip().lower())
    if split is None:
        split = SPLITS_BY_DAYS[min(max(profile.training_days, 1), 7)]
    return dict(zip(WEEKDAYS, split, strict=True))


def is_training_focus(focus: str) -> bool:
    """False for rest, off and recovery days however the model spells them."""
    return not _NON_TRAINING.search(focus)


def is_training_day(focus: list[str]) -> bool:
    return any(is_training_focus(f) for f in focus)


def meal_names(meal_count: int) -> list[str]:
    return list(MEAL_NAMES.get(meal_count, MEAL_NAMES[3]))
