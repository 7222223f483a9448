"""
Pydantic models for profiles, check-ins and the plan JSON contract.
"""

from __future__ import annotations

import enum
import logging
import re
from datetime import UTC, date, datetime
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

WEEKDAYS: tuple[str, ...] = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


def weekday_key(day: date) -> str:
    """Canonical plan key for a calendar date."""
    return WEEKDAYS[day.weekday()]


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class Goal(str, enum.Enum):
    WEIGHT_LOSS = "WEIGHT_LOSS"
    MUSCLE_GAIN = "MUSCLE_GAIN"
    ENDURANCE = "ENDURANCE"
    GENERAL_FITNESS = "GENERAL_FITNESS"
    FLEXIBILITY_MOBILITY = "FLEXIBILITY_MOBILITY"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()


class Equipment(str, enum.Enum):
    DUMBBELLS = "Dumbbells"
    BANDS = "Bands"
    BODYWEIGHT = "Bodyweight"
    GYM = "Gym"


class DietaryPref(str, enum.Enum):
    VEGETARIAN = "Vegetarian"
    EGGITARIAN = "Eggitarian"
    NON_VEG = "Non-veg"


# Most restrictive first; a multi-valued list collapses to its strictest entry.
DIET_STRICTNESS: tuple[DietaryPref, ...] = (
    DietaryPref.VEGETARIAN,
    DietaryPref.EGGITARIAN,
    DietaryPref.NON_VEG,
)


class Sex(str, enum.Enum):
    MALE = "Male"
    FEMALE = "Female"


class ActivityLevel(str, enum.Enum):
    SEDENTARY = "Sedentary"
    LIGHTLY_ACTIVE = "Lightly Active"
    MODERATELY_ACTIVE = "Moderately Active"
    VERY_ACTIVE = "Very Active"
    EXTRA_ACTIVE = "Extra Active"


class WorkoutIntensity(str, enum.Enum):
    OPTIMAL = "Optimal"
    EGO_LIFTS = "Ego lifts"
    RECOVERY_FOCUSED = "Recovery focused"


class TrainingLevel(str, enum.Enum):
    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    PROFESSIONAL = "Professional"


class WokeFeeling(str, enum.Enum):
    TIRED = "Tired"
    REFRESHED = "Refreshed"
    WIRED = "Wired"


class PlanStatus(str, enum.Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"


class PlanSource(str, enum.Enum):
    AI = "ai"
    FALLBACK = "fallback"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---- inputs -------------------------------------------------------------------


class UserProfile(_CamelModel):
    """Caller-owned profile; immutable input to generation."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    goal: Goal = Goal.GENERAL_FITNESS
    equipment: list[Equipment] = Field(default_factory=lambda: [Equipment.BODYWEIGHT])
    dietary_prefs: list[DietaryPref] = Field(default_factory=lambda: [DietaryPref.NON_VEG])
    training_days: int = Field(3, ge=1, le=7)

    age: int | None = Field(None, ge=10, le=100)
    sex: Sex | None = None
    height_cm: float | None = Field(None, gt=0, le=260)
    weight_kg: float | None = Field(None, gt=0, le=400)
    goal_weight_kg: float | None = Field(None, gt=0, le=400)
    activity_level: ActivityLevel | None = None
    daily_calorie_target: int | None = Field(None, gt=0)

    avoid_exercises: list[str] = Field(default_factory=list)
    preferred_exercises: list[str] = Field(default_factory=list)
    session_length: int | None = Field(None, ge=10, le=240)
    fasting_window: str | None = None
    meal_count: int = Field(3, ge=1, le=8)
    special_requests: str | None = None
    workout_intensity: WorkoutIntensity | None = None
    workout_intensity_level: int | None = Field(None, ge=1, le=10)
    training_level: TrainingLevel | None = None

    name: str | None = None
    dietary_notes: str | None = None
    injuries: str | None = None
    supplements: list[str] = Field(default_factory=list)
    preferred_split: str | None = None
    plan_regeneration_request: str | None = None

    @field_validator("equipment")
    @classmethod
    def dedupe_equipment(cls, v: list[Equipment]) -> list[Equipment]:
        seen: list[Equipment] = []
        for item in v:
            if item not in seen:
                seen.append(item)
        return seen or [Equipment.BODYWEIGHT]

    @field_validator("dietary_prefs")
    @classmethod
    def single_dietary_pref(cls, v: list[DietaryPref]) -> list[DietaryPref]:
        if not v:
            return [DietaryPref.NON_VEG]
        if len(set(v)) > 1:
            strictest = next(p for p in DIET_STRICTNESS if p in v)
            logger.info(
                "Collapsing dietary preferences %s to %s", [p.value for p in v], strictest.value
            )
            return [strictest]
        return [v[0]]

    @field_validator("avoid_exercises", "preferred_exercises", "supplements")
    @classmethod
    def strip_entries(cls, v: list[str]) -> list[str]:
        return [s.strip() for s in v if s and s.strip()]

    @property
    def dietary_pref(self) -> DietaryPref:
        return self.dietary_prefs[0]


class CheckIn(_CamelModel):
    """A user's daily wellness snapshot; read-only for the engine."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    date: date
    energy: int | None = Field(None, ge=1, le=10)
    stress: int | None = Field(None, ge=1, le=10)
    sleep_hrs: float | None = Field(None, ge=0, le=24)
    woke_feeling: WokeFeeling | None = None
    soreness: list[str] = Field(default_factory=list)
    mood: int | str | None = None
    motivation: int | None = Field(None, ge=1, le=10)
    weight_kg: float | None = Field(None, gt=0, le=400)
    travel: bool = False


# ---- plan JSON contract -------------------------------------------------------

_FIRST_INT = re.compile(r"-?\d+")


def _leading_int(value: Any) -> Any:
    """Accept "2-3" style ranges the model likes to emit for integer fields."""
    if isinstance(value, str):
        m = _FIRST_INT.search(value)
        return int(m.group()) if m else None
    return value


class _PlanModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)


class ExerciseItem(_PlanModel):
    exercise: str = Field(..., min_length=1)
    sets: int | None = Field(None, ge=1, le=20)
    reps: str | None = None
    rir: int | None = Field(None, alias="RIR", ge=0, le=10)

    @field_validator("sets", "rir", mode="before")
    @classmethod
    def parse_int_like(cls, v: Any) -> Any:
        return _leading_int(v)


class Block(_PlanModel):
    name: str
    items: list[ExerciseItem]


class WorkoutPlan(_PlanModel):
    focus: list[str]
    blocks: list[Block]
    notes: str | None = None


class MealItem(_PlanModel):
    food: str = Field(..., min_length=1)
    qty: str | None = None


class Meal(_PlanModel):
    name: str
    items: list[MealItem]


class NutritionPlan(_PlanModel):
    total_kcal: int | float
    protein_g: int | float
    meals: list[Meal]
    hydration_l: int | float


class RecoveryPlan(_PlanModel):
    mobility: list[str]
    sleep: list[str]
    supplements: list[str] | None = None
    care_notes: str | None = Field(None, alias="careNotes")


class DayPlan(_PlanModel):
    workout: WorkoutPlan
    nutrition: NutritionPlan
    recovery: RecoveryPlan
    # Why the rules changed this day; kept off the wire and out of storage.
    reason: str | None = Field(None, exclude=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def exercises(self) -> list[str]:
        return [item.exercise for block in self.workout.blocks for item in block.items]


# ---- versioned plans ----------------------------------------------------------


class PlanStats(_CamelModel):
    weight_change_kg: float | None = None
    consistency_percent: int | None = None
    days_active: int | None = None
    total_workouts: int | None = None


class WeeklyBasePlan(_CamelModel):
    id: str = Field(default_factory=lambda: uuid4().hex)
    created_at: datetime
    name: str | None = None
    days: dict[str, DayPlan]
    is_active: bool = False
    is_locked: bool = False
    status: PlanStatus = PlanStatus.ARCHIVED
    stats: PlanStats | None = None
    activated_at: datetime | None = None
    deactivated_at: datetime | None = None
    source: PlanSource = PlanSource.AI

    @field_validator("created_at", "activated_at", "deactivated_at")
    @classmethod
    def utc_timestamps(cls, v: datetime | None) -> datetime | None:
        return _as_utc(v)

    @field_validator("days")
    @classmethod
    def seven_canonical_days(cls, v: dict[str, DayPlan]) -> dict[str, DayPlan]:
        if set(v) != set(WEEKDAYS):
            raise ValueError(f"days must be exactly {', '.join(WEEKDAYS)}")
        return {key: v[key] for key in WEEKDAYS}

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
