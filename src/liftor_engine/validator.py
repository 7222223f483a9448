"""
Structural and range checks for parsed plan candidates.
"""

from __future__ import annotations

import math
from typing import Any

from pydantic import ValidationError

from .models import WEEKDAYS, DayPlan
from .nutrition import HYDRATION_RANGE, KCAL_RANGE, PROTEIN_RANGE
from .results import Failure, Ok, SchemaViolation

NUMERIC_BOUNDS: dict[str, tuple[float, float]] = {
    "total_kcal": KCAL_RANGE,
    "protein_g": PROTEIN_RANGE,
    "hydration_l": HYDRATION_RANGE,
}


def _violation(reason: str) -> SchemaViolation:
    return SchemaViolation(reason, reason=reason)


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return False
    return math.isfinite(value)


def _non_empty_list(parent: dict[str, Any], key: str) -> bool:
    value = parent.get(key)
    return isinstance(value, list) and len(value) > 0


def _check_day(day: Any, where: str) -> str | None:
    """Return the first problem with a single day object, or None."""
    if not isinstance(day, dict):
        return f"{where}: day is not an object"

    workout = day.get("workout")
    if not isinstance(workout, dict):
        return f"{where}: missing workout"
    if not _non_empty_list(workout, "blocks"):
        return f"{where}: workout.blocks is empty"

    nutrition = day.get("nutrition")
    if not isinstance(nutrition, dict):
        return f"{where}: missing nutrition"
    if not _non_empty_list(nutrition, "meals"):
        return f"{where}: nutrition.meals is empty"

    if not isinstance(day.get("recovery"), dict):
        return f"{where}: missing recovery"

    for field, (lo, hi) in NUMERIC_BOUNDS.items():
        value = nutrition.get(field)
        if not _is_number(value):
            return f"{where}: nutrition.{field} is not a finite number"
        if not lo <= value <= hi:
            return f"{where}: nutrition.{field}={value} outside {lo:g}-{hi:g}"
    return None


def _decode_day(day: dict[str, Any], where: str) -> Ok[DayPlan] | Failure:
    try:
        return Ok(DayPlan.model_validate(day))
    except ValidationError as e:
        first = e.errors()[0]
        loc = ".".join(str(p) for p in first["loc"])
        return _violation(f"{where}: {loc}: {first['msg']}")


def validate_day(candidate: Any, where: str = "day") -> Ok[DayPlan] | Failure:
    """Single-day contract used by titration (no ``days`` wrapper)."""
    problem = _check_day(candidate, where)
    if problem:
        return _violation(problem)
    return _decode_day(candidate, where)


def validate_week(candidate: Any) -> Ok[dict[str, DayPlan]] | Failure:
    """Full base plan: a ``days`` object with exactly the seven weekday keys."""
    if not isinstance(candidate, dict) or "days" not in candidate:
        return _violation("missing top-level days")
    days = candidate["days"]
    if not isinstance(days, dict):
        return _violation("days is not an object")

    normalized: dict[str, Any] = {}
    for key, value in days.items():
        norm = str(key).strip().lower()
        if norm in normalized:
            return _violation(f"duplicate weekday {norm}")
        normalized[norm] = value

    missing = [d for d in WEEKDAYS if d not in normalized]
    extra = sorted(set(normalized) - set(WEEKDAYS))
    if missing or extra:
        return _violation(f"weekday keys mismatch: missing={missing} extra={extra}")

    decoded: dict[str, DayPlan] = {}
    for weekday in WEEKDAYS:
        result = validate_day(normalized[weekday], weekday)
        if not isinstance(result, Ok):
            return result
        decoded[weekday] = result.value
    return Ok(decoded)
