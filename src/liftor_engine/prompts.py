"""
System/user message pairs for base-plan generation and daily titration.

Both builders are pure: the same inputs always produce byte-identical prompts.
"""

from __future__ import annotations

import json
from dataclasses import dataclass

from .models import WEEKDAYS, CheckIn, DayPlan, DietaryPref, Equipment, UserProfile
from .nutrition import meal_names, targets_for, weekly_split
from .profile_serializer import serialize_profile


@dataclass(frozen=True)
class Prompt:
    system: str
    user: str


BASE_SYSTEM = (
    "You are an expert strength coach and sports nutritionist. "
    "You design complete 7-day training, nutrition and recovery plans. "
    "Respond with a single JSON object and nothing else: no markdown, no commentary."
)

TITRATION_SYSTEM = (
    "You are a careful coach adjusting one day of an existing plan to today's check-in. "
    "Make small, rule-bounded changes only. "
    "Respond with a single JSON object for that one day and nothing else."
)

DIETARY_RULES: dict[DietaryPref, str] = {
    DietaryPref.VEGETARIAN: (
        "VEGETARIAN: no meat, chicken, fish, seafood or eggs in any meal. "
        "Use dairy, legumes, tofu, tempeh, paneer and grains for protein."
    ),
    DietaryPref.EGGITARIAN: (
        "EGGITARIAN: eggs and dairy are allowed; no meat, chicken, fish or seafood."
    ),
    DietaryPref.NON_VEG: (
        "NON-VEG: all foods allowed; include lean meats, fish, eggs and dairy for protein."
    ),
}

TITRATION_RULES = """\
| Condition | Adjustment |
|---|---|
| energy < 5 or sleep < 6 h | reduce volume 20-30%, keep RIR >= 3, no intensity techniques |
| soreness in an area | substitute or skip movements that load that area |
| travelling | short bodyweight session, 20-30 minutes |
| energy >= 8, sleep >= 7 h, stress <= 4, no soreness | one added set on the first main exercise |
| otherwise | keep the day as written |"""

DAY_CONTRACT = """\
{
  "workout": {"focus": [string], "blocks": [{"name": string, "items": [{"exercise": string, "sets": number, "reps": string, "RIR": number}]}], "notes": string},
  "nutrition": {"total_kcal": number, "protein_g": number, "meals": [{"name": string, "items": [{"food": string, "qty": string}]}], "hydration_l": number},
  "recovery": {"mobility": [string], "sleep": [string], "supplements": [string], "careNotes": string}
}"""

BASE_CONTRACT = (
    '{"days": {'
    + ", ".join(f'"{d}": <day>' for d in WEEKDAYS)
    + "}}\nwhere every <day> is:\n"
    + DAY_CONTRACT
)


def _hard_constraints(profile: UserProfile) -> list[str]:
    lines = [
        f"- Use ONLY this equipment: {', '.join(e.value for e in profile.equipment)}",
        f"- Goal: {profile.goal.label}",
        f"- Exactly {profile.training_days} training days; other days are rest or recovery",
        f"- Dietary preference: {DIETARY_RULES[profile.dietary_pref]}",
    ]
    if Equipment.GYM in profile.equipment:
        lines.insert(1, "- Gym means a full gym: barbells, dumbbells, cables, machines and bands")
    if profile.session_length:
        lines.append(f"- Every session must fit in {profile.session_length} minutes")
    if profile.avoid_exercises:
        lines.append(f"- NEVER include: {', '.join(profile.avoid_exercises)}")
    if profile.preferred_exercises:
        preferred = ", ".join(profile.preferred_exercises)
        lines.append(f"- Prefer these exercises when suitable: {preferred}")
    return lines


def build_base_plan_prompt(profile: UserProfile) -> Prompt:
    targets = targets_for(profile)
    split = weekly_split(profile)
    meals = meal_names(profile.meal_count)

    sections = [
        "## USER PROFILE",
        serialize_profile(profile),
        "",
        "## HARD CONSTRAINTS",
        *_hard_constraints(profile),
        "",
        "## NUTRITION TARGETS",
        f"- Daily calories: {targets.kcal} kcal (BMR {targets.bmr}, TDEE {targets.tdee})",
        f"- Daily protein: {targets.protein_g} g",
        f"- Hydration: {targets.hydration_l:g} l",
        f"- Exactly {len(meals)} meals per day named: {', '.join(meals)}",
        "",
        "## WEEKLY SPLIT",
        *(f"- {day}: {focus}" for day, focus in split.items()),
        "",
        "## OUTPUT FORMAT",
        "Return exactly this JSON shape with all seven lowercase weekday keys:",
        BASE_CONTRACT,
    ]
    return Prompt(system=BASE_SYSTEM, user="\n".join(sections))


def _checkin_lines(checkin: CheckIn) -> list[str]:
    lines = [f"- Date: {checkin.date.isoformat()}"]
    if checkin.energy is not None:
        lines.append(f"- Energy: {checkin.energy}/10")
    if checkin.stress is not None:
        lines.append(f"- Stress: {checkin.stress}/10")
    if checkin.sleep_hrs is not None:
        lines.append(f"- Sleep: {checkin.sleep_hrs:g} h")
    if checkin.woke_feeling is not None:
        lines.append(f"- Woke feeling: {checkin.woke_feeling.value}")
    if checkin.soreness:
        lines.append(f"- Soreness: {', '.join(checkin.soreness)}")
    if checkin.mood is not None:
        lines.append(f"- Mood: {checkin.mood}")
    if checkin.motivation is not None:
        lines.append(f"- Motivation: {checkin.motivation}/10")
    if checkin.travel:
        lines.append("- Travelling today")
    return lines


def build_titration_prompt(
    profile: UserProfile, weekday: str, day: DayPlan, checkin: CheckIn
) -> Prompt:
    wire = day.to_wire()
    sections = [
        "## USER PROFILE",
        serialize_profile(profile),
        "",
        "## HARD CONSTRAINTS",
        *_hard_constraints(profile),
        "",
        f"## TODAY'S CHECK-IN ({weekday})",
        *_checkin_lines(checkin),
        "",
        "## CURRENT WORKOUT",
        json.dumps(wire["workout"], ensure_ascii=False),
        "",
        "## CURRENT NUTRITION",
        json.dumps(wire["nutrition"], ensure_ascii=False),
        "",
        "## ADJUSTMENT RULES",
        TITRATION_RULES,
        "",
        "## OUTPUT FORMAT",
        "Return the adjusted day as a single JSON object of this shape (no days wrapper):",
        DAY_CONTRACT,
    ]
    return Prompt(system=TITRATION_SYSTEM, user="\n".join(sections))
