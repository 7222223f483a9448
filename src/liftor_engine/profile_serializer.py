"""
Render a UserProfile as the bullet list the prompts embed.

Every populated field produces exactly one line, in a fixed order, so two equal
profiles always serialize to the same text.
"""

from __future__ import annotations

from .models import Equipment, UserProfile


def _join(values: list[str]) -> str:
    return ", ".join(values)


def profile_lines(profile: UserProfile) -> list[str]:
    """One ``- Label: value`` line per populated profile field."""
    lines: list[str] = []

    def add(label: str, value: object | None) -> None:
        if value is None or value == "" or value == []:
            return
        lines.append(f"- {label}: {value}")

    add("Name", profile.name)
    add("Goal", profile.goal.label)
    equipment = [e.value for e in profile.equipment]
    if equipment == [Equipment.BODYWEIGHT.value]:
        add("Equipment", "Bodyweight only (no weights, machines or bands)")
    else:
        add("Equipment", _join(equipment))
    add("Training Days", f"{profile.training_days} days per week")
    if profile.session_length:
        add("Session Length Cap", f"{profile.session_length} minutes")
    add("Dietary Preference", profile.dietary_pref.value)
    add("Dietary Notes", profile.dietary_notes)
    add("Exercises to AVOID", _join(profile.avoid_exercises))
    add("Preferred Exercises", _join(profile.preferred_exercises))

    if profile.age:
        add("Age", f"{profile.age} years")
    if profile.sex:
        add("Sex", profile.sex.value)
    if profile.height_cm:
        add("Height", f"{profile.height_cm:g} cm")
    if profile.weight_kg:
        add("Weight", f"{profile.weight_kg:g} kg")
    if profile.goal_weight_kg:
        add("Goal Weight", f"{profile.goal_weight_kg:g} kg")
    if profile.activity_level:
        add("Activity Level", profile.activity_level.value)
    if profile.daily_calorie_target:
        add("Daily Calorie Target", f"{profile.daily_calorie_target} kcal")

    add("Meals per Day", profile.meal_count)
    if profile.fasting_window and profile.fasting_window.lower() != "no fasting":
        add("Fasting Window", profile.fasting_window)
    if profile.training_level:
        add("Experience Level", profile.training_level.value)
    if profile.workout_intensity:
        add("Intensity Preference", profile.workout_intensity.value)
    if profile.workout_intensity_level:
        add("Intensity Level", f"{profile.workout_intensity_level}/10")
    add("Preferred Split", profile.preferred_split)
    add("Injuries/Limitations", profile.injuries)
    add("Current Supplements", _join(profile.supplements))
    add("Special Requests", profile.special_requests)
    add("Regeneration Request", profile.plan_regeneration_request)
    return lines


def serialize_profile(profile: UserProfile) -> str:
    return "\n".join(profile_lines(profile))
