from liftor_engine.models import UserProfile
from liftor_engine.profile_serializer import profile_lines, serialize_profile


def test_minimal_profile_lists_required_fields_only() -> None:
    lines = profile_lines(UserProfile())

    assert lines == [
        "- Goal: General Fitness",
        "- Equipment: Bodyweight only (no weights, machines or bands)",
        "- Training Days: 3 days per week",
        "- Dietary Preference: Non-veg",
        "- Meals per Day: 3",
    ]


def test_each_populated_field_appears_once(gym_profile) -> None:
    profile = gym_profile.model_copy(
        update={
            "avoid_exercises": ["Deadlift"],
            "injuries": "left knee",
            "supplements": ["Creatine"],
            "fasting_window": "16:8",
        }
    )
    lines = profile_lines(profile)

    labels = [line.split(":")[0] for line in lines]
    assert len(labels) == len(set(labels))
    assert "- Equipment: Gym, Dumbbells" in lines
    assert "- Exercises to AVOID: Deadlift" in lines
    assert "- Height: 168 cm" in lines
    assert "- Injuries/Limitations: left knee" in lines
    assert "- Fasting Window: 16:8" in lines


def test_no_fasting_is_omitted() -> None:
    text = serialize_profile(UserProfile(fasting_window="No fasting"))
    assert "Fasting" not in text


def test_serialization_is_deterministic(gym_profile) -> None:
    same = UserProfile.model_validate(gym_profile.model_dump())
    assert serialize_profile(gym_profile) == serialize_profile(same)
