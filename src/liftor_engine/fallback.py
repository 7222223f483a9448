"""
Deterministic, network-free plan construction.

``fallback_week`` builds a full 7-day plan from a profile and ``adjust_day``
applies the rule table to an existing day. Both are pure: equal inputs give
equal outputs, and every result passes :mod:`liftor_engine.validator`.
"""

from __future__ import annotations

import logging
import re

from .models import (
    WEEKDAYS,
    Block,
    CheckIn,
    DayPlan,
    DietaryPref,
    Equipment,
    ExerciseItem,
    Goal,
    Meal,
    MealItem,
    NutritionPlan,
    RecoveryPlan,
    TrainingLevel,
    UserProfile,
    WorkoutIntensity,
    WorkoutPlan,
)
from .nutrition import is_training_focus, meal_names, targets_for, weekly_split

logger = logging.getLogger(__name__)

# ---- exercise taxonomy --------------------------------------------------------

PUSH, PULL, SQUAT, HINGE, LUNGE, CORE, CONDITIONING = (
    "push",
    "pull",
    "squat",
    "hinge",
    "lunge",
    "core",
    "conditioning",
)

# Ranked richest first; the primary pool is the best equipment the user has.
EQUIPMENT_RANK: tuple[Equipment, ...] = (
    Equipment.GYM,
    Equipment.DUMBBELLS,
    Equipment.BANDS,
    Equipment.BODYWEIGHT,
)

EXERCISES: dict[Equipment, dict[str, list[str]]] = {
    Equipment.GYM: {
        PUSH: ["Barbell Bench Press", "Overhead Press", "Incline Bench Press"],
        PULL: ["Lat Pulldown", "Seated Cable Row", "Face Pull"],
        SQUAT: ["Back Squat", "Leg Press", "Front Squat"],
        HINGE: ["Barbell Romanian Deadlift", "Hamstring Curl"],
        LUNGE: ["Barbell Walking Lunge"],
        CORE: ["Cable Pallof Press", "Hanging Leg Raise"],
        CONDITIONING: ["Assault Bike", "Row Erg"],
    },
    Equipment.DUMBBELLS: {
        PUSH: ["DB Bench Press", "DB Shoulder Press", "DB Incline Press"],
        PULL: ["DB Row", "DB Rear Delt Fly", "DB Pullover"],
        SQUAT: ["DB Goblet Squat"],
        HINGE: ["DB Romanian Deadlift"],
        LUNGE: ["DB Lunge", "DB Split Squat"],
        CORE: ["DB Russian Twist", "DB Farmer Carry"],
        CONDITIONING: ["DB Thrusters"],
    },
    Equipment.BANDS: {
        PUSH: ["Band Chest Press", "Band Shoulder Press"],
        PULL: ["Band Rows", "Band Pulldowns", "Band Face Pulls"],
        SQUAT: ["Band Squats"],
        HINGE: ["Band Romanian Deadlifts"],
        LUNGE: ["Band Lunges"],
        CORE: ["Band Pallof Press", "Band Woodchop"],
        CONDITIONING: [],
    },
    Equipment.BODYWEIGHT: {
        PUSH: ["Push-ups", "Pike Push-ups", "Incline Push-ups"],
        PULL: ["Inverted Rows", "Pull-ups", "Superman Hold"],
        SQUAT: ["Bodyweight Squats", "Wall Sit"],
        HINGE: ["Hip Bridges", "Single-Leg Hip Bridge"],
        LUNGE: ["Reverse Lunges", "Bodyweight Split Squat"],
        CORE: ["Plank", "Hollow Hold", "Dead Bug"],
        CONDITIONING: ["Burpees", "Mountain Climbers"],
    },
}

# Name fragments that need equipment; checked on every exercise a model returns.
EQUIPMENT_MARKERS: dict[Equipment, re.Pattern[str]] = {
    Equipment.GYM: re.compile(
        r"\b(barbell|cable|machine|smith|leg press|lat pulldown|kettlebell|erg|assault bike"
        r"|hamstring curl|leg extension|pec deck|t-bar)\b",
        re.IGNORECASE,
    ),
    Equipment.DUMBBELLS: re.compile(r"\b(dumbbells?|db)\b", re.IGNORECASE),
    Equipment.BANDS: re.compile(r"\b(bands?|resistance band)\b", re.IGNORECASE),
}

# Ordered: the first matching pattern wins ("leg press" is a squat, "pallof press" is core).
_PATTERN_KEYWORDS: tuple[tuple[str, re.Pattern[str]], ...] = (
    (LUNGE, re.compile(r"lunge|split squat|step-?up", re.IGNORECASE)),
    (SQUAT, re.compile(r"squat|leg press|wall sit|calf|leg extension", re.IGNORECASE)),
    (HINGE, re.compile(r"deadlift|bridge|hip thrust|good morning|hamstring|swing", re.IGNORECASE)),
    (
        CORE,
        re.compile(
            r"plank|hollow|dead bug|pallof|twist|crunch|leg raise|woodchop|carry|sit-?up",
            re.IGNORECASE,
        ),
    ),
    (
        PULL,
        re.compile(
            r"row|pulldown|pull-?up|chin-?up|face pull|rear delt|pullover|curl|superman",
            re.IGNORECASE,
        ),
    ),
    (PUSH, re.compile(r"press|push-?up|dip|fly|bench|raise|triceps|extension", re.IGNORECASE)),
    (CONDITIONING, re.compile(r"burpee|climber|bike|erg|sprint|jump|thruster", re.IGNORECASE)),
)

SORENESS_PATTERNS: dict[str, frozenset[str]] = {
    "chest": frozenset({PUSH}),
    "shoulders": frozenset({PUSH}),
    "triceps": frozenset({PUSH}),
    "back": frozenset({PULL, HINGE}),
    "biceps": frozenset({PULL}),
    "legs": frozenset({SQUAT, HINGE, LUNGE}),
    "glutes": frozenset({HINGE, LUNGE, SQUAT}),
    "core": frozenset({CORE}),
}

AREA_MOBILITY: dict[str, list[str]] = {
    "chest": ["Doorway Chest Stretch", "Thoracic Extensions"],
    "shoulders": ["Shoulder CARs", "Wall Slides"],
    "triceps": ["Overhead Triceps Stretch"],
    "back": ["Cat-Cow", "Child's Pose"],
    "biceps": ["Wall Biceps Stretch"],
    "legs": ["Quad Stretch", "Hamstring Stretch"],
    "glutes": ["Figure-4 Stretch", "Pigeon Pose"],
    "core": ["Cobra Stretch", "Cat-Cow"],
}

FOCUS_PATTERNS: dict[str, list[str]] = {
    "Push": [PUSH, PUSH, PUSH, CORE, PUSH],
    "Pull": [PULL, PULL, PULL, CORE, PULL],
    "Legs": [SQUAT, HINGE, LUNGE, CORE, SQUAT],
    "Upper Body": [PUSH, PULL, PUSH, PULL, CORE],
    "Lower Body": [SQUAT, HINGE, LUNGE, CORE, HINGE],
    "Full Body": [SQUAT, PUSH, PULL, HINGE, CORE],
    "Chest": [PUSH, PUSH, PUSH, CORE, PUSH],
    "Back": [PULL, PULL, HINGE, PULL, CORE],
    "Shoulders": [PUSH, PULL, PUSH, CORE, PULL],
    "Arms": [PULL, PUSH, PULL, PUSH, CORE],
}

WARMUP = ["Arm Circles", "Leg Swings", "Cat-Cow"]
RECOVERY_ITEMS = ["Easy Walk", "Mobility Flow", "Deep Breathing"]
TRAVEL_CIRCUIT = [PUSH, SQUAT, CORE, LUNGE]

REPS_BY_GOAL: dict[Goal, str] = {
    Goal.MUSCLE_GAIN: "8-12",
    Goal.WEIGHT_LOSS: "12-15",
    Goal.ENDURANCE: "15-20",
    Goal.GENERAL_FITNESS: "10-12",
    Goal.FLEXIBILITY_MOBILITY: "10-12",
}

SETS_RIR_BY_LEVEL: dict[TrainingLevel, tuple[int, int]] = {
    TrainingLevel.BEGINNER: (3, 3),
    TrainingLevel.INTERMEDIATE: (3, 2),
    TrainingLevel.PROFESSIONAL: (4, 1),
}


def classify_exercise(name: str) -> str | None:
    """Movement pattern of an exercise name, or None when unknown."""
    for pattern, regex in _PATTERN_KEYWORDS:
        if regex.search(name):
            return pattern
    return None


def _is_avoided(name: str, avoid: list[str]) -> bool:
    lowered = name.lower()
    return any(a.lower() in lowered for a in avoid)


def available_equipment(profile: UserProfile) -> list[Equipment]:
    """Profile equipment in rank order; bodyweight is always available."""
    have = set(profile.equipment) | {Equipment.BODYWEIGHT}
    return [e for e in EQUIPMENT_RANK if e in have]


def exercise_pool(profile: UserProfile, pattern: str) -> list[str]:
    pool: list[str] = []
    for equipment in available_equipment(profile):
        pool.extend(EXERCISES[equipment][pattern])
    return [name for name in pool if not _is_avoided(name, profile.avoid_exercises)]


def constraint_violations(day: DayPlan, profile: UserProfile) -> list[str]:
    """
    Exercises in ``day`` that need missing equipment or are on the avoid list.

    A profile with Gym has every piece of equipment, so only the avoid list applies.
    """
    if Equipment.GYM in profile.equipment:
        missing: list[Equipment] = []
    else:
        missing = [e for e in EQUIPMENT_MARKERS if e not in profile.equipment]
    problems: list[str] = []
    for name in day.exercises():
        for equipment in missing:
            if EQUIPMENT_MARKERS[equipment].search(name):
                problems.append(f"{name} needs {equipment.value}")
                break
        else:
            if _is_avoided(name, profile.avoid_exercises):
                problems.append(f"{name} is on the avoid list")
    return problems


def main_exercise_count(session_length: int | None) -> int:
    if session_length is None:
        return 4
    if session_length <= 30:
        return 2
    if session_length <= 45:
        return 3
    if session_length <= 60:
        return 4
    return 5


def _sets_and_rir(profile: UserProfile) -> tuple[int, int]:
    sets, rir = SETS_RIR_BY_LEVEL.get(profile.training_level or TrainingLevel.INTERMEDIATE)
    if profile.workout_intensity is WorkoutIntensity.RECOVERY_FOCUSED:
        rir += 1
    return sets, rir


def _filtered(names: list[str], avoid: list[str], default: str) -> list[str]:
    kept = [n for n in names if not _is_avoided(n, avoid)]
    return kept or [default]


def _warmup_block(profile: UserProfile) -> Block:
    names = _filtered(WARMUP, profile.avoid_exercises, "Dynamic Warm-up")
    return Block(name="Warm-up", items=[ExerciseItem(exercise=n, reps="30s") for n in names])


def _recovery_block(profile: UserProfile, name: str = "Active Recovery") -> Block:
    names = _filtered(RECOVERY_ITEMS, profile.avoid_exercises, "Deep Breathing")
    return Block(name=name, items=[ExerciseItem(exercise=n, reps="10-20 min") for n in names])


def _main_block(profile: UserProfile, focus: str, day_index: int) -> Block | None:
    patterns = FOCUS_PATTERNS.get(focus, FOCUS_PATTERNS["Full Body"])
    sets, rir = _sets_and_rir(profile)
    reps = REPS_BY_GOAL[profile.goal]
    used: set[str] = set()
    items: list[ExerciseItem] = []
    for slot, pattern in enumerate(patterns[: main_exercise_count(profile.session_length)]):
        pool = [n for n in exercise_pool(profile, pattern) if n not in used]
        if not pool:
            continue
        name = pool[(day_index + slot) % len(pool)]
        used.add(name)
        items.append(ExerciseItem(exercise=name, sets=sets, reps=reps, rir=rir))
    if not items:
        return None
    return Block(name="Main", items=items)


def _conditioning_block(profile: UserProfile, day_index: int) -> Block | None:
    if profile.goal not in (Goal.WEIGHT_LOSS, Goal.ENDURANCE):
        return None
    if profile.session_length is not None and profile.session_length < 45:
        return None
    pool = exercise_pool(profile, CONDITIONING)
    if not pool:
        return None
    name = pool[day_index % len(pool)]
    return Block(name="Conditioning", items=[ExerciseItem(exercise=name, sets=3, reps="40s")])


def _workout(profile: UserProfile, focus: str, day_index: int) -> WorkoutPlan:
    if not is_training_focus(focus):
        return WorkoutPlan(
            focus=[focus],
            blocks=[_recovery_block(profile)],
            notes="Keep it easy; movement and mobility only.",
        )
    blocks = [_warmup_block(profile)]
    main = _main_block(profile, focus, day_index)
    if main is not None:
        blocks.append(main)
    finisher = _conditioning_block(profile, day_index)
    if finisher is not None:
        blocks.append(finisher)
    notes = None
    if profile.session_length:
        notes = f"Fits in {profile.session_length} minutes."
    return WorkoutPlan(focus=[focus], blocks=blocks, notes=notes)


# ---- meals --------------------------------------------------------------------

# Each diet owns its own templates; no template is shared between diets.
MEAL_TEMPLATES: dict[DietaryPref, dict[str, list[list[tuple[str, str]]]]] = {
    DietaryPref.VEGETARIAN: {
        "breakfast": [
            [("Rolled oats", "80 g"), ("Greek yogurt", "200 g"), ("Berries", "100 g")],
            [("Paneer bhurji", "150 g"), ("Whole-wheat toast", "2 slices")],
        ],
        "main": [
            [("Lentil dal", "250 g"), ("Brown rice", "150 g"), ("Mixed salad", "1 bowl")],
            [("Tofu stir-fry", "200 g"), ("Quinoa", "150 g"), ("Broccoli", "100 g")],
            [("Chickpea curry", "250 g"), ("Whole-wheat roti", "2 pieces")],
        ],
        "snack": [
            [("Roasted chickpeas", "40 g"), ("Apple", "1 medium")],
            [("Cottage cheese", "150 g"), ("Walnuts", "20 g")],
        ],
        "bedtime": [[("Warm milk", "250 ml"), ("Almonds", "15 g")]],
    },
    DietaryPref.EGGITARIAN: {
        "breakfast": [
            [("Scrambled eggs", "3 eggs"), ("Whole-wheat toast", "2 slices"), ("Spinach", "50 g")],
            [("Vegetable omelette", "3 eggs"), ("Rolled oats", "60 g")],
        ],
        "main": [
            [("Egg curry", "2 eggs"), ("Brown rice", "150 g"), ("Cucumber salad", "1 bowl")],
            [("Paneer tikka", "150 g"), ("Quinoa", "150 g"), ("Roasted vegetables", "150 g")],
            [("Rajma", "250 g"), ("Jeera rice", "150 g")],
        ],
        "snack": [
            [("Boiled eggs", "2 eggs"), ("Orange", "1 medium")],
            [("Greek yogurt", "200 g"), ("Peanuts", "20 g")],
        ],
        "bedtime": [[("Casein shake with milk", "250 ml")]],
    },
    DietaryPref.NON_VEG: {
        "breakfast": [
            [("Eggs", "3 eggs"), ("Turkey bacon", "2 slices"), ("Whole-wheat toast", "2 slices")],
            [("Greek yogurt", "200 g"), ("Granola", "40 g"), ("Banana", "1 medium")],
        ],
        "main": [
            [("Grilled chicken breast", "180 g"), ("Brown rice", "150 g"), ("Greens", "100 g")],
            [("Baked salmon", "160 g"), ("Sweet potato", "200 g"), ("Asparagus", "100 g")],
            [("Lean beef stir-fry", "160 g"), ("Jasmine rice", "150 g"), ("Peppers", "100 g")],
        ],
        "snack": [
            [("Tuna on rice cakes", "1 can"), ("Cherry tomatoes", "100 g")],
            [("Protein shake", "1 scoop"), ("Apple", "1 medium")],
        ],
        "bedtime": [[("Cottage cheese", "150 g")]],
    },
}


def _meal_slot(name: str) -> str:
    lowered = name.lower()
    if "breakfast" in lowered or lowered == "first meal":
        return "breakfast"
    if "bed" in lowered:
        return "bedtime"
    if lowered in ("lunch", "dinner", "main meal", "second meal"):
        return "main"
    return "snack"


def _meals(profile: UserProfile, day_index: int) -> list[Meal]:
    templates = MEAL_TEMPLATES[profile.dietary_pref]
    meals: list[Meal] = []
    slot_seen: dict[str, int] = {}
    for name in meal_names(profile.meal_count):
        slot = _meal_slot(name)
        options = templates[slot]
        n = slot_seen.get(slot, 0)
        slot_seen[slot] = n + 1
        chosen = options[(day_index + n) % len(options)]
        meals.append(Meal(name=name, items=[MealItem(food=f, qty=q) for f, q in chosen]))
    return meals


def _nutrition(profile: UserProfile, day_index: int) -> NutritionPlan:
    targets = targets_for(profile)
    return NutritionPlan(
        total_kcal=targets.kcal,
        protein_g=targets.protein_g,
        meals=_meals(profile, day_index),
        hydration_l=targets.hydration_l,
    )


def _recovery(profile: UserProfile, focus: str) -> RecoveryPlan:
    mobility = ["Hip flexor stretch", "Thoracic rotations"]
    if not is_training_focus(focus):
        mobility = ["Full-body mobility flow", "Foam roll 10 min"]
    care = f"Work around: {profile.injuries}" if profile.injuries else None
    return RecoveryPlan(
        mobility=mobility,
        sleep=["7-9 hours in bed", "Same wake time every day"],
        supplements=list(profile.supplements) or None,
        care_notes=care,
    )


def fallback_day(
    profile: UserProfile, weekday: str, checkin: CheckIn | None = None
) -> DayPlan:
    """One day of the fallback week; low energy turns it into a recovery day."""
    day_index = WEEKDAYS.index(weekday)
    focus = weekly_split(profile)[weekday]
    if checkin is not None and checkin.energy is not None and checkin.energy < 5:
        return DayPlan(
            workout=WorkoutPlan(
                focus=["Recovery"],
                blocks=[_recovery_block(profile, "Recovery")],
                notes="Low energy today; recovery only.",
            ),
            nutrition=_nutrition(profile, day_index),
            recovery=_recovery(profile, "Recovery"),
            reason="Energy below 5",
        )
    return DayPlan(
        workout=_workout(profile, focus, day_index),
        nutrition=_nutrition(profile, day_index),
        recovery=_recovery(profile, focus),
    )


def fallback_week(profile: UserProfile) -> dict[str, DayPlan]:
    logger.info(
        "Building fallback week: equipment=%s diet=%s goal=%s",
        [e.value for e in profile.equipment],
        profile.dietary_pref.value,
        profile.goal.value,
    )
    return {weekday: fallback_day(profile, weekday) for weekday in WEEKDAYS}


# ---- rule-based titration -----------------------------------------------------


def _affected_patterns(areas: list[str]) -> tuple[set[str], list[str]]:
    patterns: set[str] = set()
    unknown: list[str] = []
    for area in areas:
        key = area.strip().lower()
        if key in SORENESS_PATTERNS:
            patterns |= SORENESS_PATTERNS[key]
        elif key:
            unknown.append(key)
    return patterns, unknown


def _is_sore(name: str, patterns: set[str], unknown: list[str]) -> bool:
    if classify_exercise(name) in patterns:
        return True
    lowered = name.lower()
    return any(area in lowered for area in unknown)


def _mobility_for(areas: list[str]) -> list[ExerciseItem]:
    names: list[str] = []
    for area in areas:
        for n in AREA_MOBILITY.get(area.strip().lower(), ["Light Stretching"]):
            if n not in names:
                names.append(n)
    return [ExerciseItem(exercise=n, reps="60s") for n in names or ["Light Stretching"]]


def _strong_recovery(checkin: CheckIn) -> bool:
    return (
        checkin.energy is not None
        and checkin.energy >= 8
        and checkin.sleep_hrs is not None
        and checkin.sleep_hrs >= 7
        and (checkin.stress is None or checkin.stress <= 4)
        and not checkin.soreness
    )


def _travel_workout(profile: UserProfile) -> WorkoutPlan:
    items: list[ExerciseItem] = []
    for pattern in TRAVEL_CIRCUIT:
        pool = [
            n for n in EXERCISES[Equipment.BODYWEIGHT][pattern]
            if not _is_avoided(n, profile.avoid_exercises)
        ]
        if pool:
            items.append(ExerciseItem(exercise=pool[0], sets=2, reps="12-15", rir=3))
    if not items:
        return WorkoutPlan(focus=["Travel"], blocks=[_recovery_block(profile, "Travel")])
    return WorkoutPlan(
        focus=["Travel"],
        blocks=[Block(name="Hotel Circuit", items=items)],
        notes="Short bodyweight session, 20-30 minutes.",
    )


def adjust_day(day: DayPlan, checkin: CheckIn | None, profile: UserProfile) -> DayPlan:
    """
    Apply the titration rule table to a copy of an existing base day.

    Nutrition is carried over unchanged; without a check-in the copy is returned as is.
    """
    adjusted = day.model_copy(deep=True)
    if checkin is None:
        return adjusted

    energy = checkin.energy if checkin.energy is not None else 5
    if energy < 5:
        adjusted.workout = WorkoutPlan(
            focus=["Recovery"],
            blocks=[_recovery_block(profile, "Recovery")],
            notes="Low energy today; recovery only.",
        )
        adjusted.reason = "Energy below 5: recovery day"
        return adjusted

    if checkin.travel:
        adjusted.workout = _travel_workout(profile)
        adjusted.reason = "Travelling: short bodyweight session"
        return adjusted

    reasons: list[str] = []
    if checkin.sleep_hrs is not None and checkin.sleep_hrs < 6:
        for block in adjusted.workout.blocks:
            for item in block.items:
                if item.sets is not None:
                    item.sets = max(1, round(item.sets * 0.75))
                    item.rir = max(item.rir or 0, 3)
        reasons.append("Short sleep: volume down about 25%, RIR 3+")

    if checkin.soreness:
        patterns, unknown = _affected_patterns(checkin.soreness)
        blocks: list[Block] = []
        for block in adjusted.workout.blocks:
            kept = [i for i in block.items if not _is_sore(i.exercise, patterns, unknown)]
            if kept:
                blocks.append(Block(name=block.name, items=kept))
            elif block.items:
                blocks.append(Block(name="Mobility", items=_mobility_for(checkin.soreness)))
        adjusted.workout.blocks = blocks or [
            Block(name="Mobility", items=_mobility_for(checkin.soreness))
        ]
        reasons.append(f"Soreness ({', '.join(checkin.soreness)}): affected movements skipped")

    if _strong_recovery(checkin):
        for block in adjusted.workout.blocks:
            if block.name.lower() == "warm-up":
                continue
            first = next((i for i in block.items if i.sets is not None), None)
            if first is not None:
                first.sets = min(first.sets + 1, 20)
                reasons.append(f"Strong recovery: +1 set on {first.exercise}")
                break

    if reasons:
        adjusted.reason = "; ".join(reasons)
    return adjusted
