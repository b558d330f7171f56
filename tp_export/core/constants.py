"""Static constants and mappings for the TrainingPeaks exporter."""

from __future__ import annotations

TP_API_BASE = "https://tpapi.trainingpeaks.com"
INTERVALS_API_BASE = "https://intervals.icu/api/v1"
PLANMYPEAK_API_BASE = "https://app.planmypeak.com/api"

DESTINATION_INTERVALS = "intervalsicu"
DESTINATION_PLANMYPEAK = "planmypeak"
DESTINATIONS = (DESTINATION_INTERVALS, DESTINATION_PLANMYPEAK)

CONFLICT_APPEND = "append"
CONFLICT_REPLACE = "replace"
CONFLICT_ACTIONS = (CONFLICT_APPEND, CONFLICT_REPLACE)

DEFAULT_LIBRARY_NAME = "TrainingPeaks Library"
DEFAULT_DESCRIPTION = "Workout from TrainingPeaks"
DESCRIPTION_SEPARATOR = "- - - -"
COACH_NOTES_HEADER = "Coach Notes:"

# TrainingPeaks workoutTypeId -> Intervals.icu activity type.
TP_TO_INTERVALS_WORKOUT_TYPE = {
    1: "Swim",
    2: "Ride",
    3: "Run",
    4: "Other",  # Brick
    5: "Other",  # Crosstrain
    6: "Other",  # Race
    7: "Other",  # Day off
    8: "Ride",  # Mountain bike
    9: "WeightTraining",
    10: "Other",  # Custom
    11: "NordicSki",
    12: "Rowing",
    13: "Walk",
    29: "WeightTraining",
    100: "Other",
}
FALLBACK_ACTIVITY_TYPE = "Other"

# TrainingPeaks workoutTypeId -> PlanMyPeak sport. Anything else is skipped.
TP_TO_PLANMYPEAK_SPORT = {
    1: "swimming",
    2: "cycling",
    3: "running",
    8: "cycling",
}

INTENSITY_UNIT_SUFFIX = {
    "percentOfFtp": "%",
    "percentOfThresholdPace": "% Pace",
    "percentOfThresholdHr": "% LTHR",
    "percentOfThresholdHeartRate": "% LTHR",
}

# primaryIntensityMetric -> builder document target kind.
INTENSITY_METRIC_TARGET_KIND = {
    "percentOfFtp": "power_pct_ftp",
    "percentOfThresholdHr": "heart_rate",
    "percentOfThresholdHeartRate": "heart_rate",
    "percentOfMaxHr": "heart_rate",
    "heartRate": "heart_rate",
    "beatsPerMinute": "heart_rate",
    "percentOfThresholdPace": "pace",
    "pace": "pace",
    "speed": "pace",
}

INTENSITY_CLASS_ALIASES = {
    "warmUp": "warmup",
    "coolDown": "cooldown",
}

# Normalized intensity class -> PlanMyPeak step intensity.
PLANMYPEAK_INTENSITY_CLASS = {
    "warmup": "warmUp",
    "cooldown": "coolDown",
    "rest": "rest",
    "recovery": "recovery",
    "active": "active",
}

PLANMYPEAK_PRIMARY_METRIC = {
    "percentofftp": "percentOfFtp",
    "percentofmaxhr": "heartRate",
    "percentofthresholdhr": "heartRate",
    "percentofthresholdpace": "percentOfThresholdPace",
    "pace": "pace",
    "speed": "speed",
    "watts": "watts",
}

TIME_UNIT_SECONDS = {
    "second": 1,
    "seconds": 1,
    "minute": 60,
    "minutes": 60,
    "hour": 3600,
    "hours": 3600,
}

DISTANCE_UNITS = {
    "meter": "meter",
    "meters": "meter",
    "kilometer": "kilometer",
    "kilometers": "kilometer",
    "mile": "mile",
    "miles": "mile",
}

DISTANCE_UNIT_LABELS = {
    "meter": "mtr",
    "kilometer": "km",
    "mile": "mi",
}

PLAN_NOTE_DEFAULT_COLOR = "blue"
PLAN_EVENT_CATEGORY = "RACE_A"
PLAN_FOLDER_VISIBILITY = "PRIVATE"

# Keyword in a TrainingPeaks event type -> Intervals.icu activity type.
EVENT_TYPE_KEYWORDS = (
    ("swim", "Swim"),
    ("bike", "Ride"),
    ("cycl", "Ride"),
    ("ride", "Ride"),
    ("run", "Run"),
    ("walk", "Walk"),
    ("ski", "NordicSki"),
    ("row", "Rowing"),
)
