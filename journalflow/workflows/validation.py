"""Structural checks and normalization for generated schedules."""

from __future__ import annotations

import re
from typing import Any, Dict, List

from ..errors import ScheduleValidationFailure

TIME_PATTERN = re.compile(r"^([01][0-9]|2[0-3]):[0-5][0-9]$")
MIN_ACTIVITY_LENGTH = 3
MIN_ACTIVITIES = 3

_KEY_ALIASES = {
    "tiempo": "time",
    "hora": "time",
    "actividad": "activity",
    "beneficio_esperado": "expectedBenefit",
    "beneficioEsperado": "expectedBenefit",
    "expected_benefit": "expectedBenefit",
}


def _normalize_activity(item: Any) -> Any:
    if not isinstance(item, dict):
        return item
    normalized: Dict[str, Any] = {}
    for key, value in item.items():
        target = _KEY_ALIASES.get(key, key)
        normalized.setdefault(target, value)
    return normalized


def _collect_nested(value: Any, found: List[Any]) -> None:
    if isinstance(value, dict):
        if isinstance(value.get("activities"), list):
            found.extend(value["activities"])
        for child in value.values():
            if isinstance(child, dict):
                _collect_nested(child, found)


def normalize_schedule(parsed: Dict[str, Any]) -> Dict[str, Any]:
    """Coerce the shapes models commonly return into ``{"activities": [...]}``.

    Handles Spanish keys and activities nested under section objects such as
    ``morningRoutine``. Anything else is returned unchanged for the validator
    to reject.
    """
    if isinstance(parsed.get("activities"), list):
        activities = parsed["activities"]
    elif isinstance(parsed.get("actividades"), list):
        activities = parsed["actividades"]
    else:
        activities = []
        for value in parsed.values():
            _collect_nested(value, activities)
        if not activities:
            return parsed
    return {**parsed, "activities": [_normalize_activity(item) for item in activities]}


def validate_schedule(raw_schedule: Any) -> None:
    """Raise :class:`ScheduleValidationFailure` describing the first violation."""
    if not isinstance(raw_schedule, dict):
        raise ScheduleValidationFailure("The schedule must be a valid JSON object")
    if "activities" not in raw_schedule:
        raise ScheduleValidationFailure("The schedule is missing the 'activities' field")

    activities = raw_schedule["activities"]
    if not isinstance(activities, list):
        raise ScheduleValidationFailure("The 'activities' field must be an array")
    if not activities:
        raise ScheduleValidationFailure("The activities array is empty")

    for position, activity in enumerate(activities, start=1):
        if not isinstance(activity, dict):
            raise ScheduleValidationFailure(f"Activity {position} must be an object")
        if "time" not in activity:
            raise ScheduleValidationFailure(
                f"Activity {position} is missing the 'time' field"
            )
        if not isinstance(activity["time"], str) or not TIME_PATTERN.match(
            activity["time"]
        ):
            raise ScheduleValidationFailure(
                f"Activity {position} has an invalid time format. Use HH:MM (e.g. 08:00)"
            )
        if "activity" not in activity:
            raise ScheduleValidationFailure(
                f"Activity {position} is missing the 'activity' field"
            )
        description = activity["activity"]
        if not isinstance(description, str) or len(description) < MIN_ACTIVITY_LENGTH:
            raise ScheduleValidationFailure(
                f"Activity {position} has a description that is too short "
                f"(minimum {MIN_ACTIVITY_LENGTH} characters)"
            )
        if "expectedBenefit" not in activity:
            raise ScheduleValidationFailure(
                f"Activity {position} is missing the 'expectedBenefit' field"
            )

    # HH:MM strings sort chronologically.
    times = [activity["time"] for activity in activities]
    for earlier, later in zip(times, times[1:]):
        if later < earlier:
            raise ScheduleValidationFailure(
                "Activities must be in chronological order"
            )

    if len(activities) < MIN_ACTIVITIES:
        raise ScheduleValidationFailure(
            f"The schedule must have at least {MIN_ACTIVITIES} activities"
        )
