"""Tests for schedule normalization and structural validation."""

import pytest

from journalflow.errors import ScheduleValidationFailure
from journalflow.workflows import normalize_schedule, validate_schedule


def _activity(time="08:00", activity="Morning walk", benefit="Energy"):
    return {"time": time, "activity": activity, "expectedBenefit": benefit}


def _valid():
    return {
        "activities": [
            _activity("08:00"),
            _activity("12:30", "Lunch break"),
            _activity("21:00", "Read a book"),
        ]
    }


def _feedback(schedule) -> str:
    with pytest.raises(ScheduleValidationFailure) as exc_info:
        validate_schedule(schedule)
    return exc_info.value.feedback


def test_valid_schedule_passes():
    validate_schedule(_valid())


def test_schedule_must_be_object():
    assert "valid JSON object" in _feedback(["not", "an", "object"])


def test_missing_activities():
    assert "missing the 'activities' field" in _feedback({"plan": []})


def test_activities_must_be_list():
    assert "must be an array" in _feedback({"activities": "walk"})


def test_empty_activities():
    assert "empty" in _feedback({"activities": []})


@pytest.mark.parametrize("time", ["8:00", "24:00", "12:60", "noon", 800])
def test_invalid_time_format(time):
    schedule = _valid()
    schedule["activities"][1]["time"] = time
    assert "Activity 2 has an invalid time format" in _feedback(schedule)


def test_missing_fields_are_reported_with_position():
    schedule = _valid()
    del schedule["activities"][2]["expectedBenefit"]
    assert _feedback(schedule) == "Activity 3 is missing the 'expectedBenefit' field"

    schedule = _valid()
    del schedule["activities"][0]["time"]
    assert _feedback(schedule) == "Activity 1 is missing the 'time' field"


def test_short_description():
    schedule = _valid()
    schedule["activities"][0]["activity"] = "Go"
    assert "too short" in _feedback(schedule)


def test_out_of_order_activities():
    schedule = _valid()
    schedule["activities"].reverse()
    assert "chronological order" in _feedback(schedule)


def test_equal_times_are_allowed():
    schedule = _valid()
    schedule["activities"][1]["time"] = "08:00"
    validate_schedule(schedule)


def test_too_few_activities():
    schedule = {"activities": [_activity("08:00"), _activity("09:00")]}
    assert "at least 3 activities" in _feedback(schedule)


def test_normalize_spanish_keys():
    parsed = {
        "actividades": [
            {"tiempo": "07:30", "actividad": "Meditar", "beneficio_esperado": "Calma"}
        ]
    }
    assert normalize_schedule(parsed)["activities"] == [
        {"time": "07:30", "activity": "Meditar", "expectedBenefit": "Calma"}
    ]


def test_normalize_nested_sections():
    parsed = {
        "morningRoutine": {"activities": [_activity("08:00")]},
        "eveningRoutine": {"activities": [_activity("20:00", "Stretching")]},
    }
    activities = normalize_schedule(parsed)["activities"]
    assert [a["time"] for a in activities] == ["08:00", "20:00"]


def test_normalize_leaves_unknown_shapes_alone():
    parsed = {"plan": "rest"}
    assert normalize_schedule(parsed) == parsed
