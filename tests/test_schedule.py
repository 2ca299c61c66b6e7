from datetime import date, timedelta

import pytest
from pydantic import ValidationError

from habit_tracker.schemas.habit import HabitCreate
from habit_tracker.services.schedule import (
    CustomSchedule, DailySchedule, WeeklySchedule, frequency_from_columns, is_due, normalize_days, weekday_name
)

MONDAY = date(2026, 3, 16)


def test_daily_and_weekly_are_due_every_day():
    for offset in range(7):
        day = MONDAY + timedelta(days=offset)
        assert is_due(DailySchedule(), day)
        assert is_due(WeeklySchedule(), day)


def test_custom_due_only_on_listed_weekdays():
    schedule = CustomSchedule(days=frozenset({"monday", "wednesday"}))
    due = [weekday_name(MONDAY + timedelta(days=i)) for i in range(7) if is_due(schedule, MONDAY + timedelta(days=i))]
    assert due == ["monday", "wednesday"]


def test_expected_per_week():
    assert DailySchedule().expected_per_week == 7
    assert WeeklySchedule().expected_per_week == 1
    assert CustomSchedule(days=frozenset({"friday", "saturday", "sunday"})).expected_per_week == 3


def test_frequency_from_columns():
    assert frequency_from_columns("daily", None) == DailySchedule()
    assert frequency_from_columns("weekly", None) == WeeklySchedule()
    assert frequency_from_columns("custom", ["tuesday"]).days == frozenset({"tuesday"})


def test_normalize_days_rejects_unknown_names():
    assert normalize_days([" Monday", "FRIDAY"]) == frozenset({"monday", "friday"})
    with pytest.raises(ValueError):
        normalize_days(["funday"])


def test_habit_create_custom_schedule_validation():
    habit = HabitCreate(title="  Run  ", schedule={"frequency": "custom", "days": ["Wednesday", "monday"]})
    assert habit.title == "Run"
    assert habit.schedule.days == ["monday", "wednesday"]

    with pytest.raises(ValidationError):
        HabitCreate(title="Run", schedule={"frequency": "custom", "days": []})
    with pytest.raises(ValidationError):
        HabitCreate(title="Run", schedule={"frequency": "custom", "days": ["someday"]})
    with pytest.raises(ValidationError):
        HabitCreate(title="Run", schedule={"frequency": "hourly"})


@pytest.mark.parametrize("field, value", [
    ("title", ""),
    ("title", "x" * 101),
    ("color", "green"),
    ("category", "gaming"),
    ("target_count", 0),
])
def test_habit_create_rejects_bad_fields(field, value):
    payload = {"title": "Read"}
    payload[field] = value
    with pytest.raises(ValidationError):
        HabitCreate(**payload)
