"""Habit schedules and the due-day predicate.

`is_due` is the only place that decides whether a habit is expected on a given
calendar day. The streak calculator and the calendar aggregator both go
through it.
"""
from dataclasses import dataclass
from datetime import date
from typing import FrozenSet, Iterable, Optional, Union

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


@dataclass(frozen=True)
class DailySchedule:
    frequency: str = "daily"

    @property
    def expected_per_week(self) -> int:
        return 7


@dataclass(frozen=True)
class WeeklySchedule:
    frequency: str = "weekly"

    @property
    def expected_per_week(self) -> int:
        return 1


@dataclass(frozen=True)
class CustomSchedule:
    days: FrozenSet[str]
    frequency: str = "custom"

    @property
    def times_per_week(self) -> int:
        return len(self.days)

    @property
    def expected_per_week(self) -> int:
        return self.times_per_week or 1


Frequency = Union[DailySchedule, WeeklySchedule, CustomSchedule]


def weekday_name(day: date) -> str:
    return WEEKDAYS[day.weekday()]


def normalize_days(days: Optional[Iterable[str]]) -> FrozenSet[str]:
    """Lower-case and validate weekday names. Raises ValueError on unknown names."""
    names = frozenset(d.strip().lower() for d in (days or ()))
    unknown = names - set(WEEKDAYS)
    if unknown:
        raise ValueError(f"Invalid day names: {', '.join(sorted(unknown))}")
    return names


def ordered_days(days: Iterable[str]) -> list:
    return [d for d in WEEKDAYS if d in set(days)]


def frequency_from_columns(frequency: str, custom_days: Optional[Iterable[str]]) -> Frequency:
    if frequency == "custom":
        return CustomSchedule(days=frozenset(custom_days or ()))
    if frequency == "weekly":
        return WeeklySchedule()
    return DailySchedule()


def is_due(schedule, day: date) -> bool:
    """True when `day` is a due day for the habit (or bare schedule) given.

    Weekly habits may be done on any day, so every day counts as due; at most
    one completion per calendar day still applies through the ledger.
    """
    if not isinstance(schedule, (DailySchedule, WeeklySchedule, CustomSchedule)):
        schedule = schedule.schedule
    if isinstance(schedule, CustomSchedule):
        return weekday_name(day) in schedule.days
    return True
