import logging
import math
from datetime import date, timedelta
from typing import Iterable, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from habit_tracker.config import settings
from habit_tracker.core.clock import LocalDay, date_key, parse_date_key
from habit_tracker.core.errors import ValidationError
from habit_tracker.models.habit import Habit
from habit_tracker.models.completion import HabitCompletion
from habit_tracker.schemas.habit import HabitResponse
from habit_tracker.schemas.completion import CompletionResponse
from habit_tracker.schemas.stats import (
    WeeklyBucket, CalendarDayDetail, CompletionStatistics, HabitInsights, HabitStatsResponse,
    CalendarHabitEntry, CalendarDay, CalendarResponse, BestStreak, DashboardSummary, DashboardResponse
)
from habit_tracker.services.habits import habit_with_status
from habit_tracker.services.schedule import WEEKDAYS, is_due
from habit_tracker.services.streaks import compute_streak
from habit_tracker.services.gamification import POINTS_PER_COMPLETION

logger = logging.getLogger(__name__)

DAY_NAMES = [d.capitalize() for d in WEEKDAYS]
TIME_OF_DAY = ("morning", "afternoon", "evening", "night")


def time_of_day(hour: int) -> str:
    if 5 <= hour < 12:
        return "morning"
    if 12 <= hour < 17:
        return "afternoon"
    if 17 <= hour < 21:
        return "evening"
    return "night"


def percent(part: int, whole: int) -> int:
    """round(part / whole * 100), 0 when there is nothing to divide by."""
    if not whole:
        return 0
    return round(part / whole * 100)


def weekly_buckets(schedule, completion_dates: Iterable[str], today: date, weeks: int) -> List[WeeklyBucket]:
    """Consecutive 7-day spans ending today, oldest first.

    The rate is actual over expected completions and is left unclamped.
    """
    keys = list(completion_dates)
    expected = schedule.expected_per_week
    buckets = []
    for i in range(weeks - 1, -1, -1):
        week_end = today - timedelta(days=i * 7)
        week_start = week_end - timedelta(days=6)
        start_key, end_key = date_key(week_start), date_key(week_end)
        actual = sum(1 for k in keys if start_key <= k <= end_key)
        buckets.append(WeeklyBucket(
            week=f"Week {weeks - i}",
            week_start=start_key,
            week_end=end_key,
            completions=actual,
            expected=expected,
            rate=percent(actual, expected),
        ))
    return buckets


def average_completion_time(completions: Iterable[HabitCompletion], day: LocalDay) -> Optional[str]:
    minutes = []
    for c in completions:
        if c.completed_at is None:
            continue
        local = day.to_local(c.completed_at)
        minutes.append(local.hour * 60 + local.minute)
    if not minutes:
        return None
    average = round(sum(minutes) / len(minutes))
    return f"{average // 60:02d}:{average % 60:02d}"


async def _completions_between(
    db: AsyncSession, start: date, end: date, habit_id: Optional[int] = None, user_id: Optional[int] = None
) -> List[HabitCompletion]:
    query = (
        select(HabitCompletion)
        .where(HabitCompletion.completion_date >= date_key(start))
        .where(HabitCompletion.completion_date <= date_key(end))
    )
    if habit_id is not None:
        query = query.where(HabitCompletion.habit_id == habit_id)
    if user_id is not None:
        query = query.where(HabitCompletion.user_id == user_id)
    query = query.order_by(HabitCompletion.completion_date, HabitCompletion.id)
    result = await db.execute(query)
    return result.scalars().all()


async def refresh_statistics_snapshot(db: AsyncSession, habit: Habit, day: LocalDay) -> None:
    """Recompute the cached weekly/monthly rates and average completion time.

    Snapshot rates are clamped to 0–100. Does not commit.
    """
    today = day.today
    month = await _completions_between(db, today - timedelta(days=29), today, habit_id=habit.id)
    week_start = date_key(today - timedelta(days=6))
    week = [c for c in month if c.completion_date >= week_start]

    expected = habit.schedule.expected_per_week
    habit.weekly_completion_rate = float(min(100, percent(len(week), expected)))
    habit.monthly_completion_rate = float(min(100, percent(len(month), expected * 4)))
    habit.average_completion_time = average_completion_time(month, day)
    db.add(habit)


async def habit_statistics(db: AsyncSession, habit: Habit, day: LocalDay, window_days: int) -> HabitStatsResponse:
    if window_days < 1:
        raise ValidationError("days must be at least 1")

    today = day.today
    window_start = today - timedelta(days=window_days)
    weeks = max(1, math.ceil(window_days / 7))
    fetch_start = min(window_start, today - timedelta(days=weeks * 7 - 1))

    rows = await _completions_between(db, fetch_start, today, habit_id=habit.id)
    window_key = date_key(window_start)
    in_window = [c for c in rows if c.completion_date >= window_key]

    total = len(in_window)
    # rows without a level count as zero
    avg_effort = round(sum(c.effort_level or 0 for c in in_window) / total, 1) if total else 0
    avg_satisfaction = round(sum(c.satisfaction_level or 0 for c in in_window) / total, 1) if total else 0

    day_of_week = {name: 0 for name in DAY_NAMES}
    time_buckets = {name: 0 for name in TIME_OF_DAY}
    monthly = {}
    calendar = {}
    for c in in_window:
        parsed = parse_date_key(c.completion_date)
        if parsed is None:
            continue
        day_of_week[DAY_NAMES[parsed.weekday()]] += 1
        month_key = c.completion_date[:7]
        monthly[month_key] = monthly.get(month_key, 0) + 1
        if c.completed_at is not None:
            time_buckets[time_of_day(day.to_local(c.completed_at).hour)] += 1
        calendar[c.completion_date] = CalendarDayDetail(
            completed=True,
            count=c.count,
            target_count=c.target_count,
            effort_level=c.effort_level,
            satisfaction_level=c.satisfaction_level,
        )

    best_day = None
    if total:
        # first weekday in Monday..Sunday order wins a tie
        best_day = max(DAY_NAMES, key=lambda name: (day_of_week[name], -DAY_NAMES.index(name)))

    total_days = 0
    if habit.created_at is not None:
        total_days = max(1, (today - day.to_local(habit.created_at).date()).days + 1)

    statistics = CompletionStatistics(
        total_completions=total,
        average_effort=avg_effort,
        average_satisfaction=avg_satisfaction,
        day_of_week_stats=day_of_week,
        time_of_day_stats=time_buckets,
        monthly_data=monthly,
        completions=[CompletionResponse.model_validate(c) for c in in_window[-7:]],
    )

    return HabitStatsResponse(
        habit=HabitResponse.model_validate(habit),
        window_days=window_days,
        statistics=statistics,
        calendar_data=calendar,
        weekly_data=weekly_buckets(habit.schedule, [c.completion_date for c in rows], today, weeks),
        insights=HabitInsights(
            best_day=best_day,
            average_completion_rate=habit.weekly_completion_rate or 0.0,
            streak_record=habit.longest_streak or 0,
            total_days=total_days,
        ),
    )


async def _active_habits(db: AsyncSession, user_id: int) -> List[Habit]:
    result = await db.execute(
        select(Habit)
        .where(Habit.user_id == user_id)
        .where(Habit.is_active.is_(True))
        .order_by(Habit.id)
    )
    return result.scalars().all()


async def calendar_range(db: AsyncSession, user_id: int, start: date, end: date) -> CalendarResponse:
    """Per-day due/completed counts for every day in [start, end].

    One query for habits and one for completions, then O(habits × days).
    """
    if start > end:
        raise ValidationError("start_date must not be after end_date")
    span = (end - start).days + 1
    if span > settings.CALENDAR_MAX_DAYS:
        raise ValidationError(f"Date range cannot exceed {settings.CALENDAR_MAX_DAYS} days")

    habits = await _active_habits(db, user_id)
    rows = await _completions_between(db, start, end, user_id=user_id)
    done = {(c.habit_id, c.completion_date) for c in rows}

    calendar = {}
    current = start
    while current <= end:
        key = date_key(current)
        due = [h for h in habits if is_due(h, current)]
        entries = [
            CalendarHabitEntry(
                id=h.id, title=h.title, icon=h.icon, color=h.color,
                completed=(h.id, key) in done,
            )
            for h in due
        ]
        completed = sum(1 for e in entries if e.completed)
        calendar[key] = CalendarDay(
            total_habits=len(due),
            completed_habits=completed,
            completion_rate=percent(completed, len(due)),
            habits=entries,
        )
        current += timedelta(days=1)

    return CalendarResponse(
        calendar_data=calendar,
        start_date=start,
        end_date=end,
        total_habits=len(habits),
    )


async def dashboard_summary(db: AsyncSession, user_id: int, day: LocalDay) -> DashboardResponse:
    today = day.today
    today_key = day.key
    habits = await _active_habits(db, user_id)
    habit_ids = {h.id for h in habits}

    history = {}
    if habit_ids:
        result = await db.execute(
            select(HabitCompletion.habit_id, HabitCompletion.completion_date)
            .where(HabitCompletion.habit_id.in_(habit_ids))
        )
        for habit_id, key in result.fetchall():
            history.setdefault(habit_id, []).append(key)

    week_rows = [
        c for c in await _completions_between(db, today - timedelta(days=6), today, user_id=user_id)
        if c.habit_id in habit_ids
    ]
    today_rows = {c.habit_id: c for c in week_rows if c.completion_date == today_key}

    due_today = [h for h in habits if is_due(h, today)]
    completed_today = sum(1 for h in due_today if h.id in today_rows)

    expected_weekly = sum(h.schedule.expected_per_week for h in habits)

    best = BestStreak()
    for habit in habits:
        streak = compute_streak(habit.schedule, history.get(habit.id, []), today)
        if streak > best.streak:
            best = BestStreak(habit_id=habit.id, habit=habit.title, streak=streak)

    recent = sorted(week_rows, key=lambda c: (c.completion_date, c.completed_at, c.id), reverse=True)[:5]

    return DashboardResponse(
        date=today_key,
        summary=DashboardSummary(
            total_habits=len(habits),
            today_due=len(due_today),
            today_completed=completed_today,
            today_remaining=len(due_today) - completed_today,
            weekly_completion_rate=percent(len(week_rows), expected_weekly),
            best_streak=best,
            total_points_this_week=len(week_rows) * POINTS_PER_COMPLETION,
        ),
        today_habits=[habit_with_status(h, today_rows.get(h.id)) for h in due_today],
        recent_completions=[CompletionResponse.model_validate(c) for c in recent],
    )
