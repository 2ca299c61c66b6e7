import logging
from datetime import date, timedelta
from typing import Iterable
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from habit_tracker.core.clock import parse_date_key
from habit_tracker.models.habit import Habit
from habit_tracker.models.completion import HabitCompletion
from habit_tracker.services.schedule import is_due

logger = logging.getLogger(__name__)


def compute_streak(schedule, completion_dates: Iterable, today: date) -> int:
    """Consecutive satisfied due-days, walking back from today or yesterday.

    `completion_dates` may hold `date` objects or YYYY-MM-DD strings; anything
    unparseable is ignored. Completions dated after `today` are not counted.
    """
    days = set()
    for value in completion_dates:
        day = value if isinstance(value, date) else parse_date_key(value)
        if day is not None and day <= today:
            days.add(day)
    if not days:
        return 0

    yesterday = today - timedelta(days=1)
    if today in days:
        cursor = today
    elif yesterday in days:
        cursor = yesterday
    else:
        return 0

    oldest = min(days)
    streak = 0
    while cursor >= oldest:
        if is_due(schedule, cursor):
            if cursor not in days:
                break
            streak += 1
        # non-due days neither extend nor break the chain
        cursor -= timedelta(days=1)
    return streak


async def completion_dates_for(db: AsyncSession, habit_id: int) -> list:
    result = await db.execute(
        select(HabitCompletion.completion_date)
        .where(HabitCompletion.habit_id == habit_id)
        .order_by(HabitCompletion.completion_date.desc())
    )
    return [row[0] for row in result.fetchall()]


async def recalculate_streak(db: AsyncSession, habit: Habit, today: date) -> int:
    """Recompute the habit's current streak from the ledger and refresh the cache.

    Does not commit; the caller owns the transaction. `longest_streak` only
    ever grows.
    """
    dates = await completion_dates_for(db, habit.id)
    streak = compute_streak(habit.schedule, dates, today)
    habit.current_streak = streak
    if streak > (habit.longest_streak or 0):
        habit.longest_streak = streak
    logger.debug("Habit %s streak recalculated: %s", habit.id, streak)
    return streak
