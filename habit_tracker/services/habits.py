import logging
from datetime import date
from typing import List, Optional
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from habit_tracker.config import settings
from habit_tracker.core.clock import date_key
from habit_tracker.core.errors import NotFoundError, ValidationError
from habit_tracker.models.habit import Habit, HabitReminder
from habit_tracker.models.completion import HabitCompletion
from habit_tracker.schemas.habit import (
    HabitCreate, HabitUpdate, HabitResponse, HabitWithStatus, HabitListResponse,
    HabitReminderItem, ReminderIn, TodayStatus, MOODS
)
from habit_tracker.services.schedule import is_due, normalize_days, ordered_days

logger = logging.getLogger(__name__)

# Progress fields are a cache of the ledger; clients never write them
ENGINE_OWNED_FIELDS = {
    "current_streak", "longest_streak", "total_completions",
    "currentStreak", "longestStreak", "totalCompletions",
}
NON_NULLABLE_FIELDS = {
    "title", "category", "icon", "color", "target_count", "unit",
    "mood_booster", "recommended_moods", "is_active",
}


def _schedule_columns(schedule) -> tuple:
    """(frequency, custom_days, times_per_week) for a schedule payload."""
    if not isinstance(schedule, dict):
        schedule = schedule.model_dump()
    frequency = schedule.get("frequency", "daily")
    if frequency != "custom":
        return frequency, None, None
    try:
        days = normalize_days(schedule.get("days"))
    except ValueError as exc:
        raise ValidationError(str(exc))
    if not days:
        raise ValidationError("Custom frequency requires at least one day")
    return frequency, ordered_days(days), len(days)


def _build_reminders(reminders: List[ReminderIn], title: str, default: bool = True) -> List[HabitReminder]:
    if not reminders and default:
        reminders = [ReminderIn(time="09:00", enabled=True, message=f"Time for {title}!")]
    return [HabitReminder(time=r.time, enabled=r.enabled, message=r.message) for r in reminders]


async def reload_habit(db: AsyncSession, habit_id: int) -> Habit:
    result = await db.execute(
        select(Habit)
        .where(Habit.id == habit_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def get_owned_habit(db: AsyncSession, habit_id: int, user_id: int) -> Habit:
    # Same error for "missing" and "someone else's"
    result = await db.execute(
        select(Habit).where(Habit.id == habit_id, Habit.user_id == user_id)
    )
    habit = result.scalar_one_or_none()
    if habit is None:
        raise NotFoundError("Habit not found")
    return habit


async def create_habit(db: AsyncSession, user_id: int, habit_in: HabitCreate) -> Habit:
    frequency, custom_days, times_per_week = _schedule_columns(habit_in.schedule)

    habit = Habit(
        user_id=user_id,
        title=habit_in.title,
        description=habit_in.description,
        category=habit_in.category,
        icon=habit_in.icon,
        color=habit_in.color,
        frequency=frequency,
        custom_days=custom_days,
        times_per_week=times_per_week,
        target_count=habit_in.target_count,
        unit=habit_in.unit,
        current_streak=0,
        longest_streak=0,
        total_completions=0,
        mood_booster=habit_in.mood_booster,
        recommended_moods=list(dict.fromkeys(habit_in.recommended_moods)),
        is_active=True,
        is_archived=False,
    )
    habit.reminders = _build_reminders(habit_in.reminders, habit_in.title)
    db.add(habit)
    await db.commit()

    logger.info("User %s created habit %s (%s)", user_id, habit.id, frequency)
    return await reload_habit(db, habit.id)


async def update_habit(db: AsyncSession, habit: Habit, changes: dict) -> Habit:
    """Apply a partial update. Progress fields and unknown keys are rejected."""
    forbidden = ENGINE_OWNED_FIELDS & set(changes)
    if forbidden:
        raise ValidationError(
            f"Fields managed by the streak engine cannot be updated: {', '.join(sorted(forbidden))}"
        )

    try:
        update_in = HabitUpdate.model_validate(changes)
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid habit update: {exc.errors()[0]['msg']}")

    if update_in.model_extra:
        raise ValidationError(f"Unknown fields: {', '.join(sorted(update_in.model_extra))}")

    if habit.is_archived:
        raise ValidationError("Archived habits cannot be modified")

    fields = update_in.model_dump(exclude_unset=True)
    for key in NON_NULLABLE_FIELDS & set(fields):
        if fields[key] is None:
            raise ValidationError(f"{key} cannot be null")

    if "schedule" in fields:
        if fields.pop("schedule") is not None:
            habit.frequency, habit.custom_days, habit.times_per_week = _schedule_columns(
                update_in.schedule
            )

    if "reminders" in fields:
        fields.pop("reminders")
        habit.reminders = _build_reminders(update_in.reminders or [], habit.title, default=False)

    if "recommended_moods" in fields:
        fields["recommended_moods"] = list(dict.fromkeys(fields["recommended_moods"]))

    for key, value in fields.items():
        setattr(habit, key, value)

    db.add(habit)
    await db.commit()
    logger.info("Habit %s updated: %s", habit.id, ", ".join(sorted(changes)))
    return await reload_habit(db, habit.id)


async def archive_habit(db: AsyncSession, habit: Habit) -> Habit:
    """Soft delete. Ledger rows and progress stay readable."""
    habit.is_active = False
    habit.is_archived = True
    db.add(habit)
    await db.commit()
    logger.info("Habit %s archived", habit.id)
    return await reload_habit(db, habit.id)


def habit_with_status(habit: Habit, completion: Optional[HabitCompletion]) -> HabitWithStatus:
    if completion is not None:
        status = TodayStatus(
            completed=True,
            count=completion.count,
            target_count=completion.target_count,
            completion_id=completion.id,
        )
    else:
        status = TodayStatus(completed=False, count=0, target_count=habit.target_count)
    base = HabitResponse.model_validate(habit).model_dump()
    return HabitWithStatus(**base, today_status=status)


async def completions_on(db: AsyncSession, user_id: int, day: date) -> dict:
    """habit_id -> ledger row for the given calendar day."""
    result = await db.execute(
        select(HabitCompletion)
        .where(HabitCompletion.user_id == user_id)
        .where(HabitCompletion.completion_date == date_key(day))
    )
    return {c.habit_id: c for c in result.scalars().all()}


async def list_habits_for_user(
    db: AsyncSession,
    user_id: int,
    today: date,
    category: Optional[str] = None,
    active: Optional[bool] = None,
    as_of: Optional[date] = None,
) -> HabitListResponse:
    """Habits newest first, each with its ledger status for `as_of` (default today).

    With an explicit `as_of` only habits due that day are returned.
    """
    query = select(Habit).where(Habit.user_id == user_id)
    if category:
        query = query.where(Habit.category == category)
    if active is not None:
        query = query.where(Habit.is_active == active)
    query = query.order_by(Habit.created_at.desc(), Habit.id.desc())

    habits = (await db.execute(query)).scalars().all()

    target = as_of or today
    if as_of is not None:
        habits = [h for h in habits if h.is_active and is_due(h, as_of)]

    status_map = await completions_on(db, user_id, target)
    items = [habit_with_status(h, status_map.get(h.id)) for h in habits]

    return HabitListResponse(
        habits=items,
        date=date_key(target),
        total_habits=len(items),
        active_habits=sum(1 for h in habits if h.is_active),
        completed_habits=sum(1 for i in items if i.today_status.completed),
    )


async def recommended_habits(db: AsyncSession, user_id: int, mood: str) -> List[Habit]:
    if mood not in MOODS:
        raise ValidationError("Invalid mood parameter")

    result = await db.execute(
        select(Habit)
        .where(Habit.user_id == user_id)
        .where(Habit.is_active.is_(True))
        .order_by(Habit.id)
    )
    matches = [
        h for h in result.scalars().all()
        if h.mood_booster or mood in (h.recommended_moods or [])
    ]
    return matches[:settings.RECOMMENDATION_LIMIT]


async def reminders_for_user(db: AsyncSession, user_id: int) -> List[HabitReminderItem]:
    """Enabled reminders of active habits, for the notification scheduler."""
    result = await db.execute(
        select(Habit)
        .where(Habit.user_id == user_id)
        .where(Habit.is_active.is_(True))
        .order_by(Habit.id)
    )
    items = []
    for habit in result.scalars().all():
        for reminder in habit.reminders:
            if not reminder.enabled:
                continue
            items.append(HabitReminderItem(
                habit_id=habit.id,
                habit_title=habit.title,
                icon=habit.icon,
                time=reminder.time,
                message=reminder.message,
            ))
    return sorted(items, key=lambda r: (_minutes(r.time), r.habit_id))


def _minutes(hhmm: str) -> int:
    hours, minutes = hhmm.split(":")
    return int(hours) * 60 + int(minutes)
