"""Completion ledger: one row per (habit, calendar day).

Writes go through `record_completion` (insert-or-update) and
`undo_completion`. Both keep the habit's progress cache in step with the
ledger inside the same transaction.
"""
import logging
from dataclasses import dataclass
from datetime import date
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from habit_tracker.config import settings
from habit_tracker.core.clock import LocalDay, date_key, utcnow
from habit_tracker.core.errors import ConflictError, NotFoundError, ValidationError
from habit_tracker.models.habit import Habit
from habit_tracker.models.completion import HabitCompletion
from habit_tracker.schemas.completion import CompletionCreate, GamificationResult
from habit_tracker.services.gamification import discard_pending_awards, process_completion_award
from habit_tracker.services.habits import reload_habit
from habit_tracker.services.statistics import refresh_statistics_snapshot
from habit_tracker.services.streaks import compute_streak, completion_dates_for, recalculate_streak

logger = logging.getLogger(__name__)

CONTEXT_FIELDS = (
    "notes",
    "mood_at_time",
    "mood_after_completion",
    "effort_level",
    "satisfaction_level",
    "source",
)


@dataclass
class CompletionOutcome:
    completion: HabitCompletion
    habit: Habit
    created: bool
    gamification: GamificationResult


def resolve_completion_day(payload: CompletionCreate, day: LocalDay) -> date:
    target = payload.completion_date or day.today
    if target > day.today:
        raise ValidationError("Completion date cannot be in the future")
    if (day.today - target).days > settings.OFFLINE_REPLAY_MAX_DAYS:
        raise ValidationError(
            f"Completion date is older than {settings.OFFLINE_REPLAY_MAX_DAYS} days"
        )
    return target


async def find_completion(db: AsyncSession, habit_id: int, day: date) -> Optional[HabitCompletion]:
    result = await db.execute(
        select(HabitCompletion)
        .where(HabitCompletion.habit_id == habit_id)
        .where(HabitCompletion.completion_date == date_key(day))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def recent_completions(db: AsyncSession, habit_id: int, limit: int) -> List[HabitCompletion]:
    result = await db.execute(
        select(HabitCompletion)
        .where(HabitCompletion.habit_id == habit_id)
        .order_by(HabitCompletion.completion_date.desc())
        .limit(limit)
    )
    return result.scalars().all()


def _apply_update(completion: HabitCompletion, habit: Habit, payload: CompletionCreate) -> bool:
    """Overwrite count and the context fields the caller sent. Returns True if anything changed."""
    changed = False
    count = min(payload.count, habit.target_count)
    if completion.count != count:
        completion.count = count
        changed = True

    for field in CONTEXT_FIELDS:
        if field not in payload.model_fields_set:
            continue
        value = getattr(payload, field)
        if getattr(completion, field) != value:
            setattr(completion, field, value)
            changed = True

    # unchanged repeats leave the row untouched, completed_at included
    if changed:
        completion.completed_at = utcnow()
    return changed


async def _insert_completion(
    db: AsyncSession, habit: Habit, user_id: int, payload: CompletionCreate, target: date, pre_streak: int
) -> HabitCompletion:
    """Insert the day's row inside a SAVEPOINT.

    Raises ConflictError when the unique (habit, day) key is already taken,
    leaving the outer transaction usable.
    """
    completion = HabitCompletion(
        habit_id=habit.id,
        user_id=user_id,
        completion_date=date_key(target),
        completed_at=utcnow(),
        count=min(payload.count, habit.target_count),
        target_count=habit.target_count,
        notes=payload.notes,
        mood_at_time=payload.mood_at_time,
        mood_after_completion=payload.mood_after_completion,
        effort_level=payload.effort_level,
        satisfaction_level=payload.satisfaction_level,
        source=payload.source,
        streak_at_completion=pre_streak + 1,
    )
    try:
        async with db.begin_nested():
            db.add(completion)
    except IntegrityError:
        raise ConflictError(f"Habit {habit.id} already has a completion on {date_key(target)}")
    return completion


async def record_completion(
    db: AsyncSession,
    habit: Habit,
    user_id: int,
    payload: CompletionCreate,
    day: LocalDay,
) -> CompletionOutcome:
    """Record (or update) the habit's completion for the caller's day.

    A new row bumps total_completions and the streak and triggers the
    gamification award; an existing row is updated in place and awards
    nothing.
    """
    if not habit.is_active:
        raise ValidationError("Inactive or archived habits cannot be completed")
    habit_id = habit.id
    target = resolve_completion_day(payload, day)

    try:
        completion = await find_completion(db, habit.id, target)
        created = False

        if completion is None:
            dates = await completion_dates_for(db, habit.id)
            pre_streak = compute_streak(habit.schedule, dates, target)
            try:
                completion = await _insert_completion(db, habit, user_id, payload, target, pre_streak)
                created = True
            except ConflictError:
                # another request inserted the row first; ours becomes an update
                logger.warning("Completion race on habit %s for %s; updating instead", habit.id, date_key(target))
                completion = await find_completion(db, habit.id, target)
                if completion is None:
                    raise

        if created:
            habit.total_completions = (habit.total_completions or 0) + 1
            if target == day.today:
                habit.current_streak = completion.streak_at_completion
                if habit.current_streak > (habit.longest_streak or 0):
                    habit.longest_streak = habit.current_streak
            else:
                # replayed offline entry: the current streak is relative to today
                await recalculate_streak(db, habit, day.today)
            db.add(habit)
        else:
            _apply_update(completion, habit, payload)

        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Recording completion failed for habit %s", habit_id)
        raise

    completion_id = completion.id
    if created:
        logger.info(
            "Habit %s completed on %s (streak %s)",
            habit.id, completion.completion_date, completion.streak_at_completion,
        )

    await _refresh_snapshot(db, habit, day)

    gamification = GamificationResult(applied=False)
    if created:
        completion = await _load_completion(db, completion_id)
        gamification = await process_completion_award(db, user_id, completion)

    habit = await reload_habit(db, habit_id)
    completion = await _load_completion(db, completion_id)
    return CompletionOutcome(completion=completion, habit=habit, created=created, gamification=gamification)


async def _load_completion(db: AsyncSession, completion_id: int) -> HabitCompletion:
    result = await db.execute(
        select(HabitCompletion)
        .where(HabitCompletion.id == completion_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def undo_completion(db: AsyncSession, habit: Habit, user_id: int, day: LocalDay) -> Habit:
    """Remove today's row and rebuild the streak from the remaining ledger."""
    habit_id = habit.id
    try:
        completion = await find_completion(db, habit.id, day.today)
        if completion is None or completion.user_id != user_id:
            raise NotFoundError("No completion found for today")

        await discard_pending_awards(db, completion.id)
        await db.delete(completion)
        await db.flush()

        habit.total_completions = max(0, (habit.total_completions or 0) - 1)
        await recalculate_streak(db, habit, day.today)
        db.add(habit)
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Undo failed for habit %s", habit_id)
        raise

    logger.info("Habit %s completion for %s undone (streak now %s)", habit_id, day.key, habit.current_streak)
    await _refresh_snapshot(db, habit, day)
    return await reload_habit(db, habit_id)


async def _refresh_snapshot(db: AsyncSession, habit: Habit, day: LocalDay) -> None:
    # cached rates only; a failure here leaves the ledger write intact
    habit_id = habit.id
    try:
        await refresh_statistics_snapshot(db, habit, day)
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Statistics snapshot refresh failed for habit %s", habit_id)


async def get_habit_detail(db: AsyncSession, habit: Habit, day: LocalDay) -> tuple:
    """(habit, recent completions) with the streak and snapshot caches brought up to date."""
    habit_id = habit.id
    await recalculate_streak(db, habit, day.today)
    await refresh_statistics_snapshot(db, habit, day)
    await db.commit()
    recent = await recent_completions(db, habit_id, settings.RECENT_COMPLETIONS_LIMIT)
    return await reload_habit(db, habit_id), recent
