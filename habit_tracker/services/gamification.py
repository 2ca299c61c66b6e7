import logging
from typing import Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, update
from sqlalchemy.exc import SQLAlchemyError
from habit_tracker.core.errors import GamificationSideEffectFailure
from habit_tracker.models.user import User, UserBadge
from habit_tracker.models.completion import HabitCompletion
from habit_tracker.models.gamification import PendingAward
from habit_tracker.schemas.completion import GamificationResult

logger = logging.getLogger(__name__)

POINTS_PER_COMPLETION = 10
HABIT_CREATION_POINTS = 5

STREAK_BADGES = {
    7: ("7-Day Streak", "Completed a habit for 7 consecutive days", "🔥"),
    30: ("30-Day Streak", "Completed a habit for 30 consecutive days", "💎"),
}
HABIT_CREATOR_BADGE = ("Habit Creator", "Created your first habit", "🎯")


def level_for(points: int) -> int:
    return points // 100 + 1


def completion_points(effort_level: Optional[int], satisfaction_level: Optional[int], streak: int) -> int:
    points = POINTS_PER_COMPLETION
    if effort_level and effort_level >= 4:
        points += 5
    if satisfaction_level and satisfaction_level >= 4:
        points += 5
    # streak bonuses stack
    if streak >= 7:
        points += 10
    if streak >= 30:
        points += 25
    return points


async def add_points(db: AsyncSession, user_id: int, points: int) -> Tuple[int, int, bool]:
    """Increment the user's points in the database and raise the level if crossed.

    The increment is a single UPDATE so concurrent awards add up instead of
    overwriting each other. Returns (total points, level, level_up). Does not commit.
    """
    result = await db.execute(
        update(User).where(User.id == user_id).values(points=User.points + points)
    )
    if result.rowcount == 0:
        raise GamificationSideEffectFailure(f"User {user_id} not found")

    total, level = (await db.execute(
        select(User.points, User.level).where(User.id == user_id)
    )).one()
    new_level = level_for(total)
    if new_level > level:
        await db.execute(
            update(User).where(User.id == user_id, User.level < new_level).values(level=new_level)
        )
        return total, new_level, True
    return total, level, False


async def add_badge(db: AsyncSession, user_id: int, name: str, description: str, icon: str) -> bool:
    """Give the user a badge unless they already hold one with that name."""
    existing = await db.execute(
        select(UserBadge.id)
        .where(UserBadge.user_id == user_id)
        .where(UserBadge.name == name)
    )
    if existing.scalar_one_or_none() is not None:
        return False
    db.add(UserBadge(user_id=user_id, name=name, description=description, icon=icon))
    return True


async def award_completion(db: AsyncSession, user_id: int, completion: HabitCompletion) -> GamificationResult:
    """Apply points and streak badges for a newly created ledger row. Does not commit."""
    streak = completion.streak_at_completion or 0

    points = completion_points(completion.effort_level, completion.satisfaction_level, streak)
    total, level, level_up = await add_points(db, user_id, points)

    badges = []
    if streak in STREAK_BADGES:
        name, description, icon = STREAK_BADGES[streak]
        if await add_badge(db, user_id, name, description, icon):
            badges.append(name)

    await db.execute(
        update(User)
        .where(User.id == user_id, User.habit_streak < streak)
        .values(habit_streak=streak)
    )

    return GamificationResult(
        points_awarded=points,
        total_points=total,
        level=level,
        level_up=level_up,
        badges_awarded=badges,
    )


async def _enqueue_pending_award(db: AsyncSession, completion_id: int, user_id: int, error: str) -> None:
    try:
        db.add(PendingAward(completion_id=completion_id, user_id=user_id, last_error=error[:1000]))
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Could not store pending award for completion %s", completion_id)


async def process_completion_award(db: AsyncSession, user_id: int, completion: HabitCompletion) -> GamificationResult:
    """Best-effort award after the completion is committed.

    A failure is logged, rolled back and queued for `retry_pending_awards`; it
    never touches the committed completion.
    """
    completion_id = completion.id
    try:
        result = await award_completion(db, user_id, completion)
        await db.commit()
        return result
    except (SQLAlchemyError, GamificationSideEffectFailure) as exc:
        await db.rollback()
        logger.exception("Gamification award failed for completion %s", completion_id)
        await _enqueue_pending_award(db, completion_id, user_id, str(exc))
        return GamificationResult(applied=False)


async def process_habit_created(db: AsyncSession, user_id: int) -> GamificationResult:
    """Creation bonus: 5 points, plus the Habit Creator badge the first time."""
    try:
        total, level, level_up = await add_points(db, user_id, HABIT_CREATION_POINTS)
        badges = []
        name, description, icon = HABIT_CREATOR_BADGE
        if await add_badge(db, user_id, name, description, icon):
            badges.append(name)
        await db.commit()
        return GamificationResult(
            points_awarded=HABIT_CREATION_POINTS,
            total_points=total,
            level=level,
            level_up=level_up,
            badges_awarded=badges,
        )
    except (SQLAlchemyError, GamificationSideEffectFailure):
        await db.rollback()
        logger.exception("Habit creation bonus failed for user %s", user_id)
        return GamificationResult(applied=False)


async def retry_pending_awards(db: AsyncSession) -> int:
    """Replay queued awards. Returns how many were applied."""
    result = await db.execute(select(PendingAward).order_by(PendingAward.id))
    pending = [(p.id, p.completion_id, p.user_id) for p in result.scalars().all()]

    applied = 0
    for pending_id, completion_id, user_id in pending:
        completion = (await db.execute(
            select(HabitCompletion).where(HabitCompletion.id == completion_id)
        )).scalar_one_or_none()

        if completion is None:
            # undone before the retry ran; nothing to award
            await db.execute(delete(PendingAward).where(PendingAward.id == pending_id))
            await db.commit()
            continue

        try:
            await award_completion(db, user_id, completion)
            await db.execute(delete(PendingAward).where(PendingAward.id == pending_id))
            await db.commit()
            applied += 1
        except (SQLAlchemyError, GamificationSideEffectFailure) as exc:
            await db.rollback()
            logger.warning("Retry of award %s failed: %s", pending_id, exc)
            await db.execute(
                update(PendingAward)
                .where(PendingAward.id == pending_id)
                .values(attempts=PendingAward.attempts + 1, last_error=str(exc)[:1000])
            )
            await db.commit()

    if pending:
        logger.info("Pending awards processed: %s applied of %s", applied, len(pending))
    return applied


async def discard_pending_awards(db: AsyncSession, completion_id: int) -> None:
    """Drop queued awards for a completion that is being removed. Does not commit."""
    await db.execute(delete(PendingAward).where(PendingAward.completion_id == completion_id))
