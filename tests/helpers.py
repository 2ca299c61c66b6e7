from datetime import date, timedelta

from habit_tracker.core.clock import date_key
from habit_tracker.core.security import create_access_token
from habit_tracker.models.completion import HabitCompletion
from habit_tracker.schemas.habit import HabitCreate
from habit_tracker.services import habits as habit_service

# Wednesday
TODAY = date(2026, 3, 18)


async def make_habit(db, user_id, **fields):
    fields.setdefault("title", "Drink water")
    return await habit_service.create_habit(db, user_id, HabitCreate(**fields))


async def seed_completions(db, habit, user_id, days_ago):
    """Insert ledger rows directly, bypassing the ledger's side effects."""
    for offset in days_ago:
        db.add(HabitCompletion(
            habit_id=habit.id,
            user_id=user_id,
            completion_date=date_key(TODAY - timedelta(days=offset)),
            count=habit.target_count,
            target_count=habit.target_count,
        ))
    await db.commit()


def auth_headers(user_id):
    return {
        "Authorization": f"Bearer {create_access_token({'sub': str(user_id)})}",
        "X-Local-Date": TODAY.isoformat(),
        "X-Timezone": "UTC",
    }
