import pytest
from sqlalchemy import select, func

from habit_tracker.core.errors import NotFoundError, ValidationError
from habit_tracker.models.completion import HabitCompletion
from habit_tracker.models.user import User
from habit_tracker.schemas.habit import HabitResponse
from habit_tracker.services import habits as habit_service

from helpers import TODAY, make_habit, seed_completions


async def test_create_habit_defaults(db, user):
    habit = await make_habit(db, user.id)

    assert habit.category == "health"
    assert habit.icon == "🎯"
    assert habit.color == "#48BB78"
    assert habit.unit == "times"
    assert (habit.current_streak, habit.longest_streak, habit.total_completions) == (0, 0, 0)
    assert habit.is_active is True
    assert habit.is_archived is False
    assert [(r.time, r.message) for r in habit.reminders] == [("09:00", "Time for Drink water!")]
    assert habit.schedule_payload == {"frequency": "daily", "days": [], "times_per_week": None}


async def test_create_custom_habit(db, user):
    habit = await make_habit(
        db, user.id, title="Gym", schedule={"frequency": "custom", "days": ["friday", "Monday"]},
        reminders=[{"time": "18:30", "message": "Pack the bag"}],
    )

    assert habit.frequency == "custom"
    assert habit.custom_days == ["monday", "friday"]
    assert habit.times_per_week == 2
    assert habit.schedule.expected_per_week == 2
    assert [r.time for r in habit.reminders] == ["18:30"]

    response = HabitResponse.model_validate(habit)
    assert response.schedule.days == ["monday", "friday"]
    assert response.statistics.weekly_completion_rate == 0.0


@pytest.mark.parametrize("changes", [
    {"current_streak": 10},
    {"longestStreak": 3},
    {"total_completions": 0, "title": "Sneaky"},
])
async def test_update_rejects_engine_owned_fields(db, user, changes):
    habit = await make_habit(db, user.id)
    with pytest.raises(ValidationError):
        await habit_service.update_habit(db, habit, changes)


@pytest.mark.parametrize("changes", [
    {"colour": "#fff"},
    {"title": None},
    {"color": "blue"},
    {"schedule": {"frequency": "custom", "days": []}},
])
async def test_update_rejects_invalid_changes(db, user, changes):
    habit = await make_habit(db, user.id)
    with pytest.raises(ValidationError):
        await habit_service.update_habit(db, habit, changes)


async def test_update_habit(db, user):
    habit = await make_habit(db, user.id)

    habit = await habit_service.update_habit(db, habit, {
        "title": "Hydrate",
        "schedule": {"frequency": "custom", "days": ["friday"]},
        "recommended_moods": ["sad", "sad", "anxious"],
        "reminders": [],
    })

    assert habit.title == "Hydrate"
    assert habit.frequency == "custom"
    assert habit.times_per_week == 1
    assert habit.recommended_moods == ["sad", "anxious"]
    assert habit.reminders == []
    assert habit.current_streak == 0


async def test_archived_habit_is_read_only(db, user):
    habit = await make_habit(db, user.id)
    habit = await habit_service.archive_habit(db, habit)
    with pytest.raises(ValidationError):
        await habit_service.update_habit(db, habit, {"title": "Again"})


async def test_archive_keeps_ledger_rows(db, user):
    user_id = user.id
    habit = await make_habit(db, user_id)
    await seed_completions(db, habit, user_id, [0, 1])

    habit = await habit_service.archive_habit(db, habit)

    assert habit.is_active is False
    assert habit.is_archived is True
    result = await db.execute(select(func.count(HabitCompletion.id)).where(HabitCompletion.habit_id == habit.id))
    assert result.scalar_one() == 2


async def test_other_users_habit_is_not_found(db, user):
    habit = await make_habit(db, user.id)
    stranger = User(email="stranger@example.com")
    db.add(stranger)
    await db.commit()

    with pytest.raises(NotFoundError):
        await habit_service.get_owned_habit(db, habit.id, stranger.id)
    with pytest.raises(NotFoundError):
        await habit_service.get_owned_habit(db, 9999, user.id)


async def test_list_habits_with_today_status(db, user):
    user_id = user.id
    water = await make_habit(db, user_id, title="Water", category="nutrition")
    await make_habit(db, user_id, title="Run", category="fitness", schedule={"frequency": "custom", "days": ["monday"]})
    await seed_completions(db, water, user_id, [0])

    listing = await habit_service.list_habits_for_user(db, user_id, TODAY)
    assert listing.date == "2026-03-18"
    assert listing.total_habits == 2
    assert listing.completed_habits == 1

    due_only = await habit_service.list_habits_for_user(db, user_id, TODAY, as_of=TODAY)
    assert [h.title for h in due_only.habits] == ["Water"]
    assert due_only.habits[0].today_status.completed is True

    fitness = await habit_service.list_habits_for_user(db, user_id, TODAY, category="fitness")
    assert [h.title for h in fitness.habits] == ["Run"]


async def test_recommended_habits(db, user):
    user_id = user.id
    for i in range(4):
        await make_habit(db, user_id, title=f"Booster {i}", mood_booster=True)
    await make_habit(db, user_id, title="Plain")

    picks = await habit_service.recommended_habits(db, user_id, "sad")
    assert len(picks) == 3
    assert all(h.mood_booster for h in picks)

    with pytest.raises(ValidationError):
        await habit_service.recommended_habits(db, user_id, "furious")


async def test_recommended_by_mood_match(db, user):
    user_id = user.id
    await make_habit(db, user_id, title="Call a friend", recommended_moods=["anxious"])
    await make_habit(db, user_id, title="Walk", recommended_moods=["happy"])

    picks = await habit_service.recommended_habits(db, user_id, "anxious")
    assert [h.title for h in picks] == ["Call a friend"]


async def test_reminders_for_user(db, user):
    user_id = user.id
    await make_habit(db, user_id, title="Evening", reminders=[{"time": "21:00"}, {"time": "7:15", "enabled": False}])
    await make_habit(db, user_id, title="Morning", reminders=[{"time": "07:30", "message": "Stretch"}])

    reminders = await habit_service.reminders_for_user(db, user_id)

    assert [(r.habit_title, r.time) for r in reminders] == [("Morning", "07:30"), ("Evening", "21:00")]
