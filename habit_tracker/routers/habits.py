from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from habit_tracker.config import settings
from habit_tracker.database import get_db
from habit_tracker.core.auth import get_current_user
from habit_tracker.core.clock import LocalDay, get_local_day
from habit_tracker.schemas.habit import (
    HabitCreate, HabitUpdate, HabitResponse, HabitListResponse, RecommendationResponse,
    HabitReminderItem
)
from habit_tracker.schemas.completion import CompletionCreate, CompletionResponse, CompletionResult, UndoResult
from habit_tracker.schemas.stats import HabitStatsResponse, CalendarResponse, DashboardResponse
from habit_tracker.services import habits as habit_service
from habit_tracker.services import ledger
from habit_tracker.services import statistics
from habit_tracker.services.gamification import process_habit_created

router = APIRouter(prefix="/habits", tags=["habits"])

@router.get("", response_model=HabitListResponse)
async def list_habits(
    category: Optional[str] = None,
    active: Optional[bool] = None,
    on: Optional[date] = Query(None, alias="date"),
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user),
    day: LocalDay = Depends(get_local_day)
):
    return await habit_service.list_habits_for_user(
        db, current_user.id, day.today, category=category, active=active, as_of=on
    )

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_habit(
    habit_in: HabitCreate,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    user_id = current_user.id
    habit = await habit_service.create_habit(db, user_id, habit_in)
    bonus = await process_habit_created(db, user_id)
    habit = await habit_service.reload_habit(db, habit.id)
    return {
        "habit": HabitResponse.model_validate(habit),
        "points_awarded": bonus.points_awarded,
        "level_up": bonus.level_up,
        "badges_awarded": bonus.badges_awarded,
    }

@router.get("/dashboard/summary", response_model=DashboardResponse)
async def get_dashboard_summary(
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user),
    day: LocalDay = Depends(get_local_day)
):
    return await statistics.dashboard_summary(db, current_user.id, day)

@router.get("/calendar/range", response_model=CalendarResponse)
async def get_calendar_range(
    start_date: date,
    end_date: date,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return await statistics.calendar_range(db, current_user.id, start_date, end_date)

@router.get("/recommendations/{mood}", response_model=RecommendationResponse)
async def get_mood_recommendations(
    mood: str,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    habits = await habit_service.recommended_habits(db, current_user.id, mood)
    return RecommendationResponse(
        mood=mood,
        recommended_habits=[HabitResponse.model_validate(h) for h in habits],
        message=f"Here are some habits that might help when you're feeling {mood}"
    )

@router.get("/reminders", response_model=List[HabitReminderItem])
async def get_reminders(
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return await habit_service.reminders_for_user(db, current_user.id)

@router.get("/{habit_id}")
async def get_habit_detail(
    habit_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user),
    day: LocalDay = Depends(get_local_day)
):
    habit = await habit_service.get_owned_habit(db, habit_id, current_user.id)
    habit, recent = await ledger.get_habit_detail(db, habit, day)
    return {
        "habit": HabitResponse.model_validate(habit),
        "recent_completions": [CompletionResponse.model_validate(c) for c in recent],
    }

@router.put("/{habit_id}", response_model=HabitResponse)
async def update_habit(
    habit_id: int,
    update_in: HabitUpdate,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    habit = await habit_service.get_owned_habit(db, habit_id, current_user.id)
    changes = update_in.model_dump(exclude_unset=True)
    changes.update(update_in.model_extra or {})
    habit = await habit_service.update_habit(db, habit, changes)
    return HabitResponse.model_validate(habit)

@router.delete("/{habit_id}")
async def archive_habit(
    habit_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    habit = await habit_service.get_owned_habit(db, habit_id, current_user.id)
    await habit_service.archive_habit(db, habit)
    return {"message": "Habit archived successfully"}

@router.post("/{habit_id}/complete", response_model=CompletionResult)
async def complete_habit(
    habit_id: int,
    completion_in: CompletionCreate,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user),
    day: LocalDay = Depends(get_local_day)
):
    user_id = current_user.id
    habit = await habit_service.get_owned_habit(db, habit_id, user_id)
    outcome = await ledger.record_completion(db, habit, user_id, completion_in, day)
    return CompletionResult(
        completion=CompletionResponse.model_validate(outcome.completion),
        habit=HabitResponse.model_validate(outcome.habit),
        created=outcome.created,
        streak=outcome.habit.current_streak,
        points_awarded=outcome.gamification.points_awarded,
        level_up=outcome.gamification.level_up,
        badges_awarded=outcome.gamification.badges_awarded,
    )

@router.delete("/{habit_id}/complete", response_model=UndoResult)
async def undo_completion(
    habit_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user),
    day: LocalDay = Depends(get_local_day)
):
    user_id = current_user.id
    habit = await habit_service.get_owned_habit(db, habit_id, user_id)
    habit = await ledger.undo_completion(db, habit, user_id, day)
    return UndoResult(habit=HabitResponse.model_validate(habit), new_streak=habit.current_streak)

@router.get("/{habit_id}/stats", response_model=HabitStatsResponse)
async def get_habit_stats(
    habit_id: int,
    days: int = Query(settings.STATS_WINDOW_DAYS, ge=1, le=365),
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user),
    day: LocalDay = Depends(get_local_day)
):
    habit = await habit_service.get_owned_habit(db, habit_id, current_user.id)
    return await statistics.habit_statistics(db, habit, day, days)
