from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import List, Literal, Optional
from .habit import HabitResponse, Mood

class CompletionCreate(BaseModel):
    count: int = Field(1, ge=1)
    notes: Optional[str] = Field(None, max_length=500)
    mood_at_time: Optional[Mood] = None
    mood_after_completion: Optional[Mood] = None
    effort_level: Optional[int] = Field(None, ge=1, le=5)
    satisfaction_level: Optional[int] = Field(None, ge=1, le=5)
    source: Literal["manual", "reminder", "mood_recommendation"] = "manual"
    # Calendar day the completion belongs to; defaults to the caller's today.
    # Offline replays send the day the entry was recorded on the device.
    completion_date: Optional[date] = None

class CompletionResponse(BaseModel):
    id: int
    habit_id: int
    user_id: int
    completion_date: str
    completed_at: datetime
    count: int
    target_count: int
    completion_percentage: int
    is_fully_completed: bool
    notes: Optional[str]
    mood_at_time: Optional[str]
    mood_after_completion: Optional[str]
    effort_level: Optional[int]
    satisfaction_level: Optional[int]
    source: str
    streak_at_completion: int

    model_config = {"from_attributes": True}

class GamificationResult(BaseModel):
    points_awarded: int = 0
    total_points: int = 0
    level: int = 1
    level_up: bool = False
    badges_awarded: List[str] = []
    applied: bool = True

class CompletionResult(BaseModel):
    completion: CompletionResponse
    habit: HabitResponse
    created: bool
    streak: int
    points_awarded: int = 0
    level_up: bool = False
    badges_awarded: List[str] = []

class UndoResult(BaseModel):
    habit: HabitResponse
    new_streak: int
