from pydantic import BaseModel, Field, AliasChoices, field_validator
from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union
from habit_tracker.services.schedule import normalize_days, ordered_days

CATEGORY_PATTERN = "^(health|fitness|mindfulness|productivity|social|creativity|learning|self-care|nutrition|sleep)$"
COLOR_PATTERN = "^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$"
TIME_PATTERN = "^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$"

Mood = Literal["happy", "neutral", "sad", "anxious"]
MOODS = ("happy", "neutral", "sad", "anxious")

class DailyScheduleIn(BaseModel):
    frequency: Literal["daily"] = "daily"

class WeeklyScheduleIn(BaseModel):
    frequency: Literal["weekly"]

class CustomScheduleIn(BaseModel):
    frequency: Literal["custom"]
    days: List[str] = Field(..., min_length=1)

    @field_validator("days")
    @classmethod
    def check_days(cls, value: List[str]) -> List[str]:
        return ordered_days(normalize_days(value))

ScheduleIn = Annotated[
    Union[DailyScheduleIn, WeeklyScheduleIn, CustomScheduleIn],
    Field(discriminator="frequency"),
]

class ScheduleOut(BaseModel):
    frequency: str
    days: List[str] = []
    times_per_week: Optional[int] = None

class ReminderIn(BaseModel):
    time: str = Field(..., pattern=TIME_PATTERN)
    enabled: bool = True
    message: Optional[str] = Field(None, max_length=200)

    @field_validator("time")
    @classmethod
    def zero_pad(cls, value: str) -> str:
        # stored as HH:MM so string order matches clock order
        hours, minutes = value.split(":")
        return f"{int(hours):02d}:{minutes}"

class ReminderResponse(BaseModel):
    id: int
    time: str
    enabled: bool
    message: Optional[str]

    model_config = {"from_attributes": True}

class HabitCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    category: str = Field("health", pattern=CATEGORY_PATTERN)
    icon: str = Field("🎯", max_length=10)
    color: str = Field("#48BB78", pattern=COLOR_PATTERN)
    schedule: ScheduleIn = Field(default_factory=DailyScheduleIn)
    target_count: int = Field(1, ge=1)
    unit: str = Field("times", max_length=20)
    reminders: List[ReminderIn] = []
    mood_booster: bool = False
    recommended_moods: List[Mood] = []

    @field_validator("title", "description", mode="before")
    @classmethod
    def strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value

class HabitUpdate(BaseModel):
    """Partial update. Unknown keys are kept so the service can reject engine-owned ones."""

    title: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    category: Optional[str] = Field(None, pattern=CATEGORY_PATTERN)
    icon: Optional[str] = Field(None, max_length=10)
    color: Optional[str] = Field(None, pattern=COLOR_PATTERN)
    schedule: Optional[ScheduleIn] = None
    target_count: Optional[int] = Field(None, ge=1)
    unit: Optional[str] = Field(None, max_length=20)
    reminders: Optional[List[ReminderIn]] = None
    mood_booster: Optional[bool] = None
    recommended_moods: Optional[List[Mood]] = None
    is_active: Optional[bool] = None

    model_config = {"extra": "allow"}

    @field_validator("title", "description", mode="before")
    @classmethod
    def strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value

class HabitStatisticsSnapshot(BaseModel):
    weekly_completion_rate: float
    monthly_completion_rate: float
    average_completion_time: Optional[str]

    model_config = {"from_attributes": True}

class HabitResponse(BaseModel):
    id: int
    user_id: int
    title: str
    description: Optional[str]
    category: str
    icon: str
    color: str
    schedule: ScheduleOut = Field(validation_alias=AliasChoices("schedule_payload", "schedule"))
    target_count: int
    unit: str
    current_streak: int
    longest_streak: int
    total_completions: int
    mood_booster: bool
    recommended_moods: List[str]
    is_active: bool
    is_archived: bool
    statistics: HabitStatisticsSnapshot = Field(validation_alias=AliasChoices("statistics_snapshot", "statistics"))
    reminders: List[ReminderResponse] = []
    created_at: Optional[datetime]

    model_config = {"from_attributes": True, "populate_by_name": True}

class TodayStatus(BaseModel):
    completed: bool
    count: int
    target_count: int
    completion_id: Optional[int] = None

class HabitWithStatus(HabitResponse):
    today_status: TodayStatus

class HabitListResponse(BaseModel):
    habits: List[HabitWithStatus]
    date: str
    total_habits: int
    active_habits: int
    completed_habits: int

class RecommendationResponse(BaseModel):
    mood: str
    recommended_habits: List[HabitResponse]
    message: str

class HabitReminderItem(BaseModel):
    habit_id: int
    habit_title: str
    icon: str
    time: str
    message: Optional[str]
