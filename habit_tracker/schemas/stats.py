from pydantic import BaseModel
from datetime import date
from typing import Dict, List, Optional
from .habit import HabitResponse, HabitWithStatus
from .completion import CompletionResponse

class WeeklyBucket(BaseModel):
    week: str
    week_start: str
    week_end: str
    completions: int
    expected: int
    rate: int  # not clamped, may exceed 100

class CalendarDayDetail(BaseModel):
    completed: bool
    count: int
    target_count: int
    effort_level: Optional[int] = None
    satisfaction_level: Optional[int] = None

class CompletionStatistics(BaseModel):
    total_completions: int
    average_effort: float
    average_satisfaction: float
    day_of_week_stats: Dict[str, int]
    time_of_day_stats: Dict[str, int]
    monthly_data: Dict[str, int]
    completions: List[CompletionResponse]  # most recent 7, oldest first

class HabitInsights(BaseModel):
    best_day: Optional[str]
    average_completion_rate: float
    streak_record: int
    total_days: int

class HabitStatsResponse(BaseModel):
    habit: HabitResponse
    window_days: int
    statistics: CompletionStatistics
    calendar_data: Dict[str, CalendarDayDetail]
    weekly_data: List[WeeklyBucket]
    insights: HabitInsights

class CalendarHabitEntry(BaseModel):
    id: int
    title: str
    icon: str
    color: str
    completed: bool

class CalendarDay(BaseModel):
    total_habits: int
    completed_habits: int
    completion_rate: int
    habits: List[CalendarHabitEntry]

class CalendarResponse(BaseModel):
    calendar_data: Dict[str, CalendarDay]
    start_date: date
    end_date: date
    total_habits: int

class BestStreak(BaseModel):
    habit_id: Optional[int] = None
    habit: str = ""
    streak: int = 0

class DashboardSummary(BaseModel):
    total_habits: int
    today_due: int
    today_completed: int
    today_remaining: int
    weekly_completion_rate: int
    best_streak: BestStreak
    total_points_this_week: int

class DashboardResponse(BaseModel):
    date: str
    summary: DashboardSummary
    today_habits: List[HabitWithStatus]
    recent_completions: List[CompletionResponse]
