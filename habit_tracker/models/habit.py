from sqlalchemy import (
    Column, Integer, String, Text, Boolean, Float, DateTime, ForeignKey, JSON, Index, func
)
from sqlalchemy.orm import relationship
from habit_tracker.database import Base
from habit_tracker.services.schedule import Frequency, frequency_from_columns, ordered_days

class Habit(Base):
    __tablename__ = "habits"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String, nullable=False, default="health")
    icon = Column(String(10), nullable=False, default="🎯")
    color = Column(String(7), nullable=False, default="#48BB78")

    frequency = Column(String, nullable=False, default="daily")  # daily, weekly, custom
    custom_days = Column(JSON, nullable=True)      # weekday names, custom only
    times_per_week = Column(Integer, nullable=True)  # len(custom_days), custom only

    target_count = Column(Integer, nullable=False, default=1)
    unit = Column(String(20), nullable=False, default="times")

    # Cache of the completion ledger, written only by the ledger/streak services
    current_streak = Column(Integer, nullable=False, default=0)
    longest_streak = Column(Integer, nullable=False, default=0)
    total_completions = Column(Integer, nullable=False, default=0)

    mood_booster = Column(Boolean, nullable=False, default=False)
    recommended_moods = Column(JSON, nullable=False, default=list)

    is_active = Column(Boolean, nullable=False, default=True)
    is_archived = Column(Boolean, nullable=False, default=False)

    weekly_completion_rate = Column(Float, nullable=False, default=0.0)
    monthly_completion_rate = Column(Float, nullable=False, default=0.0)
    average_completion_time = Column(String(5), nullable=True)  # HH:MM local

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    reminders = relationship(
        "HabitReminder",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="HabitReminder.time",
    )

    __table_args__ = (
        Index("ix_habits_user_active", "user_id", "is_active"),
        Index("ix_habits_user_category", "user_id", "category"),
    )

    @property
    def schedule(self) -> Frequency:
        return frequency_from_columns(self.frequency, self.custom_days)

    @property
    def schedule_payload(self) -> dict:
        payload = {"frequency": self.frequency, "days": [], "times_per_week": None}
        if self.frequency == "custom":
            payload["days"] = ordered_days(self.custom_days or ())
            payload["times_per_week"] = self.times_per_week
        return payload

    @property
    def statistics_snapshot(self) -> dict:
        return {
            "weekly_completion_rate": self.weekly_completion_rate or 0.0,
            "monthly_completion_rate": self.monthly_completion_rate or 0.0,
            "average_completion_time": self.average_completion_time,
        }

class HabitReminder(Base):
    __tablename__ = "habit_reminders"

    id = Column(Integer, primary_key=True, index=True)
    habit_id = Column(Integer, ForeignKey("habits.id"), nullable=False)
    time = Column(String(5), nullable=False)  # HH:MM
    enabled = Column(Boolean, nullable=False, default=True)
    message = Column(String(200), nullable=True)
