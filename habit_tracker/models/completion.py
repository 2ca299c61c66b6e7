from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, UniqueConstraint, Index
from habit_tracker.database import Base
from habit_tracker.core.clock import utcnow

class HabitCompletion(Base):
    __tablename__ = "habit_completions"

    id = Column(Integer, primary_key=True, index=True)
    habit_id = Column(Integer, ForeignKey("habits.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    completion_date = Column(String(10), nullable=False)  # YYYY-MM-DD, caller's calendar day
    completed_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)  # last write, UTC

    count = Column(Integer, nullable=False, default=1)
    target_count = Column(Integer, nullable=False, default=1)  # habit.target_count when created

    notes = Column(Text, nullable=True)
    mood_at_time = Column(String, nullable=True)
    mood_after_completion = Column(String, nullable=True)
    effort_level = Column(Integer, nullable=True)        # 1–5
    satisfaction_level = Column(Integer, nullable=True)  # 1–5
    source = Column(String, nullable=False, default="manual")  # manual, reminder, mood_recommendation

    streak_at_completion = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("habit_id", "completion_date", name="uq_habit_completion_per_day"),
        Index("ix_completions_user_date", "user_id", "completion_date"),
    )

    @property
    def completion_percentage(self) -> int:
        if not self.target_count:
            return 0
        return round(self.count / self.target_count * 100)

    @property
    def is_fully_completed(self) -> bool:
        return self.count >= self.target_count
