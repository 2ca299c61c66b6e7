from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey, UniqueConstraint, func
from habit_tracker.database import Base

class PendingAward(Base):
    """A completion whose points/badges could not be applied yet."""

    __tablename__ = "pending_awards"

    id = Column(Integer, primary_key=True, index=True)
    completion_id = Column(Integer, ForeignKey("habit_completions.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (UniqueConstraint("completion_id", name="uq_pending_award_completion"),)
