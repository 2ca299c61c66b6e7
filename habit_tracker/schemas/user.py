from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime

class BadgeResponse(BaseModel):
    name: str
    description: Optional[str]
    icon: Optional[str]
    earned_at: Optional[datetime]

    model_config = {"from_attributes": True}

class GamificationStateResponse(BaseModel):
    user_id: int
    points: int
    level: int
    mood_streak: int
    habit_streak: int
    badges: List[BadgeResponse]
