from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from habit_tracker.database import get_db
from habit_tracker.core.auth import get_current_user
from habit_tracker.models.user import User
from habit_tracker.schemas.user import GamificationStateResponse, BadgeResponse

router = APIRouter(prefix="/gamification", tags=["gamification"])

@router.get("/me", response_model=GamificationStateResponse)
async def get_my_progress(
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    result = await db.execute(
        select(User)
        .where(User.id == current_user.id)
        .execution_options(populate_existing=True)
    )
    user = result.scalar_one()
    return GamificationStateResponse(
        user_id=user.id,
        points=user.points,
        level=user.level,
        mood_streak=user.mood_streak,
        habit_streak=user.habit_streak,
        badges=[BadgeResponse.model_validate(b) for b in user.badges],
    )
