# habit_tracker/main.py
import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import exc as sa_exc
from habit_tracker.config import settings
from habit_tracker.database import engine, AsyncSessionLocal, Base
from habit_tracker.core.errors import HabitEngineError
from habit_tracker.models import user, habit, completion, gamification  # noqa: F401  register tables
from habit_tracker.routers import habits, gamification as gamification_router
from habit_tracker.services.gamification import retry_pending_awards

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


app = FastAPI(title="Habit Tracker - Streak Engine", version="1.0")

app.include_router(habits.router)
app.include_router(gamification_router.router)


@app.exception_handler(HabitEngineError)
async def habit_engine_error_handler(request: Request, exc: HabitEngineError):
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


# Create DB Tables (for local runs; use Alembic in prod)
@app.on_event("startup")
async def startup_event():
    # ignore duplicate-object errors from previous partial runs
    async with engine.begin() as conn:
        try:
            await conn.run_sync(Base.metadata.create_all)
        except sa_exc.IntegrityError as e:
            msg = str(getattr(e, "orig", e))
            if "duplicate key value violates unique constraint" in msg or "already exists" in msg:
                logger.warning("Ignored duplicate DDL error during create_all: %s", msg)
            else:
                raise

    async with AsyncSessionLocal() as db:
        applied = await retry_pending_awards(db)
        if applied:
            logger.info("Applied %s queued gamification awards on startup", applied)


@app.get("/")
def read_root():
    return {"message": "Habit Tracker API"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("habit_tracker.main:app", host="0.0.0.0", port=8000, reload=True)
