import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from clubgoals.config import settings
from clubgoals.engine.errors import EngineError
from clubgoals.engine.router import router as goals_router

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="ClubGoals", version="0.1.0")
app.include_router(goals_router)


@app.exception_handler(EngineError)
async def engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})


@app.get("/")
async def root() -> dict:
    return {
        "status": "ok",
        "docs": "/docs",
        "health": "/health",
        "reports": {
            "habit_consistency": "/reports/habit-consistency",
            "weekly_trend": "/reports/weekly-trend",
            "habit_streak": "/reports/habit-streak",
            "leaderboard": "/reports/leaderboard",
            "goal_type_distribution": "/reports/goal-type-distribution",
            "weekly_goals_breakdown": "/reports/weekly-goals-breakdown",
            "personal": "/reports/personal",
        },
        "clubs": {"goals_report": "/clubs/{club_id}/goals-report"},
        "goals": {"progress": "/goals/{goal_id}/progress"},
    }


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
