from contextlib import asynccontextmanager
from datetime import date
from typing import Optional
import logging

from fastapi import FastAPI, HTTPException, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import clock
import config
import database
import lifecycle
from errors import (
    CapacityExhaustedError,
    InvalidOperationError,
    InvalidScheduleError,
    NotFoundError,
    RelocationCancelledError,
)
from models import (
    DayRecord,
    DayRecordSave,
    GenerationReport,
    Goal,
    GoalSave,
    RecommendedPriority,
    RecurringTemplate,
    RecurringTemplateCreate,
    RecurringTemplateUpdate,
    RelocationResult,
    Step,
    StepInput,
)
from recommendations import get_recommendations
from recurrence import generate_for_date
from relocation import relocate_priority
from reminders import schedule_worry_reminder
from scheduler import DAILY_GENERATION_JOB_ID, TaskScheduler

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def run_daily_generation():
    """Scheduled at local midnight: materialize today's recurring priorities."""
    generate_for_date(clock.today_in(config.APP_TIMEZONE))


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    database.init_db()
    scheduler = TaskScheduler(config.APP_TIMEZONE)
    scheduler.register_daily(DAILY_GENERATION_JOB_ID, run_daily_generation)
    app.state.scheduler = scheduler
    if not config.ENABLE_SCHEDULER:
        logger.info("Background scheduler disabled")
    else:
        scheduler.start()
        # Catch up in case the server was down at midnight
        run_daily_generation()
    yield
    # Shutdown
    scheduler.shutdown()

app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(NotFoundError)
async def not_found_handler(_request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"error": str(exc)})


@app.exception_handler(InvalidScheduleError)
@app.exception_handler(InvalidOperationError)
@app.exception_handler(CapacityExhaustedError)
async def bad_request_handler(_request: Request, exc: Exception):
    return JSONResponse(status_code=400, content={"error": str(exc)})


@app.exception_handler(RelocationCancelledError)
async def cancelled_handler(_request: Request, exc: RelocationCancelledError):
    return JSONResponse(status_code=503, content={"error": str(exc)})


def parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid date format")


# Recurring priority templates
@app.get("/api/recurring-priorities")
def list_recurring_priorities() -> list[RecurringTemplate]:
    return database.list_templates_db()


@app.get("/api/recurring-priorities/{template_id}")
def get_recurring_priority(template_id: int) -> RecurringTemplate:
    template = database.get_template_db(template_id)
    if not template:
        raise HTTPException(status_code=404, detail="Recurring priority not found")
    return template


@app.post("/api/recurring-priorities", status_code=201)
def create_recurring_priority(data: RecurringTemplateCreate) -> RecurringTemplate:
    return lifecycle.create_template(data)


@app.put("/api/recurring-priorities/{template_id}")
def update_recurring_priority(template_id: int, data: RecurringTemplateUpdate) -> RecurringTemplate:
    return lifecycle.update_template(template_id, data)


@app.delete("/api/recurring-priorities/{template_id}", status_code=204)
def delete_recurring_priority(template_id: int) -> Response:
    lifecycle.deactivate_template(template_id)
    return Response(status_code=204)


@app.patch("/api/recurring-priorities/{template_id}/toggle")
def toggle_recurring_priority(template_id: int) -> RecurringTemplate:
    return lifecycle.toggle_template(template_id)


@app.post("/api/recurring-priorities/generate")
def generate_recurring_priorities(target_date: Optional[str] = Query(default=None, alias="date")) -> GenerationReport:
    """Run generation for a date (default: today)."""
    target = parse_date(target_date) if target_date else clock.today_in(config.APP_TIMEZONE)
    return generate_for_date(target)


# Daily entries
@app.get("/api/daily/{day}")
def get_daily_entry(day: str) -> DayRecord:
    record = database.get_day_db(parse_date(day))
    if not record:
        raise HTTPException(status_code=404, detail="Daily entry not found")
    return record


@app.post("/api/daily")
def save_daily_entry(payload: DayRecordSave, request: Request, response: Response) -> DayRecord:
    record, created = database.save_day_db(payload)
    schedule_worry_reminder(request.app.state.scheduler, record)
    if created:
        response.status_code = 201
    return record


@app.post("/api/priorities/{priority_id}/move-to-next-day")
def move_priority_to_next_day(priority_id: int) -> RelocationResult:
    return relocate_priority(priority_id)


# Goals
@app.get("/api/goals")
def list_goals() -> list[Goal]:
    return database.list_goals_db()


@app.get("/api/goals/{goal_id}")
def get_goal(goal_id: int) -> Goal:
    goal = database.get_goal_db(goal_id)
    if not goal:
        raise HTTPException(status_code=404, detail="Goal not found")
    return goal


@app.post("/api/goals", status_code=201)
def create_goal(data: GoalSave) -> Goal:
    return database.create_goal_db(data)


@app.put("/api/goals/{goal_id}")
def update_goal(goal_id: int, data: GoalSave) -> Goal:
    goal = database.update_goal_db(goal_id, data)
    if not goal:
        raise HTTPException(status_code=404, detail="Goal not found")
    return goal


@app.delete("/api/goals/{goal_id}", status_code=204)
def delete_goal(goal_id: int) -> Response:
    if not database.delete_goal_db(goal_id):
        raise HTTPException(status_code=404, detail="Goal not found")
    return Response(status_code=204)


@app.put("/api/steps/{step_id}")
def update_step(step_id: int, data: StepInput) -> Step:
    step = database.update_step_db(step_id, data)
    if not step:
        raise HTTPException(status_code=404, detail="Step not found")
    return step


# AI recommendations
@app.get("/api/recommendations/{day}")
async def recommend_priorities(day: str) -> list[RecommendedPriority]:
    return await get_recommendations(parse_date(day))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
