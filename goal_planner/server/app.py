# server/app.py
import random
from datetime import date, datetime, timezone
from typing import Any, AsyncIterator, Dict

from fastapi import BackgroundTasks, Depends, FastAPI, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from . import config
from .errors import PlanError, PlanValidationError
from .llm import default_model
from .pipeline import (
    FULL_PLAN,
    TITLES_ONLY,
    PlanModel,
    generate_plan,
    run_plan_job,
    stream_plan_events,
    validate_plan_request,
)
from .schemas import PlanIn, PlanOut, PlanStartOut, PlanStatusOut
from .status_store import InMemoryPlanStatusStore, PlanStatusStore

app = FastAPI(title="Goal Planner Backend")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_rng = random.Random()
_status_store = InMemoryPlanStatusStore(
    ttl=config.STATUS_TTL,
    max_entries=config.STATUS_MAX_ENTRIES,
)


# ---------------------------------------------------------------------------
# Dependencies (overridden in tests)
# ---------------------------------------------------------------------------


def get_model() -> PlanModel:
    return default_model


def get_rng() -> random.Random:
    return _rng


def get_today() -> date:
    return date.today()


def get_upstream_timeout() -> float:
    return config.UPSTREAM_TIMEOUT


def get_status_store() -> PlanStatusStore:
    return _status_store


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


@app.exception_handler(PlanError)
async def plan_error_handler(_request: Request, exc: PlanError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    # only a bad request body means goal/horizon are missing
    if not all(tuple(error.get("loc", ()))[:1] == ("body",) for error in exc.errors()):
        return await request_validation_exception_handler(request, exc)
    error = PlanValidationError()
    return JSONResponse(status_code=error.status_code, content=error.to_body())


@app.exception_handler(Exception)
async def unexpected_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    print("[app] Unhandled error:", repr(exc))
    return JSONResponse(status_code=500, content={"error": "Server error", "detail": str(exc)})


def _event_stream(frames: AsyncIterator[str]) -> StreamingResponse:
    return StreamingResponse(
        frames,
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive", "X-Accel-Buffering": "no"},
    )


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@app.get("/")
def root() -> Dict[str, Any]:
    return {"message": "Plan relay backend is running"}


@app.get("/health")
def health() -> Dict[str, Any]:
    return {"ok": True, "ts": datetime.now(timezone.utc).isoformat()}


# ---------------------------------------------------------------------------
# /plan – streamed by default, ?stream=false for one JSON document
# ---------------------------------------------------------------------------


@app.post("/plan", response_model=None)
async def plan(
    payload: PlanIn,
    stream: bool = True,
    model: PlanModel = Depends(get_model),
    rng: random.Random = Depends(get_rng),
    today: date = Depends(get_today),
    timeout: float = Depends(get_upstream_timeout),
):
    goal, horizon = validate_plan_request(payload.goal, payload.horizon)

    if stream:
        return _event_stream(
            stream_plan_events(model, FULL_PLAN, goal, horizon, rng=rng, today=today, timeout=timeout)
        )

    tasks = await generate_plan(model, FULL_PLAN, goal, horizon, rng=rng, today=today, timeout=timeout)
    return PlanOut(tasks=tasks)


# ---------------------------------------------------------------------------
# Legacy endpoints
# ---------------------------------------------------------------------------


@app.post("/plan/stream")
async def plan_stream(
    payload: PlanIn,
    model: PlanModel = Depends(get_model),
    rng: random.Random = Depends(get_rng),
    today: date = Depends(get_today),
    timeout: float = Depends(get_upstream_timeout),
) -> StreamingResponse:
    goal, horizon = validate_plan_request(payload.goal, payload.horizon)
    return _event_stream(
        stream_plan_events(model, TITLES_ONLY, goal, horizon, rng=rng, today=today, timeout=timeout)
    )


@app.post("/plan/start", response_model=PlanStartOut)
async def plan_start(
    payload: PlanIn,
    background_tasks: BackgroundTasks,
    model: PlanModel = Depends(get_model),
    rng: random.Random = Depends(get_rng),
    today: date = Depends(get_today),
    timeout: float = Depends(get_upstream_timeout),
    store: PlanStatusStore = Depends(get_status_store),
) -> PlanStartOut:
    goal, horizon = validate_plan_request(payload.goal, payload.horizon)
    plan_id = store.create_pending()
    background_tasks.add_task(
        run_plan_job,
        store,
        plan_id,
        model,
        FULL_PLAN,
        goal,
        horizon,
        rng=rng,
        today=today,
        timeout=timeout,
    )
    return PlanStartOut(planId=plan_id)


@app.get(
    "/plan/status/{plan_id}",
    response_model=PlanStatusOut,
    response_model_exclude_none=True,
)
def plan_status(
    plan_id: str,
    store: PlanStatusStore = Depends(get_status_store),
) -> PlanStatusOut:
    return PlanStatusOut(**store.get(plan_id).to_dict())


def main() -> None:
    import uvicorn

    print(f"[app] Server is running on http://localhost:{config.PORT}")
    uvicorn.run("goal_planner.server.app:app", host="0.0.0.0", port=config.PORT)


if __name__ == "__main__":
    main()
