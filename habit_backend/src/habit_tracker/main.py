import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .errors import HabitDeletionError, PersistenceError
from .routers import habits as habits_router
from .routers import history as history_router
from .routers import preferences as preferences_router
from .routers import reminders as reminders_router
from .settings import get_settings
from .tracker import get_tracker

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {"name": "habits", "description": "Create, edit, delete and check off habits."},
    {"name": "history", "description": "Completion history grouped by day."},
    {"name": "reminders", "description": "Pending daily habit reminders."},
    {"name": "preferences", "description": "Display preferences."},
    {"name": "lifecycle", "description": "Application lifecycle signals that trigger the daily reset."},
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Application activation runs the daily reset check
    tracker = app.dependency_overrides.get(get_tracker, get_tracker)()
    outcome = await run_in_threadpool(tracker.activate)
    logger.info("Activated; reset performed=%s", outcome.performed)
    yield


app = FastAPI(
    title="Habit Tracker",
    description="Local backend for a single-user habit tracker: habits, daily completions, history and reminders.",
    version="0.1.0",
    openapi_tags=openapi_tags,
    lifespan=lifespan,
)

_settings = get_settings()

# Configure CORS based on settings (.env -> CORS_ALLOW_ORIGINS), with '*' fallback
allow_all = (_settings.cors_allow_origins == ["*"]) or (len(_settings.cors_allow_origins) == 0)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if allow_all else _settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Return a consistent JSON structure for request validation errors.

    Response format:
        {
            "error": "ValidationError",
            "detail": [... pydantic/fastapi error details ...],
            "message": "Request validation failed"
        }
    """
    return JSONResponse(
        status_code=422,
        content={
            "error": "ValidationError",
            "message": "Request validation failed",
            "detail": jsonable_encoder(exc.errors()),
        },
    )


@app.exception_handler(HabitDeletionError)
async def deletion_exception_handler(request: Request, exc: HabitDeletionError) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={"error": "HabitDeletionError", "message": str(exc)},
    )


@app.exception_handler(PersistenceError)
async def persistence_exception_handler(request: Request, exc: PersistenceError) -> JSONResponse:
    logger.error("Persistence failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=503,
        content={"error": "PersistenceError", "message": str(exc)},
    )


# PUBLIC_INTERFACE
@app.get("/", summary="Health Check", tags=["health"])
def health_check():
    """
    Health check endpoint.

    Returns:
        A JSON object indicating service health.
    """
    return {"message": "Healthy", "backend": _settings.persistence_backend}


# Include routers
app.include_router(habits_router.router)
app.include_router(history_router.router)
app.include_router(reminders_router.router)
app.include_router(preferences_router.router)
