from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Callable, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .alerts import AsyncioTimerQueue, InAppPlatform, NotificationPlatform, TimerQueue
from .logging_setup import setup_logging
from .notifications import NotificationScheduler
from .repositories import Repository, get_repository
from .routers import notifications as notifications_router
from .routers import tasks as tasks_router
from .settings import Settings, get_settings
from .utils import local_now

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {
        "name": "tasks",
        "description": "CRUD operations for scheduled tasks, ordered by due date.",
    },
    {
        "name": "notifications",
        "description": "Notification permission, test alerts, and delivered alerts.",
    },
]


# PUBLIC_INTERFACE
def create_app(
    settings: Optional[Settings] = None,
    *,
    repository: Optional[Repository] = None,
    platform: Optional[NotificationPlatform] = None,
    timers: Optional[TimerQueue] = None,
    clock: Callable[[], datetime] = local_now,
    configure_logging: bool = False,
) -> FastAPI:
    """
    Build the application.

    The repository and notification platform live as long as the app. The
    scheduler is created when the app starts, on the event loop serving
    requests, and all of its pending alerts are cancelled on shutdown.
    """
    settings = settings or get_settings()
    repo = repository or get_repository(settings)
    notifier = platform or InAppPlatform(
        settings.notification_permission,
        prompt_response=settings.notification_prompt_response,
        sound=settings.notification_sound,
        inbox_size=settings.notification_inbox_size,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if configure_logging:
            setup_logging(level=settings.log_level, log_file=settings.log_file)
        scheduler = NotificationScheduler(
            notifier,
            timers or AsyncioTimerQueue(asyncio.get_running_loop()),
            clock=clock,
            on_permission_granted=lambda: notifications_router.schedule_pending_tasks(scheduler, repo),
        )
        app.state.scheduler = scheduler
        notifications_router.schedule_pending_tasks(scheduler, repo)
        logger.info("Task tracker started (backend=%s)", settings.persistence_backend)
        try:
            yield
        finally:
            scheduler.clear_all_notifications()
            logger.info("Task tracker stopped; pending alerts cancelled")

    app = FastAPI(
        title="Time Task Tracker",
        description="Backend API for scheduled tasks with reminder and due-time notifications.",
        version="0.1.0",
        openapi_tags=openapi_tags,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.repository = repo
    app.state.platform = notifier

    # Configure CORS based on settings (.env -> CORS_ALLOW_ORIGINS), with '*' fallback
    allow_all = (settings.cors_allow_origins == ["*"]) or (len(settings.cors_allow_origins) == 0)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """
        Reject invalid input before it reaches the store.

        Response format:
            {
                "error": "Invalid task data",
                "details": [... pydantic/fastapi error details ...]
            }
        """
        logger.info("Rejected %s %s: %d validation error(s)", request.method, request.url.path, len(exc.errors()))
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid task data", "details": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    # PUBLIC_INTERFACE
    @app.get("/", summary="Health Check", tags=["health"])
    def health_check():
        """
        Health check endpoint.

        Returns:
            A JSON object indicating service health.
        """
        return {"message": "Healthy", "backend": settings.persistence_backend}

    app.include_router(tasks_router.router)
    app.include_router(notifications_router.router)
    return app


app = create_app(configure_logging=True)
