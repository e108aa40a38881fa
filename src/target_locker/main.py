import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .errors import TargetRejected
from .lifecycle import TargetLifecycle
from .notifications import NotificationCapability, ReminderScheduler, TimerFactory, get_notifier
from .repositories import TargetRepository
from .routers import targets as targets_router
from .settings import Settings, get_settings
from .storage import BlobStore, get_blob_store
from .window import Clock, SystemClock

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {
        "name": "targets",
        "description": "Lock tomorrow's targets: create, edit, lock, complete, snooze and export to calendar.",
    },
]


# PUBLIC_INTERFACE
def create_app(
    settings: Optional[Settings] = None,
    clock: Optional[Clock] = None,
    store: Optional[BlobStore] = None,
    notifier: Optional[NotificationCapability] = None,
    timers: Optional[TimerFactory] = None,
) -> FastAPI:
    """
    Build the application. Collaborators default to what settings select;
    tests pass their own clock, store, notifier and timers.
    """
    settings = settings or get_settings()
    logging.getLogger("target_locker").setLevel(settings.log_level)

    clock = clock or SystemClock(settings.timezone)
    store = store or get_blob_store(settings)
    notifier = notifier or get_notifier(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        repository = TargetRepository(store, tz=clock.now().tzinfo)
        lifecycle = TargetLifecycle(repository, clock)
        scheduler = ReminderScheduler(notifier, clock, timers)
        scheduler.attach(lifecycle)
        # Timers never survive a restart; derive them again from what was loaded.
        scheduler.reconcile(lifecycle.targets)
        logger.info("Loaded %d targets from %s store", len(lifecycle.targets), store.name)
        app.state.lifecycle = lifecycle
        app.state.scheduler = scheduler
        try:
            yield
        finally:
            scheduler.cancel_all()

    app = FastAPI(
        title="Target Locker",
        description="Commit to tomorrow's targets, lock them in and get reminded when they are due.",
        version="0.1.0",
        openapi_tags=openapi_tags,
        lifespan=lifespan,
    )

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

    @app.exception_handler(TargetRejected)
    async def rejection_handler(request: Request, exc: TargetRejected) -> JSONResponse:
        """
        Surface lifecycle rejections as {"error": <code>, "message": ..., "target_id": ...}.
        """
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.code, "message": exc.message, "target_id": exc.target_id},
        )

    # PUBLIC_INTERFACE
    @app.get("/", summary="Health Check", tags=["health"])
    async def health_check():
        """
        Health check endpoint.

        Returns:
            A JSON object indicating service health.
        """
        return {
            "message": "Healthy",
            "backend": store.name,
            "notifications": notifier.permission.value,
        }

    app.include_router(targets_router.router)
    return app


app = create_app()
