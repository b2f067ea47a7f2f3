from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from bpmflow.api.errors import engine_error_handler
from bpmflow.api.v1.router import api_router
from bpmflow.config import APP_VERSION, _DEFAULT_SECRET_KEYS, settings
from bpmflow.core.logging_config import configure_logging
from bpmflow.core.metrics import app_info, bg_task_last_success, bg_task_runs_total
from bpmflow.database import async_session, engine
from bpmflow.models import Base
from bpmflow.services.execution_engine import EngineError

logger = logging.getLogger(__name__)

_SCHEDULER_TASK = "scheduled_processes"


async def _scheduled_process_loop() -> None:
    """Background loop that starts process instances whose schedule is due."""
    from bpmflow.services.scheduler_service import run_due_schedules

    while True:
        try:
            await asyncio.sleep(settings.SCHEDULER_INTERVAL_SECONDS)
            async with async_session() as db:
                started = await run_due_schedules(db)
            bg_task_runs_total.labels(task_name=_SCHEDULER_TASK, status="success").inc()
            bg_task_last_success.labels(task_name=_SCHEDULER_TASK).set(time.time())
            if started:
                logger.info("Scheduler started %d process instances", len(started))
        except asyncio.CancelledError:
            raise
        except Exception:
            bg_task_runs_total.labels(task_name=_SCHEDULER_TASK, status="error").inc()
            logger.exception("Error in scheduled process loop")


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.ENVIRONMENT, settings.LOG_LEVEL)

    # Refuse startup with the default secret key outside development
    if settings.SECRET_KEY in _DEFAULT_SECRET_KEYS:
        if settings.ENVIRONMENT != "development":
            raise RuntimeError(
                "SECRET_KEY must be set to a strong random value in production. "
                'Generate one with: python -c "import secrets; print(secrets.token_urlsafe(64))"'
            )
        logger.warning(
            "Using the default SECRET_KEY, acceptable for development only. "
            "Set a strong SECRET_KEY before deploying to production."
        )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    scheduler_task = None
    if settings.SCHEDULER_ENABLED:
        scheduler_task = asyncio.create_task(_scheduled_process_loop())

    yield

    if scheduler_task is not None:
        scheduler_task.cancel()
        try:
            await scheduler_task
        except asyncio.CancelledError:
            pass
    await engine.dispose()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=APP_VERSION,
    lifespan=lifespan,
    docs_url="/api/docs" if settings.ENVIRONMENT == "development" else None,
    redoc_url=None,
    openapi_url="/api/openapi.json" if settings.ENVIRONMENT == "development" else None,
)
app_info.info({"version": APP_VERSION, "environment": settings.ENVIRONMENT})

app.add_exception_handler(EngineError, engine_error_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)

app.include_router(api_router, prefix=settings.API_V1_PREFIX)


@app.get("/api/health")
async def health():
    return {"status": "ok", "version": APP_VERSION}


@app.get("/metrics", include_in_schema=False)
async def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
