from __future__ import annotations

import logging
import traceback
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from assessment_engine.api.router import router
from assessment_engine.observability import init_logging, init_otel
from assessment_engine.settings import settings
from assessment_engine.storage.mongo import MongoAssessmentRepository
from assessment_engine.wiring import get_repo

logger = logging.getLogger(__name__)


def error_response(status_code: int, message: str, headers: Optional[dict[str, str]] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message}, headers=headers)


@asynccontextmanager
async def lifespan(app: FastAPI):
    repo = get_repo()
    if isinstance(repo, MongoAssessmentRepository):
        await repo.ensure_indexes()
    logger.info(f"{settings.app_name} started ({settings.env}, storage={settings.storage_backend})")
    yield
    if isinstance(repo, MongoAssessmentRepository):
        repo.close()


def create_app() -> FastAPI:
    init_logging(settings.log_level)
    app = FastAPI(title=settings.app_name, lifespan=lifespan)

    init_otel(
        app=app,
        enabled=settings.observability_enabled,
        service_name=settings.otel_service_name,
        otlp_endpoint=settings.otel_exporter_otlp_endpoint,
        console_exporter=settings.otel_exporter_console,
        sample_rate=settings.otel_sample_rate,
        environment=settings.env,
    )

    origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return error_response(exc.status_code, str(exc.detail), getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', 'invalid')}" for err in exc.errors()
        )
        return error_response(422, f"Invalid request: {problems}")

    # Store outages and other unexpected failures
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc!r}")
        logger.error(f"Traceback: {''.join(traceback.format_tb(exc.__traceback__))}")
        return error_response(500, "Internal server error")

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok", "env": settings.env}

    return app


app = create_app()
