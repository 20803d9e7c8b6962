# main.py — Task Analytics API
# Features:
# - Request correlation IDs + structured access log
# - {"error", "message"} envelope for every failure
# - Health check with DB verification
# - Analytics + observability routers

import json
import os
import time
import logging
from contextlib import asynccontextmanager
from http import HTTPStatus

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from database import init_db, close_db, async_session_maker
from exceptions import AnalyticsError
from response_cache import get_response_cache
from logging_system import (
    RequestContext, get_logger, set_current_context, reset_current_context,
)
from telemetry import setup_telemetry, SERVICE_VERSION

# Logging
logging.basicConfig(
    level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO),
    format="%(asctime)s [%(name)s] %(levelname)s %(message)s",
)
logger = logging.getLogger("task-analytics")


def _check_startup_config():
    """Validate critical configuration on startup."""
    warnings = []

    if len(os.getenv("JWT_SECRET_KEY", "")) < 32:
        warnings.append("⚠️  JWT_SECRET_KEY is missing or shorter than 32 characters")

    if os.getenv("DATABASE_URL", "").startswith("sqlite"):
        warnings.append("⚠️  DATABASE_URL points at SQLite; use the tracker's Postgres in production")

    for w in warnings:
        logger.warning(w)

    return len(warnings) == 0


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Starting Task Analytics API...")
    if os.getenv("AUTO_CREATE_TABLES", "false").lower() == "true":
        await init_db()
        logger.info("✅ Tracker tables ensured")
    _check_startup_config()
    # No-op unless OTEL_EXPORTER_OTLP_ENDPOINT is set
    setup_telemetry(app)
    yield
    logger.info("🛑 Shutting down Task Analytics API...")
    await close_db()


app = FastAPI(
    title="Task Analytics API",
    description="Dashboards, trends, workload and recommendations over the task tracker",
    version=SERVICE_VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# ============================================================
# CORS
# ============================================================

ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173").split(",")
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID", "X-Correlation-ID"],
    expose_headers=["X-Request-ID", "X-Correlation-ID", "X-Cache"],
)


# ============================================================
# MIDDLEWARE: Correlation IDs + Timing
# ============================================================

@app.middleware("http")
async def correlation_id_middleware(request: Request, call_next):
    context = RequestContext.create(
        request_id=request.headers.get("X-Request-ID"),
        correlation_id=request.headers.get("X-Correlation-ID"),
    )
    request.state.request_id = context.request_id
    request.state.correlation_id = context.correlation_id
    token = set_current_context(context)

    start = time.perf_counter()
    try:
        response = await call_next(request)
        duration = time.perf_counter() - start

        response.headers["X-Request-ID"] = context.request_id
        response.headers["X-Correlation-ID"] = context.correlation_id
        response.headers["X-Response-Time"] = f"{duration:.4f}s"

        get_logger().response(request.method, request.url.path, response.status_code, duration * 1000)
        return response
    finally:
        reset_current_context(token)


# ============================================================
# EXCEPTION HANDLERS
# ============================================================

def _error_response(request: Request, status_code: int, body: dict, headers=None) -> JSONResponse:
    body = {**body, "request_id": getattr(request.state, "request_id", None)}
    return JSONResponse(status_code=status_code, content=body, headers=headers)


def _jsonable(value):
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return str(value)
    return value


@app.exception_handler(AnalyticsError)
async def analytics_exception_handler(request: Request, exc: AnalyticsError):
    if exc.status_code >= 500:
        logger.error(f"Analytics computation failed: {exc.__cause__!r}", exc_info=exc)
    return _error_response(request, exc.status_code, exc.to_dict())


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    try:
        label = HTTPStatus(exc.status_code).phrase
    except ValueError:
        label = "Error"
    body = {"error": label}
    if exc.detail and exc.detail != label:
        body["message"] = str(exc.detail)
    return _error_response(request, exc.status_code, body, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        detail = {"type": str(err.get("type", "unknown")), "loc": list(err.get("loc", [])), "msg": str(err.get("msg", ""))}
        if "input" in err:
            detail["input"] = _jsonable(err["input"])
        errors.append(detail)

    return _error_response(
        request,
        422,
        {"error": "Validation error", "message": "; ".join(e["msg"] for e in errors), "details": errors},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return _error_response(request, 500, {"error": "Internal server error"})


# ============================================================
# ROUTERS
# ============================================================

from routers import analytics, observability

app.include_router(analytics.router)
app.include_router(observability.router)


# ============================================================
# HEALTH & ROOT
# ============================================================

@app.get("/health")
async def health_check():
    """Liveness plus one round trip to the tracker database"""
    try:
        async with async_session_maker() as db:
            await db.execute(text("SELECT 1"))
        database = "connected"
    except (SQLAlchemyError, OSError) as exc:
        database = f"error: {str(exc)[:100]}"

    return {
        "status": "healthy" if database == "connected" else "degraded",
        "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "version": SERVICE_VERSION,
        "environment": os.getenv("ENVIRONMENT", "development"),
        "database": database,
        "response_cache": get_response_cache().stats()["entries"],
    }


@app.get("/")
async def root():
    return {
        "name": "Task Analytics API",
        "version": SERVICE_VERSION,
        "docs": "/docs",
        "health": "/health",
        "status": "operational",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", 8000)),
        reload=os.getenv("ENVIRONMENT") != "production",
        workers=int(os.getenv("WORKERS", 1)),
    )
