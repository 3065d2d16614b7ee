"""FastAPI application entry point"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging
import time
import uuid
from apscheduler.schedulers.background import BackgroundScheduler

from timeline.api.endpoints import health, drive, ingest, embed, search, files, chat, usage
from timeline.config import get_settings
from timeline.database.base import Base
from timeline.database.session import get_engine
from timeline.exceptions import TimelineException
from timeline.jobs.drive_sync import sync_all_connected
from timeline.utils.logger import request_id_var, setup_logging
import timeline.models  # noqa: F401  registers tables on Base.metadata

settings = get_settings()

# Setup logging
setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

# Background scheduler for periodic tasks
scheduler = BackgroundScheduler()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager
    - Startup: Initialize database tables, start background jobs
    - Shutdown: Cleanup resources
    """
    # Startup
    logger.info(f"Starting {settings.APP_NAME}")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Chat model: {settings.OPENAI_CHAT_MODEL}, embedding model: {settings.OPENAI_EMBEDDING_MODEL}")
    if not settings.OPENAI_API_KEY:
        logger.warning("OPENAI_API_KEY is not set")

    # Create database tables
    try:
        Base.metadata.create_all(bind=get_engine())
        logger.info("Database tables created/verified")
    except Exception as e:
        logger.error(f"Database initialization error: {str(e)}")

    # Start background scheduler
    if settings.SYNC_INTERVAL_MINUTES > 0:
        try:
            scheduler.add_job(
                sync_all_connected,
                'interval',
                minutes=settings.SYNC_INTERVAL_MINUTES,
                id='drive_sync',
                replace_existing=True,
                max_instances=1,
                coalesce=True
            )
            scheduler.start()
            logger.info(f"Background scheduler started, Drive sync every {settings.SYNC_INTERVAL_MINUTES} minutes")
        except Exception as e:
            logger.error(f"Scheduler initialization error: {str(e)}")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.APP_NAME}")

    if scheduler.running:
        try:
            scheduler.shutdown()
            logger.info("Background scheduler stopped")
        except Exception as e:
            logger.error(f"Scheduler shutdown error: {str(e)}")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    description="Google Drive grounded retrieval and chat",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context(request: Request, call_next):
    """Assign a request id and log route, status and duration"""
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    token = request_id_var.set(request_id)
    started = time.perf_counter()
    try:
        response = await call_next(request)
        duration_ms = (time.perf_counter() - started) * 1000
        level = logging.ERROR if response.status_code >= 500 else logging.INFO
        logger.log(level, f"{request.method} {request.url.path} -> {response.status_code} ({duration_ms:.0f}ms)")
        response.headers["X-Request-ID"] = request_id
        return response
    finally:
        request_id_var.reset(token)


# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(drive.router, prefix="/api", tags=["drive"])
app.include_router(ingest.router, prefix="/api", tags=["ingest"])
app.include_router(embed.router, prefix="/api", tags=["embeddings"])
app.include_router(search.router, prefix="/api", tags=["search"])
app.include_router(files.router, prefix="/api", tags=["files"])
app.include_router(chat.router, prefix="/api", tags=["chat"])
app.include_router(usage.router, prefix="/api", tags=["usage"])


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or request_id_var.get()


# Exception handlers
@app.exception_handler(TimelineException)
async def timeline_exception_handler(request: Request, exc: TimelineException):
    """Handle application exceptions with their stable error code"""
    if exc.status_code >= 500:
        logger.error(f"{exc.__class__.__name__}: {exc.message}")
    else:
        logger.warning(f"{exc.__class__.__name__}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={**exc.to_response_body(), "request_id": _request_id(request)}
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report invalid input without echoing it back"""
    issues = [
        {"loc": [str(part) for part in error.get("loc", ())], "msg": error.get("msg", "")}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={
            "error": "validation_error",
            "message": "Invalid request.",
            "issues": issues,
            "request_id": _request_id(request)
        }
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle all other exceptions"""
    logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_error",
            "message": "An unexpected error occurred" if settings.is_production else str(exc),
            "request_id": _request_id(request)
        }
    )


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": f"{settings.APP_NAME} API",
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT,
        "docs": "/docs" if settings.DEBUG else "disabled"
    }
