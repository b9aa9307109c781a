"""
Memory Box Uploader - Main Application

FastAPI application that serves:
- The batch upload endpoint committing media and metadata to GitHub
- The destination / stat tile catalog for the upload form
- GitHub connection status and a health check

The application is stateless: the GitHub repository is the only persistent
store and nothing about it is cached between requests.
"""

import sys
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from memorybox.config import (
    APP_ENV,
    APP_HOST,
    APP_PORT,
    APP_VERSION,
    DEBUG,
    LOG_LEVEL,
    UPLOAD_TOKEN,
    StoreConfig,
)
from memorybox.routes.api import router as api_router

# ---------------------------------------------------------------------------
# Logging setup (stdout only)
# ---------------------------------------------------------------------------
logger.remove()

logger.add(
    sys.stdout,
    level="DEBUG" if DEBUG else LOG_LEVEL,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
    colorize=True,
)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log the effective configuration on startup and a line on shutdown."""
    logger.info("🚀 Starting Memory Box Uploader v{}", APP_VERSION)
    logger.info("📋 Environment: {} | Debug: {}", APP_ENV, DEBUG)

    config = StoreConfig.from_env()
    if config.is_configured:
        logger.info("☁️  Committing to {} @ {}", config.repository, config.branch)
    else:
        logger.warning("☁️  GitHub not configured, uploads will be refused")

    if UPLOAD_TOKEN:
        logger.info("🔒 Upload token required")
    else:
        logger.warning("🔓 Upload endpoint is open (no UPLOAD_TOKEN set)")

    logger.success("✅ Application ready, listening on {}:{}", APP_HOST, APP_PORT)

    yield

    logger.info("👋 Shutdown complete")


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------
def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title="Memory Box Uploader",
        description=(
            "Commits a fixed set of images, songs and stat tile values "
            "into a GitHub repository."
        ),
        version=APP_VERSION,
        lifespan=lifespan,
        docs_url="/docs" if DEBUG else None,
        redoc_url="/redoc" if DEBUG else None,
    )

    # ------------------------------------------------------------------
    # Request logging middleware
    # ------------------------------------------------------------------
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log every incoming HTTP request with timing information."""
        start = time.time()
        try:
            response = await call_next(request)
        except Exception as exc:
            duration = round(time.time() - start, 3)
            logger.error(
                "❌ {method} {path}: unhandled error after {duration}s: {exc}",
                method=request.method,
                path=request.url.path,
                duration=duration,
                exc=exc,
            )
            raise

        duration = round(time.time() - start, 3)
        status = response.status_code
        if status >= 500:
            log = logger.error
        elif status >= 400:
            log = logger.warning
        else:
            log = logger.info
        log(
            "📤 {method} {path} -> {status} [{duration}s]",
            method=request.method,
            path=request.url.path,
            status=status,
            duration=duration,
        )
        return response

    # ------------------------------------------------------------------
    # Error bodies share the upload failure shape
    # ------------------------------------------------------------------
    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail), "committed": []},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError):
        fields = [".".join(str(p) for p in err.get("loc", ())) for err in exc.errors()]
        return JSONResponse(
            status_code=422,
            content={"error": f"Invalid request: {', '.join(fields)}", "committed": []},
        )

    app.include_router(api_router)  # /api/*  JSON endpoints

    return app


# ---------------------------------------------------------------------------
# Create the app instance (used by Uvicorn)
# ---------------------------------------------------------------------------
app = create_app()


# ---------------------------------------------------------------------------
# Direct execution (development)
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "memorybox.main:app",
        host=APP_HOST,
        port=APP_PORT,
        reload=DEBUG,
        log_level="debug" if DEBUG else "info",
    )
