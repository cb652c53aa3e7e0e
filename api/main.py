"""
Site Forge API - FastAPI Entry Point

Exposes the website generation pipeline over HTTP with streamed progress.
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import structlog

from api.routes import generate_router
from config import configure_logging, settings
from schemas.errors import ConfigInvalid
from schemas.events import HealthResponse

configure_logging()

logger = structlog.get_logger()

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info(
        "Starting Site Forge API",
        environment=settings.environment,
        version=VERSION,
        artifacts_dir=settings.artifacts_dir,
    )

    yield

    logger.info("Shutting down Site Forge API")


app = FastAPI(
    title="Site Forge API",
    description="""
API for quality-driven website generation.

## Pipeline

- **Generation**: design strategy, layout, style system, copy, image plan,
  images and SEO metadata run as dependency waves
- **Assembly**: pages, stylesheet and script built from the artifacts
- **Quality loop**: rendered pages are scored in six categories and only the
  stages behind failing categories are regenerated

Progress is streamed as Server-Sent Events from `POST /generate`.
    """,
    version=VERSION,
    lifespan=lifespan,
    docs_url="/docs" if not settings.is_production else None,
    redoc_url="/redoc" if not settings.is_production else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://localhost:8000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ConfigInvalid)
async def config_invalid_handler(request: Request, exc: ConfigInvalid):
    """Invalid requirements never start a run."""
    logger.warning("Invalid requirements", path=request.url.path, errors=exc.errors)
    return JSONResponse(
        status_code=422,
        content={
            "error": exc.message,
            "code": exc.code.value,
            "details": exc.errors,
        },
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle uncaught exceptions."""
    logger.error(
        "Unhandled exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        exc_info=True,
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "details": str(exc) if settings.is_development else None,
        }
    )


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["System"],
    summary="Health check",
)
async def health_check():
    """Service status, timestamp and version."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        version=VERSION,
    )


@app.get("/", include_in_schema=False)
async def root():
    return {
        "name": "Site Forge API",
        "version": VERSION,
        "docs": "/docs",
        "health": "/health",
    }


app.include_router(generate_router)


# Development server
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
        log_level=settings.log_level.lower(),
    )
