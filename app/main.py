"""
Main FastAPI application for the Game Fantasy League API.
"""
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from prometheus_fastapi_instrumentator import Instrumentator

from app.core.config import settings
from app.core.database import init_db
from app.core.exceptions import FantasyLeagueError
from app.core.logging import configure_logging, get_logger
from app.core.middleware import CorrelationIdMiddleware
from app.core.rate_limit import limiter
from app.core import metrics
from app.api.routes import drafts, games, leagues, scores, scoring

# Load environment variables from .env file
from dotenv import load_dotenv
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

# JSON logs in production, coloured console output otherwise
configure_logging(
    level=settings.LOG_LEVEL,
    json_output=settings.LOG_JSON and not settings.is_development()
)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan events."""
    # Startup
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    missing = settings.validate_required_secrets()
    if missing:
        logger.warning(f"Missing required settings: {', '.join(missing)}")

    init_db()

    if settings.SCHEDULER_ENABLED:
        from app.core.scheduler import start_scheduler
        await start_scheduler()
        logger.info("Automation scheduler started")
    metrics.update_scheduler_metrics()

    logger.info("Application started")

    yield

    # Shutdown
    if settings.SCHEDULER_ENABLED:
        from app.core.scheduler import stop_scheduler
        await stop_scheduler()
        logger.info("Automation scheduler stopped")

    logger.info("Shutting down application")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Seasonal fantasy league over upcoming video game releases: snake drafts and daily scoring",
    lifespan=lifespan
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(FantasyLeagueError)
async def fantasy_league_error_handler(request: Request, exc: FantasyLeagueError) -> JSONResponse:
    """Domain errors become {"error": code, "detail": message} with the error's status."""
    logger.info(
        f"{request.method} {request.url.path} rejected: {exc.code}",
        extra={"error_code": exc.code, "status": exc.status_code},
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "detail": exc.message},
    )


# Add correlation ID middleware (must be added before CORS for proper header handling)
app.add_middleware(CorrelationIdMiddleware)

# Initialize Prometheus metrics BEFORE including routes
instrumentator = Instrumentator()
instrumentator.instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API v1 - All routes use /api/v1/ prefix for versioning
app.include_router(leagues.router, prefix="/api/v1")
app.include_router(drafts.router, prefix="/api/v1")
app.include_router(scores.router, prefix="/api/v1")
app.include_router(games.router, prefix="/api/v1")
app.include_router(scoring.router, prefix="/api/v1")


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "endpoints": {
            "api_version": "v1",
            "leagues": "/api/v1/leagues",
            "drafts": "/api/v1/leagues/{league_id}/drafts",
            "scores": "/api/v1/leagues/{league_id}/scores",
            "scoring": "/api/v1/scoring/run",
            "docs": "/docs",
            "health": "/health",
            "metrics": "/metrics"
        }
    }


@app.get("/health")
@limiter.limit("120/minute")  # Higher limit for health checks
async def health_check(request: Request):
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG
    )
