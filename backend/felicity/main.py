"""
Felicity Events API - Main Application Entry Point

Student event management: organizers publish normal, merchandise and
hackathon events; participants register, receive QR tickets, form teams
and chat with their team in real time.
- Capacity and team slots are claimed with conditional UPDATEs
- Redis caching of the participant browse list
- Structured logging with request correlation
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from felicity.core.config import get_settings
from felicity.core.errors import register_exception_handlers
from felicity.core.logging import setup_logging, get_logger
from felicity.core.metrics import metrics_endpoint
from felicity.api.router import api_router
from felicity.api.middleware import RequestLoggingMiddleware
from felicity.db.session import AsyncSessionLocal
from felicity.services.auth_service import ensure_admin_account
from felicity.services.cache_service import get_redis, close_redis, get_cache_stats

settings = get_settings()


async def seed_admin() -> None:
    async with AsyncSessionLocal() as session:
        await ensure_admin_account(session)
        await session.commit()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
    )

    # The schema may not be migrated yet on a fresh checkout
    try:
        await seed_admin()
    except Exception as e:
        logger.error("admin_seed_failed", error=str(e))

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without cache")

    yield

    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Event registration, QR ticketing, hackathon teams and team chat",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)

register_exception_handlers(app)

app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    cache_stats = await get_cache_stats()
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "cache": cache_stats,
    }


@app.get("/metrics", tags=["Health"], include_in_schema=False)
async def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
