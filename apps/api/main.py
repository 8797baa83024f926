import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from apps.api.errors import register_exception_handlers
from apps.api.middlewares.metrics import MetricsMiddleware
from apps.api.routers import auth, chat, health, match, notifications, photos, profile, reports
from core import close_redis, engine
from core.config import settings

logging.basicConfig(
    level=logging.DEBUG if settings.is_development else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    # Startup
    logger.info(f"Starting Matcha API ({settings.environment})")
    yield
    # Shutdown
    await close_redis()
    await engine.dispose()


app = FastAPI(
    title="Matcha API",
    description="API for the Matcha dating application",
    version="0.1.0",
    lifespan=lifespan,
)

# Middlewares
app.add_middleware(MetricsMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.is_development else settings.cors_origins,
    allow_credentials=not settings.is_development,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Include routers; each one carries its own prefix except health
app.include_router(health.router, prefix="/health", tags=["health"])
app.include_router(auth.router)
app.include_router(match.router)
app.include_router(reports.router)
app.include_router(profile.router)
app.include_router(photos.router)
app.include_router(chat.router)
app.include_router(notifications.router)


@app.get("/")
async def root() -> dict[str, str | bool]:
    """Root endpoint."""
    return {"success": True, "status": "ok", "service": "matcha-api"}


@app.get("/metrics")
async def metrics() -> Response:
    """Prometheus metrics endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
