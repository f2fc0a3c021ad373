# backend/dispatchly/main.py
"""
Dispatchly API application.

Run locally with:
    uvicorn dispatchly.main:app --reload
"""

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI

from .core.config import is_running_tests, settings
from .core.constants import API_DESCRIPTION, API_TITLE, API_VERSION, BRAND_NAME
from .errors import register_error_handlers
from .routes import health, prometheus
from .routes.v1 import (
    assignments as assignments_v1,
    bookings as bookings_v1,
    providers as providers_v1,
    recurring_series as recurring_series_v1,
    settings as settings_v1,
)

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown."""
    logger.info(f"{BRAND_NAME} API starting up...")
    logger.info(f"Environment: {settings.environment}")
    if is_running_tests():
        logger.info("Running under pytest (test mode active)")
    yield
    logger.info(f"{BRAND_NAME} API shutting down...")


app = FastAPI(
    title=API_TITLE,
    description=API_DESCRIPTION,
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
)

# Register unified error envelope handlers
register_error_handlers(app)

# Create API v1 router
api_v1 = APIRouter(prefix="/api/v1")

# Provider routes carry their own /providers and /availability-rules paths
api_v1.include_router(providers_v1.router)
api_v1.include_router(bookings_v1.router, prefix="/bookings")
api_v1.include_router(assignments_v1.router)
api_v1.include_router(recurring_series_v1.router, prefix="/recurring-series")
api_v1.include_router(settings_v1.router, prefix="/settings")

app.include_router(api_v1)

# Infrastructure routes (unversioned)
app.include_router(health.router)
app.include_router(prometheus.router)
