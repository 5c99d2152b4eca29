# backend/app/main.py
"""
FastAPI application entry point for the studio booking backend.
"""

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI
from fastapi.routing import APIRoute

from .core.config import settings
from .core.constants import API_DESCRIPTION, API_TITLE, API_VERSION, ROBOKASSA_ROUTE_PREFIX
from .errors import register_error_handlers
from .routes.v1 import (
    health as health_v1,
    prometheus as prometheus_v1,
    robokassa_payments as robokassa_payments_v1,
)

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logger.info(
        "Starting %s v%s (site_mode=%s, environment=%s)",
        API_TITLE,
        API_VERSION,
        settings.site_mode,
        settings.environment,
    )
    if not settings.robokassa_credentials().is_configured:
        logger.warning("Robokassa credentials are not configured; checkout is disabled")
    yield
    logger.info("Shutting down %s", API_TITLE)


def _unique_operation_id(route: APIRoute) -> str:
    methods = "_".join(sorted(m.lower() for m in route.methods or []))
    path = route.path_format.replace("/", "_").replace("{", "").replace("}", "").strip("_")
    name = (route.name or "operation").lower().replace(" ", "_")
    return f"{methods}__{path}__{name}".strip("_")


app = FastAPI(
    title=API_TITLE,
    description=API_DESCRIPTION,
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
    generate_unique_id_function=_unique_operation_id,
)
# Register unified error envelope handlers
register_error_handlers(app)

# Create API v1 router
api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(robokassa_payments_v1.router, prefix=ROBOKASSA_ROUTE_PREFIX)

# Mount API v1 first
app.include_router(api_v1)

# Infrastructure routes (intentionally unversioned)
app.include_router(health_v1.router, prefix="/health")
app.include_router(prometheus_v1.router, prefix="/metrics")
