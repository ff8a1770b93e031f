"""
API Router - Main Entry Point
Aggregates all API endpoints for the SmartMess ledger service
"""
from importlib import import_module
from typing import List, Optional

from fastapi import APIRouter

from smartmess.config.settings import settings
from smartmess.core.logging import get_logger

logger = get_logger(__name__)

# Create main API router with proper configuration
router = APIRouter(
    responses={
        400: {"description": "Bad Request"},
        401: {"description": "Unauthorized"},
        403: {"description": "Forbidden"},
        404: {"description": "Not Found"},
        422: {"description": "Validation Error"},
        500: {"description": "Internal Server Error"}
    }
)

# Registered module names, reported by /health
loaded_modules: List[str] = []


def include_module_router(module_path: str, module_name: str, tags: Optional[List[str]] = None) -> None:
    """Import a module and register its router; import errors propagate."""
    module = import_module(module_path)
    module_router = getattr(module, "router")

    if tags:
        router.include_router(module_router, tags=tags)
    else:
        router.include_router(module_router)

    loaded_modules.append(module_name)
    logger.debug(f"Registered {module_name} router from {module_path}")


include_module_router("smartmess.api.v1.mess.off_days", "off_days")
include_module_router("smartmess.api.v1.mess.off_day_settings", "off_day_settings")
include_module_router("smartmess.api.v1.payment_requests", "payment_requests")
include_module_router("smartmess.api.v1.credit_management", "credit_management")
include_module_router("smartmess.api.v1.billing", "billing")


@router.get("/health", tags=["System Health"])
async def api_health_check():
    """
    API health check with module status
    """
    return {
        "status": "healthy",
        "version": settings.API_VERSION,
        "api_version": "v1",
        "environment": settings.ENVIRONMENT,
        "loaded_modules": loaded_modules,
        "description": "SmartMess ledger service API"
    }
