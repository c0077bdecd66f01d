"""
Health check endpoints for the mathrender service.

This module provides health check endpoints for monitoring
and service discovery.
"""

import platform
from datetime import datetime, timezone

import psutil
from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse
from loguru import logger

from mathrender.config import settings
from mathrender.models.response import HealthResponse
from mathrender.utils.shell import check_command_available

router = APIRouter()


@router.get("/healthz", response_model=HealthResponse)
async def health_check() -> JSONResponse:
    """
    Basic health check endpoint.

    Returns:
        JSONResponse: Health status and basic information
    """
    return JSONResponse(
        status_code=200,
        content={
            "status": "healthy",
            "service": settings.APP_NAME,
            "version": settings.VERSION,
            "environment": settings.ENVIRONMENT,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }
    )


@router.get("/health", response_model=HealthResponse)
async def detailed_health_check() -> JSONResponse:
    """
    Detailed health check endpoint with system information.

    Returns:
        JSONResponse: Detailed health status, system metrics and tool availability
    """
    try:
        system_info = {
            "platform": platform.system(),
            "platform_version": platform.version(),
            "python_version": platform.python_version(),
            "architecture": platform.architecture()[0]
        }

        system_metrics = {
            "cpu_percent": psutil.cpu_percent(interval=0.1),
            "memory_percent": psutil.virtual_memory().percent,
            "disk_percent": psutil.disk_usage('/').percent
        }

        return JSONResponse(
            status_code=200,
            content={
                "status": "healthy",
                "service": settings.APP_NAME,
                "version": settings.VERSION,
                "environment": settings.ENVIRONMENT,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "system": system_info,
                "metrics": system_metrics,
                "dependencies": check_dependencies(),
                "capabilities": settings.capabilities().model_dump(exclude={"speech_config"}),
            }
        )
    except Exception as e:
        logger.error(f"Detailed health check failed: {e}")
        raise HTTPException(status_code=503, detail="Service unhealthy")


def check_dependencies() -> dict[str, bool]:
    """
    Check the availability of the external rendering tools.

    Returns:
        dict: Availability of each tool
    """
    return {
        "latex": check_command_available(settings.LATEX_PATH),
        "dvisvgm": check_command_available(settings.DVISVGM_PATH),
        "rsvg-convert": check_command_available(settings.RSVG_CONVERT_PATH),
    }
