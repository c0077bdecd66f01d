"""
FastAPI application entry point for mathrender.

This module initializes the FastAPI application with proper configuration,
middleware, and routing for the math rendering service.
"""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from mathrender.api import health, render
from mathrender.config import settings
from mathrender.exceptions import ErrorTypes, RenderError
from mathrender.middleware import RequestTracingMiddleware
from mathrender.utils.log import setup_logging
from mathrender.utils.shell import check_command_available


def validate_tool_paths() -> None:
    """Validate that the external rendering tools are available."""
    required_tools = {
        "latex": (settings.LATEX_PATH, settings.SVG),
        "dvisvgm": (settings.DVISVGM_PATH, settings.SVG),
        "rsvg-convert": (settings.RSVG_CONVERT_PATH, settings.PNG),
    }

    missing_tools = []
    for tool_name, (tool_path, enabled) in required_tools.items():
        if not enabled:
            continue
        if check_command_available(tool_path):
            logger.info(f"Tool validated: {tool_name} at {tool_path}")
        elif check_command_available(tool_name):
            logger.info(f"Tool found in PATH: {tool_name}")
        else:
            missing_tools.append(f"{tool_name} (expected at {tool_path})")
            logger.warning(f"Tool not found: {tool_name} at {tool_path}")

    if missing_tools and settings.ENVIRONMENT == "production":
        raise RuntimeError(
            f"Required tools not found in production: {', '.join(missing_tools)}. "
            "Please install them or disable the matching output formats."
        )
    elif missing_tools:
        logger.warning(
            f"Some tools not found (non-fatal in {settings.ENVIRONMENT}): {', '.join(missing_tools)}"
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI application.

    Handles startup and shutdown events.
    """
    # Startup
    logger.info("Starting mathrender service")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Capabilities: {settings.capabilities().model_dump()}")

    try:
        validate_tool_paths()
    except RuntimeError as exc:
        logger.error(f"Tool validation failed: {exc}")
        raise

    yield

    # Shutdown
    logger.info("Shutting down mathrender service")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    app = FastAPI(
        title="mathrender",
        description="Renders TeX, MathML and AsciiMath to SVG, PNG, MathML and speech",
        version=settings.VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan
    )

    # Add middleware
    setup_middleware(app)

    # Add exception handlers
    setup_exception_handlers(app)

    # Include routers
    setup_routers(app)

    # Setup logging
    setup_logging(
        level=settings.LOG_LEVEL,
        log_file="logs/app.log" if settings.ENVIRONMENT == "production" else None,
    )

    return app


def setup_middleware(app: FastAPI) -> None:
    """
    Configure middleware for the FastAPI application.

    Args:
        app: FastAPI application instance
    """
    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Trusted host middleware
    app.add_middleware(
        TrustedHostMiddleware,
        allowed_hosts=settings.ALLOWED_HOSTS
    )

    # Request id, timing header and render log
    app.add_middleware(RequestTracingMiddleware, slow_threshold=settings.SLOW_RENDER_THRESHOLD)  # type: ignore


def setup_exception_handlers(app: FastAPI) -> None:
    """
    Map render errors to their JSON error envelope.

    Args:
        app: FastAPI application instance
    """
    @app.exception_handler(RenderError)
    async def render_error_handler(request: Request, exc: RenderError) -> JSONResponse:
        if exc.status >= 500:
            logger.error(f"Render failed ({exc.error_type}): {exc}")
        else:
            logger.info(f"Render rejected ({exc.error_type}): {exc}")
        return JSONResponse(status_code=exc.status, content=exc.to_envelope())

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        request_id = request.scope.get("request_id", "unknown")
        logger.opt(exception=exc).error(f"[{request_id}] Unhandled exception: {exc}")
        return JSONResponse(
            status_code=500,
            content={
                "status": 500,
                "success": False,
                "title": "Internal Server Error",
                "type": ErrorTypes.INTERNAL_ERROR,
                "detail": "An unexpected error occurred",
                "error": str(exc),
                "request_id": request_id,
            },
        )


def setup_routers(app: FastAPI) -> None:
    """
    Include API routers in the FastAPI application.

    Args:
        app: FastAPI application instance
    """
    # Health routes come first so the catch-all POST route never shadows them
    app.include_router(health.router, tags=["health"])
    app.include_router(render.router, tags=["render"])


# Create the FastAPI application instance
app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "mathrender.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
