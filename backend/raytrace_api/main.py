"""
Ray Tracing Render API

Main FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from render_engine.preset_loader import list_available_presets, load_preset
from .config import settings
from .middleware import (
    ErrorHandlerMiddleware,
    RenderError,
    render_error_handler,
    validation_error_handler,
)
from .routes import presets, render, status
from .services.cleanup_scheduler import (
    get_scheduler_status,
    start_cleanup_scheduler,
    stop_cleanup_scheduler,
)
from .services.dispatcher import get_dispatcher

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    start_cleanup_scheduler()
    yield
    # Shutdown
    await get_dispatcher().shutdown()
    stop_cleanup_scheduler()


app = FastAPI(
    title="Ray Tracing Render API",
    description="Renders preset, procedural and AI-generated ray traced scenes as background jobs",
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Error handling middleware
app.add_middleware(ErrorHandlerMiddleware)
app.add_exception_handler(RenderError, render_error_handler)
app.add_exception_handler(RequestValidationError, validation_error_handler)

# Register routers
app.include_router(presets.router, tags=["Metadata"])
app.include_router(render.router, tags=["Render"])
app.include_router(status.router, tags=["Status"])


@app.get("/", response_class=HTMLResponse, include_in_schema=False)
async def index(request: Request):
    """Control page for submitting renders and watching progress."""
    preset_list = [load_preset(name) for name in list_available_presets()]
    return templates.TemplateResponse(
        request,
        "index.html",
        {
            "title": "Ray Tracing Render Service",
            "presets": preset_list,
            "poll_interval_ms": 500,
        },
    )


@app.get("/health")
async def health_check():
    """
    Detailed health check endpoint.

    Returns service health plus dispatcher load and cleanup scheduler state.
    """
    dispatcher = get_dispatcher()
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": API_VERSION,
        "engine": dispatcher.engine.engine_name,
        "jobs": dispatcher.stats(),
        "scheduler": get_scheduler_status(),
    }
