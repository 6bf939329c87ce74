"""
Render engine factory.

Returns the RenderEngine selected by the RENDER_ENGINE setting.
"""

import logging

from raytrace_api.config import settings
from .base import RenderEngine
from .external_renderer import ExternalRenderer
from .preview_renderer import PreviewRenderer

logger = logging.getLogger(__name__)

# Singleton engine instance
_engine_instance: RenderEngine | None = None


def get_render_engine() -> RenderEngine:
    """
    Get the configured render engine instance.

    Returns:
        RenderEngine: PreviewRenderer if RENDER_ENGINE=preview,
                      ExternalRenderer if RENDER_ENGINE=external
    """
    global _engine_instance

    if _engine_instance is not None:
        return _engine_instance

    if settings.RENDER_ENGINE == "external":
        logger.info(
            f"Initializing ExternalRenderer (RENDER_ENGINE=external, "
            f"binary={settings.RENDERER_BINARY})"
        )
        _engine_instance = ExternalRenderer(
            binary=settings.RENDERER_BINARY,
            timeout=settings.RENDER_TIMEOUT,
            work_dir=settings.WORK_DIR,
        )
    else:
        logger.info("Initializing PreviewRenderer (RENDER_ENGINE=preview)")
        _engine_instance = PreviewRenderer()

    return _engine_instance


def reset_render_engine() -> None:
    """
    Reset the engine singleton (for testing purposes).

    Clears the cached engine instance, allowing a fresh
    engine to be created on next get_render_engine() call.
    """
    global _engine_instance
    _engine_instance = None
    logger.info("Render engine singleton reset")
