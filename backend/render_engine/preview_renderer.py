"""
PreviewRenderer - in-process stand-in for the ray tracer.

Produces a sky-style vertical gradient from the camera background one
scanline at a time, reporting progress like the real engine does. Used
for development and tests where no ray tracer binary is installed.
"""

import logging
import time

from .base import PixelBuffer, ProgressCallback, RenderEngine
from .scene import SceneDescriptor

logger = logging.getLogger(__name__)


class PreviewRenderer(RenderEngine):
    """
    Render engine that never leaves the process.

    Adds:
    - Scanline-by-scanline progress reporting
    - Optional per-row delay to simulate a slow render
    - [PREVIEW] prefixed logging for debugging
    """

    def __init__(self, row_delay: float = 0.0):
        self._row_delay = row_delay
        logger.info("[PREVIEW] PreviewRenderer initialized")

    @property
    def engine_name(self) -> str:
        return "preview"

    def render(
        self, scene: SceneDescriptor, on_progress: ProgressCallback, token=None
    ) -> PixelBuffer:
        camera = scene.camera
        width, height = camera.image_width, camera.image_height
        top = _to_byte_color(camera.background)
        # Blend towards white at the horizon
        bottom = tuple(min(255, int(c + (255 - c) * 0.6)) for c in top)

        logger.info(
            f"[PREVIEW] Rendering '{scene.name}' at {width}x{height} "
            f"({len(scene.primitives)} primitives)"
        )

        rows = bytearray()
        last_reported = -1
        on_progress(0)
        for j in range(height):
            t = j / max(1, height - 1)
            pixel = bytes(int(a + (b - a) * t) for a, b in zip(top, bottom))
            rows.extend(pixel * width)

            if self._row_delay:
                time.sleep(self._row_delay)
            if token is not None:
                token.raise_if_cancelled()

            percent = int((j + 1) * 100 / height)
            if percent != last_reported:
                on_progress(percent)
                last_reported = percent

        return PixelBuffer(width=width, height=height, data=bytes(rows))


def _to_byte_color(color) -> tuple[int, int, int]:
    return tuple(max(0, min(255, int(round(c * 255)))) for c in color)
