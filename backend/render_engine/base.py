"""
RenderEngine abstraction layer for ray tracing backends.

Defines the call contract every rendering engine honours so the job
dispatcher can swap engines via configuration.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable

from .scene import SceneDescriptor

ProgressCallback = Callable[[int], None]


class RenderEngineError(Exception):
    """Raised when an engine fails to produce pixels."""


class JobCancelledError(Exception):
    """Raised from a progress callback to abort a render in flight."""


@dataclass(frozen=True)
class PixelBuffer:
    """Raw 8-bit RGB pixels, row-major, top row first."""

    width: int
    height: int
    data: bytes

    def __post_init__(self):
        expected = self.width * self.height * 3
        if len(self.data) != expected:
            raise ValueError(
                f"Pixel data has {len(self.data)} bytes, expected {expected} "
                f"for {self.width}x{self.height} RGB"
            )


class RenderEngine(ABC):
    """
    Abstract base class for rendering engines.

    Implementations:
    - PreviewRenderer: In-process scanline preview, no external binary
    - ExternalRenderer: Subprocess call into a compiled ray tracer
    """

    @abstractmethod
    def render(
        self, scene: SceneDescriptor, on_progress: ProgressCallback, token=None
    ) -> PixelBuffer:
        """
        Render a scene synchronously on the calling thread.

        Args:
            scene: Scene descriptor owned by the calling job
            on_progress: Called with non-decreasing percentages in [0, 100]
                as scanlines complete. May raise JobCancelledError, which
                must propagate and stop the render.
            token: Optional cancellation token (raise_if_cancelled, add_callback);
                cancelling it must stop the render even between progress reports

        Returns:
            PixelBuffer: Rendered RGB pixels

        Raises:
            RenderEngineError: If the engine fails
            JobCancelledError: If the progress callback aborted the render
        """
        pass

    @property
    @abstractmethod
    def engine_name(self) -> str:
        """Return engine identifier for logs and health checks."""
        pass
