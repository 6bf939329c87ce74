"""
ExternalRenderer - ray tracer subprocess execution.

Implements the RenderEngine contract by serializing the scene to JSON and
running a compiled ray tracer binary in headless mode. The binary reports
progress as 'PROGRESS <n>' lines on stdout and writes a PNG to --output.
"""

import logging
import shutil
import tempfile
from pathlib import Path
from typing import Optional

from codegen_pipeline.sandbox import describe_exit, run_sandboxed
from .base import JobCancelledError, PixelBuffer, ProgressCallback, RenderEngine, RenderEngineError
from .image_codec import decode_pixels
from .scene import SceneDescriptor

logger = logging.getLogger(__name__)


class ExternalRenderer(RenderEngine):
    """
    Render engine backed by an external ray tracer binary.

    Each render gets its own temporary directory holding scene.json and
    render.png; the directory is removed on every exit path.
    """

    def __init__(
        self,
        binary: str,
        timeout: float = 300,
        work_dir: Optional[str] = None,
        max_capture_bytes: int = 1024 * 1024,
    ):
        self._binary = binary
        self._timeout = timeout
        self._work_dir = work_dir
        self._max_capture_bytes = max_capture_bytes
        logger.info(f"[EXTERNAL] ExternalRenderer initialized: binary={binary}")

    @property
    def engine_name(self) -> str:
        return "external"

    def render(
        self, scene: SceneDescriptor, on_progress: ProgressCallback, token=None
    ) -> PixelBuffer:
        if self._work_dir:
            Path(self._work_dir).mkdir(parents=True, exist_ok=True)
        render_dir = Path(tempfile.mkdtemp(prefix="render_", dir=self._work_dir))

        try:
            scene_path = render_dir / "scene.json"
            output_path = render_dir / "render.png"
            scene_path.write_text(scene.model_dump_json())

            command = [
                self._binary,
                "--scene",
                str(scene_path),
                "--output",
                str(output_path),
            ]

            logger.info(f"[EXTERNAL] Starting render of '{scene.name}'")
            try:
                result = run_sandboxed(
                    command,
                    cwd=str(render_dir),
                    timeout=self._timeout,
                    env=None,
                    on_progress=on_progress,
                    register_cancel=token.add_callback if token is not None else None,
                    max_capture_bytes=self._max_capture_bytes,
                )
            except FileNotFoundError:
                raise RenderEngineError(f"Renderer binary not found at {self._binary}")
            except JobCancelledError:
                logger.warning(f"[EXTERNAL] Render of '{scene.name}' cancelled")
                raise
            except OSError as e:
                raise RenderEngineError(f"System error during render: {e}") from e

            if result.cancelled:
                logger.warning(f"[EXTERNAL] Render of '{scene.name}' cancelled")
                raise JobCancelledError(getattr(token, "reason", None) or "cancelled")

            if not result.succeeded:
                stderr_tail = result.stderr.strip()[-500:]
                logger.error(
                    f"[EXTERNAL] Renderer {describe_exit(result)}: {stderr_tail}"
                )
                raise RenderEngineError(
                    f"Renderer {describe_exit(result)}"
                    + (f": {stderr_tail}" if stderr_tail else "")
                )

            if not output_path.exists() or output_path.stat().st_size == 0:
                raise RenderEngineError("Renderer produced no output image")

            pixels = decode_pixels(output_path.read_bytes())
            logger.info(
                f"[EXTERNAL] Render complete: '{scene.name}' "
                f"{pixels.width}x{pixels.height} in {result.duration:.2f}s"
            )
            return pixels

        finally:
            shutil.rmtree(render_dir, ignore_errors=True)
            logger.debug(f"[EXTERNAL] Cleaned up render directory: {render_dir}")
