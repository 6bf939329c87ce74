"""
Generated-code pipeline: sanitize, compile, run and ingest.

Turns model-generated C++ scene code into an image by compiling it against
the ray tracing scaffolding headers and running the binary in a sandbox.
"""

import logging
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from render_engine.base import JobCancelledError, RenderEngineError
from render_engine.image_codec import ImageResult, load_image_file, normalize_image
from .exceptions import CompilationError, ExecutionError
from .sandbox import ResourceLimits, describe_exit, run_sandboxed
from .sanitizer import sanitize

logger = logging.getLogger(__name__)

SOURCE_NAME = "scene.cpp"
BINARY_NAME = "scene_program"
IMAGE_SUFFIXES = (".png", ".jpg", ".jpeg", ".ppm")
PPM_MAGIC = (b"P3", b"P6")


@dataclass
class GeneratedArtifact:
    """Everything one pipeline invocation produced."""

    raw_text: str
    source: str
    binary_path: Optional[str] = None
    compiler_output: str = ""
    stdout: str = ""
    stderr: str = ""
    exit_code: Optional[int] = None
    image: Optional[ImageResult] = field(default=None, repr=False)


class CodePipeline:
    """
    Compiles and runs generated scene programs.

    Every invocation works inside its own temporary directory under
    ``work_dir``; that directory is deleted whether the run succeeds,
    fails to compile or fails to execute.
    """

    def __init__(
        self,
        work_dir: str,
        compiler: str = "g++",
        compiler_flags: Optional[list[str]] = None,
        include_dir: Optional[str] = None,
        compile_timeout: float = 120,
        exec_timeout: float = 300,
        limits: Optional[ResourceLimits] = None,
        sandbox_wrapper: Optional[list[str]] = None,
        output_format: str = "png",
        max_capture_bytes: int = 8 * 1024 * 1024,
    ):
        self.work_dir = Path(work_dir)
        self.compiler = compiler
        self.compiler_flags = list(compiler_flags or [])
        self.include_dir = include_dir
        self.compile_timeout = compile_timeout
        self.exec_timeout = exec_timeout
        self.limits = limits or ResourceLimits()
        self.sandbox_wrapper = list(sandbox_wrapper or [])
        self.output_format = output_format
        self.max_capture_bytes = max_capture_bytes

    def execute(
        self,
        raw_text: str,
        on_progress: Optional[Callable[[int], None]] = None,
        token=None,
    ) -> GeneratedArtifact:
        """
        Run generated source text through the whole pipeline.

        Args:
            raw_text: Source text as returned by the text-generation provider
            on_progress: Receives 'PROGRESS <n>' percentages printed by the program
            token: CancellationToken; cancelling kills the compiler or program

        Returns:
            GeneratedArtifact with the produced image

        Raises:
            CompilationError: Compiler missing, timed out or exited non-zero
            ExecutionError: Program failed, crashed, timed out or made no image
            JobCancelledError: Token was cancelled
        """
        artifact = GeneratedArtifact(raw_text=raw_text, source=sanitize(raw_text))
        self.work_dir.mkdir(parents=True, exist_ok=True)
        job_dir = Path(tempfile.mkdtemp(prefix="gen_", dir=self.work_dir))

        try:
            self._materialize(job_dir, artifact.source)
            logger.info(f"[PIPELINE] Materialized source in {job_dir}")

            _raise_if_cancelled(token)
            binary = self._compile(job_dir, artifact, token)
            artifact.binary_path = str(binary)

            _raise_if_cancelled(token)
            artifact.image = self._run(job_dir, artifact, on_progress, token)
            logger.info(
                f"[PIPELINE] Generated program produced {artifact.image.mime_type} "
                f"({len(artifact.image.data)} bytes)"
            )
            return artifact

        finally:
            shutil.rmtree(job_dir, ignore_errors=True)
            artifact.binary_path = None
            logger.debug(f"[PIPELINE] Cleaned up {job_dir}")

    def _materialize(self, job_dir: Path, source: str) -> None:
        # Lone surrogates from a JSON reply cannot be encoded as-is
        (job_dir / SOURCE_NAME).write_text(source, encoding="utf-8", errors="replace")

    def _compile(self, job_dir: Path, artifact: GeneratedArtifact, token) -> Path:
        binary = job_dir / BINARY_NAME
        command = [self.compiler, *self.compiler_flags]
        if self.include_dir:
            command += ["-I", self.include_dir]
        command += ["-o", str(binary), str(job_dir / SOURCE_NAME)]

        logger.info(f"[PIPELINE] Compiling with {self.compiler}")
        try:
            result = run_sandboxed(
                command,
                cwd=str(job_dir),
                timeout=self.compile_timeout,
                register_cancel=token.add_callback if token is not None else None,
                max_capture_bytes=self.max_capture_bytes,
            )
        except FileNotFoundError:
            raise CompilationError(f"Compiler not found: {self.compiler}")

        artifact.compiler_output = (result.stderr + result.stdout.decode("utf-8", errors="replace")).strip()

        if result.cancelled:
            raise JobCancelledError(getattr(token, "reason", None) or "cancelled")
        if not result.succeeded or not binary.exists():
            logger.warning(
                f"[PIPELINE] Compilation {describe_exit(result)}: "
                f"{artifact.compiler_output[-500:]}"
            )
            raise CompilationError(
                f"Compilation failed ({describe_exit(result)})",
                output=artifact.compiler_output,
            )
        return binary

    def _run(self, job_dir: Path, artifact: GeneratedArtifact, on_progress, token) -> ImageResult:
        logger.info(
            f"[PIPELINE] Executing generated program "
            f"(timeout={self.exec_timeout}s, sandbox={'wrapped' if self.sandbox_wrapper else 'rlimits'})"
        )
        try:
            result = run_sandboxed(
                [f"./{BINARY_NAME}"],
                cwd=str(job_dir),
                timeout=self.exec_timeout,
                limits=self.limits,
                wrapper=self.sandbox_wrapper,
                on_progress=on_progress,
                register_cancel=token.add_callback if token is not None else None,
                max_capture_bytes=self.max_capture_bytes,
            )
        except OSError as e:
            raise ExecutionError(f"Could not start generated program: {e}")

        artifact.exit_code = result.returncode
        artifact.stderr = result.stderr
        if not result.stdout.startswith(PPM_MAGIC):
            artifact.stdout = result.stdout.decode("utf-8", errors="replace")

        if result.cancelled:
            raise JobCancelledError(getattr(token, "reason", None) or "cancelled")
        if not result.succeeded:
            logger.warning(
                f"[PIPELINE] Generated program {describe_exit(result)}: "
                f"{result.stderr.strip()[-500:]}"
            )
            raise ExecutionError(
                f"Generated program {describe_exit(result)}",
                output=result.stderr,
            )

        return self._ingest(job_dir, result.stdout)

    def _ingest(self, job_dir: Path, stdout: bytes) -> ImageResult:
        images = [
            p
            for p in job_dir.iterdir()
            if p.is_file() and p.suffix.lower() in IMAGE_SUFFIXES
        ]
        try:
            if images:
                newest = max(images, key=lambda p: p.stat().st_mtime)
                return load_image_file(newest, self.output_format)
            if stdout.lstrip().startswith(PPM_MAGIC):
                return normalize_image(stdout.lstrip(), self.output_format)
        except RenderEngineError as e:
            raise ExecutionError(f"Generated program wrote an unreadable image: {e}")

        raise ExecutionError("Generated program produced no image")


def _raise_if_cancelled(token) -> None:
    if token is not None:
        token.raise_if_cancelled()
