"""Generated-code pipeline: sanitize, compile and run model-written scenes."""

from .exceptions import CompilationError, ExecutionError, PipelineError
from .pipeline import CodePipeline, GeneratedArtifact
from .sanitizer import sanitize

__all__ = [
    "CodePipeline",
    "GeneratedArtifact",
    "PipelineError",
    "CompilationError",
    "ExecutionError",
    "sanitize",
]
