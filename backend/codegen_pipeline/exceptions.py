"""Custom exceptions for the generated-code pipeline."""


class PipelineError(Exception):
    """Base exception for generated-code pipeline errors."""

    def __init__(self, message: str, output: str = ""):
        self.message = message
        self.output = output
        super().__init__(message)


class CompilationError(PipelineError):
    """Compiler rejected the generated source."""

    pass


class ExecutionError(PipelineError):
    """Compiled program failed, crashed, timed out or produced no image."""

    pass
