"""
Application configuration using Pydantic Settings.

All environment variables are accessed through this config object.
Never use os.getenv() directly in business logic.
"""

from typing import List, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application Configuration
    ALLOWED_ORIGINS: List[str] = Field(
        default=["http://localhost:8080", "http://localhost:5173"],
        description="CORS allowed origins",
    )
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Root log level",
    )
    HOST: str = Field(
        default="0.0.0.0",
        description="Bind address used by run.py",
    )
    PORT: int = Field(
        default=18080,
        description="Listen port used by run.py",
    )

    # Rendering Engine Configuration
    RENDER_ENGINE: Literal["preview", "external"] = Field(
        default="preview",
        description="Engine used for preset and custom scenes",
    )
    RENDERER_BINARY: str = Field(
        default="/usr/local/bin/raytracer",
        description="Path to the external ray tracer executable",
    )
    RENDER_TIMEOUT: int = Field(
        default=600,
        description="Maximum external render time in seconds",
    )
    OUTPUT_FORMAT: Literal["png", "jpeg"] = Field(
        default="png",
        description="Encoding of rendered images served by /image",
    )

    # Job Dispatch Configuration
    MAX_CONCURRENT_JOBS: int = Field(
        default=2,
        ge=1,
        description="Jobs allowed to run at the same time",
    )
    MAX_QUEUED_JOBS: int = Field(
        default=8,
        ge=1,
        description="Pending plus running jobs accepted before rejecting with 503",
    )
    JOB_TIMEOUT: int = Field(
        default=900,
        description="Seconds a job may run before it is cancelled and failed",
    )
    JOB_TTL_MINUTES: int = Field(
        default=60,
        description="Finished job records older than this are purged",
    )
    CLEANUP_INTERVAL_MINUTES: int = Field(
        default=10,
        description="Interval of the housekeeping job",
    )

    # Dynamic Code Pipeline Configuration
    WORK_DIR: str = Field(
        default="/tmp/raytrace_jobs",
        description="Parent directory for per-job temporary build directories",
    )
    COMPILER: str = Field(
        default="g++",
        description="C++ compiler executable",
    )
    COMPILER_FLAGS: List[str] = Field(
        default=["-std=c++17", "-O2", "-pthread"],
        description="Flags passed to the compiler before the include path",
    )
    SCAFFOLD_INCLUDE_DIR: str = Field(
        default="/opt/raytracer/include",
        description="Directory holding the ray tracing scaffolding headers",
    )
    COMPILE_TIMEOUT: int = Field(
        default=120,
        description="Maximum compile time in seconds",
    )
    EXEC_TIMEOUT: int = Field(
        default=300,
        description="Wall-clock limit for a generated program in seconds",
    )
    EXEC_CPU_SECONDS: int = Field(
        default=600,
        description="CPU time limit for a generated program",
    )
    EXEC_MEMORY_MB: int = Field(
        default=1024,
        description="Address space limit for a generated program",
    )
    EXEC_MAX_FILE_MB: int = Field(
        default=64,
        description="Largest file a generated program may write",
    )
    EXEC_MAX_OPEN_FILES: int = Field(
        default=64,
        description="Open file descriptor limit for a generated program",
    )
    SANDBOX_WRAPPER: str = Field(
        default="",
        description=(
            "Isolation command prefix for generated programs, e.g. "
            "'bwrap --unshare-all --die-with-parent --ro-bind /usr /usr "
            "--ro-bind /lib /lib --ro-bind /lib64 /lib64 --bind . /work --chdir /work'"
        ),
    )
    MAX_CAPTURE_BYTES: int = Field(
        default=8 * 1024 * 1024,
        description="Cap on captured stdout/stderr of pipeline subprocesses",
    )

    # Text Generation Provider Configuration
    LLM_API_URL: str = Field(
        default="https://generativelanguage.googleapis.com",
        description="Text-generation provider base URL",
    )
    LLM_API_KEY: str = Field(
        default="",
        description="Text-generation provider API key",
    )
    LLM_MODEL: str = Field(
        default="gemini-2.0-flash",
        description="Model used to generate scene source code",
    )
    LLM_TIMEOUT: float = Field(
        default=60.0,
        description="Provider request timeout in seconds",
    )
    LLM_TEMPERATURE: float = Field(
        default=1.0,
        description="Sampling temperature",
    )
    LLM_MAX_OUTPUT_TOKENS: int = Field(
        default=8192,
        description="Maximum generated tokens",
    )
    AI_RATE_LIMIT_REQUESTS: int = Field(
        default=10,
        description="AI renders allowed per client per window",
    )
    AI_RATE_LIMIT_WINDOW: int = Field(
        default=3600,
        description="AI render rate limit window in seconds",
    )


# Global settings instance
settings = Settings()
