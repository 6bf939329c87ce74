"""Run the render service with uvicorn."""

import uvicorn

from raytrace_api.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "raytrace_api.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )
