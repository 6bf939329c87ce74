"""
Rate Limiter Service

In-memory rate limiting with sliding window algorithm.
Guards the AI render endpoint, which calls a paid external provider.
"""

import logging
import threading
from collections import defaultdict
from datetime import datetime, timedelta

from fastapi import Request

from ..config import settings
from ..middleware import RateLimitExceededError

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    In-memory rate limiter using sliding window algorithm.

    Tracks requests per client address and enforces rate limits.
    """

    def __init__(self, max_requests: int, window_seconds: int):
        """
        Initialize rate limiter.

        Args:
            max_requests: Maximum number of requests allowed in time window
            window_seconds: Time window in seconds
        """
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.requests = defaultdict(list)  # client -> list of timestamps
        self._lock = threading.Lock()

    def check_rate_limit(self, client: str) -> None:
        """
        Check if client has exceeded rate limit.

        Uses sliding window algorithm:
        1. Remove old requests outside time window
        2. Check if remaining requests exceed limit
        3. Record current request timestamp

        Args:
            client: Client address

        Raises:
            RateLimitExceededError: 429 if rate limit exceeded
        """
        now = datetime.now()
        cutoff = now - timedelta(seconds=self.window_seconds)

        with self._lock:
            recent = [t for t in self.requests[client] if t > cutoff]

            if len(recent) >= self.max_requests:
                self.requests[client] = recent
                logger.warning(
                    f"Rate limit exceeded for {client}: {len(recent)} requests in window"
                )
                raise RateLimitExceededError(self.max_requests, self.window_seconds)

            recent.append(now)
            self.requests[client] = recent

        logger.debug(f"Rate limit check passed: {client} has {len(recent)} requests in window")

    def reset(self) -> None:
        with self._lock:
            self.requests.clear()


# Global rate limiter instance for AI renders
ai_render_rate_limiter = RateLimiter(
    max_requests=settings.AI_RATE_LIMIT_REQUESTS,
    window_seconds=settings.AI_RATE_LIMIT_WINDOW,
)


async def check_ai_render_rate_limit(request: Request) -> None:
    """
    FastAPI dependency to check the AI render rate limit.

    Args:
        request: FastAPI Request object to extract client address

    Raises:
        RateLimitExceededError: 429 if rate limit exceeded
    """
    client = request.client.host if request.client else "unknown"
    ai_render_rate_limiter.check_rate_limit(client)
