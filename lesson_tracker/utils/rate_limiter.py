"""
Per-client rate limiting for API endpoints
"""
import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, Optional

from fastapi import HTTPException, Request
import logging

from lesson_tracker.config import settings
from lesson_tracker.services.telegram_auth import extract_user_id, validate_init_data

logger = logging.getLogger(__name__)

MINUTE = 60
HOUR = 3600
SWEEP_INTERVAL = 5 * MINUTE


class RateLimiter:
    """
    Sliding-window rate limiter kept in process memory

    Clients are identified by their Telegram user id when the request carries
    init data signed with the configured bot token, otherwise by IP address.
    Clients with no request in the last hour are forgotten.
    """

    def __init__(
        self,
        requests_per_minute: int = 60,
        requests_per_hour: int = 1000,
        clock: Callable[[], float] = time.time
    ):
        self.requests_per_minute = requests_per_minute
        self.requests_per_hour = requests_per_hour
        self.clock = clock

        # {client_id: request timestamps within the last hour}, never empty
        self._requests: Dict[str, Deque[float]] = {}
        self._last_sweep = clock()
        self._lock = threading.Lock()

    def _get_client_id(self, request: Request) -> str:
        init_data = request.headers.get("x-telegram-init-data")
        token = settings.TELEGRAM_BOT_TOKEN
        if init_data and token and validate_init_data(init_data, token):
            user_id = extract_user_id(init_data)
            if user_id is not None:
                return f"user:{user_id}"
        return f"ip:{request.client.host if request.client else 'unknown'}"

    def _rejection(self, client_id: str, limit: int, window: str, retry_after: int) -> HTTPException:
        logger.warning(f"Rate limit exceeded ({window}): {client_id}")
        return HTTPException(
            status_code=429,
            detail={
                "error": "rate_limit_exceeded",
                "message": f"Too many requests. Limit: {limit} requests per {window}",
                "retry_after": retry_after
            }
        )

    def _sweep(self, now: float) -> None:
        """Remove clients whose newest request fell out of the hour window"""
        cutoff = now - HOUR
        idle = [client_id for client_id, ts in self._requests.items() if ts[-1] <= cutoff]
        for client_id in idle:
            del self._requests[client_id]
        self._last_sweep = now
        if idle:
            logger.debug(f"Rate limiter forgot {len(idle)} idle clients")

    def hit(self, client_id: str) -> Optional[HTTPException]:
        """Record a request; returns the rejection when a limit is exceeded"""
        now = self.clock()
        with self._lock:
            if now - self._last_sweep >= SWEEP_INTERVAL:
                self._sweep(now)

            timestamps = self._requests.pop(client_id, deque())
            while timestamps and timestamps[0] <= now - HOUR:
                timestamps.popleft()

            rejection = None
            minute_count = sum(1 for ts in timestamps if ts > now - MINUTE)
            if minute_count >= self.requests_per_minute:
                rejection = self._rejection(client_id, self.requests_per_minute, "minute", MINUTE)
            elif len(timestamps) >= self.requests_per_hour:
                rejection = self._rejection(client_id, self.requests_per_hour, "hour", HOUR)
            else:
                timestamps.append(now)

            if timestamps:
                self._requests[client_id] = timestamps
        return rejection

    async def check_rate_limit(self, request: Request) -> None:
        """
        Check if request exceeds rate limits

        Raises:
            HTTPException: 429 if rate limit exceeded
        """
        rejection = self.hit(self._get_client_id(request))
        if rejection is not None:
            raise rejection

    def tracked_clients(self) -> int:
        with self._lock:
            return len(self._requests)

    def reset(self) -> None:
        with self._lock:
            self._requests.clear()
            self._last_sweep = self.clock()


# Global instance
rate_limiter = RateLimiter(
    requests_per_minute=settings.RATE_LIMIT_PER_MINUTE,
    requests_per_hour=settings.RATE_LIMIT_PER_HOUR
)
