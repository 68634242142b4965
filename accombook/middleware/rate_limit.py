# AccomBook API - Short-term Accommodation Booking Service
# Copyright (C) 2025 Oleg Tokmakov
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""Per-client request rate limiting."""

import math
import time
from collections import defaultdict, deque
from typing import Deque, Dict, Optional

import structlog
from fastapi import Request, status
from fastapi.responses import JSONResponse

from accombook.config import get_settings

logger = structlog.get_logger(__name__)

EXEMPT_PATHS = {"/health"}


class SlidingWindowLimiter:
    """Counts requests per client over a sliding time window, in memory."""

    def __init__(self):
        self._hits: Dict[str, Deque[float]] = defaultdict(deque)

    def hit(self, key: str, max_requests: int, window_seconds: int, now: Optional[float] = None) -> float:
        """Record a request for key.

        Returns:
            0 if the request is allowed, otherwise seconds until the oldest
            counted request leaves the window.
        """
        if now is None:
            now = time.monotonic()
        hits = self._hits[key]

        # Drop hits that left the window
        cutoff = now - window_seconds
        while hits and hits[0] <= cutoff:
            hits.popleft()

        if len(hits) >= max_requests:
            return hits[0] + window_seconds - now

        hits.append(now)
        return 0

    def reset(self) -> None:
        self._hits.clear()


limiter = SlidingWindowLimiter()


def client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"


async def rate_limit_middleware(request: Request, call_next):
    """Answer 429 once a client exceeds the configured request rate."""
    config = get_settings().rate_limit
    if not config.enabled or request.url.path in EXEMPT_PATHS:
        return await call_next(request)

    key = client_key(request)
    retry_after = limiter.hit(key, config.max_requests, config.window_seconds)
    if retry_after:
        logger.warning("rate_limited", client=key, path=request.url.path)
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={"detail": "Too many requests, please try again later"},
            headers={"Retry-After": str(max(1, math.ceil(retry_after)))},
        )

    return await call_next(request)
