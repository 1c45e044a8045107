"""Security helpers for slashwire.

Provides per-user in-memory rate limiting, input sanitization for raw
command lines, and header masking so webhook credentials never reach the
logs.
"""

import asyncio
import re
import time
import unicodedata
from collections import defaultdict
from typing import TYPE_CHECKING, Callable, Dict, List, Mapping, Optional

import structlog

if TYPE_CHECKING:
    from .config import Config

logger = structlog.get_logger("slashwire.security")

DEFAULT_WINDOW_SECONDS = 60
DEFAULT_MAX_REQUESTS = 30
DEFAULT_MAX_INPUT_LENGTH = 4000
_CLEANUP_INTERVAL = 300  # Prune idle users every 5 minutes

_BIDI_CHARS = frozenset("‪‫‬‭‮⁦⁧⁨⁩")

_SENSITIVE_HEADER = re.compile(
    r"(authorization|api[-_]?key|token|secret|password|cookie|signature)", re.IGNORECASE
)


class RateLimiter:
    """Sliding-window request limiter keyed by user id.

    Args:
        window_seconds: Length of the sliding window.
        max_requests: Requests allowed per user per window.
        clock: Time source, overridable in tests.
    """

    def __init__(
        self,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self._clock = clock
        self._requests: Dict[str, List[float]] = defaultdict(list)
        self._last_cleanup = clock()
        self._lock = asyncio.Lock()

    @classmethod
    def from_config(cls, config: "Config") -> "RateLimiter":
        return cls(
            window_seconds=config.rate_limit_window_seconds,
            max_requests=config.rate_limit_max_requests,
        )

    def check(self, user_id: str) -> bool:
        """Record a request. Returns True if within limits, False if limited."""
        now = self._clock()
        window_start = now - self.window_seconds

        self._requests[user_id] = [
            ts for ts in self._requests[user_id] if ts > window_start
        ]

        # Prune users with no recent activity to keep memory bounded
        if now - self._last_cleanup > _CLEANUP_INTERVAL:
            self._last_cleanup = now
            stale = [
                key for key, stamps in self._requests.items()
                if not stamps or stamps[-1] < window_start
            ]
            for key in stale:
                del self._requests[key]

        if len(self._requests[user_id]) >= self.max_requests:
            logger.warning(
                "rate_limit_exceeded",
                user_id=user_id,
                requests_in_window=len(self._requests[user_id]),
            )
            return False

        self._requests[user_id].append(now)
        return True

    async def check_async(self, user_id: str) -> bool:
        """Async-safe version of check()."""
        async with self._lock:
            return self.check(user_id)

    def reset(self) -> None:
        self._requests.clear()
        self._last_cleanup = self._clock()


def sanitize_input(text: str, max_length: Optional[int] = DEFAULT_MAX_INPUT_LENGTH) -> str:
    """Strip control and bidi override characters, then enforce a length limit."""
    # Keep newline, tab and carriage return
    text = "".join(
        ch for ch in text
        if ch in ("\n", "\r", "\t") or not unicodedata.category(ch).startswith("C")
    )
    text = "".join(ch for ch in text if ch not in _BIDI_CHARS)
    if max_length is not None and len(text) > max_length:
        text = text[:max_length]
    return text


def mask_value(value: str) -> str:
    """Keep only the last 4 characters of a secret."""
    if len(value) <= 4:
        return "***"
    return "***" + value[-4:]


def mask_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    """Copy of ``headers`` with credential-bearing values masked."""
    return {
        name: mask_value(str(value)) if _SENSITIVE_HEADER.search(name) else str(value)
        for name, value in headers.items()
    }
