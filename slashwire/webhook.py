"""Inline webhook calls for ``webhook`` actions.

This is the only network I/O the engine performs. Every call runs under
a total timeout clamped to 1,000..30,000 ms, and timeouts, connection
errors and 5xx/429 responses may be retried with exponential backoff.
Any failure surfaces as a WebhookError; the executor turns it into a
failed result.

Key classes:
    WebhookResponse: Status code plus decoded body.
    WebhookClient: Owns the shared aiohttp session and performs calls.
"""

import asyncio
import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Optional
from urllib.parse import urlparse

import aiohttp
import structlog

from .config import WEBHOOK_MAX_RETRIES, WEBHOOK_TIMEOUT_MAX_MS, WEBHOOK_TIMEOUT_MIN_MS, get_config
from .exceptions import ErrorCategory, WebhookError
from .models import WebhookAction
from .security import mask_headers

if TYPE_CHECKING:
    from .config import Config

logger = structlog.get_logger("slashwire.webhook")

_RETRYABLE_STATUS = frozenset({429})


@dataclass
class WebhookResponse:
    status: int
    data: Any = None


def clamp_timeout_ms(timeout_ms: int) -> int:
    return max(WEBHOOK_TIMEOUT_MIN_MS, min(WEBHOOK_TIMEOUT_MAX_MS, int(timeout_ms)))


def _decode_body(text: str) -> Any:
    """JSON-decode a response body; non-JSON bodies come back as text."""
    if not text.strip():
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


class WebhookClient:
    """Performs webhook calls over a shared aiohttp session.

    Args:
        config: Supplies default timeout, retry count and backoff.
        session: Externally owned session (tests, host applications).
            When omitted a session is created lazily and closed by
            ``close()``.
    """

    def __init__(
        self,
        config: Optional["Config"] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.config = config or get_config()
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the shared aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self):
        """Close the session if this client created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    def timeout_ms_for(self, action: WebhookAction) -> int:
        configured = action.timeout_ms if action.timeout_ms is not None else self.config.webhook_timeout_ms
        return clamp_timeout_ms(configured)

    def retries_for(self, action: WebhookAction) -> int:
        configured = action.retry_count if action.retry_count is not None else self.config.webhook_max_retries
        return max(0, min(WEBHOOK_MAX_RETRIES, configured))

    async def call(
        self,
        action: WebhookAction,
        body: str,
        url: Optional[str] = None,
    ) -> WebhookResponse:
        """Send ``body`` to the webhook and return the decoded response.

        Args:
            action: Webhook configuration (method, headers, timeout, retries).
            body: Request body, already rendered.
            url: Rendered URL; defaults to ``action.url``.

        Raises:
            WebhookError: Non-2xx status, timeout or network failure after
                all retries. Timeouts, network errors, 429 and 5xx are
                TRANSIENT; other statuses are PERMANENT.
        """
        target = url or action.url
        if not target:
            raise WebhookError("No webhook URL configured")

        method = (action.method or "POST").upper()
        headers: Dict[str, str] = {"Content-Type": "application/json", **action.headers}
        timeout_ms = self.timeout_ms_for(action)
        retries = self.retries_for(action)
        host = urlparse(target).hostname

        logger.info(
            "webhook_request",
            host=host,
            method=method,
            headers=mask_headers(headers),
            timeout_ms=timeout_ms,
            retries=retries,
        )

        attempt = 0
        while True:
            try:
                return await self._attempt(target, method, headers, body, timeout_ms)
            except WebhookError as e:
                if not e.is_retryable or attempt >= retries:
                    logger.error(
                        "webhook_failed",
                        host=host,
                        status=e.status,
                        attempts=attempt + 1,
                        error=e.message,
                    )
                    raise
                delay_ms = self.config.webhook_retry_backoff_ms * (2 ** attempt)
                attempt += 1
                logger.warning(
                    "webhook_retry",
                    host=host,
                    attempt=attempt,
                    delay_ms=delay_ms,
                    error=e.message,
                )
                await asyncio.sleep(delay_ms / 1000)

    async def _attempt(
        self,
        url: str,
        method: str,
        headers: Dict[str, str],
        body: str,
        timeout_ms: int,
    ) -> WebhookResponse:
        session = await self._get_session()
        try:
            async with session.request(
                method,
                url,
                data=body.encode("utf-8"),
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=timeout_ms / 1000),
            ) as resp:
                text = await resp.text()
                if 200 <= resp.status < 300:
                    logger.info("webhook_success", status=resp.status, length=len(text))
                    return WebhookResponse(resp.status, _decode_body(text))

                transient = resp.status >= 500 or resp.status in _RETRYABLE_STATUS
                raise WebhookError(
                    f"Webhook returned {resp.status}",
                    status=resp.status,
                    category=ErrorCategory.TRANSIENT if transient else ErrorCategory.PERMANENT,
                    body=text[:500],
                )

        except asyncio.TimeoutError:
            logger.warning("webhook_timeout", timeout_ms=timeout_ms)
            raise WebhookError(
                f"Webhook timed out after {timeout_ms} ms",
                category=ErrorCategory.TRANSIENT,
            )

        except aiohttp.ClientError as e:
            raise WebhookError(
                f"Webhook request failed: {e}",
                category=ErrorCategory.TRANSIENT,
            ) from e
