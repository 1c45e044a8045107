"""Tests for inline webhook calls."""

import asyncio
import json
from unittest.mock import AsyncMock, patch

import aiohttp
import pytest

from slashwire.config import Config
from slashwire.exceptions import ErrorCategory, WebhookError
from slashwire.models import WebhookAction
from slashwire.webhook import WebhookClient, WebhookResponse, clamp_timeout_ms


class FakeResponse:
    def __init__(self, status, text=""):
        self.status = status
        self._text = text

    async def text(self):
        return self._text

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    """Replays queued outcomes: a FakeResponse or an exception to raise."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.requests = []
        self.closed = False

    def request(self, method, url, **kwargs):
        self.requests.append({"method": method, "url": url, **kwargs})
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def close(self):
        self.closed = True


@pytest.fixture
def webhook_config(tmp_path):
    return Config(config_dir=tmp_path, settings={
        "webhook": {"timeout_ms": 5000, "max_retries": 0, "retry_backoff_ms": 100},
    })


def _client(config, *outcomes):
    session = FakeSession(*outcomes)
    return WebhookClient(config, session=session), session


ACTION = WebhookAction(url="https://hooks.example.com/deploy")


class TestClamp:

    def test_bounds(self):
        assert clamp_timeout_ms(50) == 1000
        assert clamp_timeout_ms(5000) == 5000
        assert clamp_timeout_ms(120000) == 30000

    def test_action_overrides_config(self, webhook_config):
        client = WebhookClient(webhook_config, session=FakeSession())
        assert client.timeout_ms_for(ACTION) == 5000
        assert client.timeout_ms_for(WebhookAction(url="x", timeout_ms=100)) == 1000
        assert client.retries_for(WebhookAction(url="x", retry_count=9)) == 3
        assert client.retries_for(ACTION) == 0


class TestCall:

    @pytest.mark.asyncio
    async def test_json_response(self, webhook_config):
        client, session = _client(webhook_config, FakeResponse(200, '{"text": "Deployed"}'))
        response = await client.call(ACTION, '{"ref": "main"}')

        assert response == WebhookResponse(200, {"text": "Deployed"})
        sent = session.requests[0]
        assert sent["method"] == "POST"
        assert sent["url"] == ACTION.url
        assert sent["data"] == b'{"ref": "main"}'
        assert sent["headers"]["Content-Type"] == "application/json"
        assert sent["timeout"].total == 5.0

    @pytest.mark.asyncio
    async def test_text_and_empty_bodies(self, webhook_config):
        client, _ = _client(webhook_config, FakeResponse(200, "queued"), FakeResponse(204, ""))
        assert (await client.call(ACTION, "{}")).data == "queued"
        assert (await client.call(ACTION, "{}")).data is None

    @pytest.mark.asyncio
    async def test_url_and_method_override(self, webhook_config):
        client, session = _client(webhook_config, FakeResponse(200, "{}"))
        action = WebhookAction(url="https://unused", method="put", headers={"X-Team": "infra"})
        await client.call(action, "{}", url="https://hooks.example.com/infra")
        assert session.requests[0]["method"] == "PUT"
        assert session.requests[0]["url"] == "https://hooks.example.com/infra"
        assert session.requests[0]["headers"]["X-Team"] == "infra"

    @pytest.mark.asyncio
    async def test_missing_url(self, webhook_config):
        client, session = _client(webhook_config)
        with pytest.raises(WebhookError, match="No webhook URL configured"):
            await client.call(WebhookAction(), "{}")
        assert session.requests == []

    @pytest.mark.asyncio
    async def test_client_error_status_is_permanent(self, webhook_config):
        client, _ = _client(webhook_config, FakeResponse(404, "not found"))
        with pytest.raises(WebhookError) as exc_info:
            await client.call(ACTION, "{}")
        assert exc_info.value.status == 404
        assert exc_info.value.message == "Webhook returned 404"
        assert exc_info.value.category == ErrorCategory.PERMANENT

    @pytest.mark.asyncio
    async def test_server_error_is_transient(self, webhook_config):
        client, _ = _client(webhook_config, FakeResponse(502))
        with pytest.raises(WebhookError) as exc_info:
            await client.call(ACTION, "{}")
        assert exc_info.value.is_retryable

    @pytest.mark.asyncio
    async def test_timeout(self, webhook_config):
        client, _ = _client(webhook_config, asyncio.TimeoutError())
        with pytest.raises(WebhookError, match="Webhook timed out after 5000 ms"):
            await client.call(ACTION, "{}")

    @pytest.mark.asyncio
    async def test_connection_error(self, webhook_config):
        client, _ = _client(webhook_config, aiohttp.ClientConnectionError("refused"))
        with pytest.raises(WebhookError, match="Webhook request failed: refused"):
            await client.call(ACTION, "{}")


class TestRetries:

    @pytest.mark.asyncio
    async def test_retries_transient_failures_with_backoff(self, webhook_config):
        client, session = _client(
            webhook_config,
            FakeResponse(503),
            asyncio.TimeoutError(),
            FakeResponse(200, '{"ok": true}'),
        )
        action = WebhookAction(url=ACTION.url, retry_count=2)
        with patch("slashwire.webhook.asyncio.sleep", new_callable=AsyncMock) as sleep:
            response = await client.call(action, "{}")

        assert response.data == {"ok": True}
        assert len(session.requests) == 3
        assert [c.args[0] for c in sleep.await_args_list] == [0.1, 0.2]

    @pytest.mark.asyncio
    async def test_gives_up_after_retry_count(self, webhook_config):
        client, session = _client(webhook_config, FakeResponse(429), FakeResponse(429))
        action = WebhookAction(url=ACTION.url, retry_count=1)
        with patch("slashwire.webhook.asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(WebhookError, match="Webhook returned 429"):
                await client.call(action, "{}")
        assert len(session.requests) == 2

    @pytest.mark.asyncio
    async def test_permanent_failure_not_retried(self, webhook_config):
        client, session = _client(webhook_config, FakeResponse(400))
        action = WebhookAction(url=ACTION.url, retry_count=3)
        with pytest.raises(WebhookError):
            await client.call(action, "{}")
        assert len(session.requests) == 1


class TestSession:

    @pytest.mark.asyncio
    async def test_external_session_left_open(self, webhook_config):
        client, session = _client(webhook_config)
        await client.close()
        assert session.closed is False

    @pytest.mark.asyncio
    async def test_owned_session_closed(self, webhook_config):
        client = WebhookClient(webhook_config)
        session = await client._get_session()
        assert await client._get_session() is session
        await client.close()
        assert session.closed


@pytest.mark.asyncio
async def test_request_log_masks_credentials(webhook_config):
    client, _ = _client(webhook_config, FakeResponse(200, "{}"))
    action = WebhookAction(url=ACTION.url, headers={"Authorization": "Bearer abcdef123456"})
    with patch("slashwire.webhook.logger") as mock_logger:
        await client.call(action, json.dumps({}))

    event, kwargs = mock_logger.info.call_args_list[0].args[0], mock_logger.info.call_args_list[0].kwargs
    assert event == "webhook_request"
    assert kwargs["headers"]["Authorization"] == "***3456"
    assert kwargs["host"] == "hooks.example.com"
