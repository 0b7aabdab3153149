"""
Unit tests for the Claude inference client.

Tests:
- Per-tool system prompts and generation parameters
- Image preparation and message assembly
- Error mapping (429, 4xx, 5xx, connection failures)
- Retry decorator with exponential backoff
"""

import base64

import anthropic
import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from nutrisync.models.analysis import AnalysisTool
from nutrisync.services.inference_client import (
    RETROSPECTIVE,
    SYSTEM_PROMPTS,
    ClaudeInferenceClient,
    MalformedRequestError,
    NetworkError,
    QuotaExceededError,
    _detect_media_type,
    retry_on_connection_error,
)
from tests.factories import image_bytes


def _response(*texts):
    return MagicMock(content=[MagicMock(text=t) for t in texts])


def _status_error(cls, status_code):
    request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
    response = httpx.Response(status_code, request=request)
    return cls(f"HTTP {status_code}", response=response, body=None)


@pytest.fixture
def anthropic_client():
    client = MagicMock()
    client.messages.create = AsyncMock(return_value=_response('{"mealName": "Toast"}'))
    return client


@pytest.fixture
def image_store():
    store = MagicMock()
    store.upload = AsyncMock(return_value="meal_image:abc")
    return store


@pytest.fixture
def inference_client(anthropic_client, image_store):
    return ClaudeInferenceClient(client=anthropic_client, image_store=image_store)


# =============================================================================
# Request Assembly
# =============================================================================


class TestGenerationParams:
    def test_brand_search_is_deterministic(self):
        assert ClaudeInferenceClient.generation_params(AnalysisTool.BRAND_SEARCH)["temperature"] == 0.0

    def test_deep_analysis_has_larger_budget(self):
        deep = ClaudeInferenceClient.generation_params(AnalysisTool.DEEP_ANALYSIS)
        initial = ClaudeInferenceClient.generation_params(AnalysisTool.INITIAL)
        assert deep["max_tokens"] > initial["max_tokens"]

    def test_every_tool_has_a_system_prompt(self):
        for tool in AnalysisTool:
            assert SYSTEM_PROMPTS[tool.value]
        assert SYSTEM_PROMPTS[RETROSPECTIVE]


class TestInfer:
    @pytest.mark.asyncio
    async def test_text_only_call(self, inference_client, anthropic_client, image_store):
        text = await inference_client.infer("Describe: toast", tool_hint=AnalysisTool.NUTRITION_LOOKUP)

        assert text == '{"mealName": "Toast"}'
        kwargs = anthropic_client.messages.create.call_args.kwargs
        assert kwargs["system"] == SYSTEM_PROMPTS["nutrition_lookup"]
        assert kwargs["temperature"] == 0.2
        content = kwargs["messages"][0]["content"]
        assert content == [{"type": "text", "text": "Describe: toast"}]
        image_store.upload.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_brand_search_uses_zero_temperature(self, inference_client, anthropic_client):
        await inference_client.infer("Find the menu item", tool_hint=AnalysisTool.BRAND_SEARCH)

        kwargs = anthropic_client.messages.create.call_args.kwargs
        assert kwargs["temperature"] == 0.0
        assert kwargs["system"] == SYSTEM_PROMPTS["brand_search"]

    @pytest.mark.asyncio
    async def test_image_is_prepared_and_attached(self, inference_client, anthropic_client, image_store):
        png = image_bytes(size=(2048, 1024))

        await inference_client.infer("Analyze", image_bytes=png)

        content = anthropic_client.messages.create.call_args.kwargs["messages"][0]["content"]
        assert content[0]["type"] == "image"
        assert content[0]["source"]["media_type"] == "image/jpeg"
        sent = base64.standard_b64decode(content[0]["source"]["data"])
        assert sent.startswith(b"\xff\xd8")
        assert content[1] == {"type": "text", "text": "Analyze"}
        image_store.upload.assert_awaited_once_with(sent)

    @pytest.mark.asyncio
    async def test_multi_block_response_is_joined(self, inference_client, anthropic_client):
        anthropic_client.messages.create.return_value = _response('{"a": ', "1}")
        assert await inference_client.infer("x") == '{"a": 1}'

    @pytest.mark.asyncio
    async def test_retrospective_hint(self, inference_client, anthropic_client):
        await inference_client.infer("eggs then salad", tool_hint=RETROSPECTIVE)

        kwargs = anthropic_client.messages.create.call_args.kwargs
        assert kwargs["system"] == SYSTEM_PROMPTS[RETROSPECTIVE]
        assert kwargs["max_tokens"] == 1024

    @pytest.mark.asyncio
    async def test_unknown_tool_hint(self, inference_client, anthropic_client):
        with pytest.raises(MalformedRequestError):
            await inference_client.infer("x", tool_hint="menu_scrape")
        anthropic_client.messages.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_prompt(self, inference_client):
        with pytest.raises(MalformedRequestError):
            await inference_client.infer("   ")


class TestMediaType:
    def test_detect_media_type(self):
        assert _detect_media_type(b"\x89PNG\r\n\x1a\n") == "image/png"
        assert _detect_media_type(b"GIF89a") == "image/gif"
        assert _detect_media_type(b"RIFF\x00\x00\x00\x00WEBPVP8 ") == "image/webp"
        assert _detect_media_type(b"\xff\xd8\xff\xe0") == "image/jpeg"


# =============================================================================
# Error Mapping
# =============================================================================


class TestErrorMapping:
    @pytest.mark.asyncio
    async def test_rate_limit_maps_to_quota(self, inference_client, anthropic_client):
        anthropic_client.messages.create.side_effect = _status_error(anthropic.RateLimitError, 429)

        with pytest.raises(QuotaExceededError):
            await inference_client.infer("x")

    @pytest.mark.asyncio
    async def test_server_error_maps_to_network(self, inference_client, anthropic_client):
        anthropic_client.messages.create.side_effect = _status_error(
            anthropic.InternalServerError, 503
        )

        with pytest.raises(NetworkError):
            await inference_client.infer("x")

    @pytest.mark.asyncio
    async def test_bad_request_maps_to_malformed(self, inference_client, anthropic_client):
        anthropic_client.messages.create.side_effect = _status_error(anthropic.BadRequestError, 400)

        with pytest.raises(MalformedRequestError):
            await inference_client.infer("x")

    @pytest.mark.asyncio
    async def test_connection_error_retried_then_network(self, inference_client, anthropic_client):
        anthropic_client.messages.create.side_effect = anthropic.APIConnectionError(
            request=MagicMock()
        )

        with patch("nutrisync.services.inference_client.asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(NetworkError):
                await inference_client.infer("x")

        assert anthropic_client.messages.create.await_count == 3


# =============================================================================
# Retry Decorator
# =============================================================================


class TestRetryDecorator:
    """Tests for the retry decorator."""

    @pytest.mark.asyncio
    async def test_retry_succeeds_on_first_attempt(self):
        """Test that successful calls don't retry."""
        call_count = 0

        @retry_on_connection_error(max_attempts=3, base_delay=0.01)
        async def successful_call():
            nonlocal call_count
            call_count += 1
            return "success"

        result = await successful_call()

        assert result == "success"
        assert call_count == 1

    @pytest.mark.asyncio
    async def test_retry_eventually_succeeds(self):
        """Test that retries eventually succeed."""
        call_count = 0

        @retry_on_connection_error(max_attempts=3, base_delay=0.01)
        async def flaky_call():
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise anthropic.APIConnectionError(request=MagicMock())
            return "success"

        result = await flaky_call()

        assert result == "success"
        assert call_count == 3

    @pytest.mark.asyncio
    async def test_retry_exhausts_attempts(self):
        """Test that retries exhaust and raise."""
        call_count = 0

        @retry_on_connection_error(max_attempts=3, base_delay=0.01)
        async def always_fails():
            nonlocal call_count
            call_count += 1
            raise anthropic.APIConnectionError(request=MagicMock())

        with pytest.raises(NetworkError) as exc_info:
            await always_fails()

        assert call_count == 3
        assert isinstance(exc_info.value.__cause__, anthropic.APIConnectionError)

    @pytest.mark.asyncio
    async def test_status_errors_not_retried(self):
        call_count = 0

        @retry_on_connection_error(max_attempts=3, base_delay=0.01)
        async def rejected():
            nonlocal call_count
            call_count += 1
            raise _status_error(anthropic.BadRequestError, 400)

        with pytest.raises(anthropic.BadRequestError):
            await rejected()

        assert call_count == 1
