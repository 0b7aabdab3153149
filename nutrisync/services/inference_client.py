"""
Claude vision-language inference client used by every analysis stage.

One call = one request to the Messages API with a tool-specific system
prompt, generation parameters and optional image. The client returns raw
text; decoding is the caller's job (see result_parser.py).
"""

import asyncio
import base64
import logging
import random
from functools import wraps
from typing import Optional, Union

import anthropic
import httpx
from anthropic import AsyncAnthropic

from nutrisync.config import settings
from nutrisync.models.analysis import AnalysisTool
from nutrisync.services.image_service import TransientImageStore, prepare_image
from nutrisync.services.prompts import (
    BRAND_SEARCH_SYSTEM_PROMPT,
    DEEP_ANALYSIS_SYSTEM_PROMPT,
    INITIAL_ANALYSIS_SYSTEM_PROMPT,
    NUTRITION_LOOKUP_SYSTEM_PROMPT,
    RETROSPECTIVE_SYSTEM_PROMPT,
)

logger = logging.getLogger(__name__)

RETROSPECTIVE = "retrospective"

SYSTEM_PROMPTS = {
    AnalysisTool.INITIAL.value: INITIAL_ANALYSIS_SYSTEM_PROMPT,
    AnalysisTool.BRAND_SEARCH.value: BRAND_SEARCH_SYSTEM_PROMPT,
    AnalysisTool.DEEP_ANALYSIS.value: DEEP_ANALYSIS_SYSTEM_PROMPT,
    AnalysisTool.NUTRITION_LOOKUP.value: NUTRITION_LOOKUP_SYSTEM_PROMPT,
    RETROSPECTIVE: RETROSPECTIVE_SYSTEM_PROMPT,
}


def retry_on_connection_error(max_attempts=3, base_delay=1.0):
    """
    Retry decorator for API calls that may fail due to transient network issues.

    Args:
        max_attempts: Maximum retry attempts (default 3)
        base_delay: Base delay in seconds for exponential backoff (default 1.0)
    """

    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            last_exception = None

            for attempt in range(max_attempts):
                try:
                    return await func(*args, **kwargs)
                except anthropic.APIConnectionError as e:
                    last_exception = e

                    if attempt < max_attempts - 1:
                        # Exponential backoff with jitter
                        delay = base_delay * (2**attempt)
                        jitter = (
                            delay * 0.1 * (2 * random.random() - 1)
                        )  # ±10% random variance
                        sleep_time = delay + jitter

                        logger.warning(
                            "Connection error on attempt %d/%d, retrying in %.1fs...",
                            attempt + 1,
                            max_attempts,
                            sleep_time,
                        )
                        await asyncio.sleep(sleep_time)
                    else:
                        logger.error("All %d attempts failed", max_attempts)

            # All retries exhausted, raise the last exception
            raise NetworkError(
                "Inference service temporarily unavailable after retries"
            ) from last_exception

        return wrapper

    return decorator


def _tool_name(tool_hint: Union[AnalysisTool, str]) -> str:
    return tool_hint.value if isinstance(tool_hint, AnalysisTool) else str(tool_hint)


def _detect_media_type(data: bytes) -> str:
    """Determine media type from magic bytes."""
    if data.startswith(b"\x89PNG"):
        return "image/png"
    if data.startswith(b"GIF8"):
        return "image/gif"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"


class ClaudeInferenceClient:
    """Stateless Claude Messages API wrapper shared by all analysis stages."""

    def __init__(
        self,
        client: Optional[AsyncAnthropic] = None,
        image_store: Optional[TransientImageStore] = None,
    ):
        # Total timeout bounds the whole call, connect bounds the handshake
        timeout = httpx.Timeout(
            timeout=settings.anthropic_timeout,
            connect=settings.anthropic_connect_timeout,
        )
        self.client = client or AsyncAnthropic(
            api_key=settings.anthropic_api_key, timeout=timeout
        )
        self.model = settings.vision_model
        if image_store is None and settings.image_store_enabled:
            image_store = TransientImageStore()
        self.image_store = image_store

    @staticmethod
    def generation_params(tool_hint: Union[AnalysisTool, str]) -> dict:
        """Temperature and max_tokens configured for a tool."""
        name = _tool_name(tool_hint)
        return {
            "temperature": getattr(settings, f"{name}_temperature"),
            "max_tokens": getattr(settings, f"{name}_max_tokens"),
        }

    async def infer(
        self,
        prompt_text: str,
        image_bytes: Optional[bytes] = None,
        tool_hint: Union[AnalysisTool, str] = AnalysisTool.INITIAL,
    ) -> str:
        """
        Issue one inference request and return the model's raw text.

        Args:
            prompt_text: User message text
            image_bytes: Optional meal photo; prepared (downscaled, JPEG) before upload
            tool_hint: Analysis tool (or "retrospective") selecting system prompt
                and generation parameters

        Returns:
            Concatenated text blocks of the response

        Raises:
            NetworkError: Connection failure, timeout or 5xx after retries
            QuotaExceededError: HTTP 429
            MalformedRequestError: Other 4xx, unknown tool or unusable input
        """
        name = _tool_name(tool_hint)
        if name not in SYSTEM_PROMPTS:
            raise MalformedRequestError(f"Unknown tool hint: {name}")
        if not prompt_text or not prompt_text.strip():
            raise MalformedRequestError("Prompt text is empty")

        content = []
        if image_bytes:
            max_bytes = (
                settings.deep_analysis_max_image_bytes
                if name == AnalysisTool.DEEP_ANALYSIS.value
                else None
            )
            prepared = prepare_image(image_bytes, max_bytes=max_bytes)
            if self.image_store is not None:
                await self.image_store.upload(prepared)
            content.append(
                {
                    "type": "image",
                    "source": {
                        "type": "base64",
                        "media_type": _detect_media_type(prepared),
                        "data": base64.standard_b64encode(prepared).decode("utf-8"),
                    },
                }
            )
        content.append({"type": "text", "text": prompt_text})

        params = self.generation_params(name)
        logger.info(
            "Inference call: tool=%s temperature=%.1f max_tokens=%d image=%s",
            name,
            params["temperature"],
            params["max_tokens"],
            bool(image_bytes),
        )

        try:
            response = await self._create(
                model=self.model,
                system=SYSTEM_PROMPTS[name],
                messages=[{"role": "user", "content": content}],
                **params,
            )
        except anthropic.RateLimitError as e:
            raise QuotaExceededError("Inference quota exceeded") from e
        except anthropic.APIStatusError as e:
            if e.status_code >= 500:
                raise NetworkError(f"Inference service error ({e.status_code})") from e
            raise MalformedRequestError(f"Request error: {e.message}") from e

        # Extract text from response (handle multi-block responses)
        response_text = ""
        for block in response.content:
            if hasattr(block, "text"):
                response_text += block.text

        if not response_text:
            logger.warning("Empty response text for tool=%s", name)
        return response_text

    @retry_on_connection_error(
        max_attempts=settings.inference_max_attempts,
        base_delay=settings.inference_retry_base_delay,
    )
    async def _create(self, **kwargs):
        return await self.client.messages.create(**kwargs)


# =============================================================================
# CUSTOM EXCEPTIONS
# =============================================================================


class InferenceError(Exception):
    """Base class for inference client failures."""

    pass


class NetworkError(InferenceError):
    """Connection failure, timeout or server-side error."""

    pass


class QuotaExceededError(InferenceError):
    """Rate limit or quota exceeded (HTTP 429)."""

    pass


class MalformedRequestError(InferenceError):
    """The request was rejected or could not be built."""

    pass
