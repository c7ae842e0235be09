"""
Gemini client wrapper.

Every call asks for JSON constrained by a response schema and returns the
decoded object. Failures come out as typed AiError subclasses so callers can
fall back (and the orchestrator can classify) without sniffing messages.
"""
import asyncio
import json
import logging
from typing import Optional

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from ..config import Settings, get_settings
from .errors import (
    AiError,
    AiAuthError,
    AiQuotaExceededError,
    AiRateLimitedError,
    AiTimeoutError,
)

logger = logging.getLogger(__name__)


def strip_code_fences(text: str) -> str:
    """Remove a ```json ... ``` wrapper Gemini sometimes adds despite instructions."""
    text = text.strip()
    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def map_api_error(e: genai_errors.APIError) -> AiError:
    """Translate a google-genai API error into the pipeline taxonomy."""
    code = getattr(e, "code", None)
    status = str(getattr(e, "status", "") or "").upper()
    message = str(e)
    lowered = message.lower()

    if code == 429 or status == "RESOURCE_EXHAUSTED":
        if "quota" in lowered:
            return AiQuotaExceededError(f"Gemini quota exceeded: {message}")
        return AiRateLimitedError(f"Gemini rate limited: {message}")
    if code in (401, 403) or status in ("UNAUTHENTICATED", "PERMISSION_DENIED") or "api key not valid" in lowered:
        return AiAuthError(f"Gemini authentication failed: {message}")
    if code in (408, 504) or status == "DEADLINE_EXCEEDED":
        return AiTimeoutError(f"Gemini request timed out: {message}")
    return AiError(f"Gemini request failed: {message}")


class GeminiClient:
    provider = "gemini"

    def __init__(self, api_key: str = "", model: str = "gemini-2.0-flash",
                 timeout_seconds: float = 60.0, client=None):
        self.model = model
        if client is None:
            client = genai.Client(
                api_key=api_key,
                http_options=types.HttpOptions(timeout=int(timeout_seconds * 1000)),
            )
        self._client = client

    async def generate_json(self, prompt: str, schema: dict, temperature: float,
                            max_output_tokens: int):
        config = types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=schema,
            temperature=temperature,
            max_output_tokens=max_output_tokens,
        )
        try:
            response = await self._client.aio.models.generate_content(
                model=self.model,
                contents=prompt,
                config=config,
            )
        except genai_errors.APIError as e:
            raise map_api_error(e) from e
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            raise AiTimeoutError(f"Gemini request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise AiError(f"Gemini request failed: {e}") from e

        text = (response.text or "").strip()
        if not text:
            raise AiError("Gemini returned an empty response")

        try:
            return json.loads(strip_code_fences(text))
        except json.JSONDecodeError as e:
            logger.warning(f"[AI] Failed to parse JSON response: {e}; raw: {text[:200]}...")
            raise AiError(f"Gemini returned invalid JSON: {e}") from e


def build_gemini_client(settings: Settings = None) -> Optional[GeminiClient]:
    """Gemini client from settings, or None when AI is not configured."""
    settings = settings or get_settings()
    if not settings.gemini_api_key:
        logger.warning("GEMINI_API_KEY not set - AI features disabled, using fallback heuristics")
        return None
    return GeminiClient(
        api_key=settings.gemini_api_key,
        model=settings.gemini_model,
        timeout_seconds=settings.ai_timeout_seconds,
    )
