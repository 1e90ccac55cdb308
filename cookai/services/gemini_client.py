from __future__ import annotations

import logging
from pathlib import Path

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from cookai.services.errors import (
    EmptyResponseError,
    GeminiConfigurationError,
    GeminiPromptError,
    NetworkTimeoutError,
    RateLimitedError,
    ServiceError,
    ServiceNetworkError,
    ServiceOverloadedError,
)

logger = logging.getLogger(__name__)

_RATE_LIMIT_STATUSES = {"RESOURCE_EXHAUSTED"}
_OVERLOADED_STATUSES = {"UNAVAILABLE", "INTERNAL", "DEADLINE_EXCEEDED"}
_CONFIGURATION_STATUSES = {"UNAUTHENTICATED", "PERMISSION_DENIED"}


def translate_api_error(err: genai_errors.APIError) -> ServiceError:
    status_code = getattr(err, "code", None)
    status = str(getattr(err, "status", "") or "").upper()
    message = str(err)

    if status_code == 429 or status in _RATE_LIMIT_STATUSES or "RESOURCE_EXHAUSTED" in message:
        return RateLimitedError(f"Gemini rate limit reached: {message}")
    if status_code in (500, 503, 504) or status in _OVERLOADED_STATUSES or "overloaded" in message.lower():
        return ServiceOverloadedError(f"Gemini is overloaded: {message}")
    if status_code in (401, 403) or status in _CONFIGURATION_STATUSES or "API key" in message:
        return GeminiConfigurationError(f"Gemini rejected the API key: {message}")
    return ServiceError(f"Gemini request failed: {message}")


class GeminiClient:
    def __init__(
        self,
        api_key: str,
        model_name: str = "gemini-2.5-flash",
        timeout_seconds: float = 60.0,
        client: genai.Client | None = None,
    ) -> None:
        self.api_key = api_key
        self.model_name = model_name
        self.timeout_seconds = timeout_seconds
        self._client = client if client is not None else self._configure_api()

    def _configure_api(self) -> genai.Client:
        if not self.api_key:
            raise GeminiConfigurationError("Missing Google API key.")
        return genai.Client(
            api_key=self.api_key,
            http_options=types.HttpOptions(timeout=int(self.timeout_seconds * 1000)),
        )

    def _load_system_prompt(self, file_path: Path) -> str:
        try:
            return file_path.read_text(encoding="utf-8")
        except FileNotFoundError as not_found_error:
            raise GeminiPromptError(f"Prompt file not found: {file_path}") from not_found_error
        except OSError as io_error:
            raise GeminiPromptError(f"Unable to read prompt file: {io_error}") from io_error

    async def generate_content(
        self,
        user_prompt: str,
        system_prompt_path: Path,
    ) -> str:
        system_instruction = self._load_system_prompt(system_prompt_path)

        try:
            response = await self._client.aio.models.generate_content(
                model=self.model_name,
                contents=user_prompt,
                config=types.GenerateContentConfig(
                    system_instruction=system_instruction,
                    response_mime_type="application/json",
                ),
            )
        except genai_errors.APIError as err:
            logger.warning("Gemini API error: code=%s, message=%s", getattr(err, "code", None), err)
            raise translate_api_error(err) from err
        except httpx.TimeoutException as err:
            raise NetworkTimeoutError(self.model_name, self.timeout_seconds) from err
        except httpx.TransportError as err:
            raise ServiceNetworkError(f"Network error contacting Gemini: {err}") from err

        text = response.text
        if not text:
            raise EmptyResponseError("Model response did not include text content.")
        return text
