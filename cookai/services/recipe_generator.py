from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Protocol

from cookai.app.domain.errors import ErrorCategory, GenerationError, ValidationError, classify_failure
from cookai.app.domain.models import CookingStep, Ingredient, Recipe
from cookai.services.errors import (
    EmptyResponseError,
    GeminiConfigurationError,
    GeminiPromptError,
    NetworkTimeoutError,
    RateLimitedError,
    ServiceNetworkError,
    ServiceOverloadedError,
    TransientServiceError,
)

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = Path(__file__).parent / "prompts" / "RECIPE_SYSTEM_PROMPT.txt"
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY_SECONDS = 1.0

_RETRYABLE_KEYWORDS = (
    "overload",
    "rate limit",
    "quota",
    "resource_exhausted",
    "429",
    "503",
    "unavailable",
    "timeout",
    "timed out",
    "network",
    "connection",
)
_NON_RETRYABLE_TYPES = (ValidationError, GeminiConfigurationError, GeminiPromptError, EmptyResponseError)


class GenerationClient(Protocol):
    async def generate_content(self, user_prompt: str, system_prompt_path: Path) -> str: ...


class ImageSource(Protocol):
    async def resolve(self, query: str) -> str: ...


@dataclass
class RecipeDraft:
    title: str
    description: str
    cook_time: Any
    difficulty: Any
    servings: Any
    ingredients: list[Ingredient]
    steps: list[CookingStep]


def build_user_prompt(query: str) -> str:
    return f'Create a detailed recipe for: "{query}"'


def extract_json_object(text: str) -> dict[str, Any]:
    """Return the first well-formed JSON object embedded in free text."""
    decoder = json.JSONDecoder()
    start = text.find("{")
    while start != -1:
        try:
            value, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            start = text.find("{", start + 1)
            continue
        return value
    raise ValidationError("Invalid response format from the recipe service")


def _clean_str(value: Any) -> str | None:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def _parse_ingredients(value: list[Any]) -> list[Ingredient]:
    ingredients: list[Ingredient] = []
    for entry in value:
        if isinstance(entry, str):
            name, amount = _clean_str(entry), ""
        elif isinstance(entry, dict):
            name, amount = _clean_str(entry.get("name")), _clean_str(entry.get("amount")) or ""
        else:
            continue
        if name:
            ingredients.append(Ingredient(name=name, amount=amount))
    return ingredients


def _parse_steps(value: list[Any]) -> list[CookingStep]:
    steps: list[CookingStep] = []
    for entry in value:
        if isinstance(entry, str):
            instruction, duration = _clean_str(entry), 0
        elif isinstance(entry, dict):
            instruction, duration = _clean_str(entry.get("instruction")), entry.get("duration")
        else:
            continue
        if instruction:
            steps.append(CookingStep(instruction=instruction, duration=duration))
    return steps


def parse_recipe_payload(text: str) -> RecipeDraft:
    if not text or not text.strip():
        raise ValidationError("Empty response from the recipe service")

    data = extract_json_object(text)

    missing: list[str] = []
    title = _clean_str(data.get("title"))
    if not title:
        missing.append("title")

    raw_ingredients = data.get("ingredients")
    ingredients = _parse_ingredients(raw_ingredients) if isinstance(raw_ingredients, list) else []
    if not ingredients:
        missing.append("ingredients")

    raw_steps = data.get("steps")
    steps = _parse_steps(raw_steps) if isinstance(raw_steps, list) else []
    if not steps:
        missing.append("steps")

    if missing:
        raise ValidationError(
            f"Recipe response is missing required fields: {', '.join(missing)}",
            missing_fields=missing,
        )

    return RecipeDraft(
        title=title,
        description=_clean_str(data.get("description")) or "",
        cook_time=data.get("cookTime"),
        difficulty=data.get("difficulty"),
        servings=data.get("servings"),
        ingredients=ingredients,
        steps=steps,
    )


def is_retryable(error: BaseException) -> bool:
    if isinstance(error, TransientServiceError):
        return True
    if isinstance(error, _NON_RETRYABLE_TYPES):
        return False
    if isinstance(error, (TimeoutError, ConnectionError)):
        return True
    message = str(error).lower()
    return any(keyword in message for keyword in _RETRYABLE_KEYWORDS)


def category_for(error: BaseException) -> ErrorCategory:
    if isinstance(error, RateLimitedError):
        return ErrorCategory.RATE_LIMITED
    if isinstance(error, ServiceOverloadedError):
        return ErrorCategory.SERVICE_BUSY
    if isinstance(error, (NetworkTimeoutError, ServiceNetworkError, TimeoutError, ConnectionError)):
        return ErrorCategory.NETWORK
    if isinstance(error, (GeminiConfigurationError, GeminiPromptError)):
        return ErrorCategory.CONFIGURATION
    return classify_failure(error)


class RecipeGenerator:
    def __init__(
        self,
        client: GenerationClient,
        image_resolver: ImageSource,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay_seconds: float = DEFAULT_BASE_DELAY_SECONDS,
        system_prompt_path: Path = SYSTEM_PROMPT,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._client = client
        self._image_resolver = image_resolver
        self.max_attempts = max_attempts
        self.base_delay_seconds = base_delay_seconds
        self.system_prompt_path = system_prompt_path
        self._sleep = sleep

    def backoff_delay(self, attempt: int) -> float:
        return self.base_delay_seconds * (2 ** (attempt - 1))

    async def generate(self, query: str) -> Recipe:
        query = (query or "").strip()
        if not query:
            raise ValidationError("Describe the dish you want to cook.", missing_fields=["query"])

        draft = await self._request_draft(query)

        image = await self._image_resolver.resolve(f"{draft.title} {query}")
        for step in draft.steps:
            step.image = image

        recipe = Recipe(
            title=draft.title,
            description=draft.description,
            image=image,
            cook_time=draft.cook_time,
            difficulty=draft.difficulty,
            servings=draft.servings,
            ingredients=draft.ingredients,
            steps=draft.steps,
            rating=0,
            is_favorite=False,
        )
        logger.info(
            "Recipe generated: id=%s, title=%r, ingredients=%d, steps=%d",
            recipe.id,
            recipe.title,
            len(recipe.ingredients),
            len(recipe.steps),
        )
        return recipe

    async def _request_draft(self, query: str) -> RecipeDraft:
        last_error: Exception | None = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                text = await self._client.generate_content(
                    user_prompt=build_user_prompt(query),
                    system_prompt_path=self.system_prompt_path,
                )
                return parse_recipe_payload(text)
            except ValidationError:
                logger.error("Recipe response rejected on attempt %d/%d", attempt, self.max_attempts)
                raise
            except Exception as err:
                if not is_retryable(err):
                    logger.error("Recipe generation failed (non-retryable): %s", err)
                    raise GenerationError(
                        f"Recipe generation failed: {err}",
                        category=category_for(err),
                        attempts=attempt,
                    ) from err

                last_error = err
                if attempt < self.max_attempts:
                    delay = self.backoff_delay(attempt)
                    logger.warning(
                        "Retryable generation failure (attempt %d/%d), retrying in %.1fs: %s",
                        attempt,
                        self.max_attempts,
                        delay,
                        err,
                    )
                    await self._sleep(delay)

        logger.error("Recipe generation gave up after %d attempts: %s", self.max_attempts, last_error)
        raise GenerationError(
            f"Recipe generation failed after {self.max_attempts} attempts: {last_error}",
            category=category_for(last_error) if last_error else ErrorCategory.GENERIC,
            attempts=self.max_attempts,
        ) from last_error
