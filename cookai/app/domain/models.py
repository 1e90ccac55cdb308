# cookai/app/domain/models.py
"""
Domain models for recipe generation and per-identity storage.

Recipe, Ingredient, CookingStep and Identity are pydantic models because they
cross the storage and upstream-service boundaries (camelCase on the wire).
Pipeline results are plain dataclasses.
"""
from __future__ import annotations

import secrets
import string
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_COOK_TIME_MINUTES = 30
DEFAULT_SERVINGS = 4
MIN_RATING = 0.0
MAX_RATING = 5.0

FALLBACK_FOOD_IMAGES: tuple[str, ...] = (
    "https://images.pexels.com/photos/1640777/pexels-photo-1640777.jpeg?auto=compress&cs=tinysrgb&w=800",
    "https://images.pexels.com/photos/376464/pexels-photo-376464.jpeg?auto=compress&cs=tinysrgb&w=800",
    "https://images.pexels.com/photos/1279330/pexels-photo-1279330.jpeg?auto=compress&cs=tinysrgb&w=800",
)

_ID_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def new_recipe_id() -> str:
    """Millisecond timestamp followed by a 9-character base-36 random suffix."""
    suffix = "".join(secrets.choice(_ID_SUFFIX_ALPHABET) for _ in range(9))
    return f"{int(time.time() * 1000)}{suffix}"


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def clamp_rating(value: Any) -> float:
    try:
        rating = float(value)
    except (TypeError, ValueError):
        return MIN_RATING
    if rating != rating:  # NaN
        return MIN_RATING
    return max(MIN_RATING, min(MAX_RATING, rating))


def _positive_int(value: Any, default: int) -> int:
    try:
        number = int(float(value))
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


class Difficulty(str, Enum):
    """Recipe difficulty as shown to the user."""
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"

    @classmethod
    def parse(cls, value: Any) -> "Difficulty":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            normalized = value.strip().lower()
            for member in cls:
                if member.value.lower() == normalized:
                    return member
        return cls.MEDIUM


class Ingredient(BaseModel):
    name: str
    amount: str = ""

    @field_validator("amount", mode="before")
    @classmethod
    def _coerce_amount(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value)


class CookingStep(BaseModel):
    id: int = 0
    instruction: str
    duration: int = 0  # minutes
    image: Optional[str] = None

    @field_validator("duration", mode="before")
    @classmethod
    def _coerce_duration(cls, value: Any) -> int:
        try:
            return max(0, int(float(value)))
        except (TypeError, ValueError):
            return 0


class Recipe(BaseModel):
    """
    A structured recipe.

    Steps are renumbered 1..N whenever a Recipe is constructed, so upstream or
    imported step ids are never trusted. Rating is clamped into [0, 5] and a
    missing image is replaced by one of the fallback food photos.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=new_recipe_id)
    title: str = Field(min_length=1)
    description: str = ""
    image: str = Field(default_factory=lambda: secrets.choice(FALLBACK_FOOD_IMAGES))
    cook_time: int = Field(default=DEFAULT_COOK_TIME_MINUTES, alias="cookTime")
    difficulty: Difficulty = Difficulty.MEDIUM
    servings: int = DEFAULT_SERVINGS
    ingredients: list[Ingredient] = Field(default_factory=list)
    steps: list[CookingStep] = Field(default_factory=list)
    rating: float = MIN_RATING
    is_favorite: bool = Field(default=False, alias="isFavorite")
    created_at: datetime = Field(default_factory=_now_utc, alias="createdAt")

    @field_validator("title", mode="before")
    @classmethod
    def _strip_title(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("description", mode="before")
    @classmethod
    def _coerce_description(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("image", mode="before")
    @classmethod
    def _default_image(cls, value: Any) -> str:
        if isinstance(value, str) and value.strip():
            return value.strip()
        return secrets.choice(FALLBACK_FOOD_IMAGES)

    @field_validator("cook_time", mode="before")
    @classmethod
    def _coerce_cook_time(cls, value: Any) -> int:
        return _positive_int(value, DEFAULT_COOK_TIME_MINUTES)

    @field_validator("servings", mode="before")
    @classmethod
    def _coerce_servings(cls, value: Any) -> int:
        return _positive_int(value, DEFAULT_SERVINGS)

    @field_validator("difficulty", mode="before")
    @classmethod
    def _parse_difficulty(cls, value: Any) -> Difficulty:
        return Difficulty.parse(value)

    @field_validator("rating", mode="before")
    @classmethod
    def _clamp_rating(cls, value: Any) -> float:
        return clamp_rating(value)

    @field_validator("created_at")
    @classmethod
    def _ensure_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @model_validator(mode="after")
    def _renumber_steps(self) -> "Recipe":
        for index, step in enumerate(self.steps, start=1):
            step.id = index
        return self

    def to_record(self) -> dict[str, Any]:
        """Serialize with camelCase keys and an ISO-8601 createdAt."""
        return self.model_dump(mode="json", by_alias=True)


class Identity(BaseModel):
    """Authenticated user as supplied by the identity provider."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(min_length=1)
    email: str
    name: str
    picture: str = ""
    access_token: str = Field(default="", alias="accessToken")


class PipelineState(str, Enum):
    """State of a single generate-and-persist request."""
    IDLE = "IDLE"
    GENERATING = "GENERATING"
    PERSISTED = "PERSISTED"
    FAILED = "FAILED"


@dataclass
class GenerationOutcome:
    """Result of a generate-and-persist request handed to the presentation layer."""
    state: PipelineState
    recipe: Optional[Recipe] = None
    recipes: list[Recipe] = field(default_factory=list)
    auth_required: bool = False
    error_message: Optional[str] = None
    persistence_failed: bool = False

    @property
    def is_displayable(self) -> bool:
        """A recipe can be shown even when saving it failed."""
        return self.recipe is not None
