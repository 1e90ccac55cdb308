# cookai/app/services/recipe_store.py
"""
Per-identity recipe collections.

Every mutation is a full read-modify-write of the identity's collection.
Write failures raise StorageError. An unreadable collection degrades to an
empty one and invalid recipes are skipped one by one, so a broken record
never blocks generating new recipes or hides the valid ones.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import ValidationError as PydanticValidationError

from cookai.app.domain.errors import StorageError
from cookai.app.domain.models import Identity, Recipe, clamp_rating, new_recipe_id
from cookai.app.infra.storage.base import RecordStorage

logger = logging.getLogger(__name__)

LEGACY_COLLECTION_KEY = "cook-ai-recipes"
DEFAULT_RECENT_DAYS = 7

ReadErrorHook = Callable[[str, Exception], None]


def collection_key(user_id: str) -> str:
    return f"cook-ai-recipes-{user_id}"


def favorites_key(user_id: str) -> str:
    return f"cook-ai-favorites-{user_id}"


def ratings_key(user_id: str) -> str:
    return f"cook-ai-ratings-{user_id}"


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _title_key(title: str) -> str:
    return title.strip().casefold()


def deserialize_recipes(
    raw: str,
    on_invalid: Optional[Callable[[int, PydanticValidationError], None]] = None,
) -> list[Recipe]:
    """
    Parse a serialized collection, validating each recipe on its own.

    Invalid entries are skipped and passed to `on_invalid` with their index,
    so one bad record never hides the rest of the collection.

    Raises:
        ValueError: If the payload is not a JSON list
    """
    data = json.loads(raw)
    if not isinstance(data, list):
        raise ValueError(f"expected a list of recipes, got {type(data).__name__}")

    recipes: list[Recipe] = []
    for index, item in enumerate(data):
        try:
            recipes.append(Recipe.model_validate(item))
        except PydanticValidationError as error:
            if on_invalid is not None:
                on_invalid(index, error)
    return recipes


def serialize_recipes(recipes: list[Recipe], indent: Optional[int] = None) -> str:
    return json.dumps([recipe.to_record() for recipe in recipes], indent=indent, ensure_ascii=False)


class LibraryFilter(str, Enum):
    """Which recipes the library view shows."""
    ALL = "all"
    FAVORITES = "favorites"
    RECENT = "recent"


class LibrarySort(str, Enum):
    """Library ordering."""
    NEWEST = "newest"
    OLDEST = "oldest"
    RATING = "rating"
    COOK_TIME = "cookTime"


class RecipeStore:
    """
    Durable, per-identity recipe collections on top of a RecordStorage.

    Responsibilities:
    - CRUD, favorite toggle and rating on an identity's collection
    - One-time migration of the legacy shared collection
    - JSON import (merge by title) and export
    - Library helpers: favorites, recent, search/filter/sort
    """

    def __init__(
        self,
        storage: RecordStorage,
        on_read_error: Optional[ReadErrorHook] = None,
        clock: Callable[[], datetime] = _now_utc,
    ):
        self._storage = storage
        self._on_read_error = on_read_error
        self._clock = clock

    # ------------------------------------------------------------------
    # Persistence primitives
    # ------------------------------------------------------------------

    def _report_read_error(self, key: str, error: Exception) -> None:
        logger.warning("Unreadable recipe collection %s, treating as empty: %s", key, error)
        if self._on_read_error is not None:
            self._on_read_error(key, error)

    def _load(self, key: str) -> list[Recipe]:
        try:
            raw = self._storage.read(key)
        except StorageError as error:
            self._report_read_error(key, error)
            return []

        if raw is None:
            return []
        return self._decode(key, raw)

    def _decode(self, key: str, raw: str) -> list[Recipe]:
        def skip_invalid(index: int, error: PydanticValidationError) -> None:
            logger.warning("Skipping invalid recipe #%d in %s: %s", index, key, error)
            if self._on_read_error is not None:
                self._on_read_error(key, error)

        try:
            return deserialize_recipes(raw, on_invalid=skip_invalid)
        except (ValueError, TypeError) as error:
            self._report_read_error(key, error)
            return []

    def _save(self, key: str, recipes: list[Recipe]) -> list[Recipe]:
        try:
            value = serialize_recipes(recipes)
        except (TypeError, ValueError) as error:
            raise StorageError(key, f"unable to serialize recipes: {error}") from error
        self._storage.write(key, value)
        return recipes

    # ------------------------------------------------------------------
    # Collection operations
    # ------------------------------------------------------------------

    def list_recipes(self, identity: Identity) -> list[Recipe]:
        """
        Get all recipes of an identity.

        Args:
            identity: Owner of the collection

        Returns:
            The collection, or an empty list if missing or unreadable
        """
        return self._load(collection_key(identity.id))

    def upsert(self, identity: Identity, recipe: Recipe) -> list[Recipe]:
        """
        Save a recipe, replacing an existing one with the same id in place.

        Args:
            identity: Owner of the collection
            recipe: Recipe to save

        Returns:
            The updated collection

        Raises:
            StorageError: If the collection cannot be written
        """
        key = collection_key(identity.id)
        recipes = self._load(key)

        for index, existing in enumerate(recipes):
            if existing.id == recipe.id:
                recipes[index] = recipe
                break
        else:
            recipes.append(recipe)

        return self._save(key, recipes)

    def delete(self, identity: Identity, recipe_id: str) -> list[Recipe]:
        """
        Remove a recipe by id. Unknown ids are ignored.

        Returns:
            The updated collection

        Raises:
            StorageError: If the collection cannot be written
        """
        key = collection_key(identity.id)
        recipes = self._load(key)
        remaining = [recipe for recipe in recipes if recipe.id != recipe_id]

        if len(remaining) == len(recipes):
            return recipes
        return self._save(key, remaining)

    def toggle_favorite(self, identity: Identity, recipe_id: str) -> list[Recipe]:
        """
        Flip the favorite flag of a recipe. Unknown ids are ignored.

        Returns:
            The updated collection

        Raises:
            StorageError: If the collection cannot be written
        """
        return self._update_one(
            identity,
            recipe_id,
            lambda recipe: recipe.model_copy(update={"is_favorite": not recipe.is_favorite}),
        )

    def rate(self, identity: Identity, recipe_id: str, rating: float) -> list[Recipe]:
        """
        Rate a recipe. The rating is clamped into [0, 5]. Unknown ids are ignored.

        Returns:
            The updated collection

        Raises:
            StorageError: If the collection cannot be written
        """
        clamped = clamp_rating(rating)
        return self._update_one(
            identity,
            recipe_id,
            lambda recipe: recipe.model_copy(update={"rating": clamped}),
        )

    def _update_one(
        self,
        identity: Identity,
        recipe_id: str,
        change: Callable[[Recipe], Recipe],
    ) -> list[Recipe]:
        key = collection_key(identity.id)
        recipes = self._load(key)

        for index, recipe in enumerate(recipes):
            if recipe.id == recipe_id:
                recipes[index] = change(recipe)
                return self._save(key, recipes)

        logger.debug("Recipe %s not found for user %s, nothing to update", recipe_id, identity.id)
        return recipes

    def clear(self, identity: Identity) -> None:
        """
        Remove every record belonging to an identity (used on sign-out).

        Raises:
            StorageError: If a record cannot be removed
        """
        for key in (collection_key(identity.id), favorites_key(identity.id), ratings_key(identity.id)):
            self._storage.delete(key)
        logger.info("Cleared stored data for user %s", identity.id)

    # ------------------------------------------------------------------
    # Schema evolution
    # ------------------------------------------------------------------

    def migrate_legacy(self, identity: Identity) -> int:
        """
        Move the legacy shared collection into the identity's collection, once.

        The legacy record is copied only when the identity has no collection
        yet; otherwise it is discarded. In both cases it is deleted afterwards,
        so a second call finds nothing to do.

        Args:
            identity: Identity that receives the legacy recipes

        Returns:
            Number of recipes migrated (0 when nothing was copied)

        Raises:
            StorageError: If the copy or the legacy removal fails
        """
        try:
            legacy_raw = self._storage.read(LEGACY_COLLECTION_KEY)
        except StorageError as error:
            self._report_read_error(LEGACY_COLLECTION_KEY, error)
            return 0

        if legacy_raw is None:
            return 0

        legacy_recipes = self._decode(LEGACY_COLLECTION_KEY, legacy_raw)

        migrated = 0
        user_key = collection_key(identity.id)
        if legacy_recipes:
            if self._storage.exists(user_key):
                logger.info(
                    "User %s already has a collection, discarding %d legacy recipes",
                    identity.id,
                    len(legacy_recipes),
                )
            else:
                self._save(user_key, legacy_recipes)
                migrated = len(legacy_recipes)
                logger.info("Migrated %d recipes to user %s", migrated, identity.id)

        self._storage.delete(LEGACY_COLLECTION_KEY)
        return migrated

    # ------------------------------------------------------------------
    # Import / export
    # ------------------------------------------------------------------

    def export(self, identity: Identity) -> str:
        """
        Export an identity's collection as pretty-printed JSON.
        """
        return serialize_recipes(self.list_recipes(identity), indent=2)

    def import_merge(self, identity: Identity, serialized: str) -> list[Recipe]:
        """
        Merge an exported collection into the identity's collection.

        Incoming recipes whose title matches a recipe already in the
        collection (case-insensitive) are skipped. Admitted recipes get a new
        id and creation timestamp; foreign ids and timestamps are never kept.

        Args:
            identity: Owner of the collection
            serialized: JSON list of recipes (as produced by export)

        Returns:
            The merged collection

        Raises:
            StorageError: If the input is not a JSON list or the write fails
        """
        key = collection_key(identity.id)
        incoming = self._parse_import(key, serialized)

        merged = self._load(key)
        known_titles = {_title_key(recipe.title) for recipe in merged}
        admitted = 0
        skipped = 0

        for item in incoming:
            recipe = self._admit(item, known_titles)
            if recipe is None:
                skipped += 1
                continue
            merged.append(recipe)
            known_titles.add(_title_key(recipe.title))
            admitted += 1

        logger.info("Import for user %s: admitted=%d, skipped=%d", identity.id, admitted, skipped)
        return self._save(key, merged)

    def _parse_import(self, key: str, serialized: str) -> list[Any]:
        try:
            incoming = json.loads(serialized)
        except (TypeError, ValueError) as error:
            raise StorageError(key, f"import is not valid JSON: {error}") from error
        if not isinstance(incoming, list):
            raise StorageError(key, "import must be a JSON list of recipes")
        return incoming

    def _admit(self, item: Any, known_titles: set[str]) -> Optional[Recipe]:
        if not isinstance(item, dict):
            return None
        title = item.get("title")
        if not isinstance(title, str) or _title_key(title) in known_titles:
            return None
        try:
            recipe = Recipe.model_validate(item)
        except PydanticValidationError as error:
            logger.warning("Skipping invalid imported recipe %r: %s", title, error)
            return None
        return recipe.model_copy(update={"id": new_recipe_id(), "created_at": self._clock()})

    # ------------------------------------------------------------------
    # Library views
    # ------------------------------------------------------------------

    def favorites(self, identity: Identity) -> list[Recipe]:
        return [recipe for recipe in self.list_recipes(identity) if recipe.is_favorite]

    def recent(self, identity: Identity, days: int = DEFAULT_RECENT_DAYS) -> list[Recipe]:
        """
        Recipes created within the last `days` days, newest first.
        """
        cutoff = self._clock() - timedelta(days=days)
        recent = [recipe for recipe in self.list_recipes(identity) if recipe.created_at > cutoff]
        return sorted(recent, key=lambda recipe: recipe.created_at, reverse=True)

    def search(
        self,
        identity: Identity,
        text: str = "",
        filter_by: LibraryFilter = LibraryFilter.ALL,
        sort_by: LibrarySort = LibrarySort.NEWEST,
    ) -> list[Recipe]:
        """
        Browse the library the way the recipe list screen does.

        Args:
            identity: Owner of the collection
            text: Case-insensitive substring matched against title and description
            filter_by: all, favorites, or recent (last 7 days)
            sort_by: newest, oldest, rating (highest first) or cookTime (shortest first)

        Returns:
            Matching recipes in the requested order
        """
        needle = text.strip().lower()
        cutoff = self._clock() - timedelta(days=DEFAULT_RECENT_DAYS)
        filter_by = LibraryFilter(filter_by)
        sort_by = LibrarySort(sort_by)

        def matches(recipe: Recipe) -> bool:
            if needle and needle not in recipe.title.lower() and needle not in recipe.description.lower():
                return False
            if filter_by is LibraryFilter.FAVORITES:
                return recipe.is_favorite
            if filter_by is LibraryFilter.RECENT:
                return recipe.created_at > cutoff
            return True

        found = [recipe for recipe in self.list_recipes(identity) if matches(recipe)]

        if sort_by is LibrarySort.OLDEST:
            return sorted(found, key=lambda recipe: recipe.created_at)
        if sort_by is LibrarySort.RATING:
            return sorted(found, key=lambda recipe: recipe.rating, reverse=True)
        if sort_by is LibrarySort.COOK_TIME:
            return sorted(found, key=lambda recipe: recipe.cook_time)
        return sorted(found, key=lambda recipe: recipe.created_at, reverse=True)
