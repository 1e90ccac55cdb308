# cookai/app/services/pipeline.py
"""
Generate-then-persist orchestration for the presentation layer.
"""
from __future__ import annotations

import logging
from typing import Optional, Protocol

from cookai.app.domain.errors import AuthRequiredError, GenerationError, StorageError
from cookai.app.domain.models import GenerationOutcome, Identity, PipelineState, Recipe
from cookai.app.services.recipe_store import LibraryFilter, LibrarySort, RecipeStore

logger = logging.getLogger(__name__)

PERSISTENCE_FAILED_MESSAGE = "Your recipe is ready, but it could not be saved to your library."
AUTH_REQUIRED_MESSAGE = "Please sign in to generate recipes."


class RecipeSource(Protocol):
    async def generate(self, query: str) -> Recipe: ...


class PipelineCoordinator:
    """
    Sequences recipe generation and persistence for one user action at a time.

    Per request: IDLE -> GENERATING -> PERSISTED | FAILED. Without an identity
    the request never leaves IDLE and the outcome asks for sign-in. A storage
    failure after a successful generation still returns the recipe, since
    display must not depend on saving.

    The coordinator keeps no identity of its own; every call receives the
    identity explicitly.
    """

    def __init__(self, generator: RecipeSource, store: RecipeStore):
        self._generator = generator
        self._store = store
        self.state = PipelineState.IDLE

    async def generate(self, query: str, identity: Optional[Identity]) -> GenerationOutcome:
        """
        Generate a recipe and save it to the identity's collection.

        Args:
            query: Free-text dish description
            identity: Signed-in user, or None

        Returns:
            GenerationOutcome describing the final state, the recipe (when
            generated) and the updated collection (when saved)
        """
        if identity is None:
            self.state = PipelineState.IDLE
            logger.info("Generation requested without identity, sign-in required")
            return GenerationOutcome(
                state=PipelineState.IDLE,
                auth_required=True,
                error_message=AUTH_REQUIRED_MESSAGE,
            )

        self.state = PipelineState.GENERATING
        try:
            recipe = await self._generator.generate(query)
        except GenerationError as error:
            self.state = PipelineState.FAILED
            logger.error(
                "Generation failed for user %s: category=%s, attempts=%d, error=%s",
                identity.id,
                error.category.value,
                error.attempts,
                error,
            )
            return GenerationOutcome(state=PipelineState.FAILED, error_message=error.user_message)

        try:
            recipes = self._store.upsert(identity, recipe)
        except StorageError as error:
            self.state = PipelineState.FAILED
            logger.error("Recipe %s generated but not saved for user %s: %s", recipe.id, identity.id, error)
            return GenerationOutcome(
                state=PipelineState.FAILED,
                recipe=recipe,
                recipes=self._store.list_recipes(identity),
                error_message=PERSISTENCE_FAILED_MESSAGE,
                persistence_failed=True,
            )

        self.state = PipelineState.PERSISTED
        return GenerationOutcome(state=PipelineState.PERSISTED, recipe=recipe, recipes=recipes)

    # ------------------------------------------------------------------
    # Session hooks
    # ------------------------------------------------------------------

    def sign_in(self, identity: Identity) -> list[Recipe]:
        """
        Run the one-time legacy migration for a freshly signed-in identity.

        Returns:
            The identity's collection after migration
        """
        try:
            self._store.migrate_legacy(identity)
        except StorageError as error:
            logger.error("Legacy migration failed for user %s: %s", identity.id, error)
        return self._store.list_recipes(identity)

    def sign_out(self, identity: Identity) -> None:
        """
        Remove the identity's stored data so the next user of a shared device
        starts clean.

        Raises:
            StorageError: If the data cannot be removed
        """
        self._store.clear(identity)
        self.state = PipelineState.IDLE

    # ------------------------------------------------------------------
    # Library operations
    # ------------------------------------------------------------------

    def list_recipes(
        self,
        identity: Optional[Identity],
        text: str = "",
        filter_by: LibraryFilter = LibraryFilter.ALL,
        sort_by: LibrarySort = LibrarySort.NEWEST,
    ) -> list[Recipe]:
        if identity is None:
            return []
        if not text and filter_by == LibraryFilter.ALL and sort_by == LibrarySort.NEWEST:
            return self._store.list_recipes(identity)
        return self._store.search(identity, text=text, filter_by=filter_by, sort_by=sort_by)

    def save_recipe(self, identity: Optional[Identity], recipe: Recipe) -> list[Recipe]:
        return self._store.upsert(self._require(identity, "save recipes"), recipe)

    def toggle_favorite(self, identity: Optional[Identity], recipe_id: str) -> list[Recipe]:
        return self._store.toggle_favorite(self._require(identity, "update favorites"), recipe_id)

    def rate(self, identity: Optional[Identity], recipe_id: str, rating: float) -> list[Recipe]:
        return self._store.rate(self._require(identity, "rate recipes"), recipe_id, rating)

    def delete(self, identity: Optional[Identity], recipe_id: str) -> list[Recipe]:
        return self._store.delete(self._require(identity, "delete recipes"), recipe_id)

    def import_recipes(self, identity: Optional[Identity], serialized: str) -> list[Recipe]:
        return self._store.import_merge(self._require(identity, "import recipes"), serialized)

    def export_recipes(self, identity: Optional[Identity]) -> str:
        return self._store.export(self._require(identity, "export recipes"))

    @staticmethod
    def _require(identity: Optional[Identity], operation: str) -> Identity:
        if identity is None:
            raise AuthRequiredError(operation)
        return identity
