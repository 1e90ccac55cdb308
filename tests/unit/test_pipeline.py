from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Optional

import httpx
import pytest

from cookai.app.domain.errors import (
    AuthRequiredError,
    ErrorCategory,
    GenerationError,
    StorageError,
)
from cookai.app.domain.models import (
    FALLBACK_FOOD_IMAGES,
    CookingStep,
    GenerationOutcome,
    Identity,
    Ingredient,
    PipelineState,
    Recipe,
)
from cookai.app.infra.storage.memory_provider import InMemoryRecordStorage
from cookai.app.services.pipeline import (
    AUTH_REQUIRED_MESSAGE,
    PERSISTENCE_FAILED_MESSAGE,
    PipelineCoordinator,
)
from cookai.app.services.recipe_store import (
    LEGACY_COLLECTION_KEY,
    RecipeStore,
    collection_key,
    serialize_recipes,
)
from cookai.services.image_resolver import ImageResolver
from cookai.services.recipe_generator import RecipeGenerator

U1 = Identity(id="U1", email="u1@example.com", name="User One")


def _recipe(title: str = "Chicken Pasta") -> Recipe:
    return Recipe(
        title=title,
        ingredients=[Ingredient(name="chicken", amount="2")],
        steps=[CookingStep(instruction="Cook")],
    )


class GeneratorStub:
    def __init__(self, result: Recipe | Exception | None = None) -> None:
        self.result = result if result is not None else _recipe()
        self.queries: list[str] = []

    async def generate(self, query: str) -> Recipe:
        self.queries.append(query)
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class FailingWriteStorage(InMemoryRecordStorage):
    def write(self, key: str, value: str) -> None:
        raise StorageError(key, "quota exceeded")


class FailingDeleteStorage(InMemoryRecordStorage):
    def delete(self, key: str) -> bool:
        raise StorageError(key, "permission denied")


def _coordinator(
    generator: GeneratorStub | None = None,
    storage: Optional[InMemoryRecordStorage] = None,
) -> tuple[PipelineCoordinator, GeneratorStub, InMemoryRecordStorage]:
    generator = generator or GeneratorStub()
    storage = storage if storage is not None else InMemoryRecordStorage()
    return PipelineCoordinator(generator=generator, store=RecipeStore(storage)), generator, storage


class TestGenerate:
    def test_requires_identity(self) -> None:
        coordinator, generator, storage = _coordinator()

        outcome = asyncio.run(coordinator.generate("chicken pasta", None))

        assert outcome.state is PipelineState.IDLE
        assert outcome.auth_required is True
        assert outcome.error_message == AUTH_REQUIRED_MESSAGE
        assert outcome.recipe is None
        assert generator.queries == []
        assert storage.keys() == []
        assert coordinator.state is PipelineState.IDLE

    def test_generates_and_persists(self) -> None:
        coordinator, generator, _ = _coordinator()

        outcome = asyncio.run(coordinator.generate("chicken pasta", U1))

        assert outcome.state is PipelineState.PERSISTED
        assert outcome.recipe is generator.result
        assert [r.id for r in outcome.recipes] == [generator.result.id]
        assert outcome.error_message is None
        assert coordinator.state is PipelineState.PERSISTED
        assert [r.id for r in coordinator.list_recipes(U1)] == [generator.result.id]

    def test_generation_failure_writes_nothing(self) -> None:
        error = GenerationError("upstream 429", category=ErrorCategory.RATE_LIMITED, attempts=3)
        coordinator, _, storage = _coordinator(GeneratorStub(error))

        outcome = asyncio.run(coordinator.generate("chicken pasta", U1))

        assert outcome.state is PipelineState.FAILED
        assert outcome.recipe is None
        assert outcome.is_displayable is False
        assert outcome.error_message == error.user_message
        assert storage.keys() == []
        assert coordinator.state is PipelineState.FAILED

    def test_persistence_failure_still_returns_recipe(self) -> None:
        coordinator, generator, _ = _coordinator(storage=FailingWriteStorage())

        outcome = asyncio.run(coordinator.generate("chicken pasta", U1))

        assert outcome.state is PipelineState.FAILED
        assert outcome.recipe is generator.result
        assert outcome.is_displayable is True
        assert outcome.persistence_failed is True
        assert outcome.error_message == PERSISTENCE_FAILED_MESSAGE
        assert outcome.recipes == []


class TestSession:
    def test_sign_in_migrates_legacy_collection(self) -> None:
        coordinator, _, storage = _coordinator()
        storage.write(LEGACY_COLLECTION_KEY, serialize_recipes([_recipe("Soup")]))

        recipes = coordinator.sign_in(U1)

        assert [r.title for r in recipes] == ["Soup"]
        assert storage.keys() == [collection_key("U1")]

    def test_sign_in_survives_migration_failure(self) -> None:
        coordinator, _, storage = _coordinator(storage=FailingWriteStorage())
        InMemoryRecordStorage.write(storage, LEGACY_COLLECTION_KEY, serialize_recipes([_recipe("Soup")]))

        assert coordinator.sign_in(U1) == []

    def test_sign_out_clears_identity_data(self) -> None:
        coordinator, _, storage = _coordinator()
        asyncio.run(coordinator.generate("chicken pasta", U1))

        coordinator.sign_out(U1)

        assert storage.keys() == []
        assert coordinator.state is PipelineState.IDLE

    def test_sign_out_propagates_storage_errors(self) -> None:
        coordinator, _, _ = _coordinator(storage=FailingDeleteStorage())

        with pytest.raises(StorageError):
            coordinator.sign_out(U1)


class TestLibraryOperations:
    def test_list_without_identity_is_empty(self) -> None:
        coordinator, _, _ = _coordinator()

        assert coordinator.list_recipes(None) == []

    @pytest.mark.parametrize(
        "call",
        [
            lambda c: c.save_recipe(None, _recipe()),
            lambda c: c.toggle_favorite(None, "r1"),
            lambda c: c.rate(None, "r1", 4),
            lambda c: c.delete(None, "r1"),
            lambda c: c.import_recipes(None, "[]"),
            lambda c: c.export_recipes(None),
        ],
    )
    def test_mutations_require_identity(self, call) -> None:
        coordinator, _, storage = _coordinator()

        with pytest.raises(AuthRequiredError):
            call(coordinator)

        assert storage.keys() == []

    def test_mutations_with_identity(self) -> None:
        coordinator, _, _ = _coordinator()
        recipe = _recipe("Soup")

        coordinator.save_recipe(U1, recipe)
        coordinator.toggle_favorite(U1, recipe.id)
        result = coordinator.rate(U1, recipe.id, 9)

        assert result[0].is_favorite is True
        assert result[0].rating == 5.0
        assert coordinator.list_recipes(U1, filter_by="favorites")[0].id == recipe.id
        assert coordinator.delete(U1, recipe.id) == []

    def test_export_and_import(self) -> None:
        coordinator, _, _ = _coordinator()
        coordinator.save_recipe(U1, _recipe("Soup"))

        exported = coordinator.export_recipes(U1)
        result = coordinator.import_recipes(U1, exported)

        assert [r.title for r in result] == ["Soup"]


class GeminiClientStub:
    def __init__(self, text: str) -> None:
        self.text = text
        self.calls = 0

    async def generate_content(self, user_prompt: str, system_prompt_path: Path) -> str:
        self.calls += 1
        return self.text


async def _no_sleep(delay: float) -> None:
    return None


class TestEndToEnd:
    def test_chicken_pasta_is_generated_and_saved(self) -> None:
        payload = {
            "title": "Chicken Pasta",
            "ingredients": [{"name": "chicken", "amount": "2"}, {"name": "penne", "amount": "300 g"}],
            "steps": [
                {"instruction": "Boil the pasta"},
                {"instruction": "Sear the chicken"},
                {"instruction": "Make the sauce"},
                {"instruction": "Combine"},
            ],
        }
        client = GeminiClientStub("Here is your recipe:\n" + json.dumps(payload))
        search = httpx.Response(200, json={"items": [{"link": "http://[::1"}]})

        async def run() -> tuple[PipelineCoordinator, GenerationOutcome]:
            transport = httpx.MockTransport(lambda request: search)
            async with httpx.AsyncClient(transport=transport) as http_client:
                resolver = ImageResolver(api_key="key", search_engine_id="engine", http_client=http_client)
                generator = RecipeGenerator(client=client, image_resolver=resolver, sleep=_no_sleep)
                coordinator = PipelineCoordinator(generator=generator, store=RecipeStore(InMemoryRecordStorage()))
                return coordinator, await coordinator.generate("chicken pasta", U1)

        coordinator, outcome = asyncio.run(run())

        assert outcome.state is PipelineState.PERSISTED
        assert coordinator.state is PipelineState.PERSISTED
        assert client.calls == 1
        assert [step.id for step in outcome.recipe.steps] == [1, 2, 3, 4]
        assert len(outcome.recipe.ingredients) == 2
        assert outcome.recipe.image in FALLBACK_FOOD_IMAGES
        assert all(step.image == outcome.recipe.image for step in outcome.recipe.steps)
        assert len(coordinator.list_recipes(U1)) == 1
