# cookai/app/main.py
from __future__ import annotations

import logging
import sys
from typing import Optional

from supabase import create_client

from cookai.app.config import Settings, get_settings
from cookai.app.infra.storage.base import RecordStorage
from cookai.app.infra.storage.local_provider import LocalFileRecordStorage
from cookai.app.infra.storage.memory_provider import InMemoryRecordStorage
from cookai.app.infra.storage.supabase_provider import SupabaseRecordStorage
from cookai.app.services.pipeline import PipelineCoordinator
from cookai.app.services.recipe_store import ReadErrorHook, RecipeStore
from cookai.services.gemini_client import GeminiClient
from cookai.services.image_resolver import ImageResolver
from cookai.services.recipe_generator import RecipeGenerator

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def build_storage(settings: Settings) -> RecordStorage:
    if settings.STORAGE_BACKEND == "memory":
        return InMemoryRecordStorage()
    if settings.STORAGE_BACKEND == "supabase":
        if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_ROLE_KEY:
            raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY required for the supabase backend")
        client = create_client(str(settings.SUPABASE_URL), settings.SUPABASE_SERVICE_ROLE_KEY)
        return SupabaseRecordStorage(client=client, table_name=settings.SUPABASE_TABLE)
    return LocalFileRecordStorage(settings.STORAGE_DIR)


def build_store(settings: Settings, on_read_error: Optional[ReadErrorHook] = None) -> RecipeStore:
    return RecipeStore(build_storage(settings), on_read_error=on_read_error)


def build_generator(settings: Settings) -> RecipeGenerator:
    client = GeminiClient(
        api_key=settings.GEMINI_API_KEY,
        model_name=settings.GEMINI_MODEL,
        timeout_seconds=settings.GEMINI_TIMEOUT_SECONDS,
    )
    resolver = ImageResolver(
        api_key=settings.GOOGLE_SEARCH_API_KEY,
        search_engine_id=settings.GOOGLE_SEARCH_ENGINE_ID,
        timeout_seconds=settings.IMAGE_TIMEOUT_SECONDS,
    )
    return RecipeGenerator(
        client=client,
        image_resolver=resolver,
        max_attempts=settings.GENERATION_MAX_ATTEMPTS,
        base_delay_seconds=settings.GENERATION_BASE_DELAY_SECONDS,
    )


def build_coordinator(
    settings: Optional[Settings] = None,
    on_read_error: Optional[ReadErrorHook] = None,
) -> PipelineCoordinator:
    """Wire settings, storage, Gemini and image search into a coordinator."""
    settings = settings or get_settings()
    return PipelineCoordinator(
        generator=build_generator(settings),
        store=build_store(settings, on_read_error=on_read_error),
    )
