# cookai/app/infra/storage/supabase_provider.py
"""
Supabase storage provider: one row per record key.

Expected table (default name "recipe_collections"):
    key text primary key,
    value text not null,
    updated_at timestamptz
"""
from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from typing import Optional

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client

from cookai.app.domain.errors import StorageError
from cookai.app.infra.storage.base import RecordStorage

logger = logging.getLogger(__name__)

DEFAULT_TABLE_NAME = "recipe_collections"

_CLIENT_ERRORS = (APIError, httpx.HTTPError, ConnectionError, TimeoutError)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _create_supabase_client(url: Optional[str] = None, key: Optional[str] = None) -> Client:
    url = url or os.getenv("SUPABASE_URL")
    key = key or os.getenv("SUPABASE_SERVICE_ROLE_KEY")
    if not url or not key:
        raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY required")
    return create_client(url, key)


class SupabaseRecordStorage(RecordStorage):
    def __init__(self, client: Client | None = None, table_name: str = DEFAULT_TABLE_NAME):
        self._client = client or _create_supabase_client()
        self.table_name = table_name
        logger.info("SupabaseRecordStorage initialized: table=%s", self.table_name)

    def read(self, key: str) -> Optional[str]:
        try:
            result = (
                self._client.table(self.table_name)
                .select("value")
                .eq("key", key)
                .limit(1)
                .execute()
            )
        except _CLIENT_ERRORS as error:
            logger.error("Supabase read failed for %s: %s", key, error)
            raise StorageError(key, f"read failed: {error}") from error

        rows = result.data or []
        if not rows:
            return None
        value = rows[0].get("value")
        return None if value is None else str(value)

    def write(self, key: str, value: str) -> None:
        row = {"key": key, "value": value, "updated_at": _now_utc().isoformat()}
        try:
            self._client.table(self.table_name).upsert(row, on_conflict="key").execute()
        except _CLIENT_ERRORS as error:
            logger.error("Supabase write failed for %s: %s", key, error)
            raise StorageError(key, f"write failed: {error}") from error

    def delete(self, key: str) -> bool:
        try:
            result = self._client.table(self.table_name).delete().eq("key", key).execute()
        except _CLIENT_ERRORS as error:
            logger.error("Supabase delete failed for %s: %s", key, error)
            raise StorageError(key, f"delete failed: {error}") from error
        return bool(result.data)
