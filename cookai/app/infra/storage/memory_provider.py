# cookai/app/infra/storage/memory_provider.py
"""
In-memory record storage, mainly for tests and throwaway sessions.
"""
from __future__ import annotations

from typing import Optional

from cookai.app.domain.errors import StorageError
from cookai.app.infra.storage.base import RecordStorage


class InMemoryRecordStorage(RecordStorage):
    """
    Dict-backed storage with an optional size quota.

    Args:
        max_value_chars: Largest value accepted by write(); mirrors the quota
            of browser-style local storage. None disables the limit.
    """

    def __init__(self, max_value_chars: Optional[int] = None):
        self._records: dict[str, str] = {}
        self.max_value_chars = max_value_chars

    def read(self, key: str) -> Optional[str]:
        return self._records.get(key)

    def write(self, key: str, value: str) -> None:
        if self.max_value_chars is not None and len(value) > self.max_value_chars:
            raise StorageError(key, f"quota exceeded ({len(value)} > {self.max_value_chars} chars)")
        self._records[key] = value

    def delete(self, key: str) -> bool:
        return self._records.pop(key, None) is not None

    def keys(self) -> list[str]:
        return sorted(self._records)
