# cookai/app/infra/storage/base.py
"""
Abstract base class for record storage.
This interface allows swapping the durable medium behind the recipe store
(local files, Supabase, in-memory for tests) without touching store logic.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional


class RecordStorage(ABC):
    """
    Abstract interface for a key/value medium holding serialized records.

    Values are opaque strings: the recipe store owns serialization, so a
    corrupted value is stored and returned as-is.

    Implementations:
    - InMemoryRecordStorage: process-local dict (tests, previews)
    - LocalFileRecordStorage: one JSON file per key
    - SupabaseRecordStorage: one row per key in a Postgres table
    """

    @abstractmethod
    def read(self, key: str) -> Optional[str]:
        """
        Read the raw value stored under a key.

        Args:
            key: Record key

        Returns:
            The stored string, or None if the key does not exist

        Raises:
            StorageError: If the medium cannot be read
        """
        pass

    @abstractmethod
    def write(self, key: str, value: str) -> None:
        """
        Store a raw value under a key, replacing any previous value.

        Args:
            key: Record key
            value: Serialized record

        Raises:
            StorageError: If the medium rejects the write (quota, I/O, network)
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """
        Remove a key.

        Args:
            key: Record key

        Returns:
            True if something was removed, False if the key did not exist

        Raises:
            StorageError: If the medium rejects the removal
        """
        pass

    def exists(self, key: str) -> bool:
        """
        Check if a key exists.

        Args:
            key: Record key

        Returns:
            True if the key holds a value
        """
        return self.read(key) is not None
