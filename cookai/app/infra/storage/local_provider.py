# cookai/app/infra/storage/local_provider.py
"""
Local filesystem storage: one JSON file per record key.
"""
from __future__ import annotations

import hashlib
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Optional

from cookai.app.domain.errors import StorageError
from cookai.app.infra.storage.base import RecordStorage

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


class LocalFileRecordStorage(RecordStorage):
    """
    Stores each record as <base_dir>/<sanitized key>.json.

    Writes go through a temp file and os.replace so a crash never leaves a
    half-written record behind.
    """

    def __init__(self, base_dir: str | Path):
        self.base_dir = Path(base_dir)
        logger.info("LocalFileRecordStorage initialized: base_dir=%s", self.base_dir)

    def path_for(self, key: str) -> Path:
        """
        Map a record key to its file path.

        Keys with characters outside [a-zA-Z0-9._-] are sanitized and
        suffixed with a short hash so distinct keys never share a file.
        """
        safe_name = _UNSAFE_CHARS.sub("_", key)
        if safe_name != key:
            digest = hashlib.sha1(key.encode("utf-8")).hexdigest()[:8]
            safe_name = f"{safe_name}-{digest}"
        return self.base_dir / f"{safe_name}.json"

    def read(self, key: str) -> Optional[str]:
        path = self.path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as error:
            raise StorageError(key, f"unable to read {path}: {error}") from error

    def write(self, key: str, value: str) -> None:
        path = self.path_for(key)
        tmp_name: Optional[str] = None
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.base_dir, prefix=".tmp-", suffix=".json")
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(value)
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as error:
            logger.error("Failed to write record %s: %s", key, error)
            raise StorageError(key, f"unable to write {path}: {error}") from error
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    logger.debug("Temp file already gone: %s", tmp_name)

    def delete(self, key: str) -> bool:
        path = self.path_for(key)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as error:
            raise StorageError(key, f"unable to delete {path}: {error}") from error
