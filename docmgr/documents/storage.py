"""
docmgr File Storage — flat uploads directory on local disk.

Stored names are ``<epoch-ms>-<random-int><original-extension>`` so two
uploads of the same file never collide. Template documents have no bytes
on disk; their ``file_path`` is the sentinel ``templates/<code>``.
"""

from __future__ import annotations

import logging
import os
import secrets
import time
from pathlib import Path
from typing import BinaryIO, Optional, Tuple

from docmgr.documents.types import TEMPLATE_PATH_PREFIX
from docmgr.engine.errors import InternalError, ValidationError

logger = logging.getLogger("docmgr.documents.storage")

CHUNK_SIZE = 8192


def is_template_path(file_path: Optional[str]) -> bool:
    return bool(file_path) and file_path.startswith(TEMPLATE_PATH_PREFIX)


def template_path(document_code: str) -> str:
    return f"{TEMPLATE_PATH_PREFIX}{document_code}"


class FileStorage:
    """Reads and writes uploaded files under one directory."""

    def __init__(self, upload_dir: str, max_bytes: int = 50 * 1024 * 1024):
        self._root = Path(upload_dir)
        self._max_bytes = max_bytes
        self._root.mkdir(parents=True, exist_ok=True)

    @property
    def root(self) -> Path:
        return self._root

    @staticmethod
    def stored_name(original_name: str) -> str:
        ext = Path(original_name).suffix
        return f"{int(time.time() * 1000)}-{secrets.randbelow(10**9)}{ext}"

    def save(self, file_data: BinaryIO, original_name: str) -> Tuple[str, int]:
        """
        Stream ``file_data`` to a new file.

        Returns:
            (stored path, bytes written)

        Raises:
            ValidationError if the stream exceeds the size limit; the partial
            file is removed.
        """
        path = self._root / self.stored_name(original_name)
        bytes_written = 0
        try:
            with open(path, "wb") as f:
                while True:
                    chunk = file_data.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    bytes_written += len(chunk)
                    if bytes_written > self._max_bytes:
                        raise ValidationError(
                            f"File too large. Maximum size is {self._max_bytes // (1024 * 1024)}MB.",
                            file_name=original_name,
                        )
                    f.write(chunk)
        except ValidationError:
            self.delete(str(path))
            raise
        except OSError as e:
            self.delete(str(path))
            raise InternalError(f"Could not store file: {e}", file_name=original_name) from e

        logger.info(f"Stored {original_name} as {path.name} ({bytes_written} bytes)")
        return str(path), bytes_written

    def exists(self, file_path: str) -> bool:
        return not is_template_path(file_path) and os.path.isfile(file_path)

    def read(self, file_path: str) -> bytes:
        with open(file_path, "rb") as f:
            return f.read()

    def delete(self, file_path: Optional[str]) -> bool:
        """Remove a stored file. Failures are logged, never raised."""
        if not file_path or is_template_path(file_path):
            return False
        try:
            if os.path.exists(file_path):
                os.remove(file_path)
                logger.info(f"Deleted file: {file_path}")
                return True
        except OSError as e:
            logger.error(f"Failed to delete {file_path}: {e}")
        return False
