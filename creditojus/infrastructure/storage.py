from __future__ import annotations

import logging
import os
import secrets
import time
from pathlib import Path
from typing import Iterable, Protocol

from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from creditojus.domain.contracts import StoredDocument
from creditojus.errors import ValidationError


LOGGER = logging.getLogger("creditojus.storage")

_MB = 1024 * 1024


class DocumentStorage(Protocol):
    def store(self, file: FileStorage) -> StoredDocument: ...

    def delete(self, stored: StoredDocument) -> None: ...


class LocalDocumentStorage:
    """Writes uploaded contract files under ``<root>/transacoes``."""

    subdir = "transacoes"

    def __init__(self, root: str, max_file_size: int | None = None) -> None:
        self.base_dir = Path(root) / self.subdir
        self.max_file_size = max_file_size

    def _target_name(self, original_name: str) -> str:
        ext = os.path.splitext(secure_filename(original_name or ""))[1].lower()
        return f"{int(time.time() * 1000)}-{secrets.token_hex(8)}{ext}"

    def store(self, file: FileStorage) -> StoredDocument:
        self.base_dir.mkdir(parents=True, exist_ok=True)
        original_name = file.filename or "documento"
        target = self.base_dir / self._target_name(original_name)
        file.save(str(target))
        size = target.stat().st_size
        if self.max_file_size is not None and size > self.max_file_size:
            target.unlink(missing_ok=True)
            raise ValidationError(
                code="document_too_large",
                message_key="document_too_large",
                params={"limit": f"{self.max_file_size / _MB:g}"},
                details=f"{original_name}: {size} bytes",
            )
        return StoredDocument(
            name=original_name,
            mime_type=file.mimetype or None,
            size=size,
            path=str(target),
        )

    def delete(self, stored: StoredDocument) -> None:
        try:
            Path(stored.path).unlink(missing_ok=True)
        except OSError:
            LOGGER.warning("document_delete_failed", extra={"path": stored.path})


def store_all(storage: DocumentStorage, files: Iterable[FileStorage]) -> list[StoredDocument]:
    """Store every file; on failure the ones already written are removed."""
    stored: list[StoredDocument] = []
    try:
        for file in files:
            stored.append(storage.store(file))
    except Exception:
        discard_all(storage, stored)
        raise
    return stored


def discard_all(storage: DocumentStorage, documents: Iterable[StoredDocument]) -> None:
    for document in documents:
        storage.delete(document)
