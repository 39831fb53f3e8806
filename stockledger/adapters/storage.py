"""
Django Storage Adapter — invoice documents through Django's storage API.

Uses the "default" entry of settings.STORAGES (FileSystemStorage, S3 via
django-storages, ...), so the blob store is whatever the project already
configured.

Usage in settings.py:
    STOCKLEDGER = {
        "DOCUMENT_STORAGE": "stockledger.adapters.storage.DjangoDocumentStorage",
    }
"""

from __future__ import annotations

import logging
from typing import IO

from django.core.files import File
from django.core.files.storage import Storage, default_storage

logger = logging.getLogger(__name__)


class DjangoDocumentStorage:
    """DocumentStorage backed by a Django Storage instance."""

    upload_to = 'stockledger/invoices/'

    def __init__(self, storage: Storage | None = None):
        self._storage = storage or default_storage

    def save(self, name: str, content: IO[bytes]) -> str:
        if not isinstance(content, File):
            content = File(content, name=name)
        reference = self._storage.save(f"{self.upload_to}{name}", content)
        logger.debug("Stored invoice document: %s", reference)
        return reference

    def delete(self, reference: str) -> None:
        if not reference:
            return
        if not self._storage.exists(reference):
            logger.debug("Invoice document already gone: %s", reference)
            return
        self._storage.delete(reference)

    def exists(self, reference: str) -> bool:
        return bool(reference) and self._storage.exists(reference)
