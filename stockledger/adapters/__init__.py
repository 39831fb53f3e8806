"""
Stockledger Adapters.

Implementations of protocols for external systems, loaded from settings.

Usage:
    from stockledger.adapters import get_document_storage, get_expense_backend

    storage = get_document_storage()
    reference = storage.save("factura-102.pdf", uploaded_file)

Settings:
    STOCKLEDGER = {
        "DOCUMENT_STORAGE": "stockledger.adapters.storage.DjangoDocumentStorage",
        "EXPENSE_BACKEND": "finanzas.adapters.PendingExpenseBackend",
    }
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from django.core.exceptions import ImproperlyConfigured
from django.utils.module_loading import import_string

from stockledger.conf import stockledger_settings
from stockledger.protocols import DocumentStorage, ExpenseBackend

logger = logging.getLogger(__name__)


# Cached backend instances, keyed by dotted path
_lock = threading.Lock()
_instances: dict[str, Any] = {}


def _load(setting_name: str) -> Any:
    path = getattr(stockledger_settings, setting_name)

    if not path:
        raise ImproperlyConfigured(f"STOCKLEDGER['{setting_name}'] must be configured.")

    if path not in _instances:
        with _lock:
            if path not in _instances:  # double-checked
                try:
                    backend_class = import_string(path)
                except ImportError as e:
                    raise ImproperlyConfigured(
                        f"Failed to import {setting_name} '{path}': {e}"
                    ) from e
                _instances[path] = backend_class()
                logger.debug("Loaded %s: %s", setting_name, path)

    return _instances[path]


def get_document_storage() -> DocumentStorage:
    """
    Return the configured invoice document storage.

    Raises:
        ImproperlyConfigured: If DOCUMENT_STORAGE is empty or import fails
    """
    return _load('DOCUMENT_STORAGE')


def get_expense_backend() -> ExpenseBackend:
    """
    Return the configured pending-expense backend.

    Raises:
        ImproperlyConfigured: If EXPENSE_BACKEND is empty or import fails
    """
    return _load('EXPENSE_BACKEND')


def reset_backends() -> None:
    """Reset the cached backends. Useful for testing."""
    with _lock:
        _instances.clear()


__all__ = [
    "get_document_storage",
    "get_expense_backend",
    "reset_backends",
]
