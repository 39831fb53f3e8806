"""
Document Storage Protocol — where invoice documents live.

Stockledger only keeps a reference string on the Purchase; the blob itself
belongs to whatever storage the project plugs in.
"""

from __future__ import annotations

from typing import IO, Protocol, runtime_checkable


@runtime_checkable
class DocumentStorage(Protocol):
    """
    Protocol for invoice document storage.

    Implementations must be safe to call outside a database transaction:
    Stockledger calls delete() only after the surrounding transaction
    commits.
    """

    def save(self, name: str, content: IO[bytes]) -> str:
        """
        Store a document.

        Args:
            name: Suggested file name
            content: File-like object

        Returns:
            Reference string to keep on the Purchase
        """
        ...

    def delete(self, reference: str) -> None:
        """
        Remove a stored document.

        Missing documents are not an error. Any other failure is raised
        and reported by the caller as a cleanup warning.
        """
        ...

    def exists(self, reference: str) -> bool:
        ...
