"""Failure kinds raised by the library operations.

Every public ``Library`` operation either returns its result or raises one of
the classes below. The CLI catches ``LibraryError`` and keeps running;
``StoreError`` is the only fatal one.
"""

from __future__ import annotations

from typing import Any, Optional


class LibraryError(Exception):
    """Base class of every typed failure."""

    kind = "LibraryError"

    def __init__(self, message: str, identifier: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.identifier = identifier

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message, "id": self.identifier}


class NotFound(LibraryError, LookupError):
    kind = "NotFound"

    def __init__(self, entity: str, identifier: Any) -> None:
        super().__init__(f"{entity} with ID {identifier} not found.", identifier)
        self.entity = entity


class AlreadyBorrowed(LibraryError):
    kind = "AlreadyBorrowed"

    def __init__(self, book_id: int) -> None:
        super().__init__(f"Book with ID {book_id} is already borrowed.", book_id)


class InvalidRecord(LibraryError):
    """Return attempted against a missing or already closed borrow record."""

    kind = "InvalidRecord"

    def __init__(self, record_id: int, reason: str = "does not exist") -> None:
        super().__init__(f"Borrow record {record_id} {reason}.", record_id)
        self.reason = reason


class HasBorrowedBooks(LibraryError):
    kind = "HasBorrowedBooks"

    def __init__(self, author_id: int, book_ids: list) -> None:
        ids = ", ".join(str(b) for b in book_ids)
        super().__init__(
            f"Author with ID {author_id} cannot be removed: borrowed book(s) {ids}.",
            author_id,
        )
        self.book_ids = list(book_ids)


class InvalidDateFormat(LibraryError, ValueError):
    kind = "InvalidDateFormat"

    def __init__(self, value: Any) -> None:
        super().__init__(f"Invalid date '{value}'. Please use the dd-mm-yyyy format.", value)


class ReferenceIntegrityViolation(LibraryError):
    """A new or updated row points at an entity that does not exist."""

    kind = "ReferenceIntegrityViolation"

    def __init__(self, entity: str, identifier: Any) -> None:
        super().__init__(f"Referenced {entity} with ID {identifier} does not exist.", identifier)
        self.entity = entity


class StoreError(LibraryError):
    kind = "StoreError"

    def __init__(self, message: str) -> None:
        super().__init__(f"Database error: {message}")
