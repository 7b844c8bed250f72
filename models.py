from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

UNKNOWN = "Unknown"
NOT_AVAILABLE = "N/A"
NOT_FOUND = "Not found"


class Book:
    """Represents a single book in the catalogue."""

    table = "books"
    columns = ("title", "author_id", "genre", "is_borrowed")

    def __init__(self, title: str, author_id: int, genre: str = "", is_borrowed: bool = False,
                 id: int | None = None) -> None:
        self.id = id
        self.title = title.strip()
        self.author_id = int(author_id)
        self.genre = (genre or "").strip()
        self.is_borrowed = bool(is_borrowed)

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.title} (ID: {self.id}, genre: {self.genre or '-'})"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "author_id": self.author_id,
            "genre": self.genre,
            "is_borrowed": self.is_borrowed,
        }

    @staticmethod
    def from_dict(data: dict) -> "Book":
        # SQLite hands booleans back as 0/1
        return Book(
            title=data["title"],
            author_id=data["author_id"],
            genre=data.get("genre") or "",
            is_borrowed=bool(data.get("is_borrowed")),
            id=data.get("id"),
        )


class Author:
    table = "authors"
    columns = ("name",)

    def __init__(self, name: str, id: int | None = None) -> None:
        self.id = id
        self.name = name.strip()

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.name} (ID: {self.id})"

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}

    @staticmethod
    def from_dict(data: dict) -> "Author":
        return Author(name=data["name"], id=data.get("id"))


class Borrower:
    table = "borrowers"
    columns = ("name", "email")

    def __init__(self, name: str, email: str = "", id: int | None = None) -> None:
        self.id = id
        self.name = name.strip()
        self.email = (email or "").strip()

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.name} <{self.email}> (ID: {self.id})"

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "email": self.email}

    @staticmethod
    def from_dict(data: dict) -> "Borrower":
        return Borrower(name=data["name"], email=data.get("email") or "", id=data.get("id"))


class BorrowRecord:
    """One loan of a book to a borrower.

    ``return_date`` stays ``None`` while the book is out; a record is *open*
    until it is set. ``due_date`` is the return date the borrower promised
    when the loan was made and is purely informative.
    """

    table = "borrow_records"
    columns = ("book_id", "borrower_id", "borrow_date", "due_date", "return_date")

    def __init__(self, book_id: int, borrower_id: int, borrow_date: str | None = None,
                 due_date: str | None = None, return_date: str | None = None,
                 id: int | None = None) -> None:
        self.id = id
        self.book_id = int(book_id)
        self.borrower_id = int(borrower_id)
        self.borrow_date = borrow_date
        self.due_date = due_date
        self.return_date = return_date

    @property
    def is_open(self) -> bool:
        return self.return_date is None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "book_id": self.book_id,
            "borrower_id": self.borrower_id,
            "borrow_date": self.borrow_date,
            "due_date": self.due_date,
            "return_date": self.return_date,
        }

    @staticmethod
    def from_dict(data: dict) -> "BorrowRecord":
        return BorrowRecord(
            book_id=data["book_id"],
            borrower_id=data["borrower_id"],
            borrow_date=data.get("borrow_date"),
            due_date=data.get("due_date"),
            return_date=data.get("return_date"),
            id=data.get("id"),
        )


ENTITIES = (Book, Author, Borrower, BorrowRecord)


# ------------------------- Listing views ------------------------- #
# Placeholders ("Unknown", "N/A") only appear in these read-side shapes.

@dataclass
class BookListing:
    id: int
    title: str
    author_name: str
    genre: str
    is_borrowed: bool
    borrower_name: Optional[str] = None
    borrow_date: Optional[str] = None
    due_date: Optional[str] = None
    return_date: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author_name,
            "genre": self.genre,
            "borrowed": self.is_borrowed,
            "borrower": self.borrower_name,
            "borrow_date": self.borrow_date,
            "due_date": self.due_date,
            "return_date": self.return_date,
        }


@dataclass
class AuthorListing:
    id: int
    name: str
    books: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "books": list(self.books)}


@dataclass
class BorrowerListing:
    id: int
    name: str
    email: str
    books_held: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "email": self.email, "books_held": list(self.books_held)}


@dataclass
class RecordListing:
    id: int
    book_id: int
    book_title: str
    borrower_id: int
    borrower_name: str
    borrow_date: Optional[str]
    due_date: Optional[str]
    return_date: Optional[str]

    @property
    def is_open(self) -> bool:
        return self.return_date is None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "book_id": self.book_id,
            "book": self.book_title,
            "borrower_id": self.borrower_id,
            "borrower": self.borrower_name,
            "borrow_date": self.borrow_date,
            "due_date": self.due_date,
            "return_date": self.return_date,
            "open": self.is_open,
        }


@dataclass
class ExportRow:
    """One line of the book export, in the column order of ``EXPORT_HEADER``."""

    book_id: int
    book_name: str
    author_name: str
    status: str
    borrow_date: str = NOT_AVAILABLE
    return_date: str = NOT_AVAILABLE
    borrower_name: str = NOT_AVAILABLE

    def as_tuple(self) -> tuple:
        return (self.book_id, self.book_name, self.author_name, self.status,
                self.borrow_date, self.return_date, self.borrower_name)


EXPORT_HEADER = ("book_id", "book_name", "author_name", "status", "borrow_date", "return_date", "borrower_name")
