import logging
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import database
from database import EntityStore, initialize_database, transaction
from errors import (
    AlreadyBorrowed,
    HasBorrowedBooks,
    InvalidRecord,
    ReferenceIntegrityViolation,
)
from models import (
    NOT_AVAILABLE,
    NOT_FOUND,
    UNKNOWN,
    Author,
    AuthorListing,
    Book,
    BookListing,
    BorrowRecord,
    Borrower,
    BorrowerListing,
    ExportRow,
    RecordListing,
)
from utils.validators import DateValidator, TextValidator

logger = logging.getLogger(__name__)

RECORD_STATUSES = ("all", "open", "closed")


def current_date() -> str:
    """Today's date as dd-mm-yyyy."""
    return DateValidator.format(date.today())


def _author_ref(author_id: Any) -> int:
    try:
        return int(author_id)
    except (TypeError, ValueError):
        raise ReferenceIntegrityViolation("Author", author_id) from None


def _required_text(value: Optional[str], what: str) -> str:
    if not TextValidator.validate_name(value):
        raise ValueError(f"{what} cannot be empty")
    return TextValidator.sanitize_text(value)


class Library:
    """Manages authors, books, borrowers and the loans between them.

    Each public operation opens its own transaction on the SQLite file, so a
    compound change (a loan plus the book flag, a cascade delete) is either
    fully written or not written at all.
    """

    def __init__(self, db_file: Optional[str] = None, today: Optional[Callable[[], str]] = None) -> None:
        self.db_file = db_file or database.DATABASE_FILE
        self._today = today or current_date
        initialize_database(self.db_file)

    def _session(self, write: bool = True):
        return transaction(self.db_file, write=write)

    def current_date(self) -> str:
        return DateValidator.validate(self._today())

    # ------------------------- Authors ------------------------- #
    def add_author(self, name: str) -> Author:
        author = Author(name=_required_text(name, "Author name"))
        with self._session() as store:
            store.create(author)
        logger.info(f"Author added: {author.name} (ID {author.id})")
        return author

    def get_author(self, author_id: int) -> Author:
        with self._session(write=False) as store:
            return store.get(Author, author_id)

    def list_authors(self) -> List[Author]:
        with self._session(write=False) as store:
            return store.get_all(Author)

    def remove_author(self, author_id: int) -> Dict[str, int]:
        """Delete an author together with its books and their borrow records.

        Refused with ``HasBorrowedBooks`` when any of the author's books is
        out; the check runs before anything is deleted.
        """
        with self._session() as store:
            store.get(Author, author_id)
            books = store.get_all(Book, author_id=author_id)
            borrowed = [
                book.id for book in books
                if book.is_borrowed or store.count(BorrowRecord, book_id=book.id, return_date=None)
            ]
            if borrowed:
                raise HasBorrowedBooks(author_id, borrowed)

            records_removed = 0
            for book in books:
                records_removed += store.delete_where(BorrowRecord, book_id=book.id)
                store.delete(Book, book.id)
            store.delete(Author, author_id)

        logger.info(
            f"Author {author_id} removed with {len(books)} book(s) and {records_removed} borrow record(s)"
        )
        return {"books": len(books), "records": records_removed}

    # ------------------------- Books ------------------------- #
    def add_book(self, title: str, author_id: int, genre: str = "") -> Book:
        book = Book(title=_required_text(title, "Book title"), author_id=_author_ref(author_id),
                    genre=TextValidator.sanitize_text(genre))
        with self._session() as store:
            if store.get_optional(Author, book.author_id) is None:
                raise ReferenceIntegrityViolation("Author", book.author_id)
            store.create(book)
        logger.info(f"Book added: {book.title} (ID {book.id})")
        return book

    def get_book(self, book_id: int) -> Book:
        with self._session(write=False) as store:
            return store.get(Book, book_id)

    def find_book(self, book_id: int) -> Optional[Book]:
        with self._session(write=False) as store:
            return store.get_optional(Book, book_id)

    def update_book(self, book_id: int, *, title: Optional[str] = None, author_id: Optional[int] = None,
                    genre: Optional[str] = None) -> Book:
        """Update title, author and/or genre. Blank strings and an author id of
        ``None`` or ``-1`` keep the current value."""
        with self._session() as store:
            book = store.get(Book, book_id)
            if TextValidator.validate_title(title):
                book.title = TextValidator.sanitize_text(title)
            new_author = None if author_id is None else _author_ref(author_id)
            if new_author is not None and new_author != -1:
                if store.get_optional(Author, new_author) is None:
                    raise ReferenceIntegrityViolation("Author", new_author)
                book.author_id = new_author
            if TextValidator.validate_name(genre):
                book.genre = TextValidator.sanitize_text(genre)
            store.update(book)
        return book

    def remove_book(self, book_id: int) -> int:
        """Delete a book and every borrow record (open or closed) pointing at it.

        A borrowed book is removed too, its open record goes with it.
        Returns the number of borrow records deleted.
        """
        with self._session() as store:
            book = store.get(Book, book_id)
            if book.is_borrowed:
                logger.warning(f"Removing book {book_id} while it is borrowed; its open record is deleted")
            removed = store.delete_where(BorrowRecord, book_id=book_id)
            store.delete(Book, book_id)
        logger.info(f"Book {book_id} removed with {removed} borrow record(s)")
        return removed

    def books_by_author(self, author_id: int) -> List[Book]:
        with self._session(write=False) as store:
            store.get(Author, author_id)
            return store.get_all(Book, author_id=author_id)

    # ------------------------- Borrowers ------------------------- #
    def register_borrower(self, name: str, email: str = "") -> Borrower:
        borrower = Borrower(name=_required_text(name, "Borrower name"), email=TextValidator.sanitize_text(email))
        with self._session() as store:
            store.create(borrower)
        logger.info(f"Borrower registered: {borrower.name} (ID {borrower.id})")
        return borrower

    def get_borrower(self, borrower_id: int) -> Borrower:
        with self._session(write=False) as store:
            return store.get(Borrower, borrower_id)

    # ------------------------- Lending ------------------------- #
    def borrow_book(self, book_id: int, borrower_id: int, due_date: Optional[str] = None) -> BorrowRecord:
        """Lend an available book. Opens a borrow record dated today and marks
        the book as borrowed in the same transaction."""
        if due_date is not None:
            due_date = DateValidator.validate(due_date)
        borrow_date = self.current_date()

        with self._session() as store:
            book = store.get(Book, book_id)
            if book.is_borrowed or store.count(BorrowRecord, book_id=book_id, return_date=None):
                raise AlreadyBorrowed(book_id)
            if store.get_optional(Borrower, borrower_id) is None:
                raise ReferenceIntegrityViolation("Borrower", borrower_id)

            record = BorrowRecord(book_id=book_id, borrower_id=borrower_id,
                                  borrow_date=borrow_date, due_date=due_date)
            store.create(record)
            book.is_borrowed = True
            store.update(book)

        logger.info(f"Book {book_id} borrowed by {borrower_id} (record {record.id})")
        return record

    def return_book(self, record_id: int, book_id: Optional[int] = None) -> BorrowRecord:
        """Close an open borrow record and make its book available again.

        When ``book_id`` is given it has to match the record's book.
        """
        returned_on = self.current_date()

        with self._session() as store:
            record = store.get_optional(BorrowRecord, record_id)
            if record is None:
                raise InvalidRecord(record_id)
            if not record.is_open:
                raise InvalidRecord(record_id, f"was already closed on {record.return_date}")
            if book_id is not None and record.book_id != int(book_id):
                raise InvalidRecord(record_id, f"does not belong to book {book_id}")
            book = store.get_optional(Book, record.book_id)
            if book is None:
                raise InvalidRecord(record_id, f"references missing book {record.book_id}")

            record.return_date = returned_on
            store.update(record)
            book.is_borrowed = False
            store.update(book)

        logger.info(f"Book {record.book_id} returned (record {record_id})")
        return record

    def open_record_for(self, book_id: int) -> Optional[BorrowRecord]:
        with self._session(write=False) as store:
            records = store.get_all(BorrowRecord, book_id=book_id, return_date=None)
        return records[0] if records else None

    # ------------------------- Listings ------------------------- #
    @staticmethod
    def _index(store: EntityStore, cls: type) -> Dict[int, Any]:
        return {entity.id: entity for entity in store.get_all(cls)}

    def list_books(self) -> List[BookListing]:
        """All books with author name and, for borrowed ones, the open loan."""
        with self._session(write=False) as store:
            authors = self._index(store, Author)
            borrowers = self._index(store, Borrower)
            open_records = {r.book_id: r for r in store.get_all(BorrowRecord, return_date=None)}
            books = store.get_all(Book)

        listings = []
        for book in books:
            author = authors.get(book.author_id)
            if author is None:
                logger.warning(f"Author with ID {book.author_id} not found for book {book.id}")
            listing = BookListing(
                id=book.id,
                title=book.title,
                author_name=author.name if author else UNKNOWN,
                genre=book.genre,
                is_borrowed=book.is_borrowed,
            )
            if book.is_borrowed:
                record = open_records.get(book.id)
                if record is None:
                    logger.warning(f"Borrow record for book ID {book.id} not found")
                    listing.borrower_name = UNKNOWN
                else:
                    borrower = borrowers.get(record.borrower_id)
                    if borrower is None:
                        logger.warning(f"Borrower with ID {record.borrower_id} not found for book {book.id}")
                    listing.borrower_name = borrower.name if borrower else UNKNOWN
                    listing.borrow_date = record.borrow_date or UNKNOWN
                    listing.due_date = record.due_date
                    listing.return_date = record.return_date
            listings.append(listing)
        return listings

    def list_authors_and_books(self) -> List[AuthorListing]:
        with self._session(write=False) as store:
            authors = store.get_all(Author)
            books = store.get_all(Book)

        titles: Dict[int, List[str]] = {}
        for book in books:
            titles.setdefault(book.author_id, []).append(book.title)
        return [AuthorListing(id=a.id, name=a.name, books=titles.get(a.id, [])) for a in authors]

    def list_borrowers(self) -> List[BorrowerListing]:
        """Borrowers with the titles of the books they currently hold."""
        with self._session(write=False) as store:
            borrowers = store.get_all(Borrower)
            books = self._index(store, Book)
            open_records = store.get_all(BorrowRecord, return_date=None)

        held: Dict[int, List[str]] = {}
        for record in open_records:
            book = books.get(record.book_id)
            if book is None:
                logger.warning(f"Book with ID {record.book_id} not found for record {record.id}")
            held.setdefault(record.borrower_id, []).append(book.title if book else NOT_FOUND)
        return [
            BorrowerListing(id=b.id, name=b.name, email=b.email, books_held=held.get(b.id, []))
            for b in borrowers
        ]

    def borrow_records(self, status: str = "all") -> List[RecordListing]:
        """Borrow records with book title and borrower name resolved.

        ``status`` is one of ``all``, ``open`` or ``closed``.
        """
        status = (status or "all").lower()
        if status not in RECORD_STATUSES:
            raise ValueError(f"Unknown record status '{status}'. Use one of: {', '.join(RECORD_STATUSES)}")

        with self._session(write=False) as store:
            books = self._index(store, Book)
            borrowers = self._index(store, Borrower)
            records = store.get_all(BorrowRecord)

        listings = []
        for record in records:
            if status == "open" and not record.is_open:
                continue
            if status == "closed" and record.is_open:
                continue
            book = books.get(record.book_id)
            borrower = borrowers.get(record.borrower_id)
            if book is None:
                logger.warning(f"Book with ID {record.book_id} not found for record {record.id}")
            if borrower is None:
                logger.warning(f"Borrower with ID {record.borrower_id} not found for record {record.id}")
            listings.append(RecordListing(
                id=record.id,
                book_id=record.book_id,
                book_title=book.title if book else NOT_FOUND,
                borrower_id=record.borrower_id,
                borrower_name=borrower.name if borrower else NOT_FOUND,
                borrow_date=record.borrow_date,
                due_date=record.due_date,
                return_date=record.return_date,
            ))
        return listings

    def get_statistics(self) -> Dict[str, int]:
        with self._session(write=False) as store:
            return {
                "total_books": store.count(Book),
                "borrowed_books": store.count(Book, is_borrowed=True),
                "authors": store.count(Author),
                "borrowers": store.count(Borrower),
                "open_records": store.count(BorrowRecord, return_date=None),
            }

    def check_integrity(self) -> List[str]:
        """Describe every row that breaks the lending invariants (empty when consistent)."""
        with self._session(write=False) as store:
            books = self._index(store, Book)
            records = store.get_all(BorrowRecord)

        problems = []
        open_counts: Dict[int, int] = {}
        for record in records:
            if record.book_id not in books:
                problems.append(f"Borrow record {record.id} references missing book {record.book_id}")
            if record.is_open:
                open_counts[record.book_id] = open_counts.get(record.book_id, 0) + 1
        for book in books.values():
            count = open_counts.get(book.id, 0)
            if book.is_borrowed and count != 1:
                problems.append(f"Book {book.id} is marked borrowed but has {count} open record(s)")
            if not book.is_borrowed and count:
                problems.append(f"Book {book.id} is available but has {count} open record(s)")
        return problems

    # ------------------------- Import / export ------------------------- #
    def bulk_insert_books(self, rows: Iterable[Tuple[str, int, str]]) -> List[int]:
        """Insert ``(title, author_id, genre)`` tuples in a single transaction.

        Unknown author ids are accepted (listings show them as "Unknown").
        """
        ids = []
        with self._session() as store:
            known_authors = {a.id for a in store.get_all(Author)}
            for title, author_id, genre in rows:
                book = Book(title=title, author_id=author_id, genre=genre)
                if book.author_id not in known_authors:
                    logger.warning(f"Imported book '{book.title}' references unknown author {book.author_id}")
                ids.append(store.create(book))
        logger.info(f"Imported {len(ids)} book(s)")
        return ids

    def export_rows(self) -> List[ExportRow]:
        """One row per book: author, status, open loan dates and borrower."""
        rows = []
        for listing in self.list_books():
            row = ExportRow(
                book_id=listing.id,
                book_name=listing.title,
                author_name=listing.author_name,
                status="borrowed" if listing.is_borrowed else "available",
            )
            if listing.is_borrowed:
                row.borrow_date = listing.borrow_date or NOT_AVAILABLE
                row.return_date = listing.return_date or NOT_AVAILABLE
                row.borrower_name = listing.borrower_name or UNKNOWN
            rows.append(row)
        return rows

    def seed_sample_data(self) -> Dict[str, int]:
        """Insert a small demo data set: three authors with one book each,
        two borrowers and two finished loans."""
        with self._session() as store:
            author_ids = [store.create(Author(name)) for name in ("J.K. Rowling", "George Orwell", "J.R.R. Tolkien")]
            book_ids = [
                store.create(Book("Harry Potter", author_ids[0], "Fantasy")),
                store.create(Book("1984", author_ids[1], "Dystopian")),
                store.create(Book("The Hobbit", author_ids[2], "Fantasy")),
            ]
            borrower_ids = [
                store.create(Borrower("Alice Smith", "alice@example.com")),
                store.create(Borrower("Bob Johnson", "bob@example.com")),
            ]
            store.create(BorrowRecord(book_ids[0], borrower_ids[0], "01-11-2024", "10-11-2024", "10-11-2024"))
            store.create(BorrowRecord(book_ids[1], borrower_ids[1], "05-11-2024", "15-11-2024", "15-11-2024"))
        return {"authors": len(author_ids), "books": len(book_ids), "borrowers": len(borrower_ids), "records": 2}

    def close(self) -> None:
        """Connections are opened per operation; nothing is held between calls."""
        return None
