import sqlite3

import pytest

from database import EntityStore, transaction
from errors import (
    AlreadyBorrowed,
    InvalidDateFormat,
    InvalidRecord,
    NotFound,
    ReferenceIntegrityViolation,
    StoreError,
)
from models import BorrowRecord


def _records(lib):
    with transaction(lib.db_file, write=False) as store:
        return [r.to_dict() for r in store.get_all(BorrowRecord)]


def test_borrow_then_return_scenario(lib, clock):
    author = lib.add_author("Tolkien")
    book = lib.add_book("The Hobbit", author.id, "Fantasy")
    borrower = lib.register_borrower("Alice")

    record = lib.borrow_book(book.id, borrower.id)
    assert lib.get_book(book.id).is_borrowed is True
    assert record.borrow_date == "18-10-2026"
    assert record.return_date is None
    assert len(lib.borrow_records("open")) == 1

    with pytest.raises(AlreadyBorrowed) as exc:
        lib.borrow_book(book.id, borrower.id)
    assert exc.value.identifier == book.id

    clock.value = "25-10-2026"
    returned = lib.return_book(record.id)
    assert returned.return_date == "25-10-2026"
    assert returned.borrow_date == "18-10-2026"
    assert lib.get_book(book.id).is_borrowed is False
    assert lib.borrow_records("open") == []
    assert lib.check_integrity() == []

def test_round_trip_keeps_borrow_date(lib, stocked, clock):
    book = stocked["books"][0]
    record = lib.borrow_book(book.id, stocked["borrower"].id)

    clock.value = "01-11-2026"
    lib.return_book(record.id)

    [closed] = lib.borrow_records("closed")
    assert closed.borrow_date == "18-10-2026"
    assert closed.return_date == "01-11-2026"
    assert lib.get_book(book.id).is_borrowed is False

def test_already_borrowed_leaves_state_unchanged(lib, stocked):
    book = stocked["books"][0]
    other = lib.register_borrower("Bob")
    lib.borrow_book(book.id, stocked["borrower"].id)
    before = _records(lib)

    with pytest.raises(AlreadyBorrowed):
        lib.borrow_book(book.id, other.id)

    assert _records(lib) == before
    assert lib.get_book(book.id).is_borrowed is True

def test_borrow_unknown_book(lib, stocked):
    with pytest.raises(NotFound):
        lib.borrow_book(999, stocked["borrower"].id)
    assert _records(lib) == []

def test_borrow_requires_existing_borrower(lib, stocked):
    book = stocked["books"][0]
    with pytest.raises(ReferenceIntegrityViolation) as exc:
        lib.borrow_book(book.id, 555)
    assert exc.value.identifier == 555
    assert lib.get_book(book.id).is_borrowed is False
    assert _records(lib) == []

def test_borrow_with_due_date(lib, stocked):
    record = lib.borrow_book(stocked["books"][0].id, stocked["borrower"].id, due_date="01-11-2026")
    assert record.due_date == "01-11-2026"
    # the promised date never counts as a return
    assert record.is_open

@pytest.mark.parametrize("bad", ["2026-11-01", "1-11-2026", "31-02-2026", "tomorrow", ""])
def test_borrow_rejects_malformed_due_date(lib, stocked, bad):
    book = stocked["books"][0]
    with pytest.raises(InvalidDateFormat):
        lib.borrow_book(book.id, stocked["borrower"].id, due_date=bad)
    assert lib.get_book(book.id).is_borrowed is False
    assert _records(lib) == []

def test_return_unknown_record(lib, stocked):
    with pytest.raises(InvalidRecord) as exc:
        lib.return_book(12345)
    assert exc.value.identifier == 12345

def test_return_closed_record_fails(lib, stocked, clock):
    book = stocked["books"][0]
    record = lib.borrow_book(book.id, stocked["borrower"].id)
    lib.return_book(record.id)

    # borrowed again by someone else, the old record must not close the new loan
    other = lib.register_borrower("Bob")
    new_record = lib.borrow_book(book.id, other.id)
    before = _records(lib)

    clock.value = "30-10-2026"
    with pytest.raises(InvalidRecord, match="already closed"):
        lib.return_book(record.id)

    assert _records(lib) == before
    assert lib.get_book(book.id).is_borrowed is True
    assert lib.open_record_for(book.id).id == new_record.id

def test_return_with_mismatched_book(lib, stocked):
    first, second = stocked["books"]
    record = lib.borrow_book(first.id, stocked["borrower"].id)

    with pytest.raises(InvalidRecord):
        lib.return_book(record.id, book_id=second.id)
    assert lib.get_book(first.id).is_borrowed is True

    lib.return_book(record.id, book_id=first.id)
    assert lib.get_book(first.id).is_borrowed is False

def test_borrow_is_atomic_when_store_fails(lib, stocked, monkeypatch):
    book = stocked["books"][0]

    def broken_update(self, entity):
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(EntityStore, "update", broken_update)
    with pytest.raises(StoreError):
        lib.borrow_book(book.id, stocked["borrower"].id)
    monkeypatch.undo()

    # the record insert was rolled back with the failed book update
    assert _records(lib) == []
    assert lib.get_book(book.id).is_borrowed is False

def test_return_is_atomic_when_store_fails(lib, stocked, monkeypatch):
    book = stocked["books"][0]
    record = lib.borrow_book(book.id, stocked["borrower"].id)
    original_update = EntityStore.update

    def fail_on_book(self, entity):
        if entity.table == "books":
            raise sqlite3.OperationalError("database is locked")
        return original_update(self, entity)

    monkeypatch.setattr(EntityStore, "update", fail_on_book)
    with pytest.raises(StoreError):
        lib.return_book(record.id)
    monkeypatch.undo()

    assert lib.open_record_for(book.id).id == record.id
    assert lib.get_book(book.id).is_borrowed is True

def test_invariant_holds_over_many_loans(lib, stocked, clock):
    borrower = stocked["borrower"]
    bob = lib.register_borrower("Bob")
    first, second = stocked["books"]

    r1 = lib.borrow_book(first.id, borrower.id)
    r2 = lib.borrow_book(second.id, bob.id)
    lib.return_book(r1.id)
    r3 = lib.borrow_book(first.id, bob.id)
    lib.return_book(r2.id)

    assert lib.check_integrity() == []
    open_ids = [r.id for r in lib.borrow_records("open")]
    assert open_ids == [r3.id]
    flags = {b.id: b.is_borrowed for b in lib.list_books()}
    assert flags == {first.id: True, second.id: False}
