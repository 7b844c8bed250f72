import pytest

from library import Library
from errors import NotFound, ReferenceIntegrityViolation


def test_add_list_and_find(lib):
    assert lib.list_books() == []

    author = lib.add_author("James Joyce")
    book = lib.add_book("Ulysses", author.id, "Modernist")

    assert book.id is not None
    assert lib.find_book(book.id) is not None
    assert len(lib.list_books()) == 1
    assert lib.list_books()[0].title == "Ulysses"
    assert lib.list_books()[0].author_name == "James Joyce"

def test_ids_are_assigned_per_entity(lib):
    first = lib.add_author("A")
    second = lib.add_author("B")
    borrower = lib.register_borrower("Reader")

    assert second.id == first.id + 1
    assert borrower.id == 1

def test_add_book_unknown_author(lib):
    with pytest.raises(ReferenceIntegrityViolation) as exc:
        lib.add_book("Orphan", 42, "Mystery")
    assert exc.value.identifier == 42
    assert lib.list_books() == []

def test_add_book_malformed_author_id(lib):
    with pytest.raises(ReferenceIntegrityViolation) as exc:
        lib.add_book("Orphan", "abc")
    assert exc.value.identifier == "abc"

    with pytest.raises(ReferenceIntegrityViolation):
        lib.add_book("Orphan", None)
    assert lib.list_books() == []

@pytest.mark.parametrize("title", [None, "", "   "])
def test_add_book_requires_title(lib, title):
    author = lib.add_author("Someone")
    with pytest.raises(ValueError, match="Book title cannot be empty"):
        lib.add_book(title, author.id)
    assert lib.list_books() == []

def test_names_are_required(lib):
    with pytest.raises(ValueError, match="Author name cannot be empty"):
        lib.add_author(None)
    with pytest.raises(ValueError, match="Borrower name cannot be empty"):
        lib.register_borrower("  ")
    assert lib.list_authors() == []

def test_line_breaks_are_flattened(lib):
    author = lib.add_author("J.R.R.\nTolkien")
    book = lib.add_book("The\r\nHobbit", author.id, "High\nFantasy")
    assert author.name == "J.R.R. Tolkien"
    assert lib.get_book(book.id).title == "The Hobbit"
    assert lib.get_book(book.id).genre == "High Fantasy"

    lib.update_book(book.id, title="There and\nBack Again")
    assert lib.get_book(book.id).title == "There and Back Again"

def test_persistence(db_file, clock):
    lib = Library(db_file=db_file, today=clock)
    author = lib.add_author("Yuval Noah Harari")
    book = lib.add_book("Sapiens", author.id, "History")

    # New instance should read persisted data from SQLite
    lib2 = Library(db_file=db_file, today=clock)
    assert len(lib2.list_books()) == 1
    assert lib2.get_book(book.id).title == "Sapiens"

def test_get_book_not_found(lib):
    with pytest.raises(NotFound) as exc:
        lib.get_book(99)
    assert exc.value.identifier == 99
    assert "99" in str(exc.value)
    # NotFound is still a LookupError for callers catching the builtin
    assert isinstance(exc.value, LookupError)
    assert lib.find_book(99) is None

def test_update_book(lib):
    orwell = lib.add_author("George Orwell")
    huxley = lib.add_author("Aldous Huxley")
    book = lib.add_book("Old Title", orwell.id, "Old Genre")

    updated = lib.update_book(book.id, title="Brave New World", author_id=huxley.id, genre="Dystopian")
    assert updated.title == "Brave New World"
    assert updated.author_id == huxley.id
    assert updated.genre == "Dystopian"

    found = lib.get_book(book.id)
    assert found.title == "Brave New World"
    assert found.author_id == huxley.id

def test_update_book_partial(lib):
    author = lib.add_author("Original Author")
    book = lib.add_book("Original Title", author.id, "Drama")

    updated = lib.update_book(book.id, title="Only Title Changed", author_id=-1, genre="")
    assert updated.title == "Only Title Changed"
    assert updated.author_id == author.id
    assert updated.genre == "Drama"

    updated = lib.update_book(book.id, genre="Comedy")
    assert updated.title == "Only Title Changed"
    assert updated.genre == "Comedy"

def test_update_book_keeps_borrowed_flag(lib, stocked):
    book = stocked["books"][0]
    lib.borrow_book(book.id, stocked["borrower"].id)

    updated = lib.update_book(book.id, title="Nineteen Eighty-Four")
    assert updated.is_borrowed is True
    assert lib.get_book(book.id).is_borrowed is True

def test_update_book_not_found(lib):
    with pytest.raises(NotFound):
        lib.update_book(404, title="New Title")

def test_update_book_unknown_author(lib):
    author = lib.add_author("Real")
    book = lib.add_book("Title", author.id)

    with pytest.raises(ReferenceIntegrityViolation):
        lib.update_book(book.id, title="Changed", author_id=77)
    # nothing from the failed update is kept
    assert lib.get_book(book.id).title == "Title"

    with pytest.raises(ReferenceIntegrityViolation):
        lib.update_book(book.id, author_id="two")
    assert lib.get_book(book.id).author_id == author.id

def test_register_and_get_borrower(lib):
    borrower = lib.register_borrower("  Bob Johnson ", "bob@example.com")
    assert borrower.name == "Bob Johnson"
    assert lib.get_borrower(borrower.id).email == "bob@example.com"

    with pytest.raises(NotFound):
        lib.get_borrower(123)

def test_books_by_author(lib, stocked):
    other = lib.add_author("Someone Else")
    lib.add_book("Unrelated", other.id)

    titles = [b.title for b in lib.books_by_author(stocked["author"].id)]
    assert titles == ["1984", "Animal Farm"]

    with pytest.raises(NotFound):
        lib.books_by_author(999)

def test_statistics(lib, stocked):
    lib.borrow_book(stocked["books"][0].id, stocked["borrower"].id)

    assert lib.get_statistics() == {
        "total_books": 2,
        "borrowed_books": 1,
        "authors": 1,
        "borrowers": 1,
        "open_records": 1,
    }

def test_seed_sample_data(lib):
    counts = lib.seed_sample_data()
    assert counts == {"authors": 3, "books": 3, "borrowers": 2, "records": 2}

    titles = [b.title for b in lib.list_books()]
    assert titles == ["Harry Potter", "1984", "The Hobbit"]
    # the sample loans are finished, so every book is available
    assert all(not b.is_borrowed for b in lib.list_books())
    assert len(lib.borrow_records("closed")) == 2
    assert lib.check_integrity() == []
