import pytest

from library import Library
from utils.ui_helpers import OUTPUT_MODE_ENV


class FixedClock:
    """Date provider for tests; change ``value`` to move time forward."""

    def __init__(self, value: str = "18-10-2026") -> None:
        self.value = value

    def __call__(self) -> str:
        return self.value


@pytest.fixture(autouse=True)
def plain_output(monkeypatch):
    # set_output_mode() writes to os.environ; keep modes from leaking between tests
    monkeypatch.setenv(OUTPUT_MODE_ENV, "plain")


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def db_file(tmp_path, request):
    # Each test gets its own database file
    return str(tmp_path / f"test_{request.node.name}.db")


@pytest.fixture
def lib(db_file, clock):
    lib = Library(db_file=db_file, today=clock)
    yield lib
    lib.close()


@pytest.fixture
def stocked(lib):
    """An author with two books and one registered borrower."""
    author = lib.add_author("George Orwell")
    first = lib.add_book("1984", author.id, "Dystopian")
    second = lib.add_book("Animal Farm", author.id, "Satire")
    borrower = lib.register_borrower("Alice Smith", "alice@example.com")
    return {"author": author, "books": [first, second], "borrower": borrower}
