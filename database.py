import logging
import sqlite3
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Tuple, Type, TypeVar

from config import settings
from errors import LibraryError, NotFound, StoreError
from models import ENTITIES

logger = logging.getLogger(__name__)

# Default database file, overridable per Library instance (tests use tmp_path)
DATABASE_FILE = settings.data_file

T = TypeVar("T")


def get_db_connection(db_file: Optional[str] = None) -> sqlite3.Connection:
    """Open a connection to the SQLite database.

    Transactions are opened explicitly by ``transaction()`` so the
    connection runs in autocommit mode otherwise.
    """
    conn = sqlite3.connect(db_file or DATABASE_FILE, isolation_level=None)
    conn.row_factory = sqlite3.Row
    return conn


def create_tables(db_file: Optional[str] = None) -> None:
    """Create the tables and indexes if they do not exist yet."""
    conn = get_db_connection(db_file)
    try:
        cursor = conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS authors (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL
            )
        """)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS books (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT NOT NULL,
                author_id INTEGER NOT NULL,
                genre TEXT NOT NULL DEFAULT '',
                is_borrowed BOOLEAN NOT NULL DEFAULT 0
            )
        """)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS borrowers (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                email TEXT NOT NULL DEFAULT ''
            )
        """)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS borrow_records (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                book_id INTEGER NOT NULL,
                borrower_id INTEGER NOT NULL,
                borrow_date TEXT,
                due_date TEXT,
                return_date TEXT
            )
        """)

        cursor.execute("CREATE INDEX IF NOT EXISTS idx_books_author_id ON books(author_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_borrow_records_book_id ON borrow_records(book_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_borrow_records_borrower_id ON borrow_records(borrower_id)")
        # At most one open record per book
        cursor.execute(
            "CREATE UNIQUE INDEX IF NOT EXISTS idx_borrow_records_open_book "
            "ON borrow_records(book_id) WHERE return_date IS NULL"
        )
    finally:
        conn.close()


def initialize_database(db_file: Optional[str] = None) -> None:
    """Initialise the database, creating the schema when needed."""
    try:
        create_tables(db_file)
    except sqlite3.Error as e:
        logger.error(f"Could not initialise database {db_file or DATABASE_FILE}: {e}")
        raise StoreError(str(e)) from e


class EntityStore:
    """Generic create/get/get_all/update/delete over the four record shapes.

    Column names come from each entity's ``columns`` tuple; filters are
    equality only and ``None`` matches SQL ``NULL``.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    # ------------------------- Helpers ------------------------- #
    @staticmethod
    def _check_entity(cls: type) -> None:
        if cls not in ENTITIES:
            raise TypeError(f"{cls!r} is not a stored entity")

    @staticmethod
    def _values(entity: Any) -> List[Any]:
        values = []
        for column in entity.columns:
            value = getattr(entity, column)
            values.append(int(value) if isinstance(value, bool) else value)
        return values

    @staticmethod
    def _where(cls: type, filters: Dict[str, Any]) -> Tuple[str, List[Any]]:
        if not filters:
            return "", []
        allowed = ("id",) + cls.columns
        clauses, params = [], []
        for column, value in filters.items():
            if column not in allowed:
                raise ValueError(f"Unknown column '{column}' for {cls.__name__}")
            if value is None:
                clauses.append(f"{column} IS NULL")
            else:
                clauses.append(f"{column} = ?")
                params.append(int(value) if isinstance(value, bool) else value)
        return " WHERE " + " AND ".join(clauses), params

    # ------------------------- CRUD ------------------------- #
    def create(self, entity: Any) -> int:
        self._check_entity(type(entity))
        columns = ", ".join(entity.columns)
        placeholders = ", ".join("?" for _ in entity.columns)
        cursor = self.conn.execute(
            f"INSERT INTO {entity.table} ({columns}) VALUES ({placeholders})",
            self._values(entity),
        )
        entity.id = cursor.lastrowid
        return entity.id

    def get_optional(self, cls: Type[T], entity_id: int) -> Optional[T]:
        self._check_entity(cls)
        row = self.conn.execute(f"SELECT * FROM {cls.table} WHERE id = ?", (entity_id,)).fetchone()
        return cls.from_dict(dict(row)) if row else None

    def get(self, cls: Type[T], entity_id: int) -> T:
        entity = self.get_optional(cls, entity_id)
        if entity is None:
            raise NotFound(cls.__name__, entity_id)
        return entity

    def get_all(self, cls: Type[T], **filters: Any) -> List[T]:
        self._check_entity(cls)
        where, params = self._where(cls, filters)
        rows = self.conn.execute(f"SELECT * FROM {cls.table}{where} ORDER BY id", params).fetchall()
        return [cls.from_dict(dict(row)) for row in rows]

    def count(self, cls: type, **filters: Any) -> int:
        self._check_entity(cls)
        where, params = self._where(cls, filters)
        return self.conn.execute(f"SELECT COUNT(*) FROM {cls.table}{where}", params).fetchone()[0]

    def update(self, entity: Any) -> None:
        self._check_entity(type(entity))
        assignments = ", ".join(f"{column} = ?" for column in entity.columns)
        cursor = self.conn.execute(
            f"UPDATE {entity.table} SET {assignments} WHERE id = ?",
            self._values(entity) + [entity.id],
        )
        if cursor.rowcount == 0:
            raise NotFound(type(entity).__name__, entity.id)

    def delete(self, cls: type, entity_id: int) -> None:
        self._check_entity(cls)
        cursor = self.conn.execute(f"DELETE FROM {cls.table} WHERE id = ?", (entity_id,))
        if cursor.rowcount == 0:
            raise NotFound(cls.__name__, entity_id)

    def delete_where(self, cls: type, **filters: Any) -> int:
        """Delete every row matching ``filters``; returns the number removed."""
        self._check_entity(cls)
        if not filters:
            raise ValueError("delete_where needs at least one filter")
        where, params = self._where(cls, filters)
        cursor = self.conn.execute(f"DELETE FROM {cls.table}{where}", params)
        return cursor.rowcount


@contextmanager
def transaction(db_file: Optional[str] = None, write: bool = True) -> Iterator[EntityStore]:
    """Yield an ``EntityStore`` bound to one connection.

    Write scopes start with ``BEGIN IMMEDIATE`` and commit on success; any
    exception rolls everything back. ``sqlite3`` errors leave as ``StoreError``.
    """
    try:
        conn = get_db_connection(db_file)
    except sqlite3.Error as e:
        logger.error(f"Could not open database {db_file or DATABASE_FILE}: {e}")
        raise StoreError(str(e)) from e

    try:
        if write:
            conn.execute("BEGIN IMMEDIATE")
        yield EntityStore(conn)
        if write:
            conn.commit()
    except LibraryError:
        if conn.in_transaction:
            conn.rollback()
        raise
    except sqlite3.Error as e:
        if conn.in_transaction:
            conn.rollback()
        logger.error(f"Database operation failed, rolled back: {e}")
        raise StoreError(str(e)) from e
    except BaseException:
        if conn.in_transaction:
            conn.rollback()
        raise
    finally:
        conn.close()
