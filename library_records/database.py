import logging
import queue
import sqlite3
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Optional, Sequence

logger = logging.getLogger(__name__)

# Tarihler ISO metni, tutarlar ondalık metin olarak saklanır
sqlite3.register_adapter(date, lambda d: d.isoformat())
sqlite3.register_adapter(Decimal, str)

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS genres (
        genreid INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        CONSTRAINT ck_genres_name CHECK (length(name) <= 255)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS authors (
        authorid INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        bio TEXT,
        CONSTRAINT ck_authors_name CHECK (length(name) <= 255)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS publishers (
        publisherid INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        address TEXT,
        CONSTRAINT ck_publishers_name CHECK (length(name) <= 255)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS categories (
        categoryid INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        CONSTRAINT ck_categories_name CHECK (length(name) <= 255)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS books (
        bookid INTEGER PRIMARY KEY AUTOINCREMENT,
        title TEXT NOT NULL,
        authorid INTEGER REFERENCES authors(authorid),
        isbn TEXT UNIQUE,
        genreid INTEGER REFERENCES genres(genreid),
        publicationyear INTEGER,
        status TEXT NOT NULL DEFAULT 'Available',
        CONSTRAINT ck_books_title CHECK (length(title) <= 255),
        CONSTRAINT ck_books_isbn CHECK (isbn IS NULL OR length(isbn) <= 13),
        CONSTRAINT ck_books_publicationyear CHECK (publicationyear IS NULL OR typeof(publicationyear) = 'integer'),
        CONSTRAINT ck_books_status CHECK (status IN ('Available', 'Borrowed'))
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS members (
        memberid INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        email TEXT NOT NULL COLLATE NOCASE UNIQUE,
        phone TEXT,
        joindate DATE,
        CONSTRAINT ck_members_name CHECK (length(name) <= 100),
        CONSTRAINT ck_members_email CHECK (length(email) <= 255),
        CONSTRAINT ck_members_phone CHECK (phone IS NULL OR length(phone) <= 15)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS loans (
        loanid INTEGER PRIMARY KEY AUTOINCREMENT,
        bookid INTEGER REFERENCES books(bookid),
        memberid INTEGER REFERENCES members(memberid),
        issuedate DATE,
        returndate DATE,
        status TEXT NOT NULL DEFAULT 'Active',
        CONSTRAINT ck_loans_status CHECK (status IN ('Active', 'Returned')),
        CONSTRAINT ck_loans_returndate CHECK (returndate IS NULL OR returndate > issuedate)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS fines (
        fineid INTEGER PRIMARY KEY AUTOINCREMENT,
        memberid INTEGER REFERENCES members(memberid),
        amount NUMERIC NOT NULL,
        issuedate DATE,
        status TEXT NOT NULL DEFAULT 'Pending',
        CONSTRAINT ck_fines_amount CHECK (amount >= 0),
        CONSTRAINT ck_fines_status CHECK (status IN ('Pending', 'Paid'))
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS reservations (
        reservationid INTEGER PRIMARY KEY AUTOINCREMENT,
        bookid INTEGER REFERENCES books(bookid),
        memberid INTEGER REFERENCES members(memberid),
        reservationdate DATE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS librarystaff (
        staffid INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        role TEXT NOT NULL,
        contact TEXT,
        CONSTRAINT ck_librarystaff_name CHECK (length(name) <= 255)
    )
    """,
]

INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_books_title ON books(title)",
    "CREATE INDEX IF NOT EXISTS idx_books_genreid ON books(genreid)",
    "CREATE INDEX IF NOT EXISTS idx_loans_issuedate ON loans(issuedate)",
    "CREATE INDEX IF NOT EXISTS idx_loans_status ON loans(status)",
    "CREATE INDEX IF NOT EXISTS idx_fines_status ON fines(status)",
    "CREATE INDEX IF NOT EXISTS idx_reservations_date ON reservations(reservationdate)",
]


class ConnectionPool:
    """Eşzamanlı istekler için sabit boyutlu SQLite bağlantı havuzu.

    Havuz boşken yeni bir bağlantı açılır ve iade edildiğinde kapatılır.
    Sürücü hataları (kısıt ihlalleri, tür hataları) yorumlanmadan yukarı iletilir.
    """

    def __init__(self, db_file: str, size: int = 5) -> None:
        self.db_file = db_file
        self.size = size
        self._pool: "queue.Queue[sqlite3.Connection]" = queue.Queue(maxsize=size)
        self._closed = False
        for _ in range(size):
            self._pool.put(self._connect())
        logger.info(f"Connection pool ready: file={db_file}, size={size}")

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_file, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        # SQLite yabancı anahtarları bağlantı başına etkinleştirmeyi gerektirir
        conn.execute("PRAGMA foreign_keys=ON;")
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA synchronous=NORMAL;")
        return conn

    def get_connection(self) -> sqlite3.Connection:
        try:
            return self._pool.get_nowait()
        except queue.Empty:
            logger.debug("Pool exhausted, opening overflow connection")
            return self._connect()

    def return_connection(self, conn: sqlite3.Connection) -> None:
        if self._closed:
            conn.close()
            return
        try:
            self._pool.put_nowait(conn)
        except queue.Full:
            # Taşma bağlantısı
            conn.close()

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        conn = self.get_connection()
        try:
            yield conn
        finally:
            self.return_connection(conn)

    def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        with self.connection() as conn:
            rows = conn.execute(sql, tuple(params)).fetchall()
            return [dict(row) for row in rows]

    def fetch_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[Dict[str, Any]]:
        with self.connection() as conn:
            row = conn.execute(sql, tuple(params)).fetchone()
            return dict(row) if row else None

    def fetch_value(self, sql: str, params: Sequence[Any] = ()) -> Any:
        with self.connection() as conn:
            row = conn.execute(sql, tuple(params)).fetchone()
            return row[0] if row else None

    def insert(self, sql: str, params: Sequence[Any]) -> int:
        """Tek bir INSERT çalıştırır, işler ve sunucu tarafından atanan kimliği döndürür."""
        with self.connection() as conn:
            try:
                cursor = conn.execute(sql, tuple(params))
                conn.commit()
                return cursor.lastrowid
            except sqlite3.Error:
                conn.rollback()
                raise

    def ping(self) -> bool:
        try:
            self.fetch_value("SELECT 1")
            return True
        except sqlite3.Error as e:
            logger.error(f"Database connection failed: {e}")
            return False

    def close(self) -> None:
        self._closed = True
        while True:
            try:
                self._pool.get_nowait().close()
            except queue.Empty:
                break


def create_tables(pool: ConnectionPool) -> None:
    """Veritabanında mevcut değilse gerekli tabloları oluşturur."""
    with pool.connection() as conn:
        for statement in SCHEMA:
            conn.execute(statement)
        for statement in INDEXES:
            conn.execute(statement)
        conn.commit()


def initialize_database(db_file: str, pool_size: int = 5) -> ConnectionPool:
    """Havuzu açar ve şemanın güncel olduğundan emin olur."""
    pool = ConnectionPool(db_file, size=pool_size)
    create_tables(pool)
    return pool
