import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from .config import Settings, settings as default_settings
from .database import ConnectionPool
from .exceptions import (
    DuplicateError,
    LibraryRecordsError,
    ReferentialError,
    StorageLimitError,
    UnexpectedStoreError,
    UnknownEntityError,
    ValidationError,
)
from .validators import validate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EntityDefinition:
    """Bir varlık türünün tablo, anahtar ve listeleme bilgileri."""

    name: str
    label: str
    table: str
    key: str
    columns: Tuple[str, ...]
    list_sql: str
    # sütun -> (başvurulan tablo, başvurulan anahtar)
    foreign_keys: Dict[str, Tuple[str, str]] = field(default_factory=dict)


def _reference_table(name: str, label: str, key: str, columns: Tuple[str, ...]) -> EntityDefinition:
    return EntityDefinition(
        name=name,
        label=label,
        table=name,
        key=key,
        columns=columns,
        list_sql=f"SELECT * FROM {name} ORDER BY name, {key}",
    )


ENTITIES: Dict[str, EntityDefinition] = {
    "genres": _reference_table("genres", "genre", "genreid", ("name",)),
    "authors": _reference_table("authors", "author", "authorid", ("name", "bio")),
    "publishers": _reference_table("publishers", "publisher", "publisherid", ("name", "address")),
    "categories": _reference_table("categories", "category", "categoryid", ("name",)),
    "librarystaff": _reference_table("librarystaff", "staff member", "staffid", ("name", "role", "contact")),
    "members": _reference_table("members", "member", "memberid", ("name", "email", "phone", "joindate")),
    "books": EntityDefinition(
        name="books",
        label="book",
        table="books",
        key="bookid",
        columns=("title", "authorid", "isbn", "genreid", "publicationyear", "status"),
        list_sql="""
            SELECT b.*, a.name AS author_name, g.name AS genre_name
            FROM books b
            LEFT JOIN authors a ON b.authorid = a.authorid
            LEFT JOIN genres g ON b.genreid = g.genreid
            ORDER BY b.title, b.bookid
        """,
        foreign_keys={"authorid": ("authors", "authorid"), "genreid": ("genres", "genreid")},
    ),
    "loans": EntityDefinition(
        name="loans",
        label="loan",
        table="loans",
        key="loanid",
        columns=("bookid", "memberid", "issuedate", "returndate", "status"),
        list_sql="""
            SELECT l.*, b.title AS book_title, m.name AS member_name
            FROM loans l
            LEFT JOIN books b ON l.bookid = b.bookid
            LEFT JOIN members m ON l.memberid = m.memberid
            ORDER BY l.issuedate DESC, l.loanid DESC
        """,
        foreign_keys={"bookid": ("books", "bookid"), "memberid": ("members", "memberid")},
    ),
    "fines": EntityDefinition(
        name="fines",
        label="fine",
        table="fines",
        key="fineid",
        columns=("memberid", "amount", "issuedate", "status"),
        list_sql="""
            SELECT f.*, m.name AS member_name
            FROM fines f
            LEFT JOIN members m ON f.memberid = m.memberid
            ORDER BY f.issuedate DESC, f.fineid DESC
        """,
        foreign_keys={"memberid": ("members", "memberid")},
    ),
    "reservations": EntityDefinition(
        name="reservations",
        label="reservation",
        table="reservations",
        key="reservationid",
        columns=("bookid", "memberid", "reservationdate"),
        list_sql="""
            SELECT r.*, b.title AS book_title, m.name AS member_name
            FROM reservations r
            LEFT JOIN books b ON r.bookid = b.bookid
            LEFT JOIN members m ON r.memberid = m.memberid
            ORDER BY r.reservationdate DESC, r.reservationid DESC
        """,
        foreign_keys={"bookid": ("books", "bookid"), "memberid": ("members", "memberid")},
    ),
}

# Yabancı anahtar sütunu -> okunabilir ad
_REFERENCE_LABELS = {
    "authorid": "Author",
    "genreid": "Genre",
    "bookid": "Book",
    "memberid": "Member",
}


def get_entity(name: str) -> EntityDefinition:
    try:
        return ENTITIES[name]
    except KeyError:
        raise UnknownEntityError(f"Unknown entity type: {name}") from None


def unexpected_store_error(exc: BaseException, production: bool) -> UnexpectedStoreError:
    """Sürücü hatasını opak bir sunucu hatasına çevir; ayrıntı yalnızca üretim dışında."""
    if production:
        return UnexpectedStoreError("Server error")
    return UnexpectedStoreError(f"Server error: {exc}")


class RecordService:
    """Varlık başına doğrula-sonra-kaydet akışını yönetir."""

    def __init__(self, pool: ConnectionPool, settings: Optional[Settings] = None) -> None:
        self.pool = pool
        self.settings = settings or default_settings

    def list(self, entity: str) -> List[Dict[str, Any]]:
        """Varlığın tüm satırlarını, birleştirilmiş görünen adlarla birlikte döndür."""
        definition = get_entity(entity)
        try:
            return self.pool.fetch_all(definition.list_sql)
        except sqlite3.Error as e:
            logger.exception(f"Listing {entity} failed")
            raise unexpected_store_error(e, self.settings.is_production) from e

    def create(self, entity: str, fields: Any, today: Optional[date] = None) -> Dict[str, Any]:
        """Alanları doğrula, tek bir INSERT çalıştır ve eklenen satırı döndür."""
        definition = get_entity(entity)
        try:
            record = validate(entity, fields, today=today)
        except ValidationError as e:
            logger.warning(f"Rejected {entity} create: {e.message}")
            raise

        columns = definition.columns
        sql = (
            f"INSERT INTO {definition.table} ({', '.join(columns)}) "
            f"VALUES ({', '.join('?' for _ in columns)})"
        )
        try:
            new_id = self.pool.insert(sql, [record[c] for c in columns])
        except sqlite3.IntegrityError as e:
            error = self._translate_integrity_error(definition, record, e)
            logger.warning(f"Rejected {entity} create: {error.message}")
            raise error from e
        except (sqlite3.InterfaceError, OverflowError) as e:
            # Sürücü değeri bağlayamadı (ör. SQLite INTEGER aralığı dışında)
            logger.warning(f"Rejected {entity} create: {e}")
            raise StorageLimitError("Value exceeds storage limits") from e
        except sqlite3.Error as e:
            logger.exception(f"Creating {entity} failed")
            raise unexpected_store_error(e, self.settings.is_production) from e

        row = self.pool.fetch_one(
            f"SELECT * FROM {definition.table} WHERE {definition.key} = ?", (new_id,)
        )
        logger.info(f"Created {definition.label} {definition.key}={new_id}")
        return row

    def _translate_integrity_error(
        self, definition: EntityDefinition, record: Dict[str, Any], exc: sqlite3.IntegrityError
    ) -> LibraryRecordsError:
        message = str(exc)

        if "FOREIGN KEY constraint failed" in message:
            missing = self._find_missing_reference(definition, record)
            if missing is None:
                return ReferentialError("Referenced entity does not exist")
            column, value = missing
            return ReferentialError(
                f"{_REFERENCE_LABELS.get(column, column)} with {column} {value} does not exist",
                field=column,
            )

        if message.startswith("UNIQUE constraint failed"):
            column = message.rsplit(".", 1)[-1].strip()
            return DuplicateError(
                f"A {definition.label} with this {column} already exists", field=column
            )

        if message.startswith("CHECK constraint failed"):
            # Kısıt adları ck_<tablo>_<sütun> biçimindedir
            constraint = message.split(":", 1)[-1].strip()
            prefix = f"ck_{definition.table}_"
            if constraint.startswith(prefix):
                column = constraint[len(prefix):]
                return StorageLimitError(f"Value for {column} exceeds storage limits", field=column)
            return StorageLimitError("Value exceeds storage limits")

        if message.startswith("NOT NULL constraint failed"):
            column = message.rsplit(".", 1)[-1].strip()
            return ValidationError(f"{column} is required", field=column)

        if "datatype mismatch" in message:
            return StorageLimitError("Value exceeds storage limits")

        logger.error(f"Unhandled integrity error on {definition.table}: {message}")
        return unexpected_store_error(exc, self.settings.is_production)

    def _find_missing_reference(
        self, definition: EntityDefinition, record: Dict[str, Any]
    ) -> Optional[Tuple[str, Any]]:
        """SQLite hangi yabancı anahtarın başarısız olduğunu bildirmez; her birini yokla."""
        for column, (ref_table, ref_key) in definition.foreign_keys.items():
            value = record.get(column)
            if value is None:
                continue
            exists = self.pool.fetch_value(
                f"SELECT 1 FROM {ref_table} WHERE {ref_key} = ?", (value,)
            )
            if not exists:
                return column, value
        return None
