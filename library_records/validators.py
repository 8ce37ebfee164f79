"""Varlık başına doğrulama motoru.

Her doğrulayıcı taşıma katmanından gelen ham alan eşlemesini alır ve ya
depolamaya hazır, varsayılanları doldurulmuş bir kayıt döndürür ya da hatalı
alanı adlandıran bir ``ValidationError`` yükseltir. Hiçbir G/Ç yapılmaz.
"""
import math
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, StrictFloat, StrictInt, StrictStr
from pydantic import ValidationError as PydanticValidationError

from .exceptions import StorageLimitError, UnknownEntityError, ValidationError

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
INTEGER_PATTERN = re.compile(r"^[+-]?\d+$")

ISBN_MAX_LENGTH = 13
MEMBER_NAME_MAX_LENGTH = 100
EMAIL_MAX_LENGTH = 255
PHONE_MAX_LENGTH = 15
PHONE_MIN_DIGITS = 10
PHONE_MAX_DIGITS = 15
MIN_PUBLICATION_YEAR = 1000

BOOK_STATUSES = ("Available", "Borrowed")
LOAN_STATUSES = ("Active", "Returned")
FINE_STATUSES = ("Pending", "Paid")

# JSON true/false sayıya veya dizeye zorlanmaz, sınırda reddedilir
Scalar = Optional[Union[StrictInt, StrictFloat, StrictStr]]


# --- Sınır Modelleri ---
# İstek gövdeleri burada varlık başına tipli bir yapıya eşlenir
class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")


class BookPayload(_Payload):
    title: Scalar = None
    authorid: Scalar = None
    isbn: Scalar = None
    genreid: Scalar = None
    publicationyear: Scalar = None
    status: Scalar = None


class MemberPayload(_Payload):
    name: Scalar = None
    email: Scalar = None
    phone: Scalar = None
    joindate: Scalar = None


class LoanPayload(_Payload):
    bookid: Scalar = None
    memberid: Scalar = None
    issuedate: Scalar = None
    returndate: Scalar = None
    status: Scalar = None


class FinePayload(_Payload):
    memberid: Scalar = None
    amount: Scalar = None
    issuedate: Scalar = None
    status: Scalar = None


class ReservationPayload(_Payload):
    bookid: Scalar = None
    memberid: Scalar = None
    reservationdate: Scalar = None


class GenrePayload(_Payload):
    name: Scalar = None


class CategoryPayload(_Payload):
    name: Scalar = None


class AuthorPayload(_Payload):
    name: Scalar = None
    bio: Scalar = None


class PublisherPayload(_Payload):
    name: Scalar = None
    address: Scalar = None


class StaffPayload(_Payload):
    name: Scalar = None
    role: Scalar = None
    contact: Scalar = None


# --- Alan Yardımcıları ---
def _text(value: Any) -> Optional[str]:
    """Değeri kırpılmış bir dizeye çevir; boş dizeler None olur."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _require_text(value: Any, field: str) -> str:
    text = _text(value)
    if text is None:
        raise ValidationError(f"{field} is required", field=field)
    return text


def _parse_int(value: Any, field: str, required: bool = True) -> Optional[int]:
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"{field} is required", field=field)
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", field=field)
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and INTEGER_PATTERN.match(value.strip()):
        return int(value.strip())
    raise ValidationError(f"{field} must be an integer", field=field)


def _parse_date(value: Any, field: str) -> Optional[date]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a valid date (YYYY-MM-DD)", field=field)
    raw = value.strip()
    try:
        return date.fromisoformat(raw)
    except ValueError:
        pass
    # Tarih seçicilerden gelen tam zaman damgalarına izin ver
    try:
        return datetime.fromisoformat(raw).date()
    except ValueError:
        raise ValidationError(f"{field} must be a valid date (YYYY-MM-DD)", field=field)


def _parse_amount(value: Any, field: str) -> Decimal:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"{field} is required", field=field)
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", field=field)
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"{field} must be a number", field=field)
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a number", field=field)
    if amount < 0:
        raise ValidationError(f"{field} must not be negative", field=field)
    # SQLite NUMERIC değeri kayan noktaya çevirir; sonsuza taşan tutarlar saklanamaz
    if not math.isfinite(float(amount)):
        raise StorageLimitError(f"Value for {field} exceeds storage limits", field=field)
    return amount


def _parse_status(value: Any, allowed: tuple, default: str) -> str:
    status = _text(value)
    if status is None:
        return default
    if status not in allowed:
        raise ValidationError(f"status must be one of: {', '.join(allowed)}", field="status")
    return status


# --- Varlık Doğrulayıcıları ---
def validate_book(payload: BookPayload, today: date) -> Dict[str, Any]:
    title = _require_text(payload.title, "title")
    authorid = _parse_int(payload.authorid, "authorid")
    genreid = _parse_int(payload.genreid, "genreid")

    # Uzun ISBN reddedilmez, 13 karaktere kesilir
    isbn = _text(payload.isbn)
    if isbn is not None:
        isbn = isbn[:ISBN_MAX_LENGTH]

    publicationyear = _parse_int(payload.publicationyear, "publicationyear", required=False)
    if publicationyear is not None:
        max_year = today.year + 1
        if not MIN_PUBLICATION_YEAR <= publicationyear <= max_year:
            raise ValidationError(
                f"publicationyear must be between {MIN_PUBLICATION_YEAR} and {max_year}",
                field="publicationyear",
            )

    return {
        "title": title,
        "authorid": authorid,
        "isbn": isbn,
        "genreid": genreid,
        "publicationyear": publicationyear,
        "status": _parse_status(payload.status, BOOK_STATUSES, "Available"),
    }


def validate_member(payload: MemberPayload, today: date) -> Dict[str, Any]:
    name = _require_text(payload.name, "name")
    if len(name) > MEMBER_NAME_MAX_LENGTH:
        raise ValidationError(
            f"name must be at most {MEMBER_NAME_MAX_LENGTH} characters", field="name"
        )

    email = _require_text(payload.email, "email").lower()
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("email must be a valid email address", field="email")
    if len(email) > EMAIL_MAX_LENGTH:
        raise ValidationError(
            f"email must be at most {EMAIL_MAX_LENGTH} characters", field="email"
        )

    # Biçimli telefon olduğu gibi saklanır, uzunluk kontrolü yalnızca rakamlar üzerinde
    phone = _text(payload.phone)
    if phone is not None:
        if len(phone) > PHONE_MAX_LENGTH:
            raise ValidationError(
                f"phone must be at most {PHONE_MAX_LENGTH} characters", field="phone"
            )
        digits = re.sub(r"\D", "", phone)
        if not PHONE_MIN_DIGITS <= len(digits) <= PHONE_MAX_DIGITS:
            raise ValidationError(
                f"phone must contain between {PHONE_MIN_DIGITS} and {PHONE_MAX_DIGITS} digits",
                field="phone",
            )

    joindate = _parse_date(payload.joindate, "joindate")
    if joindate is None:
        joindate = today
    elif joindate > today:
        raise ValidationError("joindate cannot be in the future", field="joindate")

    return {"name": name, "email": email, "phone": phone, "joindate": joindate}


def validate_loan(payload: LoanPayload, today: date) -> Dict[str, Any]:
    bookid = _parse_int(payload.bookid, "bookid")
    memberid = _parse_int(payload.memberid, "memberid")
    issuedate = _parse_date(payload.issuedate, "issuedate") or today

    returndate = _parse_date(payload.returndate, "returndate")
    if returndate is not None and returndate <= issuedate:
        raise ValidationError("returndate must be after issuedate", field="returndate")

    return {
        "bookid": bookid,
        "memberid": memberid,
        "issuedate": issuedate,
        "returndate": returndate,
        "status": _parse_status(payload.status, LOAN_STATUSES, "Active"),
    }


def validate_fine(payload: FinePayload, today: date) -> Dict[str, Any]:
    return {
        "memberid": _parse_int(payload.memberid, "memberid"),
        "amount": _parse_amount(payload.amount, "amount"),
        "issuedate": _parse_date(payload.issuedate, "issuedate") or today,
        "status": _parse_status(payload.status, FINE_STATUSES, "Pending"),
    }


def validate_reservation(payload: ReservationPayload, today: date) -> Dict[str, Any]:
    return {
        "bookid": _parse_int(payload.bookid, "bookid"),
        "memberid": _parse_int(payload.memberid, "memberid"),
        "reservationdate": _parse_date(payload.reservationdate, "reservationdate") or today,
    }


def validate_genre(payload: GenrePayload, today: date) -> Dict[str, Any]:
    return {"name": _require_text(payload.name, "name")}


def validate_category(payload: CategoryPayload, today: date) -> Dict[str, Any]:
    return {"name": _require_text(payload.name, "name")}


def validate_author(payload: AuthorPayload, today: date) -> Dict[str, Any]:
    return {"name": _require_text(payload.name, "name"), "bio": _text(payload.bio)}


def validate_publisher(payload: PublisherPayload, today: date) -> Dict[str, Any]:
    return {"name": _require_text(payload.name, "name"), "address": _text(payload.address)}


def validate_staff(payload: StaffPayload, today: date) -> Dict[str, Any]:
    return {
        "name": _require_text(payload.name, "name"),
        "role": _require_text(payload.role, "role"),
        "contact": _text(payload.contact),
    }


VALIDATORS: Dict[str, tuple[Type[_Payload], Callable[[Any, date], Dict[str, Any]]]] = {
    "books": (BookPayload, validate_book),
    "members": (MemberPayload, validate_member),
    "loans": (LoanPayload, validate_loan),
    "fines": (FinePayload, validate_fine),
    "reservations": (ReservationPayload, validate_reservation),
    "genres": (GenrePayload, validate_genre),
    "authors": (AuthorPayload, validate_author),
    "publishers": (PublisherPayload, validate_publisher),
    "categories": (CategoryPayload, validate_category),
    "librarystaff": (StaffPayload, validate_staff),
}


def validate(entity: str, fields: Any, today: Optional[date] = None) -> Dict[str, Any]:
    """Bir varlık türü için ham alanları doğrula ve normalleştirilmiş kaydı döndür."""
    if entity not in VALIDATORS:
        raise UnknownEntityError(f"Unknown entity type: {entity}")
    if not isinstance(fields, dict):
        raise ValidationError("Request body must be a JSON object")

    payload_model, validator = VALIDATORS[entity]
    try:
        payload = payload_model.model_validate(fields)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = str(first["loc"][0]) if first.get("loc") else None
        raise ValidationError(f"Invalid value for {field}", field=field) from e

    return validator(payload, today or date.today())
