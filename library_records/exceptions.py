from typing import Optional


class LibraryRecordsError(Exception):
    """Kayıt servisindeki tüm alan düzeyi hataların temel sınıfı."""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> dict:
        return {"error": self.message}


class ValidationError(LibraryRecordsError):
    """Herhangi bir veritabanı erişiminden önce yakalanan alan ihlali."""


class ReferentialError(LibraryRecordsError):
    """Yabancı anahtar var olmayan bir satırı işaret ediyor."""


class DuplicateError(LibraryRecordsError):
    """Benzersizlik kısıtı (ISBN, e-posta) ihlal edildi."""

    status_code = 409


class StorageLimitError(LibraryRecordsError):
    """Değer sütun kapasitesini veya türünü aşıyor."""


class UnexpectedStoreError(LibraryRecordsError):
    """Diğer tüm veritabanı hataları; istemciye opak bir sunucu hatası olarak döner."""

    status_code = 500


class UnknownEntityError(LibraryRecordsError):
    status_code = 404
