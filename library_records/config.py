import os
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


@dataclass
class Settings:
    # API Ayarları
    api_host: str = os.getenv("API_HOST", "127.0.0.1")
    api_port: int = int(os.getenv("API_PORT", "3000"))
    cors_origins: List[str] = field(
        default_factory=lambda: [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
    )

    # Veritabanı Ayarları
    database_file: str = os.getenv("LIBRARY_DB_FILE", "library_records.db")
    database_pool_size: int = int(os.getenv("DATABASE_POOL_SIZE", "5"))

    # Rapor Ayarları
    overdue_grace_days: int = int(os.getenv("OVERDUE_GRACE_DAYS", "14"))
    popular_books_limit: int = int(os.getenv("POPULAR_BOOKS_LIMIT", "10"))
    monthly_loan_months: int = int(os.getenv("MONTHLY_LOAN_MONTHS", "12"))

    # Uygulama Ayarları
    app_name: str = os.getenv("APP_NAME", "Library Management System")
    app_version: str = os.getenv("APP_VERSION", "1.0.0")
    debug: bool = _env_bool("DEBUG", "False")
    environment: str = os.getenv("ENVIRONMENT", "development")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production" and not self.debug


settings = Settings()
