import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import Body, Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Settings, settings as default_settings
from .database import ConnectionPool, initialize_database
from .exceptions import LibraryRecordsError
from .records import RecordService, get_entity
from .reports import ReportingService

logging.basicConfig(level=default_settings.log_level)
logger = logging.getLogger(__name__)


# --- Bağımlılıklar ---
def get_pool(request: Request) -> ConnectionPool:
    return request.app.state.pool


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_record_service(
    pool: ConnectionPool = Depends(get_pool), settings: Settings = Depends(get_settings)
) -> RecordService:
    return RecordService(pool, settings)


def get_reporting_service(
    pool: ConnectionPool = Depends(get_pool), settings: Settings = Depends(get_settings)
) -> ReportingService:
    return ReportingService(pool, settings)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Uygulamayı oluştur; bağlantı havuzu lifespan içinde açılır ve kapanır."""
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        pool = initialize_database(settings.database_file, settings.database_pool_size)
        # Veritabanına ulaşılamasa bile sunucu başlar
        if pool.ping():
            logger.info("Database connection successful")
        else:
            logger.warning("Starting server without database connection")
        app.state.pool = pool
        try:
            yield
        finally:
            pool.close()

    app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)
    app.state.settings = settings

    # --- CORS ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- İstek Günlüğü ve Güvenlik Başlıkları ---
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            f"{request.method} {request.url.path} {response.status_code} {elapsed_ms:.1f}ms"
        )
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        return response

    # --- Hata İşleyicileri ---
    @app.exception_handler(LibraryRecordsError)
    async def handle_records_error(request: Request, exc: LibraryRecordsError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
        return JSONResponse(status_code=400, content={"error": f"Invalid request body: {message}"})

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(status_code=500, content={"error": "Server error"})

    # --- Sağlık Kontrolü ---
    @app.get("/health")
    def health(pool: ConnectionPool = Depends(get_pool)):
        """Hızlı bir veritabanı bağlantı denemesi yapar."""
        return {
            "status": "healthy",
            "timestamp": datetime.now().isoformat(),
            "db": pool.ping(),
        }

    # --- Rapor Uç Noktaları ---
    @app.get("/api/stats")
    def get_stats(reports: ReportingService = Depends(get_reporting_service)) -> Dict[str, Any]:
        """Gösterge paneli istatistikleri."""
        return reports.dashboard_stats(months=settings.monthly_loan_months)

    @app.get("/api/reports/overdue")
    def get_overdue_report(
        reports: ReportingService = Depends(get_reporting_service),
    ) -> List[Dict[str, Any]]:
        return reports.overdue_loans(grace_days=settings.overdue_grace_days)

    @app.get("/api/reports/popular")
    def get_popular_report(
        reports: ReportingService = Depends(get_reporting_service),
    ) -> List[Dict[str, Any]]:
        return reports.popular_books(limit=settings.popular_books_limit)

    # --- Kayıt Uç Noktaları ---
    @app.get("/api/{entity}")
    def list_records(
        entity: str, records: RecordService = Depends(get_record_service)
    ) -> List[Dict[str, Any]]:
        """Bir varlığın tüm kayıtlarını listele."""
        return records.list(entity)

    @app.post("/api/{entity}", status_code=201)
    def create_record(
        entity: str,
        fields: Any = Body(default=None),
        records: RecordService = Depends(get_record_service),
    ):
        """Yeni bir kayıt oluştur; doğrulama ve kısıt hataları 4xx olarak döner."""
        definition = get_entity(entity)
        row = records.create(entity, fields)
        return JSONResponse(
            status_code=201,
            content={
                "success": True,
                "message": f"{definition.label.capitalize()} created successfully",
                "data": jsonable_encoder(row),
            },
        )

    return app


app = create_app()
