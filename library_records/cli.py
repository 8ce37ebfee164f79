import logging
import os
import subprocess
import sys
from typing import List, Optional

import typer

from .config import settings
from .database import ConnectionPool, initialize_database
from .exceptions import LibraryRecordsError
from .records import RecordService
from .reports import ReportingService
from .ui_helpers import print_rows, print_stats_result, set_output_mode

logger = logging.getLogger(__name__)

app = typer.Typer(help="Library records CLI")


class PoolManager:
    """CLI çağrısı boyunca paylaşılan tek bağlantı havuzu."""

    _pool: Optional[ConnectionPool] = None
    _db_file: Optional[str] = None

    @classmethod
    def configure(cls, db_file: Optional[str]) -> None:
        target = db_file or settings.database_file
        # Veritabanı dosyası değişirse havuzu yeniden oluştur
        if cls._pool is not None and cls._db_file != target:
            cls.close()
        cls._db_file = target

    @classmethod
    def get_pool(cls) -> ConnectionPool:
        if cls._pool is None:
            cls._pool = initialize_database(
                cls._db_file or settings.database_file, settings.database_pool_size
            )
        return cls._pool

    @classmethod
    def close(cls) -> None:
        if cls._pool is not None:
            cls._pool.close()
        cls._pool = None


def _parse_assignments(assignments: List[str]) -> dict:
    fields = {}
    for item in assignments:
        if "=" not in item:
            raise typer.BadParameter(f"Expected key=value, got '{item}'")
        key, value = item.split("=", 1)
        fields[key.strip()] = value
    return fields


@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None, "--output", "-o", help="Output format: plain | json | rich (default: plain)"
    ),
    db: Optional[str] = typer.Option(None, "--db", help="SQLite database file"),
):
    """Genel seçenekler (çıktı modu, veritabanı dosyası)."""
    logging.basicConfig(level=settings.log_level)
    if output:
        set_output_mode(output)
    PoolManager.configure(db)


@app.command("init-db")
def cli_init_db():
    """Create the schema if it does not exist."""
    PoolManager.get_pool()
    print(f"Database initialized at {PoolManager._db_file}")


@app.command("list")
def cli_list(entity: str):
    """List every record of an entity type."""
    try:
        rows = RecordService(PoolManager.get_pool(), settings).list(entity)
    except LibraryRecordsError as e:
        print(f"Error: {e.message}")
        raise typer.Exit(code=1)
    print_rows(rows, title=entity)


@app.command("add")
def cli_add(
    entity: str,
    assignments: List[str] = typer.Argument(None, help="Fields as key=value"),
):
    """Create a record, e.g. `add genres name=Sci-Fi`."""
    fields = _parse_assignments(assignments or [])
    try:
        row = RecordService(PoolManager.get_pool(), settings).create(entity, fields)
    except LibraryRecordsError as e:
        print(f"Error: {e.message}")
        raise typer.Exit(code=1)
    print(f"Created {entity}:")
    print_rows([row])


@app.command("stats")
def cli_stats():
    """Show dashboard statistics."""
    stats = ReportingService(PoolManager.get_pool(), settings).dashboard_stats(
        months=settings.monthly_loan_months
    )
    print_stats_result(stats)


@app.command("overdue")
def cli_overdue():
    """Show active loans past the grace period."""
    rows = ReportingService(PoolManager.get_pool(), settings).overdue_loans(
        grace_days=settings.overdue_grace_days
    )
    print_rows(rows, title="Overdue Books")


@app.command("popular")
def cli_popular():
    """Show the most borrowed books."""
    rows = ReportingService(PoolManager.get_pool(), settings).popular_books(
        limit=settings.popular_books_limit
    )
    print_rows(rows, title="Popular Books")


@app.command("serve")
def cli_serve(
    host: str = typer.Option(settings.api_host, "--host"),
    port: int = typer.Option(settings.api_port, "--port"),
    reload: bool = typer.Option(False, "--reload"),
):
    """Start the HTTP API with uvicorn."""
    args = [sys.executable, "-m", "uvicorn", "library_records.api:app", "--host", host, "--port", str(port)]
    if reload:
        args.append("--reload")
    print(f"Library Management System API running at http://{host}:{port}/api/")
    env = dict(os.environ, LIBRARY_DB_FILE=PoolManager._db_file or settings.database_file)
    try:
        subprocess.run(args, env=env)
    except FileNotFoundError:
        print("Error: could not start uvicorn. Make sure it is installed.")
        raise typer.Exit(code=1)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
