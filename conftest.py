import pytest
from fastapi.testclient import TestClient

from library_records.api import create_app
from library_records.config import Settings
from library_records.database import initialize_database
from library_records.records import RecordService


@pytest.fixture
def pool(tmp_path):
    # Her test için benzersiz bir veritabanı dosyası oluştur
    pool = initialize_database(str(tmp_path / "test_library.db"), pool_size=2)
    yield pool
    pool.close()


@pytest.fixture
def records(pool):
    return RecordService(pool)


@pytest.fixture
def seeded(records):
    """Bir tür, yazar, kitap ve üye içeren küçük bir veri kümesi."""
    genre = records.create("genres", {"name": "Sci-Fi"})
    author = records.create("authors", {"name": "A. Writer"})
    book = records.create(
        "books",
        {"title": "Dune", "authorid": author["authorid"], "isbn": "9780441013", "genreid": genre["genreid"]},
    )
    member = records.create("members", {"name": "Jane Reader", "email": "jane@example.com"})
    return {"genre": genre, "author": author, "book": book, "member": member}


@pytest.fixture
def client(tmp_path):
    app = create_app(Settings(database_file=str(tmp_path / "api_test.db")))
    with TestClient(app) as test_client:
        yield test_client
