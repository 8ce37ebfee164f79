from datetime import date, timedelta

import pytest

from library_records.config import Settings
from library_records.exceptions import UnexpectedStoreError
from library_records.reports import ReportingService

TODAY = date(2025, 6, 15)


@pytest.fixture
def reports(pool):
    return ReportingService(pool)


def _loan(records, seeded, days_ago, **extra):
    fields = {
        "bookid": seeded["book"]["bookid"],
        "memberid": seeded["member"]["memberid"],
        "issuedate": (TODAY - timedelta(days=days_ago)).isoformat(),
    }
    fields.update(extra)
    return records.create("loans", fields, today=TODAY)


# --- Gösterge paneli ---
def test_stats_on_empty_database(reports):
    stats = reports.dashboard_stats()
    assert stats == {
        "totalBooks": 0,
        "totalMembers": 0,
        "activeLoans": 0,
        "pendingFines": 0,
        "booksByGenre": [],
        "booksByStatus": [],
        "monthlyLoans": [],
    }


def test_stats_totals_and_groupings(records, reports, seeded):
    records.create("genres", {"name": "Poetry"})
    records.create(
        "books",
        {
            "title": "Foundation",
            "authorid": seeded["author"]["authorid"],
            "genreid": seeded["genre"]["genreid"],
            "status": "Borrowed",
        },
    )
    member_id = seeded["member"]["memberid"]
    records.create("fines", {"memberid": member_id, "amount": "2.50"})
    records.create("fines", {"memberid": member_id, "amount": "1.25"})
    records.create("fines", {"memberid": member_id, "amount": "100", "status": "Paid"})
    _loan(records, seeded, 3)
    _loan(records, seeded, 40, returndate=TODAY.isoformat(), status="Returned")

    stats = reports.dashboard_stats()
    assert stats["totalBooks"] == 2
    assert stats["totalMembers"] == 1
    assert stats["activeLoans"] == 1
    assert stats["pendingFines"] == pytest.approx(3.75)
    assert stats["booksByGenre"] == [{"name": "Sci-Fi", "count": 2}, {"name": "Poetry", "count": 0}]
    assert stats["booksByStatus"] == [
        {"status": "Available", "count": 1},
        {"status": "Borrowed", "count": 1},
    ]


def test_active_loans_reflects_current_rows(records, reports, seeded):
    assert reports.dashboard_stats()["activeLoans"] == 0
    _loan(records, seeded, 1)
    assert reports.dashboard_stats()["activeLoans"] == 1
    _loan(records, seeded, 2)
    assert reports.dashboard_stats()["activeLoans"] == 2


def test_monthly_loans_newest_first_and_limited(records, reports, seeded):
    for month in range(1, 13):
        _loan(records, seeded, 0, issuedate=f"2024-{month:02d}-10")
    _loan(records, seeded, 0, issuedate="2025-01-05")
    _loan(records, seeded, 0, issuedate="2025-01-20")

    monthly = reports.dashboard_stats()["monthlyLoans"]
    assert len(monthly) == 12
    assert monthly[0] == {"month": "2025-01-01", "loan_count": 2}
    assert monthly[1] == {"month": "2024-12-01", "loan_count": 1}
    assert monthly[-1]["month"] == "2024-02-01"


# --- Gecikme raporu ---
def test_overdue_boundary_is_exclusive_at_grace_period(records, reports, seeded):
    fifteen = _loan(records, seeded, 15)
    _loan(records, seeded, 14)

    overdue = reports.overdue_loans(today=TODAY)
    assert len(overdue) == 1
    assert overdue[0]["loanid"] == fifteen["loanid"]
    assert overdue[0]["days_overdue"] == 15
    assert overdue[0]["title"] == "Dune"
    assert overdue[0]["member_name"] == "Jane Reader"
    assert overdue[0]["email"] == "jane@example.com"


def test_overdue_sorted_most_overdue_first(records, reports, seeded):
    _loan(records, seeded, 20)
    _loan(records, seeded, 45)
    _loan(records, seeded, 30)
    assert [row["days_overdue"] for row in reports.overdue_loans(today=TODAY)] == [45, 30, 20]


def test_overdue_ignores_returned_loans(records, reports, seeded):
    _loan(records, seeded, 30, returndate=TODAY.isoformat(), status="Returned")
    assert reports.overdue_loans(today=TODAY) == []


def test_overdue_excludes_orphaned_loans(pool, reports, seeded):
    pool.insert(
        "INSERT INTO loans (bookid, memberid, issuedate, status) VALUES (NULL, ?, ?, 'Active')",
        (seeded["member"]["memberid"], TODAY - timedelta(days=30)),
    )
    assert reports.overdue_loans(today=TODAY) == []


def test_overdue_custom_grace_period(records, reports, seeded):
    _loan(records, seeded, 8)
    assert reports.overdue_loans(today=TODAY) == []
    assert reports.overdue_loans(today=TODAY, grace_days=7)[0]["days_overdue"] == 8


# --- Popülerlik sıralaması ---
def test_popular_books_ranked_by_loan_count(records, reports, seeded):
    ids = {"authorid": seeded["author"]["authorid"], "genreid": seeded["genre"]["genreid"]}
    other = records.create("books", dict(ids, title="Hyperion"))
    _loan(records, seeded, 1)
    _loan(records, seeded, 2, bookid=other["bookid"])
    _loan(records, seeded, 3, bookid=other["bookid"])

    assert reports.popular_books() == [
        {"rank": 1, "title": "Hyperion", "loan_count": 2},
        {"rank": 2, "title": "Dune", "loan_count": 1},
    ]


def test_popular_books_unknown_title_and_limit(pool, records, reports, seeded):
    ids = {"authorid": seeded["author"]["authorid"], "genreid": seeded["genre"]["genreid"]}
    for i in range(12):
        book = records.create("books", dict(ids, title=f"Book {i:02d}"))
        _loan(records, seeded, 1, bookid=book["bookid"])
    for _ in range(3):
        pool.insert(
            "INSERT INTO loans (bookid, memberid, issuedate, status) VALUES (NULL, NULL, ?, 'Active')",
            (TODAY,),
        )

    popular = reports.popular_books()
    assert len(popular) == 10
    assert popular[0] == {"rank": 1, "title": "Unknown", "loan_count": 3}
    assert [row["rank"] for row in popular] == list(range(1, 11))


# --- Hata görünümü ---
def test_report_failures_follow_service_settings(pool):
    with pool.connection() as conn:
        conn.execute("DROP TABLE loans")
        conn.commit()

    production = ReportingService(pool, Settings(environment="production", debug=False))
    for report in (production.dashboard_stats, production.overdue_loans, production.popular_books):
        with pytest.raises(UnexpectedStoreError) as exc:
            report()
        assert exc.value.message == "Server error"

    development = ReportingService(pool, Settings(environment="development", debug=False))
    with pytest.raises(UnexpectedStoreError, match="no such table"):
        development.overdue_loans()
