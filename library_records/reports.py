import logging
import sqlite3
from collections import Counter
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from .config import Settings, settings as default_settings
from .database import ConnectionPool
from .records import RecordService, unexpected_store_error

logger = logging.getLogger(__name__)

OVERDUE_GRACE_DAYS = 14
POPULAR_BOOKS_LIMIT = 10
MONTHLY_LOAN_MONTHS = 12


class ReportingService:
    """Salt okunur türetilmiş görünümler; her istekte yeniden hesaplanır."""

    def __init__(self, pool: ConnectionPool, settings: Optional[Settings] = None) -> None:
        self.pool = pool
        self.settings = settings or default_settings

    def dashboard_stats(self, months: int = MONTHLY_LOAN_MONTHS) -> Dict[str, Any]:
        """Gösterge paneli için toplamları ve gruplanmış sayıları al."""
        try:
            total_books = self.pool.fetch_value("SELECT COUNT(*) FROM books")
            total_members = self.pool.fetch_value("SELECT COUNT(*) FROM members")
            active_loans = self.pool.fetch_value(
                "SELECT COUNT(*) FROM loans WHERE status = 'Active'"
            )
            pending_fines = self.pool.fetch_value(
                "SELECT SUM(amount) FROM fines WHERE status = 'Pending'"
            )

            # Kitabı olmayan türler de 0 ile listelenir
            books_by_genre = self.pool.fetch_all(
                """
                SELECT g.name, COUNT(b.bookid) AS count
                FROM genres g
                LEFT JOIN books b ON g.genreid = b.genreid
                GROUP BY g.name
                ORDER BY count DESC, g.name
                """
            )
            books_by_status = self.pool.fetch_all(
                """
                SELECT status, COUNT(*) AS count
                FROM books
                GROUP BY status
                ORDER BY status
                """
            )
            monthly_loans = self.pool.fetch_all(
                """
                SELECT strftime('%Y-%m-01', issuedate) AS month, COUNT(*) AS loan_count
                FROM loans
                WHERE issuedate IS NOT NULL
                GROUP BY month
                ORDER BY month DESC
                LIMIT ?
                """,
                (months,),
            )
        except sqlite3.Error as e:
            logger.exception("Dashboard statistics query failed")
            raise unexpected_store_error(e, self.settings.is_production) from e

        return {
            "totalBooks": int(total_books or 0),
            "totalMembers": int(total_members or 0),
            "activeLoans": int(active_loans or 0),
            "pendingFines": float(pending_fines or 0),
            "booksByGenre": books_by_genre,
            "booksByStatus": books_by_status,
            "monthlyLoans": monthly_loans,
        }

    def overdue_loans(
        self, today: Optional[date] = None, grace_days: int = OVERDUE_GRACE_DAYS
    ) -> List[Dict[str, Any]]:
        """Ödünç verilme tarihi ödemesiz süreden daha eski olan aktif ödünçler.

        İç birleştirmeler nedeniyle kitabı veya üyesi çözülemeyen ödünçler
        rapora hiç girmez.
        """
        today = today or date.today()
        cutoff = today - timedelta(days=grace_days)
        try:
            return self.pool.fetch_all(
                """
                SELECT
                    l.loanid,
                    b.title,
                    m.name AS member_name,
                    m.email,
                    l.issuedate,
                    CAST(julianday(?) - julianday(l.issuedate) AS INTEGER) AS days_overdue
                FROM loans l
                JOIN books b ON l.bookid = b.bookid
                JOIN members m ON l.memberid = m.memberid
                WHERE l.status = 'Active'
                  AND l.issuedate < ?
                ORDER BY days_overdue DESC, l.loanid
                """,
                (today, cutoff),
            )
        except sqlite3.Error as e:
            logger.exception("Overdue report query failed")
            raise unexpected_store_error(e, self.settings.is_production) from e

    def popular_books(self, limit: int = POPULAR_BOOKS_LIMIT) -> List[Dict[str, Any]]:
        """En çok ödünç alınan kitaplar, 1'den başlayan sıra numarasıyla."""
        loans = RecordService(self.pool, self.settings).list("loans")
        # most_common eşit sayılarda listeleme sırasını korur
        counts = Counter(loan.get("book_title") or "Unknown" for loan in loans)
        return [
            {"rank": rank, "title": title, "loan_count": count}
            for rank, (title, count) in enumerate(counts.most_common(limit), 1)
        ]
