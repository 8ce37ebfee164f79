import json
import os
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

# CLI çıktı modunu kontrol eden ortam değişkeni
# İzin verilen değerler: 'plain' (varsayılan), 'json', 'rich'
OUTPUT_MODE_ENV = "LIBRARY_RECORDS_OUTPUT"

_console = Console()


def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode


def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()


def print_rows(rows: List[Dict[str, Any]], title: Optional[str] = None) -> None:
    """Satırları mevcut çıktı moduna göre yazdır.
    - plain: her satır için 'sütun: değer' çiftleri, veya 'No records found.'
    - json: JSON dizisi
    - rich: Rich tablosu
    """
    mode = get_output_mode()

    if not rows:
        print("No records found.")
        return

    if mode == "json":
        print(json.dumps(rows, ensure_ascii=False, default=str))
    elif mode == "rich":
        table = Table(title=title, show_lines=True, header_style="bold cyan")
        columns = list(rows[0].keys())
        for column in columns:
            table.add_column(column)
        for row in rows:
            table.add_row(*["" if row.get(c) is None else str(row.get(c)) for c in columns])
        _console.print(table)
    else:
        for row in rows:
            print(" | ".join(f"{key}: {'N/A' if value is None else value}" for key, value in row.items()))


def print_stats_result(stats: Dict[str, Any]) -> None:
    """Gösterge paneli istatistiklerini mevcut çıktı moduna göre yazdır."""
    mode = get_output_mode()

    if mode == "json":
        print(json.dumps(stats, ensure_ascii=False, default=str))
        return

    lines = [
        ("Total Books", stats.get("totalBooks", 0)),
        ("Total Members", stats.get("totalMembers", 0)),
        ("Active Loans", stats.get("activeLoans", 0)),
        ("Pending Fines", f"{stats.get('pendingFines', 0):.2f}"),
    ]
    if mode == "rich":
        content = "\n".join(f"[bold]{label}:[/] {value}" for label, value in lines)
        _console.print(Panel.fit(content, title="📊 Stats", border_style="blue"))
    else:
        for label, value in lines:
            print(f"{label}: {value}")
