import os
import json
from typing import List, Any, Dict
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

from config import settings
from models import UNKNOWN

# Environment variable to control CLI output mode
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "LIB_CLI_OUTPUT"

_console = Console()

def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode

def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, settings.output_mode).lower()

def _print_json(items: List[Any]) -> None:
    print(json.dumps([item.to_dict() for item in items], ensure_ascii=False))

def _or_unknown(value: Any) -> str:
    return UNKNOWN if value is None else str(value)

def print_books_result(books: List[Any]) -> None:
    """Print book listings in the current output mode.
    - plain: 'ID: 1, Title: ..., Author: ..., Genre: ..., Borrowed: Yes/No' plus loan lines
    - json: array of listing dicts
    - rich: Rich table
    """
    if not books:
        print("No books in library.")
        return

    mode = get_output_mode()
    if mode == "json":
        _print_json(books)
    elif mode == "rich":
        table = Table(title="📚 Books", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Title", style="white")
        table.add_column("Author", style="white")
        table.add_column("Genre", style="white")
        table.add_column("Status", style="white")
        table.add_column("Borrower", style="white")
        table.add_column("Borrowed on", style="white")
        table.add_column("Due", style="white")
        for b in books:
            table.add_row(
                str(b.id), b.title, b.author_name, b.genre,
                "[red]borrowed[/]" if b.is_borrowed else "[green]available[/]",
                b.borrower_name or "", b.borrow_date or "", b.due_date or "",
            )
        _console.print(table)
    else:
        for b in books:
            print(f"ID: {b.id}, Title: {b.title}, Author: {b.author_name}, Genre: {b.genre}, "
                  f"Borrowed: {'Yes' if b.is_borrowed else 'No'}")
            if b.is_borrowed:
                print(f"  Borrower Name: {_or_unknown(b.borrower_name)}")
                print(f"  Borrow Date: {_or_unknown(b.borrow_date)}")
                print(f"  Due Date: {_or_unknown(b.due_date)}")

def print_authors_result(authors: List[Any]) -> None:
    """Print authors; listings that carry ``books`` also show their titles."""
    if not authors:
        print("No authors in library.")
        return

    mode = get_output_mode()
    with_books = all(hasattr(a, "books") for a in authors)
    if mode == "json":
        _print_json(authors)
    elif mode == "rich":
        table = Table(title="✍️ Authors", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Name", style="white")
        if with_books:
            table.add_column("Books", style="white")
        for a in authors:
            row = [str(a.id), a.name]
            if with_books:
                row.append("\n".join(a.books) or "-")
            table.add_row(*row)
        _console.print(table)
    else:
        for a in authors:
            print(f"ID: {a.id}, Name: {a.name}")
            if not with_books:
                continue
            if a.books:
                print("   Books:")
                for title in a.books:
                    print(f"      - {title}")
            else:
                print("   No books written by this author.")

def print_borrowers_result(borrowers: List[Any]) -> None:
    if not borrowers:
        print("No borrowers registered.")
        return

    mode = get_output_mode()
    if mode == "json":
        _print_json(borrowers)
    elif mode == "rich":
        table = Table(title="🙋 Borrowers", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Name", style="white")
        table.add_column("Email", style="white")
        table.add_column("Holding", style="white")
        for b in borrowers:
            table.add_row(str(b.id), b.name, b.email, "\n".join(b.books_held) or "-")
        _console.print(table)
    else:
        for b in borrowers:
            print(f"ID: {b.id}, Name: {b.name}, Email: {b.email}")
            for title in b.books_held:
                print(f"   Holding: {title}")

def print_records_result(records: List[Any]) -> None:
    if not records:
        print("No borrow records.")
        return

    mode = get_output_mode()
    if mode == "json":
        _print_json(records)
    elif mode == "rich":
        table = Table(title="🧾 Borrow Records", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Book", style="white")
        table.add_column("Borrower", style="white")
        table.add_column("Borrowed on", style="white")
        table.add_column("Due", style="white")
        table.add_column("Returned on", style="white")
        for r in records:
            table.add_row(str(r.id), f"{r.book_title} ({r.book_id})", f"{r.borrower_name} ({r.borrower_id})",
                          r.borrow_date or "", r.due_date or "", r.return_date or "[yellow]open[/]")
        _console.print(table)
    else:
        for r in records:
            print(f"ID: {r.id}, Book: {r.book_title} ({r.book_id}), Borrower: {r.borrower_name} ({r.borrower_id}), "
                  f"Borrow Date: {_or_unknown(r.borrow_date)}, "
                  f"Return Date: {r.return_date if r.return_date else 'open'}")

def print_stats_result(stats: Dict[str, Any]) -> None:
    if not stats:
        print("No statistics available.")
        return

    mode = get_output_mode()
    if mode == "json":
        print(json.dumps(stats, ensure_ascii=False))
    elif mode == "rich":
        content = "\n".join(f"[bold]{key.replace('_', ' ').title()}:[/] {value}" for key, value in stats.items())
        _console.print(Panel.fit(content, title="📊 Stats", border_style="blue"))
    else:
        for key, value in stats.items():
            print(f"{key.replace('_', ' ').title()}: {value}")
