import logging
from datetime import timedelta
from functools import wraps
from typing import Optional

import typer
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Confirm, IntPrompt, Prompt
from rich.table import Table

from config import settings
from errors import LibraryError, StoreError
from library import RECORD_STATUSES, Library
from utils.transfer import read_import_file, write_export_file
from utils.ui_helpers import (
    print_authors_result,
    print_books_result,
    print_borrowers_result,
    print_records_result,
    print_stats_result,
    set_output_mode,
)
from utils.validators import DateValidator, TextValidator

APP_NAME = settings.app_name

console = Console()


def _configure_logging() -> None:
    level = getattr(logging, settings.log_level, logging.WARNING)
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


# Helper decorator turning typed failures into messages and exit codes
def report_errors(func):
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except StoreError as e:
            print(f"Fatal: {e}")
            raise typer.Exit(code=2)
        except LibraryError as e:
            print(f"Error: {e}")
            raise typer.Exit(code=1)
    return wrapper


def _library(ctx: typer.Context) -> Library:
    return ctx.obj


# --- Typer CLI application ---
app = typer.Typer(help="Library management CLI")

@app.callback(invoke_without_command=True)
def _global_options(
    ctx: typer.Context,
    db: Optional[str] = typer.Option(None, "--db", help="SQLite database file (default: LIBRARY_DB_FILE)"),
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output format: plain | json | rich (default: plain)",
    ),
):
    """Global options; without a command the interactive menu starts."""
    _configure_logging()
    if output:
        set_output_mode(output)
    try:
        ctx.obj = Library(db_file=db)
    except StoreError as e:
        print(f"Fatal: {e}")
        raise typer.Exit(code=2)
    if ctx.invoked_subcommand is None:
        run_menu(ctx.obj)

# ------------------------- Authors ------------------------- #
@app.command("add-author")
@report_errors
def cli_add_author(ctx: typer.Context, name: str):
    """Add an author."""
    if not TextValidator.validate_name(name):
        print("Error: author name cannot be empty.")
        raise typer.Exit(code=1)
    author = _library(ctx).add_author(name)
    print(f"Author added successfully (ID {author.id}).")

@app.command("list-authors")
@report_errors
def cli_list_authors(
    ctx: typer.Context,
    books: bool = typer.Option(False, "--books", "-b", help="Also list each author's books"),
):
    """List authors, optionally with their books."""
    lib = _library(ctx)
    print_authors_result(lib.list_authors_and_books() if books else lib.list_authors())

@app.command("remove-author")
@report_errors
def cli_remove_author(ctx: typer.Context, author_id: int):
    """Remove an author with all its books and their borrow records."""
    removed = _library(ctx).remove_author(author_id)
    print(f"Author with ID {author_id} removed ({removed['books']} book(s), {removed['records']} borrow record(s)).")

# ------------------------- Books ------------------------- #
@app.command("add-book")
@report_errors
def cli_add_book(
    ctx: typer.Context,
    title: str,
    author_id: int,
    genre: str = typer.Option("", "--genre", "-g", help="Genre of the book"),
):
    """Add a book by an existing author."""
    if not TextValidator.validate_title(title):
        print("Error: book title cannot be empty.")
        raise typer.Exit(code=1)
    book = _library(ctx).add_book(title, author_id, genre)
    print(f"Book added successfully (ID {book.id}).")

@app.command("update-book")
@report_errors
def cli_update_book(
    ctx: typer.Context,
    book_id: int,
    title: Optional[str] = typer.Option(None, "--title", "-t", help="New title"),
    author_id: Optional[int] = typer.Option(None, "--author-id", "-a", help="New author ID"),
    genre: Optional[str] = typer.Option(None, "--genre", "-g", help="New genre"),
):
    """Update the title, author or genre of a book."""
    book = _library(ctx).update_book(book_id, title=title, author_id=author_id, genre=genre)
    print(f"Book updated successfully: ID {book.id}, Title: {book.title}, Author ID: {book.author_id}, Genre: {book.genre}")

@app.command("remove-book")
@report_errors
def cli_remove_book(ctx: typer.Context, book_id: int):
    """Remove a book and its borrow records."""
    removed = _library(ctx).remove_book(book_id)
    print(f"Book with ID {book_id} has been removed ({removed} borrow record(s) deleted).")

@app.command("list-books")
@report_errors
def cli_list_books(ctx: typer.Context):
    """List all books with author and loan details."""
    print_books_result(_library(ctx).list_books())

# ------------------------- Borrowers ------------------------- #
@app.command("register-borrower")
@report_errors
def cli_register_borrower(
    ctx: typer.Context,
    name: str,
    email: str = typer.Option("", "--email", "-e", help="Borrower e-mail address"),
):
    """Register a borrower."""
    if not TextValidator.validate_name(name):
        print("Error: borrower name cannot be empty.")
        raise typer.Exit(code=1)
    if not TextValidator.validate_email(email):
        print(f"Error: '{email}' is not a valid e-mail address.")
        raise typer.Exit(code=1)
    borrower = _library(ctx).register_borrower(name, email)
    print(f"Borrower registered successfully (ID {borrower.id}).")

@app.command("list-borrowers")
@report_errors
def cli_list_borrowers(ctx: typer.Context):
    """List borrowers and the books they hold."""
    print_borrowers_result(_library(ctx).list_borrowers())

# ------------------------- Lending ------------------------- #
@app.command("borrow")
@report_errors
def cli_borrow(
    ctx: typer.Context,
    book_id: int,
    borrower_id: int,
    due: Optional[str] = typer.Option(None, "--due", "-d", help="Expected return date (dd-mm-yyyy)"),
):
    """Lend a book to a borrower."""
    record = _library(ctx).borrow_book(book_id, borrower_id, due_date=due)
    print(f"Book borrowed successfully (record {record.id}, date {record.borrow_date}).")

@app.command("return")
@report_errors
def cli_return(ctx: typer.Context, record_id: int):
    """Return a borrowed book by its borrow record ID."""
    record = _library(ctx).return_book(record_id)
    print(f"Book returned successfully (record {record.id}, date {record.return_date}).")

@app.command("records")
@report_errors
def cli_records(
    ctx: typer.Context,
    status: str = typer.Option("all", "--status", "-s", help="all | open | closed"),
):
    """Show borrow records."""
    if status.lower() not in RECORD_STATUSES:
        print(f"Error: unknown status '{status}'. Use one of: {', '.join(RECORD_STATUSES)}")
        raise typer.Exit(code=1)
    print_records_result(_library(ctx).borrow_records(status))

# ------------------------- Import / export ------------------------- #
@app.command("import")
@report_errors
def cli_import(ctx: typer.Context, file_path: str = typer.Argument(settings.import_file, help="title,author_id,genre file")):
    """Import books from a file with one 'title,author_id,genre' line per book."""
    try:
        rows, skipped = read_import_file(file_path)
    except OSError as e:
        print(f"Failed to open file: {e}")
        raise typer.Exit(code=1)
    ids = _library(ctx).bulk_insert_books(rows)
    print(f"Finished importing books from file: {len(ids)} imported, {skipped} skipped.")

@app.command("export")
@report_errors
def cli_export(ctx: typer.Context, file_path: str = typer.Argument(settings.export_file, help="Target CSV file")):
    """Export all books with loan status to a CSV file."""
    rows = _library(ctx).export_rows()
    try:
        count = write_export_file(file_path, rows)
    except OSError as e:
        print(f"Failed to create file: {e}")
        raise typer.Exit(code=1)
    print(f"{count} book(s) exported to file: {file_path}")

# ------------------------- Maintenance ------------------------- #
@app.command("seed")
@report_errors
def cli_seed(ctx: typer.Context):
    """Insert sample authors, books, borrowers and borrow records."""
    counts = _library(ctx).seed_sample_data()
    print(f"Sample data created: {counts['authors']} authors, {counts['books']} books, "
          f"{counts['borrowers']} borrowers, {counts['records']} borrow records.")

@app.command("stats")
@report_errors
def cli_stats(ctx: typer.Context):
    """Show library statistics."""
    print_stats_result(_library(ctx).get_statistics())

@app.command("check")
@report_errors
def cli_check(ctx: typer.Context):
    """Verify that book flags and open borrow records agree."""
    problems = _library(ctx).check_integrity()
    if not problems:
        print("No integrity problems found.")
        return
    for problem in problems:
        print(f"- {problem}")
    raise typer.Exit(code=1)

@app.command("menu")
def cli_menu(ctx: typer.Context):
    """Start the interactive menu."""
    run_menu(_library(ctx))


# ------------------------- Interactive menu ------------------------- #
def _show_authors(lib: Library) -> None:
    authors = lib.list_authors()
    if not authors:
        console.print("[yellow]No authors yet. Add an author first.[/]")
        return
    for author in authors:
        console.print(f"ID: {author.id}, Name: {escape(author.name)}")

def add_book(lib: Library) -> None:
    """Ask for title, author and genre and add the book."""
    title = Prompt.ask("Enter book title").strip()
    if not TextValidator.validate_title(title):
        console.print("[bold red]Book title cannot be empty.[/]")
        return
    _show_authors(lib)
    author_id = IntPrompt.ask("Enter author ID")
    genre = Prompt.ask("Enter genre", default="").strip()
    book = lib.add_book(title, author_id, genre)
    console.print(f"[green]✅ Book added successfully (ID {book.id}).[/]")

def remove_book(lib: Library) -> None:
    """Remove a book after confirmation."""
    list_books(lib)
    book_id = IntPrompt.ask("Enter book ID")
    book = lib.get_book(book_id)
    if book.is_borrowed:
        console.print("[yellow]⚠️ This book is currently borrowed; its borrow record will be deleted too.[/]")
    if not Confirm.ask(f"🗑️ Delete [bold]{escape(book.title)}[/]?", default=False):
        console.print("[blue]🚫 Deletion cancelled.[/]")
        return
    removed = lib.remove_book(book_id)
    console.print(f"[green]✅ Book deleted successfully ({removed} borrow record(s) removed).[/]")

def list_books(lib: Library) -> None:
    books = lib.list_books()
    if not books:
        console.print("[yellow]No books in library.[/]")
        return

    table = Table(title="📚 Catalogue", show_lines=True, header_style="bold cyan")
    table.add_column("ID", style="magenta", no_wrap=True)
    table.add_column("Title", style="white")
    table.add_column("Author", style="white")
    table.add_column("Genre", style="white")
    table.add_column("Borrowed", style="white")
    table.add_column("Borrower", style="white")
    table.add_column("Borrow date", style="white")
    table.add_column("Due date", style="white")
    for b in books:
        table.add_row(str(b.id), escape(b.title), escape(b.author_name), escape(b.genre),
                      "Yes" if b.is_borrowed else "No", escape(b.borrower_name or ""),
                      b.borrow_date or "", b.due_date or "")
    console.print(table)
    console.print(f"[dim]📊 {len(books)} book(s)[/]")

def update_book(lib: Library) -> None:
    book_id = IntPrompt.ask("Enter book ID")
    book = lib.get_book(book_id)
    console.print(f"Book Found > ID: {book.id}, Title: {escape(book.title)}, "
                  f"Author ID: {book.author_id}, Genre: {escape(book.genre)}")
    title = Prompt.ask("Enter new book title (leave blank to keep current)", default="")
    author_id = IntPrompt.ask("Enter new author ID (or -1 to keep current)", default=-1)
    genre = Prompt.ask("Enter new genre (leave blank to keep current)", default="")
    lib.update_book(book_id, title=title, author_id=author_id, genre=genre)
    console.print("[green]✅ Book updated successfully![/]")

def add_author(lib: Library) -> None:
    name = Prompt.ask("Enter author name").strip()
    if not TextValidator.validate_name(name):
        console.print("[bold red]Author name cannot be empty.[/]")
        return
    author = lib.add_author(name)
    console.print(f"[green]✅ Author added successfully (ID {author.id}).[/]")

def list_authors_and_books(lib: Library) -> None:
    authors = lib.list_authors_and_books()
    if not authors:
        console.print("[yellow]No authors yet.[/]")
        return
    for author in authors:
        console.print(f"ID: {author.id}, Name: {escape(author.name)}")
        if not author.books:
            console.print("   [dim]No books written by this author.[/]")
            continue
        console.print("   Books:")
        for title in author.books:
            console.print(f"      - {escape(title)}")

def remove_author(lib: Library) -> None:
    _show_authors(lib)
    author_id = IntPrompt.ask("Enter author ID")
    author = lib.get_author(author_id)
    books = lib.books_by_author(author_id)
    if not Confirm.ask(f"🗑️ Delete [bold]{escape(author.name)}[/] and {len(books)} book(s)?", default=False):
        console.print("[blue]🚫 Deletion cancelled.[/]")
        return
    removed = lib.remove_author(author_id)
    console.print(f"[green]✅ Author removed with {removed['books']} book(s) "
                  f"and {removed['records']} borrow record(s).[/]")

def register_borrower(lib: Library) -> None:
    name = Prompt.ask("Enter borrower name").strip()
    email = Prompt.ask("Enter borrower email", default="").strip()
    if not TextValidator.validate_name(name):
        console.print("[bold red]Borrower name cannot be empty.[/]")
        return
    if not TextValidator.validate_email(email):
        console.print(f"[bold red]'{escape(email)}' is not a valid e-mail address.[/]")
        return
    borrower = lib.register_borrower(name, email)
    console.print(f"[green]✅ Borrower registered successfully (ID {borrower.id}).[/]")

def list_borrowers(lib: Library) -> None:
    borrowers = lib.list_borrowers()
    if not borrowers:
        console.print("[yellow]No borrowers registered.[/]")
        return
    for b in borrowers:
        console.print(f"ID: {b.id}, Name: {escape(b.name)}, Email: {escape(b.email)}")
        for title in b.books_held:
            console.print(f"   📖 {escape(title)}")

def borrow_book(lib: Library) -> None:
    book_id = IntPrompt.ask("Enter book ID")
    book = lib.get_book(book_id)
    if book.is_borrowed:
        console.print("[yellow]Book is already borrowed.[/]")
        return
    list_borrowers(lib)
    borrower_id = IntPrompt.ask("Enter borrower ID")

    today = lib.current_date()
    console.print(f"Today's date: {today}")
    proposed = DateValidator.format(DateValidator.parse(today) + timedelta(days=settings.loan_days))
    due = Prompt.ask("Enter return date (dd-mm-yyyy)", default=proposed).strip()
    record = lib.borrow_book(book_id, borrower_id, due_date=due)
    console.print(f"[green]✅ Book borrowed successfully (record {record.id}).[/]")

def return_book(lib: Library) -> None:
    records = lib.borrow_records("open")
    if not records:
        console.print("[yellow]No books are currently borrowed.[/]")
        return
    for r in records:
        console.print(f"ID: {r.id}, Book: {escape(r.book_title)}, Borrower: {escape(r.borrower_name)}, "
                      f"Date: {r.borrow_date or 'Unknown'}, Due: {r.due_date or 'Unknown'}")
    record_id = IntPrompt.ask("Enter borrow record ID")
    record = lib.return_book(record_id)
    console.print(f"[green]✅ Book returned successfully on {record.return_date}.[/]")

def show_borrow_records(lib: Library) -> None:
    status = Prompt.ask("Which records", choices=list(RECORD_STATUSES), default="all")
    records = lib.borrow_records(status)
    if not records:
        console.print("[yellow]No borrow records.[/]")
        return
    table = Table(title="🧾 Borrow Records", show_lines=True, header_style="bold cyan")
    table.add_column("ID", style="magenta", no_wrap=True)
    table.add_column("Book", style="white")
    table.add_column("Borrower", style="white")
    table.add_column("Borrowed on", style="white")
    table.add_column("Due", style="white")
    table.add_column("Returned on", style="white")
    for r in records:
        table.add_row(str(r.id), escape(r.book_title), escape(r.borrower_name), r.borrow_date or "",
                      r.due_date or "", r.return_date or "[yellow]open[/]")
    console.print(table)

def import_books(lib: Library) -> None:
    file_path = Prompt.ask("File to import", default=settings.import_file)
    try:
        rows, skipped = read_import_file(file_path)
    except OSError as e:
        console.print(f"[bold red]Failed to open file:[/] {escape(str(e))}")
        return
    ids = lib.bulk_insert_books(rows)
    console.print(f"[green]✅ Finished importing books: {len(ids)} imported, {skipped} skipped.[/]")

def export_books(lib: Library) -> None:
    file_path = Prompt.ask("Export to", default=settings.export_file)
    try:
        count = write_export_file(file_path, lib.export_rows())
    except OSError as e:
        console.print(f"[bold red]Failed to create file:[/] {escape(str(e))}")
        return
    console.print(f"[green]✅ {count} book(s) exported to file: {escape(file_path)}[/]")

MENU_ITEMS = [
    ("1", "Add Book", "➕", add_book),
    ("2", "Remove Book", "🗑️", remove_book),
    ("3", "List Books", "📚", list_books),
    ("4", "Update Book", "✏️", update_book),
    ("5", "Add Author", "✍️", add_author),
    ("6", "List Authors", "👥", list_authors_and_books),
    ("7", "Register Borrower", "🙋", register_borrower),
    ("8", "List Borrowers", "📇", list_borrowers),
    ("9", "Borrow Book", "📤", borrow_book),
    ("10", "Return Book", "📥", return_book),
    ("11", "Import Books", "📂", import_books),
    ("12", "Export Books", "💾", export_books),
    ("13", "Remove Author", "❌", remove_author),
    ("14", "Show Borrow Records", "🧾", show_borrow_records),
]

def run_menu(lib: Library) -> None:
    """Interactive numbered menu; typed failures are reported and the loop goes on."""
    handlers = {key: handler for key, _, _, handler in MENU_ITEMS}

    def render_menu() -> None:
        table = Table.grid(padding=(0, 2))
        table.add_column(justify="right", style="bold cyan", width=4)
        table.add_column(justify="left", style="white")
        for key, label, icon, _ in MENU_ITEMS:
            table.add_row(f"[reverse]{key}[/]", f"{icon} {label}")
        table.add_row("[reverse]0[/]", "🚪 Exit")
        console.print(Panel(table, title=APP_NAME, border_style="cyan", box=box.HEAVY, padding=(1, 2)))

    console.print("[dim]To use this application first create authors and then start adding books.[/]")
    console.print("[dim]Register borrowers to use the borrow and return features.[/]")
    while True:
        render_menu()
        choice = Prompt.ask("Enter choice", choices=["0"] + list(handlers), default="3").strip()
        if choice == "0":
            console.print("[green]Exiting the program. Goodbye![/]")
            break
        try:
            handlers[choice](lib)
        except StoreError as e:
            console.print(f"[bold red]Fatal:[/] {escape(str(e))}")
            raise typer.Exit(code=2)
        except LibraryError as e:
            console.print(f"[bold red]Error:[/] {escape(str(e))}")
        print()  # blank line between operations

if __name__ == "__main__":
    app()
