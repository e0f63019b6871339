"""Command line interface for DocShelf."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

import typer
from rich.console import Console
from rich.table import Table

from docshelf.config import AppConfig
from docshelf.errors import DocShelfError
from docshelf.library import LibraryService
from docshelf.models import DocumentRecord
from docshelf.utils.files import iter_pdf_paths

console = Console()
app = typer.Typer(help="DocShelf - a self-organizing PDF library with duplicate detection")

DB_OPTION = typer.Option(None, "--db", help="SQLite database path")
LIBRARY_OPTION = typer.Option(None, "--library", help="Folder holding the library files")
VERBOSE_OPTION = typer.Option(False, "--verbose", "-v", help="Verbose logging")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _build_config(db: Path | None, library: Path | None, **overrides) -> AppConfig:
    defaults = AppConfig()
    return AppConfig(
        db_path=db if db is not None else defaults.db_path,
        library_dir=library if library is not None else defaults.library_dir,
        **overrides,
    )


@contextmanager
def _service(config: AppConfig) -> Iterator[LibraryService]:
    service = LibraryService.from_config(config, Path.cwd())
    try:
        yield service
    except DocShelfError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc
    finally:
        service.close()


def _print_progress(progress: float, record: DocumentRecord) -> None:
    console.print(f"[{progress:>4.0%}] {record.display_emoji} {record.display_name} ({record.status.value})")


@app.command()
def ingest(
    inputs: List[Path] = typer.Argument(..., help="PDF files or folders to add.", resolve_path=True),
    no_process: bool = typer.Option(False, "--no-process", help="Only copy, analyze later"),
    no_ai: bool = typer.Option(False, "--no-ai", help="Use the keyword heuristic instead of the model"),
    db: Path = DB_OPTION,
    library: Path = LIBRARY_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Copy PDFs into the library and analyze them."""
    _setup_logging(verbose)
    if not list(iter_pdf_paths(inputs)):
        console.print("[yellow]No PDFs found.[/yellow]")
        return

    with _service(_build_config(db, library, use_classifier=not no_ai)) as service:
        records = service.ingest(inputs, process=not no_process, on_progress=_print_progress)
        console.print(f"Ingested {len(records)} documents.")


@app.command()
def process(
    no_ai: bool = typer.Option(False, "--no-ai", help="Use the keyword heuristic instead of the model"),
    db: Path = DB_OPTION,
    library: Path = LIBRARY_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Analyze documents still pending (resumes a cancelled batch)."""
    _setup_logging(verbose)
    with _service(_build_config(db, library, use_classifier=not no_ai)) as service:
        result = service.process_pending(on_progress=_print_progress)
        console.print(f"Done: {result.done}, errors: {result.errors}, total: {result.total}")


@app.command("list")
def list_documents(
    db: Path = DB_OPTION,
    library: Path = LIBRARY_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Show every document in the library."""
    _setup_logging(verbose)
    with _service(_build_config(db, library, use_classifier=False)) as service:
        records = service.documents()
        if not records:
            console.print("[yellow]Library is empty.[/yellow]")
            return

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("ID")
        table.add_column("Title")
        table.add_column("Category")
        table.add_column("Status")
        table.add_column("File")
        for record in records:
            table.add_row(
                record.id,
                f"{record.display_emoji} {record.display_name}",
                record.category or "",
                record.status.value,
                record.original_filename,
            )
        console.print(table)


@app.command()
def reanalyze(
    doc_id: str = typer.Argument(..., help="Document id"),
    no_ai: bool = typer.Option(False, "--no-ai", help="Use the keyword heuristic instead of the model"),
    db: Path = DB_OPTION,
    library: Path = LIBRARY_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Run the analysis pipeline again for one document."""
    _setup_logging(verbose)
    with _service(_build_config(db, library, use_classifier=not no_ai)) as service:
        service.reanalyze(doc_id)
        record = service.get(doc_id)
        console.print(f"{record.display_emoji} {record.display_name} ({record.status.value})")


@app.command()
def rename(
    doc_id: str = typer.Argument(..., help="Document id"),
    db: Path = DB_OPTION,
    library: Path = LIBRARY_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Rename the stored file after its inferred title."""
    _setup_logging(verbose)
    with _service(_build_config(db, library, use_classifier=False)) as service:
        outcome = service.rename_to_title(doc_id)
        if outcome.ok:
            console.print(f"Renamed to [bold]{outcome.value.name}[/bold]")
        else:
            console.print(f"[yellow]Not renamed: {outcome.reason}[/yellow]")


@app.command()
def delete(
    doc_id: str = typer.Argument(..., help="Document id"),
    db: Path = DB_OPTION,
    library: Path = LIBRARY_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Delete a document, its file and its index entries."""
    _setup_logging(verbose)
    with _service(_build_config(db, library, use_classifier=False)) as service:
        record = service.get(doc_id)
        service.delete_document(record)
        console.print(f"Deleted {record.display_name}.")


@app.command()
def index(
    doc_id: Optional[str] = typer.Argument(None, help="Only re-index this document"),
    db: Path = DB_OPTION,
    library: Path = LIBRARY_OPTION,
    model: str = typer.Option(AppConfig().model_name, help="Sentence-transformer model name"),
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Rebuild the semantic index."""
    _setup_logging(verbose)
    with _service(_build_config(db, library, model_name=model, use_classifier=False)) as service:
        stats = service.reindex(doc_id)
        console.print(
            f"Indexed: {stats.indexed}, skipped: {stats.skipped}, "
            f"failed: {stats.failed}, chunks: {stats.chunks}"
        )


@app.command()
def search(
    query: str = typer.Argument(..., help="Query text"),
    top_k: int = typer.Option(10, help="Number of results to display"),
    doc: Optional[List[str]] = typer.Option(None, "--doc", help="Limit to these document ids"),
    db: Path = DB_OPTION,
    library: Path = LIBRARY_OPTION,
    model: str = typer.Option(AppConfig().model_name, help="Sentence-transformer model name"),
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Find the passages most relevant to a query."""
    _setup_logging(verbose)
    with _service(_build_config(db, library, model_name=model, use_classifier=False)) as service:
        results = service.search(query, top_k=top_k, scope=doc or None)
        if not results:
            console.print("[yellow]No matches found.[/yellow]")
            return

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Score")
        table.add_column("Document")
        table.add_column("Page")
        table.add_column("Snippet")
        for result in results:
            snippet = result.text.replace("\n", " ")
            table.add_row(f"{result.score:.4f}", result.title, str(result.page_index + 1), snippet[:180])
        console.print(table)


@app.command()
def compare(
    doc_a: str = typer.Argument(..., help="Document compared"),
    doc_b: str = typer.Argument(..., help="Document compared against"),
    db: Path = DB_OPTION,
    library: Path = LIBRARY_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Share of document A's passages that reappear in document B."""
    _setup_logging(verbose)
    with _service(_build_config(db, library, use_classifier=False)) as service:
        score = service.compare(doc_a, doc_b)
        console.print(f"Similarity: [bold]{score:.0%}[/bold]")


@app.command()
def duplicates(
    db: Path = DB_OPTION,
    library: Path = LIBRARY_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Scan the library for duplicates and print the report."""
    _setup_logging(verbose)
    with _service(_build_config(db, library, use_classifier=False)) as service:
        result = service.scan_duplicates()
        console.print(result.report, markup=False)
        if result.count:
            console.print(f"[red]{result.count} files can be removed.[/red] Run 'docshelf clean'.")
        for failure in result.failures:
            console.print(f"[yellow]{failure.operation} failed for {failure.item_id}: {failure.reason}[/yellow]")


@app.command()
def clean(
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
    db: Path = DB_OPTION,
    library: Path = LIBRARY_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Delete every duplicate found by a fresh scan."""
    _setup_logging(verbose)
    if not yes:
        typer.confirm("Delete all duplicate files?", abort=True)
    with _service(_build_config(db, library, use_classifier=False)) as service:
        removed = service.clean_duplicates()
        console.print(f"Removed {removed} duplicates.")


@app.command()
def prune(
    db: Path = DB_OPTION,
    library: Path = LIBRARY_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Remove records whose files vanished and files no record owns."""
    _setup_logging(verbose)
    with _service(_build_config(db, library, use_classifier=False)) as service:
        counts = service.prune().value
        console.print(
            f"Removed {counts['records']} orphaned records and {counts['files']} orphaned files."
        )


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(8000, help="Server port"),
    db: Path = DB_OPTION,
    library: Path = LIBRARY_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Start the JSON API."""
    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover
        raise typer.BadParameter(
            "uvicorn is not installed. Install the web extras with \"python -m pip install '.[web]'\""
        ) from exc

    from docshelf.web.app import create_app

    _setup_logging(verbose)
    with _service(_build_config(db, library)) as service:
        console.print(f"Starting API on http://{host}:{port} (database: {service.store.db_path})")
        uvicorn.run(create_app(service), host=host, port=port, reload=False, log_level="info")


if __name__ == "__main__":  # pragma: no cover
    app()
