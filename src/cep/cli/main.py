"""Typer CLI entry point."""

from __future__ import annotations

import signal
import threading
from functools import partial
from pathlib import Path
from typing import Optional

import typer

from cep.config import Settings
from cep.db.client import (
    DatabaseUnavailableError,
    db_cursor,
    get_connection,
    wait_for_database,
)
from cep.db.schema import apply_schema
from cep.ingestion.filenames import (
    get_files_to_skip,
    get_latest_files,
    get_unparseable_filenames,
    parse_filename,
)
from cep.ingestion.processor import DocumentProcessor
from cep.ingestion.watcher import DirectoryWatcher, compile_pattern
from cep.utils.logging import configure_logging, get_logger


app = typer.Typer(help="CAD call export pipeline CLI")
ingest_app = typer.Typer(help="Ingestion commands")
files_app = typer.Typer(help="Watch folder inspection")
db_app = typer.Typer(help="Database utilities")

app.add_typer(ingest_app, name="ingest")
app.add_typer(files_app, name="files")
app.add_typer(db_app, name="db")

logger = get_logger(__name__)


@app.callback()
def main() -> None:
    """Initialize logging for all commands."""
    settings = Settings()
    configure_logging(settings.log_level, settings.log_file, settings.log_retention_days)


@app.command("watch")
def watch(
    folder: Optional[Path] = typer.Option(None, help="Watch folder (overrides WATCH_FOLDER)"),
    interval: Optional[int] = typer.Option(
        None, help="Seconds between scans (overrides WATCHER_INTERVAL)"
    ),
    once: bool = typer.Option(False, help="Run a single scan and exit"),
) -> None:
    """Watch a folder and ingest call export files as they arrive."""
    settings = Settings()
    overrides: dict[str, object] = {}
    if folder is not None:
        overrides["watch_folder"] = folder
    if interval is not None:
        overrides["watcher_interval"] = interval
    if overrides:
        settings = settings.model_copy(update=overrides)

    try:
        conn = wait_for_database(
            partial(get_connection, settings),
            retries=settings.db_connect_retries,
            delay_seconds=settings.db_connect_delay_seconds,
        )
    except DatabaseUnavailableError as exc:
        logger.error("watch.db_unavailable error=%s", exc)
        typer.echo(f"Database unavailable: {exc}", err=True)
        raise typer.Exit(1)

    stop_event = threading.Event()

    def _request_stop(signum: int, _frame: object) -> None:
        logger.info("watch.signal signal=%s", signal.Signals(signum).name)
        stop_event.set()

    signal.signal(signal.SIGINT, _request_stop)
    signal.signal(signal.SIGTERM, _request_stop)

    try:
        watcher = DirectoryWatcher(settings, DocumentProcessor(conn), stop_event)
        watcher.run(max_cycles=1 if once else None)
    finally:
        conn.close()


@ingest_app.command("file")
def ingest_file(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Export XML file"),
) -> None:
    """Process a single file without moving it."""
    settings = Settings()
    conn = get_connection(settings)
    try:
        result = DocumentProcessor(conn).process_file(path)
    finally:
        conn.close()

    if not result.success:
        typer.echo(f"Failed: {result.filename}: {result.error}", err=True)
        raise typer.Exit(1)

    status = "duplicate" if result.duplicate else "ok"
    typer.echo(
        f"{status}: {result.filename} call_id={result.call_id} "
        f"records={result.records_processed}"
    )


@files_app.command("inspect")
def files_inspect(
    folder: Optional[Path] = typer.Option(None, help="Folder to inspect (defaults to WATCH_FOLDER)"),
) -> None:
    """Show which files are the latest version of their call."""
    settings = Settings()
    folder = folder or settings.watch_folder
    if not folder.is_dir():
        typer.echo(f"Not a directory: {folder}", err=True)
        raise typer.Exit(1)

    pattern = compile_pattern(settings.watcher_file_pattern)
    names = sorted(
        entry.name for entry in folder.iterdir() if entry.is_file() and pattern.match(entry.name)
    )

    latest = get_latest_files(names)
    superseded = get_files_to_skip(names)
    unparseable = get_unparseable_filenames(names)

    typer.echo(
        f"files={len(names)} latest={len(latest)} superseded={len(superseded)} "
        f"unparseable={len(unparseable)}"
    )
    for name in latest:
        parsed = parse_filename(name)
        typer.echo(f"latest      {name} call={parsed.call_number} at={parsed.timestamp}")
    for name in superseded:
        typer.echo(f"superseded  {name}")
    for name in unparseable:
        typer.echo(f"unparseable {name}")


@db_app.command("check")
def db_check() -> None:
    """Check database connectivity."""
    try:
        with db_cursor() as cursor:
            cursor.execute("select 1")
            logger.info("db.check.ok")
    except Exception as exc:
        logger.error("db.check.failed: %s", exc)
        typer.echo(f"Database check failed: {exc}", err=True)
        raise typer.Exit(1)


@db_app.command("init")
def db_init() -> None:
    """Create tables and indexes if they do not exist."""
    settings = Settings()
    conn = get_connection(settings)
    try:
        apply_schema(conn)
    finally:
        conn.close()
    logger.info("db.init.ok")
    typer.echo("Schema applied")


if __name__ == "__main__":
    app()
