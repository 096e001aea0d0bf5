#!/usr/bin/env python3
"""
Notekeeper CLI.

Command-line driver for the note service.
Built with Typer for type-safe commands and Rich for formatted output.

Every invocation is one session: the trash retention purge and a mirror
resync run first, then the command, then pending mirror writes are
drained before exit.

Usage:
    python cli.py --help
    python cli.py add "Buy milk"
    python cli.py list --search milk
    python cli.py pin <note-id>
    python cli.py archive <note-id>
    python cli.py trash <note-id>
    python cli.py restore <note-id>
    python cli.py purge
    python cli.py open noteapp://note/<note-id>
    python cli.py widget
    python cli.py widget --follow

Options:
    --verbose, -v     Enable verbose output
    --debug, -d       Enable debug mode (detailed logging)
"""

import asyncio
from collections.abc import Awaitable, Callable
from contextlib import aclosing
from typing import Any, TypeVar

import typer
from rich.console import Console
from rich.table import Table
from rich.text import Text

from notekeeper.core.exceptions import ApplicationError
from notekeeper.schemas.mirror import DisplayEntry
from notekeeper.schemas.note import NoteView, SearchHit, UpdateOutcome
from notekeeper.services.note import NoteService

T = TypeVar("T")

app = typer.Typer(
    name="notekeeper",
    help="Notekeeper CLI - create, organize and search notes.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()


def _validate_project_root() -> None:
    """Validate that we're running inside the project."""
    from notekeeper.core.config import find_project_root

    try:
        find_project_root()
    except RuntimeError:
        console.print("[red]Error: .project_root not found. Run from project root.[/red]")
        raise typer.Exit(1)


async def _session(action: Callable[[NoteService], Awaitable[T]]) -> T:
    """Run one CLI session: maintenance, the action, then drain mirror writes."""
    from notekeeper.core.config import get_app_config
    from notekeeper.core.database import dispose_engine, get_session_factory, init_models, session_scope
    from notekeeper.mirror import CompanionMirror, MirrorSync, create_mirror_storage
    from notekeeper.tasks.maintenance import on_session_start

    config = get_app_config()
    await init_models()
    storage = create_mirror_storage()
    sync = MirrorSync.from_config(CompanionMirror(storage))
    factory = get_session_factory()
    try:
        await on_session_start(factory, sync, retention_days=config.notes.retention_days)
        async with session_scope(factory) as session:
            service = NoteService(
                session,
                mirror_sync=sync,
                retention_days=config.notes.retention_days,
                deep_link_scheme=config.application.deep_link_scheme,
            )
            result = await action(service)
        await sync.drain()
        return result
    finally:
        close = getattr(storage, "close", None)
        if close is not None:
            await close()
        await dispose_engine()


def _run(action: Callable[[NoteService], Awaitable[T]]) -> T:
    try:
        return asyncio.run(_session(action))
    except ApplicationError as e:
        console.print(f"[red]{e.code}: {e.message}[/red]")
        raise typer.Exit(1)


def _notes_table(title: str, notes: list[NoteView]) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Pin")
    table.add_column("Created")
    table.add_column("Content")
    for note in notes:
        table.add_row(
            note.id,
            "*" if note.is_pinned else "",
            note.created_at.strftime("%Y-%m-%d %H:%M"),
            note.content.splitlines()[0],
        )
    return table


def _highlighted(hit: SearchHit) -> Text:
    text = Text(hit.snippet)
    for span in hit.highlights:
        text.stylize("black on yellow", span.start, span.end)
    return text


def _report(found: Any, message: str) -> None:
    if found is None or found is False:
        console.print("[yellow]Note not found[/yellow]")
        raise typer.Exit(1)
    console.print(f"[green]{message}[/green]")


@app.command()
def add(content: str = typer.Argument(..., help="Note text")) -> None:
    """Create a note. Blank text is ignored."""
    note = _run(lambda service: service.create_note(content))
    if note is None:
        console.print("[yellow]Nothing to save[/yellow]")
        return
    console.print(f"[green]Created[/green] {note.id}")


@app.command()
def edit(
    note_id: str = typer.Argument(..., help="Note ID"),
    content: str = typer.Argument(..., help="New text; blank deletes the note"),
) -> None:
    """Replace a note's text."""
    outcome = _run(lambda service: service.update_note(note_id, content))
    if outcome is UpdateOutcome.NOT_FOUND:
        console.print("[yellow]Note not found[/yellow]")
        raise typer.Exit(1)
    console.print(f"[green]{outcome.value.capitalize()}[/green]")


@app.command("list")
def list_notes(
    search: str = typer.Option("", "--search", "-s", help="Filter by text"),
) -> None:
    """List active notes, pinned first."""
    notes = _run(lambda service: service.list_active(search))
    console.print(_notes_table("Notes", notes))


@app.command()
def archived() -> None:
    """List archived notes."""
    notes = _run(lambda service: service.list_archived())
    console.print(_notes_table("Archived", notes))


@app.command("trash-list")
def trash_list() -> None:
    """List notes in the trash."""
    notes = _run(lambda service: service.list_trash())
    console.print(_notes_table("Trash", notes))


@app.command()
def search(
    query: str = typer.Argument(..., help="Text to look for"),
    max_length: int | None = typer.Option(None, "--max-length", help="Snippet width"),
) -> None:
    """Search active notes and show highlighted snippets."""
    from notekeeper.core.config import get_app_config

    width = max_length or get_app_config().notes.snippet_max_length
    hits = _run(lambda service: service.search(query, width))
    if not hits:
        console.print("[dim]No matches[/dim]")
    for hit in hits:
        console.print(Text(hit.note.id, style="cyan"))
        console.print(_highlighted(hit))


@app.command()
def show(note_id: str = typer.Argument(..., help="Note ID")) -> None:
    """Print one note in full."""
    note = _run(lambda service: service.require_note(note_id))
    console.print(f"[cyan]{note.id}[/cyan] [dim]({note.state.value})[/dim]")
    console.print(note.content)


@app.command()
def archive(note_id: str = typer.Argument(..., help="Note ID")) -> None:
    """Archive a note."""
    _report(_run(lambda service: service.archive(note_id)), "Archived")


@app.command()
def unarchive(note_id: str = typer.Argument(..., help="Note ID")) -> None:
    """Move an archived note back to the list."""
    _report(_run(lambda service: service.unarchive(note_id)), "Unarchived")


@app.command()
def trash(note_id: str = typer.Argument(..., help="Note ID")) -> None:
    """Move a note to the trash."""
    _report(_run(lambda service: service.soft_delete(note_id)), "Moved to trash")


@app.command()
def restore(note_id: str = typer.Argument(..., help="Note ID")) -> None:
    """Restore a note from the trash."""
    _report(_run(lambda service: service.restore(note_id)), "Restored")


@app.command()
def destroy(note_id: str = typer.Argument(..., help="Note ID")) -> None:
    """Delete a note permanently."""
    _report(_run(lambda service: service.hard_delete(note_id)), "Deleted permanently")


@app.command()
def purge(
    retention_days: int | None = typer.Option(None, "--days", help="Override retention window"),
) -> None:
    """Purge trashed notes past the retention window."""
    count = _run(lambda service: service.purge_expired_trash(retention_days))
    console.print(f"Purged {count} note(s)")


@app.command()
def pin(note_id: str = typer.Argument(..., help="Note ID")) -> None:
    """Pin a note and show it on the external display."""
    _report(_run(lambda service: service.set_pinned(note_id, True)), "Pinned")


@app.command()
def unpin(note_id: str = typer.Argument(..., help="Note ID")) -> None:
    """Unpin a note."""
    _report(_run(lambda service: service.set_pinned(note_id, False)), "Unpinned")


@app.command("open")
def open_link(uri: str = typer.Argument(..., help="Deep link, e.g. noteapp://note/<id>")) -> None:
    """Resolve a deep link from the external display."""
    note = _run(lambda service: service.resolve_deep_link(uri))
    if note is None:
        console.print("[yellow]Link does not point at an available note[/yellow]")
        raise typer.Exit(1)
    console.print(f"[cyan]{note.id}[/cyan]")
    console.print(note.content)


def _print_entry(entry: DisplayEntry) -> None:
    console.print(entry.content)
    console.print(f"[dim]{entry.deep_link}[/dim]")


@app.command()
def widget(
    note_id: str | None = typer.Option(None, "--note", help="Note configured on the display"),
    follow: bool = typer.Option(False, "--follow", "-f", help="Keep printing as the mirror changes"),
) -> None:
    """Show what the external display would render."""
    from notekeeper.mirror import WidgetReader

    def _reader(service: NoteService) -> WidgetReader:
        return WidgetReader.from_config(service.mirror_sync.mirror.storage)

    async def _resolve(service: NoteService) -> DisplayEntry:
        await service.mirror_sync.drain()
        return await _reader(service).resolve(note_id)

    async def _follow(service: NoteService) -> None:
        await service.mirror_sync.drain()
        async with aclosing(_reader(service).watch(note_id)) as entries:
            async for entry in entries:
                _print_entry(entry)

    if not follow:
        _print_entry(_run(_resolve))
        return

    try:
        _run(_follow)
    except KeyboardInterrupt:
        console.print("[dim]Stopped[/dim]")


@app.callback()
def main(
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose output (INFO level logging)",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        "-d",
        help="Enable debug mode (DEBUG level logging)",
    ),
) -> None:
    """
    Notekeeper CLI.

    Create, organize and search notes; inspect the companion mirror.
    """
    _validate_project_root()

    from notekeeper.core.logging import setup_logging

    if debug:
        setup_logging(level="DEBUG", format_type="console")
        console.print("[dim]Debug mode enabled[/dim]")
    elif verbose:
        setup_logging(level="INFO", format_type="console")
    else:
        setup_logging(level="WARNING")


if __name__ == "__main__":
    app()
