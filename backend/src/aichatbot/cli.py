"""
AI Chatbot CLI - command-line interface for server and stream management.

Minimal CLI providing essential commands for automation and operations.
For chatting, use the web UI.
"""

import json
import uuid
from datetime import timedelta
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from aichatbot.logging_config import setup_logging

app = typer.Typer(
    name="aichatbot",
    help="AI Chatbot - chat backend with resumable streams",
    no_args_is_help=True,
)

console = Console()


def _parse_uuid(value: str, label: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError:
        console.print(f"[bold red]Error:[/bold red] Invalid {label}: {value}")
        raise typer.Exit(1)


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Host to bind to"),
    port: int = typer.Option(8000, help="Port to bind to"),
    reload: bool = typer.Option(False, help="Enable auto-reload"),
) -> None:
    """
    Start the FastAPI server.
    """
    import uvicorn

    console.print("[bold green]Starting AI Chatbot API server...[/bold green]")
    console.print(f"  Host: {host}")
    console.print(f"  Port: {port}")
    console.print(f"  Reload: {reload}")
    console.print(f"\n  API docs: http://{host}:{port}/docs")

    uvicorn.run(
        "aichatbot.api.app:app",
        host=host,
        port=port,
        reload=reload,
    )


@app.command("init-db")
def init_db() -> None:
    """Create all database tables."""
    setup_logging(context="cli")
    from aichatbot.db.connection import init_db as create_tables

    create_tables()
    console.print("[green]Database schema created[/green]")


@app.command()
def streams(
    conversation_id: str = typer.Argument(..., help="Conversation UUID"),
) -> None:
    """List a conversation's resumable streams, oldest first."""
    setup_logging(context="cli")
    from aichatbot.db.connection import db_session
    from aichatbot.streaming import DeltaLog, StreamRegistry

    conversation_uuid = _parse_uuid(conversation_id, "conversation id")
    registry = StreamRegistry(db_session)
    log = DeltaLog(db_session)

    stream_ids = registry.list_stream_ids(conversation_uuid)
    if not stream_ids:
        console.print("[yellow]No resumable streams[/yellow]")
        raise typer.Exit(0)

    table = Table(title=f"Streams for {conversation_uuid}")
    table.add_column("Stream")
    table.add_column("Deltas", justify="right")
    table.add_column("Finished")
    for stream_id in stream_ids:
        table.add_row(
            str(stream_id),
            str(log.last_sequence(stream_id)),
            "yes" if log.is_finished(stream_id) else "no",
        )
    console.print(table)


@app.command()
def replay(
    stream_id: str = typer.Argument(..., help="Stream UUID"),
    cursor: int = typer.Option(0, help="Replay deltas after this sequence number"),
) -> None:
    """Print a stream's persisted deltas after a cursor."""
    setup_logging(context="cli")
    from aichatbot.db.connection import db_session
    from aichatbot.streaming import DeltaLog

    stream_uuid = _parse_uuid(stream_id, "stream id")
    items = DeltaLog(db_session).read_after(stream_uuid, cursor)
    if not items:
        console.print("[yellow]No deltas after cursor[/yellow]")
        raise typer.Exit(0)

    for item in items:
        console.print(
            f"[cyan]{item.sequence:>5}[/cyan] [bold]{item.delta.type.value}[/bold] "
            f"{json.dumps(item.delta.content)}",
            highlight=False,
        )


@app.command("prune-streams")
def prune_streams(
    hours: Optional[int] = typer.Option(
        None, help="Delete streams older than this (default: retention setting)"
    ),
) -> None:
    """Delete stream records and delta logs beyond the retention window."""
    setup_logging(context="cli")
    from aichatbot.config import settings
    from aichatbot.db.connection import db_session
    from aichatbot.streaming import StreamRegistry
    from aichatbot.utils.timeutils import utcnow

    retention = hours if hours is not None else settings.stream_retention_hours
    deleted = StreamRegistry(db_session, retention_hours=retention).prune(
        older_than=utcnow() - timedelta(hours=retention)
    )
    console.print(f"[green]Pruned {deleted} stream(s)[/green]")


if __name__ == "__main__":
    app()
