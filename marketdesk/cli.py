"""CLI entry point using Typer."""

import asyncio
import logging
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from marketdesk import __version__
from marketdesk.config import Config, ConfigError, get_config

# Suppress verbose logging from libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("yfinance").setLevel(logging.WARNING)

app = typer.Typer(
    name="marketdesk",
    help="Streaming financial analysis assistant.",
    no_args_is_help=True,
)
console = Console()

# Subcommand groups
prompts_app = typer.Typer(help="View and edit system prompts")
history_app = typer.Typer(help="Browse chat history")
app.add_typer(prompts_app, name="prompts")
app.add_typer(history_app, name="history")


def version_callback(value: bool) -> None:
    if value:
        console.print(f"marketdesk version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        bool,
        typer.Option("--version", "-v", callback=version_callback, is_eager=True),
    ] = False,
    debug: Annotated[
        bool,
        typer.Option("--debug", "-d", help="Enable debug logging to file"),
    ] = False,
    debug_filter: Annotated[
        str | None,
        typer.Option("--debug-filter", help="Filter debug logs: 'providers,api' or '!limiter'"),
    ] = None,
) -> None:
    """marketdesk - streaming financial analysis assistant."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    ctx.obj["debug_filter"] = debug_filter


def _load(ctx: typer.Context) -> Config:
    """Load config and, when requested, turn on debug logging."""
    try:
        config = get_config()
    except ConfigError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1)

    if ctx.obj and ctx.obj.get("debug"):
        from marketdesk.logging import setup_logging

        log_file = setup_logging(
            config.logs_dir, debug=True, debug_filter=ctx.obj.get("debug_filter")
        )
        console.print(f"[dim]Debug logging to: {log_file}[/dim]")

    return config


@app.command()
def ask(
    ctx: typer.Context,
    query: Annotated[str, typer.Argument(help="Question, e.g. 'Compare Tesla and Apple'")],
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Print wire events as NDJSON instead of panels"),
    ] = False,
    session: Annotated[
        str | None,
        typer.Option("--session", "-s", help="Append to an existing chat session"),
    ] = None,
    no_history: Annotated[
        bool,
        typer.Option("--no-history", help="Do not record this query"),
    ] = False,
) -> None:
    """Analyze a query and stream the results."""
    from marketdesk.agent.stream import analyze
    from marketdesk.storage import get_history
    from marketdesk.ui.render import render_event, render_wire

    _load(ctx)
    history = None if no_history else get_history()
    render = render_wire if json_output else render_event

    async def run() -> None:
        async for event in analyze(query, history=history, session_id=session):
            render(event)

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        console.print("\n[dim]Cancelled.[/dim]")
        raise typer.Exit(130)


# Prompt subcommands
@prompts_app.command("list")
def prompts_list(ctx: typer.Context) -> None:
    """List all prompts."""
    from marketdesk.agent.prompts import PromptCatalog

    config = _load(ctx)
    catalog = PromptCatalog(config.prompts_path)

    table = Table(title="Prompts")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Description")
    table.add_column("Source")

    for prompt in catalog.list_prompts():
        table.add_row(
            prompt.id,
            prompt.name,
            prompt.description,
            "custom" if prompt.overridden else "builtin",
        )

    console.print(table)


@prompts_app.command("show")
def prompts_show(
    ctx: typer.Context,
    prompt_id: Annotated[str, typer.Argument(help="Prompt ID, e.g. company-snapshot")],
) -> None:
    """Show a prompt's system text."""
    from marketdesk.agent.prompts import PromptCatalog

    config = _load(ctx)
    prompt = PromptCatalog(config.prompts_path).get(prompt_id)
    if prompt is None:
        console.print(f"[red]Unknown prompt: {prompt_id}[/red]")
        raise typer.Exit(1)

    console.print(
        Panel(
            prompt.system_prompt,
            title=f"[bold]{prompt.name}[/bold]",
            subtitle="[dim]custom[/dim]" if prompt.overridden else None,
        )
    )


@prompts_app.command("set")
def prompts_set(
    ctx: typer.Context,
    prompt_id: Annotated[str, typer.Argument(help="Prompt ID")],
    system_prompt: Annotated[str, typer.Argument(help="New system prompt text")],
) -> None:
    """Replace a prompt's system text."""
    from marketdesk.agent.prompts import PromptCatalog

    config = _load(ctx)
    try:
        PromptCatalog(config.prompts_path).update(prompt_id, system_prompt)
    except KeyError:
        console.print(f"[red]Unknown prompt: {prompt_id}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Updated {prompt_id}.[/green]")


@prompts_app.command("reset")
def prompts_reset(
    ctx: typer.Context,
    prompt_id: Annotated[str, typer.Argument(help="Prompt ID")],
) -> None:
    """Restore a prompt's built-in text."""
    from marketdesk.agent.prompts import PromptCatalog

    config = _load(ctx)
    try:
        PromptCatalog(config.prompts_path).reset(prompt_id)
    except KeyError:
        console.print(f"[red]Unknown prompt: {prompt_id}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Reset {prompt_id}.[/green]")


# History subcommands
@history_app.command("list")
def history_list(
    ctx: typer.Context,
    limit: Annotated[int, typer.Option("--limit", "-n", help="Sessions to show")] = 20,
) -> None:
    """List recent chat sessions."""
    from marketdesk.storage import get_history

    _load(ctx)
    sessions = get_history().list_sessions(limit=limit)
    if not sessions:
        console.print("[dim]No chat history yet.[/dim]")
        return

    table = Table(title="Chat History")
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Messages", justify="right")
    table.add_column("Updated")

    for s in sessions:
        table.add_row(s["id"], s["title"], str(s["message_count"]), s["updated_at"][:19])

    console.print(table)


@history_app.command("show")
def history_show(
    ctx: typer.Context,
    session_id: Annotated[str, typer.Argument(help="Session ID")],
) -> None:
    """Show the messages of a chat session."""
    from marketdesk.storage import get_history

    _load(ctx)
    try:
        session = get_history().load(session_id)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    console.print(f"[bold]{session.title}[/bold]")
    console.print(f"[dim]Created {session.created_at[:19]}[/dim]\n")
    for msg in session.messages:
        role_color = "cyan" if msg.role == "user" else "green"
        console.print(f"[{role_color}]{msg.role}[/{role_color}]: {msg.content}\n")


@history_app.command("delete")
def history_delete(
    ctx: typer.Context,
    session_id: Annotated[str, typer.Argument(help="Session ID")],
) -> None:
    """Delete a chat session."""
    from marketdesk.storage import get_history

    _load(ctx)
    if get_history().delete(session_id):
        console.print(f"[green]Deleted {session_id}.[/green]")
    else:
        console.print(f"[red]Session not found: {session_id}[/red]")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
