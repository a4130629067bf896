"""Rich rendering of stream events for the terminal."""

import json
from typing import Any

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from marketdesk.agent.schemas import EventKind, StreamEvent
from marketdesk.ui.theme import COLORS, RICH_THEME

console = Console(theme=RICH_THEME)

# Scalar fields shown in a widget's summary table
_SKIP_KEYS = {"sources", "lastUpdated", "summary", "oneLiner"}


def _format_value(value: Any) -> str:
    if isinstance(value, float):
        if abs(value) >= 1_000_000_000:
            return f"{value / 1_000_000_000:,.2f}B"
        if abs(value) >= 1_000_000:
            return f"{value / 1_000_000:,.2f}M"
        return f"{value:,.2f}"
    if isinstance(value, (dict, list)):
        text = json.dumps(value, default=str)
        return text if len(text) <= 80 else text[:77] + "..."
    return str(value)


def widget_table(data: dict[str, Any]) -> Table:
    """Key/value table for a completed widget's top-level fields."""
    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column(style="muted")
    table.add_column()
    for key, value in data.items():
        if key in _SKIP_KEYS or value in (None, [], {}):
            continue
        table.add_row(key, _format_value(value))
    return table


def widget_panel(event: StreamEvent) -> Panel:
    data = event.data if isinstance(event.data, dict) else {}
    summary = data.get("summary") or data.get("oneLiner") or ""
    body = Table.grid()
    if summary:
        body.add_row(Markdown(str(summary)))
    body.add_row(widget_table(data))
    sources = ", ".join(s.get("name", "") for s in data.get("sources", []))
    return Panel(
        body,
        title=f"[widget.name]{event.task_id}[/widget.name]",
        subtitle=f"[muted]{sources}[/muted]" if sources else None,
        border_style=COLORS["secondary"],
    )


def render_event(event: StreamEvent, out: Console | None = None) -> None:
    """Print one event."""
    out = out or console

    if event.kind == EventKind.TEXT:
        out.print(Markdown(event.content))
    elif event.kind == EventKind.WIDGET_START:
        out.print(f"[muted]◐ {event.content}[/muted]")
    elif event.kind == EventKind.WIDGET_COMPLETE:
        out.print(f"[widget.ready]✓ {event.content}[/widget.ready]")
        out.print(widget_panel(event))
    elif event.kind == EventKind.WIDGET_ERROR:
        out.print(f"[widget.fail]✗ {event.content}[/widget.fail]")
    elif event.kind == EventKind.SUGGESTIONS:
        out.print(f"\n[header]{event.content}[/header]")
        for suggestion in event.suggestions or []:
            out.print(f"  [highlight]›[/highlight] {suggestion}")
    elif event.kind == EventKind.ERROR:
        out.print(f"[error]Error:[/error] {event.content}")


def render_wire(event: StreamEvent, out: Console | None = None) -> None:
    """Print one event as a single NDJSON line."""
    out = out or console
    out.print(json.dumps(event.to_wire(), default=str), markup=False, highlight=False, soft_wrap=True)
