"""Terminal UI - theme and event rendering."""

from marketdesk.ui.render import console, render_event, render_wire

__all__ = ["console", "render_event", "render_wire"]
