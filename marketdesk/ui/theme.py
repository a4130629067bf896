"""Terminal theme and styling for marketdesk."""

from rich.theme import Theme

# Finance terminal palette (dark mode)
COLORS = {
    "bull": "#00ff88",
    "bear": "#ff4466",
    "neutral": "#ffaa00",
    "primary": "#00ff88",
    "secondary": "#00d4ff",
    "accent": "#aa88ff",
    "text": "#e0e0e0",
    "text_muted": "#666666",
    "success": "#00ff88",
    "error": "#ff4466",
    "warning": "#ffaa00",
    "info": "#00d4ff",
}


RICH_THEME = Theme(
    {
        "info": COLORS["info"],
        "warning": COLORS["warning"],
        "error": f"bold {COLORS['error']}",
        "success": COLORS["success"],
        "bull": f"bold {COLORS['bull']}",
        "bear": f"bold {COLORS['bear']}",
        "ticker": f"bold {COLORS['primary']}",
        "header": f"bold {COLORS['primary']}",
        "muted": COLORS["text_muted"],
        "highlight": f"bold {COLORS['accent']}",
        "widget.name": f"bold {COLORS['secondary']}",
        "widget.ready": COLORS["success"],
        "widget.fail": COLORS["error"],
    }
)
