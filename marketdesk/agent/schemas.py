"""Wire types for the analysis event stream."""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class EventKind(str, Enum):
    TEXT = "text"
    WIDGET_START = "widget_start"
    WIDGET_COMPLETE = "widget_complete"
    WIDGET_ERROR = "widget_error"
    SUGGESTIONS = "suggestions"
    ERROR = "error"


TERMINAL_KINDS = frozenset({EventKind.WIDGET_COMPLETE, EventKind.WIDGET_ERROR})


@dataclass(frozen=True)
class StreamEvent:
    """
    One unit of the outbound stream.

    For a given task id, a widget_start always precedes exactly one
    terminal event (widget_complete or widget_error).
    """

    kind: EventKind
    content: str = ""
    task_id: str | None = None
    data: Any = None
    suggestions: list[str] | None = None

    @classmethod
    def text(cls, content: str) -> "StreamEvent":
        return cls(EventKind.TEXT, content)

    @classmethod
    def widget_start(cls, task_id: str, content: str = "") -> "StreamEvent":
        return cls(EventKind.WIDGET_START, content or f"Loading {task_id}...", task_id=task_id)

    @classmethod
    def widget_complete(cls, task_id: str, data: Any, content: str = "") -> "StreamEvent":
        return cls(
            EventKind.WIDGET_COMPLETE, content or f"{task_id} ready", task_id=task_id, data=data
        )

    @classmethod
    def widget_error(cls, task_id: str, message: str) -> "StreamEvent":
        return cls(EventKind.WIDGET_ERROR, message, task_id=task_id)

    @classmethod
    def suggestions_event(cls, suggestions: list[str]) -> "StreamEvent":
        return cls(EventKind.SUGGESTIONS, "Follow-up suggestions", suggestions=suggestions)

    @classmethod
    def error(cls, message: str) -> "StreamEvent":
        return cls(EventKind.ERROR, message)

    @property
    def is_terminal(self) -> bool:
        return self.kind in TERMINAL_KINDS

    def to_wire(self) -> dict[str, Any]:
        """JSON-ready dict using the client's field names; absent keys are dropped."""
        wire: dict[str, Any] = {"type": self.kind.value, "content": self.content}
        if self.task_id is not None:
            wire["widgetId"] = self.task_id
        if self.data is not None:
            wire["data"] = self.data
        if self.suggestions is not None:
            wire["suggestions"] = self.suggestions
        return wire


@dataclass(frozen=True)
class TaskOutcome:
    """Result of running one task: complete with data, or error with a message."""

    data: Any = None
    error: str | None = None

    @classmethod
    def complete(cls, data: Any) -> "TaskOutcome":
        return cls(data=data)

    @classmethod
    def failed(cls, message: str) -> "TaskOutcome":
        return cls(error=message)

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_event(self, task_id: str, label: str = "") -> StreamEvent:
        label = label or task_id
        if self.ok:
            return StreamEvent.widget_complete(task_id, self.data, f"{label} ready")
        return StreamEvent.widget_error(task_id, f"{label} failed: {self.error}")
