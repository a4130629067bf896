"""Chat history - one JSON file per session of queries and narrative answers."""

import json
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from marketdesk.config import get_config
from marketdesk.logging import log


@dataclass
class ChatMessage:
    role: str  # "user" or "assistant"
    content: str
    timestamp: str  # ISO format

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChatMessage":
        return cls(**data)


@dataclass
class ChatSession:
    """A titled conversation."""

    id: str
    title: str
    created_at: str
    updated_at: str
    messages: list[ChatMessage] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            **asdict(self),
            "messages": [m.to_dict() for m in self.messages],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChatSession":
        data = dict(data)
        messages = [ChatMessage.from_dict(m) for m in data.pop("messages", [])]
        return cls(**data, messages=messages)

    def preview(self, max_length: int = 100) -> str:
        first_user_msg = next((m.content for m in self.messages if m.role == "user"), "")
        return first_user_msg[:max_length] or "Empty session"


class ChatHistory:
    """Persist and retrieve chat sessions."""

    def __init__(self, history_dir: Path | None = None):
        self.history_dir = history_dir or get_config().history_dir
        self.history_dir.mkdir(parents=True, exist_ok=True)

    def _session_path(self, session_id: str) -> Path:
        return self.history_dir / f"{session_id}.json"

    def _save(self, session: ChatSession) -> Path:
        path = self._session_path(session.id)
        with open(path, "w") as f:
            json.dump(session.to_dict(), f, indent=2)
        return path

    def create_session(self, title: str | None = None) -> ChatSession:
        """Create and persist an empty session."""
        now = datetime.now().isoformat()
        session = ChatSession(
            id=f"chat_{datetime.now().strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:6]}",
            title=(title or "New Chat")[:80],
            created_at=now,
            updated_at=now,
        )
        self._save(session)
        log("history", f"Created session {session.id}")
        return session

    def add_message(self, session_id: str, role: str, content: str) -> ChatMessage:
        """Append a message to an existing session."""
        session = self.load(session_id)
        now = datetime.now().isoformat()
        message = ChatMessage(role=role, content=content, timestamp=now)
        session.messages.append(message)
        session.updated_at = now
        self._save(session)
        return message

    def load(self, session_id: str) -> ChatSession:
        path = self._session_path(session_id)
        if not path.exists():
            raise ValueError(f"Session not found: {session_id}")

        with open(path) as f:
            data = json.load(f)

        return ChatSession.from_dict(data)

    def delete(self, session_id: str) -> bool:
        path = self._session_path(session_id)
        if path.exists():
            path.unlink()
            return True
        return False

    def list_sessions(self, limit: int = 20) -> list[dict[str, Any]]:
        """
        List sessions, most recently updated first.

        Returns session metadata only, not full messages.
        """
        sessions = []

        for path in self.history_dir.glob("*.json"):
            try:
                with open(path) as f:
                    data = json.load(f)
                session = ChatSession.from_dict(data)
            except (json.JSONDecodeError, KeyError, TypeError):
                continue  # Skip invalid session files

            sessions.append(
                {
                    "id": session.id,
                    "title": session.title,
                    "created_at": session.created_at,
                    "updated_at": session.updated_at,
                    "message_count": len(session.messages),
                    "preview": session.preview(),
                }
            )

        sessions.sort(key=lambda x: x["updated_at"], reverse=True)
        return sessions[:limit]


_history: ChatHistory | None = None


def get_history() -> ChatHistory:
    global _history
    if _history is None:
        _history = ChatHistory()
    return _history


def reset_history() -> None:
    global _history
    _history = None
