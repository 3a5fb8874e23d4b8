"""
Bounded conversation history replayed by the client on every chat call.

The server keeps no session state, so the only place the "last N turns"
rule lives is the constructor of ConversationHistory: whatever the client
sends, at most ``limit`` of the most recent valid entries survive, in
their original order.
"""
from __future__ import annotations

import dataclasses
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from app.config import settings
from app.models.schemas import HistoryRole

# Gemini distinguishes exactly two speakers
_MODEL_ROLE = {
    HistoryRole.ADMIN: "model",
    HistoryRole.STUDENT: "user",
}


@dataclasses.dataclass(frozen=True)
class HistoryEntry:
    role: HistoryRole
    content: str


class ConversationHistory:
    """Immutable, trimmed view over the replayed turns."""

    def __init__(
        self,
        items: Optional[Iterable[Any]] = None,
        limit: Optional[int] = None,
    ) -> None:
        limit = settings.CHAT_HISTORY_LIMIT if limit is None else limit
        entries = [e for e in (_coerce(item) for item in items or []) if e is not None]
        self._entries: Tuple[HistoryEntry, ...] = tuple(entries[-limit:]) if limit > 0 else ()

    @classmethod
    def empty(cls) -> "ConversationHistory":
        return cls([])

    @property
    def entries(self) -> Tuple[HistoryEntry, ...]:
        return self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[HistoryEntry]:
        return iter(self._entries)

    def recent(self, n: int) -> "ConversationHistory":
        """A narrower window over the same turns (e.g. for short prompts)."""
        return ConversationHistory(self._entries, limit=n)

    def as_model_turns(self, max_chars: Optional[int] = None) -> List[Dict[str, Any]]:
        """Turns in Gemini ``contents`` shape, each text clipped to *max_chars*."""
        max_chars = max_chars or settings.HISTORY_ITEM_MAX_CHARS
        return [
            {"role": _MODEL_ROLE[e.role], "parts": [{"text": e.content[:max_chars]}]}
            for e in self._entries
        ]

    def as_transcript(self, max_chars: int = 300) -> str:
        """Plain "role: text" lines for embedding in a prompt."""
        return "\n".join(
            f"{_MODEL_ROLE[e.role]}: {e.content[:max_chars]}" for e in self._entries
        )

    def latest_student_message(self) -> Optional[str]:
        for entry in reversed(self._entries):
            if entry.role == HistoryRole.STUDENT:
                return entry.content
        return None


def _coerce(item: Any) -> Optional[HistoryEntry]:
    """Accept HistoryEntry, ChatHistoryItem or a plain dict; drop anything else."""
    if isinstance(item, HistoryEntry):
        return item
    if isinstance(item, dict):
        role, content = item.get("role"), item.get("content")
    else:
        role, content = getattr(item, "role", None), getattr(item, "content", None)

    if not isinstance(content, str):
        return None
    try:
        return HistoryEntry(role=HistoryRole(role), content=content)
    except ValueError:
        return None
