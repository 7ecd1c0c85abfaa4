"""Session-scoped conversation state.

One ``ConversationState`` per chat session: created at session start,
restored on resume and discarded on reset. Every transition returns a new
object; nothing here is shared between conversations.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Mapping, NamedTuple, Optional

from . import collector
from .contracts import CollectedFields


class ExtractionToken(NamedTuple):
    """Identifies the transcript revision a bulk extraction was requested for."""

    session_id: str
    turn_count: int


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ConversationState:
    session_id: str
    customer_id: str
    fields: CollectedFields = field(default_factory=CollectedFields)
    locked_fields: frozenset[str] = frozenset()
    turn_count: int = 0
    created_at: datetime = field(default_factory=_now)

    @classmethod
    def start(cls, session_id: str, customer_id: str) -> "ConversationState":
        return cls(session_id=session_id, customer_id=customer_id)

    @property
    def token(self) -> ExtractionToken:
        return ExtractionToken(self.session_id, self.turn_count)

    def matches(self, token: ExtractionToken) -> bool:
        return token == self.token

    def with_extraction(self, partial: Mapping[str, str] | CollectedFields) -> "ConversationState":
        merged = collector.merge_extraction(self.fields, partial, self.locked_fields)
        if merged is self.fields:
            return self
        return replace(self, fields=merged)

    def with_manual_edit(self, field_name: str, value: Optional[str]) -> "ConversationState":
        fields, locked = collector.record_manual_edit(self.fields, self.locked_fields, field_name, value)
        return replace(self, fields=fields, locked_fields=locked)

    def with_service(self, name: str) -> "ConversationState":
        fields, locked = collector.select_service(self.fields, self.locked_fields, name)
        return replace(self, fields=fields, locked_fields=locked)

    def next_turn(self) -> "ConversationState":
        return replace(self, turn_count=self.turn_count + 1)

    def is_complete(self) -> bool:
        return collector.is_complete(self.fields)

    def missing(self) -> list[str]:
        return collector.missing_fields(self.fields)
