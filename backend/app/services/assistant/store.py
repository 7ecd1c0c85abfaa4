"""Persistence of ``ConversationState`` across requests."""

from __future__ import annotations

from contextlib import contextmanager
from datetime import timezone
from typing import Callable, Iterator, Optional

from sqlalchemy import delete
from sqlalchemy.orm import Session

from app.models.assistant import AssistantSessionRecord

from .contracts import ALL_FIELDS, CollectedFields
from .session import ConversationState


class SessionStateStore:
    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    @contextmanager
    def _db(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def load(self, session_id: str) -> Optional[ConversationState]:
        with self._db() as db:
            row = db.get(AssistantSessionRecord, session_id)
            return _to_state(row) if row is not None else None

    def save(self, state: ConversationState) -> None:
        with self._db() as db:
            row = db.get(AssistantSessionRecord, state.session_id)
            if row is None:
                row = AssistantSessionRecord(session_id=state.session_id, customer_id=state.customer_id)
                db.add(row)
            row.fields = state.fields.to_partial()
            row.locked_fields = sorted(state.locked_fields)
            row.turn_count = state.turn_count

    def discard(self, session_id: str) -> None:
        with self._db() as db:
            db.execute(delete(AssistantSessionRecord).where(AssistantSessionRecord.session_id == session_id))


def _to_state(row: AssistantSessionRecord) -> ConversationState:
    stored = row.fields or {}
    extra = {}
    if row.created_at is not None:
        created_at = row.created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        extra["created_at"] = created_at
    return ConversationState(
        session_id=row.session_id,
        customer_id=row.customer_id,
        fields=CollectedFields(**{name: stored.get(name) for name in ALL_FIELDS}),
        locked_fields=frozenset(row.locked_fields or ()),
        turn_count=row.turn_count or 0,
        **extra,
    )
