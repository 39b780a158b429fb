"""
Service for persisting handoff outcomes.

Events are immutable; only insert. Recording is best-effort: a failure to
persist is logged and never changes what the caller receives.
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session

from handoff.core.outcome import HandoffResult
from handoff.infra.logging_config import get_logger
from handoff.models.handoff_event import HandoffEvent

logger = get_logger("handoff_events")


class HandoffEventService:
    """Create and read handoff events. No update/delete (immutable)."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def create_event_from_result(self, result: HandoffResult) -> HandoffEvent:
        """Persist a handler result as a handoff event."""
        event = HandoffEvent(
            action=result.action,
            outcome=result.outcome.value,
            reason=result.reason,
            service_sid=result.ref.service_sid if result.ref else None,
            conversation_sid=result.ref.conversation_sid if result.ref else None,
            detail=result.detail or {},
            error=result.error,
        )
        self.db.add(event)
        self.db.commit()
        self.db.refresh(event)
        return event

    def record(self, result: HandoffResult) -> Optional[HandoffEvent]:
        """Persist `result`, logging instead of raising on database errors."""
        try:
            return self.create_event_from_result(result)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(
                "Failed to record handoff event %s/%s: %s",
                result.action,
                result.outcome.value,
                e,
            )
            return None

    def get_handoff_event(self, event_id: UUID) -> Optional[HandoffEvent]:
        """Fetch a single handoff event by ID."""
        return self.db.query(HandoffEvent).filter(HandoffEvent.id == event_id).first()

    def get_handoff_events_query(
        self,
        conversation_sid: Optional[str] = None,
        outcome: Optional[str] = None,
        action: Optional[str] = None,
    ) -> Query[HandoffEvent]:
        """Query for handoff events, newest first, with optional filters (for pagination)."""
        q = self.db.query(HandoffEvent).order_by(HandoffEvent.created_at.desc())
        if conversation_sid is not None:
            q = q.filter(HandoffEvent.conversation_sid == conversation_sid)
        if outcome is not None:
            q = q.filter(HandoffEvent.outcome == outcome)
        if action is not None:
            q = q.filter(HandoffEvent.action == action)
        return q
