"""Handoff events API: list and get recorded handler outcomes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi_pagination import Page, Params
from fastapi_pagination.ext.sqlalchemy import paginate
from sqlalchemy.orm import Session

from handoff.core.outcome import Outcome
from handoff.db import get_db
from handoff.models.handoff_event import HandoffEvent
from handoff.routers.utils.dependencies import get_handoff_event_by_id
from handoff.schemas.handoff_event import HandoffEventRead
from handoff.services.handoff_event_service import HandoffEventService

router = APIRouter(prefix="/handoff-events", tags=["handoff-events"])


@router.get("", response_model=Page[HandoffEventRead])
def list_handoff_events(
    params: Params = Depends(),
    conversation_sid: str | None = Query(None),
    outcome: Outcome | None = Query(None),
    action: str | None = Query(None),
    db: Session = Depends(get_db),
) -> Page[HandoffEventRead]:
    """List handoff events, newest first."""
    query = HandoffEventService(db).get_handoff_events_query(
        conversation_sid=conversation_sid,
        outcome=outcome.value if outcome is not None else None,
        action=action,
    )
    return paginate(query, params=params)


@router.get("/{event_id}", response_model=HandoffEventRead)
def get_handoff_event(
    event: HandoffEvent = Depends(get_handoff_event_by_id),
) -> HandoffEventRead:
    """Get a handoff event by ID."""
    return HandoffEventRead.model_validate(event)
