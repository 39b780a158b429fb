"""Pydantic schemas for HandoffEvent."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel


class HandoffEventRead(BaseModel):
    """Handoff event for API responses."""

    id: UUID
    action: str
    outcome: str
    reason: str
    service_sid: Optional[str] = None
    conversation_sid: Optional[str] = None
    detail: Optional[dict[str, Any]] = None
    error: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}
