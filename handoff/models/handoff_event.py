"""
HandoffEvent model: one row per handled invocation (message routed, callback
delivered, handover performed, ...) with its typed outcome.

Immutable events only (insert). Query by conversation_sid, order by created_at
to follow who owned the channel and what failed.
"""

from __future__ import annotations

import uuid

from sqlalchemy import JSON, Column, Index, String, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB

from handoff.db import Base
from handoff.models.mixins import TimestampMixin


class HandoffEvent(Base, TimestampMixin):
    __tablename__ = "handoff_events"

    __table_args__ = (
        Index(
            "ix_handoff_events_conversation_created",
            "conversation_sid",
            "created_at",
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    action = Column(String(64), nullable=False)  # e.g. 'message_added'
    outcome = Column(String(16), nullable=False)  # 'success' | 'degraded' | 'fatal'
    reason = Column(String(64), nullable=False)
    service_sid = Column(String(64), nullable=True)
    conversation_sid = Column(String(64), nullable=True)
    detail = Column(
        JSON().with_variant(JSONB(), "postgresql"), nullable=True, default=dict
    )
    error = Column(Text, nullable=True)
