"""
Tool routes the assistant calls mid-conversation.

Answers are plain text: the assistant feeds them back into its own context.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Header
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from handoff.adapters.base import BaseConversationsAdapter
from handoff.adapters.notifications import NotificationAdapter
from handoff.commands.tools.handover_command import HandoverCommand
from handoff.commands.tools.send_message_command import SendMessageCommand
from handoff.config import Settings
from handoff.constants.conversations import TOOL_SESSION_HEADER
from handoff.db import get_db
from handoff.routers.conversations import parse_event
from handoff.routers.utils.dependencies import (
    get_app_settings,
    get_conversations_adapter,
    get_event_payload,
    get_notification_adapter,
)
from handoff.schemas.conversations import HandoverToolRequest, SendMessageToolRequest

router = APIRouter(prefix="/tools", tags=["tools"])


@router.post("/send-message", response_class=PlainTextResponse)
async def send_message(
    payload: Dict[str, Any] = Depends(get_event_payload),
    session_id: Optional[str] = Header(None, alias=TOOL_SESSION_HEADER),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    conversations: BaseConversationsAdapter = Depends(get_conversations_adapter),
) -> PlainTextResponse:
    """Post a content template as the assistant."""
    request = parse_event(SendMessageToolRequest, payload)
    reply = await SendMessageCommand(db, conversations, settings).execute(
        request, session_id
    )
    return PlainTextResponse(reply.text, status_code=reply.status_code)


@router.post("/studio-handover", response_class=PlainTextResponse)
async def studio_handover(
    payload: Dict[str, Any] = Depends(get_event_payload),
    session_id: Optional[str] = Header(None, alias=TOOL_SESSION_HEADER),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    conversations: BaseConversationsAdapter = Depends(get_conversations_adapter),
    notifications: NotificationAdapter = Depends(get_notification_adapter),
) -> PlainTextResponse:
    """Hand the conversation over to the human workflow."""
    request = parse_event(HandoverToolRequest, payload)
    command = HandoverCommand(db, conversations, notifications, settings)
    reply = await command.execute(request, session_id)
    return PlainTextResponse(reply.text, status_code=reply.status_code)
