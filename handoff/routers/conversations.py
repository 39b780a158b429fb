"""
Routes for conversations platform webhooks and assistant callbacks.

Platform webhooks are always acknowledged with an empty 200; the command's
result only reaches the ledger and the logs. The assistant callback is the one
path that answers with an error status.
"""

from __future__ import annotations

from typing import Any, Dict, Type, TypeVar

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from handoff.adapters.assistant import AssistantAdapter
from handoff.adapters.base import BaseConversationsAdapter
from handoff.commands.webhooks.assistant_response_command import (
    AssistantResponseCommand,
)
from handoff.commands.webhooks.clean_attributes_command import CleanAttributesCommand
from handoff.commands.webhooks.message_added_command import MessageAddedCommand
from handoff.commands.webhooks.send_to_assistant_command import (
    SendToAssistantCommand,
)
from handoff.config import Settings
from handoff.db import get_db
from handoff.infra.logging_config import get_logger
from handoff.routers.utils.dependencies import (
    get_app_settings,
    get_assistant_adapter,
    get_conversations_adapter,
    get_event_payload,
    verify_platform_request,
)
from handoff.schemas.conversations import (
    AssistantCallbackEvent,
    ConversationEvent,
    MessageAddedEvent,
)

logger = get_logger("routers.conversations")

router = APIRouter(prefix="/channels/conversations", tags=["conversations"])

EventT = TypeVar("EventT", bound=BaseModel)


def parse_event(model: Type[EventT], payload: Dict[str, Any]) -> EventT:
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        logger.warning("Invalid %s payload: %s", model.__name__, e)
        raise HTTPException(status_code=400, detail="Invalid event payload") from e


@router.post("/messageAdded", dependencies=[Depends(verify_platform_request)])
async def message_added(
    payload: Dict[str, Any] = Depends(get_event_payload),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    conversations: BaseConversationsAdapter = Depends(get_conversations_adapter),
    assistant: AssistantAdapter = Depends(get_assistant_adapter),
) -> Response:
    """Route a new message to the assistant unless a human owns the conversation."""
    event = parse_event(MessageAddedEvent, payload)
    command = MessageAddedCommand(db, conversations, assistant, settings)
    await command.execute(event)
    return Response(status_code=200)


@router.post("/send-to-assistant", dependencies=[Depends(verify_platform_request)])
async def send_to_assistant(
    payload: Dict[str, Any] = Depends(get_event_payload),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    conversations: BaseConversationsAdapter = Depends(get_conversations_adapter),
    assistant: AssistantAdapter = Depends(get_assistant_adapter),
) -> Response:
    """Attach the assistant to a conversation and forward the triggering message."""
    event = parse_event(MessageAddedEvent, payload)
    command = SendToAssistantCommand(db, conversations, assistant, settings)
    await command.execute(event)
    return Response(status_code=200)


@router.post("/clean-attributes", dependencies=[Depends(verify_platform_request)])
async def clean_attributes(
    payload: Dict[str, Any] = Depends(get_event_payload),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    conversations: BaseConversationsAdapter = Depends(get_conversations_adapter),
) -> Response:
    """Drop typing and classification keys from the conversation attributes."""
    event = parse_event(ConversationEvent, payload)
    command = CleanAttributesCommand(db, conversations, settings)
    await command.execute(event)
    return Response(status_code=200)


@router.post("/response")
async def assistant_response(
    payload: Dict[str, Any] = Depends(get_event_payload),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    conversations: BaseConversationsAdapter = Depends(get_conversations_adapter),
) -> dict:
    """
    Assistant callback. The signed `_token` query parameter is verified before
    anything else; errors are answered with 403/400/5xx.
    """
    event = parse_event(AssistantCallbackEvent, payload)
    command = AssistantResponseCommand(db, conversations, settings)
    await command.execute(event)
    return {}
