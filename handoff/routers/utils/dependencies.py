from typing import Any, Dict
from uuid import UUID

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from handoff.adapters.assistant import AssistantAdapter
from handoff.adapters.base import BaseConversationsAdapter
from handoff.adapters.notifications import NotificationAdapter
from handoff.commands.base import BaseConversationsCommand
from handoff.config import Settings, get_settings
from handoff.db import get_db
from handoff.infra.logging_config import get_logger
from handoff.models.handoff_event import HandoffEvent
from handoff.services.handoff_event_service import HandoffEventService

logger = get_logger("routers")

PLATFORM_SIGNATURE_HEADER = "X-Twilio-Signature"


def get_app_settings() -> Settings:
    """FastAPI dependency for settings (overridable in tests)."""
    return get_settings()


def get_conversations_adapter(
    settings: Settings = Depends(get_app_settings),
) -> BaseConversationsAdapter:
    return BaseConversationsCommand.get_conversations_adapter(settings)


def get_assistant_adapter(
    settings: Settings = Depends(get_app_settings),
) -> AssistantAdapter:
    return BaseConversationsCommand.get_assistant_adapter(settings)


def get_notification_adapter(
    settings: Settings = Depends(get_app_settings),
    conversations: BaseConversationsAdapter = Depends(get_conversations_adapter),
) -> NotificationAdapter:
    return BaseConversationsCommand.get_notification_adapter(settings, conversations)


async def read_form_or_json(request: Request) -> Dict[str, Any]:
    """Request body as a dict: form-encoded or JSON. Anything else is empty."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError as e:
            logger.warning("Invalid JSON body on %s: %s", request.url.path, e)
            raise HTTPException(status_code=400, detail="Invalid JSON body") from e
        return body if isinstance(body, dict) else {}
    if content_type.startswith(
        ("application/x-www-form-urlencoded", "multipart/form-data")
    ):
        form = await request.form()
        return {key: value for key, value in form.items() if isinstance(value, str)}
    return {}


async def get_event_payload(request: Request) -> Dict[str, Any]:
    """FastAPI dependency: body fields with query parameters merged over them."""
    payload = await read_form_or_json(request)
    payload.update(request.query_params)
    return payload


async def verify_platform_request(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    conversations: BaseConversationsAdapter = Depends(get_conversations_adapter),
) -> None:
    """
    FastAPI dependency: reject platform webhooks with a bad X-Twilio-Signature.
    No-op unless VALIDATE_PLATFORM_SIGNATURE is set.
    """
    if not settings.validate_platform_signature:
        return
    url = f"{settings.public_base_url}{request.url.path}"
    if request.url.query:
        url = f"{url}?{request.url.query}"
    params = await read_form_or_json(request)
    signature = request.headers.get(PLATFORM_SIGNATURE_HEADER)
    if not conversations.verify_webhook(url, params, signature):
        logger.warning("Rejected platform webhook on %s: bad signature", request.url.path)
        raise HTTPException(status_code=403, detail="Invalid platform signature")


def get_handoff_event_by_id(
    event_id: UUID,
    db: Session = Depends(get_db),
) -> HandoffEvent:
    """FastAPI dependency to get a handoff event by ID."""
    event = HandoffEventService(db).get_handoff_event(event_id)
    if event is None:
        raise HTTPException(status_code=404, detail="Handoff event not found")
    return event
