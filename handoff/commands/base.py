"""
Base command for conversation handlers.

Builds the platform/assistant/notification adapters from settings (unless
injected), wires the State Accessor and Subscription Manager over them, and
records every result in the handoff event ledger.
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import urlencode

from sqlalchemy.orm import Session

from handoff.adapters.assistant import AssistantAdapter
from handoff.adapters.base import BaseConversationsAdapter
from handoff.adapters.conversations import ConversationsAdapter
from handoff.adapters.notifications import NotificationAdapter
from handoff.config import Settings, get_settings
from handoff.constants.conversations import (
    ASSISTANT_IDENTITY_QUERY_PARAM,
    RESPONSE_PATH,
    TOKEN_QUERY_PARAM,
)
from handoff.core.outcome import HandoffResult
from handoff.core.signature import SignatureCodec
from handoff.infra.logging_config import ActionLogger
from handoff.services.attributes_service import AttributesService
from handoff.services.handoff_event_service import HandoffEventService
from handoff.services.subscription_service import SubscriptionService


class BaseConversationsCommand:
    """
    Base for conversation handlers.
    Subclasses set MODULE (log label) and ACTION (ledger action name).
    """

    MODULE = "CONVERSATIONS"
    ACTION = "conversations"

    def __init__(
        self,
        db: Optional[Session] = None,
        conversations: Optional[BaseConversationsAdapter] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.conversations = conversations or self.get_conversations_adapter(
            self.settings
        )
        self.attributes = AttributesService(self.conversations)
        self.subscriptions = SubscriptionService(self.conversations)
        self.handoff_event_service = HandoffEventService(db) if db is not None else None
        self.logger = ActionLogger(self.MODULE)

    @staticmethod
    def get_conversations_adapter(settings: Settings) -> ConversationsAdapter:
        return ConversationsAdapter(
            account_sid=settings.twilio_account_sid,
            auth_token=settings.twilio_auth_token,
            base_url=settings.conversations_api_url,
            timeout=settings.http_timeout_seconds,
        )

    @staticmethod
    def get_assistant_adapter(settings: Settings) -> AssistantAdapter:
        return AssistantAdapter(
            account_sid=settings.twilio_account_sid,
            auth_token=settings.twilio_auth_token,
            base_url=settings.assistants_api_url,
            timeout=settings.http_timeout_seconds,
        )

    @staticmethod
    def get_notification_adapter(
        settings: Settings, conversations: BaseConversationsAdapter
    ) -> NotificationAdapter:
        return NotificationAdapter(
            account_sid=settings.twilio_account_sid,
            auth_token=settings.twilio_auth_token,
            conversations=conversations,
            sender=settings.notification_from,
            base_url=settings.messaging_api_url,
            timeout=settings.http_timeout_seconds,
        )

    def get_signature_codec(self) -> SignatureCodec:
        """Raises AuthenticationFailure when no signing secret is configured."""
        return SignatureCodec(
            self.settings.callback_signing_secret or "",
            ttl_seconds=self.settings.callback_token_ttl_seconds,
        )

    def build_callback_url(
        self, session_id: str, assistant_identity: Optional[str] = None
    ) -> str:
        """Callback URL for the assistant, carrying a token signed over `session_id`."""
        params = {TOKEN_QUERY_PARAM: self.get_signature_codec().sign(session_id)}
        if isinstance(assistant_identity, str):
            params[ASSISTANT_IDENTITY_QUERY_PARAM] = assistant_identity
        return f"{self.settings.public_base_url}{RESPONSE_PATH}?{urlencode(params)}"

    def finish(self, result: HandoffResult) -> HandoffResult:
        """Record the result in the ledger (best-effort) and return it."""
        if self.handoff_event_service is not None:
            self.handoff_event_service.record(result)
        return result
