"""
Shared dispatch step for handlers that forward a user message to the assistant.

Signs a callback URL, marks the assistant as typing, and sends the message.
Dispatch failures are logged and reported as a degraded result; the typing
flag set for this dispatch is cleared again on that path.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from sqlalchemy.orm import Session

from handoff.adapters.assistant import AssistantAdapter
from handoff.adapters.base import BaseConversationsAdapter
from handoff.commands.base import BaseConversationsCommand
from handoff.config import Settings
from handoff.core.outcome import HandoffResult
from handoff.core.session_key import build_session_id, qualify_identity
from handoff.exceptions import HandoffError
from handoff.schemas.conversations import (
    AssistantDispatchRequest,
    ConversationRef,
    MessageAddedEvent,
)


class BaseAssistantDispatchCommand(BaseConversationsCommand):
    def __init__(
        self,
        db: Optional[Session] = None,
        conversations: Optional[BaseConversationsAdapter] = None,
        assistant: Optional[AssistantAdapter] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        super().__init__(db, conversations, settings)
        self.assistant = assistant or self.get_assistant_adapter(self.settings)

    async def dispatch(
        self,
        event: MessageAddedEvent,
        ref: ConversationRef,
        attributes_delta: Mapping[str, Any],
    ) -> HandoffResult:
        identity = qualify_identity(event.author)
        session_id = build_session_id(ref)
        assistant_sid = event.assistant_sid or self.settings.assistant_sid
        self.logger.step(
            "VARIABLES",
            assistant_sid=assistant_sid,
            identity=identity,
            conversation_sid=ref.conversation_sid,
        )

        try:
            callback_url = self.build_callback_url(session_id, event.assistant_identity)
        except HandoffError as e:
            self.logger.failure("SIGNING_UNAVAILABLE", e)
            return self.finish(
                HandoffResult.degraded(self.ACTION, "signing_unavailable", ref, error=e)
            )

        request = AssistantDispatchRequest(
            body=event.body,
            identity=identity,
            session_id=session_id,
            webhook=callback_url,
        )
        self.logger.step("REQUEST", identity=identity, session_id=session_id)

        typing_set = True
        try:
            await self.attributes.patch(ref, attributes_delta)
        except HandoffError as e:
            # Typing is cosmetic; still hand the message to the assistant
            typing_set = False
            self.logger.failure("ATTRIBUTES_UPDATE_FAILED", e)

        try:
            response = await self.assistant.send_message(assistant_sid, request)
        except Exception as e:
            self.logger.failure("ERROR", e, conversation_sid=ref.conversation_sid)
            if typing_set:
                await self._clear_typing(ref)
            return self.finish(
                HandoffResult.degraded(
                    self.ACTION, "assistant_dispatch_failed", ref, error=e
                )
            )

        self.logger.step("SUCCESS", response=response)
        if not typing_set:
            return self.finish(
                HandoffResult.degraded(
                    self.ACTION, "typing_not_set", ref, assistant_sid=assistant_sid
                )
            )
        return self.finish(
            HandoffResult.success(
                self.ACTION, ref, reason="dispatched", assistant_sid=assistant_sid
            )
        )

    async def _clear_typing(self, ref: ConversationRef) -> None:
        try:
            await self.attributes.set_typing(ref, False)
        except HandoffError as e:
            self.logger.failure("CLEAR_TYPING_FAILED", e)
