"""Command to drop routing flags and classification from a conversation."""

from __future__ import annotations

from handoff.commands.base import BaseConversationsCommand
from handoff.constants.conversations import (
    ASSISTANT_IS_TYPING,
    IDENTIFIED_AREA,
    IDENTIFIED_SERVICE,
)
from handoff.core.outcome import HandoffResult
from handoff.exceptions import HandoffError
from handoff.schemas.conversations import ConversationEvent
from handoff.services.attributes_service import UNSET

CLEANED_KEYS = (ASSISTANT_IS_TYPING, IDENTIFIED_SERVICE, IDENTIFIED_AREA)


class CleanAttributesCommand(BaseConversationsCommand):
    MODULE = "CLEAN_ATTRIBUTES"
    ACTION = "clean_attributes"

    async def execute(self, event: ConversationEvent) -> HandoffResult:
        """Remove the handoff keys. Failures are logged; the caller is always acknowledged."""
        ref = event.ref
        self.logger.init(conversation_sid=ref.conversation_sid)
        try:
            attributes = await self.attributes.patch(
                ref, {key: UNSET for key in CLEANED_KEYS}
            )
        except HandoffError as e:
            self.logger.failure("ERROR", e)
            return self.finish(
                HandoffResult.degraded(self.ACTION, e.code, ref, error=e)
            )
        self.logger.step("SUCCESS", attributes=sorted(attributes))
        return self.finish(HandoffResult.success(self.ACTION, ref))
