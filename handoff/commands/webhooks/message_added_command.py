"""
Command to route a new conversation message.

Guards, in order: a human workflow already subscribed, then more than one
participant. Otherwise the message goes to the assistant. The platform is
always acknowledged, whatever happens downstream.
"""

from __future__ import annotations

from handoff.commands.webhooks.base_assistant_dispatch import (
    BaseAssistantDispatchCommand,
)
from handoff.constants.conversations import ASSISTANT_IS_TYPING
from handoff.core.outcome import HandoffResult
from handoff.core.state_machine import HandoffState, derive_state
from handoff.exceptions import HandoffError
from handoff.schemas.conversations import MessageAddedEvent


class MessageAddedCommand(BaseAssistantDispatchCommand):
    """Forward a user message to the assistant unless a human owns the conversation."""

    MODULE = "MESSAGE_ADDED"
    ACTION = "message_added"

    async def execute(self, event: MessageAddedEvent) -> HandoffResult:
        """
        Route one onMessageAdded event.

        Args:
            event: The platform's message-added payload.

        Returns:
            HandoffResult: success when dispatched or deliberately ignored,
                degraded when a downstream call failed. Never raises.
        """
        ref = event.ref
        self.logger.init(conversation_sid=ref.conversation_sid)
        try:
            subscriptions = await self.subscriptions.list_subscriptions(ref)
            if derive_state(subscriptions) == HandoffState.HUMAN_ACTIVE:
                self.logger.step("STUDIO_WEBHOOK_SET")
                return self.finish(
                    HandoffResult.success(
                        self.ACTION, ref, reason="human_workflow_subscribed"
                    )
                )

            participants = await self.conversations.list_participants(ref)
            if derive_state(subscriptions, len(participants)) == HandoffState.HUMAN_ACTIVE:
                self.logger.step("MULTIPLE_HUMANS", participants=len(participants))
                return self.finish(
                    HandoffResult.success(self.ACTION, ref, reason="human_present")
                )

            return await self.dispatch(event, ref, {ASSISTANT_IS_TYPING: True})
        except HandoffError as e:
            self.logger.failure("ERROR", e)
            return self.finish(
                HandoffResult.degraded(self.ACTION, e.code, ref, error=e)
            )
        except Exception as e:
            self.logger.exception("Unexpected error routing message: %s", e)
            return self.finish(
                HandoffResult.degraded(self.ACTION, "unexpected_error", ref, error=e)
            )
