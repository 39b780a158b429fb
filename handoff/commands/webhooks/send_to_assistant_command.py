"""
Command to attach the assistant to a conversation and forward a message.

Replaces every conversation webhook with the single assistant-callback
webhook (pointing at message-added), then dispatches like message-added.
Used when a conversation starts with, or returns to, the assistant.
"""

from __future__ import annotations

from handoff.commands.webhooks.base_assistant_dispatch import (
    BaseAssistantDispatchCommand,
)
from handoff.constants.conversations import (
    ASSISTANT_IS_TYPING,
    INFO_USER,
    SubscriptionKind,
)
from handoff.core.outcome import HandoffResult
from handoff.core.state_machine import attach_assistant, derive_state
from handoff.exceptions import HandoffError
from handoff.schemas.conversations import MessageAddedEvent
from handoff.services.attributes_service import UNSET
from handoff.services.subscription_service import assistant_callback_configuration


class SendToAssistantCommand(BaseAssistantDispatchCommand):
    MODULE = "SEND_TO_ASSISTANT"
    ACTION = "send_to_assistant"

    async def execute(self, event: MessageAddedEvent) -> HandoffResult:
        ref = event.ref
        self.logger.init(conversation_sid=ref.conversation_sid)
        try:
            subscriptions = await self.subscriptions.list_subscriptions(ref)
            state = attach_assistant(derive_state(subscriptions))
            await self.subscriptions.swap(
                ref,
                SubscriptionKind.ASSISTANT_CALLBACK,
                assistant_callback_configuration(self.settings.public_base_url),
                existing=subscriptions,
            )
            self.logger.step("WEBHOOK_ATTACHED", state=state.value)

            delta = {
                ASSISTANT_IS_TYPING: True,
                INFO_USER: UNSET if event.info_user is None else event.info_user,
            }
            return await self.dispatch(event, ref, delta)
        except HandoffError as e:
            self.logger.failure("ERROR", e)
            return self.finish(
                HandoffResult.degraded(self.ACTION, e.code, ref, error=e)
            )
        except Exception as e:
            self.logger.exception("Unexpected error attaching assistant: %s", e)
            return self.finish(
                HandoffResult.degraded(self.ACTION, "unexpected_error", ref, error=e)
            )
