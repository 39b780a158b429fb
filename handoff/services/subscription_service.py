"""
Webhook Subscription Manager.

At most one of {assistant-callback, human-workflow} should be subscribed to a
conversation. Without an atomic swap on the platform, every transition runs
remove-all-then-create: existing webhooks are removed concurrently, then
exactly one new webhook is created. Messages arriving between the two steps
are not routed anywhere. Removal failures are logged and not rolled back; the
new subscription is created regardless.
"""

from __future__ import annotations

import asyncio
from typing import Any, Mapping, Optional, Sequence

from handoff.adapters.base import BaseConversationsAdapter
from handoff.constants.conversations import (
    MESSAGE_ADDED_FILTER,
    MESSAGE_ADDED_PATH,
    SubscriptionKind,
)
from handoff.infra.logging_config import get_logger
from handoff.schemas.conversations import ConversationRef, Subscription

logger = get_logger("subscriptions")


def assistant_callback_configuration(base_url: str) -> dict[str, Any]:
    """Route onMessageAdded back to this service's message-added endpoint."""
    return {
        "method": "POST",
        "url": f"{base_url.rstrip('/')}{MESSAGE_ADDED_PATH}",
        "filters": [MESSAGE_ADDED_FILTER],
    }


def human_workflow_configuration(flow_sid: str) -> dict[str, Any]:
    return {"flow_sid": flow_sid}


class SubscriptionService:
    def __init__(self, conversations: BaseConversationsAdapter) -> None:
        self._conversations = conversations

    async def list_subscriptions(self, ref: ConversationRef) -> list[Subscription]:
        return await self._conversations.list_subscriptions(ref)

    async def remove_all(
        self,
        ref: ConversationRef,
        existing: Optional[Sequence[Subscription]] = None,
    ) -> int:
        """
        Remove every subscription concurrently. Returns how many removals failed.

        Pass `existing` to reuse a list the caller already fetched.
        """
        subscriptions = (
            list(existing)
            if existing is not None
            else await self.list_subscriptions(ref)
        )
        if not subscriptions:
            return 0
        results = await asyncio.gather(
            *(
                self._conversations.remove_subscription(ref, s.sid)
                for s in subscriptions
            ),
            return_exceptions=True,
        )
        failures = 0
        for subscription, result in zip(subscriptions, results):
            if isinstance(result, BaseException):
                failures += 1
                logger.warning(
                    "Failed to remove webhook %s (%s) from conversation %s: %s",
                    subscription.sid,
                    subscription.target,
                    ref.conversation_sid,
                    result,
                )
        return failures

    async def create(
        self,
        ref: ConversationRef,
        kind: SubscriptionKind,
        configuration: Mapping[str, Any],
    ) -> Subscription:
        return await self._conversations.create_subscription(ref, kind, configuration)

    async def swap(
        self,
        ref: ConversationRef,
        kind: SubscriptionKind,
        configuration: Mapping[str, Any],
        existing: Optional[Sequence[Subscription]] = None,
    ) -> Subscription:
        """Remove all subscriptions, then create exactly one of `kind`."""
        await self.remove_all(ref, existing)
        return await self.create(ref, kind, configuration)
