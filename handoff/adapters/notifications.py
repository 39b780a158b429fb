"""
Direct user notifications.

Used when a request cannot be completed inside the conversation flow (e.g. a
handover blocked by a missing classification). Participants with a messaging
binding (SMS, WhatsApp) are messaged directly from the configured sender;
chat-only conversations get the notice as a conversation message instead.
"""

from __future__ import annotations

from typing import Optional

import httpx

from handoff.adapters.base import (
    DEFAULT_TIMEOUT_SECONDS,
    BaseConversationsAdapter,
    RestAdapter,
)
from handoff.infra.logging_config import get_logger
from handoff.schemas.conversations import ConversationRef, OutboundMessage

logger = get_logger("notifications")

WHATSAPP_PREFIX = "whatsapp:"


class NotificationAdapter(RestAdapter):
    """Send direct notifications through the messaging API."""

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        conversations: BaseConversationsAdapter,
        sender: Optional[str] = None,
        base_url: str = "https://api.twilio.com/2010-04-01",
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(base_url, account_sid, auth_token, timeout, transport)
        self._account_sid = account_sid
        self._conversations = conversations
        self._sender = sender

    def _sender_for(self, address: str) -> Optional[str]:
        """WhatsApp recipients need a WhatsApp sender."""
        if not self._sender:
            return None
        if address.startswith(WHATSAPP_PREFIX) and not self._sender.startswith(
            WHATSAPP_PREFIX
        ):
            return f"{WHATSAPP_PREFIX}{self._sender}"
        return self._sender

    async def send_direct(self, to: str, body: str) -> Optional[str]:
        sender = self._sender_for(to)
        if sender is None:
            return None
        row = await self._request(
            "POST",
            f"/Accounts/{self._account_sid}/Messages.json",
            data={"To": to, "From": sender, "Body": body},
        )
        return row.get("sid")

    async def notify(
        self, ref: ConversationRef, body: str, author: Optional[str] = None
    ) -> Optional[str]:
        """
        Tell the end user something went wrong. Returns the created message sid.
        Falls back to a conversation message when no direct address is known.
        """
        participants = await self._conversations.list_participants(ref)
        address = next((p.address for p in participants if p.address), None)
        if address and self._sender:
            logger.info(
                "Sending direct notification for conversation %s",
                ref.conversation_sid,
            )
            return await self.send_direct(address, body)
        return await self._conversations.create_message(
            ref, OutboundMessage(body=body, author=author)
        )
