"""
Conversations platform adapter (Twilio Conversations REST API).

Every operation is a single HTTP round trip through httpx with the
configured timeout. List endpoints follow meta.next_page_url.
"""

from __future__ import annotations

import json
from typing import Any, Mapping, Optional

import httpx

from handoff.adapters.base import (
    DEFAULT_TIMEOUT_SECONDS,
    BaseConversationsAdapter,
    RestAdapter,
)
from handoff.constants.conversations import SubscriptionKind
from handoff.core.signature import verify_platform_signature
from handoff.infra.logging_config import get_logger
from handoff.schemas.conversations import (
    ConversationRef,
    OutboundMessage,
    Participant,
    Subscription,
)

logger = get_logger("conversations_adapter")

PAGE_SIZE = 50


def _configuration_form(configuration: Mapping[str, Any]) -> dict[str, Any]:
    """{"flow_sid": "FW.."} -> {"Configuration.FlowSid": "FW.."}."""
    form: dict[str, Any] = {}
    for key, value in configuration.items():
        if value is None:
            continue
        name = "".join(part.capitalize() for part in key.split("_"))
        form[f"Configuration.{name}"] = value
    return form


class ConversationsAdapter(RestAdapter, BaseConversationsAdapter):
    """Conversations platform over REST."""

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        base_url: str = "https://conversations.twilio.com/v1",
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(base_url, account_sid, auth_token, timeout, transport)
        self._auth_token = auth_token

    @staticmethod
    def _conversation_path(ref: ConversationRef) -> str:
        return f"/Services/{ref.service_sid}/Conversations/{ref.conversation_sid}"

    async def _list(self, path: str, key: str) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        url: Optional[str] = path
        params: Optional[dict[str, Any]] = {"PageSize": PAGE_SIZE}
        while url:
            page = await self._request("GET", url, params=params)
            items.extend(page.get(key) or [])
            url = (page.get("meta") or {}).get("next_page_url")
            # next_page_url already carries paging parameters
            params = None
        return items

    async def fetch_attributes(self, ref: ConversationRef) -> dict[str, Any]:
        conversation = await self._request("GET", self._conversation_path(ref))
        raw = conversation.get("attributes")
        if not raw:
            return {}
        if isinstance(raw, dict):
            return raw
        try:
            attributes = json.loads(raw)
        except ValueError:
            logger.warning(
                "Conversation %s has non-JSON attributes; treating as empty",
                ref.conversation_sid,
            )
            return {}
        return attributes if isinstance(attributes, dict) else {}

    async def update_attributes(
        self, ref: ConversationRef, attributes: dict[str, Any]
    ) -> None:
        await self._request(
            "POST",
            self._conversation_path(ref),
            data={"Attributes": json.dumps(attributes)},
        )

    async def list_subscriptions(self, ref: ConversationRef) -> list[Subscription]:
        rows = await self._list(f"{self._conversation_path(ref)}/Webhooks", "webhooks")
        return [
            Subscription(
                sid=row["sid"],
                target=row.get("target") or "",
                configuration=row.get("configuration") or {},
            )
            for row in rows
        ]

    async def remove_subscription(self, ref: ConversationRef, sid: str) -> None:
        await self._request("DELETE", f"{self._conversation_path(ref)}/Webhooks/{sid}")

    async def create_subscription(
        self,
        ref: ConversationRef,
        kind: SubscriptionKind,
        configuration: Mapping[str, Any],
    ) -> Subscription:
        data = {"Target": kind.value, **_configuration_form(configuration)}
        row = await self._request(
            "POST", f"{self._conversation_path(ref)}/Webhooks", data=data
        )
        return Subscription(
            sid=row.get("sid") or "",
            target=row.get("target") or kind.value,
            configuration=row.get("configuration") or dict(configuration),
        )

    async def list_participants(self, ref: ConversationRef) -> list[Participant]:
        rows = await self._list(
            f"{self._conversation_path(ref)}/Participants", "participants"
        )
        return [
            Participant(
                sid=row["sid"],
                identity=row.get("identity"),
                messaging_binding=row.get("messaging_binding"),
            )
            for row in rows
        ]

    async def create_message(
        self, ref: ConversationRef, message: OutboundMessage
    ) -> Optional[str]:
        fields = {
            "Body": message.body,
            "Author": message.author,
            "ContentSid": message.content_sid,
            "ContentVariables": message.content_variables,
        }
        data = {key: value for key, value in fields.items() if value is not None}
        row = await self._request(
            "POST", f"{self._conversation_path(ref)}/Messages", data=data
        )
        return row.get("sid")

    def verify_webhook(
        self,
        url: str,
        params: Optional[Mapping[str, Any]],
        signature: Optional[str],
    ) -> bool:
        """Validate X-Twilio-Signature against the account auth token."""
        return verify_platform_signature(self._auth_token, url, params, signature)
