"""
Collaborator interfaces.

The conversations platform owns messages, participants, attributes and
webhooks; this service only calls it through the contract below. REST
adapters share `RestAdapter` for auth, timeouts and error translation.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional

import httpx

from handoff.constants.conversations import SubscriptionKind
from handoff.exceptions import UpstreamFailure
from handoff.schemas.conversations import (
    ConversationRef,
    OutboundMessage,
    Participant,
    Subscription,
)

DEFAULT_TIMEOUT_SECONDS = 10.0


class BaseConversationsAdapter(ABC):
    """Contract for the conversations platform. All calls are network round trips."""

    @abstractmethod
    async def fetch_attributes(self, ref: ConversationRef) -> dict[str, Any]:
        """Return the conversation's attributes document (empty dict if unset)."""
        ...

    @abstractmethod
    async def update_attributes(
        self, ref: ConversationRef, attributes: dict[str, Any]
    ) -> None:
        """Overwrite the attributes document."""
        ...

    @abstractmethod
    async def list_subscriptions(self, ref: ConversationRef) -> list[Subscription]:
        ...

    @abstractmethod
    async def remove_subscription(self, ref: ConversationRef, sid: str) -> None:
        ...

    @abstractmethod
    async def create_subscription(
        self,
        ref: ConversationRef,
        kind: SubscriptionKind,
        configuration: Mapping[str, Any],
    ) -> Subscription:
        ...

    @abstractmethod
    async def list_participants(self, ref: ConversationRef) -> list[Participant]:
        ...

    @abstractmethod
    async def create_message(
        self, ref: ConversationRef, message: OutboundMessage
    ) -> Optional[str]:
        """Create a message; return its sid when the platform reports one."""
        ...

    def verify_webhook(
        self,
        url: str,
        params: Optional[Mapping[str, Any]],
        signature: Optional[str],
    ) -> bool:
        """
        Verify an inbound platform webhook. Override if the platform signs requests.
        Return True if valid or verification not supported; False to reject.
        """
        return True


class RestAdapter:
    """Basic-auth JSON/form client with bounded timeouts."""

    def __init__(
        self,
        base_url: str,
        account_sid: str,
        auth_token: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._auth = (account_sid, auth_token)
        self._timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            auth=self._auth,
            timeout=self._timeout,
            transport=self._transport,
        )

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        data: Optional[Mapping[str, Any]] = None,
        json: Optional[Any] = None,
    ) -> dict[str, Any]:
        """
        Send one request. Timeouts, transport errors and non-2xx responses
        are raised as UpstreamFailure.
        """
        try:
            async with self._client() as client:
                resp = await client.request(
                    method, url, params=params, data=data, json=json
                )
        except httpx.TimeoutException as e:
            raise UpstreamFailure(
                f"{method} {url} timed out", code="upstream_timeout"
            ) from e
        except httpx.HTTPError as e:
            raise UpstreamFailure(f"{method} {url} failed: {e}") from e

        if resp.status_code >= 400:
            raise UpstreamFailure(
                f"HTTP {resp.status_code}: {resp.text[:500] if resp.text else 'no body'}",
                status_code=resp.status_code,
            )
        if resp.status_code == 204 or not resp.content:
            return {}
        try:
            payload = resp.json()
        except ValueError as e:
            raise UpstreamFailure(f"Invalid JSON from {method} {url}: {e}") from e
        return payload if isinstance(payload, dict) else {"data": payload}
