"""Assistant service adapter: hand one user message to the AI assistant."""

from __future__ import annotations

from typing import Any, Optional

import httpx

from handoff.adapters.base import DEFAULT_TIMEOUT_SECONDS, RestAdapter
from handoff.exceptions import ValidationFailure
from handoff.schemas.conversations import AssistantDispatchRequest


class AssistantAdapter(RestAdapter):
    """
    Sends messages to the assistant. The reply arrives later, asynchronously,
    on the callback URL carried in the request.
    """

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        base_url: str = "https://assistants.twilio.com/v1",
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(base_url, account_sid, auth_token, timeout, transport)

    async def send_message(
        self, assistant_sid: Optional[str], request: AssistantDispatchRequest
    ) -> dict[str, Any]:
        if not assistant_sid:
            raise ValidationFailure("Assistant sid is not configured", code="assistant_missing")
        return await self._request(
            "POST",
            f"/Assistants/{assistant_sid}/Messages",
            json=request.model_dump(),
        )
