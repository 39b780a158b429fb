"""
Contracts for conversations, subscriptions and the assistant round trip.

Inbound event models accept the platform's field names (ConversationSid,
ChatServiceSid, ...) and ignore anything else the platform sends.
"""

from __future__ import annotations

import json
from typing import Any, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from handoff.constants.conversations import SubscriptionKind


def _string_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _variables_to_json(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        return value
    return json.dumps(value)


# -----------------------------------------------------------------------------
# Platform resources
# -----------------------------------------------------------------------------


class ConversationRef(BaseModel):
    """A conversation on the platform, identified by (service, conversation)."""

    model_config = ConfigDict(frozen=True)

    service_sid: str
    conversation_sid: str


class Subscription(BaseModel):
    """A conversation-scoped webhook."""

    sid: str
    target: str
    configuration: dict[str, Any] = Field(default_factory=dict)

    @property
    def kind(self) -> Optional[SubscriptionKind]:
        try:
            return SubscriptionKind(self.target)
        except ValueError:
            return None


class Participant(BaseModel):
    sid: str
    identity: Optional[str] = None
    messaging_binding: Optional[dict[str, Any]] = None

    @property
    def address(self) -> Optional[str]:
        """Phone/WhatsApp address for non-chat participants."""
        if not self.messaging_binding:
            return None
        return self.messaging_binding.get("address")


class OutboundMessage(BaseModel):
    """A message to create in a conversation."""

    body: Optional[str] = None
    author: Optional[str] = None
    content_sid: Optional[str] = None
    content_variables: Optional[str] = None

    @field_validator("content_variables", mode="before")
    @classmethod
    def serialize_variables(cls, value: Any) -> Optional[str]:
        return _variables_to_json(value)


class AssistantDispatchRequest(BaseModel):
    """Body sent to the assistant service for one user message."""

    body: str
    identity: str
    session_id: str
    webhook: str


# -----------------------------------------------------------------------------
# Inbound events
# -----------------------------------------------------------------------------


class MessageAddedEvent(BaseModel):
    """onMessageAdded webhook from the platform."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    conversation_sid: str = Field(alias="ConversationSid")
    service_sid: str = Field(alias="ChatServiceSid")
    author: str = Field(alias="Author")
    body: str = Field(default="", alias="Body")
    assistant_sid: Optional[str] = Field(default=None, alias="AssistantSid")
    assistant_identity: Optional[str] = Field(default=None, alias="AssistantIdentity")
    info_user: Optional[Any] = Field(default=None, alias="InfoUser")

    @field_validator("assistant_identity", "assistant_sid", mode="before")
    @classmethod
    def only_strings(cls, value: Any) -> Optional[str]:
        return _string_or_none(value)

    @property
    def ref(self) -> ConversationRef:
        return ConversationRef(
            service_sid=self.service_sid, conversation_sid=self.conversation_sid
        )


class ConversationEvent(BaseModel):
    """Any platform event that only needs the conversation identity."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    conversation_sid: str = Field(alias="ConversationSid")
    service_sid: str = Field(alias="ChatServiceSid")

    @property
    def ref(self) -> ConversationRef:
        return ConversationRef(
            service_sid=self.service_sid, conversation_sid=self.conversation_sid
        )


class AssistantCallbackEvent(BaseModel):
    """Callback from the assistant service (query params merged into the body)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    session_id: Optional[str] = Field(default=None, alias="SessionId")
    status: Optional[str] = Field(default=None, alias="Status")
    body: Optional[Union[str, dict[str, Any]]] = Field(default=None, alias="Body")
    token: Optional[str] = Field(default=None, alias="_token")
    assistant_identity: Optional[str] = Field(default=None, alias="_assistantIdentity")

    @field_validator("assistant_identity", "token", mode="before")
    @classmethod
    def only_strings(cls, value: Any) -> Optional[str]:
        return _string_or_none(value)


class SendMessageToolRequest(BaseModel):
    """Assistant tool call: post a content template."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    content_sid: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("contentSid", "ContentSid")
    )
    content_variables: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("contentVariables", "ContentVariables"),
    )
    success_message: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("SuccessMessage", "successMessage"),
    )
    assistant_identity: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("_assistantIdentity")
    )

    @field_validator("assistant_identity", mode="before")
    @classmethod
    def only_strings(cls, value: Any) -> Optional[str]:
        return _string_or_none(value)

    @field_validator("content_variables", mode="before")
    @classmethod
    def serialize_variables(cls, value: Any) -> Optional[str]:
        return _variables_to_json(value)


class HandoverToolRequest(BaseModel):
    """Assistant tool call: hand the conversation over to a human workflow."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    flow_sid: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("FlowSid", "flowSid")
    )
    identified_service: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices(
            "identified_service", "identifiedService", "IdentifiedService"
        ),
    )
    identified_area: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices(
            "identified_area", "identifiedArea", "IdentifiedArea"
        ),
    )
    success_message: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("SuccessMessage", "successMessage"),
    )
    assistant_identity: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("_assistantIdentity")
    )

    @field_validator("assistant_identity", mode="before")
    @classmethod
    def only_strings(cls, value: Any) -> Optional[str]:
        return _string_or_none(value)


# -----------------------------------------------------------------------------
# Assistant replies
# -----------------------------------------------------------------------------


class PlainTextReply(BaseModel):
    kind: Literal["text"] = "text"
    body: str


class StructuredReply(BaseModel):
    """A content-template reply; the plain body is always posted after it."""

    kind: Literal["structured"] = "structured"
    body: str
    content_sid: str
    content_variables: Optional[str] = None

    @field_validator("content_variables", mode="before")
    @classmethod
    def serialize_variables(cls, value: Any) -> Optional[str]:
        return _variables_to_json(value)


def parse_assistant_reply(raw: Any) -> Union[PlainTextReply, StructuredReply]:
    """
    Decide the reply shape once, at the boundary.

    `raw` is a string, a JSON string of {body, meta}, or an already-decoded
    {body, meta} dict. meta.contentSid selects the structured variant.
    """
    data: Any = raw
    if isinstance(raw, str):
        try:
            data = json.loads(raw)
        except ValueError:
            return PlainTextReply(body=raw)
        if not isinstance(data, dict):
            return PlainTextReply(body=raw)
    if not isinstance(data, dict):
        return PlainTextReply(body="" if data is None else str(data))

    body = data.get("body")
    body = "" if body is None else str(body)
    meta = data.get("meta") or {}
    content_sid = meta.get("contentSid") if isinstance(meta, dict) else None
    if content_sid:
        return StructuredReply(
            body=body,
            content_sid=content_sid,
            content_variables=meta.get("contentVariables"),
        )
    if "body" not in data and isinstance(raw, str):
        return PlainTextReply(body=raw)
    return PlainTextReply(body=body)
