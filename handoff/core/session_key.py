"""Session id derivation and parsing for the assistant round trip."""

from __future__ import annotations

from typing import Optional

from handoff.constants.conversations import (
    CALLBACK_CHANNEL_PREFIX,
    IDENTITY_SEPARATOR,
    SESSION_NAMESPACE,
    SESSION_PATH_SEPARATOR,
    SESSION_SEPARATOR,
    USER_IDENTITY_PREFIX,
)
from handoff.exceptions import MalformedSessionId
from handoff.schemas.conversations import ConversationRef

SESSION_PREFIX = f"{SESSION_NAMESPACE}{SESSION_SEPARATOR}"
TOOL_SESSION_PREFIX = f"{CALLBACK_CHANNEL_PREFIX}{SESSION_PREFIX}"


def build_session_id(ref: ConversationRef) -> str:
    """
    Build the session id sent to the assistant: conversations__{service}/{conversation}.

    The assistant echoes it back (prefixed with "webhook:") on callbacks and
    tool calls; it is the only link back to the conversation.
    """
    return (
        f"{SESSION_PREFIX}{ref.service_sid}{SESSION_PATH_SEPARATOR}"
        f"{ref.conversation_sid}"
    )


def strip_channel_prefix(session_id: str) -> str:
    """Drop the assistant's "webhook:" marker if present."""
    if session_id.startswith(CALLBACK_CHANNEL_PREFIX):
        return session_id[len(CALLBACK_CHANNEL_PREFIX) :]
    return session_id


def parse_session_id(session_id: Optional[str]) -> ConversationRef:
    """
    Parse an echoed session id into a ConversationRef.

    Accepts "conversations__S/C" with or without the "webhook:" marker. The
    remainder is split once on "/"; both halves must be non-empty and the
    conversation half must not contain another "/".
    """
    if not session_id:
        raise MalformedSessionId("Session id is missing")
    value = strip_channel_prefix(session_id)
    if not value.startswith(SESSION_PREFIX):
        raise MalformedSessionId(f"Session id has an unexpected prefix: {session_id}")
    remainder = value[len(SESSION_PREFIX) :]
    service_sid, separator, conversation_sid = remainder.partition(
        SESSION_PATH_SEPARATOR
    )
    if (
        not separator
        or not service_sid
        or not conversation_sid
        or SESSION_PATH_SEPARATOR in conversation_sid
    ):
        raise MalformedSessionId(f"Session id is malformed: {session_id}")
    return ConversationRef(service_sid=service_sid, conversation_sid=conversation_sid)


def is_tool_session_header(value: Optional[str]) -> bool:
    """Tool calls must carry an x-session-id that starts with webhook:conversations__."""
    return isinstance(value, str) and value.startswith(TOOL_SESSION_PREFIX)


def qualify_identity(author: str) -> str:
    """Authors that already carry a namespace ("whatsapp:+1...") are used as-is."""
    if IDENTITY_SEPARATOR in author:
        return author
    return f"{USER_IDENTITY_PREFIX}{IDENTITY_SEPARATOR}{author}"
