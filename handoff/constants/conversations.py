"""Literal names shared with the conversations platform and the assistant service."""

from enum import Enum

# Attribute keys in the conversation's shared JSON document
ASSISTANT_IS_TYPING = "assistantIsTyping"
IDENTIFIED_SERVICE = "identifiedService"
IDENTIFIED_AREA = "identifiedArea"
INFO_USER = "infoUser"

# Session id round-tripped through the assistant service
SESSION_NAMESPACE = "conversations"
SESSION_SEPARATOR = "__"
SESSION_PATH_SEPARATOR = "/"
# The assistant prefixes echoed session ids with its webhook channel marker
CALLBACK_CHANNEL_PREFIX = "webhook:"
TOOL_SESSION_HEADER = "x-session-id"

# Callback URL query parameters
TOKEN_QUERY_PARAM = "_token"
ASSISTANT_IDENTITY_QUERY_PARAM = "_assistantIdentity"

# Identity qualification for message authors
IDENTITY_SEPARATOR = ":"
USER_IDENTITY_PREFIX = "user_id"

MESSAGE_ADDED_FILTER = "onMessageAdded"
MESSAGE_ADDED_PATH = "/channels/conversations/messageAdded"
RESPONSE_PATH = "/channels/conversations/response"

FAILED_STATUSES = frozenset({"Failed", "Failure"})


class SubscriptionKind(str, Enum):
    """Webhook target kinds as named by the platform."""

    ASSISTANT_CALLBACK = "webhook"
    HUMAN_WORKFLOW = "studio"
