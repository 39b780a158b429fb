"""
Base for assistant tool calls.

Tool calls identify their conversation only through the x-session-id header
the assistant echoes back. A header that does not belong to this channel is
answered with a neutral text so the assistant moves on without retrying.
"""

from __future__ import annotations

from typing import Optional

from handoff.commands.base import BaseConversationsCommand
from handoff.core.outcome import HandoffResult
from handoff.core.session_key import is_tool_session_header, parse_session_id
from handoff.exceptions import MalformedSessionId
from handoff.schemas.conversations import ConversationRef

IGNORE_OUTPUT_TEXT = "Unable to perform action. Ignore this output"


class ToolReply:
    """Plain-text answer for the assistant plus the recorded result."""

    def __init__(self, text: str, result: HandoffResult, status_code: int = 200):
        self.text = text
        self.result = result
        self.status_code = status_code

    def __repr__(self) -> str:
        return f"ToolReply({self.status_code}, {self.text!r})"


class BaseToolCommand(BaseConversationsCommand):
    def resolve_session(
        self, session_header: Optional[str]
    ) -> Optional[ConversationRef]:
        """Return the conversation named by the header, or None if it is not ours."""
        if not is_tool_session_header(session_header):
            self.logger.failure("INVALID_SESSION_HEADER", session_id=session_header)
            return None
        try:
            return parse_session_id(session_header)
        except MalformedSessionId as e:
            self.logger.failure("MALFORMED_SESSION_ID", e)
            return None

    def ignored(self, session_header: Optional[str]) -> ToolReply:
        return ToolReply(
            IGNORE_OUTPUT_TEXT,
            self.finish(
                HandoffResult.degraded(
                    self.ACTION, "invalid_session_header", session_id=session_header
                )
            ),
        )
