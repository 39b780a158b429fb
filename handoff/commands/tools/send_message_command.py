"""Assistant tool: post a content template into the conversation."""

from __future__ import annotations

from typing import Optional

from handoff.commands.tools.base_tool import BaseToolCommand, ToolReply
from handoff.core.outcome import HandoffResult
from handoff.exceptions import HandoffError, MissingToolArgument
from handoff.schemas.conversations import OutboundMessage, SendMessageToolRequest

DEFAULT_SUCCESS_MESSAGE = "Message sent"
FAILURE_MESSAGE = "Could not send message"


class SendMessageCommand(BaseToolCommand):
    MODULE = "SEND_MESSAGE"
    ACTION = "send_message"

    async def execute(
        self, request: SendMessageToolRequest, session_header: Optional[str]
    ) -> ToolReply:
        """
        Post `request.content_sid` as the assistant.

        A missing content sid is a validation failure (400); platform errors
        are reported to the assistant as a plain failure text.
        """
        self.logger.init(content_sid=request.content_sid)

        ref = self.resolve_session(session_header)
        if ref is None:
            return self.ignored(session_header)

        if not request.content_sid:
            e = MissingToolArgument("Unable to send message")
            self.logger.failure("CONTENT_SID_MISSING")
            result = self.finish(
                HandoffResult.fatal(self.ACTION, "content_sid_missing", ref, error=e)
            )
            return ToolReply(e.message, result, status_code=400)

        message = OutboundMessage(
            author=request.assistant_identity,
            content_sid=request.content_sid,
            content_variables=request.content_variables,
        )
        try:
            message_sid = await self.conversations.create_message(ref, message)
        except HandoffError as e:
            self.logger.failure("ERROR", e, conversation_sid=ref.conversation_sid)
            result = self.finish(
                HandoffResult.degraded(self.ACTION, e.code, ref, error=e)
            )
            return ToolReply(FAILURE_MESSAGE, result)

        self.logger.step("SUCCESS", message_sid=message_sid)
        result = self.finish(
            HandoffResult.success(
                self.ACTION, ref, reason="sent", message_sid=message_sid
            )
        )
        success_message = request.success_message
        if success_message is None:
            success_message = DEFAULT_SUCCESS_MESSAGE
        return ToolReply(success_message, result)
