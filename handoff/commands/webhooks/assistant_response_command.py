"""
Command to deliver an assistant reply into its conversation.

The callback token is verified before anything else; an unverified caller
gets a 403 and nothing is touched. Once the conversation is known, any
failure still leaves the user with an apology message and the typing flag
cleared before the error is returned to the assistant.
"""

from __future__ import annotations

from typing import Optional, Union

from fastapi import HTTPException

from handoff.commands.base import BaseConversationsCommand
from handoff.constants.conversations import FAILED_STATUSES
from handoff.core.outcome import HandoffResult
from handoff.core.session_key import parse_session_id, strip_channel_prefix
from handoff.exceptions import (
    AssistantReportedFailure,
    HandoffError,
    MalformedSessionId,
    UpstreamFailure,
)
from handoff.schemas.conversations import (
    AssistantCallbackEvent,
    ConversationRef,
    OutboundMessage,
    PlainTextReply,
    StructuredReply,
    parse_assistant_reply,
)


class AssistantResponseCommand(BaseConversationsCommand):
    MODULE = "RESPONSE_AI"
    ACTION = "assistant_response"

    def _is_verified(self, event: AssistantCallbackEvent) -> bool:
        if not event.session_id or not event.token:
            return False
        try:
            codec = self.get_signature_codec()
        except HandoffError as e:
            self.logger.failure("SIGNING_UNAVAILABLE", e)
            return False
        return codec.verify(event.token, strip_channel_prefix(event.session_id))

    async def execute(self, event: AssistantCallbackEvent) -> HandoffResult:
        """
        Verify, resolve the conversation, and post the reply.

        Raises:
            HTTPException: 403 on a missing/invalid token, 400 on a malformed
                session id, 502 when the assistant reported a failure or the
                platform failed, 500 on anything unexpected.
        """
        self.logger.init(status=event.status)

        if not self._is_verified(event):
            self.logger.failure("INVALID_TOKEN")
            self.finish(HandoffResult.fatal(self.ACTION, "invalid_token"))
            raise HTTPException(status_code=403, detail="Invalid token")

        try:
            ref = parse_session_id(event.session_id)
        except MalformedSessionId as e:
            self.logger.failure("MALFORMED_SESSION_ID", e)
            self.finish(HandoffResult.fatal(self.ACTION, e.code, error=e))
            raise HTTPException(status_code=400, detail=e.message) from e

        identity = event.assistant_identity
        try:
            if event.status in FAILED_STATUSES:
                self.logger.failure("FAILED", assistant_identity=identity)
                raise AssistantReportedFailure(
                    "Failed to generate response. Check error logs."
                )

            reply = parse_assistant_reply(event.body)
            self.logger.step(
                "VARIABLES",
                service_sid=ref.service_sid,
                conversation_sid=ref.conversation_sid,
                reply_kind=reply.kind,
            )
            await self.attributes.set_typing(ref, False)
            message_sids = await self._post_reply(ref, reply, identity)
        except Exception as e:
            self.logger.failure("ERROR", e, conversation_sid=ref.conversation_sid)
            await self._recover(ref, identity)
            reason = e.code if isinstance(e, HandoffError) else "unexpected_error"
            self.finish(HandoffResult.fatal(self.ACTION, reason, ref, error=e))
            status_code = 502 if isinstance(e, UpstreamFailure) else 500
            raise HTTPException(status_code=status_code, detail=str(e)) from e

        self.logger.step("SUCCESS", message_sids=message_sids)
        return self.finish(
            HandoffResult.success(
                self.ACTION, ref, reason="delivered", message_sids=message_sids
            )
        )

    async def _post_reply(
        self,
        ref: ConversationRef,
        reply: Union[PlainTextReply, StructuredReply],
        identity: Optional[str],
    ) -> list[Optional[str]]:
        """Structured replies are posted as the template first, then the plain body."""
        sids: list[Optional[str]] = []
        if isinstance(reply, StructuredReply):
            sids.append(
                await self.conversations.create_message(
                    ref,
                    OutboundMessage(
                        body=reply.body,
                        author=identity,
                        content_sid=reply.content_sid,
                        content_variables=reply.content_variables,
                    ),
                )
            )
        sids.append(
            await self.conversations.create_message(
                ref, OutboundMessage(body=reply.body, author=identity)
            )
        )
        return sids

    async def _recover(self, ref: ConversationRef, identity: Optional[str]) -> None:
        """Best-effort: clear typing and apologise. Errors here are only logged."""
        try:
            await self.attributes.set_typing(ref, False)
        except Exception as e:
            self.logger.failure("CLEAR_TYPING_FAILED", e)
        try:
            await self.conversations.create_message(
                ref,
                OutboundMessage(body=self.settings.apology_message, author=identity),
            )
        except Exception as e:
            self.logger.failure("APOLOGY_FAILED", e)
