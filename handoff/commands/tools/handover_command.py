"""
Assistant tool: hand the conversation over to a human workflow.

The conversation must already be classified into a known service and area.
A missing or unknown classification aborts the handover before any
subscription is touched, and the user is told directly which part is missing.
The classification is stored only after the human workflow subscription
exists; if that subscription cannot be created the assistant callback is
put back so the conversation keeps a route.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence

from sqlalchemy.orm import Session

from handoff.adapters.base import BaseConversationsAdapter
from handoff.adapters.notifications import NotificationAdapter
from handoff.commands.tools.base_tool import BaseToolCommand, ToolReply
from handoff.config import Settings
from handoff.constants.conversations import (
    IDENTIFIED_AREA,
    IDENTIFIED_SERVICE,
    SubscriptionKind,
)
from handoff.core.outcome import HandoffResult
from handoff.core.state_machine import (
    HandoffState,
    abort_escalation,
    complete_escalation,
    derive_state,
    start_escalation,
)
from handoff.exceptions import ClassificationError, HandoffError
from handoff.schemas.conversations import ConversationRef, HandoverToolRequest
from handoff.services.subscription_service import (
    assistant_callback_configuration,
    human_workflow_configuration,
)

DEFAULT_SUCCESS_MESSAGE = "Conversation handed over"
FAILURE_MESSAGE = "Could not handover"
FLOW_MISSING_MESSAGE = "Unable to hand over conversation"

CLASSIFICATION_NOTICES = {
    IDENTIFIED_SERVICE: (
        "No pudimos identificar el servicio con el que necesitas ayuda. "
        "¿Podrías indicarnos de qué servicio se trata?"
    ),
    IDENTIFIED_AREA: (
        "No pudimos identificar el área que debe atender tu solicitud. "
        "¿Podrías darnos un poco más de detalle?"
    ),
}


def validate_classification(
    identified_service: Optional[str],
    identified_area: Optional[str],
    services: Sequence[str],
    areas: Sequence[str],
) -> dict[str, str]:
    """
    Check both classification fields against their enumerations.

    Returns the attribute delta to merge. An empty enumeration accepts nothing.

    Raises:
        ClassificationError: naming the first missing or unknown field.
    """
    for field, value, allowed in (
        (IDENTIFIED_SERVICE, identified_service, services),
        (IDENTIFIED_AREA, identified_area, areas),
    ):
        if not value:
            raise ClassificationError(f"{field} is missing", field)
        if value not in allowed:
            raise ClassificationError(
                f"{field} '{value}' is not recognised", field, value
            )
    return {IDENTIFIED_SERVICE: identified_service, IDENTIFIED_AREA: identified_area}


class HandoverCommand(BaseToolCommand):
    MODULE = "STUDIO_HANDOVER"
    ACTION = "studio_handover"

    def __init__(
        self,
        db: Optional[Session] = None,
        conversations: Optional[BaseConversationsAdapter] = None,
        notifications: Optional[NotificationAdapter] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        super().__init__(db, conversations, settings)
        self.notifications = notifications or self.get_notification_adapter(
            self.settings, self.conversations
        )

    async def execute(
        self, request: HandoverToolRequest, session_header: Optional[str]
    ) -> ToolReply:
        self.logger.init(flow_sid=request.flow_sid)

        ref = self.resolve_session(session_header)
        if ref is None:
            return self.ignored(session_header)

        flow_sid = request.flow_sid or self.settings.studio_flow_sid
        if not flow_sid:
            self.logger.failure("FLOW_SID_MISSING")
            result = self.finish(
                HandoffResult.fatal(self.ACTION, "flow_sid_missing", ref)
            )
            return ToolReply(FLOW_MISSING_MESSAGE, result, status_code=400)

        self.logger.step(
            "VARIABLES",
            service_sid=ref.service_sid,
            conversation_sid=ref.conversation_sid,
            flow_sid=flow_sid,
        )

        try:
            classification = await self._classify(ref, request)
        except ClassificationError as e:
            self.logger.failure(
                "INVALID_CLASSIFICATION", e, field=e.field, value=e.value
            )
            await self._notify_user(ref, e, request.assistant_identity)
            result = self.finish(
                HandoffResult.fatal(self.ACTION, e.code, ref, error=e, field=e.field)
            )
            return ToolReply(e.message, result, status_code=400)
        except HandoffError as e:
            self.logger.failure("ERROR", e)
            result = self.finish(
                HandoffResult.degraded(self.ACTION, e.code, ref, error=e)
            )
            return ToolReply(FAILURE_MESSAGE, result)

        try:
            result = await self._hand_over(ref, flow_sid, classification)
        except Exception as e:
            self.logger.exception("Unexpected error during handover: %s", e)
            reason = e.code if isinstance(e, HandoffError) else "unexpected_error"
            result = self.finish(
                HandoffResult.degraded(self.ACTION, reason, ref, error=e)
            )
            return ToolReply(FAILURE_MESSAGE, result)

        if result.reason == "subscription_not_created":
            return ToolReply(FAILURE_MESSAGE, result)
        success_message = request.success_message
        if success_message is None:
            success_message = DEFAULT_SUCCESS_MESSAGE
        return ToolReply(success_message, result)

    async def _classify(
        self, ref: ConversationRef, request: HandoverToolRequest
    ) -> dict[str, str]:
        """Request classification first, then whatever the assistant stored."""
        service = request.identified_service
        area = request.identified_area
        if not service or not area:
            attributes = await self.attributes.read(ref)
            service = service or _string_attribute(attributes, IDENTIFIED_SERVICE)
            area = area or _string_attribute(attributes, IDENTIFIED_AREA)
        return validate_classification(
            service,
            area,
            self.settings.identified_services,
            self.settings.identified_areas,
        )

    async def _hand_over(
        self,
        ref: ConversationRef,
        flow_sid: str,
        classification: Mapping[str, Any],
    ) -> HandoffResult:
        subscriptions = await self.subscriptions.list_subscriptions(ref)
        state = derive_state(subscriptions)
        if state == HandoffState.HUMAN_ACTIVE:
            self.logger.step("ALREADY_HANDED_OVER")
            return self.finish(
                HandoffResult.success(self.ACTION, ref, reason="already_handed_over")
            )

        state = start_escalation(state)
        failed_removals = await self.subscriptions.remove_all(ref, subscriptions)
        try:
            await self.subscriptions.create(
                ref,
                SubscriptionKind.HUMAN_WORKFLOW,
                human_workflow_configuration(flow_sid),
            )
        except HandoffError as e:
            state = abort_escalation(state)
            self.logger.failure("SUBSCRIPTION_NOT_CREATED", e, state=state.value)
            restored = await self._restore_assistant_route(ref)
            return self.finish(
                HandoffResult.degraded(
                    self.ACTION,
                    "subscription_not_created",
                    ref,
                    error=e,
                    assistant_route_restored=restored,
                )
            )

        state = complete_escalation(state)
        self.logger.step(
            "CONVERSATION_UPDATED",
            flow_sid=flow_sid,
            state=state.value,
            failed_removals=failed_removals,
            **classification,
        )
        try:
            await self.attributes.patch(ref, classification)
        except HandoffError as e:
            self.logger.failure("CLASSIFICATION_NOT_SAVED", e)
            return self.finish(
                HandoffResult.degraded(
                    self.ACTION,
                    "classification_not_saved",
                    ref,
                    error=e,
                    flow_sid=flow_sid,
                )
            )
        return self.finish(
            HandoffResult.success(
                self.ACTION,
                ref,
                reason="handed_over",
                flow_sid=flow_sid,
                failed_removals=failed_removals,
            )
        )

    async def _restore_assistant_route(self, ref: ConversationRef) -> bool:
        """Best effort: put the assistant callback back after a failed swap."""
        try:
            await self.subscriptions.create(
                ref,
                SubscriptionKind.ASSISTANT_CALLBACK,
                assistant_callback_configuration(self.settings.public_base_url),
            )
        except HandoffError as e:
            self.logger.failure("ASSISTANT_ROUTE_NOT_RESTORED", e)
            return False
        self.logger.step("ASSISTANT_ROUTE_RESTORED")
        return True

    async def _notify_user(
        self,
        ref: ConversationRef,
        error: ClassificationError,
        author: Optional[str],
    ) -> None:
        body = CLASSIFICATION_NOTICES.get(
            error.field, CLASSIFICATION_NOTICES[IDENTIFIED_SERVICE]
        )
        try:
            await self.notifications.notify(ref, body, author=author)
        except HandoffError as e:
            self.logger.failure("NOTIFICATION_FAILED", e)


def _string_attribute(attributes: Mapping[str, Any], key: str) -> Optional[str]:
    value = attributes.get(key)
    return value if isinstance(value, str) else None
