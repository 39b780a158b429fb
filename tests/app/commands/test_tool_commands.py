"""Tests for the send-message and studio-handover tool commands."""

import pytest

from handoff.commands.tools.base_tool import IGNORE_OUTPUT_TEXT
from handoff.commands.tools.handover_command import (
    CLASSIFICATION_NOTICES,
    HandoverCommand,
    validate_classification,
)
from handoff.commands.tools.send_message_command import SendMessageCommand
from handoff.constants.conversations import (
    IDENTIFIED_AREA,
    IDENTIFIED_SERVICE,
    SubscriptionKind,
)
from handoff.core.outcome import Outcome
from handoff.exceptions import ClassificationError, UpstreamFailure
from handoff.schemas.conversations import HandoverToolRequest, SendMessageToolRequest


@pytest.fixture
def session_header(conversation_ref):
    return (
        f"webhook:conversations__{conversation_ref.service_sid}/"
        f"{conversation_ref.conversation_sid}"
    )


# -----------------------------------------------------------------------------
# send-message
# -----------------------------------------------------------------------------


@pytest.fixture
def send_command(db, fake_conversations, settings):
    return SendMessageCommand(db, fake_conversations, settings)


@pytest.mark.asyncio
async def test_send_message_posts_template(
    send_command, fake_conversations, conversation_ref, session_header
):
    request = SendMessageToolRequest.model_validate(
        {"contentSid": "HX1", "contentVariables": '{"1": "x"}', "_assistantIdentity": "Bot"}
    )

    reply = await send_command.execute(request, session_header)

    assert reply.status_code == 200
    assert reply.text == "Message sent"
    (message,) = fake_conversations.messages_for(conversation_ref)
    assert message.content_sid == "HX1"
    assert message.content_variables == '{"1": "x"}'
    assert message.author == "Bot"


@pytest.mark.asyncio
async def test_send_message_custom_success(send_command, session_header):
    request = SendMessageToolRequest.model_validate(
        {"contentSid": "HX1", "successMessage": "Plantilla enviada"}
    )
    reply = await send_command.execute(request, session_header)
    assert reply.text == "Plantilla enviada"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "header", [None, "", "conversations__IS1/CH1", "webhook:other__IS1/CH1"]
)
async def test_send_message_ignores_foreign_sessions(
    send_command, fake_conversations, conversation_ref, header
):
    request = SendMessageToolRequest.model_validate({"contentSid": "HX1"})

    reply = await send_command.execute(request, header)

    assert reply.status_code == 200
    assert reply.text == IGNORE_OUTPUT_TEXT
    assert fake_conversations.messages_for(conversation_ref) == []


@pytest.mark.asyncio
async def test_send_message_requires_content_sid(send_command, session_header):
    reply = await send_command.execute(SendMessageToolRequest(), session_header)
    assert reply.status_code == 400
    assert reply.text == "Unable to send message"
    assert reply.result.outcome == Outcome.FATAL


@pytest.mark.asyncio
async def test_send_message_platform_failure(send_command, fake_conversations, session_header):
    fake_conversations.fail.add("create_message")
    request = SendMessageToolRequest.model_validate({"contentSid": "HX1"})

    reply = await send_command.execute(request, session_header)

    assert reply.status_code == 200
    assert reply.text == "Could not send message"
    assert reply.result.outcome == Outcome.DEGRADED


# -----------------------------------------------------------------------------
# studio-handover
# -----------------------------------------------------------------------------


@pytest.fixture
def handover_command(db, fake_conversations, fake_notifications, settings):
    return HandoverCommand(db, fake_conversations, fake_notifications, settings)


def classified(**extra):
    return HandoverToolRequest.model_validate(
        {"identified_service": "billing", "identified_area": "sales", **extra}
    )


def test_validate_classification_accepts_known_values():
    assert validate_classification("billing", "sales", ["billing"], ["sales"]) == {
        IDENTIFIED_SERVICE: "billing",
        IDENTIFIED_AREA: "sales",
    }


@pytest.mark.parametrize(
    "service, area, field",
    [
        (None, "sales", IDENTIFIED_SERVICE),
        ("unknown", "sales", IDENTIFIED_SERVICE),
        ("billing", None, IDENTIFIED_AREA),
        ("billing", "unknown", IDENTIFIED_AREA),
    ],
)
def test_validate_classification_rejects(service, area, field):
    with pytest.raises(ClassificationError) as exc:
        validate_classification(service, area, ["billing"], ["sales"])
    assert exc.value.field == field


def test_empty_enumeration_accepts_nothing():
    with pytest.raises(ClassificationError):
        validate_classification("billing", "sales", [], ["sales"])


@pytest.mark.asyncio
async def test_handover_swaps_to_studio(
    handover_command, fake_conversations, conversation_ref, session_header, settings
):
    fake_conversations.add_subscription(conversation_ref, SubscriptionKind.ASSISTANT_CALLBACK)
    await fake_conversations.update_attributes(conversation_ref, {"assistantIsTyping": False})

    reply = await handover_command.execute(classified(), session_header)

    assert reply.status_code == 200
    assert reply.text == "Conversation handed over"
    assert reply.result.reason == "handed_over"
    (subscription,) = fake_conversations.subscriptions_for(conversation_ref)
    assert subscription.kind == SubscriptionKind.HUMAN_WORKFLOW
    assert subscription.configuration == {"flow_sid": settings.studio_flow_sid}
    attributes = await fake_conversations.fetch_attributes(conversation_ref)
    assert attributes == {
        "assistantIsTyping": False,
        IDENTIFIED_SERVICE: "billing",
        IDENTIFIED_AREA: "sales",
    }


@pytest.mark.asyncio
async def test_handover_explicit_flow_and_success_message(
    handover_command, fake_conversations, conversation_ref, session_header
):
    reply = await handover_command.execute(
        classified(FlowSid="FW_other", SuccessMessage="Te comunico con un asesor"),
        session_header,
    )

    assert reply.text == "Te comunico con un asesor"
    (subscription,) = fake_conversations.subscriptions_for(conversation_ref)
    assert subscription.configuration == {"flow_sid": "FW_other"}


@pytest.mark.asyncio
async def test_handover_uses_stored_classification(
    handover_command, fake_conversations, conversation_ref, session_header
):
    await fake_conversations.update_attributes(
        conversation_ref, {IDENTIFIED_SERVICE: "support", IDENTIFIED_AREA: "operations"}
    )

    reply = await handover_command.execute(HandoverToolRequest(), session_header)

    assert reply.status_code == 200
    (subscription,) = fake_conversations.subscriptions_for(conversation_ref)
    assert subscription.kind == SubscriptionKind.HUMAN_WORKFLOW


@pytest.mark.asyncio
async def test_handover_unknown_service_aborts(
    handover_command, fake_conversations, fake_notifications, conversation_ref, session_header
):
    existing = fake_conversations.add_subscription(
        conversation_ref, SubscriptionKind.ASSISTANT_CALLBACK
    )

    reply = await handover_command.execute(
        classified(identified_service="astrology"), session_header
    )

    assert reply.status_code == 400
    assert reply.result.outcome == Outcome.FATAL
    assert fake_conversations.subscriptions_for(conversation_ref) == [existing]
    (notice,) = fake_notifications.sent
    assert notice[1] == CLASSIFICATION_NOTICES[IDENTIFIED_SERVICE]


@pytest.mark.asyncio
async def test_handover_missing_area_notifies_per_field(
    handover_command, fake_conversations, fake_notifications, conversation_ref, session_header
):
    reply = await handover_command.execute(
        HandoverToolRequest(identified_service="billing"), session_header
    )

    assert reply.status_code == 400
    assert fake_notifications.sent[0][1] == CLASSIFICATION_NOTICES[IDENTIFIED_AREA]
    assert fake_conversations.subscriptions_for(conversation_ref) == []


@pytest.mark.asyncio
async def test_handover_notification_failure_still_rejects(
    handover_command, fake_notifications, session_header
):
    fake_notifications.error = UpstreamFailure("sms down")

    reply = await handover_command.execute(HandoverToolRequest(), session_header)

    assert reply.status_code == 400


@pytest.mark.asyncio
async def test_handover_requires_flow(
    db, fake_conversations, fake_notifications, settings, session_header
):
    settings.studio_flow_sid = None
    command = HandoverCommand(db, fake_conversations, fake_notifications, settings)

    reply = await command.execute(classified(), session_header)

    assert reply.status_code == 400
    assert reply.text == "Unable to hand over conversation"


@pytest.mark.asyncio
async def test_handover_already_human(
    handover_command, fake_conversations, conversation_ref, session_header
):
    existing = fake_conversations.add_subscription(
        conversation_ref, SubscriptionKind.HUMAN_WORKFLOW
    )

    reply = await handover_command.execute(classified(), session_header)

    assert reply.status_code == 200
    assert reply.result.reason == "already_handed_over"
    assert fake_conversations.subscriptions_for(conversation_ref) == [existing]


@pytest.mark.asyncio
async def test_handover_create_failure_restores_assistant_route(
    handover_command, fake_conversations, conversation_ref, session_header
):
    fake_conversations.add_subscription(conversation_ref, SubscriptionKind.ASSISTANT_CALLBACK)
    fake_conversations.fail_create.add(SubscriptionKind.HUMAN_WORKFLOW)

    reply = await handover_command.execute(classified(), session_header)

    assert reply.status_code == 200
    assert reply.text == "Could not handover"
    assert reply.result.outcome == Outcome.DEGRADED
    assert reply.result.reason == "subscription_not_created"
    assert reply.result.detail["assistant_route_restored"] is True
    (subscription,) = fake_conversations.subscriptions_for(conversation_ref)
    assert subscription.kind == SubscriptionKind.ASSISTANT_CALLBACK
    assert subscription.configuration["url"] == (
        "https://handoff.example.com/channels/conversations/messageAdded"
    )
    attributes = await fake_conversations.fetch_attributes(conversation_ref)
    assert IDENTIFIED_SERVICE not in attributes
    assert IDENTIFIED_AREA not in attributes


@pytest.mark.asyncio
async def test_handover_create_failure_when_route_cannot_be_restored(
    handover_command, fake_conversations, conversation_ref, session_header
):
    fake_conversations.add_subscription(conversation_ref, SubscriptionKind.ASSISTANT_CALLBACK)
    fake_conversations.fail.add("create_subscription")

    reply = await handover_command.execute(classified(), session_header)

    assert reply.text == "Could not handover"
    assert reply.result.reason == "subscription_not_created"
    assert reply.result.detail["assistant_route_restored"] is False
    assert fake_conversations.subscriptions_for(conversation_ref) == []


@pytest.mark.asyncio
async def test_handover_classification_not_saved(
    handover_command, fake_conversations, conversation_ref, session_header
):
    fake_conversations.fail.add("update_attributes")

    reply = await handover_command.execute(classified(), session_header)

    assert reply.status_code == 200
    assert reply.text == "Conversation handed over"
    assert reply.result.outcome == Outcome.DEGRADED
    assert reply.result.reason == "classification_not_saved"
    (subscription,) = fake_conversations.subscriptions_for(conversation_ref)
    assert subscription.kind == SubscriptionKind.HUMAN_WORKFLOW


@pytest.mark.asyncio
async def test_handover_ignores_foreign_session(
    handover_command, fake_conversations, conversation_ref
):
    reply = await handover_command.execute(classified(), "conversations__IS1/CH1")

    assert reply.text == IGNORE_OUTPUT_TEXT
    assert fake_conversations.subscriptions_for(conversation_ref) == []
