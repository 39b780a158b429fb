"""Tests for MessageAddedCommand and SendToAssistantCommand."""

from urllib.parse import parse_qs, urlparse

import pytest

from handoff.commands.webhooks.message_added_command import MessageAddedCommand
from handoff.commands.webhooks.send_to_assistant_command import SendToAssistantCommand
from handoff.constants.conversations import ASSISTANT_IS_TYPING, INFO_USER, SubscriptionKind
from handoff.core.outcome import Outcome
from handoff.core.signature import SignatureCodec
from handoff.exceptions import UpstreamFailure
from handoff.models.handoff_event import HandoffEvent
from handoff.schemas.conversations import MessageAddedEvent


@pytest.fixture
def event(message_added_payload):
    return MessageAddedEvent.model_validate(message_added_payload)


@pytest.fixture
def command(db, fake_conversations, fake_assistant, settings):
    return MessageAddedCommand(db, fake_conversations, fake_assistant, settings)


@pytest.mark.asyncio
async def test_dispatches_and_marks_typing(
    command, event, fake_conversations, fake_assistant, conversation_ref, settings
):
    result = await command.execute(event)

    assert result.outcome == Outcome.SUCCESS
    assert result.reason == "dispatched"
    assert fake_conversations.attributes[
        (conversation_ref.service_sid, conversation_ref.conversation_sid)
    ] == {ASSISTANT_IS_TYPING: True}

    assistant_sid, request = fake_assistant.requests[0]
    assert assistant_sid == settings.assistant_sid
    assert request.body == "Hola, necesito ayuda"
    assert request.identity == "user_id:alice"
    assert request.session_id == (
        f"conversations__{conversation_ref.service_sid}/{conversation_ref.conversation_sid}"
    )

    callback = urlparse(request.webhook)
    assert callback.scheme == "https"
    assert callback.netloc == "handoff.example.com"
    assert callback.path == "/channels/conversations/response"
    token = parse_qs(callback.query)["_token"][0]
    codec = SignatureCodec(settings.callback_signing_secret)
    assert codec.verify(token, request.session_id)


@pytest.mark.asyncio
async def test_assistant_overrides_are_forwarded(
    db, fake_conversations, fake_assistant, settings, message_added_payload
):
    payload = {**message_added_payload, "AssistantSid": "aia_other", "AssistantIdentity": "Sofía"}
    command = MessageAddedCommand(db, fake_conversations, fake_assistant, settings)
    await command.execute(MessageAddedEvent.model_validate(payload))

    assistant_sid, request = fake_assistant.requests[0]
    assert assistant_sid == "aia_other"
    assert parse_qs(urlparse(request.webhook).query)["_assistantIdentity"] == ["Sofía"]


@pytest.mark.asyncio
async def test_human_workflow_subscription_is_a_noop(
    command, event, fake_conversations, fake_assistant, conversation_ref
):
    fake_conversations.add_subscription(conversation_ref, SubscriptionKind.HUMAN_WORKFLOW)

    for _ in range(3):
        result = await command.execute(event)
        assert result.reason == "human_workflow_subscribed"

    assert fake_assistant.requests == []
    assert fake_conversations.attribute_writes == 0


@pytest.mark.asyncio
async def test_second_participant_blocks_dispatch(
    command, event, fake_conversations, fake_assistant, conversation_ref
):
    fake_conversations.add_participant(conversation_ref, identity="agent:maria")

    result = await command.execute(event)

    assert result.ok
    assert result.reason == "human_present"
    assert fake_assistant.requests == []
    assert fake_conversations.attribute_writes == 0


@pytest.mark.asyncio
async def test_assistant_failure_is_degraded_and_clears_typing(
    command, event, fake_conversations, fake_assistant, conversation_ref, db
):
    fake_assistant.error = UpstreamFailure("timed out", code="upstream_timeout")

    result = await command.execute(event)

    assert result.outcome == Outcome.DEGRADED
    assert result.reason == "assistant_dispatch_failed"
    attributes = fake_conversations.attributes[
        (conversation_ref.service_sid, conversation_ref.conversation_sid)
    ]
    assert attributes[ASSISTANT_IS_TYPING] is False
    recorded = db.query(HandoffEvent).one()
    assert recorded.outcome == "degraded"
    assert recorded.conversation_sid == conversation_ref.conversation_sid


@pytest.mark.asyncio
async def test_typing_failure_still_dispatches(command, event, fake_conversations, fake_assistant):
    fake_conversations.fail.add("update_attributes")

    result = await command.execute(event)

    assert result.outcome == Outcome.DEGRADED
    assert result.reason == "typing_not_set"
    assert len(fake_assistant.requests) == 1


@pytest.mark.asyncio
async def test_platform_failure_never_raises(command, event, fake_conversations, fake_assistant):
    fake_conversations.fail.add("list_subscriptions")

    result = await command.execute(event)

    assert result.outcome == Outcome.DEGRADED
    assert result.reason == "upstream_failure"
    assert fake_assistant.requests == []


@pytest.mark.asyncio
async def test_missing_signing_secret_is_degraded(
    db, fake_conversations, fake_assistant, settings, event
):
    settings.callback_signing_secret = None
    command = MessageAddedCommand(db, fake_conversations, fake_assistant, settings)

    result = await command.execute(event)

    assert result.reason == "signing_unavailable"
    assert fake_assistant.requests == []
    assert fake_conversations.attribute_writes == 0


@pytest.mark.asyncio
async def test_send_to_assistant_swaps_subscription(
    db, fake_conversations, fake_assistant, settings, conversation_ref, message_added_payload
):
    fake_conversations.add_subscription(conversation_ref, SubscriptionKind.HUMAN_WORKFLOW)
    fake_conversations.add_subscription(conversation_ref, SubscriptionKind.ASSISTANT_CALLBACK)
    payload = {**message_added_payload, "InfoUser": {"name": "Alice"}}
    command = SendToAssistantCommand(db, fake_conversations, fake_assistant, settings)

    result = await command.execute(MessageAddedEvent.model_validate(payload))

    assert result.ok
    subscriptions = fake_conversations.subscriptions_for(conversation_ref)
    assert len(subscriptions) == 1
    assert subscriptions[0].kind == SubscriptionKind.ASSISTANT_CALLBACK
    assert subscriptions[0].configuration["url"] == (
        "https://handoff.example.com/channels/conversations/messageAdded"
    )
    attributes = fake_conversations.attributes[
        (conversation_ref.service_sid, conversation_ref.conversation_sid)
    ]
    assert attributes == {ASSISTANT_IS_TYPING: True, INFO_USER: {"name": "Alice"}}
    assert len(fake_assistant.requests) == 1


@pytest.mark.asyncio
async def test_send_to_assistant_without_info_user_drops_stale_value(
    db, fake_conversations, fake_assistant, settings, conversation_ref, event
):
    await fake_conversations.update_attributes(conversation_ref, {INFO_USER: "old"})
    command = SendToAssistantCommand(db, fake_conversations, fake_assistant, settings)

    await command.execute(event)

    attributes = await fake_conversations.fetch_attributes(conversation_ref)
    assert INFO_USER not in attributes
