"""Tests for the conversation ownership state machine."""

import pytest

from handoff.constants.conversations import SubscriptionKind
from handoff.core.state_machine import (
    HandoffState,
    InvalidTransitionError,
    abort_escalation,
    attach_assistant,
    can_transition,
    complete_escalation,
    derive_state,
    start_escalation,
    transition,
)
from handoff.schemas.conversations import Subscription


def subscription(kind: SubscriptionKind, sid: str = "WH1") -> Subscription:
    return Subscription(sid=sid, target=kind.value)


def test_derive_state_no_subscriptions():
    assert derive_state([]) == HandoffState.BOT_ACTIVE


def test_derive_state_assistant_callback():
    subs = [subscription(SubscriptionKind.ASSISTANT_CALLBACK)]
    assert derive_state(subs) == HandoffState.BOT_ACTIVE


def test_derive_state_human_workflow_wins():
    subs = [
        subscription(SubscriptionKind.ASSISTANT_CALLBACK, "WH1"),
        subscription(SubscriptionKind.HUMAN_WORKFLOW, "WH2"),
    ]
    assert derive_state(subs) == HandoffState.HUMAN_ACTIVE


def test_derive_state_second_participant():
    assert derive_state([], participant_count=2) == HandoffState.HUMAN_ACTIVE


def test_derive_state_ignores_unknown_targets():
    subs = [Subscription(sid="WH1", target="trigger")]
    assert derive_state(subs) == HandoffState.BOT_ACTIVE


def test_escalation_path():
    state = start_escalation(HandoffState.BOT_ACTIVE)
    assert state == HandoffState.ESCALATING
    assert complete_escalation(state) == HandoffState.HUMAN_ACTIVE


def test_abort_escalation():
    assert abort_escalation(HandoffState.ESCALATING) == HandoffState.BOT_ACTIVE


@pytest.mark.parametrize("state", list(HandoffState))
def test_attach_assistant_from_any_state(state):
    assert attach_assistant(state) == HandoffState.BOT_ACTIVE


def test_cannot_escalate_twice():
    with pytest.raises(InvalidTransitionError):
        start_escalation(HandoffState.HUMAN_ACTIVE)


def test_cannot_skip_escalating():
    assert can_transition(HandoffState.BOT_ACTIVE, HandoffState.HUMAN_ACTIVE) is False
    with pytest.raises(InvalidTransitionError) as exc:
        transition(HandoffState.BOT_ACTIVE, HandoffState.HUMAN_ACTIVE)
    assert exc.value.from_state == HandoffState.BOT_ACTIVE
    assert exc.value.to_state == HandoffState.HUMAN_ACTIVE
