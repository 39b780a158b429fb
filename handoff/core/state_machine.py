"""
Explicit ownership state of a conversation.

BOT_ACTIVE: the assistant receives new messages.
ESCALATING: a subscription swap to the human workflow is in progress.
HUMAN_ACTIVE: a human workflow (or a human participant) owns the channel.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable

from handoff.constants.conversations import SubscriptionKind
from handoff.schemas.conversations import Subscription


class HandoffState(str, Enum):
    BOT_ACTIVE = "bot_active"
    ESCALATING = "escalating"
    HUMAN_ACTIVE = "human_active"


VALID_TRANSITIONS = {
    HandoffState.BOT_ACTIVE: [HandoffState.BOT_ACTIVE, HandoffState.ESCALATING],
    HandoffState.ESCALATING: [HandoffState.BOT_ACTIVE, HandoffState.HUMAN_ACTIVE],
    HandoffState.HUMAN_ACTIVE: [HandoffState.BOT_ACTIVE],
}


class InvalidTransitionError(Exception):
    def __init__(self, from_state: HandoffState, to_state: HandoffState):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Invalid transition: {from_state.value} -> {to_state.value}")


def derive_state(
    subscriptions: Iterable[Subscription], participant_count: int = 1
) -> HandoffState:
    """Read the current owner from the subscription set and the participant count."""
    if any(s.kind == SubscriptionKind.HUMAN_WORKFLOW for s in subscriptions):
        return HandoffState.HUMAN_ACTIVE
    if participant_count > 1:
        return HandoffState.HUMAN_ACTIVE
    return HandoffState.BOT_ACTIVE


def can_transition(from_state: HandoffState, to_state: HandoffState) -> bool:
    """Check if transition is valid."""
    allowed = VALID_TRANSITIONS.get(from_state, [])
    return to_state in allowed


def transition(from_state: HandoffState, to_state: HandoffState) -> HandoffState:
    """Perform state transition. Raises InvalidTransitionError if not allowed."""
    if not can_transition(from_state, to_state):
        raise InvalidTransitionError(from_state, to_state)
    return to_state


def start_escalation(current_state: HandoffState) -> HandoffState:
    """The assistant asked for a human; the swap is about to run."""
    return transition(current_state, HandoffState.ESCALATING)


def complete_escalation(current_state: HandoffState) -> HandoffState:
    """The human workflow subscription is in place."""
    return transition(current_state, HandoffState.HUMAN_ACTIVE)


def abort_escalation(current_state: HandoffState) -> HandoffState:
    return transition(current_state, HandoffState.BOT_ACTIVE)


def attach_assistant(current_state: HandoffState) -> HandoffState:
    """Route the conversation back to (or keep it with) the assistant."""
    if current_state == HandoffState.ESCALATING:
        return abort_escalation(current_state)
    return transition(current_state, HandoffState.BOT_ACTIVE)
