"""Typed result of a handler invocation, independent of the HTTP answer."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from handoff.schemas.conversations import ConversationRef


def _describe(error: Optional[BaseException]) -> Optional[str]:
    if error is None:
        return None
    return f"{type(error).__name__}: {error}"


class Outcome(str, Enum):
    SUCCESS = "success"
    # The caller was acknowledged but part of the work did not happen
    DEGRADED = "degraded"
    FATAL = "fatal"


@dataclass
class HandoffResult:
    action: str
    outcome: Outcome
    reason: str = "ok"
    ref: Optional[ConversationRef] = None
    detail: dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    @staticmethod
    def success(
        action: str,
        ref: Optional[ConversationRef] = None,
        reason: str = "ok",
        **detail: Any,
    ) -> "HandoffResult":
        return HandoffResult(action, Outcome.SUCCESS, reason, ref, detail)

    @staticmethod
    def degraded(
        action: str,
        reason: str,
        ref: Optional[ConversationRef] = None,
        error: Optional[BaseException] = None,
        **detail: Any,
    ) -> "HandoffResult":
        return HandoffResult(
            action, Outcome.DEGRADED, reason, ref, detail, _describe(error)
        )

    @staticmethod
    def fatal(
        action: str,
        reason: str,
        ref: Optional[ConversationRef] = None,
        error: Optional[BaseException] = None,
        **detail: Any,
    ) -> "HandoffResult":
        return HandoffResult(action, Outcome.FATAL, reason, ref, detail, _describe(error))

    @property
    def ok(self) -> bool:
        return self.outcome == Outcome.SUCCESS
