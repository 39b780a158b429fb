"""
Error taxonomy for the handoff core.

AuthenticationFailure: caller is not a verified party; nothing is mutated.
ValidationFailure: the request is well-formed HTTP but cannot be acted on.
UpstreamFailure: the platform or assistant service failed or timed out.
"""

from __future__ import annotations

from typing import Optional


class HandoffError(Exception):
    """Base class for handoff errors. `code` is a stable machine-readable reason."""

    code = "handoff_error"

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class AuthenticationFailure(HandoffError):
    code = "authentication_failure"


class ValidationFailure(HandoffError):
    code = "validation_failure"


class MalformedSessionId(ValidationFailure):
    code = "malformed_session_id"


class MissingToolArgument(ValidationFailure):
    code = "missing_tool_argument"


class ClassificationError(ValidationFailure):
    """Missing or unknown service/area classification; `field` names which one."""

    code = "invalid_classification"

    def __init__(self, message: str, field: str, value: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field
        self.value = value


class UpstreamFailure(HandoffError):
    """A call to the platform or the assistant failed. `status_code` is set for HTTP errors."""

    code = "upstream_failure"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
    ) -> None:
        super().__init__(message, code)
        self.status_code = status_code


class AssistantReportedFailure(UpstreamFailure):
    """The assistant called back with a failed status."""

    code = "assistant_failed"
