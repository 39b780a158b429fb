from handoff.models.handoff_event import HandoffEvent

__all__ = ["HandoffEvent"]
