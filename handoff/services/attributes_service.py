"""
Conversation State Accessor.

The platform has no partial-update or compare-and-swap primitive for the
attributes document, so every mutation is read, shallow merge, full overwrite.
Concurrent patches on the same conversation are last-writer-wins at document
granularity; callers keep the read/write window short by patching only the
keys they own.
"""

from __future__ import annotations

from typing import Any, Mapping

from handoff.adapters.base import BaseConversationsAdapter
from handoff.constants.conversations import ASSISTANT_IS_TYPING
from handoff.schemas.conversations import ConversationRef


class _Unset:
    """Delta value that removes a key from the document."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


def merge_attributes(
    current: Mapping[str, Any], delta: Mapping[str, Any]
) -> dict[str, Any]:
    """Shallow merge. Keys mapped to UNSET are removed; untouched keys are kept."""
    merged = dict(current)
    for key, value in delta.items():
        if value is UNSET:
            merged.pop(key, None)
        else:
            merged[key] = value
    return merged


class AttributesService:
    """Read, write and patch a conversation's attributes document."""

    def __init__(self, conversations: BaseConversationsAdapter) -> None:
        self._conversations = conversations

    async def read(self, ref: ConversationRef) -> dict[str, Any]:
        return await self._conversations.fetch_attributes(ref)

    async def write(self, ref: ConversationRef, attributes: Mapping[str, Any]) -> None:
        await self._conversations.update_attributes(ref, dict(attributes))

    async def patch(
        self, ref: ConversationRef, delta: Mapping[str, Any]
    ) -> dict[str, Any]:
        """Read immediately before writing and merge only `delta`. Returns the written document."""
        current = await self.read(ref)
        merged = merge_attributes(current, delta)
        await self.write(ref, merged)
        return merged

    async def set_typing(self, ref: ConversationRef, typing: bool) -> dict[str, Any]:
        return await self.patch(ref, {ASSISTANT_IS_TYPING: typing})
