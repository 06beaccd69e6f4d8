"""Messaging port — abstract interface for replying in a conversation.

Core modules depend on this protocol, never on a specific messaging provider.
Sending is fire-and-forget: implementations report failure in the result
instead of raising.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass
class MessageSendResult:
    ok: bool
    message_id: int | None = None
    error: str | None = None


class MessagingPort(Protocol):
    """Abstract messaging interface used by core modules."""

    async def send_reply(
        self, chat_id: str, text: str, reply_to_message_id: int | None = None,
    ) -> MessageSendResult: ...
