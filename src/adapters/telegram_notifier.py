"""Telegram messaging adapter — implements MessagingPort.

Wraps a telegram.Bot instance to satisfy the MessagingPort protocol.
"""

from __future__ import annotations

import logging

from telegram import Bot, ReplyParameters
from telegram.error import TelegramError

from src.ports.notification_port import MessageSendResult

logger = logging.getLogger(__name__)

_SEND_TIMEOUT_SECONDS = 10


class TelegramNotifier:
    """Telegram implementation of MessagingPort."""

    def __init__(self, bot: Bot) -> None:
        self._bot = bot

    async def send_reply(
        self, chat_id: str, text: str, reply_to_message_id: int | None = None,
    ) -> MessageSendResult:
        reply_parameters = None
        if reply_to_message_id is not None:
            reply_parameters = ReplyParameters(
                message_id=reply_to_message_id, allow_sending_without_reply=True,
            )
        try:
            sent = await self._bot.send_message(
                chat_id=int(chat_id),
                text=text,
                reply_parameters=reply_parameters,
                write_timeout=_SEND_TIMEOUT_SECONDS,
                read_timeout=_SEND_TIMEOUT_SECONDS,
            )
        except TelegramError as exc:
            logger.error("sendMessage to %s failed: %s", chat_id, exc)
            return MessageSendResult(ok=False, error=str(exc))
        except Exception as exc:
            logger.error("sendMessage to %s error: %s", chat_id, exc)
            return MessageSendResult(ok=False, error=str(exc))
        return MessageSendResult(ok=True, message_id=sent.message_id)
