"""
HomeOps Assistant — Telegram Bot.

Telegram is the transport: the bot sits in a household group chat, reads
every text message, and hands it to the ActivityService. It speaks only
when the response policy says so.

Security-first: chats outside ALLOWED_CHAT_IDS are silently ignored.
"""

from __future__ import annotations

import logging
from datetime import time as dt_time
from functools import wraps
from typing import TYPE_CHECKING, Any, Callable, Coroutine
from zoneinfo import ZoneInfo

from telegram import Update
from telegram.ext import Application, ApplicationBuilder, ContextTypes, MessageHandler, filters

from src.config import settings
from src.data.models import IncomingMessage, ReplyContext, StoredMessage

if TYPE_CHECKING:
    from telegram import Message

    from src.core.activity_service import ActivityService
    from src.data.db import MessageDB
    from src.ports.notification_port import MessagingPort

logger = logging.getLogger(__name__)

_MAINTENANCE_HOUR = 3


# ---------------------------------------------------------------------------
# Security: silent-ignore decorator
# ---------------------------------------------------------------------------


def authorized_chat_only(
    func: Callable[..., Coroutine[Any, Any, None]],
) -> Callable[..., Coroutine[Any, Any, None]]:
    """Decorator that silently ignores messages from unknown chats.

    An empty ALLOWED_CHAT_IDS list admits every chat the bot was added to.
    """

    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        chat = update.effective_chat
        allowed = settings.ALLOWED_CHAT_IDS
        if chat is None or (allowed and chat.id not in allowed):
            cid = chat.id if chat else "unknown"
            logger.warning("Message from unauthorized chat_id=%s ignored", cid)
            return  # Silent ignore
        return await func(update, context)

    return wrapper


# ---------------------------------------------------------------------------
# Update → domain message
# ---------------------------------------------------------------------------


def build_incoming_message(
    msg: Message, bot_id: int | None, bot_username: str | None,
) -> IncomingMessage | None:
    """Translate a Telegram message into an IncomingMessage (None if not text)."""
    if msg is None or not msg.text or msg.from_user is None:
        return None

    reply = None
    replied = msg.reply_to_message
    if replied is not None:
        replied_to_bot = replied.from_user is not None and (
            replied.from_user.id == bot_id if bot_id is not None else replied.from_user.is_bot
        )
        reply = ReplyContext(
            to_message_id=replied.message_id,
            to_bot=replied_to_bot,
            to_text=replied.text or "",
        )

    mentions_bot = bool(bot_username) and f"@{bot_username}".lower() in msg.text.lower()
    user = msg.from_user

    return IncomingMessage(
        chat_id=str(msg.chat_id),
        message_id=msg.message_id,
        sender_id=user.id,
        sender_name=user.first_name or user.username or str(user.id),
        text=msg.text,
        timestamp=msg.date.timestamp(),
        reply=reply,
        mentions_bot=mentions_bot,
    )


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


@authorized_chat_only
async def handle_text(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Store the raw message, then run the understanding pipeline on it."""
    msg = update.effective_message
    if msg is None or msg.from_user is None or msg.from_user.is_bot:
        return

    bot_username = context.bot_data.get("bot_username") or settings.BOT_USERNAME or None
    message = build_incoming_message(msg, context.bot.id, bot_username)
    if message is None:
        return

    # Raw persistence belongs to the transport; its failure fails the update.
    message_db: MessageDB = context.bot_data["message_db"]
    message_db.save_message(
        StoredMessage(
            chat_id=message.chat_id,
            message_id=message.message_id,
            user_id=message.sender_id,
            user_name=message.sender_name,
            text=message.text,
            timestamp=message.timestamp,
        )
    )

    service: ActivityService = context.bot_data["service"]
    outcome = await service.process_message(message)
    logger.info(
        "Processed %s/%d via %s: sent=%s reason=%s",
        message.chat_id, message.message_id, outcome.route.value, outcome.sent,
        outcome.decision.reason if outcome.decision else None,
    )


async def _maintenance_job(context: ContextTypes.DEFAULT_TYPE) -> None:
    from src.core.maintenance import purge_expired_records

    purge_expired_records(
        context.bot_data["counter_db"],
        context.bot_data["message_db"],
        retention_days=settings.MESSAGE_RETENTION_DAYS,
    )


async def _post_init(app: Application) -> None:
    """Resolve the bot's @username once the Bot is initialized."""
    if not app.bot_data.get("bot_username"):
        app.bot_data["bot_username"] = settings.BOT_USERNAME or app.bot.username
    logger.info("Bot running as @%s", app.bot_data["bot_username"])


# ---------------------------------------------------------------------------
# Application wiring
# ---------------------------------------------------------------------------


def build_app(
    service: ActivityService | None = None,
    messenger: MessagingPort | None = None,
) -> Application:
    """Build and configure the Telegram Application.

    Args:
        service: Pipeline implementation. Defaults to one wired from settings.
        messenger: Messaging port. Defaults to TelegramNotifier around app.bot.
    """
    from src.data.db import MessageDB, ResponseCounterDB

    app = ApplicationBuilder().token(settings.TELEGRAM_BOT_TOKEN).post_init(_post_init).build()

    if messenger is None:
        from src.adapters.telegram_notifier import TelegramNotifier
        messenger = TelegramNotifier(app.bot)

    if service is None:
        from src.core.activity_service import ActivityService
        service = ActivityService.from_settings(messenger)

    app.bot_data["service"] = service
    app.bot_data["message_db"] = MessageDB()
    app.bot_data["counter_db"] = ResponseCounterDB()
    app.bot_data["bot_username"] = settings.BOT_USERNAME

    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handle_text))

    _setup_maintenance(app)

    logger.info("Telegram bot application built with %d handlers", len(app.handlers[0]))
    return app


def _setup_maintenance(app: Application) -> None:
    """Register the nightly purge of expired counters and old messages."""
    tz = ZoneInfo(settings.TIMEZONE)
    app.job_queue.run_daily(
        _maintenance_job,
        time=dt_time(hour=_MAINTENANCE_HOUR, minute=0, tzinfo=tz),
        name="maintenance",
    )
    logger.info("Maintenance scheduled at %02d:00 %s", _MAINTENANCE_HOUR, settings.TIMEZONE)


def main() -> None:
    """Entry point: build the app and start polling."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.info("Starting HomeOps Assistant bot...")
    app = build_app()
    app.run_polling(allowed_updates=Update.ALL_TYPES)


if __name__ == "__main__":
    main()
