"""Telegram transport built on python-telegram-bot.

Every text message (commands included) goes through
``CommandRouter.handle_text`` so a pending withdrawal prompt sees it before
command parsing does. Inline-button presses become normalized events.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.constants import ParseMode
from telegram.error import TelegramError
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from chat_wallet.core.service import WalletService
from chat_wallet.router import parse_callback
from chat_wallet.storage.models import BotReply

logger = logging.getLogger("chat_wallet.transport.telegram")

_SERVICE_KEY = "service"


def _service(context: ContextTypes.DEFAULT_TYPE) -> WalletService:
    return context.application.bot_data[_SERVICE_KEY]


def _keyboard(reply: BotReply) -> InlineKeyboardMarkup | None:
    actions = reply.data.get("actions")
    if not actions:
        return None
    return InlineKeyboardMarkup(
        [[InlineKeyboardButton(a["text"], callback_data=a["callback_data"])] for a in actions]
    )


async def _deliver(
    context: ContextTypes.DEFAULT_TYPE, chat_id: int, reply: BotReply
) -> None:
    try:
        await context.bot.send_message(
            chat_id=chat_id,
            text=reply.message,
            parse_mode=ParseMode.MARKDOWN,
            reply_markup=_keyboard(reply),
        )
    except TelegramError as e:
        logger.error(f"Failed to deliver reply to {chat_id}: {e}")


async def on_text(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    message = update.effective_message
    chat = update.effective_chat
    if message is None or chat is None or message.text is None:
        return
    reply = await _service(context).router.handle_text(str(chat.id), message.text)
    if reply is not None:
        await _deliver(context, chat.id, reply)


async def on_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    query = update.callback_query
    chat = update.effective_chat
    if query is None or chat is None:
        return
    # Nothing may be awaited before the router holds this chat's lock.
    answering = asyncio.create_task(query.answer())

    event = parse_callback(str(chat.id), query.data or "")
    reply = None
    if event is None:
        logger.debug(f"Ignoring callback data {query.data!r} from {chat.id}")
    else:
        reply = await _service(context).router.handle(event)

    try:
        await answering
    except TelegramError as e:
        logger.warning(f"Failed to answer callback from {chat.id}: {e}")
    if reply is not None:
        await _deliver(context, chat.id, reply)


async def on_error(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    logger.error(
        f"Exception while handling an update: {context.error}",
        exc_info=context.error,
    )


def build_application(
    token: str,
    base_path: Path | None = None,
    concurrent_updates: bool = True,
) -> Application:
    """Create the Telegram application; the wallet service opens in ``post_init``."""

    async def _post_init(application: Application) -> None:
        application.bot_data[_SERVICE_KEY] = await WalletService.load(base_path)

    async def _post_shutdown(application: Application) -> None:
        service = application.bot_data.pop(_SERVICE_KEY, None)
        if service is not None:
            await service.shutdown()

    application = (
        Application.builder()
        .token(token)
        .concurrent_updates(concurrent_updates)
        .post_init(_post_init)
        .post_shutdown(_post_shutdown)
        .build()
    )
    application.add_error_handler(on_error)
    application.add_handler(MessageHandler(filters.TEXT, on_text))
    application.add_handler(CallbackQueryHandler(on_callback))
    return application
