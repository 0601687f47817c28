"""Telegram implementation of the messaging gateway.

Wraps telegram.Bot so the navigation core only ever sees ints and bools:
  - Text is sent as MarkdownV2 first and falls back to plain text when
    Telegram rejects the markup.
  - Flood control (RetryAfter) is waited out and the call retried once.
  - "message is not modified" counts as a successful edit; a deleted
    message is logged and reported as False.
  - Documents are streamed from an open file handle under their own name.

Key class: TelegramGateway.
Functions:
  - to_markup: plain keyboard rows → InlineKeyboardMarkup
  - send_with_fallback: send with MarkdownV2, fall back to plain text
  - edit_with_fallback: edit with MarkdownV2, fall back to plain text
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import timedelta
from pathlib import Path
from typing import Any, TypeVar

from telegram import (
    Bot,
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    LinkPreviewOptions,
    Message,
)
from telegram.constants import ChatAction
from telegram.error import BadRequest, RetryAfter, TelegramError

from ..gateway import Keyboard
from ..markdown_v2 import convert_markdown

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Disable link previews in menus and notices to reduce visual noise
NO_LINK_PREVIEW = LinkPreviewOptions(is_disabled=True)


def to_markup(keyboard: Keyboard | None) -> InlineKeyboardMarkup | None:
    if keyboard is None:
        return None
    return InlineKeyboardMarkup(
        [
            [InlineKeyboardButton(label, callback_data=data) for label, data in row]
            for row in keyboard
        ]
    )


def _retry_delay(exc: RetryAfter) -> float:
    delay = exc.retry_after
    if isinstance(delay, timedelta):
        return delay.total_seconds()
    return float(delay)


async def _with_retry(call: Callable[..., Awaitable[T]], **kwargs: Any) -> T:
    """Await call(**kwargs), waiting out one round of flood control."""
    try:
        return await call(**kwargs)
    except RetryAfter as e:
        delay = _retry_delay(e)
        logger.warning("Flood control, retrying in %.1fs", delay)
        await asyncio.sleep(delay)
        return await call(**kwargs)


def _is_not_found(exc: BadRequest) -> bool:
    return "not found" in str(exc).lower()


def _is_not_modified(exc: BadRequest) -> bool:
    return "not modified" in str(exc).lower()


async def send_with_fallback(
    bot: Bot,
    chat_id: int,
    text: str,
    **kwargs: Any,
) -> Message | None:
    """Send message with MarkdownV2, falling back to plain text on failure.

    Returns the sent Message on success, None on failure.
    """
    kwargs.setdefault("link_preview_options", NO_LINK_PREVIEW)
    try:
        return await _with_retry(
            bot.send_message,
            chat_id=chat_id,
            text=convert_markdown(text),
            parse_mode="MarkdownV2",
            **kwargs,
        )
    except TelegramError:
        try:
            return await _with_retry(
                bot.send_message, chat_id=chat_id, text=text, **kwargs
            )
        except TelegramError as e:
            logger.warning("Failed to send message to %s: %s", chat_id, e)
            return None


async def edit_with_fallback(
    bot: Bot,
    chat_id: int,
    message_id: int,
    text: str,
    **kwargs: Any,
) -> bool:
    """Edit message with MarkdownV2, falling back to plain text on failure."""
    kwargs.setdefault("link_preview_options", NO_LINK_PREVIEW)
    try:
        await _with_retry(
            bot.edit_message_text,
            chat_id=chat_id,
            message_id=message_id,
            text=convert_markdown(text),
            parse_mode="MarkdownV2",
            **kwargs,
        )
        return True
    except BadRequest as e:
        if _is_not_modified(e):
            return True
        if _is_not_found(e):
            logger.info("Cannot edit message %d in %s: gone", message_id, chat_id)
            return False
    except TelegramError:
        pass
    try:
        await _with_retry(
            bot.edit_message_text,
            chat_id=chat_id,
            message_id=message_id,
            text=text,
            **kwargs,
        )
        return True
    except BadRequest as e:
        if _is_not_modified(e):
            return True
        logger.warning("Failed to edit message %d in %s: %s", message_id, chat_id, e)
    except TelegramError as e:
        logger.warning("Failed to edit message %d in %s: %s", message_id, chat_id, e)
    return False


class TelegramGateway:
    """MessagingGateway backed by a python-telegram-bot Bot."""

    def __init__(self, bot: Bot) -> None:
        self.bot = bot

    async def send_text(
        self,
        chat_id: int,
        text: str,
        keyboard: Keyboard | None = None,
        *,
        plain: bool = False,
    ) -> int | None:
        markup = to_markup(keyboard)
        if plain:
            # Link files: keep the preview so videos show a thumbnail
            try:
                msg = await _with_retry(
                    self.bot.send_message,
                    chat_id=chat_id,
                    text=text,
                    reply_markup=markup,
                )
            except TelegramError as e:
                logger.warning("Failed to send message to %s: %s", chat_id, e)
                return None
        else:
            msg = await send_with_fallback(
                self.bot, chat_id, text, reply_markup=markup
            )
        return msg.message_id if msg is not None else None

    async def edit_text(
        self,
        chat_id: int,
        message_id: int,
        text: str,
        keyboard: Keyboard | None = None,
    ) -> bool:
        return await edit_with_fallback(
            self.bot, chat_id, message_id, text, reply_markup=to_markup(keyboard)
        )

    async def delete_message(self, chat_id: int, message_id: int) -> bool:
        try:
            await self.bot.delete_message(chat_id=chat_id, message_id=message_id)
            return True
        except BadRequest as e:
            if _is_not_found(e) or "can't be deleted" in str(e).lower():
                logger.info("Message %d in %s already gone", message_id, chat_id)
            else:
                logger.warning(
                    "Failed to delete message %d in %s: %s", message_id, chat_id, e
                )
        except TelegramError as e:
            logger.warning(
                "Failed to delete message %d in %s: %s", message_id, chat_id, e
            )
        return False

    async def send_document(self, chat_id: int, path: Path, filename: str) -> bool:
        async def _upload() -> Message:
            # Reopened per attempt so a retry starts from the first byte
            with open(path, "rb") as f:
                return await self.bot.send_document(
                    chat_id=chat_id, document=f, filename=filename
                )

        try:
            await _with_retry(_upload)
            return True
        except TelegramError as e:
            logger.warning("Failed to send %s to %s: %s", filename, chat_id, e)
        except OSError as e:
            logger.warning("Cannot open %s: %s", path, e)
        return False

    async def answer_callback(self, callback_id: str, text: str | None = None) -> None:
        try:
            await self.bot.answer_callback_query(
                callback_query_id=callback_id, text=text
            )
        except TelegramError as e:
            logger.debug("Failed to answer callback %s: %s", callback_id, e)

    async def send_typing(self, chat_id: int, upload: bool = False) -> None:
        action = ChatAction.UPLOAD_DOCUMENT if upload else ChatAction.TYPING
        try:
            await self.bot.send_chat_action(chat_id=chat_id, action=action)
        except TelegramError as e:
            logger.debug("Failed to send chat action to %s: %s", chat_id, e)
