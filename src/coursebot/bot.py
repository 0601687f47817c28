"""Telegram bot handlers: the transport layer of CourseBot.

Turns python-telegram-bot updates into navigation events and hands them to
the Navigator. All chat behaviour lives in handlers/navigation.py; this
module only wires it up.

Core responsibilities:
  - Command/text handlers: /start and /menu (reset + main menu), /help,
    and a hint for any other text.
  - Callback query handler: every inline button press.
  - Global error handler: logs anything a handler let escape.
  - Periodic job evicting idle sessions.
  - Bot lifecycle: post_init builds the Navigator and registers the
    command menu; create_bot builds the Application.

Key functions: create_bot(), build_navigator().
"""

import logging

from telegram import Bot, BotCommand, Update
from telegram.error import TelegramError
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from .catalog import Catalog
from .config import config
from .handlers.delivery import DeliveryPipeline
from .handlers.menu_ui import MenuRenderer
from .handlers.message_sender import TelegramGateway
from .handlers.navigation import CallbackEvent, CommandEvent, Navigator
from .session import SessionStore

logger = logging.getLogger(__name__)

# bot_data key holding the Navigator built in post_init
NAVIGATOR_KEY = "navigator"

# Idle session sweep interval
SESSION_SWEEP_INTERVAL = 60.0  # seconds

BOT_COMMANDS: list[tuple[str, str]] = [
    ("start", "Browse course materials"),
    ("menu", "Start over from the main menu"),
    ("help", "How to use this bot"),
]

ALLOWED_UPDATES = ["message", "callback_query"]


def build_navigator(bot: Bot) -> Navigator:
    """Assemble the navigation core from the application config."""
    gateway = TelegramGateway(bot)
    store = SessionStore(
        ttl=config.session_ttl,
        max_sessions=config.max_sessions,
        history_cap=config.message_history_size,
        delivery_timeout=config.delivery_timeout,
    )
    catalog = Catalog(config.materials_dir)
    renderer = MenuRenderer(gateway, store, animate=config.menu_animation)
    pipeline = DeliveryPipeline(
        gateway,
        catalog,
        renderer,
        link_categories=config.link_categories,
        delay=config.delivery_delay,
        send_timeout=config.send_timeout,
        progress_interval=config.progress_edit_interval,
    )
    return Navigator(catalog, store, renderer, pipeline)


def _navigator(context: ContextTypes.DEFAULT_TYPE) -> Navigator:
    return context.application.bot_data[NAVIGATOR_KEY]


# --- Update handlers ---


async def message_handler(
    update: Update, context: ContextTypes.DEFAULT_TYPE
) -> None:
    """Route commands and plain text to the navigator."""
    message = update.effective_message
    chat = update.effective_chat
    if not message or not chat or not message.text:
        return
    await _navigator(context).handle_command(CommandEvent(chat.id, message.text))


async def callback_handler(
    update: Update, context: ContextTypes.DEFAULT_TYPE
) -> None:
    query = update.callback_query
    if not query:
        return
    chat = update.effective_chat
    if chat is None:
        await query.answer()
        return
    event = CallbackEvent(
        chat_id=chat.id,
        message_id=query.message.message_id if query.message else None,
        callback_id=query.id,
        data=query.data or "",
    )
    await _navigator(context).handle_callback(event)


async def error_handler(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Log errors that escaped a handler; the application keeps running."""
    update_id = update.update_id if isinstance(update, Update) else None
    logger.error(
        "Unhandled error while processing update %s",
        update_id,
        exc_info=context.error,
    )


async def _sweep_sessions(context: ContextTypes.DEFAULT_TYPE) -> None:
    _navigator(context).store.evict_idle()


# --- App lifecycle ---


async def post_init(application: Application) -> None:
    navigator = build_navigator(application.bot)
    application.bot_data[NAVIGATOR_KEY] = navigator

    try:
        await application.bot.set_my_commands(
            [BotCommand(name, description) for name, description in BOT_COMMANDS]
        )
    except TelegramError:
        logger.exception("Failed to register bot commands")

    if application.job_queue:
        application.job_queue.run_repeating(
            _sweep_sessions,
            interval=SESSION_SWEEP_INTERVAL,
            first=SESSION_SWEEP_INTERVAL,
        )
    else:
        logger.warning("Job queue unavailable, idle sessions evicted only on demand")

    logger.info("Serving materials from %s", navigator.catalog.root)


def create_bot() -> Application:
    application = (
        Application.builder()
        .token(config.telegram_bot_token)
        .concurrent_updates(True)
        .post_init(post_init)
        .build()
    )

    application.add_handler(
        CommandHandler([name for name, _ in BOT_COMMANDS], message_handler)
    )
    application.add_handler(CallbackQueryHandler(callback_handler))
    # Other text and unknown commands get a usage hint
    application.add_handler(MessageHandler(filters.TEXT, message_handler))
    application.add_error_handler(error_handler)

    return application


def run_application(application: Application) -> None:
    """Serve updates by webhook when a public URL is configured, else poll."""
    if config.use_webhook:
        url_path = f"bot{config.telegram_bot_token}"
        logger.info("Starting webhook on port %d", config.port)
        application.run_webhook(
            listen="0.0.0.0",
            port=config.port,
            url_path=url_path,
            webhook_url=f"{config.webhook_url}/{url_path}",
            allowed_updates=ALLOWED_UPDATES,
        )
    else:
        logger.info("Starting long polling")
        application.run_polling(allowed_updates=ALLOWED_UPDATES)
