"""Post Studio - Telegram Bot entry point."""
import logging
import sys
from urllib.parse import urlparse

from telegram import BotCommand
from telegram.ext import (
    Application,
    CommandHandler,
    MessageHandler,
    filters,
)

import db
from config import settings
from bot.handlers import (
    cmd_start,
    cmd_help,
    cmd_status,
    cmd_whoami,
    cmd_fetch,
    cmd_themes,
    cmd_theme,
    cmd_suggest,
    cmd_font,
    cmd_size,
    cmd_color,
    cmd_align,
    cmd_background,
    cmd_style,
    cmd_render,
    cmd_save,
    cmd_saved,
    cmd_open,
    cmd_usestyle,
    cmd_delete,
    cmd_setdefault,
    cmd_favorite,
    handle_plain_message,
    build_conversation,
)

logging.basicConfig(
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    stream=sys.stdout,
)
# httpx logs every request URL at INFO, which would leak image API keys
logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


async def _set_commands(app: Application) -> None:
    await app.bot.set_my_commands([
        BotCommand("convert",  "Convert text or a post URL"),
        BotCommand("fetch",    "Convert a post by its URL"),
        BotCommand("themes",   "List themes with match scores"),
        BotCommand("theme",    "Apply a theme by name"),
        BotCommand("suggest",  "Apply the suggested theme"),
        BotCommand("style",    "Show the current style"),
        BotCommand("render",   "Render the caption as an image"),
        BotCommand("save",     "Save the current post"),
        BotCommand("saved",    "List saved posts"),
        BotCommand("help",     "Show all commands"),
        BotCommand("cancel",   "Exit current mode"),
    ])


_COMMANDS = {
    "start": cmd_start,
    "help": cmd_help,
    "status": cmd_status,
    "whoami": cmd_whoami,
    "fetch": cmd_fetch,
    "themes": cmd_themes,
    "theme": cmd_theme,
    "suggest": cmd_suggest,
    "font": cmd_font,
    "size": cmd_size,
    "color": cmd_color,
    "align": cmd_align,
    "background": cmd_background,
    "style": cmd_style,
    "render": cmd_render,
    "save": cmd_save,
    "saved": cmd_saved,
    "open": cmd_open,
    "usestyle": cmd_usestyle,
    "delete": cmd_delete,
    "setdefault": cmd_setdefault,
    "favorite": cmd_favorite,
}


def main() -> None:
    if not settings.telegram_bot_token:
        logger.error("TELEGRAM_BOT_TOKEN is not set. Add it to .env and restart.")
        sys.exit(1)

    db.init_db()
    logger.info("Database initialized.")

    app = (
        Application.builder()
        .token(settings.telegram_bot_token)
        .post_init(_set_commands)
        .build()
    )

    # Register ConversationHandler first (higher priority)
    app.add_handler(build_conversation())

    for name, callback in _COMMANDS.items():
        app.add_handler(CommandHandler(name, callback))

    # Any other text is treated as a post to convert
    app.add_handler(
        MessageHandler(filters.TEXT & ~filters.COMMAND, handle_plain_message)
    )

    if settings.webhook_url:
        url_path = urlparse(settings.webhook_url).path or "/bot"
        logger.info("Webhook mode: %s (listening on port %d)", settings.webhook_url, settings.webhook_port)
        app.run_webhook(
            listen=settings.webhook_listen,
            port=settings.webhook_port,
            url_path=url_path,
            secret_token=settings.webhook_secret or None,
            webhook_url=settings.webhook_url,
            drop_pending_updates=True,
        )
    else:
        logger.info("Polling mode (set WEBHOOK_URL in .env to switch to webhook).")
        app.run_polling(drop_pending_updates=True)


if __name__ == "__main__":
    main()
