"""All Telegram command and message handlers."""
import asyncio
import io
import logging
from collections import deque
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from time import monotonic

from PIL import Image
from telegram import Update
from telegram.constants import ChatAction, ParseMode
from telegram.ext import (
    ContextTypes,
    ConversationHandler,
    CommandHandler,
    MessageHandler,
    filters,
)

import db
from config import settings
from bot import formatter
from engine.modules.reformat import reformat
from engine.modules.style import (
    DEFAULT_STYLE,
    FONT_OPTIONS,
    FONT_SIZES,
    TEXT_ALIGNMENTS,
    TEXT_COLORS,
    Style,
    apply_theme,
    resolve_font,
    resolve_size,
    update_style,
)
from engine.modules.themes import THEMES, get_theme, score_themes, suggest_theme
from engine.render import RenderError, font_file_for, render_post
from engine.sources.images import ImageDownloadError, download_image, get_image_service
from engine.sources.posts import FetchError, fetch_post, looks_like_post_url

logger = logging.getLogger(__name__)

# ConversationHandler states
WAITING_SOURCE = 1

_RATE_LIMIT_WINDOW_SECONDS = settings.rate_limit_window_seconds
_RATE_LIMIT_FETCH_PER_WINDOW = settings.rate_limit_fetch_per_window
_RATE_LIMIT_RENDER_PER_WINDOW = settings.rate_limit_render_per_window

_GENERIC_FETCH_ERR = "❌ Could not fetch that post. Please try again shortly."
_GENERIC_RENDER_ERR = "❌ Rendering failed. Please try again later."
_GENERIC_IMAGE_ERR = "❌ Background image lookup failed. Please try again later."
_GENERIC_SAVE_ERR = "❌ Saving failed. Please try again later."
_NOTHING_CONVERTED = "Nothing converted yet. Send some text or a post URL first."

_rate_limit_buckets: dict[tuple[int, str], deque[float]] = {}


@asynccontextmanager
async def _chat_action(context: ContextTypes.DEFAULT_TYPE, chat_id: int, action: str = ChatAction.TYPING):
    """Sends a chat action repeatedly until the block exits.

    Telegram expires the indicator after ~5 s, so we refresh every 4 s.
    """
    stop = asyncio.Event()

    async def _loop():
        while not stop.is_set():
            try:
                await context.bot.send_chat_action(chat_id=chat_id, action=action)
            except Exception:
                logger.debug("send_chat_action failed", exc_info=True)
            try:
                await asyncio.wait_for(stop.wait(), timeout=4)
            except asyncio.TimeoutError:
                pass

    task = asyncio.create_task(_loop())
    try:
        yield
    finally:
        stop.set()
        await asyncio.gather(task, return_exceptions=True)


# ── helpers ───────────────────────────────────────────────────────────────────

def _uid(update: Update) -> int:
    return update.effective_user.id


def _cid(update: Update) -> int:
    return update.effective_chat.id


def _check_rate_limit(user_id: int, action: str, limit: int) -> tuple[bool, int]:
    """Return (allowed, retry_after_seconds) for user-action pair."""
    now = monotonic()
    key = (user_id, action)
    bucket = _rate_limit_buckets.setdefault(key, deque())
    window_start = now - _RATE_LIMIT_WINDOW_SECONDS

    while bucket and bucket[0] <= window_start:
        bucket.popleft()

    if len(bucket) >= limit:
        retry_after = int(_RATE_LIMIT_WINDOW_SECONDS - (now - bucket[0])) + 1
        return False, max(retry_after, 1)

    bucket.append(now)
    return True, 0


async def _deny_rate_limit(update: Update, retry_after_seconds: int) -> None:
    await update.message.reply_text(
        f"⏳ Too many requests. Please retry in about {retry_after_seconds}s."
    )


def _current_style(update: Update, context: ContextTypes.DEFAULT_TYPE) -> Style:
    """Session style, seeded from the user's saved default on first use."""
    stored = context.user_data.get("style")
    if stored is not None:
        return Style.from_dict(stored)
    prefs = db.get_user_preferences(_uid(update))
    style = Style.from_dict(prefs["default_style"]) if prefs else DEFAULT_STYLE
    context.user_data["style"] = style.to_dict()
    return style


def _set_style(context: ContextTypes.DEFAULT_TYPE, style: Style) -> None:
    context.user_data["style"] = style.to_dict()


def _arg_text(context: ContextTypes.DEFAULT_TYPE) -> str:
    return " ".join(context.args).strip() if context.args else ""


async def _convert_and_reply(
    text: str,
    update: Update,
    context: ContextTypes.DEFAULT_TYPE,
    author_name: str | None = None,
) -> None:
    """Core flow: reformat → suggest theme → remember in session → reply."""
    caption = reformat(text)
    theme = suggest_theme(text)

    context.user_data["original"] = text
    context.user_data["caption"] = caption
    context.user_data["author_name"] = author_name
    context.user_data["suggested_theme"] = theme.name

    await update.message.reply_text(
        formatter.format_caption(text, caption, author_name),
        parse_mode=ParseMode.MARKDOWN_V2,
    )
    if caption:
        await update.message.reply_text(
            formatter.format_theme(theme),
            parse_mode=ParseMode.MARKDOWN_V2,
        )


async def _fetch_and_convert(url: str, update: Update, context: ContextTypes.DEFAULT_TYPE) -> bool:
    uid = _uid(update)
    allowed, retry_after = _check_rate_limit(uid, "fetch", _RATE_LIMIT_FETCH_PER_WINDOW)
    if not allowed:
        await _deny_rate_limit(update, retry_after)
        return False

    status_msg = await update.message.reply_text("🔎 Fetching post…")
    try:
        async with _chat_action(context, _cid(update)):
            post = await fetch_post(url, timeout=settings.fetch_timeout_seconds)
    except FetchError as e:
        await status_msg.edit_text(f"❌ {e}")
        return False
    except Exception:
        logger.exception("Post fetch error")
        await status_msg.edit_text(_GENERIC_FETCH_ERR)
        return False

    await status_msg.delete()
    await _convert_and_reply(post.text, update, context, author_name=post.author_name)
    return True


async def _handle_source(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    content = (update.message.text or "").strip()
    if looks_like_post_url(content):
        await _fetch_and_convert(content, update, context)
    else:
        await _convert_and_reply(update.message.text or "", update, context)


# ── /start ────────────────────────────────────────────────────────────────────

async def cmd_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await update.message.reply_text(
        "👋 Welcome to *Post Studio*\n\n"
        "Send me a tweet \\(or a link to one\\) and I'll turn it into an Instagram "
        "caption, suggest a look, and render it as an image\\.\n\n"
        "Send /help to see all available commands\\.",
        parse_mode=ParseMode.MARKDOWN_V2,
    )


# ── /help ─────────────────────────────────────────────────────────────────────

async def cmd_help(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    text = (
        "📖 *Commands*\n\n"
        "*Convert*\n"
        "/convert \\- Paste text or a post URL to convert\n"
        "/fetch \\<url\\> \\- Convert a post by its URL\n"
        "Any plain message is converted directly\\.\n\n"
        "*Style*\n"
        "/themes \\- List themes with match scores\n"
        "/theme \\<name\\> \\- Apply a theme\n"
        "/suggest \\- Apply the suggested theme\n"
        "/font, /size, /color, /align \\- Adjust text\n"
        "/background \\[off\\] \\- Use a photo background\n"
        "/style \\- Show the current style\n"
        "/render \\- Render the caption as an image\n\n"
        "*Saved*\n"
        "/save \\[title\\] \\- Save the current post\n"
        "/saved \\- List saved posts\n"
        "/open \\<id\\> \\- Show a saved post\n"
        "/usestyle \\<id\\> \\- Reuse a saved post's style\n"
        "/delete \\<id\\> \\- Delete a saved post\n"
        "/setdefault \\- Make the current style your default\n"
        "/favorite \\<theme\\> \\- Toggle a favorite theme\n\n"
        "*Other*\n"
        "/status \\- Show bot status\n"
        "/whoami \\- Show your Telegram ID\n"
        "/cancel \\- Exit current mode"
    )
    await update.message.reply_text(text, parse_mode=ParseMode.MARKDOWN_V2)


# ── /status ───────────────────────────────────────────────────────────────────

async def cmd_status(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    uid = _uid(update)
    count = db.get_post_count(uid)
    prefs = db.get_user_preferences(uid)
    favorites = ", ".join(prefs["favorite_themes"]) if prefs and prefs["favorite_themes"] else "none"

    text = (
        "⚙️ *Bot Status*\n\n"
        f"🖼 Image service: `{formatter.escape(settings.image_service)}`\n"
        f"📐 Render size: `{settings.render_size}px`\n"
        f"📊 Your saved posts: `{count}`\n"
        f"⭐ Favorite themes: {formatter.escape(favorites)}"
    )
    await update.message.reply_text(text, parse_mode=ParseMode.MARKDOWN_V2)


# ── /whoami ───────────────────────────────────────────────────────────────────

async def cmd_whoami(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    uid = _uid(update)
    await update.message.reply_text(
        f"Your Telegram ID: `{uid}`\nSaved posts are stored under this ID.",
        parse_mode=ParseMode.MARKDOWN,
    )


# ── /convert (ConversationHandler) ────────────────────────────────────────────

async def cmd_convert(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    inline = _arg_text(context)
    if inline:
        if looks_like_post_url(inline):
            await _fetch_and_convert(inline, update, context)
        else:
            await _convert_and_reply(inline, update, context)
        return ConversationHandler.END

    await update.message.reply_text(
        "Send the post you want to convert:\n\n"
        "• Paste the text\n"
        "• Or paste a twitter.com / x.com status link\n\n"
        "Send /cancel to exit."
    )
    return WAITING_SOURCE


async def convert_source_input(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    if not (update.message.text or "").strip():
        await update.message.reply_text("Content is empty, please try again.")
        return WAITING_SOURCE

    await _handle_source(update, context)
    return ConversationHandler.END


async def convert_invalid_input(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    await update.message.reply_text(
        "Please send text or a post link, or send /cancel to exit."
    )
    return WAITING_SOURCE


async def cmd_cancel(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    await update.message.reply_text("Cancelled.")
    return ConversationHandler.END


# ── /fetch <url> ──────────────────────────────────────────────────────────────

async def cmd_fetch(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    url = _arg_text(context)
    if not url:
        await update.message.reply_text("Usage: /fetch <post url>")
        return
    await _fetch_and_convert(url, update, context)


# ── plain text (convert directly) ─────────────────────────────────────────────

async def handle_plain_message(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not update.message or not update.message.text:
        return
    await _handle_source(update, context)


# ── themes ────────────────────────────────────────────────────────────────────

async def cmd_themes(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    original = context.user_data.get("original", "")
    msg = formatter.format_theme_list(
        score_themes(original),
        current=context.user_data.get("suggested_theme"),
    )
    await update.message.reply_text(msg, parse_mode=ParseMode.MARKDOWN_V2)


async def cmd_theme(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    name = _arg_text(context)
    if not name:
        names = ", ".join(t.name for t in THEMES)
        await update.message.reply_text(f"Usage: /theme <name>\nThemes: {names}")
        return

    theme = get_theme(name)
    if theme is None:
        await update.message.reply_text(f"❌ Unknown theme: {name}")
        return

    _set_style(context, apply_theme(_current_style(update, context), theme))
    await update.message.reply_text(f"✅ Applied {theme.name} ({theme.description}).")


async def cmd_suggest(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    original = context.user_data.get("original")
    if original is None:
        await update.message.reply_text(_NOTHING_CONVERTED)
        return

    theme = suggest_theme(original)
    _set_style(context, apply_theme(_current_style(update, context), theme))
    await update.message.reply_text(
        formatter.format_theme(theme, heading="✅ Applied theme"),
        parse_mode=ParseMode.MARKDOWN_V2,
    )


# ── style adjustments ─────────────────────────────────────────────────────────

async def cmd_font(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    font = resolve_font(_arg_text(context))
    if font is None:
        await update.message.reply_text(f"Usage: /font <name>\nFonts: {', '.join(FONT_OPTIONS)}")
        return
    _set_style(context, update_style(_current_style(update, context), font_family=font))
    if font_file_for(font, settings.font_dir or None):
        await update.message.reply_text(f"✅ Font set to {font}.")
    else:
        await update.message.reply_text(
            f"✅ Font set to {font} (saved with the style; no font file for it is "
            "installed, so /render uses the default font)."
        )


async def cmd_size(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    size = resolve_size(_arg_text(context))
    if size is None:
        await update.message.reply_text(
            f"Usage: /size <name|NNpx>\nSizes: {', '.join(FONT_SIZES)}"
        )
        return
    _set_style(context, update_style(_current_style(update, context), font_size=size))
    await update.message.reply_text(f"✅ Text size set to {size}.")


async def cmd_color(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    color = _arg_text(context).lower()
    try:
        style = update_style(_current_style(update, context), text_color=color)
    except ValueError:
        await update.message.reply_text(
            f"Usage: /color <#hex>\nSwatches: {' '.join(TEXT_COLORS)}"
        )
        return
    _set_style(context, style)
    await update.message.reply_text(f"✅ Text color set to {color}.")


async def cmd_align(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    align = _arg_text(context).lower()
    try:
        style = update_style(_current_style(update, context), text_align=align)
    except ValueError:
        await update.message.reply_text(f"Usage: /align <{'|'.join(TEXT_ALIGNMENTS)}>")
        return
    _set_style(context, style)
    await update.message.reply_text(f"✅ Alignment set to {align}.")


async def cmd_background(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    style = _current_style(update, context)
    if _arg_text(context).lower() == "off":
        _set_style(context, update_style(style, background_image=None))
        await update.message.reply_text("✅ Photo background removed.")
        return

    original = context.user_data.get("original")
    if original is None:
        await update.message.reply_text(_NOTHING_CONVERTED)
        return

    try:
        url = await get_image_service().generate_image_url(original)
    except Exception:
        logger.exception("Background image lookup error")
        await update.message.reply_text(_GENERIC_IMAGE_ERR)
        return

    _set_style(context, update_style(style, background_image=url))
    await update.message.reply_text(f"✅ Photo background set:\n{url}")


async def cmd_style(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await update.message.reply_text(
        formatter.format_style(_current_style(update, context)),
        parse_mode=ParseMode.MARKDOWN_V2,
    )


# ── /render ───────────────────────────────────────────────────────────────────

async def cmd_render(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    caption = context.user_data.get("caption")
    if not caption:
        await update.message.reply_text(_NOTHING_CONVERTED)
        return

    uid = _uid(update)
    allowed, retry_after = _check_rate_limit(uid, "render", _RATE_LIMIT_RENDER_PER_WINDOW)
    if not allowed:
        await _deny_rate_limit(update, retry_after)
        return

    style = _current_style(update, context)
    try:
        async with _chat_action(context, _cid(update), ChatAction.UPLOAD_PHOTO):
            background = None
            if style.background_image:
                try:
                    data = await download_image(
                        style.background_image, timeout=settings.fetch_timeout_seconds
                    )
                    background = Image.open(io.BytesIO(data))
                    # open() only reads the header; decode now so a bad file falls back here
                    background.load()
                except (ImageDownloadError, OSError):
                    logger.warning("Background image unavailable, using gradient", exc_info=True)
            png = await asyncio.to_thread(
                render_post,
                caption,
                style,
                settings.render_size,
                settings.font_path or None,
                background,
                settings.font_dir or None,
            )
    except RenderError:
        await update.message.reply_text(_GENERIC_RENDER_ERR)
        return
    except Exception:
        logger.exception("Render error")
        await update.message.reply_text(_GENERIC_RENDER_ERR)
        return

    stamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    await update.message.reply_document(
        document=io.BytesIO(png),
        filename=f"instagram-post-{stamp}.png",
    )


# ── saved posts ───────────────────────────────────────────────────────────────

async def cmd_save(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    caption = context.user_data.get("caption")
    if not caption:
        await update.message.reply_text(_NOTHING_CONVERTED)
        return

    title = _arg_text(context) or f"Post from {datetime.now(timezone.utc).date().isoformat()}"
    post_id = db.save_post(
        _uid(update),
        title=title,
        original_text=context.user_data.get("original", ""),
        output_text=caption,
        style=_current_style(update, context).to_dict(),
        author_name=context.user_data.get("author_name"),
    )
    if post_id is None:
        await update.message.reply_text(_GENERIC_SAVE_ERR)
        return
    await update.message.reply_text(f"💾 Saved as #{post_id}: {title}")


async def cmd_saved(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    posts = db.get_saved_posts(_uid(update))
    await update.message.reply_text(
        formatter.format_saved_posts(posts), parse_mode=ParseMode.MARKDOWN_V2
    )


async def _post_id_arg(update: Update, context: ContextTypes.DEFAULT_TYPE, command: str) -> int | None:
    if not context.args:
        await update.message.reply_text(f"Usage: /{command} <id>")
        return None
    try:
        return int(context.args[0].lstrip("#"))
    except ValueError:
        await update.message.reply_text("❌ ID must be a number.")
        return None


async def cmd_open(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    post_id = await _post_id_arg(update, context, "open")
    if post_id is None:
        return

    post = db.get_post(post_id, _uid(update))
    if not post:
        await update.message.reply_text(f"❌ Post #{post_id} not found.")
        return

    for msg in formatter.format_saved_post(post):
        await update.message.reply_text(msg, parse_mode=ParseMode.MARKDOWN_V2)


async def cmd_usestyle(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    post_id = await _post_id_arg(update, context, "usestyle")
    if post_id is None:
        return

    post = db.get_post(post_id, _uid(update))
    if not post:
        await update.message.reply_text(f"❌ Post #{post_id} not found.")
        return

    _set_style(context, Style.from_dict(post["style"]))
    await update.message.reply_text(f"✅ Using the style of #{post_id}.")


async def cmd_delete(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    post_id = await _post_id_arg(update, context, "delete")
    if post_id is None:
        return

    if db.delete_post(post_id, _uid(update)):
        await update.message.reply_text(f"🗑 Deleted #{post_id}.")
    else:
        await update.message.reply_text(f"❌ Post #{post_id} not found.")


# ── preferences ───────────────────────────────────────────────────────────────

async def cmd_setdefault(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    uid = _uid(update)
    prefs = db.get_user_preferences(uid)
    favorites = prefs["favorite_themes"] if prefs else []
    if db.save_user_preferences(uid, _current_style(update, context).to_dict(), favorites):
        await update.message.reply_text("✅ Current style saved as your default.")
    else:
        await update.message.reply_text(_GENERIC_SAVE_ERR)


async def cmd_favorite(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    theme = get_theme(_arg_text(context))
    if theme is None:
        names = ", ".join(t.name for t in THEMES)
        await update.message.reply_text(f"Usage: /favorite <theme>\nThemes: {names}")
        return

    uid = _uid(update)
    prefs = db.get_user_preferences(uid)
    default_style = prefs["default_style"] if prefs else DEFAULT_STYLE.to_dict()
    favorites = list(prefs["favorite_themes"]) if prefs else []

    if theme.name in favorites:
        favorites.remove(theme.name)
        reply = f"☆ Removed {theme.name} from favorites."
    else:
        favorites.append(theme.name)
        reply = f"⭐ Added {theme.name} to favorites."

    if db.save_user_preferences(uid, default_style, favorites):
        await update.message.reply_text(reply)
    else:
        await update.message.reply_text(_GENERIC_SAVE_ERR)


# ── build ConversationHandler ─────────────────────────────────────────────────

def build_conversation() -> ConversationHandler:
    """/convert with no argument waits for the next message as the source."""
    return ConversationHandler(
        entry_points=[CommandHandler("convert", cmd_convert)],
        states={
            WAITING_SOURCE: [
                MessageHandler(filters.TEXT & ~filters.COMMAND, convert_source_input),
                MessageHandler(~filters.COMMAND, convert_invalid_input),
            ],
        },
        fallbacks=[CommandHandler("cancel", cmd_cancel)],
    )
