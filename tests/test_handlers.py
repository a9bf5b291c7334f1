"""
Tests for the bot conversion flow with a stubbed Telegram update.
"""
import asyncio
import io
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from PIL import Image

from bot import handlers
from engine.modules.style import DEFAULT_STYLE


def _update(text: str, user_id: int = 7):
    message = SimpleNamespace(text=text, reply_text=AsyncMock(), reply_document=AsyncMock())
    return SimpleNamespace(
        message=message,
        effective_user=SimpleNamespace(id=user_id),
        effective_chat=SimpleNamespace(id=user_id),
    )


def _context(*args):
    return SimpleNamespace(args=list(args), user_data={}, bot=SimpleNamespace(send_chat_action=AsyncMock()))


@pytest.fixture(autouse=True)
def _fresh_rate_limits():
    handlers._rate_limit_buckets.clear()
    yield
    handlers._rate_limit_buckets.clear()


def test_plain_message_is_converted_and_remembered(temp_db):
    update = _update("the calm blue ocean #waves")
    context = _context()

    asyncio.run(handlers.handle_plain_message(update, context))

    assert context.user_data["caption"].endswith("#waves")
    assert context.user_data["suggested_theme"] == "Ocean Breeze"
    assert update.message.reply_text.await_count == 2


def test_suggest_applies_theme_to_style(temp_db):
    update = _update("the calm blue ocean")
    context = _context()
    asyncio.run(handlers.handle_plain_message(update, context))

    asyncio.run(handlers.cmd_suggest(update, context))

    assert context.user_data["style"]["background_color"].startswith("linear-gradient(135deg, #667eea")


def test_suggest_without_text(temp_db):
    update = _update("/suggest")
    context = _context()
    asyncio.run(handlers.cmd_suggest(update, context))
    update.message.reply_text.assert_awaited_once_with(handlers._NOTHING_CONVERTED)


def test_save_and_list(temp_db):
    update = _update("hello #world")
    context = _context()
    asyncio.run(handlers.handle_plain_message(update, context))

    context.args = ["My", "post"]
    asyncio.run(handlers.cmd_save(update, context))

    posts = temp_db.get_saved_posts(7)
    assert len(posts) == 1
    assert posts[0]["title"] == "My post"
    assert posts[0]["output_text"] == context.user_data["caption"]


def test_fetch_error_is_reported(temp_db, monkeypatch):
    status = SimpleNamespace(edit_text=AsyncMock(), delete=AsyncMock())
    update = _update("https://x.com/a/status/1")
    update.message.reply_text = AsyncMock(return_value=status)

    async def failing_fetch(url, timeout):
        raise handlers.FetchError("Post lookup failed (HTTP 404).")

    monkeypatch.setattr(handlers, "fetch_post", failing_fetch)
    context = _context()

    asyncio.run(handlers.handle_plain_message(update, context))

    status.edit_text.assert_awaited_once_with("❌ Post lookup failed (HTTP 404).")
    assert "caption" not in context.user_data


def test_rate_limit():
    for _ in range(3):
        allowed, _ = handlers._check_rate_limit(1, "render", 3)
        assert allowed
    allowed, retry_after = handlers._check_rate_limit(1, "render", 3)
    assert not allowed
    assert retry_after >= 1


def _truncated_png() -> bytes:
    buffer = io.BytesIO()
    Image.effect_noise((64, 64), 64).convert("RGB").save(buffer, format="PNG")
    return buffer.getvalue()[:120]


def test_render_falls_back_to_gradient_on_corrupt_photo(temp_db, monkeypatch):
    async def fake_download(url, timeout):
        return _truncated_png()

    monkeypatch.setattr(handlers, "download_image", fake_download)
    monkeypatch.setattr(handlers.settings, "render_size", 200)

    update = _update("/render")
    context = _context()
    context.user_data["caption"] = "hello"
    context.user_data["style"] = DEFAULT_STYLE.to_dict() | {"background_image": "https://img/1.png"}

    asyncio.run(handlers.cmd_render(update, context))

    update.message.reply_document.assert_awaited_once()
    update.message.reply_text.assert_not_awaited()


def test_font_reply_says_when_render_uses_default_font(temp_db, monkeypatch):
    monkeypatch.setattr(handlers.settings, "font_dir", "")
    update = _update("/font")
    context = _context("playfair")

    asyncio.run(handlers.cmd_font(update, context))

    assert context.user_data["style"]["font_family"] == "Playfair Display, serif"
    reply = update.message.reply_text.await_args.args[0]
    assert "default font" in reply
