"""Format captions, themes and saved posts as Telegram MarkdownV2 messages."""
import re

from engine.modules.reformat import PLATFORM_LIMITS, character_count, exceeds_limit
from engine.modules.style import Style
from engine.modules.themes import Theme

# Characters that must be escaped in MarkdownV2
_ESCAPE_CHARS = r"\_*[]()~`>#+-=|{}.!"

_MAX_INLINE_CHARS = 3800  # leave headroom below 4096


def escape(text: str) -> str:
    """Escape special characters for Telegram MarkdownV2."""
    return re.sub(r"([" + re.escape(_ESCAPE_CHARS) + r"])", r"\\\1", text)


def _limit_line(text: str, platform: str) -> str:
    count = character_count(text)
    limit = PLATFORM_LIMITS[platform]
    icon = "⚠️" if exceeds_limit(text, platform) else "✅"
    return f"{icon} {escape(platform.capitalize())}: {count}/{limit}"


def format_caption(original: str, caption: str, author_name: str | None = None) -> str:
    """The converted caption plus character counts for both platforms."""
    if not caption:
        return "Nothing to convert \\- the text is empty\\."

    body = escape(caption)
    if len(body) > _MAX_INLINE_CHARS:
        body = body[:_MAX_INLINE_CHARS].rstrip("\\") + "…"

    lines = ["📸 *Instagram caption*"]
    if author_name:
        lines.append(f"_by {escape(author_name)}_")
    lines += [
        escape("─" * 17),
        body,
        escape("─" * 17),
        _limit_line(original, "twitter") + "  \\(original\\)",
        _limit_line(caption, "instagram"),
    ]
    return "\n".join(lines)


def format_theme(theme: Theme, heading: str = "🎨 Suggested theme") -> str:
    return "\n".join([
        f"*{escape(heading)}:* {escape(theme.name)}",
        f"_{escape(theme.description)}_",
        f"Text color `{escape(theme.text_color)}`",
        "Apply it with /theme " + escape(theme.name),
    ])


def format_theme_list(scored: list[tuple[Theme, int]], current: str | None = None) -> str:
    lines = ["🎨 *Themes*", ""]
    for theme, score in scored:
        marker = "👉 " if theme.name == current else ""
        lines.append(
            f"{marker}*{escape(theme.name)}* \\- {escape(theme.description)} "
            f"\\({score} match{'es' if score != 1 else ''}\\)"
        )
    lines += ["", "Use /theme \\<name\\> to apply one\\."]
    return "\n".join(lines)


def format_style(style: Style) -> str:
    lines = [
        "🖌 *Current style*",
        "",
        f"Font: `{escape(style.font_family)}`",
        f"Size: `{escape(style.font_size)}`",
        f"Text color: `{escape(style.text_color)}`",
        f"Background: `{escape(style.background_color)}`",
        f"Align: `{escape(style.text_align)}`",
    ]
    if style.background_image:
        lines.append(f"Image: {escape(style.background_image)}")
    return "\n".join(lines)


def format_saved_posts(posts: list[dict]) -> str:
    if not posts:
        return "No saved posts yet\\. Use /save after converting something\\."

    lines = ["📋 *Saved posts*", ""]
    for p in posts:
        title = escape((p.get("title") or "")[:60])
        created = escape((p.get("created_at") or "")[:10])
        pid = p["id"]
        lines.append(f"`#{pid}` {created} \\| *{title}*")
        if p.get("author_name"):
            lines.append(f"     _by {escape(p['author_name'])}_")
        lines.append(f"     👉 /open {pid}  🗑 /delete {pid}")
        lines.append("")
    return "\n".join(lines)


def format_saved_post(post: dict) -> list[str]:
    """Return list of messages for /open."""
    header = "\n".join([
        f"📄 *Post \\#{post['id']}: {escape(post.get('title') or '')}*",
        f"Saved: `{escape((post.get('created_at') or '')[:19])}`",
    ] + ([f"Author: {escape(post['author_name'])}"] if post.get("author_name") else []))
    body = escape(post.get("output_text") or "")
    return [header] + _split_message(body)


def _split_message(text: str, max_len: int = 4000) -> list[str]:
    if len(text) <= max_len:
        return [text]
    chunks = []
    while text:
        chunk = text[:max_len]
        # never cut an escape sequence in half
        if chunk.endswith("\\") and len(text) > max_len:
            chunk = chunk[:-1]
        chunks.append(chunk)
        text = text[len(chunk):]
    return chunks
