"""
Pure-function caption rewriting.

Turns a short post (tweet-sized text) into an Instagram-style caption.
No I/O and no state: the same input always produces the same caption.

Steps, in order:
  1. blank input       → ""
  2. hashtags          → pulled out of the text, kept in order (duplicates too)
  3. whitespace        → collapsed to single spaces and trimmed
  4. long text (>100)  → ". " becomes ".\\n\\n" (not abbreviation-aware)
  5. hashtags block    → appended below a divider, or alone if no text is left
  6. URLs              → prefixed with 🔗 and followed by a "link in bio" note

The rewrite is not idempotent: running it over its own output can insert
more paragraph breaks and annotate URLs a second time.
"""
import re

_HASHTAG_RE = re.compile(r"#(\w+)", re.ASCII)
_MENTION_RE = re.compile(r"@(\w+)", re.ASCII)
_WHITESPACE_RE = re.compile(r"\s+")
_URL_RE = re.compile(r"(https?://\S+)")

_PARAGRAPH_THRESHOLD = 100
DIVIDER = "━" * 19
LINK_NOTE = "(Link in bio for easy access)"

PLATFORM_LIMITS: dict[str, int] = {
    "twitter": 280,
    "instagram": 2200,
}


def reformat(text: str) -> str:
    """Return the caption version of ``text``."""
    if not text.strip():
        return ""

    # Mentions read the same on both platforms; kept as a rewrite hook.
    converted = _MENTION_RE.sub(r"@\1", text)

    hashtags: list[str] = []

    def _pull(match: re.Match) -> str:
        hashtags.append(f"#{match.group(1)}")
        return ""

    converted = _HASHTAG_RE.sub(_pull, converted)
    converted = _WHITESPACE_RE.sub(" ", converted).strip()

    if len(converted) > _PARAGRAPH_THRESHOLD:
        converted = converted.replace(". ", ".\n\n")

    if hashtags:
        tags = " ".join(hashtags)
        if converted:
            converted = f"{converted}\n\n{DIVIDER}\n\n{tags}"
        else:
            converted = tags

    return _URL_RE.sub(lambda m: f"🔗 {m.group(1)}\n{LINK_NOTE}", converted)


def character_count(text: str) -> int:
    return len(text)


def exceeds_limit(text: str, platform: str) -> bool:
    """True when ``text`` is longer than the platform allows.

    Advisory only; nothing here truncates.
    """
    try:
        limit = PLATFORM_LIMITS[platform]
    except KeyError:
        raise ValueError(
            f"Unknown platform: {platform!r}. Supported: {', '.join(PLATFORM_LIMITS)}"
        ) from None
    return character_count(text) > limit
