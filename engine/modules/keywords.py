"""Pick search keywords out of post text for background image lookups."""
import re

_STRIP_RE = re.compile(r"#\w+|@\w+|https?://\S+", re.ASCII)
_ALPHA_RE = re.compile(r"^[a-zA-Z]+$")

DEFAULT_QUERY = "abstract minimal"

STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with",
    "by", "is", "are", "was", "were", "be", "been", "have", "has", "had", "do", "does",
    "did", "will", "would", "could", "should", "may", "might", "must", "can", "this",
    "that", "these", "those", "i", "you", "he", "she", "it", "we", "they", "me", "him",
    "her", "us", "them", "my", "your", "his", "its", "our", "their",
})


def extract_keywords(text: str) -> list[str]:
    """Unique content words, longest first (ties keep first-seen order)."""
    cleaned = _STRIP_RE.sub("", text).lower()
    words = [
        w for w in cleaned.split()
        if len(w) > 2 and w not in STOP_WORDS and _ALPHA_RE.match(w)
    ]
    unique = list(dict.fromkeys(words))
    return sorted(unique, key=len, reverse=True)


def build_query(text: str, limit: int = 2) -> str:
    return " ".join(extract_keywords(text)[:limit]) or DEFAULT_QUERY
