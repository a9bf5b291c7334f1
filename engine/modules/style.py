"""Style record for rendered posts, its presets, and theme application."""
from dataclasses import asdict, dataclass, fields, replace
import re

from engine.modules.themes import Theme

TEXT_ALIGNMENTS = ("left", "center", "right")

FONT_OPTIONS: dict[str, str] = {
    "Inter": "Inter, sans-serif",
    "Playfair": "Playfair Display, serif",
    "Poppins": "Poppins, sans-serif",
    "Roboto": "Roboto, sans-serif",
    "Montserrat": "Montserrat, sans-serif",
    "Dancing Script": "Dancing Script, cursive",
}

FONT_SIZES: dict[str, str] = {
    "Small": "16px",
    "Medium": "20px",
    "Large": "24px",
    "Extra Large": "28px",
}

TEXT_COLORS = (
    "#000000", "#ffffff", "#374151", "#6b7280",
    "#ef4444", "#f59e0b", "#10b981", "#3b82f6",
    "#8b5cf6", "#ec4899", "#f97316", "#84cc16",
)

_HEX_COLOR_RE = re.compile(r"#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})")


@dataclass(frozen=True)
class Style:
    font_family: str = FONT_OPTIONS["Inter"]
    font_size: str = FONT_SIZES["Medium"]
    text_color: str = "#ffffff"
    background_color: str = "linear-gradient(135deg, #667eea 0%, #764ba2 100%)"
    background_image: str | None = None
    text_align: str = "center"
    padding: str = "60px"

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict | None) -> "Style":
        """Build a style from stored data, ignoring unknown keys."""
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


DEFAULT_STYLE = Style()


def apply_theme(style: Style, theme: Theme) -> Style:
    """Copy the theme's gradient and text color onto ``style``."""
    return replace(style, background_color=theme.gradient, text_color=theme.text_color)


def update_style(style: Style, **changes) -> Style:
    """Return a copy of ``style`` with validated changes.

    Raises ValueError on unknown fields, bad alignment or bad hex color.
    """
    known = {f.name for f in fields(Style)}
    unknown = set(changes) - known
    if unknown:
        raise ValueError(f"Unknown style field(s): {', '.join(sorted(unknown))}")
    if "text_align" in changes and changes["text_align"] not in TEXT_ALIGNMENTS:
        raise ValueError(f"Alignment must be one of: {', '.join(TEXT_ALIGNMENTS)}")
    if "text_color" in changes and not is_hex_color(changes["text_color"]):
        raise ValueError(f"Not a hex color: {changes['text_color']!r}")
    return replace(style, **changes)


def is_hex_color(value: str) -> bool:
    return bool(_HEX_COLOR_RE.fullmatch(value or ""))


def _lookup(options: dict[str, str], name: str) -> str | None:
    wanted = name.strip().lower()
    for key, value in options.items():
        if key.lower() == wanted:
            return value
    return None


def resolve_font(name: str) -> str | None:
    return _lookup(FONT_OPTIONS, name)


def resolve_size(name: str) -> str | None:
    """Map a preset name ("large") or a raw pixel size ("22px") to a size."""
    preset = _lookup(FONT_SIZES, name)
    if preset:
        return preset
    raw = name.strip().lower()
    if re.fullmatch(r"\d{1,3}px", raw):
        return raw
    return None
