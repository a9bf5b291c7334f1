"""Rasterize a caption and its style into a square PNG."""
import io
import logging
import re
from pathlib import Path

from PIL import Image, ImageDraw, ImageFont

from engine.modules.style import DEFAULT_STYLE, Style

logger = logging.getLogger(__name__)

# Style sizes are given for a 540px preview card.
_PREVIEW_SIZE = 540
_LINE_SPACING = 1.4

_HEX_RE = re.compile(r"#([0-9a-fA-F]{6}|[0-9a-fA-F]{3})\b")
_PX_RE = re.compile(r"(\d+(?:\.\d+)?)px")


class RenderError(Exception):
    """The image could not be produced."""


def parse_hex(value: str) -> tuple[int, int, int]:
    digits = value.lstrip("#")
    if len(digits) == 3:
        digits = "".join(ch * 2 for ch in digits)
    return tuple(int(digits[i:i + 2], 16) for i in (0, 2, 4))


def gradient_stops(background: str) -> list[tuple[int, int, int]]:
    """Hex colors of a CSS background value, in order of appearance."""
    return [parse_hex(m.group(0)) for m in _HEX_RE.finditer(background or "")]


def _px(value: str, default: float) -> float:
    match = _PX_RE.search(value or "")
    return float(match.group(1)) if match else default


def _paint_background(size: int, background: str) -> Image.Image:
    stops = gradient_stops(background) or gradient_stops(DEFAULT_STYLE.background_color)
    start, end = stops[0], stops[-1]
    if start == end:
        return Image.new("RGB", (size, size), start)

    # 135deg: top-left to bottom-right
    img = Image.new("RGB", (size, size))
    draw = ImageDraw.Draw(img)
    span = 2 * (size - 1) or 1
    for d in range(2 * size - 1):
        t = d / span
        color = tuple(round(a + (b - a) * t) for a, b in zip(start, end))
        x0, y0 = max(0, d - size + 1), min(d, size - 1)
        x1, y1 = min(d, size - 1), max(0, d - size + 1)
        draw.line([(x0, y0), (x1, y1)], fill=color)
    return img


def font_file_for(font_family: str, font_dir: str | None) -> str | None:
    """TrueType file for a CSS family list such as "Playfair Display, serif".

    Looks for the first family name, spaces removed, as <name>.ttf in
    ``font_dir``.
    """
    if not font_dir:
        return None
    family = (font_family or "").split(",")[0].strip().replace(" ", "")
    if not family:
        return None
    candidate = Path(font_dir).expanduser() / f"{family}.ttf"
    return str(candidate) if candidate.is_file() else None


def _load_font(font_path: str | None, size: int):
    if font_path:
        try:
            return ImageFont.truetype(font_path, size)
        except OSError:
            logger.warning("Font %s not loadable, using default", font_path)
    return ImageFont.load_default(size=size)


def _wrap(draw: ImageDraw.ImageDraw, text: str, font, max_width: float) -> list[str]:
    lines: list[str] = []
    for paragraph in text.split("\n"):
        words = paragraph.split(" ")
        current: list[str] = []
        for word in words:
            current.append(word)
            bbox = draw.textbbox((0, 0), " ".join(current), font=font)
            if bbox[2] - bbox[0] > max_width and len(current) > 1:
                current.pop()
                lines.append(" ".join(current))
                current = [word]
        lines.append(" ".join(current))
    return lines


def render_post(
    text: str,
    style: Style = DEFAULT_STYLE,
    size: int = 1080,
    font_path: str | None = None,
    background: Image.Image | None = None,
    font_dir: str | None = None,
) -> bytes:
    """Return PNG bytes of ``text`` painted with ``style``.

    ``background`` is an already-downloaded photo; when given it replaces
    the gradient. The font comes from ``font_dir`` when it holds a file for
    ``style.font_family``, then ``font_path``, then Pillow's built-in font.
    """
    try:
        scale = size / _PREVIEW_SIZE
        if background is not None:
            img = background.convert("RGB").resize((size, size))
        else:
            img = _paint_background(size, style.background_color)
        draw = ImageDraw.Draw(img)

        font_file = font_file_for(style.font_family, font_dir) or font_path
        font = _load_font(font_file, max(8, round(_px(style.font_size, 20) * scale)))
        padding = _px(style.padding, 60) * scale
        max_width = max(1.0, size - 2 * padding)
        fill = parse_hex(style.text_color) if _HEX_RE.fullmatch(style.text_color or "") else (255, 255, 255)

        lines = _wrap(draw, text, font, max_width)
        line_height = (draw.textbbox((0, 0), "Ag", font=font)[3]) * _LINE_SPACING
        y = max(padding, (size - line_height * len(lines)) / 2)

        for line in lines:
            if y + line_height > size - padding / 2:
                break
            width = draw.textbbox((0, 0), line, font=font)[2]
            if style.text_align == "left":
                x = padding
            elif style.text_align == "right":
                x = size - padding - width
            else:
                x = (size - width) / 2
            draw.text((x, y), line, fill=fill, font=font)
            y += line_height

        buffer = io.BytesIO()
        img.save(buffer, format="PNG")
        return buffer.getvalue()
    except (OSError, ValueError) as e:
        logger.exception("Render failed")
        raise RenderError(f"Could not render image: {e}") from e
