"""
Tests for the style record and theme application.
"""
import pytest

from engine.modules.style import (
    DEFAULT_STYLE,
    Style,
    apply_theme,
    is_hex_color,
    resolve_font,
    resolve_size,
    update_style,
)
from engine.modules.themes import get_theme


def test_default_style():
    assert DEFAULT_STYLE.font_family == "Inter, sans-serif"
    assert DEFAULT_STYLE.font_size == "20px"
    assert DEFAULT_STYLE.text_color == "#ffffff"
    assert DEFAULT_STYLE.text_align == "center"
    assert DEFAULT_STYLE.padding == "60px"
    assert DEFAULT_STYLE.background_image is None


def test_apply_theme_copies_only_gradient_and_color():
    style = Style(font_family="Roboto, sans-serif", font_size="28px", text_align="left")
    sunset = get_theme("Sunset Vibes")

    themed = apply_theme(style, sunset)

    assert themed.background_color == sunset.gradient
    assert themed.text_color == sunset.text_color
    assert themed.font_family == "Roboto, sans-serif"
    assert themed.font_size == "28px"
    assert themed.text_align == "left"
    # original untouched
    assert style.text_color == "#ffffff"


def test_update_style_validates():
    assert update_style(DEFAULT_STYLE, text_align="right").text_align == "right"
    with pytest.raises(ValueError):
        update_style(DEFAULT_STYLE, text_align="justify")
    with pytest.raises(ValueError):
        update_style(DEFAULT_STYLE, text_color="red")
    with pytest.raises(ValueError):
        update_style(DEFAULT_STYLE, shadow="none")


def test_hex_colors():
    assert is_hex_color("#fff")
    assert is_hex_color("#3B82F6")
    assert not is_hex_color("#12345")
    assert not is_hex_color("#ffffff\n")
    assert not is_hex_color("")


def test_round_trip_through_dict_ignores_unknown_keys():
    data = DEFAULT_STYLE.to_dict()
    data["legacy"] = True
    assert Style.from_dict(data) == DEFAULT_STYLE
    assert Style.from_dict(None) == DEFAULT_STYLE


def test_resolve_presets():
    assert resolve_font("dancing script") == "Dancing Script, cursive"
    assert resolve_font("Comic Sans") is None
    assert resolve_size("extra large") == "28px"
    assert resolve_size("22px") == "22px"
    assert resolve_size("huge") is None
