"""
Theme catalog and keyword-based theme suggestion.

The catalog and the keyword table are fixed data. Suggestion is a pure
function of the input text: each theme scores one point per keyword found
anywhere in the lower-cased text (plain substring match, so "seaside" and
"seance" both count for "sea"). The highest score wins; ties keep the theme
that comes first in the catalog, which makes "Sunset Vibes" the default.
"""
from dataclasses import dataclass


@dataclass(frozen=True)
class Theme:
    name: str
    gradient: str
    text_color: str
    description: str


THEMES: tuple[Theme, ...] = (
    Theme(
        name="Sunset Vibes",
        gradient="linear-gradient(135deg, #ff9a9e 0%, #fecfef 50%, #fecfef 100%)",
        text_color="#2d3748",
        description="Warm and inspiring",
    ),
    Theme(
        name="Ocean Breeze",
        gradient="linear-gradient(135deg, #667eea 0%, #764ba2 100%)",
        text_color="#ffffff",
        description="Cool and calming",
    ),
    Theme(
        name="Forest Fresh",
        gradient="linear-gradient(135deg, #11998e 0%, #38ef7d 100%)",
        text_color="#ffffff",
        description="Natural and refreshing",
    ),
    Theme(
        name="Golden Hour",
        gradient="linear-gradient(135deg, #f093fb 0%, #f5576c 100%)",
        text_color="#ffffff",
        description="Vibrant and energetic",
    ),
    Theme(
        name="Midnight Sky",
        gradient="linear-gradient(135deg, #2c3e50 0%, #3498db 100%)",
        text_color="#ffffff",
        description="Professional and sleek",
    ),
    Theme(
        name="Autumn Leaves",
        gradient="linear-gradient(135deg, #ff7e5f 0%, #feb47b 100%)",
        text_color="#2d3748",
        description="Warm and cozy",
    ),
)

# "warm" and "cozy" appear under two themes; the earlier one wins on a tie.
THEME_KEYWORDS: dict[str, tuple[str, ...]] = {
    "Sunset Vibes":  ("sunset", "evening", "warm", "cozy", "love", "heart", "romantic"),
    "Ocean Breeze":  ("ocean", "sea", "water", "blue", "calm", "peaceful", "relax"),
    "Forest Fresh":  ("nature", "green", "forest", "tree", "fresh", "natural", "eco"),
    "Golden Hour":   ("energy", "excited", "launch", "new", "amazing", "awesome", "great"),
    "Midnight Sky":  ("professional", "business", "work", "tech", "code", "development"),
    "Autumn Leaves": ("autumn", "fall", "orange", "warm", "coffee", "cozy", "home"),
}


def _score(lowered: str, theme: Theme) -> int:
    keywords = THEME_KEYWORDS.get(theme.name, ())
    return sum(1 for keyword in keywords if keyword in lowered)


def score_themes(text: str) -> list[tuple[Theme, int]]:
    """Return (theme, score) pairs in catalog order."""
    lowered = text.lower()
    return [(theme, _score(lowered, theme)) for theme in THEMES]


def suggest_theme(text: str) -> Theme:
    best_theme = THEMES[0]
    best_score = 0
    for theme, score in score_themes(text):
        if score > best_score:
            best_theme, best_score = theme, score
    return best_theme


def get_theme(name: str) -> Theme | None:
    wanted = name.strip().lower()
    for theme in THEMES:
        if theme.name.lower() == wanted:
            return theme
    return None
