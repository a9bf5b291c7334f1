from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Required to run the bot; empty is allowed so the library modules import cleanly
    telegram_bot_token: str = ""

    log_level: str = "INFO"

    # Webhook (optional, leave empty to use polling)
    # Telegram only allows ports: 80, 88, 443, 8443
    webhook_url: str = ""
    webhook_secret: str = ""
    webhook_port: int = 8443
    webhook_listen: str = "0.0.0.0"

    # Storage
    db_path: str = "~/.post_studio/posts.db"

    # Background images
    image_service: str = "picsum"  # picsum | unsplash | pexels
    unsplash_access_key: str = ""
    pexels_api_key: str = ""

    # Outbound HTTP (post lookup, image search/download)
    fetch_timeout_seconds: float = Field(default=10.0, gt=0)

    # Rendering
    render_size: int = Field(default=1080, ge=200, le=4096)
    font_path: str = ""  # TrueType font file; empty uses Pillow's built-in font
    font_dir: str = ""  # directory of <Family>.ttf files for the /font presets, e.g. PlayfairDisplay.ttf

    # Rate limit
    rate_limit_window_seconds: int = Field(default=60, ge=1)
    rate_limit_fetch_per_window: int = Field(default=10, ge=1)
    rate_limit_render_per_window: int = Field(default=6, ge=1)


settings = Settings()
