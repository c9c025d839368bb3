"""Runtime settings loaded from the environment (and an optional .env file)."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

LOGGER = logging.getLogger(__name__)

DEFAULT_CURRENT_EVENT_API_URL = "https://api.joshlei.com/v2/growagarden/currentevent"
DEFAULT_WEATHER_IMAGE_API_URL = "https://api.joshlei.com/v2/growagarden/image"
DEFAULT_WEBHOOK_AVATAR_URL = "https://i.ibb.co/tPM4VQ8P/jpg.jpg"
DEFAULT_EMBED_IMAGE_URL = "https://i.postimg.cc/G485VPvY/IMG-1273.png"


@dataclass(frozen=True)
class Settings:
    """Everything the bot reads from its environment."""

    discord_token: Optional[str]
    stock_api_url: Optional[str]
    weather_api_url: Optional[str]
    info_api_url: Optional[str]
    current_event_api_url: str
    upstream_api_key: Optional[str]
    invite_url: Optional[str]
    data_dir: Path
    emoji_mapping_file: Optional[str]
    color_mapping_file: Optional[str]
    thumbnails_file: Optional[str]
    role_config_file: Optional[str]
    item_roles_file: Optional[str]
    stock_category_file: Optional[str]
    poll_interval_sec: int = 10
    event_interval_sec: int = 1
    fetch_retries: int = 3
    fetch_backoff_sec: int = 2
    bot_owner_id: int = 0
    port: int = 10000
    log_level: str = "INFO"
    webhook_avatar_url: str = DEFAULT_WEBHOOK_AVATAR_URL
    embed_image_url: str = DEFAULT_EMBED_IMAGE_URL
    weather_image_api_url: str = DEFAULT_WEATHER_IMAGE_API_URL
    role_panel_ttl_sec: int = 900

    def data_path(self, filename: str) -> Path:
        return self.data_dir / filename


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


def _env_int(name: str, default: int) -> int:
    raw = _env(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        LOGGER.warning("[config] %s=%r is not an integer, using %s", name, raw, default)
        return default


def load_settings(env_file: Optional[str] = None) -> Settings:
    """Load ``.env`` (if present) and build :class:`Settings`."""

    load_dotenv(env_file)
    return Settings(
        discord_token=_env("DISCORD_TOKEN"),
        stock_api_url=_env("STOCK_API_URL"),
        weather_api_url=_env("WEATHER_API_URL"),
        info_api_url=_env("INFO_API_URL"),
        current_event_api_url=_env("CURRENT_EVENT_API_URL", DEFAULT_CURRENT_EVENT_API_URL),
        upstream_api_key=_env("UPSTREAM_API_KEY"),
        invite_url=_env("INVITE_URL"),
        data_dir=Path(_env("DATA_DIR", ".")),
        emoji_mapping_file=_env("EMOJI_MAPPING_FILE"),
        color_mapping_file=_env("COLOR_MAPPING_FILE"),
        thumbnails_file=_env("THUMBNAILS_FILE"),
        role_config_file=_env("ROLE_CONFIG_FILE"),
        item_roles_file=_env("ITEM_ROLES_FILE"),
        stock_category_file=_env("STOCK_CATEGORY_FILE"),
        poll_interval_sec=_env_int("POLL_INTERVAL_SEC", 10),
        event_interval_sec=_env_int("EVENT_INTERVAL_SEC", 1),
        fetch_retries=_env_int("FETCH_RETRIES", 3),
        fetch_backoff_sec=_env_int("FETCH_BACKOFF_SEC", 2),
        bot_owner_id=_env_int("BOT_OWNER_ID", 0),
        port=_env_int("PORT", 10000),
        log_level=(_env("LOG_LEVEL", "INFO") or "INFO").upper(),
        webhook_avatar_url=_env("WEBHOOK_AVATAR_URL", DEFAULT_WEBHOOK_AVATAR_URL),
        embed_image_url=_env("EMBED_IMAGE_URL", DEFAULT_EMBED_IMAGE_URL),
        weather_image_api_url=_env("WEATHER_IMAGE_API_URL", DEFAULT_WEATHER_IMAGE_API_URL),
        role_panel_ttl_sec=_env_int("ROLE_PANEL_TTL_SEC", 900),
    )
