"""Static lookup tables: emoji, colors, thumbnails and role lists."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from gag_notifier.keys import normalize_key
from gag_notifier.storage import load_json

LOGGER = logging.getLogger(__name__)

WHITE = 0xFFFFFF
BLUE = 0x3498DB
ORANGE = 0xE67E22
GOLD = 0xF1C40F
BLURPLE = 0x5865F2
GREEN = 0x57F287

DEFAULT_ROLE_CONFIG: Dict[str, str] = {
    "seed": "Seed Stock",
    "gear": "Gear Stock",
    "egg": "Egg Stock",
    "cosmetic": "Cosmetic Stock",
    "eventshop": "Event Shop",
    "announcement": "Announcements",
    "weather": "Weather",
    "merchant": "Traveling Merchant",
}


def parse_color(value: Any) -> int:
    """Accept ``"#rrggbb"``, ``{"r":..,"g":..,"b":..}`` or an int."""

    if isinstance(value, bool):
        return WHITE
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip().lstrip("#"), 16)
        except ValueError:
            return WHITE
    if isinstance(value, dict) and value.get("r") is not None:
        try:
            return (int(value["r"]) << 16) | (int(value.get("g", 0)) << 8) | int(value.get("b", 0))
        except (TypeError, ValueError):
            return WHITE
    return WHITE


def _load_table(path: Optional[str], expected: type, default):
    if not path:
        return default
    data = load_json(path, default)
    if data is default:
        return default
    if not isinstance(data, expected):
        LOGGER.warning("[lookups] %s does not hold a %s, ignoring it", path, expected.__name__)
        return default
    return data


@dataclass
class Lookups:
    emoji: Dict[str, str] = field(default_factory=dict)
    colors: Dict[str, int] = field(default_factory=dict)
    thumbnails: Dict[str, str] = field(default_factory=dict)
    role_config: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_ROLE_CONFIG))
    item_roles: List[str] = field(default_factory=list)
    embed_image_url: Optional[str] = None

    def emoji_for(self, name: str) -> str:
        return self.emoji.get(normalize_key(name), "")

    def color_for(self, title: str, fallback: int = WHITE) -> int:
        return self.colors.get(title, fallback)

    def thumbnail_for(self, title: str) -> Optional[str]:
        return self.thumbnails.get(title) or None

    def item_keys(self) -> List[str]:
        return [normalize_key(name) for name in self.item_roles]


def build_lookups(
    raw_emoji: Dict[str, Any],
    raw_colors: Dict[str, Any],
    thumbnails: Dict[str, Any],
    role_config: Optional[Dict[str, Any]] = None,
    item_roles: Optional[List[Any]] = None,
    embed_image_url: Optional[str] = None,
) -> Lookups:
    emoji = {normalize_key(str(k)): str(v) for k, v in raw_emoji.items()}
    colors = {str(k): parse_color(v) for k, v in raw_colors.items()}
    roles: Dict[str, str] = {}
    for key, value in (role_config or DEFAULT_ROLE_CONFIG).items():
        # entries are either "Display Name" or {"name": "Display Name", ...}
        name = value.get("name") if isinstance(value, dict) else value
        if name:
            roles[str(key)] = str(name)
    return Lookups(
        emoji=emoji,
        colors=colors,
        thumbnails={str(k): str(v) for k, v in thumbnails.items() if v},
        role_config=roles,
        item_roles=[str(n).strip() for n in (item_roles or []) if str(n).strip()],
        embed_image_url=embed_image_url,
    )


def load_lookups(settings) -> Lookups:
    """Read every lookup file named in ``settings``."""

    return build_lookups(
        raw_emoji=_load_table(settings.emoji_mapping_file, dict, {}),
        raw_colors=_load_table(settings.color_mapping_file, dict, {}),
        thumbnails=_load_table(settings.thumbnails_file, dict, {}),
        role_config=_load_table(settings.role_config_file, dict, None),
        item_roles=_load_table(settings.item_roles_file, list, []),
        embed_image_url=settings.embed_image_url,
    )
