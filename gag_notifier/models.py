"""Domain types: tracked categories, composer inputs and delivery values."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

LOGGER = logging.getLogger(__name__)

STOCK_SOURCE = "stock"
WEATHER_SOURCE = "weather"
EVENT_SOURCE = "currentevent"


class Kind(Enum):
    STOCK_LIST = "stock_list"
    AGGREGATED_LIST = "aggregated_list"
    ANNOUNCEMENT = "announcement"
    WEATHER = "weather"
    EVENT_COUNTDOWN = "event_countdown"
    MERCHANT = "merchant"


@dataclass(frozen=True)
class Category:
    """One tracked kind of upstream data.

    ``source`` names the upstream document and ``field`` the key inside it
    that holds this category's payload.
    """

    key: str
    source: str
    field: str
    title: str
    kind: Kind

    @property
    def has_expiry(self) -> bool:
        return self.kind is not Kind.ANNOUNCEMENT


DEFAULT_CATEGORIES: Tuple[Category, ...] = (
    Category("seed", STOCK_SOURCE, "seed_stock", "Seed Stock", Kind.STOCK_LIST),
    Category("gear", STOCK_SOURCE, "gear_stock", "Gear Stock", Kind.STOCK_LIST),
    Category("egg", STOCK_SOURCE, "egg_stock", "Egg Stock", Kind.AGGREGATED_LIST),
    Category("cosmetic", STOCK_SOURCE, "cosmetic_stock", "Cosmetic Stock", Kind.STOCK_LIST),
    Category("eventshop", STOCK_SOURCE, "eventshop_stock", "Event Shop Stock", Kind.STOCK_LIST),
    Category("announcement", STOCK_SOURCE, "notification", "Announcement 📢", Kind.ANNOUNCEMENT),
    Category("weather", WEATHER_SOURCE, "weather", "Weather", Kind.WEATHER),
    Category("merchant", STOCK_SOURCE, "travelingmerchant_stock", "Jandel Announcement", Kind.MERCHANT),
)

EVENT_CATEGORY = Category("currentevent", EVENT_SOURCE, "current", "Event", Kind.EVENT_COUNTDOWN)


def load_categories(overrides: Optional[Dict[str, Any]] = None) -> List[Category]:
    """Return the polled categories, applying ``key -> [field, title]`` overrides."""

    by_key = {c.key: c for c in DEFAULT_CATEGORIES}
    for key, value in (overrides or {}).items():
        if not isinstance(value, (list, tuple)) or len(value) != 2:
            LOGGER.warning("[config] ignoring malformed category override %r", key)
            continue
        api_field, title = str(value[0]), str(value[1])
        base = by_key.get(key)
        if base is not None:
            by_key[key] = Category(key, base.source, api_field, title, base.kind)
        else:
            by_key[key] = Category(key, STOCK_SOURCE, api_field, title, Kind.STOCK_LIST)
    return list(by_key.values())


# -- composer inputs -------------------------------------------------------


@dataclass(frozen=True)
class StockItem:
    name: str
    quantity: int
    end: int = 0

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> "StockItem":
        name = raw.get("display_name") or raw.get("item_id") or raw.get("name") or "(unknown)"
        qty = raw.get("quantity")
        if qty is None:
            qty = raw.get("stock", raw.get("qty", 1))
        try:
            qty = int(qty)
        except (TypeError, ValueError):
            qty = 1
        try:
            end = int(raw.get("end_date_unix") or 0)
        except (TypeError, ValueError):
            end = 0
        return cls(name=str(name).strip(), quantity=qty, end=end)


@dataclass(frozen=True)
class StockList:
    title: str
    items: Tuple[StockItem, ...]


@dataclass(frozen=True)
class AggregatedList:
    title: str
    items: Tuple[StockItem, ...]


@dataclass(frozen=True)
class Announcement:
    title: str
    message: str


@dataclass(frozen=True)
class Weather:
    weather_id: str
    name: str
    start: int
    duration: int
    end: Optional[int] = None
    description: str = "No description"
    title: str = "Weather"

    @property
    def ends_at(self) -> int:
        if self.end:
            return self.end
        return self.start + self.duration


@dataclass(frozen=True)
class EventCountdown:
    name: str
    start_minute: int
    icon: Optional[str] = None


@dataclass(frozen=True)
class Merchant:
    merchant_name: str
    items: Tuple[StockItem, ...]
    title: str = "Jandel Announcement"


CategoryView = Union[StockList, AggregatedList, Announcement, Weather, EventCountdown, Merchant]


# -- rendered output and delivery ------------------------------------------


@dataclass(frozen=True)
class EmbedField:
    name: str
    value: str
    inline: bool = False


@dataclass(frozen=True)
class RenderedMessage:
    """Destination-agnostic message; ``mention_keys`` are role-scope keys."""

    title: str
    description: str
    color: int
    thumbnail: Optional[str] = None
    image: Optional[str] = None
    fields: Tuple[EmbedField, ...] = ()
    mention_keys: Tuple[str, ...] = ()


@dataclass(frozen=True)
class WebhookCredentials:
    id: str
    token: str
    channel_id: Optional[str] = None

    @classmethod
    def from_raw(cls, raw: Any) -> Optional["WebhookCredentials"]:
        if not isinstance(raw, dict) or not raw.get("id") or not raw.get("token"):
            return None
        channel_id = raw.get("channelId") or raw.get("channel_id")
        return cls(id=str(raw["id"]), token=str(raw["token"]), channel_id=str(channel_id) if channel_id else None)

    def to_raw(self) -> Dict[str, Any]:
        return {"id": self.id, "token": self.token, "channelId": self.channel_id}


@dataclass(frozen=True)
class ChannelPost:
    channel_id: str


@dataclass(frozen=True)
class WebhookPost:
    credentials: WebhookCredentials


DeliveryPath = Union[ChannelPost, WebhookPost]


@dataclass(frozen=True)
class Recipient:
    destination_id: str
    channel_id: str
    path: DeliveryPath
    mention_role_ids: Tuple[str, ...] = ()

    @property
    def mention_content(self) -> Optional[str]:
        if not self.mention_role_ids:
            return None
        return " ".join(f"<@&{rid}>" for rid in self.mention_role_ids)


@dataclass(frozen=True)
class DeliveryOutcome:
    recipient: Recipient
    ok: bool
    error: Optional[str] = None


@dataclass
class CycleReport:
    """Summary of one main poll cycle, mostly for logs and tests."""

    changed: List[str] = field(default_factory=list)
    expired: List[str] = field(default_factory=list)
    outcomes: List[DeliveryOutcome] = field(default_factory=list)
    saved: bool = False

    @property
    def failures(self) -> List[DeliveryOutcome]:
        return [o for o in self.outcomes if not o.ok]
