"""Renders category payloads into destination-agnostic messages."""

from __future__ import annotations

from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple
from urllib.parse import quote

from gag_notifier.detector import item_end_time, payload_items
from gag_notifier.keys import normalize_key
from gag_notifier.lookups import BLUE, GOLD, ORANGE, WHITE, Lookups
from gag_notifier.models import (
    AggregatedList,
    Announcement,
    Category,
    CategoryView,
    EmbedField,
    EventCountdown,
    Kind,
    Merchant,
    RenderedMessage,
    StockItem,
    StockList,
    Weather,
)

# upstream sometimes sends the internal id instead of the display name
SPECIAL_WEATHER_NAMES = {
    "SummerHarvest": "Summer Harvest",
    "AuroraBorealis": "Aurora Borealis",
    "TropicalRain": "Tropical Rain",
    "NightEvent": "Night",
    "SunGod": "Sun God",
    "MegaHarvest": "Mega Harvest",
    "BloodMoonEvent": "Blood Moon",
    "MeteorShower": "Meteor Shower",
    "SpaceTravel": "Space Travel",
    "DJJhai": "DJ Jhai",
    "JandelStorm": "Jandel Storm",
    "DJSandstorm": "DJ Sandstorm",
    "UnderTheSea": "Under The Sea",
    "AlienInvasion": "Alien Invasion",
    "JandelLazer": "Jandel Lazer",
    "PoolParty": "Pool Party",
    "ZenAura": "Zen Aura",
    "CrystalBeams": "Crystal Beams",
    "ChickenRain": "Chicken Rain",
    "AcidRain": "Acid Rain",
    "MeteorStrike": "Meteor Strike",
    "SolarEclipse": "Solar Eclipse",
    "ChocolateRain": "Chocolate Rain",
    "BeeNado": "Beenado",
}


def repair_weather_name(raw: str) -> str:
    if not raw:
        return "(unknown)"
    return SPECIAL_WEATHER_NAMES.get(raw, raw)


def next_occurrence(minute: int, now: datetime) -> datetime:
    """Next time the clock shows ``minute`` past the hour, at or after ``now``."""

    target = now.replace(minute=0, second=0, microsecond=0) + timedelta(minutes=minute)
    if target < now:
        target += timedelta(hours=1)
    return target


def aggregate_items(items: Iterable[StockItem]) -> List[Tuple[str, int]]:
    """Sum quantities per display name, keeping first-seen order."""

    counts: "OrderedDict[str, int]" = OrderedDict()
    for item in items:
        counts[item.name] = counts.get(item.name, 0) + (item.quantity or 1)
    return list(counts.items())


def _distinct_keys(names: Iterable[str]) -> List[str]:
    seen: List[str] = []
    for name in names:
        key = normalize_key(name)
        if key and key not in seen:
            seen.append(key)
    return seen


def build_views(category: Category, payload: Any, now: int, info: Optional[Iterable[Any]] = None) -> List[CategoryView]:
    """Turn a raw payload into the composer inputs for its category kind.

    Weather yields one view per still-running event; every other kind yields
    exactly one view.
    """

    kind = category.kind
    if kind is Kind.EVENT_COUNTDOWN:
        start = payload.get("start") or {}
        return [EventCountdown(
            name=str(payload.get("name") or "(unknown)"),
            start_minute=int(start.get("minute") or 0),
            icon=payload.get("icon") or None,
        )]

    raw_items = payload_items(category, payload)
    if kind is Kind.ANNOUNCEMENT:
        return [Announcement(title=category.title, message=str(raw_items[0].get("message") or ""))]
    if kind is Kind.WEATHER:
        descriptions = {
            str(i.get("item_id")): i.get("description")
            for i in (info or [])
            if isinstance(i, dict)
        }
        views: List[CategoryView] = []
        for w in raw_items:
            if item_end_time(category, w) < now:
                continue
            weather_id = str(w.get("weather_id") or "")
            views.append(Weather(
                weather_id=weather_id,
                name=str(w.get("weather_name") or repair_weather_name(weather_id)).strip(),
                start=int(w.get("start_duration_unix") or now),
                duration=int(w.get("duration") or 0),
                end=int(w.get("end_duration_unix") or 0) or None,
                description=descriptions.get(weather_id) or "No description",
                title=category.title,
            ))
        return views

    items = tuple(StockItem.from_raw(i) for i in raw_items)
    if kind is Kind.AGGREGATED_LIST:
        return [AggregatedList(title=category.title, items=items)]
    if kind is Kind.MERCHANT:
        name = payload.get("merchantName") or payload.get("merchant_name") or "Traveling Merchant"
        return [Merchant(merchant_name=str(name), items=items, title=category.title)]
    return [StockList(title=category.title, items=items)]


class Composer:
    """Formats each :mod:`models` view into a :class:`RenderedMessage`."""

    def __init__(self, lookups: Lookups, weather_image_api_url: str = "") -> None:
        self._lookups = lookups
        self._weather_image_api_url = weather_image_api_url.rstrip("/")

    def _line(self, name: str, quantity: int) -> str:
        text = f"{name} x{quantity}" if quantity > 1 else name
        emoji = self._lookups.emoji_for(name)
        return f"{emoji} {text}" if emoji else text

    def _stamp(self, now: int) -> EmbedField:
        return EmbedField(name="\u200b", value=f"<t:{now}:R>\n<t:{now}:f>")

    def _listing(self, category_key: str, title: str, lookup_title: str, fallback: int,
                 lines: List[str], names: Iterable[str], now: int) -> RenderedMessage:
        return RenderedMessage(
            title=title,
            description="\n".join(lines),
            color=self._lookups.color_for(lookup_title, fallback),
            thumbnail=self._lookups.thumbnail_for(lookup_title),
            image=self._lookups.embed_image_url,
            fields=(self._stamp(now),),
            mention_keys=tuple([category_key] + [k for k in _distinct_keys(names) if k != category_key]),
        )

    def compose(self, category_key: str, view: CategoryView, now: int) -> RenderedMessage:
        if isinstance(view, StockList):
            lines = [self._line(i.name, i.quantity) for i in view.items]
            return self._listing(category_key, view.title, view.title, WHITE, lines,
                                 (i.name for i in view.items), now)

        if isinstance(view, AggregatedList):
            grouped = aggregate_items(view.items)
            lines = [self._line(name, qty) for name, qty in grouped]
            return self._listing(category_key, view.title, view.title, WHITE, lines,
                                 (name for name, _ in grouped), now)

        if isinstance(view, Merchant):
            lines = [self._line(i.name, i.quantity) for i in view.items]
            return self._listing(category_key, view.merchant_name, view.title, ORANGE, lines,
                                 (i.name for i in view.items), now)

        if isinstance(view, Announcement):
            return RenderedMessage(
                title="Announcement",
                description=view.message,
                color=self._lookups.color_for(view.title, BLUE),
                thumbnail=self._lookups.thumbnail_for(view.title),
                image=self._lookups.embed_image_url,
                fields=(self._stamp(now),),
                mention_keys=(category_key,),
            )

        if isinstance(view, Weather):
            emoji = self._lookups.emoji_for(view.name)
            thumb = None
            if self._weather_image_api_url and view.weather_id:
                thumb = f"{self._weather_image_api_url}/{quote(view.weather_id, safe='')}"
            weather_key = normalize_key(view.name)
            keys = [category_key] + ([weather_key] if weather_key and weather_key != category_key else [])
            return RenderedMessage(
                title=f"{emoji} {view.name}".strip(),
                # expiry is shown for information only, the event is live if we got here
                description=f"Status: Active\n{view.description}",
                color=self._lookups.color_for(view.title, BLUE),
                thumbnail=thumb,
                image=self._lookups.embed_image_url,
                fields=(self._stamp(now), EmbedField(name="Duration", value=f"ends <t:{view.ends_at}:R>")),
                mention_keys=tuple(keys),
            )

        if isinstance(view, EventCountdown):
            starts = next_occurrence(view.start_minute, datetime.fromtimestamp(now).astimezone())
            return RenderedMessage(
                title=f"🌟 Event: {view.name}",
                description=f"**Starts:** <t:{int(starts.timestamp())}:R>",
                color=GOLD,
                thumbnail=view.icon or self._lookups.embed_image_url,
                image=self._lookups.embed_image_url,
                fields=(self._stamp(now),),
            )

        raise TypeError(f"no composer for {type(view).__name__}")
