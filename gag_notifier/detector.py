"""Per-category change classification against the snapshot store."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, List, Optional

from gag_notifier.models import Category, Kind, STOCK_SOURCE, WEATHER_SOURCE
from gag_notifier.snapshots import SnapshotStore, canonical

LOGGER = logging.getLogger(__name__)


class Outcome(Enum):
    UNCHANGED = "unchanged"
    CHANGED_EXPIRED = "changed-expired"
    CHANGED_ACTIVE = "changed-active"


def extract_payload(category: Category, sources: Dict[str, Any]) -> Optional[Any]:
    """Pull one category's payload out of the fetched upstream documents.

    ``None`` means the source could not be fetched this cycle.
    """

    doc = sources.get(category.source)
    if not isinstance(doc, dict):
        return None
    if category.source == WEATHER_SOURCE:
        events = doc.get(category.field)
        if not isinstance(events, list):
            return None
        return [w for w in events if isinstance(w, dict) and w.get("active")]
    if category.kind is Kind.MERCHANT:
        merchant = doc.get(category.field)
        return merchant if isinstance(merchant, dict) else None
    if category.source == STOCK_SOURCE:
        items = doc.get(category.field)
        return items if isinstance(items, list) else []
    return doc.get(category.field)


def payload_items(category: Category, payload: Any) -> List[Dict[str, Any]]:
    if category.kind is Kind.MERCHANT:
        items = payload.get("stock") if isinstance(payload, dict) else None
    else:
        items = payload
    if not isinstance(items, list):
        return []
    return [i for i in items if isinstance(i, dict)]


def item_end_time(category: Category, item: Dict[str, Any]) -> int:
    try:
        if category.kind is Kind.WEATHER:
            end = item.get("end_duration_unix")
            if end:
                return int(end)
            return int(item.get("start_duration_unix") or 0) + int(item.get("duration") or 0)
        return int(item.get("end_date_unix") or 0)
    except (TypeError, ValueError):
        return 0


def expires_at(category: Category, payload: Any) -> Optional[int]:
    """Latest end time across the payload's items, ``None`` when not applicable."""

    if not category.has_expiry:
        return None
    items = payload_items(category, payload)
    if not items:
        return None
    return max(item_end_time(category, i) for i in items)


class ChangeDetector:
    """Classifies fresh payloads and records the ones worth acting on."""

    def __init__(self, store: SnapshotStore) -> None:
        self._store = store

    def evaluate(self, category: Category, payload: Any, now: int) -> Outcome:
        if payload is None:
            return Outcome.UNCHANGED
        # empty lists are usually transient upstream hiccups, not a sell-out
        if not payload_items(category, payload):
            return Outcome.UNCHANGED

        serialized = canonical(payload)
        if self._store.matches(category.key, serialized):
            return Outcome.UNCHANGED

        self._store.put(category.key, serialized)
        end = expires_at(category, payload)
        if end is not None and end < now:
            LOGGER.info("[poll] %s changed but already expired (%s < %s)", category.key, end, now)
            return Outcome.CHANGED_EXPIRED
        return Outcome.CHANGED_ACTIVE
