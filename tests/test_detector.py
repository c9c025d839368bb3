from __future__ import annotations

from gag_notifier.detector import ChangeDetector, Outcome, expires_at, extract_payload
from gag_notifier.models import DEFAULT_CATEGORIES
from gag_notifier.snapshots import SnapshotStore, canonical

NOW = 1_700_000_000
CATS = {c.key: c for c in DEFAULT_CATEGORIES}


def _seed(name: str = "Carrot", qty: int = 3, end: int = NOW + 3600) -> dict:
    return {"display_name": name, "quantity": qty, "end_date_unix": end}


def test_repeat_payload_is_unchanged() -> None:
    store = SnapshotStore()
    detector = ChangeDetector(store)
    payload = [_seed()]

    assert detector.evaluate(CATS["seed"], payload, NOW) is Outcome.CHANGED_ACTIVE
    assert detector.evaluate(CATS["seed"], [_seed()], NOW) is Outcome.UNCHANGED
    assert store.get("seed") == canonical(payload)


def test_expired_payload_updates_store_without_notifying() -> None:
    store = SnapshotStore()
    detector = ChangeDetector(store)
    payload = [_seed(end=NOW - 10), _seed("Tomato", 1, NOW - 1)]

    assert detector.evaluate(CATS["seed"], payload, NOW) is Outcome.CHANGED_EXPIRED
    assert store.get("seed") == canonical(payload)
    assert detector.evaluate(CATS["seed"], payload, NOW) is Outcome.UNCHANGED


def test_end_time_equal_to_now_is_still_active() -> None:
    detector = ChangeDetector(SnapshotStore())
    assert detector.evaluate(CATS["seed"], [_seed(end=NOW)], NOW) is Outcome.CHANGED_ACTIVE


def test_latest_end_time_wins() -> None:
    detector = ChangeDetector(SnapshotStore())
    payload = [_seed(end=NOW - 100), _seed("Tomato", 2, NOW + 100)]
    assert detector.evaluate(CATS["seed"], payload, NOW) is Outcome.CHANGED_ACTIVE


def test_empty_list_leaves_store_alone() -> None:
    store = SnapshotStore()
    detector = ChangeDetector(store)
    detector.evaluate(CATS["seed"], [_seed()], NOW)
    before = store.get("seed")

    assert detector.evaluate(CATS["seed"], [], NOW) is Outcome.UNCHANGED
    assert store.get("seed") == before
    # the same stock coming back afterwards is not a new notification
    assert detector.evaluate(CATS["seed"], [_seed()], NOW) is Outcome.UNCHANGED


def test_missing_payload_is_unchanged() -> None:
    store = SnapshotStore()
    assert ChangeDetector(store).evaluate(CATS["seed"], None, NOW) is Outcome.UNCHANGED
    assert not store.dirty


def test_reordering_counts_as_change() -> None:
    detector = ChangeDetector(SnapshotStore())
    a, b = _seed("A"), _seed("B")
    detector.evaluate(CATS["seed"], [a, b], NOW)
    assert detector.evaluate(CATS["seed"], [b, a], NOW) is Outcome.CHANGED_ACTIVE


def test_field_order_does_not_count_as_change() -> None:
    detector = ChangeDetector(SnapshotStore())
    detector.evaluate(CATS["seed"], [{"display_name": "A", "quantity": 1, "end_date_unix": NOW + 5}], NOW)
    reordered = [{"end_date_unix": NOW + 5, "quantity": 1, "display_name": "A"}]
    assert detector.evaluate(CATS["seed"], reordered, NOW) is Outcome.UNCHANGED


def test_announcement_never_expires() -> None:
    detector = ChangeDetector(SnapshotStore())
    notes = [{"message": "Update at 5pm", "end_date_unix": NOW - 9999}]
    assert expires_at(CATS["announcement"], notes) is None
    assert detector.evaluate(CATS["announcement"], notes, NOW) is Outcome.CHANGED_ACTIVE


def test_weather_expiry_uses_start_plus_duration() -> None:
    weather = CATS["weather"]
    running = [{"weather_name": "Rain", "active": True, "start_duration_unix": NOW - 60, "duration": 120}]
    over = [{"weather_name": "Rain", "active": True, "start_duration_unix": NOW - 600, "duration": 120}]
    explicit = [{"weather_name": "Rain", "active": True, "end_duration_unix": NOW + 30}]

    assert expires_at(weather, running) == NOW + 60
    assert expires_at(weather, explicit) == NOW + 30
    assert ChangeDetector(SnapshotStore()).evaluate(weather, over, NOW) is Outcome.CHANGED_EXPIRED


def test_extract_payload() -> None:
    sources = {
        "stock": {
            "seed_stock": [_seed()],
            "travelingmerchant_stock": {"merchantName": "Gnome", "stock": [_seed()]},
        },
        "weather": {"weather": [{"weather_name": "Rain", "active": True}, {"weather_name": "Snow", "active": False}]},
    }
    assert extract_payload(CATS["seed"], sources) == [_seed()]
    assert extract_payload(CATS["gear"], sources) == []
    assert extract_payload(CATS["merchant"], sources)["merchantName"] == "Gnome"
    assert extract_payload(CATS["weather"], sources) == [{"weather_name": "Rain", "active": True}]
    assert extract_payload(CATS["seed"], {"stock": None}) is None


def test_merchant_expiry_looks_at_stock_items() -> None:
    detector = ChangeDetector(SnapshotStore())
    merchant = {"merchantName": "Gnome", "stock": [_seed(end=NOW - 1)]}
    assert detector.evaluate(CATS["merchant"], merchant, NOW) is Outcome.CHANGED_EXPIRED
    assert detector.evaluate(CATS["merchant"], {"merchantName": "Gnome", "stock": []}, NOW) is Outcome.UNCHANGED
