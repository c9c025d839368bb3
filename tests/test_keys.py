from __future__ import annotations

import re

from gag_notifier.keys import normalize_key

SAMPLES = [
    "Carrot",
    "  Sugar Apple ",
    "Sugar-Apple",
    "Master Sprinkler!!",
    "__already_a_key__",
    "Bee Egg (Rare)",
    "Crème Brûlée",
    "日本語",
    "A__B",
    "",
    "   ",
    "123 Go",
    "Announcement 📢",
]


def test_examples() -> None:
    assert normalize_key("Carrot") == "carrot"
    assert normalize_key("  Sugar Apple ") == "sugar_apple"
    assert normalize_key("Sugar-Apple") == "sugar_apple"
    assert normalize_key("Master Sprinkler!!") == "master_sprinkler"
    assert normalize_key("Announcement 📢") == "announcement"


def test_idempotent_and_clean() -> None:
    for raw in SAMPLES:
        key = normalize_key(raw)
        assert normalize_key(key) == key
        assert re.fullmatch(r"[a-z0-9_]*", key)
        assert not key.startswith("_")
        assert not key.endswith("_")
        assert "__" not in key


def test_same_display_name_same_key() -> None:
    assert normalize_key("Meteor Shower") == normalize_key("meteor  shower") == "meteor_shower"
