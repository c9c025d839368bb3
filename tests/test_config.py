from __future__ import annotations

from pathlib import Path

from gag_notifier.config import DEFAULT_CURRENT_EVENT_API_URL, load_settings
from gag_notifier.lookups import WHITE, build_lookups, load_lookups, parse_color
from gag_notifier.models import Kind, StockItem, load_categories


def test_settings_from_env(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("DISCORD_TOKEN", "tok")
    monkeypatch.setenv("STOCK_API_URL", "https://stock")
    monkeypatch.setenv("POLL_INTERVAL_SEC", "30")
    monkeypatch.setenv("FETCH_RETRIES", "lots")
    monkeypatch.setenv("DATA_DIR", str(tmp_path))
    monkeypatch.delenv("CURRENT_EVENT_API_URL", raising=False)

    settings = load_settings(str(tmp_path / "missing.env"))

    assert settings.discord_token == "tok"
    assert settings.stock_api_url == "https://stock"
    assert settings.poll_interval_sec == 30
    assert settings.fetch_retries == 3
    assert settings.current_event_api_url == DEFAULT_CURRENT_EVENT_API_URL
    assert settings.data_path("roles.json") == Path(tmp_path) / "roles.json"


def test_dotenv_file_is_read(tmp_path, monkeypatch) -> None:
    monkeypatch.delenv("INVITE_URL", raising=False)
    env = tmp_path / ".env"
    env.write_text("INVITE_URL=https://invite\n", encoding="utf-8")
    assert load_settings(str(env)).invite_url == "https://invite"


def test_parse_color() -> None:
    assert parse_color("#2ecc71") == 0x2ECC71
    assert parse_color({"r": 1, "g": 2, "b": 3}) == 0x010203
    assert parse_color(255) == 255
    assert parse_color("nope") == WHITE
    assert parse_color(None) == WHITE


def test_build_lookups_normalizes_emoji_keys() -> None:
    lookups = build_lookups(
        raw_emoji={" Sugar Apple ": "🍏"},
        raw_colors={},
        thumbnails={"Seed Stock": ""},
        role_config={"seed": {"name": "Seeds"}, "gear": "Gear"},
        item_roles=["Carrot", " ", "Sugar Apple"],
    )
    assert lookups.emoji_for("sugar-apple") == "🍏"
    assert lookups.thumbnail_for("Seed Stock") is None
    assert lookups.role_config == {"seed": "Seeds", "gear": "Gear"}
    assert lookups.item_keys() == ["carrot", "sugar_apple"]


def test_load_lookups_tolerates_missing_files(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("EMOJI_MAPPING_FILE", str(tmp_path / "nope.json"))
    bad = tmp_path / "items.json"
    bad.write_text('{"not": "a list"}', encoding="utf-8")
    monkeypatch.setenv("ITEM_ROLES_FILE", str(bad))

    lookups = load_lookups(load_settings(str(tmp_path / "missing.env")))
    assert lookups.emoji == {}
    assert lookups.item_roles == []
    assert "seed" in lookups.role_config


def test_category_overrides() -> None:
    cats = {c.key: c for c in load_categories({"seed": ["seeds_v2", "Seeds!"], "honey": ["honey_stock", "Honey"], "bad": 1})}
    assert cats["seed"].field == "seeds_v2"
    assert cats["seed"].kind is Kind.STOCK_LIST
    assert cats["honey"].kind is Kind.STOCK_LIST
    assert "bad" not in cats
    assert cats["egg"].kind is Kind.AGGREGATED_LIST


def test_stock_item_fallbacks() -> None:
    item = StockItem.from_raw({"item_id": "carrot", "stock": "4"})
    assert item == StockItem(name="carrot", quantity=4, end=0)
    assert StockItem.from_raw({"display_name": "X", "quantity": None}).quantity == 1
