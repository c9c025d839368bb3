from __future__ import annotations

import json

from gag_notifier import snapshots as snapshots_module
from gag_notifier.errors import PersistenceError
from gag_notifier.snapshots import SnapshotStore, canonical


def test_canonical_ignores_key_order_but_not_list_order() -> None:
    assert canonical({"a": 1, "b": 2}) == canonical({"b": 2, "a": 1})
    assert canonical([{"n": "A"}, {"n": "B"}]) != canonical([{"n": "B"}, {"n": "A"}])


def test_put_marks_dirty_only_on_change() -> None:
    store = SnapshotStore()
    store.put("seed", "[1]")
    assert store.dirty
    assert store.save()
    assert not store.dirty

    store.put("seed", "[1]")
    assert not store.dirty
    assert not store.save()


def test_save_and_reload(tmp_path) -> None:
    path = tmp_path / "last_state.json"
    store = SnapshotStore(path)
    store.put("seed", canonical([{"display_name": "Carrot"}]))
    assert store.save()

    on_disk = json.loads(path.read_text(encoding="utf-8"))
    assert on_disk["seed"] == '[{"display_name":"Carrot"}]'

    reloaded = SnapshotStore(path)
    reloaded.load()
    assert reloaded.get_payload("seed") == [{"display_name": "Carrot"}]
    assert reloaded.get_payload("gear") is None


def test_failed_save_keeps_memory_state(tmp_path, monkeypatch) -> None:
    def boom(path, data):
        raise PersistenceError("disk full")

    monkeypatch.setattr(snapshots_module, "save_json", boom)
    store = SnapshotStore(tmp_path / "last_state.json")
    store.put("seed", "[1]")

    assert not store.save()
    assert store.dirty
    assert store.get("seed") == "[1]"


def test_load_ignores_garbage(tmp_path) -> None:
    path = tmp_path / "last_state.json"
    path.write_text("not json", encoding="utf-8")
    store = SnapshotStore(path)
    store.load()
    assert store.keys() == []
