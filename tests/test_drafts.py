from __future__ import annotations

import json
import re

import pytest

from drafts import DraftManager, FileStorage, MemoryStorage
from drafts.forms import ARTWORK_DRAFTS, PROJECT_DRAFTS, artwork_drafts, project_drafts
from drafts.manager import generate_draft_id


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


def artwork(title: str = "Sunset") -> dict:
    return {
        "title": title,
        "description": "oil on canvas",
        "categoryIds": [1, 3],
        "type": "portfolio",
        "imagePreview": None,
    }


def test_save_then_restore_round_trip(storage) -> None:
    manager = DraftManager("artwork_drafts", storage)
    data = artwork()

    draft_id = manager.save("A", data)

    assert manager.restore(draft_id) == data
    drafts = manager.list()
    assert len(drafts) == 1
    assert drafts[0].name == "A"
    assert drafts[0].id == draft_id


def test_new_draft_becomes_active(storage) -> None:
    manager = DraftManager("artwork_drafts", storage)
    draft_id = manager.save("A", artwork())
    assert manager.active_draft_id == draft_id


def test_save_with_existing_id_updates_in_place(storage) -> None:
    manager = DraftManager("artwork_drafts", storage)
    draft_id = manager.save("A", artwork("first"))
    first_timestamp = manager.list()[0].timestamp
    manager.active_draft_id = None

    returned = manager.save("B", artwork("second"), draft_id)

    drafts = manager.list()
    assert returned == draft_id
    assert len(drafts) == 1
    assert drafts[0].id == draft_id
    assert drafts[0].name == "B"
    assert drafts[0].data == artwork("second")
    assert drafts[0].timestamp >= first_timestamp
    # Updates leave the active marker to the caller
    assert manager.active_draft_id is None


def test_save_with_unknown_id_creates_new_draft(storage) -> None:
    manager = DraftManager("artwork_drafts", storage)
    manager.save("A", artwork())

    new_id = manager.save("B", artwork(), "does-not-exist")

    assert new_id != "does-not-exist"
    assert [d.name for d in manager.list()] == ["A", "B"]


def test_listing_keeps_insertion_order_and_unique_ids(storage) -> None:
    manager = DraftManager("project_drafts", storage)
    ids = [manager.save(f"draft {i}", {"n": i}) for i in range(5)]

    assert [d.id for d in manager.list()] == ids
    assert len(set(ids)) == 5


def test_scopes_are_isolated(storage) -> None:
    artworks = DraftManager("artwork_drafts", storage)
    projects = DraftManager("project_drafts", storage)

    artworks.save("A", artwork())

    assert projects.list() == []
    assert DraftManager("project_drafts", storage).list() == []


def test_blank_name_gets_timestamped_default(storage) -> None:
    manager = DraftManager("artwork_drafts", storage)
    manager.save("   ", artwork())

    name = manager.list()[0].name
    assert re.fullmatch(r"Draft \d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}", name)


def test_name_is_trimmed(storage) -> None:
    manager = DraftManager("artwork_drafts", storage)
    manager.save("  Sketch  ", artwork())
    assert manager.list()[0].name == "Sketch"


def test_delete_then_restore_returns_none(storage) -> None:
    manager = DraftManager("artwork_drafts", storage)
    keep = manager.save("keep", artwork())
    gone = manager.save("gone", artwork())

    manager.delete(gone)

    assert manager.restore(gone) is None
    assert [d.id for d in manager.list()] == [keep]
    assert [d["id"] for d in json.loads(storage.get("artwork_drafts"))] == [keep]


def test_deleting_active_draft_clears_marker(storage) -> None:
    manager = DraftManager("artwork_drafts", storage)
    other = manager.save("other", artwork())
    active = manager.save("active", artwork())

    manager.delete(other)
    assert manager.active_draft_id == active

    manager.delete(active)
    assert manager.active_draft_id is None


def test_unknown_ids_are_silent_no_ops(storage) -> None:
    manager = DraftManager("artwork_drafts", storage)
    manager.save("A", artwork())

    assert manager.restore("missing") is None
    manager.delete("missing")
    assert len(manager.list()) == 1


def test_restore_marks_active_without_mutating(storage) -> None:
    manager = DraftManager("artwork_drafts", storage)
    first = manager.save("first", artwork("one"))
    manager.save("second", artwork("two"))

    assert manager.restore(first) == artwork("one")
    assert manager.active_draft_id == first
    assert len(manager.list()) == 2


def test_serialized_format(storage) -> None:
    manager = DraftManager("artwork_drafts", storage)
    manager.save("A", artwork())

    stored = json.loads(storage.get("artwork_drafts"))
    assert isinstance(stored, list)
    assert set(stored[0]) == {"id", "name", "timestamp", "data"}
    assert stored[0]["timestamp"].endswith("+00:00")


def test_corrupt_storage_yields_empty_list() -> None:
    storage = MemoryStorage({"artwork_drafts": "{not json"})
    assert DraftManager("artwork_drafts", storage).list() == []

    storage = MemoryStorage({"artwork_drafts": '{"id": "1"}'})
    assert DraftManager("artwork_drafts", storage).list() == []


def test_storage_read_error_yields_empty_list() -> None:
    class BrokenStorage(MemoryStorage):
        def get(self, key):
            raise OSError("disk gone")

    manager = DraftManager("artwork_drafts", BrokenStorage())

    assert manager.list() == []
    assert manager.save("A", artwork()) is None


def test_unserializable_payload_is_not_saved(storage) -> None:
    manager = DraftManager("artwork_drafts", storage)

    assert manager.save("A", {"bad": object()}) is None
    assert manager.list() == []
    assert storage.get("artwork_drafts") is None


def test_save_rereads_persisted_collection(storage) -> None:
    # Two managers on one scope, like two tabs; only the writer's cache is refreshed
    tab_one = DraftManager("artwork_drafts", storage)
    tab_two = DraftManager("artwork_drafts", storage)

    tab_one.save("from tab one", artwork())
    tab_two.save("from tab two", artwork())

    names = [d.name for d in DraftManager("artwork_drafts", storage).list()]
    assert names == ["from tab one", "from tab two"]
    assert [d.name for d in tab_one.list()] == ["from tab one"]


def test_refresh_picks_up_external_writes(storage) -> None:
    reader = DraftManager("artwork_drafts", storage)
    DraftManager("artwork_drafts", storage).save("elsewhere", artwork())

    assert reader.list() == []
    assert [d.name for d in reader.refresh()] == ["elsewhere"]


def test_drafts_survive_restart_with_file_storage(tmp_path) -> None:
    first = DraftManager("artwork_drafts", FileStorage(str(tmp_path)))
    draft_id = first.save("persisted", artwork())

    second = DraftManager("artwork_drafts", FileStorage(str(tmp_path)))

    assert second.restore(draft_id) == artwork()
    assert (tmp_path / "artwork_drafts.json").exists()


def test_generated_ids_strictly_increase() -> None:
    ids = [int(generate_draft_id()) for _ in range(50)]
    assert ids == sorted(set(ids))


def test_generated_id_skips_taken_ids() -> None:
    first = generate_draft_id()
    taken = {str(int(first) + 1), str(int(first) + 2)}
    assert generate_draft_id(taken) not in taken


def test_form_managers_use_their_own_scopes(storage) -> None:
    artworks = artwork_drafts(storage)
    projects = project_drafts(storage)
    projects.save("P", {"title": "site", "imagePreviews": []})

    assert artworks.storage_key == ARTWORK_DRAFTS
    assert projects.storage_key == PROJECT_DRAFTS
    assert artworks.list() == []
    assert len(projects.list()) == 1


def test_similar_scope_names_stay_isolated_on_disk(tmp_path) -> None:
    spaced = DraftManager("artwork drafts", FileStorage(str(tmp_path)))
    spaced.save("A", artwork())

    assert DraftManager("artwork_drafts", FileStorage(str(tmp_path))).list() == []
    assert [d.name for d in DraftManager("artwork drafts", FileStorage(str(tmp_path))).list()] == ["A"]


@pytest.mark.parametrize(
    "env",
    [{"DRAFT_STORAGE": "carrier-pigeon"}, {"DRAFT_STORAGE": "blob"}],
)
def test_misconfigured_storage_falls_back_to_memory(monkeypatch, env) -> None:
    monkeypatch.delenv("AzureWebJobsStorage", raising=False)
    for name, value in env.items():
        monkeypatch.setenv(name, value)

    manager = DraftManager("artwork_drafts")

    assert isinstance(manager.storage, MemoryStorage)
    assert manager.list() == []
    draft_id = manager.save("A", artwork())
    assert manager.restore(draft_id) == artwork()
