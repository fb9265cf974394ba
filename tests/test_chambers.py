"""Tests for chamber lifecycle, sanitization, listing and the current-chamber pointer."""

import json

import pytest

from chambr import chambers
from chambr.config import load_config, update_config
from chambr.engine import create_initial_room_state
from chambr.errors import (
    ChamberNotFoundError,
    ErrorKind,
    InvalidChamberPayloadError,
    ValidationError,
)
from chambr.paths import chamber_path


def _write_raw(base_dir, chamber_id, payload):
    path = chamber_path(chamber_id, base_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload))


# ── Create ───────────────────────────────────────────────


def test_create_chamber_defaults(base_dir):
    chamber = chambers.create_chamber(base_dir=base_dir)
    assert len(chamber.id) == 12
    assert chamber.name == f"Chamber {chamber.id[:6]}"
    assert chamber.goal == ""
    assert chamber.preset_id == "balanced"
    assert chamber.roomies == []
    assert chamber.state == create_initial_room_state()
    assert chamber.created_at.endswith("Z")


def test_create_chamber_sets_current(base_dir):
    chamber = chambers.create_chamber(id="war-room", name="War Room", base_dir=base_dir)
    assert chambers.get_current_chamber_id(base_dir) == "war-room"
    assert chamber_path("war-room", base_dir).is_file()


def test_create_chamber_uses_configured_preset(base_dir):
    def set_preset(config):
        defaults = config.defaults.model_copy(update={"preset_id": "sitcom"})
        return config.model_copy(update={"defaults": defaults})

    update_config(set_preset, base_dir)
    chamber = chambers.create_chamber(id="c1", base_dir=base_dir)
    assert chamber.preset_id == "sitcom"


def test_create_chamber_custom_initial_state(base_dir):
    chambers.create_chamber(id="c1", base_dir=base_dir, initial_state=lambda: {"turn": 0})
    assert chambers.load_chamber("c1", base_dir).state == {"turn": 0}


def test_create_save_load_roundtrip(base_dir):
    chamber = chambers.create_chamber(
        id="test-chamber", name="Test Chamber", goal="Ship the CLI", preset_id="balanced",
        base_dir=base_dir,
    )
    chamber.goal = "Ship fast"
    chambers.save_chamber(chamber, base_dir)

    loaded = chambers.load_chamber("test-chamber", base_dir)
    assert loaded.goal == "Ship fast"
    assert loaded.name == "Test Chamber"


# ── Load ─────────────────────────────────────────────────


def test_load_blank_id(base_dir):
    with pytest.raises(ValidationError) as exc:
        chambers.load_chamber("  ", base_dir)
    assert exc.value.code == "CHAMBER_ID_REQUIRED"
    assert exc.value.kind == ErrorKind.VALIDATION


def test_load_missing(base_dir):
    with pytest.raises(ChamberNotFoundError) as exc:
        chambers.load_chamber("nope", base_dir)
    assert exc.value.code == "CHAMBER_NOT_FOUND"
    assert exc.value.exit_code == 5


def test_load_unparsable(base_dir):
    path = chamber_path("broken", base_dir)
    path.parent.mkdir(parents=True)
    path.write_text("{{{")
    with pytest.raises(ChamberNotFoundError):
        chambers.load_chamber("broken", base_dir)


def test_load_non_object_payload(base_dir):
    _write_raw(base_dir, "listy", [1, 2, 3])
    with pytest.raises(InvalidChamberPayloadError) as exc:
        chambers.load_chamber("listy", base_dir)
    assert exc.value.code == "INVALID_CHAMBER_PAYLOAD"


def test_load_repairs_fields(base_dir):
    _write_raw(base_dir, "messy", {
        "schemaVersion": "one",
        "name": "   ",
        "goal": 7,
        "roomies": [
            {"id": "ava", "name": "Ava", "bio": "Strategist", "traits": "calm", "model": " m1 "},
            {"id": "ghost", "name": "Ghost", "bio": "   "},
            {"bio": "No id or name"},
            "not-a-roomie",
        ],
        "advanced": {"directorReasoning": "high", "summarizerReasoning": "extreme"},
        "runtime": {
            "maxAgents": 0.4,
            "compactEveryChars": -10,
            "compactKeepMessages": 3.7,
            "thoughtDisplayDefault": "yes",
            "budget": {"maxDirectorAttempts": 1},
        },
        "state": "not-an-object",
    })
    chamber = chambers.load_chamber("messy", base_dir)
    assert chamber.schema_version == 1
    assert chamber.id == "messy"
    assert chamber.name == "messy"
    assert chamber.goal == ""
    assert [r.id for r in chamber.roomies] == ["ava", "roomie-3"]
    assert chamber.roomies[0].model == "m1"
    assert chamber.roomies[0].traits == "calm"
    assert chamber.roomies[1].name == "roomie-3"
    assert chamber.advanced.director_reasoning == "high"
    assert chamber.advanced.summarizer_reasoning is None
    assert chamber.runtime.max_agents == 1
    assert chamber.runtime.compact_every_chars == 0
    assert chamber.runtime.compact_keep_messages == 3
    assert chamber.runtime.thought_display_default is None
    assert chamber.runtime.budget == {"maxDirectorAttempts": 1}
    assert chamber.state == create_initial_room_state()


def test_load_drops_duplicate_roomie_ids_and_sorts(base_dir):
    _write_raw(base_dir, "dupes", {
        "roomies": [
            {"id": "zed", "name": "Zed", "bio": "Last"},
            {"id": "ava", "name": "Ava", "bio": "First copy"},
            {"id": "ava", "name": "Ava Two", "bio": "Second copy"},
        ],
    })
    chamber = chambers.load_chamber("dupes", base_dir)
    assert [(r.id, r.bio) for r in chamber.roomies] == [("ava", "First copy"), ("zed", "Last")]

    updated = chambers.set_roomie_model("ava", "m2", chamber_id="dupes", base_dir=base_dir)
    assert [r.model for r in updated.roomies] == ["m2", None]


def test_state_is_stored_verbatim(base_dir):
    state = {"shared": {"turn_index": 4, "note": None, "nested": [{"b": 1, "a": None}]}}
    chamber = chambers.create_chamber(id="c1", base_dir=base_dir)
    chamber.state = state
    chambers.save_chamber(chamber, base_dir)
    raw = json.loads(chamber_path("c1", base_dir).read_text())
    assert raw["state"] == state
    assert chambers.load_chamber("c1", base_dir).state == state


# ── Save ─────────────────────────────────────────────────


def test_save_restamps_updated_at(base_dir):
    chamber = chambers.create_chamber(id="c1", base_dir=base_dir)
    chamber.updated_at = "2000-01-01T00:00:00.000Z"
    chamber.schema_version = 99
    chambers.save_chamber(chamber, base_dir)
    loaded = chambers.load_chamber("c1", base_dir)
    assert loaded.updated_at > "2000-01-01T00:00:00.000Z"
    assert loaded.schema_version == 1


def test_save_blank_id(base_dir):
    chamber = chambers.create_chamber(id="c1", base_dir=base_dir)
    chamber.id = "  "
    with pytest.raises(ValidationError) as exc:
        chambers.save_chamber(chamber, base_dir)
    assert exc.value.code == "CHAMBER_ID_INVALID"


def test_saved_file_uses_camel_case(base_dir):
    chambers.create_chamber(id="c1", base_dir=base_dir)
    text = chamber_path("c1", base_dir).read_text()
    raw = json.loads(text)
    assert text.endswith("\n")
    assert {"schemaVersion", "presetId", "createdAt", "updatedAt"} <= raw.keys()
    assert raw["advanced"] == {}
    assert raw["runtime"] == {}


# ── List ─────────────────────────────────────────────────


def test_list_empty(base_dir):
    assert chambers.list_chambers(base_dir) == []


def test_list_sorted_by_updated_at_desc(base_dir):
    _write_raw(base_dir, "older", {"name": "Older", "updatedAt": "2026-01-01T00:00:00.000Z"})
    _write_raw(base_dir, "newer", {"name": "Newer", "updatedAt": "2026-02-01T00:00:00.000Z"})
    assert [c.id for c in chambers.list_chambers(base_dir)] == ["newer", "older"]


def test_list_skips_corrupt_files(base_dir):
    chambers.create_chamber(id="good", base_dir=base_dir)
    chamber_path("bad", base_dir).write_text("nope")
    _write_raw(base_dir, "listy", ["x"])
    (chamber_path("good", base_dir).parent / "notes.txt").write_text("ignored")
    assert [c.id for c in chambers.list_chambers(base_dir)] == ["good"]


# ── Current chamber ──────────────────────────────────────


def test_current_chamber_pointer(base_dir):
    assert chambers.get_current_chamber_id(base_dir) is None
    chambers.set_current_chamber("abc123", base_dir)
    assert chambers.get_current_chamber_id(base_dir) == "abc123"
    assert load_config(base_dir).current_chamber_id == "abc123"


def test_resolve_active_explicit_wins(base_dir):
    chambers.set_current_chamber("stored", base_dir)
    assert chambers.resolve_active_chamber_id(" explicit ", base_dir) == "explicit"
    assert chambers.resolve_active_chamber_id(None, base_dir) == "stored"


def test_resolve_active_none(base_dir):
    with pytest.raises(ValidationError) as exc:
        chambers.resolve_active_chamber_id(None, base_dir)
    assert exc.value.code == "NO_ACTIVE_CHAMBER"


def test_use_chamber(base_dir):
    chambers.create_chamber(id="a", base_dir=base_dir)
    chambers.create_chamber(id="b", base_dir=base_dir)
    chambers.use_chamber("a", base_dir)
    assert chambers.get_active_chamber(base_dir).id == "a"


def test_use_missing_chamber_keeps_pointer(base_dir):
    chambers.create_chamber(id="a", base_dir=base_dir)
    with pytest.raises(ChamberNotFoundError):
        chambers.use_chamber("ghost", base_dir)
    assert chambers.get_current_chamber_id(base_dir) == "a"


def test_get_active_chamber_none(base_dir):
    assert chambers.get_active_chamber(base_dir) is None


# ── Reset ────────────────────────────────────────────────


def test_reset_replaces_state_only(base_dir):
    chambers.create_chamber(id="c1", goal="Plan", base_dir=base_dir)
    chambers.add_roomie("Ava", "Strategist", chamber_id="c1", base_dir=base_dir)
    chamber = chambers.load_chamber("c1", base_dir)
    chamber.state = {"shared": {"turn_index": 9}}
    chambers.save_chamber(chamber, base_dir)

    reset = chambers.reset_chamber("c1", base_dir)
    assert reset.state == create_initial_room_state()
    assert reset.goal == "Plan"
    assert [r.id for r in reset.roomies] == ["ava"]


def test_reset_missing(base_dir):
    with pytest.raises(ChamberNotFoundError):
        chambers.reset_chamber("ghost", base_dir)
