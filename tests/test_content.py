import json

from aipu.assets.content import ContentManager, apply_upgrade_rename
from aipu.progression.definitions import UPGRADE_DEFS


def test_bundled_content_loads_floors_and_renames():
    content = ContentManager()
    content.load()
    assert [floor.id for floor in content.floors] == list(range(1, 10))
    assert content.floors[0].duration_seconds == 48.0
    assert content.floors[0].title == "Floor 1: Weights and bias"
    names = {definition.id: definition.name for definition in content.upgrades}
    assert names["heart_container"] == "Error budget"
    assert names["slowmo_aura"] == "Time dilation"
    assert content.narrative.game_title.startswith("AI Power User")


def test_rename_ignores_blank_and_invalid_entries():
    renamed = apply_upgrade_rename(
        UPGRADE_DEFS,
        {
            "comfy_soles": {"name": "  Batch runner  ", "desc": ""},
            "quick_trigger": "not a mapping",
            "wide_shots": {"name": 42, "desc": " Bigger shots. "},
        },
    )
    by_id = {definition.id: definition for definition in renamed}
    assert by_id["comfy_soles"].name == "Batch runner"
    assert by_id["comfy_soles"].desc == "+6% move speed per stack."
    assert by_id["quick_trigger"].name == "Quick Trigger"
    assert by_id["wide_shots"].name == "Wide Shots"
    assert by_id["wide_shots"].desc == "Bigger shots."
    assert UPGRADE_DEFS[0].name == "Comfy Soles"


def test_rename_keeps_apply_effects_and_modifiers():
    renamed = apply_upgrade_rename(UPGRADE_DEFS, {"heart_container": {"name": "Error budget"}})
    original = next(definition for definition in UPGRADE_DEFS if definition.id == "heart_container")
    updated = next(definition for definition in renamed if definition.id == "heart_container")
    assert updated.apply is original.apply
    assert updated.modifiers == original.modifiers


def test_missing_or_malformed_files_fall_back_to_defaults(tmp_path):
    (tmp_path / "floors.json").write_text("{not json")
    content = ContentManager(tmp_path)
    content.load()
    assert content.floors == []
    assert content.upgrades == UPGRADE_DEFS


def test_load_applies_rename_once(tmp_path):
    (tmp_path / "floors.json").write_text(json.dumps([{"id": 2, "name": "B"}, {"id": 1, "name": "A"}, {"name": "?"}]))
    (tmp_path / "narrative.json").write_text(
        json.dumps({"upgradeRename": {"magnet_hands": {"name": "Data magnet"}}})
    )
    content = ContentManager(tmp_path)
    content.load()
    first = content.upgrades
    (tmp_path / "narrative.json").write_text(
        json.dumps({"upgradeRename": {"magnet_hands": {"name": "Other"}}})
    )
    content.load()
    assert content.upgrades is first
    assert [floor.id for floor in content.floors] == [1, 2]
    assert content.floors[0].duration_seconds == 60.0
