import random

import pytest

from aipu.constants import BASE_INVULN_TIME, BASE_MAX_HP
from aipu.progression.definitions import (
    FALLBACK_UPGRADE_DEFS,
    UPGRADE_DEFS,
    FallbackOffer,
    StatModifier,
    UpgradeDefinition,
)
from aipu.progression.upgrades import UpgradeEngine
from aipu.state import GamePhase, PlayerState, SessionState


def _make_engine(seed: int = 0, **kwargs) -> UpgradeEngine:
    return UpgradeEngine(SessionState(), PlayerState(), rng=random.Random(seed), **kwargs)


def _grant(engine: UpgradeEngine, upgrade_id: str, times: int = 1) -> None:
    for _ in range(times):
        assert engine.apply_upgrade(upgrade_id) is not None


def test_apply_upgrade_increments_stack_and_records_history():
    engine = _make_engine()
    engine.session.current_floor_index = 2
    grant = engine.apply_upgrade("quick_trigger")
    assert grant is not None
    assert grant.definition.id == "quick_trigger"
    assert grant.new_stack == 1
    state = engine.run_state
    assert state.stacks == {"quick_trigger": 1}
    assert state.serial == 1
    assert state.last_taken_serial["quick_trigger"] == 1
    record = state.history[0]
    assert (record.id, record.floor, record.stack, record.serial) == ("quick_trigger", 3, 1, 1)


def test_apply_upgrade_rejects_unknown_id():
    engine = _make_engine()
    assert engine.apply_upgrade("does_not_exist") is None
    assert engine.run_state.history == []


def test_stack_never_exceeds_max_and_cap_grant_is_noop():
    engine = _make_engine()
    _grant(engine, "ghost_rounds", 3)
    before = engine.run_state
    assert engine.apply_upgrade("ghost_rounds") is None
    assert engine.run_state == before
    assert engine.get_stack("ghost_rounds") == 3
    assert not engine.can_take_upgrade("ghost_rounds")


def test_random_grant_sequences_respect_caps():
    engine = _make_engine()
    rng = random.Random(7)
    ids = [definition.id for definition in UPGRADE_DEFS]
    for _ in range(200):
        engine.apply_upgrade(rng.choice(ids))
    for definition in UPGRADE_DEFS:
        assert engine.get_stack(definition.id) <= definition.max_stacks
    state = engine.run_state
    assert len(state.history) == state.serial


def test_serials_are_unique_and_history_matches_grants():
    engine = _make_engine()
    ids = ["comfy_soles", "wide_shots", "comfy_soles", "magnet_hands", "wide_shots"]
    for upgrade_id in ids:
        _grant(engine, upgrade_id)
    engine.apply_upgrade("unknown")
    state = engine.run_state
    assert [record.serial for record in state.history] == [1, 2, 3, 4, 5]
    assert len(state.history) == len(ids)
    assert state.last_taken_serial == {"comfy_soles": 3, "wide_shots": 5, "magnet_hands": 4}


def test_run_state_is_a_detached_copy():
    engine = _make_engine()
    _grant(engine, "comfy_soles")
    state = engine.run_state
    state.stacks["comfy_soles"] = 99
    assert engine.get_stack("comfy_soles") == 1


def test_heart_container_at_full_health_raises_max_and_heals_to_it():
    engine = _make_engine()
    player = engine.player
    assert player.hearts == player.max_hearts == BASE_MAX_HP
    _grant(engine, "heart_container")
    assert player.max_hearts == BASE_MAX_HP + 1
    assert player.hearts == player.max_hearts


def test_heart_container_heals_one_when_hurt():
    engine = _make_engine()
    engine.player.hearts = 1
    _grant(engine, "heart_container")
    assert engine.player.max_hearts == 4
    assert engine.player.hearts == 2


def test_apply_effect_sees_new_stack():
    seen = []
    probe = UpgradeDefinition(
        id="probe",
        name="Probe",
        desc="",
        tags=("utility",),
        max_stacks=2,
        apply=lambda engine, new_stack: seen.append((new_stack, engine.get_stack("probe"))),
    )
    engine = _make_engine(definitions=(probe,))
    _grant(engine, "probe", 2)
    assert seen == [(1, 1), (2, 2)]


def test_fallback_heal_reports_actual_delta():
    engine = _make_engine()
    offer = engine.build_fallback_offer(0, {"fallback_gold"})
    assert offer is not None and offer.fallback_base_id == "fallback_heal"

    grant = engine.apply_fallback_upgrade(offer)
    assert grant.effect_text == "HP already full"
    assert engine.player.hearts == BASE_MAX_HP

    engine.player.hearts = 1
    grant = engine.apply_fallback_upgrade(offer)
    assert grant.effect_text == "heal +1"
    assert engine.player.hearts == 2
    assert engine.run_state.history == []


def test_fallback_iframes_clamps_to_ceiling():
    engine = _make_engine()
    offer = FallbackOffer.from_definition(FALLBACK_UPGRADE_DEFS[1], "fallback_gold")
    texts = [engine.apply_fallback_upgrade(offer).effect_text for _ in range(4)]
    assert texts[:3] == ["+0.05s iFrames (floor)"] * 3
    assert texts[3] == "iFrames already capped"
    assert engine.session.floor_fallback_invuln_bonus == pytest.approx(0.15)
    assert engine.get_invuln_duration() == pytest.approx(BASE_INVULN_TIME + 0.15)
    assert engine.run_state.stacks == {}


def test_apply_upgrade_choice_routes_by_fallback_marker():
    engine = _make_engine()
    definition = engine.get_upgrade_def("fast_rounds")
    result = engine.apply_upgrade_choice(definition)
    assert result.type == "upgrade"
    assert result.new_stack == 1
    assert result.max_stacks == definition.max_stacks

    offer = engine.build_fallback_offer(0, set())
    result = engine.apply_upgrade_choice(offer)
    assert result.type == "fallback"
    assert result.effect_text


def test_apply_upgrade_choice_failures_return_none():
    engine = _make_engine()
    assert engine.apply_upgrade_choice(None) is None
    bogus = FallbackOffer(id="x", name="X", desc="", tags=(), fallback_base_id="missing")
    assert engine.apply_upgrade_choice(bogus) is None
    _grant(engine, "bubble_shield", 2)
    assert engine.apply_upgrade_choice(engine.get_upgrade_def("bubble_shield")) is None


def test_reset_upgrade_run_clears_everything():
    engine = _make_engine()
    _grant(engine, "quick_trigger", 2)
    engine.compute_derived_stats()
    engine.reset_upgrade_run()
    state = engine.run_state
    assert state.stacks == {}
    assert state.history == []
    assert state.last_taken_serial == {}
    assert state.serial == 0
    assert engine.compute_derived_stats().fire_cooldown_mult == 1.0


def test_collected_entries_rank_by_stack_then_recency():
    engine = _make_engine()
    _grant(engine, "wide_shots")
    _grant(engine, "quick_trigger", 2)
    _grant(engine, "fast_rounds")
    entries = engine.get_collected_upgrade_entries()
    assert [entry.definition.id for entry in entries] == ["quick_trigger", "fast_rounds", "wide_shots"]
    assert entries == engine.get_collected_upgrade_entries()


def test_collected_entries_prefer_recency_over_name():
    first = UpgradeDefinition(id="b", name="Beta", desc="", tags=("offense",), max_stacks=1)
    second = UpgradeDefinition(id="a", name="Alpha", desc="", tags=("offense",), max_stacks=1)
    engine = _make_engine(definitions=(first, second))
    _grant(engine, "b")
    _grant(engine, "a")
    assert [entry.definition.id for entry in engine.get_collected_upgrade_entries()] == ["a", "b"]


def test_upgrade_hud_rows():
    engine = _make_engine()
    assert engine.get_upgrade_hud_rows() == ["None yet"]
    for upgrade_id in ["comfy_soles", "quick_trigger", "wide_shots", "fast_rounds", "ghost_rounds", "magnet_hands"]:
        _grant(engine, upgrade_id)
    _grant(engine, "comfy_soles")
    rows = engine.get_upgrade_hud_rows(max_rows=5)
    assert rows[0] == "Comfy Soles x2"
    assert rows[1] == "Magnet Hands x1"
    assert len(rows) == 6
    assert rows[-1] == "+1 more"


def test_run_build_entries_follow_first_taken_order():
    engine = _make_engine()
    engine.session.current_floor_index = 0
    _grant(engine, "magnet_hands")
    engine.session.current_floor_index = 1
    _grant(engine, "quick_trigger")
    _grant(engine, "magnet_hands")
    entries = engine.get_run_build_entries()
    assert [(entry.definition.id, entry.stack, entry.first_floor) for entry in entries] == [
        ("magnet_hands", 2, 1),
        ("quick_trigger", 1, 2),
    ]


def test_floors_cleared_count():
    engine = _make_engine()
    engine.session.current_floor_index = 4
    assert engine.get_floors_cleared_count(9) == 4
    engine.session.current_floor_index = 12
    assert engine.get_floors_cleared_count(9) == 9
    engine.session.current_floor_index = 3
    engine.session.phase = GamePhase.VICTORY
    assert engine.get_floors_cleared_count(9) == 9


def test_definition_validation():
    with pytest.raises(ValueError):
        UpgradeDefinition(id="bad", name="Bad", desc="", tags=("offense",), max_stacks=0)
    with pytest.raises(ValueError):
        UpgradeDefinition(id="bad", name="Bad", desc="", tags=("speed",), max_stacks=1)
    with pytest.raises(ValueError):
        StatModifier("move_speed_mult", "pow", 2.0)
    with pytest.raises(ValueError):
        _make_engine(definitions=(UPGRADE_DEFS[0], UPGRADE_DEFS[0]))
