"""Per-run upgrade stacks, offer rolling and derived-stat getters."""
from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple, Union

from aipu.constants import (
    BASE_BULLET_PIERCE,
    BASE_BULLET_RADIUS,
    BASE_BULLET_SPEED,
    BASE_FIRE_COOLDOWN,
    BASE_INVULN_TIME,
    BASE_MAX_HP,
    BASE_PLAYER_SPEED,
    FALLBACK_IFRAME_BONUS,
    MAX_FALLBACK_IFRAME_BONUS,
    MAX_FLOOR_SHIELD_CHARGES,
    MAX_INVULN_TIME,
    MIN_INVULN_TIME,
    clamp,
)
from aipu.engine.logger import ChannelLogger
from aipu.progression.definitions import (
    FALLBACK_HEAL_ID,
    FALLBACK_IFRAMES_ID,
    FALLBACK_UPGRADE_DEFS,
    UPGRADE_DEFS,
    FallbackDefinition,
    FallbackOffer,
    UpgradeDefinition,
)
from aipu.progression.stats import DerivedStats, fold_derived_stats
from aipu.state import GamePhase, PlayerState, SessionState

UpgradeOption = Union[UpgradeDefinition, FallbackOffer]


@dataclass(frozen=True)
class GrantRecord:
    id: str
    floor: int
    stack: int
    serial: int


@dataclass
class UpgradeRunState:
    """Stack counts and grant history for a single run."""

    stacks: Dict[str, int] = field(default_factory=dict)
    history: List[GrantRecord] = field(default_factory=list)
    last_taken_serial: Dict[str, int] = field(default_factory=dict)
    serial: int = 0

    def reset(self) -> None:
        self.stacks = {}
        self.history = []
        self.last_taken_serial = {}
        self.serial = 0

    def copy(self) -> "UpgradeRunState":
        return UpgradeRunState(
            stacks=dict(self.stacks),
            history=list(self.history),
            last_taken_serial=dict(self.last_taken_serial),
            serial=self.serial,
        )


@dataclass(frozen=True)
class UpgradeGrant:
    definition: UpgradeDefinition
    new_stack: int


@dataclass(frozen=True)
class FallbackGrant:
    fallback: FallbackDefinition
    effect_text: str


@dataclass(frozen=True)
class ChoiceResult:
    """Outcome of :meth:`UpgradeEngine.apply_upgrade_choice`."""

    type: str
    option: UpgradeOption
    effect_text: Optional[str] = None
    new_stack: Optional[int] = None
    max_stacks: Optional[int] = None


@dataclass(frozen=True)
class CollectedEntry:
    definition: UpgradeDefinition
    stack: int
    last_serial: int


@dataclass(frozen=True)
class BuildEntry:
    definition: UpgradeDefinition
    stack: int
    first_floor: int


class UpgradeEngine:
    """Owns the upgrade run state and the derived-stat cache.

    ``session`` and ``player`` are the shared run context; grants read the
    current floor from the session and one-shot effects mutate the player.
    """

    def __init__(
        self,
        session: SessionState,
        player: PlayerState,
        definitions: Sequence[UpgradeDefinition] = UPGRADE_DEFS,
        fallbacks: Sequence[FallbackDefinition] = FALLBACK_UPGRADE_DEFS,
        rng: Optional[random.Random] = None,
        logger: ChannelLogger | None = None,
    ) -> None:
        self.session = session
        self.player = player
        self._definitions: Tuple[UpgradeDefinition, ...] = tuple(definitions)
        self._fallbacks: Tuple[FallbackDefinition, ...] = tuple(fallbacks)
        self._by_id: Dict[str, UpgradeDefinition] = {}
        for definition in self._definitions:
            if definition.id in self._by_id:
                raise ValueError(f"Duplicate upgrade id '{definition.id}'")
            self._by_id[definition.id] = definition
        self._fallback_by_id: Dict[str, FallbackDefinition] = {}
        for fallback in self._fallbacks:
            if fallback.id in self._fallback_by_id:
                raise ValueError(f"Duplicate fallback id '{fallback.id}'")
            self._fallback_by_id[fallback.id] = fallback
        self._rng = rng or random.Random()
        self._logger = logger
        self._state = UpgradeRunState()
        self._derived_dirty = True
        self._derived: Optional[DerivedStats] = None

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------
    @property
    def definitions(self) -> Tuple[UpgradeDefinition, ...]:
        return self._definitions

    @property
    def fallbacks(self) -> Tuple[FallbackDefinition, ...]:
        return self._fallbacks

    @property
    def run_state(self) -> UpgradeRunState:
        """Return a detached copy of the current run state."""

        return self._state.copy()

    def get_upgrade_def(self, upgrade_id: str) -> Optional[UpgradeDefinition]:
        return self._by_id.get(upgrade_id)

    def get_fallback_def(self, fallback_id: str) -> Optional[FallbackDefinition]:
        return self._fallback_by_id.get(fallback_id)

    def get_stack(self, upgrade_id: str) -> int:
        return self._state.stacks.get(upgrade_id, 0)

    def can_take_upgrade(self, upgrade_id: str) -> bool:
        definition = self.get_upgrade_def(upgrade_id)
        return definition is not None and self.get_stack(upgrade_id) < definition.max_stacks

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------
    def invalidate_derived_stats(self) -> None:
        self._derived_dirty = True

    def reset_upgrade_run(self) -> None:
        self._state.reset()
        self.invalidate_derived_stats()

    # ------------------------------------------------------------------
    # Grants
    # ------------------------------------------------------------------
    def apply_upgrade(self, upgrade_id: str) -> Optional[UpgradeGrant]:
        definition = self.get_upgrade_def(upgrade_id)
        if definition is None or not self.can_take_upgrade(upgrade_id):
            if self._logger:
                self._logger.debug("Rejected upgrade grant for '%s'", upgrade_id)
            return None

        state = self._state
        new_stack = self.get_stack(upgrade_id) + 1
        state.stacks[upgrade_id] = new_stack
        state.serial += 1
        state.last_taken_serial[upgrade_id] = state.serial
        state.history.append(
            GrantRecord(
                id=upgrade_id,
                floor=self.session.floor_number,
                stack=new_stack,
                serial=state.serial,
            )
        )
        self.invalidate_derived_stats()

        if definition.apply is not None:
            definition.apply(self, new_stack)
        return UpgradeGrant(definition=definition, new_stack=new_stack)

    def apply_fallback_upgrade(
        self, option: Union[FallbackOffer, FallbackDefinition]
    ) -> Optional[FallbackGrant]:
        base_id = getattr(option, "fallback_base_id", None) or option.id
        fallback = self.get_fallback_def(base_id)
        if fallback is None:
            return None

        if base_id == FALLBACK_HEAL_ID:
            player = self.player
            before = player.hearts
            player.hearts = int(clamp(player.hearts + 1, 0, player.max_hearts))
            healed = player.hearts - before
            text = f"heal +{healed}" if healed > 0 else "HP already full"
            return FallbackGrant(fallback=fallback, effect_text=text)

        if base_id == FALLBACK_IFRAMES_ID:
            session = self.session
            before = session.floor_fallback_invuln_bonus
            session.floor_fallback_invuln_bonus = clamp(
                before + FALLBACK_IFRAME_BONUS, 0.0, MAX_FALLBACK_IFRAME_BONUS
            )
            self.invalidate_derived_stats()
            gained = session.floor_fallback_invuln_bonus - before
            # Float residue from repeated increments counts as no gain.
            if gained > 1e-9:
                text = f"+{gained:.2f}s iFrames (floor)"
            else:
                text = "iFrames already capped"
            return FallbackGrant(fallback=fallback, effect_text=text)

        return None

    def apply_upgrade_choice(self, option: Optional[UpgradeOption]) -> Optional[ChoiceResult]:
        """Grant an offered option, routing fallbacks to their own path."""

        if option is None:
            return None

        if getattr(option, "fallback_base_id", None):
            fallback_result = self.apply_fallback_upgrade(option)
            if fallback_result is None:
                return None
            if self._logger:
                self._logger.info(
                    "floor %d: picked %s (%s)",
                    self.session.floor_number,
                    option.name,
                    fallback_result.effect_text,
                )
            return ChoiceResult(type="fallback", option=option, effect_text=fallback_result.effect_text)

        upgrade_result = self.apply_upgrade(option.id)
        if upgrade_result is None:
            return None
        if self._logger:
            self._logger.info(
                "floor %d: picked %s (stack %d/%d)",
                self.session.floor_number,
                option.name,
                upgrade_result.new_stack,
                upgrade_result.definition.max_stacks,
            )
        return ChoiceResult(
            type="upgrade",
            option=option,
            new_stack=upgrade_result.new_stack,
            max_stacks=upgrade_result.definition.max_stacks,
        )

    # ------------------------------------------------------------------
    # Offers
    # ------------------------------------------------------------------
    def build_fallback_offer(self, slot_index: int, used_ids: Set[str]) -> Optional[FallbackOffer]:
        if not self._fallbacks:
            return None

        primary_pool = [fallback for fallback in self._fallbacks if fallback.id not in used_ids]
        if primary_pool:
            base = self._rng.choice(primary_pool)
        else:
            base = self._fallbacks[slot_index % len(self._fallbacks)]

        offer_id = base.id
        suffix = 1
        while offer_id in used_ids:
            offer_id = f"{base.id}_{slot_index + suffix}"
            suffix += 1
        return FallbackOffer.from_definition(base, offer_id)

    def roll_upgrade_options(self, count: int = 3) -> List[UpgradeOption]:
        """Roll up to ``count`` distinct offers.

        One offense and one defense/utility pick are reserved when available,
        the remainder is drawn from a shuffled pool, and fallbacks fill any
        slots left once the pool is exhausted.
        """

        if count <= 0:
            return []

        eligible = [definition for definition in self._definitions if self.can_take_upgrade(definition.id)]
        picks: List[UpgradeOption] = []
        used_ids: Set[str] = set()

        offense = [definition for definition in eligible if definition.has_tag("offense")]
        if offense:
            rolled = self._rng.choice(offense)
            picks.append(rolled)
            used_ids.add(rolled.id)

        support_pool = [
            definition
            for definition in eligible
            if (definition.has_tag("defense") or definition.has_tag("utility"))
            and definition.id not in used_ids
        ]
        if support_pool:
            rolled = self._rng.choice(support_pool)
            picks.append(rolled)
            used_ids.add(rolled.id)

        remaining = [definition for definition in eligible if definition.id not in used_ids]
        self._rng.shuffle(remaining)
        for definition in remaining:
            if len(picks) >= count:
                break
            picks.append(definition)
            used_ids.add(definition.id)

        fallback_slot = 0
        while len(picks) < count:
            offer = self.build_fallback_offer(fallback_slot, used_ids)
            if offer is None:
                break
            picks.append(offer)
            used_ids.add(offer.id)
            fallback_slot += 1

        return picks[:count]

    # ------------------------------------------------------------------
    # Derived stats
    # ------------------------------------------------------------------
    def compute_derived_stats(self) -> DerivedStats:
        """Return the cached frozen derived stats, refolding when marked dirty."""

        if not self._derived_dirty and self._derived is not None:
            return self._derived
        self._derived = fold_derived_stats(self._definitions, self._state.stacks)
        self._derived_dirty = False
        return self._derived

    def get_player_speed(self) -> float:
        return BASE_PLAYER_SPEED * self.compute_derived_stats().move_speed_mult

    def get_fire_cooldown(self) -> float:
        return BASE_FIRE_COOLDOWN * self.compute_derived_stats().fire_cooldown_mult

    def get_bullet_radius(self) -> float:
        return BASE_BULLET_RADIUS * self.compute_derived_stats().bullet_radius_mult

    def get_bullet_speed(self) -> float:
        return BASE_BULLET_SPEED * self.compute_derived_stats().bullet_speed_mult

    def get_bullet_pierce(self) -> int:
        return BASE_BULLET_PIERCE + int(round(self.compute_derived_stats().bullet_pierce_bonus))

    def get_player_max_hp(self) -> int:
        return BASE_MAX_HP + int(round(self.compute_derived_stats().max_hp_bonus))

    def get_shield_charges_per_floor(self) -> int:
        charges = round(self.compute_derived_stats().floor_shield_charges)
        return int(clamp(charges, 0, MAX_FLOOR_SHIELD_CHARGES))

    def get_invuln_duration(self) -> float:
        stats = self.compute_derived_stats()
        duration = BASE_INVULN_TIME + stats.invuln_bonus + self.session.floor_fallback_invuln_bonus
        return clamp(duration, MIN_INVULN_TIME, MAX_INVULN_TIME)

    def get_pickup_magnet_radius(self) -> float:
        return self.compute_derived_stats().pickup_magnet_bonus

    def get_enemy_bullet_speed_multiplier(self) -> float:
        return self.compute_derived_stats().enemy_bullet_speed_mult

    def sync_player_max_hp(self, heal_to_full: bool = False) -> None:
        self.invalidate_derived_stats()
        player = self.player
        player.max_hearts = self.get_player_max_hp()
        if heal_to_full:
            player.hearts = player.max_hearts
            return
        player.hearts = int(clamp(player.hearts, 0, player.max_hearts))

    # ------------------------------------------------------------------
    # Display helpers
    # ------------------------------------------------------------------
    def get_collected_upgrade_entries(self) -> List[CollectedEntry]:
        """Collected upgrades ranked by stack, recency, then name."""

        entries = [
            CollectedEntry(
                definition=definition,
                stack=self.get_stack(definition.id),
                last_serial=self._state.last_taken_serial.get(definition.id, 0),
            )
            for definition in self._definitions
        ]
        collected = [entry for entry in entries if entry.stack > 0]
        collected.sort(
            key=lambda entry: (
                -entry.stack,
                -entry.last_serial,
                entry.definition.name.casefold(),
                entry.definition.id,
            )
        )
        return collected

    def get_upgrade_hud_rows(self, max_rows: int = 5) -> List[str]:
        entries = self.get_collected_upgrade_entries()
        if not entries:
            return ["None yet"]
        rows = [f"{entry.definition.name} x{entry.stack}" for entry in entries[:max_rows]]
        if len(entries) > max_rows:
            rows.append(f"+{len(entries) - max_rows} more")
        return rows

    def get_run_build_entries(self) -> List[BuildEntry]:
        seen: Set[str] = set()
        ordered: List[BuildEntry] = []
        for record in self._state.history:
            if record.id in seen:
                continue
            seen.add(record.id)
            definition = self.get_upgrade_def(record.id)
            if definition is None:
                continue
            ordered.append(
                BuildEntry(definition=definition, stack=self.get_stack(record.id), first_floor=record.floor)
            )
        return ordered

    def get_floors_cleared_count(self, total_floors: int) -> int:
        if self.session.phase == GamePhase.VICTORY:
            return total_floors
        return int(clamp(self.session.current_floor_index, 0, total_floors))


__all__ = [
    "BuildEntry",
    "ChoiceResult",
    "CollectedEntry",
    "FallbackGrant",
    "GrantRecord",
    "UpgradeEngine",
    "UpgradeGrant",
    "UpgradeOption",
    "UpgradeRunState",
]
