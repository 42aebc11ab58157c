"""Upgrade definitions, stat modifiers and the built-in catalogue."""
from __future__ import annotations

from dataclasses import dataclass, field
from types import SimpleNamespace
from typing import TYPE_CHECKING, Callable, Optional, Tuple

from aipu.constants import clamp

if TYPE_CHECKING:
    from aipu.progression.upgrades import UpgradeEngine

UPGRADE_TAGS = frozenset({"offense", "defense", "utility"})

MODIFIER_MODES = ("multiply", "add")


@dataclass(frozen=True)
class StatModifier:
    """Per-stack effect on a single derived-stat field.

    ``multiply`` folds ``amount ** stack`` into the field, ``add`` folds
    ``amount * stack``.
    """

    stat: str
    mode: str
    amount: float

    def __post_init__(self) -> None:
        if self.mode not in MODIFIER_MODES:
            raise ValueError(f"Unknown modifier mode '{self.mode}'")

    def apply(self, totals: SimpleNamespace, stack: int) -> None:
        current = getattr(totals, self.stat)
        if self.mode == "multiply":
            setattr(totals, self.stat, current * self.amount**stack)
        else:
            setattr(totals, self.stat, current + self.amount * stack)


ApplyEffect = Callable[["UpgradeEngine", int], None]


def _validate_tags(owner: str, tags: Tuple[str, ...]) -> None:
    unknown = set(tags) - UPGRADE_TAGS
    if unknown:
        raise ValueError(f"{owner}: unknown tags {sorted(unknown)}")


@dataclass(frozen=True)
class UpgradeDefinition:
    """Stackable upgrade offered between floors."""

    id: str
    name: str
    desc: str
    tags: Tuple[str, ...]
    max_stacks: int
    modifiers: Tuple[StatModifier, ...] = ()
    apply: Optional[ApplyEffect] = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        if self.max_stacks < 1:
            raise ValueError(f"{self.id}: max_stacks must be at least 1")
        _validate_tags(self.id, self.tags)

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags

    def fold(self, totals: SimpleNamespace, stack: int) -> None:
        for modifier in self.modifiers:
            modifier.apply(totals, stack)


@dataclass(frozen=True)
class FallbackDefinition:
    """Stackless filler offered once the normal pool runs dry."""

    id: str
    name: str
    desc: str
    tags: Tuple[str, ...]
    stackless: bool = True

    def __post_init__(self) -> None:
        _validate_tags(self.id, self.tags)


@dataclass(frozen=True)
class FallbackOffer:
    """A fallback cloned into an offer slot with a disambiguated id."""

    id: str
    name: str
    desc: str
    tags: Tuple[str, ...]
    fallback_base_id: str
    stackless: bool = True

    @classmethod
    def from_definition(cls, base: FallbackDefinition, offer_id: str) -> "FallbackOffer":
        return cls(
            id=offer_id,
            name=base.name,
            desc=base.desc,
            tags=base.tags,
            fallback_base_id=base.id,
        )


def _heart_container_apply(engine: "UpgradeEngine", new_stack: int) -> None:
    engine.sync_player_max_hp(heal_to_full=False)
    player = engine.player
    player.hearts = int(clamp(player.hearts + 1, 0, player.max_hearts))


UPGRADE_DEFS: Tuple[UpgradeDefinition, ...] = (
    UpgradeDefinition(
        id="comfy_soles",
        name="Comfy Soles",
        desc="+6% move speed per stack.",
        tags=("utility",),
        max_stacks=5,
        modifiers=(StatModifier("move_speed_mult", "multiply", 1.06),),
    ),
    UpgradeDefinition(
        id="quick_trigger",
        name="Quick Trigger",
        desc="-6% shot cooldown per stack.",
        tags=("offense",),
        max_stacks=6,
        modifiers=(StatModifier("fire_cooldown_mult", "multiply", 0.94),),
    ),
    UpgradeDefinition(
        id="wide_shots",
        name="Wide Shots",
        desc="+10% bullet radius per stack.",
        tags=("offense",),
        max_stacks=6,
        modifiers=(StatModifier("bullet_radius_mult", "multiply", 1.1),),
    ),
    UpgradeDefinition(
        id="fast_rounds",
        name="Fast Rounds",
        desc="+8% bullet speed per stack.",
        tags=("offense",),
        max_stacks=5,
        modifiers=(StatModifier("bullet_speed_mult", "multiply", 1.08),),
    ),
    UpgradeDefinition(
        id="ghost_rounds",
        name="Ghost Rounds",
        desc="+1 bullet pierce per stack.",
        tags=("offense",),
        max_stacks=3,
        modifiers=(StatModifier("bullet_pierce_bonus", "add", 1),),
    ),
    UpgradeDefinition(
        id="heart_container",
        name="Heart Container",
        desc="+1 max HP per stack and heal +1 immediately.",
        tags=("defense",),
        max_stacks=3,
        modifiers=(StatModifier("max_hp_bonus", "add", 1),),
        apply=_heart_container_apply,
    ),
    UpgradeDefinition(
        id="bubble_shield",
        name="Bubble Shield",
        desc="Start each floor with +1 shield charge per stack.",
        tags=("defense",),
        max_stacks=2,
        modifiers=(StatModifier("floor_shield_charges", "add", 1),),
    ),
    UpgradeDefinition(
        id="grace_frames",
        name="Grace Frames",
        desc="+0.10s post-hit invulnerability per stack.",
        tags=("defense",),
        max_stacks=4,
        modifiers=(StatModifier("invuln_bonus", "add", 0.1),),
    ),
    UpgradeDefinition(
        id="magnet_hands",
        name="Magnet Hands",
        desc="+40px pickup magnet radius per stack.",
        tags=("utility",),
        max_stacks=5,
        modifiers=(StatModifier("pickup_magnet_bonus", "add", 40.0),),
    ),
    UpgradeDefinition(
        id="slowmo_aura",
        name="Slowmo Aura",
        desc="Enemy bullet speed x0.93 per stack.",
        tags=("utility", "defense"),
        max_stacks=5,
        modifiers=(StatModifier("enemy_bullet_speed_mult", "multiply", 0.93),),
    ),
)

FALLBACK_HEAL_ID = "fallback_heal"
FALLBACK_IFRAMES_ID = "fallback_gold"

FALLBACK_UPGRADE_DEFS: Tuple[FallbackDefinition, ...] = (
    FallbackDefinition(
        id=FALLBACK_HEAL_ID,
        name="Patch Job",
        desc="Heal +1 immediately.",
        tags=("utility",),
    ),
    FallbackDefinition(
        id=FALLBACK_IFRAMES_ID,
        name="Breathe",
        desc="+0.05s iFrames this floor.",
        tags=("defense", "utility"),
    ),
)


__all__ = [
    "FALLBACK_HEAL_ID",
    "FALLBACK_IFRAMES_ID",
    "FALLBACK_UPGRADE_DEFS",
    "FallbackDefinition",
    "FallbackOffer",
    "StatModifier",
    "UPGRADE_DEFS",
    "UPGRADE_TAGS",
    "UpgradeDefinition",
]
