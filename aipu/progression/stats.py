"""Derived-stat accumulator folded from upgrade stacks."""
from __future__ import annotations

from dataclasses import asdict, dataclass
from types import SimpleNamespace
from typing import Iterable, Mapping

from aipu.constants import BASE_INVULN_TIME, MAX_FLOOR_SHIELD_CHARGES, MAX_INVULN_TIME, clamp
from aipu.progression.definitions import UpgradeDefinition


@dataclass(frozen=True)
class DerivedStats:
    """Aggregated effect of every current upgrade stack.

    Multiplicative fields start at 1, additive fields at 0.
    """

    move_speed_mult: float = 1.0
    fire_cooldown_mult: float = 1.0
    bullet_radius_mult: float = 1.0
    bullet_speed_mult: float = 1.0
    bullet_pierce_bonus: float = 0.0
    max_hp_bonus: float = 0.0
    floor_shield_charges: float = 0.0
    invuln_bonus: float = 0.0
    pickup_magnet_bonus: float = 0.0
    enemy_bullet_speed_mult: float = 1.0


def stat_totals() -> SimpleNamespace:
    """Mutable running totals seeded with the identity stats."""

    return SimpleNamespace(**asdict(DerivedStats()))


def fold_derived_stats(
    definitions: Iterable[UpgradeDefinition], stacks: Mapping[str, int]
) -> DerivedStats:
    """Fold each definition's modifiers over fresh totals, clamp and freeze."""

    totals = stat_totals()
    for definition in definitions:
        stack = stacks.get(definition.id, 0)
        if stack <= 0:
            continue
        definition.fold(totals, stack)
    totals.floor_shield_charges = clamp(totals.floor_shield_charges, 0, MAX_FLOOR_SHIELD_CHARGES)
    totals.invuln_bonus = clamp(totals.invuln_bonus, 0.0, MAX_INVULN_TIME - BASE_INVULN_TIME)
    return DerivedStats(**vars(totals))


__all__ = ["DerivedStats", "fold_derived_stats", "stat_totals"]
