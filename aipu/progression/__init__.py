"""Upgrade stacking and derived-stat progression."""
from __future__ import annotations

from aipu.progression.definitions import (
    FALLBACK_UPGRADE_DEFS,
    UPGRADE_DEFS,
    FallbackDefinition,
    FallbackOffer,
    StatModifier,
    UpgradeDefinition,
)
from aipu.progression.stats import DerivedStats
from aipu.progression.upgrades import UpgradeEngine, UpgradeRunState

__all__ = [
    "DerivedStats",
    "FALLBACK_UPGRADE_DEFS",
    "FallbackDefinition",
    "FallbackOffer",
    "StatModifier",
    "UPGRADE_DEFS",
    "UpgradeDefinition",
    "UpgradeEngine",
    "UpgradeRunState",
]
