"""Base gameplay constants shared by progression and systems."""
from __future__ import annotations

BASE_PLAYER_SPEED = 238.0
BASE_FIRE_COOLDOWN = 0.14
BASE_BULLET_RADIUS = 4.0
BASE_BULLET_SPEED = 528.0
BASE_BULLET_PIERCE = 0
BASE_MAX_HP = 3

BASE_INVULN_TIME = 0.8
MAX_INVULN_TIME = 1.35
MIN_INVULN_TIME = 0.25
MAX_FLOOR_SHIELD_CHARGES = 2

FALLBACK_IFRAME_BONUS = 0.05
MAX_FALLBACK_IFRAME_BONUS = 0.15

SIM_STEP = 1.0 / 60.0
MAX_ACCUMULATED_TIME = 0.25

FLOOR_INTRO_SECONDS = 2.8
FLOOR_CLEAR_SECONDS = 2.2
UPGRADE_CONFIRM_COOLDOWN = 0.18
UPGRADE_NOTICE_SECONDS = 1.2
SHIELD_BREAK_FLASH = 0.22


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


__all__ = [
    "BASE_BULLET_PIERCE",
    "BASE_BULLET_RADIUS",
    "BASE_BULLET_SPEED",
    "BASE_FIRE_COOLDOWN",
    "BASE_INVULN_TIME",
    "BASE_MAX_HP",
    "BASE_PLAYER_SPEED",
    "FALLBACK_IFRAME_BONUS",
    "FLOOR_CLEAR_SECONDS",
    "FLOOR_INTRO_SECONDS",
    "MAX_ACCUMULATED_TIME",
    "MAX_FALLBACK_IFRAME_BONUS",
    "MAX_FLOOR_SHIELD_CHARGES",
    "MAX_INVULN_TIME",
    "MIN_INVULN_TIME",
    "SHIELD_BREAK_FLASH",
    "SIM_STEP",
    "UPGRADE_CONFIRM_COOLDOWN",
    "UPGRADE_NOTICE_SECONDS",
    "clamp",
]
