"""Mutable run context shared between systems and progression."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List

from aipu.constants import BASE_MAX_HP


class GamePhase(str, Enum):
    TITLE = "TITLE"
    UPGRADE_SELECT = "UPGRADE_SELECT"
    FLOOR_INTRO = "FLOOR_INTRO"
    PLAYING = "PLAYING"
    FLOOR_CLEAR = "FLOOR_CLEAR"
    GAME_OVER = "GAME_OVER"
    VICTORY = "VICTORY"


@dataclass
class SessionState:
    """Floor-level game state owned by the systems layer."""

    phase: GamePhase = GamePhase.TITLE
    current_floor_index: int = 0
    floor_duration: float = 0.0
    floor_elapsed: float = 0.0
    floor_timer: float = 0.0
    intro_timer: float = 0.0
    clear_timer: float = 0.0
    global_time: float = 0.0
    upgrade_options: List[object] = field(default_factory=list)
    upgrade_selected_index: int = 0
    upgrade_confirm_cooldown: float = 0.0
    upgrade_notice_timer: float = 0.0
    floor_fallback_invuln_bonus: float = 0.0
    floor_lesson_upgrade_id: str = ""

    @property
    def floor_number(self) -> int:
        return self.current_floor_index + 1


@dataclass
class PlayerState:
    max_hearts: int = BASE_MAX_HP
    hearts: int = BASE_MAX_HP
    invuln: float = 0.0
    fire_cooldown: float = 0.0
    shield_charges: int = 0
    shield_break_flash: float = 0.0


__all__ = ["GamePhase", "PlayerState", "SessionState"]
