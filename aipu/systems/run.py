"""Run and floor flow: the update collaborator driven by the simulation."""
from __future__ import annotations

from typing import List, Optional, Sequence

from aipu.assets.content import FloorData
from aipu.constants import (
    BASE_MAX_HP,
    FLOOR_CLEAR_SECONDS,
    FLOOR_INTRO_SECONDS,
    MAX_ACCUMULATED_TIME,
    SHIELD_BREAK_FLASH,
    SIM_STEP,
    UPGRADE_CONFIRM_COOLDOWN,
    UPGRADE_NOTICE_SECONDS,
    clamp,
)
from aipu.engine.logger import ChannelLogger
from aipu.progression.upgrades import ChoiceResult, UpgradeEngine
from aipu.state import GamePhase, PlayerState, SessionState

DAMAGEABLE_PHASES = frozenset({GamePhase.FLOOR_INTRO, GamePhase.PLAYING})

UPGRADE_OFFER_COUNT = 3


class RunSystems:
    """Advances floors on a fixed step and consults progression for stats."""

    def __init__(
        self,
        session: SessionState,
        player: PlayerState,
        engine: UpgradeEngine,
        floors: Sequence[FloorData],
        logger: ChannelLogger | None = None,
    ) -> None:
        self.session = session
        self.player = player
        self.engine = engine
        self.floors: List[FloorData] = list(floors)
        self._logger = logger
        self._accumulator = 0.0

    def current_floor(self) -> Optional[FloorData]:
        index = self.session.current_floor_index
        if 0 <= index < len(self.floors):
            return self.floors[index]
        return None

    # ------------------------------------------------------------------
    # Run flow
    # ------------------------------------------------------------------
    def to_title(self) -> None:
        session = self.session
        session.phase = GamePhase.TITLE
        session.current_floor_index = 0
        session.floor_duration = 0.0
        session.floor_elapsed = 0.0
        session.floor_timer = 0.0
        session.intro_timer = 0.0
        session.clear_timer = 0.0
        session.upgrade_options = []
        session.upgrade_selected_index = 0
        session.upgrade_confirm_cooldown = 0.0
        session.upgrade_notice_timer = 0.0
        session.floor_lesson_upgrade_id = ""
        session.floor_fallback_invuln_bonus = 0.0
        self._accumulator = 0.0
        self.engine.reset_upgrade_run()
        player = self.player
        player.max_hearts = BASE_MAX_HP
        player.hearts = BASE_MAX_HP
        player.shield_charges = 0
        player.shield_break_flash = 0.0
        player.invuln = 0.0
        player.fire_cooldown = 0.0

    def request_restart(self) -> None:
        self.to_title()

    def start_run(self) -> bool:
        if not self.floors:
            if self._logger:
                self._logger.warning("No floors loaded; staying on the title screen")
            return False
        self.engine.reset_upgrade_run()
        self.start_floor(0)
        return True

    def start_floor(self, index: int) -> None:
        session = self.session
        session.current_floor_index = index
        self._accumulator = 0.0
        session.floor_duration = 0.0
        session.floor_elapsed = 0.0
        session.floor_timer = 0.0
        session.intro_timer = 0.0
        session.clear_timer = 0.0
        session.upgrade_options = self.engine.roll_upgrade_options(UPGRADE_OFFER_COUNT)
        session.upgrade_selected_index = 0
        session.upgrade_confirm_cooldown = 0.0
        session.upgrade_notice_timer = 0.0
        session.floor_lesson_upgrade_id = ""
        session.floor_fallback_invuln_bonus = 0.0
        self.engine.invalidate_derived_stats()
        self.engine.sync_player_max_hp(heal_to_full=False)
        self.player.invuln = 0.0
        self.player.fire_cooldown = 0.0
        self.player.shield_break_flash = 0.0
        session.phase = GamePhase.UPGRADE_SELECT
        if self._logger:
            self._logger.debug(
                "Floor %d offers: %s",
                session.floor_number,
                ", ".join(option.id for option in session.upgrade_options),
            )

    def confirm_upgrade_selection(self, index: int) -> Optional[ChoiceResult]:
        session = self.session
        if session.phase != GamePhase.UPGRADE_SELECT:
            return None
        if session.upgrade_confirm_cooldown > 0 or self.current_floor() is None:
            return None

        if not 0 <= index < len(session.upgrade_options):
            session.upgrade_notice_timer = UPGRADE_NOTICE_SECONDS
            return None

        option = session.upgrade_options[index]
        session.upgrade_selected_index = index
        result = self.engine.apply_upgrade_choice(option)
        if result is None:
            session.upgrade_notice_timer = UPGRADE_NOTICE_SECONDS
            return None

        session.upgrade_confirm_cooldown = UPGRADE_CONFIRM_COOLDOWN
        session.upgrade_notice_timer = 0.0
        session.floor_lesson_upgrade_id = getattr(option, "fallback_base_id", None) or option.id
        self.begin_current_floor()
        return result

    def begin_current_floor(self) -> None:
        floor = self.current_floor()
        if floor is None:
            return
        session = self.session
        session.floor_duration = floor.duration_seconds
        session.floor_timer = floor.duration_seconds
        session.floor_elapsed = 0.0
        session.intro_timer = FLOOR_INTRO_SECONDS
        session.clear_timer = 0.0
        session.phase = GamePhase.FLOOR_INTRO

        engine = self.engine
        player = self.player
        engine.invalidate_derived_stats()
        engine.sync_player_max_hp(heal_to_full=False)
        player.hearts = int(clamp(player.hearts + 1, 0, player.max_hearts))
        player.shield_charges = engine.get_shield_charges_per_floor()
        player.shield_break_flash = 0.0
        player.invuln = 0.0
        player.fire_cooldown = 0.0

    # ------------------------------------------------------------------
    # Simulation
    # ------------------------------------------------------------------
    def update(self, dt: float) -> None:
        frame_dt = clamp(dt, 0.0, MAX_ACCUMULATED_TIME)
        self._accumulator = min(self._accumulator + frame_dt, MAX_ACCUMULATED_TIME)
        while self._accumulator >= SIM_STEP:
            # Consume before stepping; a floor transition resets the accumulator.
            self._accumulator -= SIM_STEP
            self.step(SIM_STEP)

    def step(self, dt: float) -> None:
        session = self.session
        player = self.player
        session.global_time += dt
        player.invuln = max(0.0, player.invuln - dt)
        player.fire_cooldown = max(0.0, player.fire_cooldown - dt)
        player.shield_break_flash = max(0.0, player.shield_break_flash - dt)
        session.upgrade_confirm_cooldown = max(0.0, session.upgrade_confirm_cooldown - dt)
        session.upgrade_notice_timer = max(0.0, session.upgrade_notice_timer - dt)

        if session.phase == GamePhase.FLOOR_INTRO:
            session.intro_timer -= dt
            if session.intro_timer <= 0:
                session.phase = GamePhase.PLAYING
            return

        if session.phase == GamePhase.PLAYING:
            session.floor_elapsed += dt
            session.floor_timer = max(0.0, session.floor_duration - session.floor_elapsed)
            if session.floor_timer <= 0:
                session.phase = GamePhase.FLOOR_CLEAR
                session.clear_timer = FLOOR_CLEAR_SECONDS
            return

        if session.phase == GamePhase.FLOOR_CLEAR:
            session.clear_timer -= dt
            if session.clear_timer <= 0:
                if session.current_floor_index < len(self.floors) - 1:
                    self.start_floor(session.current_floor_index + 1)
                else:
                    session.phase = GamePhase.VICTORY
                    if self._logger:
                        self._logger.info("Run complete after %d floors", len(self.floors))

    def apply_player_damage(self, amount: int = 1) -> bool:
        """Apply a hit to the player; returns ``True`` when it landed."""

        session = self.session
        player = self.player
        if player.invuln > 0 or session.phase not in DAMAGEABLE_PHASES:
            return False

        invuln_duration = self.engine.get_invuln_duration()
        if player.shield_charges > 0:
            player.shield_charges -= 1
            player.shield_break_flash = SHIELD_BREAK_FLASH
            player.invuln = invuln_duration
            return True

        player.hearts = int(clamp(player.hearts - amount, 0, player.max_hearts))
        if player.hearts <= 0:
            session.phase = GamePhase.GAME_OVER
            if self._logger:
                self._logger.info("Run ended on floor %d", session.floor_number)
            return True
        player.invuln = invuln_duration
        return True


__all__ = ["RunSystems", "UPGRADE_OFFER_COUNT"]
