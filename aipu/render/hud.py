"""Heads-up display drawing for the run."""
from __future__ import annotations

from typing import List, Optional

import pygame

from aipu.assets.content import FloorData
from aipu.engine.diagnostics import RuntimeDiagnostics
from aipu.progression.upgrades import UpgradeEngine
from aipu.state import GamePhase, PlayerState, SessionState

TOKENS = {
    "yellow": (244, 214, 109),
    "blue": (137, 182, 255),
    "mint": (144, 222, 201),
    "pink": (244, 172, 205),
    "ink": (31, 36, 48),
    "white": (255, 255, 255),
    "fog": (242, 245, 248),
}

DEGRADED_LABEL = "DEGRADED"


def accent_color(name: str) -> tuple[int, int, int]:
    if name in ("yellow", "blue", "mint", "pink"):
        return TOKENS[name]
    return TOKENS["blue"]


def hud_lines(
    session: SessionState,
    player: PlayerState,
    engine: UpgradeEngine,
    floor: Optional[FloorData],
    title: str = "",
) -> List[str]:
    """Text rows shown for the current phase, top to bottom."""

    phase = session.phase
    if phase == GamePhase.TITLE:
        return [title or "Rabbit Hole", "Press Space to start"]

    lines: List[str] = []
    if floor is not None:
        lines.append(floor.title or f"Floor {floor.id}: {floor.name}")
    lines.append(f"HP {player.hearts}/{player.max_hearts}  Shield {player.shield_charges}")

    if phase == GamePhase.UPGRADE_SELECT:
        for index, option in enumerate(session.upgrade_options, start=1):
            stack_text = ""
            if not getattr(option, "stackless", False):
                stack_text = f" [{engine.get_stack(option.id)}/{option.max_stacks}]"
            lines.append(f"{index}. {option.name}{stack_text} - {option.desc}")
        if session.upgrade_notice_timer > 0:
            lines.append("Pick an available upgrade")
    elif phase == GamePhase.FLOOR_INTRO:
        lines.append(floor.subtitle if floor is not None else "")
    elif phase == GamePhase.PLAYING:
        lines.append(f"Time {session.floor_timer:0.1f}s")
    elif phase == GamePhase.FLOOR_CLEAR:
        lines.append("Floor clear")
    elif phase == GamePhase.GAME_OVER:
        lines.append("Run ended. Press R to restart")
    elif phase == GamePhase.VICTORY:
        lines.append("You caught the loop. Press R to restart")

    lines.append("Upgrades:")
    lines.extend(f"  {row}" for row in engine.get_upgrade_hud_rows())
    return lines


class HudRenderer:
    """Draws the HUD onto the display surface; ``draw`` is the render pass."""

    def __init__(
        self,
        session: SessionState,
        player: PlayerState,
        engine: UpgradeEngine,
        floors: List[FloorData],
        title: str = "",
        diagnostics: Optional[RuntimeDiagnostics] = None,
    ) -> None:
        self.session = session
        self.player = player
        self.engine = engine
        self.floors = floors
        self.title = title
        self.diagnostics = diagnostics
        self.font = pygame.font.SysFont("consolas", 20)
        self.large_font = pygame.font.SysFont("consolas", 32)

    def _current_floor(self) -> Optional[FloorData]:
        index = self.session.current_floor_index
        if 0 <= index < len(self.floors):
            return self.floors[index]
        return None

    def draw(self) -> None:
        surface = pygame.display.get_surface()
        if surface is None:
            return
        floor = self._current_floor()
        surface.fill(TOKENS["ink"])
        accent = accent_color(floor.accent if floor is not None else "pink")

        lines = hud_lines(self.session, self.player, self.engine, floor, self.title)
        y = 32
        for index, line in enumerate(lines):
            font = self.large_font if index == 0 else self.font
            color = accent if index == 0 else TOKENS["fog"]
            text = font.render(line, True, color)
            surface.blit(text, (32, y))
            y += text.get_height() + 8

        self._draw_badge(surface)
        pygame.display.flip()

    def _draw_badge(self, surface: pygame.Surface) -> bool:
        if self.diagnostics is None:
            return False
        snapshot = self.diagnostics.snapshot()
        if snapshot.ok:
            return False
        badge = self.font.render(
            f"{DEGRADED_LABEL} {snapshot.phase} x{snapshot.consecutive_errors}",
            True,
            TOKENS["pink"],
        )
        width = surface.get_width()
        surface.fill(TOKENS["ink"], pygame.Rect(width // 2, 20, width // 2, badge.get_height() + 8))
        surface.blit(badge, (width - badge.get_width() - 24, 24))
        return True

    def present_status(self) -> None:
        """Overlay the degraded badge on the last frame while ticks keep failing."""

        surface = pygame.display.get_surface()
        if surface is None:
            return
        if self._draw_badge(surface):
            pygame.display.flip()


__all__ = ["HudRenderer", "TOKENS", "accent_color", "hud_lines"]
