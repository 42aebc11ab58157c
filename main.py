"""Entry point for the rabbit-hole arcade run."""
from __future__ import annotations

from pathlib import Path

import pygame

from aipu.assets.content import ContentManager
from aipu.engine.diagnostics import runtime_diagnostics
from aipu.engine.logger import init_logger
from aipu.engine.loop import DriverConfig, SimulationDriver
from aipu.progression.upgrades import UpgradeEngine
from aipu.render.hud import HudRenderer
from aipu.state import GamePhase, PlayerState, SessionState
from aipu.systems.run import RunSystems

SETTINGS_PATH = Path("settings.json")
WINDOW_SIZE = (1280, 720)

PICK_KEYS = {pygame.K_1: 0, pygame.K_2: 1, pygame.K_3: 2}


def main() -> None:
    config = DriverConfig.from_settings(SETTINGS_PATH)
    logger = init_logger(SETTINGS_PATH)

    pygame.init()
    pygame.display.set_mode(WINDOW_SIZE)
    clock = pygame.time.Clock()

    content = ContentManager()
    content.load()
    pygame.display.set_caption(content.narrative.game_title or "Rabbit Hole")

    session = SessionState()
    player = PlayerState()
    engine = UpgradeEngine(session, player, content.upgrades, logger=logger.channel("upgrades"))
    systems = RunSystems(session, player, engine, content.floors, logger=logger.channel("systems"))
    diagnostics = runtime_diagnostics()
    hud = HudRenderer(
        session,
        player,
        engine,
        content.floors,
        title=content.narrative.game_title,
        diagnostics=diagnostics,
    )
    systems.to_title()

    def pace() -> None:
        hud.present_status()
        clock.tick(config.max_fps)

    def process_events() -> None:
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                driver.stop()
                return
            if event.type != pygame.KEYDOWN:
                continue
            if event.key == pygame.K_ESCAPE:
                driver.stop()
                return
            if session.phase == GamePhase.TITLE and event.key in (pygame.K_SPACE, pygame.K_RETURN):
                systems.start_run()
            elif session.phase == GamePhase.UPGRADE_SELECT and event.key in PICK_KEYS:
                systems.confirm_upgrade_selection(PICK_KEYS[event.key])
            elif event.key == pygame.K_r and session.phase in (GamePhase.GAME_OVER, GamePhase.VICTORY):
                systems.request_restart()

    driver = SimulationDriver(
        systems.update,
        hud.draw,
        config=config,
        diagnostics=diagnostics,
        logger=logger.channel("runtime"),
        process_events=process_events,
        pace=pace,
    )

    try:
        driver.run()
    finally:
        pygame.quit()
        print("\nUsage: Space to start, 1-3 to pick an upgrade, R to restart, Esc to quit.")


if __name__ == "__main__":
    main()
