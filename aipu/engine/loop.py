"""Fault-contained simulation driver with a deterministic manual-step path."""
from __future__ import annotations

import math
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

from aipu.engine.diagnostics import RuntimeDiagnostics, RuntimeSnapshot, runtime_diagnostics
from aipu.engine.logger import ChannelLogger, read_settings

UPDATE_PHASE = "systems.update"
RENDER_PHASE = "render.draw"
MANUAL_SUFFIX = " (manual)"


@dataclass
class DriverConfig:
    """Timing configuration for the driver and its host loop."""

    sim_hz: float = 60.0
    max_frame_dt: float = 0.25
    max_fps: int = 120

    @classmethod
    def from_settings(cls, settings_path: Path) -> "DriverConfig":
        data = read_settings(settings_path)
        defaults = cls()
        try:
            sim_hz = float(data.get("simHz", defaults.sim_hz))
            max_frame_dt = float(data.get("maxFrameDt", defaults.max_frame_dt))
            max_fps = int(data.get("maxFps", defaults.max_fps))
        except (TypeError, ValueError):
            return defaults
        if not math.isfinite(sim_hz) or sim_hz <= 0:
            sim_hz = defaults.sim_hz
        if not math.isfinite(max_frame_dt) or max_frame_dt <= 0:
            max_frame_dt = defaults.max_frame_dt
        return cls(sim_hz=sim_hz, max_frame_dt=max_frame_dt, max_fps=max_fps)

    @property
    def fixed_dt(self) -> float:
        return 1.0 / self.sim_hz

    @property
    def fixed_step_ms(self) -> float:
        return 1000.0 / self.sim_hz


def _finite_or_zero(value: float) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(value) or value < 0:
        return 0.0
    return value


class SimulationDriver:
    """Runs update-then-render ticks and contains collaborator faults.

    Passive mode is driven by :meth:`frame`, called once per display refresh.
    :meth:`advance_time` runs an exact number of fixed steps for reproducible
    tests and suspends the passive path while it runs.
    """

    def __init__(
        self,
        update: Callable[[float], None],
        render: Callable[[], None],
        config: Optional[DriverConfig] = None,
        diagnostics: Optional[RuntimeDiagnostics] = None,
        clock: Callable[[], float] = time.perf_counter,
        logger: ChannelLogger | None = None,
        process_events: Optional[Callable[[], None]] = None,
        pace: Optional[Callable[[], None]] = None,
    ) -> None:
        self.update = update
        self.render = render
        self.config = config or DriverConfig()
        self.diagnostics = diagnostics if diagnostics is not None else runtime_diagnostics()
        self.process_events = process_events
        self.pace = pace
        self._clock = clock
        self._logger = logger
        self._last_timestamp = clock()
        self._manual_stepping = False
        self._running = False

    @property
    def manual_stepping(self) -> bool:
        return self._manual_stepping

    def snapshot(self) -> RuntimeSnapshot:
        return self.diagnostics.snapshot()

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------
    def record_frame_error(
        self, phase: str, error: Exception, context: Optional[Mapping[str, Any]] = None
    ) -> RuntimeSnapshot:
        snapshot = self.diagnostics.record_frame_error(phase, error, context)
        if self._logger:
            if snapshot.consecutive_errors == 1:
                self._logger.error("Frame failed in %s: %s: %s", phase, type(error).__name__, error)
            else:
                self._logger.debug(
                    "Frame failed in %s (%d consecutive)", phase, snapshot.consecutive_errors
                )
        return snapshot

    def clear_frame_error(self) -> RuntimeSnapshot:
        recovering = not self.diagnostics.ok
        snapshot = self.diagnostics.clear_frame_error()
        if recovering and self._logger:
            self._logger.info("Frame recovered after error (total errors %d)", snapshot.total_errors)
        return snapshot

    # ------------------------------------------------------------------
    # Ticks
    # ------------------------------------------------------------------
    def run_tick(self, dt: float) -> bool:
        """Run one update/render pair, returning ``True`` when both succeed."""

        try:
            self.update(dt)
        except Exception as exc:
            self.record_frame_error(UPDATE_PHASE, exc, {"dt": dt})
            return False
        try:
            self.render()
        except Exception as exc:
            self.record_frame_error(RENDER_PHASE, exc, {})
            return False
        self.clear_frame_error()
        return True

    def frame(self, now: Optional[float] = None) -> bool:
        """Passive per-refresh callback; a no-op while manual stepping runs."""

        if self._manual_stepping:
            return False
        if now is None:
            now = self._clock()
        dt = _finite_or_zero(now - self._last_timestamp)
        self._last_timestamp = now
        self.run_tick(min(dt, self.config.max_frame_dt))
        return True

    def advance_time(self, ms: float) -> int:
        """Advance by ``ms`` milliseconds in fixed steps and render once.

        Returns the number of update steps executed, or ``0`` when ``ms`` is
        zero and a single zero-length tick ran instead.
        """

        ms = _finite_or_zero(ms)
        was_stepping = self._manual_stepping
        self._manual_stepping = True
        try:
            if ms == 0:
                self.run_tick(0.0)
                return 0
            return self._run_manual_steps(ms)
        finally:
            self._manual_stepping = was_stepping
            self._last_timestamp = self._clock()

    def _run_manual_steps(self, ms: float) -> int:
        step_count = max(1, math.floor(ms / self.config.fixed_step_ms + 0.5))
        fixed_dt = self.config.fixed_dt
        failed = False
        executed = 0
        for step in range(1, step_count + 1):
            executed = step
            try:
                self.update(fixed_dt)
            except Exception as exc:
                self.record_frame_error(
                    UPDATE_PHASE + MANUAL_SUFFIX,
                    exc,
                    {"dt": fixed_dt, "step": step, "stepCount": step_count},
                )
                failed = True
                break
        try:
            self.render()
        except Exception as exc:
            self.record_frame_error(RENDER_PHASE + MANUAL_SUFFIX, exc, {"stepCount": step_count})
            failed = True
        if not failed:
            self.clear_frame_error()
        return executed

    # ------------------------------------------------------------------
    # Host loop
    # ------------------------------------------------------------------
    def stop(self) -> None:
        self._running = False

    def run(self) -> None:
        self._running = True
        self._last_timestamp = self._clock()
        while self._running:
            if self.process_events is not None:
                self.process_events()
                if not self._running:
                    break
            self.frame()
            # Runs whether or not the tick rendered.
            if self.pace is not None:
                self.pace()


__all__ = [
    "DriverConfig",
    "MANUAL_SUFFIX",
    "RENDER_PHASE",
    "SimulationDriver",
    "UPDATE_PHASE",
]
