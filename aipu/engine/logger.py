"""Channel-gated logging for the runtime."""
from __future__ import annotations

import json
import logging
import sys
from dataclasses import dataclass, field
from functools import partialmethod
from pathlib import Path
from typing import Any, Dict, Optional

DEFAULT_CHANNELS = {
    "runtime": True,
    "upgrades": True,
    "systems": False,
    "render": False,
}

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOGGER_NAMESPACE = "aipu"


def read_settings(settings_path: Path) -> Dict[str, Any]:
    """Return the settings object, or an empty dict when missing or malformed."""

    if not settings_path.exists():
        return {}
    try:
        data = json.loads(settings_path.read_text())
    except json.JSONDecodeError:
        return {}
    return data if isinstance(data, dict) else {}


def _parse_level(value: Any) -> int:
    level = logging.getLevelName(str(value).upper())
    return level if isinstance(level, int) else logging.INFO


@dataclass
class LoggerConfig:
    """Level and per-channel toggles, read from settings.json."""

    level: int = logging.INFO
    channels: Dict[str, bool] = field(default_factory=lambda: DEFAULT_CHANNELS.copy())

    @classmethod
    def from_settings(cls, settings_path: Path) -> "LoggerConfig":
        data = read_settings(settings_path)
        channels = DEFAULT_CHANNELS.copy()
        overrides = data.get("logChannels")
        if isinstance(overrides, dict):
            channels.update({name: bool(enabled) for name, enabled in overrides.items()})
        return cls(level=_parse_level(data.get("logLevel", "INFO")), channels=channels)


class ChannelLogger:
    """Forwards records to ``aipu.<channel>`` only while the channel is on."""

    def __init__(self, logger: logging.Logger, enabled: bool) -> None:
        self._logger = logger
        self.enabled = enabled

    def log(self, level: int, msg: str, *args, **kwargs) -> None:
        if self.enabled:
            self._logger.log(level, msg, *args, **kwargs)

    debug = partialmethod(log, logging.DEBUG)
    info = partialmethod(log, logging.INFO)
    warning = partialmethod(log, logging.WARNING)
    error = partialmethod(log, logging.ERROR)


class RuntimeLogger:
    """Registry of channel loggers; unknown channels start disabled."""

    def __init__(self, config: LoggerConfig) -> None:
        logging.basicConfig(level=config.level, format=LOG_FORMAT, stream=sys.stdout)
        logging.getLogger(LOGGER_NAMESPACE).setLevel(config.level)
        self._channels: Dict[str, ChannelLogger] = {}
        for name, enabled in config.channels.items():
            self._channels[name] = self._make_channel(name, enabled)

    @staticmethod
    def _make_channel(name: str, enabled: bool) -> ChannelLogger:
        return ChannelLogger(logging.getLogger(f"{LOGGER_NAMESPACE}.{name}"), enabled)

    def channel(self, name: str) -> ChannelLogger:
        if name not in self._channels:
            self._channels[name] = self._make_channel(name, False)
        return self._channels[name]

    def set_enabled(self, name: str, enabled: bool) -> None:
        self.channel(name).enabled = enabled


def init_logger(settings_path: Optional[Path] = None) -> RuntimeLogger:
    return RuntimeLogger(LoggerConfig.from_settings(settings_path or Path("settings.json")))


__all__ = [
    "ChannelLogger",
    "DEFAULT_CHANNELS",
    "LoggerConfig",
    "RuntimeLogger",
    "init_logger",
    "read_settings",
]
