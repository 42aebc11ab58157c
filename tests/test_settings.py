import json
import logging

from aipu.engine.logger import DEFAULT_CHANNELS, RuntimeLogger, LoggerConfig
from aipu.engine.loop import DriverConfig


def test_logger_config_defaults_when_missing(tmp_path):
    config = LoggerConfig.from_settings(tmp_path / "settings.json")
    assert config.level == logging.INFO
    assert config.channels == DEFAULT_CHANNELS


def test_logger_config_reads_overrides(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"logLevel": "debug", "logChannels": {"systems": True, "upgrades": False}}))
    config = LoggerConfig.from_settings(path)
    assert config.level == logging.DEBUG
    assert config.channels["systems"] is True
    assert config.channels["upgrades"] is False
    assert config.channels["runtime"] is True


def test_logger_config_ignores_malformed_json(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{")
    assert LoggerConfig.from_settings(path).channels == DEFAULT_CHANNELS


def test_disabled_and_unknown_channels_drop_records(caplog):
    logger = RuntimeLogger(LoggerConfig(level=logging.DEBUG, channels={"runtime": True, "render": False}))
    with caplog.at_level(logging.DEBUG, logger="aipu"):
        logger.channel("runtime").info("tick ok")
        logger.channel("render").info("drawn")
        logger.channel("mystery").warning("hidden")
    messages = [record.getMessage() for record in caplog.records]
    assert messages == ["tick ok"]
    assert not logger.channel("mystery").enabled
    logger.set_enabled("mystery", True)
    assert logger.channel("mystery").enabled


def test_driver_config_from_settings(tmp_path):
    path = tmp_path / "settings.json"
    assert DriverConfig.from_settings(path) == DriverConfig()
    path.write_text(json.dumps({"simHz": 30, "maxFrameDt": 0.1, "maxFps": 60}))
    config = DriverConfig.from_settings(path)
    assert config.fixed_step_ms == 1000 / 30
    assert config.max_frame_dt == 0.1
    assert config.max_fps == 60
    path.write_text(json.dumps({"simHz": 0, "maxFrameDt": "soon"}))
    assert DriverConfig.from_settings(path) == DriverConfig()


def test_level_names_are_parsed_and_unknown_falls_back(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"logLevel": "warning"}))
    assert LoggerConfig.from_settings(path).level == logging.WARNING
    path.write_text(json.dumps({"logLevel": "chatty"}))
    assert LoggerConfig.from_settings(path).level == logging.INFO


def test_channel_forwards_each_level(caplog):
    logger = RuntimeLogger(LoggerConfig(level=logging.DEBUG, channels={"systems": True}))
    channel = logger.channel("systems")
    with caplog.at_level(logging.DEBUG, logger="aipu"):
        channel.debug("d %d", 1)
        channel.warning("w")
        channel.error("e")
    assert [(record.name, record.levelno, record.getMessage()) for record in caplog.records] == [
        ("aipu.systems", logging.DEBUG, "d 1"),
        ("aipu.systems", logging.WARNING, "w"),
        ("aipu.systems", logging.ERROR, "e"),
    ]
