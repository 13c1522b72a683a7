"""
Configuration loading and logging setup.
"""

import logging

import pytest

from keel import ConfigError, ConfigLoader, Container, ContainerConfig, configure_logging


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    import os
    for key in list(os.environ):
        if key.startswith("KEEL_"):
            monkeypatch.delenv(key)


class TestContainerConfig:

    def test_defaults(self):
        config = ContainerConfig()
        assert config.to_dict() == {
            "start_hook": "start",
            "stop_hook": "stop",
            "detect_cycles": True,
            "log_level": "WARNING",
        }

    def test_container_uses_default_config(self):
        assert Container().config == ContainerConfig()


class TestConfigLoader:

    def test_load_defaults(self):
        assert ConfigLoader.load() == ContainerConfig()

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "keel.yaml"
        path.write_text("start_hook: open\ndetect_cycles: false\n")

        config = ConfigLoader.load(path)
        assert config.start_hook == "open"
        assert config.detect_cycles is False
        assert config.stop_hook == "stop"

    def test_yaml_section(self, tmp_path):
        path = tmp_path / "app.yaml"
        path.write_text("keel:\n  stop_hook: close\n")
        assert ConfigLoader.load(path).stop_hook == "close"

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / "keel.yaml"
        path.write_text("")
        assert ConfigLoader.load(path) == ContainerConfig()

    def test_missing_yaml_fails(self, tmp_path):
        with pytest.raises(ConfigError):
            ConfigLoader.load(tmp_path / "nope.yaml")

    def test_invalid_yaml_fails(self, tmp_path):
        path = tmp_path / "keel.yaml"
        path.write_text("start_hook: [unclosed\n")
        with pytest.raises(ConfigError):
            ConfigLoader.load(path)

    def test_non_mapping_yaml_fails(self, tmp_path):
        path = tmp_path / "keel.yaml"
        path.write_text("- start\n- stop\n")
        with pytest.raises(ConfigError):
            ConfigLoader.load(path)

    def test_env_file(self, tmp_path):
        env = tmp_path / ".env"
        env.write_text("KEEL_DETECT_CYCLES=false\nOTHER=1\n")

        config = ConfigLoader.load(env_file=env)
        assert config.detect_cycles is False

    def test_missing_env_file_is_ignored(self, tmp_path):
        assert ConfigLoader.load(env_file=tmp_path / ".env") == ContainerConfig()

    def test_environment_overrides_files(self, tmp_path, monkeypatch):
        path = tmp_path / "keel.yaml"
        path.write_text("log_level: INFO\n")
        env = tmp_path / ".env"
        env.write_text("KEEL_LOG_LEVEL=ERROR\n")

        assert ConfigLoader.load(path, env_file=env).log_level == "ERROR"

        monkeypatch.setenv("KEEL_LOG_LEVEL", "DEBUG")
        assert ConfigLoader.load(path, env_file=env).log_level == "DEBUG"

    def test_overrides_win(self, monkeypatch):
        monkeypatch.setenv("KEEL_START_HOOK", "boot")
        config = ConfigLoader.load(overrides={"start_hook": "run"})
        assert config.start_hook == "run"

    def test_unrelated_environment_variables_ignored(self, monkeypatch):
        monkeypatch.setenv("KEEL_HOME", "/opt/keel")
        monkeypatch.setenv("KEEL_STOP_HOOK", "halt")

        config = ConfigLoader.load()
        assert config.stop_hook == "halt"

    def test_unrelated_env_file_keys_ignored(self, tmp_path):
        env = tmp_path / ".env"
        env.write_text("KEEL_HOME=/opt/keel\nKEEL_LOG_LEVEL=INFO\n")
        assert ConfigLoader.load(env_file=env).log_level == "INFO"

    def test_unknown_yaml_key_fails(self, tmp_path):
        path = tmp_path / "keel.yaml"
        path.write_text("home: /opt/keel\n")
        with pytest.raises(ConfigError, match="Unknown config keys: home"):
            ConfigLoader.load(path)

    def test_custom_prefix(self, monkeypatch):
        monkeypatch.setenv("APP_STOP_HOOK", "halt")
        assert ConfigLoader.load(env_prefix="APP_").stop_hook == "halt"

    def test_unknown_key_fails(self):
        with pytest.raises(ConfigError, match="Unknown config keys: colour"):
            ConfigLoader.load(overrides={"colour": "red"})

    def test_wrong_type_fails(self):
        with pytest.raises(ConfigError, match="detect_cycles"):
            ConfigLoader.load(overrides={"detect_cycles": "sometimes"})

    def test_parse_value(self):
        assert ConfigLoader._parse_value("yes") is True
        assert ConfigLoader._parse_value("0") is False
        assert ConfigLoader._parse_value("42") == 42
        assert ConfigLoader._parse_value("open") == "open"


class TestConfigureLogging:

    def test_sets_level(self):
        logger = logging.getLogger("keel")
        previous = logger.level, list(logger.handlers)
        try:
            configure_logging("info")
            assert logger.level == logging.INFO
            assert logger.handlers
        finally:
            logger.setLevel(previous[0])
            logger.handlers[:] = previous[1]

    def test_unknown_level(self):
        with pytest.raises(ConfigError, match="Unknown log level: LOUD"):
            configure_logging("LOUD")
