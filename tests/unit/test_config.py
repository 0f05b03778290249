"""Tests for configuration loading."""

from __future__ import annotations

import dataclasses
from pathlib import Path

import pytest
import yaml

from chatcli.config import ChatConfig, ConfigError, RenderStyle, load_config

_ENV_VARS = (
    "OPENAI_API_KEY",
    "OPENAI_BASE_URL",
    "CHATCLI_MODEL",
    "CHATCLI_STYLE",
    "CHATCLI_PLAIN",
    "CHATCLI_TIMEOUT",
    "CHATCLI_VERIFY_SSL",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def _write_config(path: Path, data: dict) -> Path:
    config_file = path / "config.yaml"
    config_file.write_text(yaml.dump(data))
    return config_file


class TestLoadConfig:
    def test_load_valid_config(self, tmp_path: Path) -> None:
        cfg_file = _write_config(
            tmp_path,
            {
                "api_key": "sk-test-key",
                "model": "GPT3.5",
                "base_url": "https://api.example.com/v1",
                "style": "light",
                "plain": True,
                "timeout": 15,
                "verify_ssl": False,
            },
        )
        config = load_config(cfg_file)
        assert isinstance(config, ChatConfig)
        assert config.api_key == "sk-test-key"
        assert config.model_alias == "GPT3.5"
        assert config.model == "gpt-3.5-turbo"
        assert config.base_url == "https://api.example.com/v1"
        assert config.style is RenderStyle.LIGHT
        assert config.plain is True
        assert config.timeout == 15.0
        assert config.verify_ssl is False

    def test_missing_file_uses_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        config = load_config(tmp_path / "missing.yaml")
        assert config.api_key == "sk-env"

    def test_defaults(self, tmp_path: Path) -> None:
        config = load_config(tmp_path / "missing.yaml", overrides={"api_key": "sk"})
        assert config.model_alias == "GPT3.5"
        assert config.style is RenderStyle.DARK
        assert config.plain is False
        assert config.timeout == 60.0
        assert config.verify_ssl is True
        assert config.base_url is None
        assert config.interactive is False

    def test_raises_when_api_key_missing(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="OPENAI_API_KEY"):
            load_config(tmp_path / "missing.yaml")

    def test_config_error_is_value_error(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError):
            load_config(tmp_path / "missing.yaml")

    def test_unsupported_model(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="model GPT5 is not supported"):
            load_config(tmp_path / "missing.yaml", overrides={"api_key": "sk", "model": "GPT5"})

    def test_unsupported_style(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="style neon is not supported"):
            load_config(tmp_path / "missing.yaml", overrides={"api_key": "sk", "style": "neon"})

    @pytest.mark.parametrize("value", [0, -5, "soon"])
    def test_invalid_timeout(self, tmp_path: Path, value: object) -> None:
        with pytest.raises(ConfigError, match="timeout"):
            load_config(tmp_path / "missing.yaml", overrides={"api_key": "sk", "timeout": value})

    def test_non_mapping_file(self, tmp_path: Path) -> None:
        cfg_file = tmp_path / "config.yaml"
        cfg_file.write_text("- just\n- a list\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(cfg_file, overrides={"api_key": "sk"})

    def test_config_is_frozen(self, tmp_path: Path) -> None:
        config = load_config(tmp_path / "missing.yaml", overrides={"api_key": "sk"})
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.timeout = 5  # type: ignore[misc]


class TestPrecedence:
    def test_flag_beats_file_and_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CHATCLI_TIMEOUT", "30")
        cfg_file = _write_config(tmp_path, {"api_key": "sk", "timeout": 20})
        config = load_config(cfg_file, overrides={"timeout": 10.0})
        assert config.timeout == 10.0

    def test_file_beats_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        cfg_file = _write_config(tmp_path, {"api_key": "sk-file"})
        assert load_config(cfg_file).api_key == "sk-file"

    def test_none_override_is_ignored(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        config = load_config(tmp_path / "missing.yaml", overrides={"api_key": None, "plain": None})
        assert config.api_key == "sk-env"
        assert config.plain is False

    def test_env_values(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        monkeypatch.setenv("CHATCLI_STYLE", "NOTTY")
        monkeypatch.setenv("CHATCLI_PLAIN", "yes")
        monkeypatch.setenv("CHATCLI_VERIFY_SSL", "false")
        monkeypatch.setenv("CHATCLI_TIMEOUT", "2.5")
        config = load_config(tmp_path / "missing.yaml")
        assert config.style is RenderStyle.NOTTY
        assert config.plain is True
        assert config.verify_ssl is False
        assert config.timeout == 2.5

    def test_interactive_only_from_flag(self, tmp_path: Path) -> None:
        cfg_file = _write_config(tmp_path, {"api_key": "sk", "interactive": True})
        assert load_config(cfg_file).interactive is False
        assert load_config(cfg_file, overrides={"interactive": True}).interactive is True
