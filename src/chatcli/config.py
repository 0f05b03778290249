"""Configuration loader: command-line overrides, YAML file, then environment variables."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

DEFAULT_MODEL_ALIAS = "GPT3.5"
DEFAULT_TIMEOUT = 60.0

# Short names accepted on the command line -> provider model ids.
MODEL_ALIASES: dict[str, str] = {
    "GPT3.5": "gpt-3.5-turbo",
}


class ConfigError(ValueError):
    """Invalid or missing configuration; fatal before any session starts."""


class RenderStyle(str, Enum):
    DARK = "dark"
    LIGHT = "light"
    NOTTY = "notty"


@dataclass(frozen=True)
class ChatConfig:
    api_key: str
    model_alias: str = DEFAULT_MODEL_ALIAS
    base_url: str | None = None
    verify_ssl: bool = True
    style: RenderStyle = RenderStyle.DARK
    plain: bool = False
    timeout: float = DEFAULT_TIMEOUT
    interactive: bool = False

    @property
    def model(self) -> str:
        return MODEL_ALIASES[self.model_alias]


def _get_config_path() -> Path:
    return Path.home() / ".chatcli" / "config.yaml"


def _pick(overrides: dict[str, Any], raw: dict[str, Any], key: str, env_var: str, default: Any = None) -> Any:
    value = overrides.get(key)
    if value is None:
        value = raw.get(key)
    if value is None:
        value = os.environ.get(env_var)
    if value is None or value == "":
        return default
    return value


def _parse_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).lower() not in ("false", "0", "no", "off", "")


def check_model_alias(alias: str) -> None:
    if alias not in MODEL_ALIASES:
        raise ConfigError(f"model {alias} is not supported (supported: {', '.join(MODEL_ALIASES)})")


def _parse_style(value: Any) -> RenderStyle:
    try:
        return RenderStyle(str(value).lower())
    except ValueError:
        allowed = ", ".join(s.value for s in RenderStyle)
        raise ConfigError(f"style {value} is not supported (supported: {allowed})") from None


def _parse_timeout(value: Any) -> float:
    try:
        timeout = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"timeout must be a number of seconds, got {value!r}") from None
    if timeout <= 0:
        raise ConfigError(f"timeout must be positive, got {value!r}")
    return timeout


def load_config(config_path: Path | None = None, overrides: dict[str, Any] | None = None) -> ChatConfig:
    """Build the immutable session configuration.

    Precedence per field: ``overrides`` (command-line flags, ``None`` means
    unset), then the YAML file, then environment variables, then defaults.
    A missing config file is not an error.
    """
    overrides = overrides or {}
    raw: dict[str, Any] = {}
    path = config_path or _get_config_path()

    if path.exists():
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
        if not isinstance(raw, dict):
            raise ConfigError(f"{path} must contain a YAML mapping")
        logger.debug("Loaded configuration from %s", path)

    api_key = _pick(overrides, raw, "api_key", "OPENAI_API_KEY", "")
    if not api_key:
        raise ConfigError(
            "openai API key is not provided, set env $OPENAI_API_KEY$ or use --OPENAI_API_KEY flag "
            f"(or 'api_key' in {path})"
        )

    model_alias = str(_pick(overrides, raw, "model", "CHATCLI_MODEL", DEFAULT_MODEL_ALIAS))
    check_model_alias(model_alias)

    style = _parse_style(_pick(overrides, raw, "style", "CHATCLI_STYLE", RenderStyle.DARK.value))
    timeout = _parse_timeout(_pick(overrides, raw, "timeout", "CHATCLI_TIMEOUT", DEFAULT_TIMEOUT))

    return ChatConfig(
        api_key=str(api_key),
        model_alias=model_alias,
        base_url=_pick(overrides, raw, "base_url", "OPENAI_BASE_URL"),
        verify_ssl=_parse_bool(_pick(overrides, raw, "verify_ssl", "CHATCLI_VERIFY_SSL"), True),
        style=style,
        plain=_parse_bool(_pick(overrides, raw, "plain", "CHATCLI_PLAIN"), False),
        timeout=timeout,
        interactive=bool(overrides.get("interactive", False)),
    )
