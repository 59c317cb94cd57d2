"""Load ``ToolRelayConfig`` from layered TOML files.

Layers, lowest priority first: model defaults, the user file
(``$XDG_CONFIG_HOME/toolrelay/config.toml``), ``./toolrelay.toml``, the
file named by ``$TOOLRELAY_CONFIG``, an explicit path, then programmatic
overrides. Tables merge key by key, so a project file can change one
per-tool override without restating the rest of the ``[tools]`` table.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from toolrelay.core.errors import ConfigError

from .schema import ToolRelayConfig

ENV_VAR = "TOOLRELAY_CONFIG"
PROJECT_FILE = "toolrelay.toml"


def user_config_path() -> Path:
    config_home = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(config_home) / "toolrelay" / "config.toml"


def config_layers(path: str | Path | None = None) -> list[Path]:
    """Existing config files in merge order.

    Optional layers are skipped when absent. A file that was asked for
    explicitly (via ``$TOOLRELAY_CONFIG`` or ``path``) must exist.
    """
    layers = [p for p in (user_config_path(), Path.cwd() / PROJECT_FILE) if p.is_file()]

    env_value = os.environ.get(ENV_VAR)
    if env_value:
        env_path = Path(env_value)
        if not env_path.is_file():
            msg = f"{ENV_VAR} points to non-existent file: {env_value}"
            raise ConfigError(msg)
        layers.append(env_path)

    if path is not None:
        explicit = Path(path)
        if not explicit.is_file():
            msg = f"Config file not found: {path}"
            raise ConfigError(msg)
        layers.append(explicit)

    return layers


def _parse(path: Path) -> dict[str, Any]:
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        msg = f"Invalid TOML in {path}: {e}"
        raise ConfigError(msg) from e
    except (OSError, UnicodeDecodeError) as e:
        msg = f"Cannot read config file {path}: {e}"
        raise ConfigError(msg) from e


def merge_tables(lower: dict[str, Any], upper: dict[str, Any]) -> dict[str, Any]:
    """Overlay ``upper`` on ``lower``; nested tables merge, scalars replace.

    Neither input is modified.
    """
    out = dict(lower)
    for key, value in upper.items():
        below = out.get(key)
        out[key] = (
            merge_tables(below, value)
            if isinstance(below, dict) and isinstance(value, dict)
            else value
        )
    return out


def load_config(
    path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> ToolRelayConfig:
    """Build the effective configuration.

    Raises:
        ConfigError: a requested file is missing, a file is not valid TOML,
            or the merged document fails validation.
    """
    data: dict[str, Any] = {}
    for layer in config_layers(path):
        data = merge_tables(data, _parse(layer))
    if overrides:
        data = merge_tables(data, overrides)

    try:
        return ToolRelayConfig.model_validate(data)
    except ValidationError as e:
        msg = f"Configuration validation failed: {e}"
        raise ConfigError(msg) from e
