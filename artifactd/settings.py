from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

from .artifact.types import ArtifactLayout

ENV_PREFIX = "ARTIFACTD_"
CONFIG_SECTION = "artifactd"


def _env(key: str, default: str | None = None) -> str | None:
    """
    Read an env var.

    Empty strings are treated as "unset" so an exported-but-blank variable
    does not wipe a configured value.
    """
    v = os.environ.get(key)
    if v is not None and str(v).strip() != "":
        return v
    return default


def _parse_bool(v: Any, default: bool) -> bool:
    if v is None:
        return default
    if isinstance(v, bool):
        return v
    s = str(v).strip().lower()
    if s in {"1", "true", "yes", "y", "on"}:
        return True
    if s in {"0", "false", "no", "n", "off"}:
        return False
    raise ValueError(f"invalid boolean value {v!r}")


def _parse_float(v: Any, default: float) -> float:
    if v is None:
        return default
    try:
        value = float(str(v).strip())
    except ValueError as e:
        raise ValueError(f"invalid number {v!r}") from e
    if value <= 0:
        raise ValueError(f"expected a positive number, got {v!r}")
    return value


@dataclass(frozen=True)
class Settings:
    rulesfile_dir: str = "/etc/falco/rules.d"
    config_dir: str = "/etc/falco/config.d"
    plugin_dir: str = "/usr/share/falco/plugins"
    namespace: str = "default"
    object_store_root: str = "/var/lib/artifactd/objects"
    secret_store_root: str = "/var/lib/artifactd/secrets"
    log_level: str = "INFO"
    log_json: bool = False
    plain_http: bool = False
    pull_timeout_s: float = 60.0
    resync_interval_s: float = 30.0

    def layout(self) -> ArtifactLayout:
        return ArtifactLayout(
            rulesfile_dir=self.rulesfile_dir,
            config_dir=self.config_dir,
            plugin_dir=self.plugin_dir,
        )


_BOOL_FIELDS = {"log_json", "plain_http"}
_FLOAT_FIELDS = {"pull_timeout_s", "resync_interval_s"}


def _coerce(name: str, value: Any, default: Any) -> Any:
    if name in _BOOL_FIELDS:
        return _parse_bool(value, default)
    if name in _FLOAT_FIELDS:
        return _parse_float(value, default)
    text = str(value).strip()
    if name == "log_level":
        return text.upper()
    return text


def _load_file(path: Path) -> dict[str, Any]:
    """
    Load the `[artifactd]` table from a TOML config file.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the TOML is malformed or names unknown settings
    """
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, "rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Failed to parse config TOML: {e}") from e

    section = data.get(CONFIG_SECTION, {})
    if not isinstance(section, dict):
        raise ValueError(f"[{CONFIG_SECTION}] must be a table")

    known = {f.name for f in fields(Settings)}
    unknown = sorted(set(section) - known)
    if unknown:
        raise ValueError(f"Unknown settings in {path}: {', '.join(unknown)}")
    return section


def load_settings(config_path: str | Path | None = None) -> Settings:
    """
    Build Settings from defaults, an optional TOML file, then ARTIFACTD_* env vars.

    Later sources win. The config file may also be named by ARTIFACTD_CONFIG.
    """
    settings = Settings()

    path = config_path or _env(f"{ENV_PREFIX}CONFIG")
    overrides: dict[str, Any] = {}
    if path:
        for name, value in _load_file(Path(path)).items():
            overrides[name] = _coerce(name, value, getattr(settings, name))

    for f in fields(Settings):
        raw = _env(f"{ENV_PREFIX}{f.name.upper()}")
        if raw is not None:
            overrides[f.name] = _coerce(f.name, raw, getattr(settings, f.name))

    return replace(settings, **overrides) if overrides else settings
