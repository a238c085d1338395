"""Site configuration for template sync runs.

Resolution order: dataclass defaults, then ``dwtsync.json`` at the site
root (if present), then explicit overrides (CLI flags). ``None`` overrides
are ignored so argparse defaults do not clobber the file.
"""
from __future__ import annotations

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

from dwtsync.io_utils import load_json

CONFIG_FILENAME = "dwtsync.json"


class ConfigError(ValueError):
    """Raised when a configuration file or override is invalid."""


@dataclass(frozen=True, slots=True)
class SyncConfig:
    """Settings for discovery, backups and prompting."""

    site_root: Path
    templates_dir_name: str = "Templates"
    include_patterns: tuple[str, ...] = ("**/*.html", "**/*.htm", "**/*.php")
    exclude_patterns: tuple[str, ...] = ()
    exclude_dirs: tuple[str, ...] = ("Templates",)
    skip_dir_prefixes: tuple[str, ...] = (".html-dwt-",)
    backup_dir_name: str = ".html-dwt-template-backups"
    auto_apply: bool = False
    backups_enabled: bool = True
    diff_context_lines: int = 3

    @property
    def templates_dir(self) -> Path:
        return self.site_root / self.templates_dir_name

    @property
    def backup_root(self) -> Path:
        return self.site_root / self.backup_dir_name

    def resolve(self, path: str | Path) -> Path:
        """Resolve a CLI path against the site root."""
        candidate = Path(path)
        return candidate if candidate.is_absolute() else self.site_root / candidate


_FIELD_TYPES: dict[str, str] = {
    f.name: str(f.type) for f in fields(SyncConfig) if f.name != "site_root"
}


def _coerce(key: str, value: Any) -> Any:
    declared = _FIELD_TYPES[key]
    if declared.startswith("tuple["):
        if isinstance(value, str) or not isinstance(value, (list, tuple)):
            raise ConfigError(f"{key} must be a list of strings, got {value!r}")
        if not all(isinstance(v, str) for v in value):
            raise ConfigError(f"{key} must contain only strings")
        return tuple(value)
    if declared == "bool":
        if not isinstance(value, bool):
            raise ConfigError(f"{key} must be true/false, got {value!r}")
        return value
    if declared == "int":
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ConfigError(f"{key} must be a non-negative integer, got {value!r}")
        return value
    if not isinstance(value, str) or not value:
        raise ConfigError(f"{key} must be a non-empty string, got {value!r}")
    return value


def config_from_dict(site_root: Path, payload: dict[str, Any]) -> SyncConfig:
    """Build a config from a JSON-like dict; unknown keys are an error."""
    unknown = sorted(k for k in payload if k not in _FIELD_TYPES)
    if unknown:
        raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")
    converted = {k: _coerce(k, v) for k, v in payload.items()}
    return SyncConfig(site_root=site_root, **converted)


def load_config(
    site_root: Path,
    overrides: dict[str, Any] | None = None,
) -> SyncConfig:
    """Load ``dwtsync.json`` from ``site_root`` and apply overrides."""
    path = site_root / CONFIG_FILENAME
    payload: dict[str, Any] = {}
    if path.is_file():
        try:
            data = load_json(path)
        except ValueError as exc:
            raise ConfigError(f"Invalid JSON in {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"Configuration must be a JSON object: {path}")
        payload = data
    config = config_from_dict(site_root, payload)

    if overrides:
        applied = {k: v for k, v in overrides.items() if v is not None}
        unknown = sorted(k for k in applied if k not in _FIELD_TYPES)
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")
        config = replace(config, **{k: _coerce(k, v) for k, v in applied.items()})
    return config
