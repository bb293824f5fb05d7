"""
Vault configuration.

Values come from defaults, an optional YAML settings file and environment
variables, in that order of precedence (environment wins).

Settings file layout (``~/.openclaw/context-vault/settings.yaml``):

```yaml
context_vault:
  db_path: ~/.openclaw/context-vault/vault.db
  openclaw_dir: ~/.openclaw
  watch_interval: 5
  compaction_slack: 5
  snapshot_on_compaction: false
```
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigurationError

DEFAULT_OPENCLAW_DIR = Path.home() / ".openclaw"
DEFAULT_DB_PATH = DEFAULT_OPENCLAW_DIR / "context-vault" / "vault.db"
DEFAULT_CONFIG_PATH = DEFAULT_OPENCLAW_DIR / "context-vault" / "settings.yaml"

_ENV_KEYS = {
    "db_path": "CONTEXT_VAULT_DB",
    "openclaw_dir": "CONTEXT_VAULT_OPENCLAW_DIR",
    "watch_interval": "CONTEXT_VAULT_WATCH_INTERVAL",
    "compaction_slack": "CONTEXT_VAULT_COMPACTION_SLACK",
    "snapshot_on_compaction": "CONTEXT_VAULT_SNAPSHOT_ON_COMPACTION",
    "busy_timeout": "CONTEXT_VAULT_BUSY_TIMEOUT",
}

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


@dataclass
class VaultConfig:
    """Configuration for the vault store and the session synchronizer."""

    db_path: str | Path = DEFAULT_DB_PATH
    openclaw_dir: str | Path = DEFAULT_OPENCLAW_DIR
    transcript_suffix: str = ".jsonl"
    watch_interval: float = 5.0  # seconds between sync passes
    compaction_slack: int = 5  # drops of this size or less are not compactions
    snapshot_on_compaction: bool = False
    busy_timeout: float = 0.0  # seconds SQLite waits for the write lock
    recovery_message_count: int = 50

    def __post_init__(self) -> None:
        if str(self.db_path) != ":memory:":
            self.db_path = Path(self.db_path).expanduser()
        self.openclaw_dir = Path(self.openclaw_dir).expanduser()
        if self.watch_interval <= 0:
            raise ConfigurationError("watch_interval", "must be positive")
        if self.compaction_slack < 0:
            raise ConfigurationError("compaction_slack", "must not be negative")
        if self.busy_timeout < 0:
            raise ConfigurationError("busy_timeout", "must not be negative")

    @property
    def agents_dir(self) -> Path:
        """Directory holding one subdirectory per agent."""
        return Path(self.openclaw_dir) / "agents"

    @classmethod
    def from_env(cls, base: VaultConfig | None = None) -> VaultConfig:
        """Create config from environment variables, on top of ``base`` if given."""
        values = _as_dict(base) if base is not None else {}
        for name, env_key in _ENV_KEYS.items():
            raw = os.environ.get(env_key)
            if raw is not None:
                values[name] = _coerce(name, raw)
        return cls(**values)

    @classmethod
    def from_file(cls, path: str | Path) -> VaultConfig:
        """Create config from the ``context_vault`` section of a YAML file."""
        path = Path(path).expanduser()
        if not path.exists():
            return cls()

        try:
            loaded = yaml.safe_load(path.read_text()) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(str(path), f"malformed YAML: {e}") from e

        if not isinstance(loaded, dict):
            raise ConfigurationError(str(path), "top level must be a mapping")

        section = loaded.get("context_vault", {}) or {}
        if not isinstance(section, dict):
            raise ConfigurationError("context_vault", "section must be a mapping")

        known = {f.name for f in fields(cls)}
        values = {}
        for key, value in section.items():
            if key not in known:
                raise ConfigurationError(key, "unknown setting")
            values[key] = _coerce(key, value)
        return cls(**values)

    @classmethod
    def load(cls, path: str | Path | None = None) -> VaultConfig:
        """Load settings file (if any) and apply environment overrides."""
        return cls.from_env(base=cls.from_file(path or DEFAULT_CONFIG_PATH))


def _as_dict(config: VaultConfig) -> dict[str, Any]:
    return {f.name: getattr(config, f.name) for f in fields(config)}


def _coerce(name: str, value: Any) -> Any:
    """Convert a raw setting (env string or YAML scalar) to the field's type."""
    try:
        if name in ("watch_interval", "busy_timeout"):
            return float(value)
        if name in ("compaction_slack", "recovery_message_count"):
            return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(name, f"expected a number, got {value!r}") from e

    if name == "snapshot_on_compaction":
        if isinstance(value, bool):
            return value
        lowered = str(value).strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise ConfigurationError(name, f"expected a boolean, got {value!r}")

    return value
