"""Configuration manager for the ad composer.

Dot-notation access into a YAML settings file, with a .env priority chain:
  1. Global ~/.adcomposer/.env  (lowest priority)
  2. Local adcomposer/.env      (overrides global)
  3. Environment variables      (highest priority)
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

DEFAULT_SETTINGS_PATH = Path(__file__).parent.parent.parent / "config" / "settings.yaml"

_config_instance: Optional["Config"] = None


class Config:
    """Settings with dot-notation access and env override."""

    def __init__(self, config_path: str):
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        with open(path) as f:
            self._data: dict = yaml.safe_load(f)
        if not isinstance(self._data, dict):
            raise ValueError(f"Config file must be a YAML mapping, got: {type(self._data)}")
        self._load_env()

    # ── private ──────────────────────────────────────────────────────────────

    def _load_env(self) -> None:
        """Load .env files in priority order (global → local)."""
        global_env = Path.home() / ".adcomposer" / ".env"
        local_env = Path(__file__).parent.parent.parent / ".env"
        if global_env.exists():
            load_dotenv(global_env, override=False)
        if local_env.exists():
            load_dotenv(local_env, override=True)

    # ── public ───────────────────────────────────────────────────────────────

    def get(self, key: str, default: Any = None) -> Any:
        """Dot-notation access into the YAML tree.

        Example::

            config.get("timing.bpm_search_radius")          # 5
            config.get("music.provider_limits.elevenlabs")  # 450
            config.get("missing.key", "fallback")           # "fallback"
        """
        keys = key.split(".")
        val: Any = self._data
        for k in keys:
            if isinstance(val, dict) and k in val:
                val = val[k]
            else:
                return default
        return val

    def get_env(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Return an environment variable value."""
        return os.environ.get(name, default)


# ── module-level singleton ────────────────────────────────────────────────────


def get_config(config_path: Optional[str] = None) -> Config:
    """Return the singleton Config instance.

    On first call, ``config_path`` is required.  Subsequent calls may omit it
    and will return the existing instance.

    Raises:
        RuntimeError: If called before the singleton is initialised.
    """
    global _config_instance
    if _config_instance is None:
        if config_path is None:
            raise RuntimeError(
                "Config not yet initialised — call get_config(config_path) first."
            )
        _config_instance = Config(config_path)
    return _config_instance


def reset_config() -> None:
    """Clear the singleton (mainly for testing)."""
    global _config_instance
    _config_instance = None
