"""YAML configuration loader with environment variable overrides.

# ─── CONFIGURATION HIERARCHY ───────────────────────────────────────────
#
# Configuration is loaded in layers (later layers override earlier):
#
#   1. Settings field defaults : hard-coded in src/config/settings.py
#   2. config/config.yaml      : static defaults checked into the repo
#   3. .env file               : local developer overrides (not committed)
#   4. Environment vars        : set at deploy time
#
# Only values that were actually present in the environment or .env file
# override the YAML file; a Settings default never clobbers a YAML value.
#
# The YAML file groups keys by section:
#
#   cache:
#     redis_command_timeout_ms: 250
#     redis_in_memory_caching: true
#   logging:
#     log_level: DEBUG
#
# Every key inside a section is a Settings field name.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from src.config.settings import Settings
from src.utils.errors import ConfigurationError

DEFAULT_CONFIG_PATH = "config/config.yaml"


def _read_yaml(path: str) -> dict[str, Any]:
    config_path = Path(path)
    if not config_path.exists():
        return {}
    with open(config_path, encoding="utf-8") as f:
        # safe_load only builds plain Python types.
        loaded = yaml.safe_load(f) or {}
    if not isinstance(loaded, dict):
        raise ConfigurationError(f"{path} must contain a mapping of sections")
    return loaded


def _flatten_sections(yaml_config: dict[str, Any]) -> dict[str, Any]:
    """Collect ``{field: value}`` from every section that names Settings fields."""
    known = set(Settings.model_fields)
    values: dict[str, Any] = {}
    for section, body in yaml_config.items():
        if not isinstance(body, dict):
            raise ConfigurationError(f"Config section {section!r} must be a mapping")
        unknown = set(body) - known
        if unknown:
            raise ConfigurationError(
                f"Unknown keys in config section {section!r}: {', '.join(sorted(unknown))}"
            )
        values.update(body)
    return values


def load_settings(path: str = DEFAULT_CONFIG_PATH) -> Settings:
    """Build Settings from the YAML file, overridden by environment values.

    Args:
        path: Path to the YAML configuration file; a missing file is ignored.

    Raises:
        ConfigurationError: If the file is malformed or names unknown keys.
    """
    yaml_values = _flatten_sections(_read_yaml(path))
    env_settings = Settings()
    env_values = {name: getattr(env_settings, name) for name in env_settings.model_fields_set}
    return Settings(**{**yaml_values, **env_values})


def load_config(path: str = DEFAULT_CONFIG_PATH) -> dict[str, Any]:
    """Return the fully resolved configuration as a nested dictionary.

    Used for display (``python -m src.cli show-config``); the credentials
    part of the remote store URL is masked.
    """
    settings = load_settings(path)
    cache_config = settings.to_cache_config()
    return {
        "app": {"env": settings.app_env},
        "logging": {"level": settings.log_level},
        "remote_store": {"url": _mask_credentials(settings.redis_url)},
        "cache": cache_config.model_dump(),
    }


def _mask_credentials(url: str) -> str:
    scheme, sep, rest = url.partition("://")
    if not sep or "@" not in rest:
        return url
    _credentials, _, host = rest.rpartition("@")
    return f"{scheme}://***@{host}"
