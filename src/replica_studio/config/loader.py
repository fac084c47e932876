"""Configuration loading from files and environment.

Supports:
- TOML config files
- Environment variables (REPLICA_STUDIO_* prefix)
- .env files
- Multiple profiles (local, staging)

A profile table is merged into the base tables key by key, so
``[profiles.staging.platform] base_url = ...`` keeps the base
``api_version`` and ``timeout``.
"""

import os
import re
import tomllib
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from replica_studio.config.schema import AppConfig
from replica_studio.observability.logging import get_logger

logger = get_logger(__name__)

CONFIG_PATH_ENV = "REPLICA_STUDIO_CONFIG"

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


def _substitute_env_vars(obj: Any) -> Any:
    """Recursively replace ``${VAR}`` and ``${VAR:-default}`` in strings.

    Unset variables without a default are left as written.
    """
    if isinstance(obj, dict):
        return {k: _substitute_env_vars(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_substitute_env_vars(item) for item in obj]
    if not isinstance(obj, str):
        return obj

    def replace_var(match: re.Match) -> str:
        name, sep, default = match.group(1).partition(":-")
        value = os.getenv(name.strip())
        if value is not None:
            return value
        if sep:
            return default

        logger.warning(
            "env_var_not_found",
            var_name=name.strip(),
            suggestion="Check that the environment variable is set",
        )
        return match.group(0)

    return _ENV_VAR_PATTERN.sub(replace_var, obj)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _read_config_file(config_path: Path, profile: Optional[str]) -> dict[str, Any]:
    with open(config_path, "rb") as f:
        data = tomllib.load(f)
    logger.info("loaded_config_file", path=str(config_path))

    profiles = data.pop("profiles", {})
    if profile:
        if profile in profiles:
            data = _deep_merge(data, profiles[profile])
            logger.info("applied_profile", profile=profile)
        else:
            logger.warning("profile_not_found", profile=profile, available=sorted(profiles))

    return _substitute_env_vars(data)


def load_config(
    config_path: Optional[Path] = None,
    profile: Optional[str] = None,
    env_file: Optional[Path] = None,
) -> AppConfig:
    """Load application configuration.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file (with the selected profile applied)
    3. Defaults

    Args:
        config_path: Path to TOML config file
        profile: Config profile to use (e.g., "local", "staging")
        env_file: Path to .env file

    Returns:
        Loaded and validated configuration
    """
    if env_file and env_file.exists():
        load_dotenv(env_file)
        logger.info("loaded_env_file", path=str(env_file))

    config_data: dict[str, Any] = {}
    if config_path and config_path.exists():
        config_data = _read_config_file(config_path, profile)

    config = AppConfig(**config_data)
    logger.info(
        "config_loaded",
        log_level=config.log_level,
        platform_url=config.platform.base_url,
        api_version=config.platform.api_version,
        session_store=config.session_store.store_type,
    )

    return config


def get_default_config_path() -> Path:
    """Get the default config file path.

    ``$REPLICA_STUDIO_CONFIG`` wins when set. Otherwise searches in order:
    1. ./config.toml
    2. ~/.replica-studio/config.toml
    3. /etc/replica-studio/config.toml
    """
    explicit = os.getenv(CONFIG_PATH_ENV)
    if explicit:
        return Path(explicit).expanduser()

    search_paths = [
        Path.cwd() / "config.toml",
        Path.home() / ".replica-studio" / "config.toml",
        Path("/etc/replica-studio/config.toml"),
    ]

    for path in search_paths:
        if path.exists():
            return path

    return search_paths[0]
