import os
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, Mapping, Optional
from urllib.parse import quote_plus

import yaml

from ..errors import ConfigError

DEFAULT_CONFIG_PATH = Path("deltametrics.config.yaml")

DEFAULT_CONFIG: Dict[str, Any] = {
    "database": {
        "url": None,
        "driver": "postgresql",
        "host": None,
        "user": None,
        "password": None,
        "name": None,
        "port": None,
        "log_sql": False,
        "statement_timeout_ms": None,
    },
    "cache": {
        "max_bytes": 1024 * 1024 * 1024,
        "ttl_seconds": 4 * 60 * 60,
        "purge_interval_seconds": 4 * 60 * 60,
        "invalidate_on_write": False,
    },
    "scheduler": {
        "enabled": True,
        "interval_seconds": 4 * 60 * 60,
        "script_dir": "sql/views",
    },
    "server": {
        "host": "0.0.0.0",
        "port": 8080,
    },
    "repository": {
        "merge_skips_zero_values": False,
    },
    "logging": {
        "level": "INFO",
    },
}

# Connection settings read from the environment (.env style).
ENV_DATABASE_KEYS = {
    "DB_HOST": "host",
    "DB_USER": "user",
    "DB_PASS": "password",
    "DB_NAME": "name",
    "DB_PORT": "port",
}
ENV_DATABASE_URL = "DATABASE_URL"

_POSITIVE_NUMBERS = (
    ("cache", "max_bytes"),
    ("cache", "ttl_seconds"),
    ("cache", "purge_interval_seconds"),
    ("scheduler", "interval_seconds"),
    ("server", "port"),
)


def _merge_defaults(config: Mapping[str, Any]) -> Dict[str, Any]:
    merged = deepcopy(DEFAULT_CONFIG)
    for section, values in (config or {}).items():
        if section not in merged:
            raise ConfigError(f"Unknown config section: {section}")
        if not isinstance(values, dict):
            raise ConfigError(f"Config section '{section}' must be a dictionary")
        unknown = set(values) - set(merged[section])
        if unknown:
            raise ConfigError(f"Unknown keys in '{section}': {', '.join(sorted(unknown))}")
        merged[section].update(values)
    return merged


def _apply_env(config: Dict[str, Any], environ: Mapping[str, str]) -> None:
    database = config["database"]
    if environ.get(ENV_DATABASE_URL):
        database["url"] = environ[ENV_DATABASE_URL]
    for env_key, setting in ENV_DATABASE_KEYS.items():
        if environ.get(env_key):
            database[setting] = environ[env_key]


def _validate(config: Dict[str, Any]) -> None:
    for section, key in _POSITIVE_NUMBERS:
        value = config[section][key]
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            raise ConfigError(f"'{section}.{key}' must be a positive number, got {value!r}")
    timeout = config["database"]["statement_timeout_ms"]
    if timeout is not None and (isinstance(timeout, bool) or not isinstance(timeout, int) or timeout <= 0):
        raise ConfigError(f"'database.statement_timeout_ms' must be a positive integer, got {timeout!r}")


def load_config(
    path: Path | None = None,
    environ: Optional[Mapping[str, str]] = None,
    allow_missing: bool = False,
) -> Dict[str, Any]:
    """
    Load service configuration from YAML, apply defaults and environment overrides.

    Args:
        path: Optional path to the config file. Defaults to deltametrics.config.yaml
        environ: Environment mapping (defaults to os.environ)
        allow_missing: Use built-in defaults when the file does not exist

    Returns:
        Fully populated configuration dictionary

    Raises:
        ConfigError: If the file is missing (and not allowed) or invalid
    """
    cfg_path = path or DEFAULT_CONFIG_PATH
    raw: Dict[str, Any] = {}
    if cfg_path.exists():
        with cfg_path.open("r", encoding="utf-8") as f:
            try:
                raw = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {cfg_path}: {e}") from e
        if not isinstance(raw, dict):
            raise ConfigError("Config must be a dictionary")
    elif not allow_missing:
        raise ConfigError(f"Config file not found: {cfg_path}")

    config = _merge_defaults(raw)
    _apply_env(config, os.environ if environ is None else environ)
    _validate(config)
    return config


def resolve_database_url(config: Dict[str, Any]) -> str:
    """
    Build the SQLAlchemy URL from the database section.

    An explicit ``url`` wins; otherwise host, user, password, name and port
    are all required.
    """
    database = config.get("database", {})
    if database.get("url"):
        return database["url"]

    missing = [key for key in ("host", "user", "password", "name", "port") if not database.get(key)]
    if missing:
        raise ConfigError(f"Missing database settings: {', '.join(missing)}")

    driver = database.get("driver") or "postgresql"
    user = quote_plus(str(database["user"]))
    password = quote_plus(str(database["password"]))
    return f"{driver}://{user}:{password}@{database['host']}:{database['port']}/{database['name']}"
