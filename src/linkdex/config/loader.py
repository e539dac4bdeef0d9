"""Configuration loading and merging logic."""

import os
import shutil
import sys
import tomllib
from importlib import resources
from pathlib import Path
from typing import Any, Dict

CONFIG_FILES = (
    "general.toml",
    "catalog.toml",
)


def _get_config_dir() -> Path:
    """Return the configuration directory path."""
    return Path.home() / ".config" / "linkdex"


def _merge(base: Dict[str, Any], update: Dict[str, Any]) -> None:
    """Recursively merge ``update`` into ``base`` in place."""
    for key, value in update.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _merge(base[key], value)
        else:
            base[key] = value


def load_config() -> Dict[str, Any]:
    """Load configuration from TOML files, falling back to bundled defaults."""
    config_dir = _get_config_dir()
    config_dir.mkdir(parents=True, exist_ok=True)

    final_config: Dict[str, Any] = {
        "general": {},
        "catalog": {},
        "extraction": {},
        "search": {},
    }

    # 1. Bundled defaults, copied to the user directory when missing
    for filename in CONFIG_FILES:
        try:
            resource_path = resources.files("linkdex.data.config").joinpath(filename)
            user_file_path = config_dir / filename

            with resource_path.open("rb") as f:
                _merge(final_config, tomllib.load(f))

            if not user_file_path.exists():
                try:
                    with resources.as_file(resource_path) as source_path:
                        shutil.copy(source_path, user_file_path)
                except OSError as e:
                    print(
                        f"Warning: Failed to create default config {filename}: {e}",
                        file=sys.stderr,
                    )
        except (OSError, tomllib.TOMLDecodeError) as e:
            print(
                f"Warning: Failed to load bundled config {filename}: {e}",
                file=sys.stderr,
            )

    # 2. User overrides
    for filename in CONFIG_FILES:
        user_file_path = config_dir / filename
        if not user_file_path.exists():
            continue
        try:
            with open(user_file_path, "rb") as f:
                _merge(final_config, tomllib.load(f))
        except tomllib.TOMLDecodeError as e:
            print(
                f"Error: Invalid configuration file at {user_file_path}",
                file=sys.stderr,
            )
            print(f"Details: {e}", file=sys.stderr)
            sys.exit(1)
        except OSError as e:
            print(
                f"Warning: Failed to load config from {user_file_path}: {e}",
                file=sys.stderr,
            )

    return final_config


def resolve_db_path(general: Dict[str, Any]) -> Path:
    """Resolve the catalog database path from env override or config."""
    env_var_name = general.get("db_path_env_var", "LINKDEX_DB_PATH")
    env_path = os.environ.get(env_var_name)
    if env_path:
        return Path(env_path)
    if general.get("db_path"):
        return Path(general["db_path"]).expanduser()
    return _get_config_dir() / "catalog.db"
