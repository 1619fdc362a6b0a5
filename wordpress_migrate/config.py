"""
Loading and saving of the migration settings.

Settings live in a JSON file (``config/migration_config.json`` by default)
with four sections: ``database`` (the WordPress MySQL database),
``wordpress`` (site URL used for media downloads), ``migration`` (batch
options) and ``drupal`` (the target site).  Missing keys are filled with
defaults or environment variables so that the rest of the code can index
the sections without guarding against ``KeyError``.
"""

from __future__ import annotations

import json
import os
from typing import Any, Dict, Optional

from .utils.errors import ConfigError

DEFAULT_CONFIG_FILE = "config/migration_config.json"

MIN_BATCH_SIZE = 1
MAX_BATCH_SIZE = 500


def apply_defaults(config: Dict[str, Any]) -> Dict[str, Any]:
    """Fill every missing key of ``config`` in place and return it."""
    config.setdefault("database", {})
    database = config["database"]
    database.setdefault("host", os.getenv("WP_DB_HOST", "localhost"))
    database.setdefault("port", int(os.getenv("WP_DB_PORT", "3306")))
    database.setdefault("name", os.getenv("WP_DB_NAME", ""))
    database.setdefault("username", os.getenv("WP_DB_USER", ""))
    database.setdefault("password", os.getenv("WP_DB_PASSWORD", ""))
    database.setdefault("prefix", os.getenv("WP_DB_PREFIX", "wp_"))

    config.setdefault("wordpress", {})
    config["wordpress"].setdefault("base_url", os.getenv("WP_BASE_URL", ""))

    config.setdefault("migration", {})
    migration = config["migration"]
    migration.setdefault("batch_size", 50)
    migration.setdefault("skip_existing", True)
    migration.setdefault("create_content_types", True)
    migration.setdefault("dry_run", False)

    config.setdefault("drupal", {})
    drupal = config["drupal"]
    drupal.setdefault("base_url", os.getenv("DRUPAL_BASE_URL", ""))
    drupal.setdefault("username", os.getenv("DRUPAL_USERNAME", ""))
    drupal.setdefault("password", os.getenv("DRUPAL_PASSWORD", ""))
    drupal.setdefault("rpm", 300)
    drupal.setdefault("bundles", {})

    config.setdefault("ledger", {})
    config["ledger"].setdefault("path", os.path.join("data", "migration.duckdb"))

    config.setdefault("reports", {})
    config["reports"].setdefault("dir", os.path.join("reports", "migration"))
    return config


def load_config(config_file: Optional[str] = DEFAULT_CONFIG_FILE) -> Dict[str, Any]:
    """
    Read the settings file, if it exists, and apply defaults.

    :param config_file: Path to the JSON file.  A missing file yields the
        default settings.
    :raises ConfigError: if the file is not valid JSON.
    """
    config: Dict[str, Any] = {}
    if config_file and os.path.exists(config_file):
        with open(config_file, "r", encoding="utf-8") as f:
            try:
                config = json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigError(f"Could not decode {config_file}: {e}") from e
    return apply_defaults(config)


def save_config(config: Dict[str, Any], config_file: str = DEFAULT_CONFIG_FILE) -> str:
    """Write ``config`` as indented JSON, creating the parent directory."""
    os.makedirs(os.path.dirname(config_file) or ".", exist_ok=True)
    with open(config_file, "w", encoding="utf-8") as f:
        json.dump(config, f, indent=2)
    return config_file


def update_settings(config: Dict[str, Any], section: str, values: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge ``values`` into ``config[section]``.

    ``None`` values are ignored, and an empty database password never
    replaces the stored one.
    """
    target = config.setdefault(section, {})
    for key, value in values.items():
        if value is None:
            continue
        if section == "database" and key == "password" and not value:
            continue
        target[key] = value
    return config


def validate_batch_size(value: Any) -> int:
    try:
        batch_size = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Batch size must be a number, got {value!r}") from None
    if not MIN_BATCH_SIZE <= batch_size <= MAX_BATCH_SIZE:
        raise ConfigError(f"Batch size must be between {MIN_BATCH_SIZE} and {MAX_BATCH_SIZE}, got {batch_size}")
    return batch_size
