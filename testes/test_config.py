import json
import os
import sys

# Ensure project root is on sys.path for imports when running tests directly
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest

from wordpress_migrate.config import apply_defaults, load_config, save_config, update_settings, validate_batch_size
from wordpress_migrate.utils.errors import ConfigError


def test_missing_file_gives_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv("WP_DB_HOST", raising=False)
    config = load_config(str(tmp_path / "missing.json"))

    assert config["database"]["host"] == "localhost"
    assert config["database"]["port"] == 3306
    assert config["database"]["prefix"] == "wp_"
    assert config["migration"] == {
        "batch_size": 50,
        "skip_existing": True,
        "create_content_types": True,
        "dry_run": False,
    }
    assert config["drupal"]["rpm"] == 300


def test_environment_fills_missing_keys(monkeypatch):
    monkeypatch.setenv("WP_DB_HOST", "mysql.internal")
    monkeypatch.setenv("DRUPAL_BASE_URL", "https://drupal.example.com")

    config = apply_defaults({"database": {"name": "wp"}})

    assert config["database"]["host"] == "mysql.internal"
    assert config["database"]["name"] == "wp"
    assert config["drupal"]["base_url"] == "https://drupal.example.com"


def test_file_values_win(tmp_path, monkeypatch):
    monkeypatch.setenv("WP_DB_HOST", "from-env")
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"database": {"host": "from-file"}, "migration": {"batch_size": 10}}))

    config = load_config(str(path))

    assert config["database"]["host"] == "from-file"
    assert config["migration"]["batch_size"] == 10
    assert config["migration"]["dry_run"] is False


def test_invalid_json(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json")
    with pytest.raises(ConfigError):
        load_config(str(path))


def test_save_creates_directory(tmp_path):
    path = str(tmp_path / "nested" / "config.json")
    save_config({"database": {"host": "db"}}, path)
    with open(path, encoding="utf-8") as f:
        assert json.load(f) == {"database": {"host": "db"}}


def test_update_settings_ignores_none_and_blank_password():
    config = {"database": {"host": "db", "password": "secret"}}
    update_settings(config, "database", {"host": None, "name": "wp", "password": ""})
    assert config["database"] == {"host": "db", "password": "secret", "name": "wp"}

    update_settings(config, "drupal", {"password": ""})
    assert config["drupal"] == {"password": ""}


@pytest.mark.parametrize("value, expected", [(1, 1), ("50", 50), (500, 500)])
def test_validate_batch_size(value, expected):
    assert validate_batch_size(value) == expected


@pytest.mark.parametrize("value", [0, -5, 501, None, "ten"])
def test_validate_batch_size_rejects(value):
    with pytest.raises(ConfigError):
        validate_batch_size(value)
