import json
import os
import sys
from unittest import mock

# Ensure project root is on sys.path for imports when running tests directly
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pandas as pd
import pytest

import main
from fakes import FakeResponse, FakeWordPress, make_config, quiet_logger
from wordpress_migrate.migration_tool import WordPressMigrationTool, parse_categories, summarize
from wordpress_migrate.migrators import DrupalJsonApiStore, InMemoryEntityStore, MigrationLedger
from wordpress_migrate.models import Category, LedgerStatus, RunResult
from wordpress_migrate.utils.errors import ConfigError, PreFlightCheckError


def _read_jsonl(path):
    with open(path, encoding="utf-8") as f:
        return [json.loads(line) for line in f if line.strip()]


@pytest.fixture
def wp():
    wp = FakeWordPress()
    wp.add_user(1, "admin", "admin@example.com")
    wp.add_user(2, "editor", "editor@example.com")
    wp.add_term(1, "News", count=1)
    wp.add_term(2, "python", taxonomy="post_tag", count=1)
    wp.add_attachment(50, title="Logo", meta={"_wp_attached_file": "2021/05/logo.png"})
    wp.add_post(10, title="Hello", name="hello", author=1, terms=(1, 2))
    wp.add_post(20, title="About", name="about", post_type="page")
    return wp


@pytest.fixture
def tool(tmp_path, wp):
    config = make_config(tmp_path, wordpress={"base_url": "https://old.example.com"})
    http_get = mock.Mock(return_value=FakeResponse(b"png"))
    with WordPressMigrationTool(config, logger=quiet_logger(), connect_fn=wp.connect, http_get=http_get) as tool:
        yield tool


# ---------------------------------------------------------------------------
# Category selection
# ---------------------------------------------------------------------------

def test_parse_categories_returns_dependency_order():
    assert parse_categories(["posts", " Users ", "tags", "posts"]) == [Category.USERS, Category.TAGS, Category.POSTS]


def test_parse_categories_rejects_unknown_and_empty():
    with pytest.raises(ConfigError, match="comments"):
        parse_categories(["users", "comments"])
    with pytest.raises(ConfigError):
        parse_categories([])
    with pytest.raises(ConfigError):
        parse_categories(None)


def test_summarize():
    results = {Category.USERS: RunResult(2, 1, 0), Category.POSTS: RunResult(0, 0, 3)}
    assert summarize(results) == {"processed": 6, "success": 2, "failed": 1, "skipped": 3}


# ---------------------------------------------------------------------------
# Runs
# ---------------------------------------------------------------------------

def test_run_all_categories(tool, tmp_path):
    results = tool.run()

    assert list(results) == [Category.USERS, Category.CATEGORIES, Category.TAGS, Category.MEDIA,
                             Category.POSTS, Category.PAGES]
    assert {c.value: r.success for c, r in results.items()} == {
        "users": 2, "categories": 1, "tags": 1, "media": 1, "posts": 1, "pages": 1,
    }
    node = tool.store.load("node", tool.ledger.get_target_id("posts", 10))
    assert node["uid"] == tool.ledger.get_target_id("users", 1)
    assert node["field_categories"] == [tool.ledger.get_target_id("terms", 1)]
    assert node["field_tags"] == [tool.ledger.get_target_id("terms", 2)]

    completed = _read_jsonl(os.path.join(str(tmp_path), "success.jsonl"))
    assert [e["category"] for e in completed] == [c.value for c in results]
    assert completed[0]["code"] == "CATEGORY_COMPLETED"
    assert completed[0]["success"] == 2


def test_run_repeats_are_skipped(tool):
    tool.run(["users"])
    results = tool.run(["users"])
    assert results[Category.USERS].to_dict() == {"success": 0, "failed": 0, "skipped": 2}


def test_run_uses_batch_size_and_offset(tool):
    first = tool.run(["users"], batch_size=1)
    second = tool.run(["users"], batch_size=1, offset=1)

    assert first[Category.USERS].success == 1
    assert second[Category.USERS].success == 1
    assert [e.wordpress_id for e in tool.ledger.entries("users")] == [1, 2]


@pytest.mark.parametrize("batch_size", [0, 501, "many"])
def test_run_rejects_invalid_batch_size(tool, batch_size):
    with pytest.raises(ConfigError):
        tool.run(["users"], batch_size=batch_size)


def test_aborted_category_is_reported_and_run_continues(tool, tmp_path):
    process = tool.processor.process

    def crash_on_media(category, batch_size, offset):
        if category == Category.MEDIA:
            raise RuntimeError("strategy exploded")
        return process(category, batch_size, offset)

    with mock.patch.object(tool.processor, "process", side_effect=crash_on_media):
        results = tool.run(["media", "users"])

    assert results[Category.MEDIA].processed == 0
    assert results[Category.USERS].success == 2
    errors = _read_jsonl(os.path.join(str(tmp_path), "errors.jsonl"))
    assert errors == [{
        "code": "CATEGORY_FAILED",
        "message": "Migration category aborted",
        "category": "media",
        "error": "strategy exploded",
    }]


def test_batch_request(tool):
    response = tool.process_batch_request({"migration_types": ["users", "categories"], "batch_size": 1, "offset": 0})
    assert response == {
        "users": {"success": 1, "failed": 0, "skipped": 0},
        "categories": {"success": 1, "failed": 0, "skipped": 0},
    }


def test_batch_request_errors(tool):
    assert "error" in tool.process_batch_request({"migration_types": ["comments"]})
    assert "error" in tool.process_batch_request({})
    assert "error" in tool.process_batch_request({"migration_types": ["users"], "batch_size": 1000})
    assert tool.ledger.entries() == []


# ---------------------------------------------------------------------------
# Preview and connection
# ---------------------------------------------------------------------------

def test_preview(tool):
    preview = tool.preview(limit=5)

    assert preview["status"] == "ok"
    assert preview["users"] == ["admin (admin@example.com)", "editor (editor@example.com)"]
    assert preview["posts"] == ["Hello (2021-05-01 10:00:00)"]
    assert preview["pages"] == ["About (2021-05-01 10:00:00)"]
    assert preview["media"] == ["Logo (image/jpeg)"]
    assert preview["categories"] == ["News (1 posts)"]
    assert preview["tags"] == ["python (1 posts)"]


def test_preview_with_missing_tables_still_lists(tool, wp):
    wp.drop_table("usermeta")
    preview = tool.preview()
    assert preview["status"] == "warning"
    assert preview["posts"] == ["Hello (2021-05-01 10:00:00)"]


def test_preview_aborts_without_connection(tool, wp, tmp_path):
    wp.fail_connect = True
    preview = tool.preview()
    assert preview["status"] == "error"
    assert "posts" not in preview

    errors = _read_jsonl(os.path.join(str(tmp_path), "errors.jsonl"))
    assert [e["code"] for e in errors] == ["CONNECTION"]
    assert errors[0]["message"] == "Failed to connect to the WordPress database"
    assert errors[0]["error"] == preview["message"]


# ---------------------------------------------------------------------------
# Store selection
# ---------------------------------------------------------------------------

def test_without_drupal_url_entities_stay_in_memory(tmp_path, wp):
    config = make_config(tmp_path, migration={"dry_run": False},
                         ledger={"path": str(tmp_path / "data" / "ledger.duckdb")})
    with WordPressMigrationTool(config, logger=quiet_logger(), connect_fn=wp.connect) as tool:
        assert isinstance(tool.store, InMemoryEntityStore)
        assert tool.ledger.path == ":memory:"
    assert not os.path.exists(str(tmp_path / "data"))


def test_live_run_uses_drupal_store_and_ledger_file(tmp_path, wp):
    ledger_path = str(tmp_path / "data" / "ledger.duckdb")
    config = make_config(tmp_path, migration={"dry_run": False}, ledger={"path": ledger_path},
                         drupal={"base_url": "https://drupal.example.com", "username": "admin", "password": "pw"})
    with WordPressMigrationTool(config, logger=quiet_logger(), connect_fn=wp.connect) as tool:
        assert isinstance(tool.store, DrupalJsonApiStore)
        assert tool.store.session.auth == ("admin", "pw")
        assert tool.ledger.path == ledger_path
    assert os.path.exists(ledger_path)


# ---------------------------------------------------------------------------
# Command line
# ---------------------------------------------------------------------------

def _json_output(out):
    start = 0 if out.startswith("{") else out.rindex("\n{\n") + 1
    return json.loads(out[start:])


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "migration_config.json"
    path.write_text(json.dumps({
        "database": {"host": "db", "name": "wp", "username": "wp", "password": "secret", "prefix": "wp_"},
        "wordpress": {"base_url": "https://old.example.com"},
        "migration": {"batch_size": 10, "dry_run": True},
        "ledger": {"path": str(tmp_path / "ledger.duckdb")},
        "reports": {"dir": str(tmp_path / "reports")},
    }))
    return str(path)


@pytest.fixture
def patched_db(wp):
    with mock.patch("wordpress_migrate.extractors.connection.pymysql.connect", side_effect=wp.connect):
        yield wp


def test_cli_test_connection(config_file, patched_db, capsys):
    assert main.main(["--config", config_file, "test-connection"]) == 0
    result = _json_output(capsys.readouterr().out)
    assert result["status"] == "ok"
    assert result["stats"] == {"posts": 2, "users": 2}
    assert patched_db.connect_calls[0]["host"] == "db"


def test_cli_test_connection_failure(config_file, patched_db, capsys):
    patched_db.fail_connect = True
    assert main.main(["--config", config_file, "test-connection"]) == 1


def test_cli_migrate(config_file, patched_db, capsys):
    assert main.main(["--config", config_file, "migrate", "--types", "users", "categories"]) == 0
    output = _json_output(capsys.readouterr().out)
    assert output["results"]["users"] == {"success": 2, "failed": 0, "skipped": 0}
    assert output["totals"] == {"processed": 3, "success": 3, "failed": 0, "skipped": 0}


def test_cli_migrate_unknown_type(config_file, patched_db, capsys):
    assert main.main(["--config", config_file, "migrate", "--types", "comments"]) == 2
    assert "Unknown migration type 'comments'" in capsys.readouterr().err


def test_cli_migrate_runs_pre_flight_checks_for_live_runs(tmp_path, patched_db, capsys):
    path = tmp_path / "live.json"
    path.write_text(json.dumps({
        "migration": {"dry_run": False},
        "drupal": {"base_url": "https://drupal.example.com"},
        "ledger": {"path": str(tmp_path / "ledger.duckdb")},
        "reports": {"dir": str(tmp_path / "reports")},
    }))
    error = PreFlightCheckError("The JSON:API module is not enabled on the Drupal site.")
    with mock.patch.object(main, "run_drupal_pre_flight_checks", side_effect=error) as checks:
        assert main.main(["--config", str(path), "migrate", "--types", "users"]) == 2
    checks.assert_called_once()
    assert "JSON:API module is not enabled" in capsys.readouterr().err


def test_cli_batch_request_file(tmp_path, config_file, patched_db, capsys):
    request = tmp_path / "request.json"
    request.write_text(json.dumps({"migration_types": ["tags"], "batch_size": 5}))

    assert main.main(["--config", config_file, "batch", "--request", str(request)]) == 0
    assert _json_output(capsys.readouterr().out) == {"tags": {"success": 1, "failed": 0, "skipped": 0}}


def test_cli_batch_request_error(tmp_path, config_file, patched_db, capsys):
    request = tmp_path / "request.json"
    request.write_text(json.dumps({"migration_types": []}))

    assert main.main(["--config", config_file, "batch", "--request", str(request)]) == 1
    assert "error" in _json_output(capsys.readouterr().out)


def test_cli_configure_saves_and_masks(config_file, capsys):
    assert main.main([
        "--config", config_file, "configure",
        "--host", "mysql.internal", "--port", "3307", "--password", "",
        "--drupal-url", "https://drupal.example.com", "--drupal-password", "hunter2", "--save",
    ]) == 0

    output = _json_output(capsys.readouterr().out)
    assert output["database"]["password"] == "********"
    assert output["drupal"]["password"] == "********"

    with open(config_file, encoding="utf-8") as f:
        saved = json.load(f)
    assert saved["database"]["host"] == "mysql.internal"
    assert saved["database"]["port"] == 3307
    # an empty password keeps the stored one
    assert saved["database"]["password"] == "secret"
    assert saved["drupal"]["password"] == "hunter2"


def test_cli_configure_rejects_batch_size(config_file, capsys):
    assert main.main(["--config", config_file, "configure", "--batch-size", "1000"]) == 2


def test_cli_report(tmp_path, config_file, capsys):
    ledger_path = str(tmp_path / "ledger.duckdb")
    with MigrationLedger(InMemoryEntityStore(), quiet_logger(), ledger_path) as ledger:
        ledger.record("users", 1, 10, LedgerStatus.SUCCESS)
        ledger.record("posts", 7, None, LedgerStatus.FAILED, "boom")

    csv_path = str(tmp_path / "export" / "ledger.csv")
    assert main.main(["--config", config_file, "report", "--output", csv_path]) == 0

    assert _json_output(capsys.readouterr().out.split("Ledger exported")[0]) == {
        "posts": {"failed": 1},
        "users": {"success": 1},
    }
    df = pd.read_csv(csv_path)
    assert df["wordpress_id"].tolist() == [1, 7]
    assert df["status"].tolist() == ["success", "failed"]


def test_cli_report_without_ledger(tmp_path, config_file, capsys):
    assert main.main(["--config", config_file, "report"]) == 1
    assert f"Ledger not found: {tmp_path / 'ledger.duckdb'}" in capsys.readouterr().err
    assert not (tmp_path / "ledger.duckdb").exists()
