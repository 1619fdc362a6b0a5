import os
import sys

# Ensure project root is on sys.path for imports when running tests directly
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest

from fakes import quiet_logger
from wordpress_migrate.migrators import InMemoryEntityStore, MigrationLedger
from wordpress_migrate.models import LedgerStatus


@pytest.fixture
def store():
    return InMemoryEntityStore()


@pytest.fixture
def ledger(store):
    with MigrationLedger(store, quiet_logger()) as ledger:
        yield ledger


def test_unknown_item_is_not_migrated(ledger):
    assert ledger.is_migrated("posts", 1) is False
    assert ledger.get_target_id("posts", 1) is None


def test_success_with_live_entity_is_migrated(ledger, store):
    node = store.create("node", {"type": "wordpress_post", "title": "Hi"})
    ledger.record("posts", 7, node["id"], LedgerStatus.SUCCESS)

    assert ledger.is_migrated("posts", 7) is True
    assert ledger.get_target_id("posts", 7) == node["id"]


def test_types_are_independent(ledger, store):
    user = store.create("user", {"name": "admin"})
    ledger.record("users", 1, user["id"], "success")

    assert ledger.is_migrated("users", 1) is True
    assert ledger.is_migrated("posts", 1) is False


def test_failed_entries_do_not_gate(ledger):
    ledger.record("posts", 3, None, LedgerStatus.FAILED, "boom")

    assert ledger.is_migrated("posts", 3) is False
    assert ledger.get_target_id("posts", 3) is None
    entry = ledger.entries("posts", 3)[0]
    assert entry.status == "failed"
    assert entry.message == "boom"
    assert entry.drupal_id is None


def test_stale_success_entry_is_removed(ledger, store):
    term = store.create("taxonomy_term", {"vid": "wordpress_tags", "name": "old"})
    ledger.record("terms", 4, term["id"], LedgerStatus.SUCCESS)
    store.delete("taxonomy_term", term["id"])

    assert ledger.is_migrated("terms", 4) is False
    assert ledger.entries("terms", 4) == []
    # nothing left to clean up on the next check
    assert ledger.is_migrated("terms", 4) is False


def test_stale_cleanup_keeps_failed_history(ledger, store):
    ledger.record("media", 9, None, LedgerStatus.FAILED, "download failed")
    ledger.record("media", 9, 99, LedgerStatus.SUCCESS)

    assert ledger.is_migrated("media", 9) is False
    assert [e.status for e in ledger.entries("media", 9)] == ["failed"]


def test_get_target_id_does_not_verify_existence(ledger):
    ledger.record("users", 2, 42, LedgerStatus.SUCCESS)
    assert ledger.get_target_id("users", 2) == 42
    assert len(ledger.entries("users", 2)) == 1


def test_latest_success_is_authoritative(ledger, store):
    first = store.create("node", {"type": "wordpress_post"})
    second = store.create("node", {"type": "wordpress_post"})
    ledger.record("posts", 5, first["id"], LedgerStatus.SUCCESS)
    ledger.record("posts", 5, second["id"], LedgerStatus.SUCCESS)

    assert ledger.get_target_id("posts", 5) == second["id"]


def test_entries_keep_insertion_order_and_timestamps(ledger):
    ledger.record("users", 1, 10, LedgerStatus.SUCCESS)
    ledger.record("posts", 1, None, LedgerStatus.SKIPPED, "not needed")

    entries = ledger.entries()
    assert [(e.migration_type, e.status) for e in entries] == [("users", "success"), ("posts", "skipped")]
    assert entries[0].id < entries[1].id
    assert entries[0].created is not None
    assert entries[1].to_dict()["message"] == "not needed"


def test_invalid_status_is_rejected(ledger):
    with pytest.raises(ValueError):
        ledger.record("users", 1, 10, "done")


def test_summary_and_dataframe(ledger):
    ledger.record("users", 1, 10, LedgerStatus.SUCCESS)
    ledger.record("users", 2, None, LedgerStatus.FAILED, "x")
    ledger.record("users", 3, 11, LedgerStatus.SUCCESS)
    ledger.record("terms", 1, 5, LedgerStatus.SUCCESS)

    assert ledger.summary() == {
        "terms": {"success": 1},
        "users": {"failed": 1, "success": 2},
    }

    df = ledger.to_dataframe()
    assert list(df.columns) == ["id", "migration_type", "wordpress_id", "drupal_id", "status", "message", "created"]
    assert len(df) == 4
    assert df["wordpress_id"].tolist() == [1, 2, 3, 1]


def test_ledger_persists_in_file(tmp_path, store):
    path = str(tmp_path / "migration.duckdb")
    with MigrationLedger(store, quiet_logger(), path) as ledger:
        ledger.record("users", 1, 10, LedgerStatus.SUCCESS)

    with MigrationLedger(store, quiet_logger(), path) as ledger:
        assert ledger.get_target_id("users", 1) == 10
