import importlib.util
import os
import sys

# Ensure project root is on sys.path for imports when running tests directly
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import duckdb
import pandas as pd

from fakes import quiet_logger
from wordpress_migrate.migrators import InMemoryEntityStore, MigrationLedger
from wordpress_migrate.models import LedgerStatus


def _load_script(name):
    path = os.path.join(PROJECT_ROOT, "scripts", f"{name}.py")
    spec = importlib.util.spec_from_file_location(name, path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_initialize_ledger_creates_table_once(tmp_path, capsys):
    script = _load_script("initialize_ledger")
    db_path = str(tmp_path / "data" / "migration.duckdb")

    assert script.initialize_ledger(db_path) is True
    assert script.initialize_ledger(db_path) is False

    con = duckdb.connect(db_path)
    try:
        assert ("wordpress_migrate_log",) in con.execute("SHOW TABLES").fetchall()
    finally:
        con.close()
    assert "já existe" in capsys.readouterr().out


def test_export_migration_log_filters(tmp_path, capsys):
    script = _load_script("export_migration_log")
    db_path = str(tmp_path / "migration.duckdb")
    with MigrationLedger(InMemoryEntityStore(), quiet_logger(), db_path) as ledger:
        ledger.record("users", 1, 10, LedgerStatus.SUCCESS)
        ledger.record("posts", 4, None, LedgerStatus.FAILED, "Failed to create node")
        ledger.record("posts", 5, 20, LedgerStatus.SUCCESS)

    output = str(tmp_path / "out" / "failed.csv")
    assert script.export_migration_log(db_path, output, migration_type="posts", failed_only=True) == 1

    df = pd.read_csv(output)
    assert df["wordpress_id"].tolist() == [4]
    assert df["message"].tolist() == ["Failed to create node"]

    out = capsys.readouterr().out
    assert "posts: failed=1, success=1" in out
    assert "users: success=1" in out
