"""
Durable migration ledger backed by DuckDB.

The ``wordpress_migrate_log`` table maps ``(migration_type, wordpress_id)``
to the id of the Drupal entity created for it, together with a status and
a message.  It is the only state the migration owns: re-running a batch
consults it to skip work that already succeeded.

Rows are only ever inserted or deleted.  The latest ``success`` row for a
legacy id is the authoritative one.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

import duckdb
import pandas as pd

from ..models.results import LedgerEntry, LedgerStatus
from ..utils.logger import MigrationLogger
from .entity_store import EntityStore

TABLE_NAME = "wordpress_migrate_log"

# Ledger migration_type -> Drupal entity type used for the existence check.
ENTITY_TYPES: Dict[str, str] = {
    "users": "user",
    "posts": "node",
    "media": "media",
    "terms": "taxonomy_term",
}

SCHEMA = f"""
CREATE SEQUENCE IF NOT EXISTS {TABLE_NAME}_id_seq START 1;
CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
    id BIGINT PRIMARY KEY DEFAULT nextval('{TABLE_NAME}_id_seq'),
    migration_type VARCHAR NOT NULL,
    wordpress_id BIGINT NOT NULL,
    drupal_id BIGINT,
    status VARCHAR NOT NULL,
    message VARCHAR,
    created TIMESTAMP NOT NULL
);
"""

COLUMNS = "id, migration_type, wordpress_id, drupal_id, status, message, created"


def initialize_schema(con: duckdb.DuckDBPyConnection) -> None:
    for statement in SCHEMA.split(";"):
        if statement.strip():
            con.execute(statement)


class MigrationLedger:
    """
    Idempotency and audit log of the migration.

    :param store: Target entity store, used to verify that a recorded
        entity still exists.
    :param logger: Shared migration logger.
    :param path: DuckDB database file, or ``":memory:"``.
    :param con: An already open DuckDB connection; takes precedence over
        ``path``.
    """

    def __init__(
        self,
        store: EntityStore,
        logger: MigrationLogger,
        path: str = ":memory:",
        *,
        con: Optional[duckdb.DuckDBPyConnection] = None,
    ) -> None:
        self.store = store
        self.logger = logger
        self.path = path
        self.con = con if con is not None else duckdb.connect(database=path, read_only=False)
        initialize_schema(self.con)

    def close(self) -> None:
        self.con.close()

    def __enter__(self) -> "MigrationLedger":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def _latest_success(self, migration_type: str, legacy_id: int) -> Optional[tuple]:
        return self.con.execute(
            f"SELECT id, drupal_id FROM {TABLE_NAME} "
            "WHERE migration_type = ? AND wordpress_id = ? AND status = ? "
            "ORDER BY id DESC LIMIT 1",
            [migration_type, int(legacy_id), LedgerStatus.SUCCESS.value],
        ).fetchone()

    def is_migrated(self, migration_type: str, legacy_id: int) -> bool:
        """
        Whether ``legacy_id`` was migrated and its Drupal entity still exists.

        A success row whose entity has been deleted on the Drupal side is
        removed, and the item is reported as not migrated so that the next
        run creates it again.
        """
        row = self._latest_success(migration_type, legacy_id)
        if row is None:
            return False

        entry_id, drupal_id = row
        entity_type = ENTITY_TYPES[migration_type]
        if drupal_id is not None and self.store.exists(entity_type, int(drupal_id)):
            return True

        self.logger.info(
            f"Removing stale ledger entry {entry_id}: {entity_type} {drupal_id} "
            f"for WordPress {migration_type} {legacy_id} no longer exists"
        )
        self.con.execute(f"DELETE FROM {TABLE_NAME} WHERE id = ?", [entry_id])
        return False

    def get_target_id(self, migration_type: str, legacy_id: int) -> Optional[int]:
        """Drupal id recorded for ``legacy_id``, without checking that it exists."""
        row = self._latest_success(migration_type, legacy_id)
        if row is None or row[1] is None:
            return None
        return int(row[1])

    def record(
        self,
        migration_type: str,
        legacy_id: int,
        target_id: Optional[int],
        status: LedgerStatus | str,
        message: str = "",
    ) -> None:
        status = LedgerStatus(status)
        self.con.execute(
            f"INSERT INTO {TABLE_NAME} (migration_type, wordpress_id, drupal_id, status, message, created) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            [
                migration_type,
                int(legacy_id),
                int(target_id) if target_id is not None else None,
                status.value,
                message or "",
                datetime.now(),
            ],
        )

    def entries(self, migration_type: Optional[str] = None, legacy_id: Optional[int] = None) -> List[LedgerEntry]:
        sql = f"SELECT {COLUMNS} FROM {TABLE_NAME}"
        conditions = []
        params: List[Any] = []
        if migration_type is not None:
            conditions.append("migration_type = ?")
            params.append(migration_type)
        if legacy_id is not None:
            conditions.append("wordpress_id = ?")
            params.append(int(legacy_id))
        if conditions:
            sql += " WHERE " + " AND ".join(conditions)
        sql += " ORDER BY id"
        return [LedgerEntry(*row) for row in self.con.execute(sql, params).fetchall()]

    def summary(self) -> Dict[str, Dict[str, int]]:
        """Row counts per migration type and status."""
        rows = self.con.execute(
            f"SELECT migration_type, status, COUNT(*) FROM {TABLE_NAME} "
            "GROUP BY migration_type, status ORDER BY migration_type, status"
        ).fetchall()
        summary: Dict[str, Dict[str, int]] = {}
        for migration_type, status, total in rows:
            summary.setdefault(migration_type, {})[status] = int(total)
        return summary

    def to_dataframe(self) -> pd.DataFrame:
        return self.con.execute(f"SELECT {COLUMNS} FROM {TABLE_NAME} ORDER BY id").df()
