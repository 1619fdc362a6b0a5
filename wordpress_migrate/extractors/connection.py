"""
Connection to the WordPress MySQL database.

A fresh connection is opened for every operation; nothing is cached
between calls, so a dropped link or changed settings are picked up on
the next call.  There is no retry: a failed connect is reported at once.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

import pymysql
import pymysql.cursors

from ..utils.errors import ConnectError
from ..utils.logger import MigrationLogger

REQUIRED_TABLES = (
    "posts",
    "users",
    "postmeta",
    "usermeta",
    "terms",
    "term_taxonomy",
    "term_relationships",
)

DEFAULT_PREFIX = "wp_"


class WordPressConnection:
    """
    Opens connections to the WordPress database described by the
    ``database`` section of the settings.

    :param config: The full settings mapping.  It is read on every call.
    :param logger: Shared migration logger.
    :param connect_fn: Factory used to open the connection; defaults to
        :func:`pymysql.connect`.
    """

    def __init__(
        self,
        config: Dict[str, Any],
        logger: MigrationLogger,
        *,
        connect_fn: Optional[Callable[..., Any]] = None,
    ) -> None:
        self.config = config
        self.logger = logger
        self.connect_fn = connect_fn or pymysql.connect

    @property
    def settings(self) -> Dict[str, Any]:
        return self.config.get("database", {})

    def get_connection(self) -> Any:
        """
        Open and check a new connection.

        :return: A DB-API connection whose cursors return dict rows.
        :raises ConnectError: if the database cannot be reached.
        """
        settings = self.settings
        try:
            connection = self.connect_fn(
                host=settings.get("host") or "localhost",
                port=int(settings.get("port") or 3306),
                database=settings.get("name"),
                user=settings.get("username"),
                password=settings.get("password") or "",
                charset="utf8mb4",
                init_command="SET NAMES utf8mb4",
                cursorclass=pymysql.cursors.DictCursor,
            )
            with connection.cursor() as cursor:
                cursor.execute("SELECT 1")
                cursor.fetchone()
        except Exception as e:
            self.logger.error(f"Failed to connect to WordPress database: {e}")
            raise ConnectError(str(e)) from e

        self.logger.debug("Successfully connected to WordPress database.")
        return connection

    def get_table_prefix(self) -> str:
        return self.settings.get("prefix") or DEFAULT_PREFIX

    def get_table_name(self, table: str) -> str:
        return self.get_table_prefix() + table

    def test_connection(self) -> Dict[str, Any]:
        """
        Check that the database is reachable and looks like WordPress.

        :return: ``{"status": "ok" | "warning" | "error", "message": ...}``;
            ``ok`` results carry ``stats`` with published post and user counts.
        """
        try:
            connection = self.get_connection()
        except ConnectError:
            return {
                "status": "error",
                "message": "Failed to connect to WordPress database. Please check your settings.",
            }

        try:
            with connection:
                with connection.cursor() as cursor:
                    missing_tables: List[str] = []
                    for table in REQUIRED_TABLES:
                        table_name = self.get_table_name(table)
                        cursor.execute("SHOW TABLES LIKE %s", (table_name,))
                        if not cursor.fetchone():
                            missing_tables.append(table_name)

                    if missing_tables:
                        return {
                            "status": "warning",
                            "message": "Connected to database but some WordPress tables are missing: "
                            + ", ".join(missing_tables),
                            "missing_tables": missing_tables,
                        }

                    posts_table = self.get_table_name("posts")
                    users_table = self.get_table_name("users")
                    cursor.execute(f"SELECT COUNT(*) AS total FROM {posts_table} WHERE post_status = 'publish'")
                    post_count = int(cursor.fetchone()["total"])
                    cursor.execute(f"SELECT COUNT(*) AS total FROM {users_table}")
                    user_count = int(cursor.fetchone()["total"])
        except Exception as e:
            return {
                "status": "error",
                "message": f"Database connection test failed: {e}",
            }

        return {
            "status": "ok",
            "message": f"Successfully connected to WordPress database. Found {post_count} published posts and {user_count} users.",
            "stats": {"posts": post_count, "users": user_count},
        }
