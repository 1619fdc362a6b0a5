"""
Read-only queries against the WordPress database.

Each public method opens its own connection, runs one paginated query
ordered by ascending legacy id (``LIMIT limit OFFSET offset``) and turns
the rows into typed records keyed by their legacy id.  Every record is
enriched with its meta key/value pairs, one lookup per record.

Extraction fails soft: any database error is logged, remembered in
:attr:`WordPressDataExtractor.diagnostics` and an empty mapping is
returned instead of raising.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar

from ..models.records import (
    LegacyAttachment,
    LegacyComment,
    LegacyPost,
    LegacyRecord,
    LegacyTerm,
    LegacyUser,
)
from ..utils.logger import MigrationLogger
from .connection import WordPressConnection

R = TypeVar("R", bound=LegacyRecord)

POST_STATUSES = ("publish", "draft", "private")
MEDIA_STATUSES = ("inherit", "publish", "draft")


def _in_clause(values: Sequence[str]) -> str:
    return ", ".join(f"'{v}'" for v in values)


class WordPressDataExtractor:
    """
    Extracts users, posts, media, terms and comments from WordPress.

    :param connection: Connection service for the WordPress database.
    :param logger: Shared migration logger.
    """

    def __init__(self, connection: WordPressConnection, logger: MigrationLogger) -> None:
        self.connection = connection
        self.logger = logger
        self.diagnostics: List[Dict[str, Any]] = []

    def _add_diagnostic(self, operation: str, exc: BaseException) -> None:
        self.diagnostics.append({
            "operation": operation,
            "message": str(exc),
            "timestamp": datetime.now().isoformat(),
        })
        self.logger.error(f"Error retrieving WordPress {operation}: {exc}")

    @staticmethod
    def _fetch_all(cursor: Any, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        cursor.execute(sql, tuple(params))
        return list(cursor.fetchall())

    def _fetch_meta(self, cursor: Any, table: str, id_column: str, object_id: int) -> Dict[str, Any]:
        rows = self._fetch_all(
            cursor,
            f"SELECT meta_key, meta_value FROM {table} WHERE {id_column} = %s",
            (object_id,),
        )
        return {row["meta_key"]: row["meta_value"] for row in rows}

    @staticmethod
    def _build(model: Type[R], rows: List[Dict[str, Any]], id_column: str) -> Dict[int, R]:
        records: Dict[int, R] = {}
        for row in rows:
            record = model(**row)
            records[int(row[id_column])] = record
        return records

    def get_users(self, limit: int = 100, offset: int = 0) -> Dict[int, LegacyUser]:
        """
        Users with their ``usermeta``.

        :param limit: Maximum number of users.
        :param offset: Pagination offset.
        :return: Users keyed by ``ID`` in ascending order.
        """
        try:
            connection = self.connection.get_connection()
            users_table = self.connection.get_table_name("users")
            usermeta_table = self.connection.get_table_name("usermeta")
            self.logger.debug(f"Querying users table: {users_table}")

            with connection:
                with connection.cursor() as cursor:
                    rows = self._fetch_all(
                        cursor,
                        f"SELECT * FROM {users_table} ORDER BY ID ASC LIMIT %s OFFSET %s",
                        (int(limit), int(offset)),
                    )
                    for row in rows:
                        row["meta"] = self._fetch_meta(cursor, usermeta_table, "user_id", row["ID"])

            self.logger.info(f"Found {len(rows)} users")
            return self._build(LegacyUser, rows, "ID")
        except Exception as e:
            self._add_diagnostic("users", e)
            return {}

    def get_posts(self, post_type: str = "post", limit: int = 100, offset: int = 0) -> Dict[int, LegacyPost]:
        """
        Posts of ``post_type`` with their ``postmeta``, categories and tags.

        Only ``publish``, ``draft`` and ``private`` posts are read, unless
        that query returns nothing; in that case the page is read again
        without any status filter, for sites using custom statuses.
        """
        try:
            connection = self.connection.get_connection()
            posts_table = self.connection.get_table_name("posts")
            postmeta_table = self.connection.get_table_name("postmeta")
            self.logger.debug(f"Querying posts table: {posts_table} for post_type: {post_type}")

            with connection:
                with connection.cursor() as cursor:
                    self._log_post_distribution(cursor, posts_table)
                    rows = self._fetch_all(
                        cursor,
                        f"SELECT * FROM {posts_table} WHERE post_type = %s AND post_status IN ({_in_clause(POST_STATUSES)}) "
                        "ORDER BY ID ASC LIMIT %s OFFSET %s",
                        (post_type, int(limit), int(offset)),
                    )
                    if not rows:
                        self.logger.info("No posts found with status filter, trying without status filter")
                        rows = self._fetch_all(
                            cursor,
                            f"SELECT * FROM {posts_table} WHERE post_type = %s ORDER BY ID ASC LIMIT %s OFFSET %s",
                            (post_type, int(limit), int(offset)),
                        )

                    for row in rows:
                        row["meta"] = self._fetch_meta(cursor, postmeta_table, "post_id", row["ID"])
                        row["categories"] = self._fetch_post_terms(cursor, row["ID"], "category")
                        row["tags"] = self._fetch_post_terms(cursor, row["ID"], "post_tag")

            self.logger.info(f"Found {len(rows)} posts of type {post_type}")
            return self._build(LegacyPost, rows, "ID")
        except Exception as e:
            self._add_diagnostic("posts", e)
            return {}

    def get_media(self, limit: int = 100, offset: int = 0) -> Dict[int, LegacyAttachment]:
        """
        Attachments with their ``postmeta``.

        Same status fallback as :meth:`get_posts`, with ``inherit``,
        ``publish`` and ``draft`` as the expected statuses.
        """
        try:
            connection = self.connection.get_connection()
            posts_table = self.connection.get_table_name("posts")
            postmeta_table = self.connection.get_table_name("postmeta")

            with connection:
                with connection.cursor() as cursor:
                    rows = self._fetch_all(
                        cursor,
                        f"SELECT * FROM {posts_table} WHERE post_type = 'attachment' "
                        f"AND post_status IN ({_in_clause(MEDIA_STATUSES)}) ORDER BY ID ASC LIMIT %s OFFSET %s",
                        (int(limit), int(offset)),
                    )
                    if not rows:
                        self.logger.info("No media found with status filter, trying without status filter")
                        rows = self._fetch_all(
                            cursor,
                            f"SELECT * FROM {posts_table} WHERE post_type = 'attachment' ORDER BY ID ASC LIMIT %s OFFSET %s",
                            (int(limit), int(offset)),
                        )

                    for row in rows:
                        row["meta"] = self._fetch_meta(cursor, postmeta_table, "post_id", row["ID"])

            self.logger.info(f"Found {len(rows)} media files")
            return self._build(LegacyAttachment, rows, "ID")
        except Exception as e:
            self._add_diagnostic("media", e)
            return {}

    def get_terms(self, taxonomy: str = "category", limit: int = 100, offset: int = 0) -> Dict[int, LegacyTerm]:
        """
        Terms of ``taxonomy`` joined with their taxonomy row, which carries
        ``description``, ``parent`` and ``count``.
        """
        try:
            connection = self.connection.get_connection()
            terms_table = self.connection.get_table_name("terms")
            term_taxonomy_table = self.connection.get_table_name("term_taxonomy")
            self.logger.debug(f"Querying terms for taxonomy: {taxonomy}")

            with connection:
                with connection.cursor() as cursor:
                    self._log_taxonomy_distribution(cursor, term_taxonomy_table)
                    rows = self._fetch_all(
                        cursor,
                        f"SELECT t.*, tt.term_taxonomy_id, tt.taxonomy, tt.description, tt.parent, tt.count "
                        f"FROM {terms_table} t "
                        f"JOIN {term_taxonomy_table} tt ON t.term_id = tt.term_id "
                        "WHERE tt.taxonomy = %s ORDER BY t.term_id ASC LIMIT %s OFFSET %s",
                        (taxonomy, int(limit), int(offset)),
                    )

            self.logger.info(f"Found {len(rows)} terms in taxonomy {taxonomy}")
            return self._build(LegacyTerm, rows, "term_id")
        except Exception as e:
            self._add_diagnostic("terms", e)
            return {}

    def get_comments(self, post_id: Optional[int] = None, limit: int = 100, offset: int = 0) -> Dict[int, LegacyComment]:
        """Approved comments, optionally for one post, with ``commentmeta``."""
        try:
            connection = self.connection.get_connection()
            comments_table = self.connection.get_table_name("comments")
            commentmeta_table = self.connection.get_table_name("commentmeta")

            sql = f"SELECT * FROM {comments_table} WHERE comment_approved = '1'"
            params: List[Any] = []
            if post_id:
                sql += " AND comment_post_ID = %s"
                params.append(int(post_id))
            sql += " ORDER BY comment_ID ASC LIMIT %s OFFSET %s"
            params.extend([int(limit), int(offset)])

            with connection:
                with connection.cursor() as cursor:
                    rows = self._fetch_all(cursor, sql, params)
                    for row in rows:
                        row["meta"] = self._fetch_meta(cursor, commentmeta_table, "comment_id", row["comment_ID"])

            return self._build(LegacyComment, rows, "comment_ID")
        except Exception as e:
            self._add_diagnostic("comments", e)
            return {}

    def _fetch_post_terms(self, cursor: Any, post_id: int, taxonomy: str) -> List[Dict[str, Any]]:
        terms_table = self.connection.get_table_name("terms")
        term_taxonomy_table = self.connection.get_table_name("term_taxonomy")
        term_relationships_table = self.connection.get_table_name("term_relationships")
        return self._fetch_all(
            cursor,
            "SELECT t.term_id, t.name, t.slug "
            f"FROM {terms_table} t "
            f"JOIN {term_taxonomy_table} tt ON t.term_id = tt.term_id "
            f"JOIN {term_relationships_table} tr ON tt.term_taxonomy_id = tr.term_taxonomy_id "
            "WHERE tt.taxonomy = %s AND tr.object_id = %s ORDER BY t.term_id ASC",
            (taxonomy, post_id),
        )

    def _log_post_distribution(self, cursor: Any, posts_table: str) -> None:
        rows = self._fetch_all(
            cursor,
            f"SELECT post_type, post_status, COUNT(*) AS total FROM {posts_table} "
            "GROUP BY post_type, post_status ORDER BY post_type, post_status",
        )
        for row in rows:
            self.logger.debug(
                f"Found {row['total']} posts of type \"{row['post_type']}\" with status \"{row['post_status']}\""
            )

    def _log_taxonomy_distribution(self, cursor: Any, term_taxonomy_table: str) -> None:
        rows = self._fetch_all(
            cursor,
            f"SELECT taxonomy, COUNT(*) AS total FROM {term_taxonomy_table} GROUP BY taxonomy ORDER BY taxonomy",
        )
        for row in rows:
            self.logger.debug(f"Found {row['total']} terms in taxonomy \"{row['taxonomy']}\"")
