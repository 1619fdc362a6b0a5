"""
Test doubles shared by the test modules.

``FakeWordPress`` holds a WordPress schema in an in-memory SQLite
database and hands out pymysql-like connections (dict rows, ``%s``
placeholders) so that the extractor SQL runs unchanged.
"""

import os
import re
import sqlite3
import sys

import requests

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from wordpress_migrate.utils.logger import MigrationLogger

SCHEMA = """
CREATE TABLE {p}users (
    ID INTEGER PRIMARY KEY, user_login TEXT, user_pass TEXT DEFAULT '', user_email TEXT,
    user_registered TEXT, display_name TEXT DEFAULT ''
);
CREATE TABLE {p}usermeta (
    umeta_id INTEGER PRIMARY KEY AUTOINCREMENT, user_id INTEGER, meta_key TEXT, meta_value TEXT
);
CREATE TABLE {p}posts (
    ID INTEGER PRIMARY KEY, post_author INTEGER DEFAULT 0, post_date TEXT, post_content TEXT DEFAULT '',
    post_title TEXT DEFAULT '', post_status TEXT, post_name TEXT DEFAULT '', post_modified TEXT,
    post_parent INTEGER DEFAULT 0, guid TEXT DEFAULT '', post_type TEXT, post_mime_type TEXT DEFAULT ''
);
CREATE TABLE {p}postmeta (
    meta_id INTEGER PRIMARY KEY AUTOINCREMENT, post_id INTEGER, meta_key TEXT, meta_value TEXT
);
CREATE TABLE {p}terms (
    term_id INTEGER PRIMARY KEY, name TEXT, slug TEXT, term_group INTEGER DEFAULT 0
);
CREATE TABLE {p}term_taxonomy (
    term_taxonomy_id INTEGER PRIMARY KEY, term_id INTEGER, taxonomy TEXT, description TEXT DEFAULT '',
    parent INTEGER DEFAULT 0, count INTEGER DEFAULT 0
);
CREATE TABLE {p}term_relationships (
    object_id INTEGER, term_taxonomy_id INTEGER, term_order INTEGER DEFAULT 0
);
CREATE TABLE {p}comments (
    comment_ID INTEGER PRIMARY KEY, comment_post_ID INTEGER, comment_author TEXT DEFAULT '',
    comment_author_email TEXT DEFAULT '', comment_date TEXT, comment_content TEXT DEFAULT '',
    comment_approved TEXT DEFAULT '1', comment_parent INTEGER DEFAULT 0
);
CREATE TABLE {p}commentmeta (
    meta_id INTEGER PRIMARY KEY AUTOINCREMENT, comment_id INTEGER, meta_key TEXT, meta_value TEXT
);
"""

SHOW_TABLES = re.compile(r"^\s*SHOW TABLES LIKE %s\s*$", re.IGNORECASE)

# term_taxonomy ids are offset from term ids so that joins on the wrong
# column return nothing.
TAXONOMY_ID_OFFSET = 100


class FakeCursor:
    def __init__(self, db):
        self._cursor = db.cursor()

    def execute(self, sql, params=()):
        if SHOW_TABLES.match(sql):
            sql = "SELECT name FROM sqlite_master WHERE type = 'table' AND name = %s"
        self._cursor.execute(sql.replace("%s", "?"), tuple(params))

    def fetchall(self):
        return [dict(row) for row in self._cursor.fetchall()]

    def fetchone(self):
        row = self._cursor.fetchone()
        return dict(row) if row is not None else None

    def close(self):
        self._cursor.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class FakeConnection:
    """Connection over the shared database; closing it keeps the data."""

    def __init__(self, db):
        self._db = db
        self.closed = False

    def cursor(self):
        return FakeCursor(self._db)

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class FakeWordPress:
    def __init__(self, prefix="wp_"):
        self.prefix = prefix
        self.db = sqlite3.connect(":memory:")
        self.db.row_factory = sqlite3.Row
        self.db.executescript(SCHEMA.format(p=prefix))
        self.connect_calls = []
        self.fail_connect = False

    def connect(self, **kwargs):
        self.connect_calls.append(kwargs)
        if self.fail_connect:
            raise ConnectionRefusedError("Can't connect to MySQL server")
        return FakeConnection(self.db)

    def _insert(self, table, values):
        columns = ", ".join(values)
        marks = ", ".join("?" for _ in values)
        self.db.execute(f"INSERT INTO {self.prefix}{table} ({columns}) VALUES ({marks})", tuple(values.values()))

    def _meta(self, table, id_column, object_id, meta):
        for key, value in (meta or {}).items():
            self._insert(table, {id_column: object_id, "meta_key": key, "meta_value": value})

    def add_user(self, user_id, login, email, registered="2020-01-15 08:30:00", display_name="", meta=None):
        self._insert("users", {
            "ID": user_id,
            "user_login": login,
            "user_email": email,
            "user_registered": registered,
            "display_name": display_name,
        })
        self._meta("usermeta", "user_id", user_id, meta)

    def add_post(self, post_id, title="", post_type="post", status="publish", content="", name="", author=0,
                 date="2021-05-01 10:00:00", modified="2021-05-02 11:00:00", guid="", mime="",
                 meta=None, terms=()):
        self._insert("posts", {
            "ID": post_id,
            "post_author": author,
            "post_date": date,
            "post_content": content,
            "post_title": title,
            "post_status": status,
            "post_name": name,
            "post_modified": modified,
            "guid": guid,
            "post_type": post_type,
            "post_mime_type": mime,
        })
        self._meta("postmeta", "post_id", post_id, meta)
        for term_id in terms:
            self.relate(post_id, term_id)

    def add_attachment(self, post_id, title="", mime="image/jpeg", status="inherit", guid="", content="", meta=None):
        self.add_post(post_id, title=title, post_type="attachment", status=status, content=content,
                      guid=guid, mime=mime, meta=meta)

    def add_term(self, term_id, name, taxonomy="category", slug=None, description="", parent=0, count=0):
        self._insert("terms", {"term_id": term_id, "name": name, "slug": slug or name.lower().replace(" ", "-")})
        self._insert("term_taxonomy", {
            "term_taxonomy_id": term_id + TAXONOMY_ID_OFFSET,
            "term_id": term_id,
            "taxonomy": taxonomy,
            "description": description,
            "parent": parent,
            "count": count,
        })

    def relate(self, post_id, term_id):
        self._insert("term_relationships", {
            "object_id": post_id,
            "term_taxonomy_id": term_id + TAXONOMY_ID_OFFSET,
        })

    def add_comment(self, comment_id, post_id, content, approved="1", author="Reader", meta=None):
        self._insert("comments", {
            "comment_ID": comment_id,
            "comment_post_ID": post_id,
            "comment_author": author,
            "comment_date": "2021-06-01 09:00:00",
            "comment_content": content,
            "comment_approved": approved,
        })
        self._meta("commentmeta", "comment_id", comment_id, meta)

    def drop_table(self, table):
        self.db.execute(f"DROP TABLE {self.prefix}{table}")


class FakeResponse:
    def __init__(self, content=b"", status_code=200):
        self.content = content
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)


def quiet_logger():
    return MigrationLogger(None, echo=False)


def make_config(report_dir, **sections):
    """Settings with isolated defaults; ``sections`` override whole sections."""
    from wordpress_migrate.config import apply_defaults

    config = {
        "database": {"host": "db", "port": 3306, "name": "wp", "username": "wp", "password": "secret", "prefix": "wp_"},
        "wordpress": {"base_url": ""},
        "migration": {"batch_size": 50, "dry_run": True},
        "drupal": {"base_url": ""},
        "ledger": {"path": ":memory:"},
        "reports": {"dir": str(report_dir)},
    }
    config.update(sections)
    return apply_defaults(config)
