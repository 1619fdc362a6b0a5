"""
Exceptions and structured run reporting for the migration.

The exception classes describe the failure taxonomy used across the
services: a legacy database that cannot be reached (:class:`ConnectError`),
a single record that could not be migrated (:class:`ItemError`), a media
file that could not be downloaded or stored (:class:`ResourceError`) and
invalid settings (:class:`ConfigError`).

Besides the exceptions, the module centralizes the writing of run
report entries.  Each entry is appended to a JSON Lines file under the
reports directory so that the information can be reviewed or parsed
after a run.

``report_error``
    Record an error for a category or item.  An optional exception can be
    supplied and will be serialized to the log.

``report_ok``
    Record a successful step.  Additional key/value information can be
    attached to the entry via the ``extra`` parameter.

The ``ERRORS`` dictionary maps error or event codes to human readable
messages.  Codes not present in the dictionary fall back to the code itself.
"""

from __future__ import annotations

import json
import os
from typing import Any, Dict, Optional


class MigrationError(Exception):
    """Base class for all migration errors."""


class ConnectError(MigrationError):
    """The WordPress database is unreachable or rejected the credentials."""


class ItemError(MigrationError):
    """A single legacy record could not be mapped, created or updated."""


class ResourceError(ItemError):
    """A media file could not be downloaded or written to storage."""


class ConfigError(MigrationError):
    """Settings or command line input are invalid."""


class PreFlightCheckError(MigrationError):
    """The target site is not reachable or not ready for the migration."""


# Mapping of event codes used throughout the migration to descriptive messages.
# The keys include both error and success codes as the same lookup is used by
# :func:`report_error` and :func:`report_ok`.
ERRORS: Dict[str, str] = {
    "CONNECTION": "Failed to connect to the WordPress database",
    "CATEGORY_FAILED": "Migration category aborted",
    "CATEGORY_COMPLETED": "Migration category processed",
    "MEDIA_DOWNLOAD": "Failed to download media file",
    "ITEM_FAILED": "Failed to migrate item",
}

DEFAULT_REPORT_DIR = os.path.join("reports", "migration")


def _write_jsonl(report_dir: str, filename: str, data: Dict[str, Any]) -> None:
    """Append ``data`` as a JSON object followed by a newline to ``report_dir/filename``."""
    os.makedirs(report_dir, exist_ok=True)
    with open(os.path.join(report_dir, filename), "a", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, default=str)
        f.write("\n")


def report_error(
    code: str,
    item: Dict[str, Any],
    exc: Optional[BaseException] = None,
    *,
    report_dir: str = DEFAULT_REPORT_DIR,
) -> Dict[str, Any]:
    """Log an error event for ``item``.

    Parameters
    ----------
    code:
        A key identifying the type of error.  If ``code`` is present in
        :data:`ERRORS` its value will be used as the message.
    item:
        Context of the error, typically ``{"category": ..., "legacy_id": ...}``.
    exc:
        Optional exception instance that triggered the error.  The string
        representation of the exception will be included in the log entry.
    report_dir:
        Directory receiving ``errors.jsonl``.

    Returns
    -------
    dict
        The entry that was written.
    """
    entry: Dict[str, Any] = {"code": code, "message": ERRORS.get(code, code)}
    entry.update(item)
    if exc is not None:
        entry["error"] = str(exc)
    _write_jsonl(report_dir, "errors.jsonl", entry)
    return entry


def report_ok(
    code: str,
    item: Dict[str, Any],
    extra: Optional[Dict[str, Any]] = None,
    *,
    report_dir: str = DEFAULT_REPORT_DIR,
) -> Dict[str, Any]:
    """Log a successful event for ``item``.

    Parameters
    ----------
    code:
        A key identifying the type of event.
    item:
        Context of the event.
    extra:
        Optional dictionary of additional fields to merge into the log entry.
    report_dir:
        Directory receiving ``success.jsonl``.
    """
    entry: Dict[str, Any] = {"code": code, "message": ERRORS.get(code, code)}
    entry.update(item)
    if extra:
        entry.update(extra)
    _write_jsonl(report_dir, "success.jsonl", entry)
    return entry
