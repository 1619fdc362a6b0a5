"""
High-level orchestration of the WordPress → Drupal migration.

This module defines a :class:`WordPressMigrationTool` class that wires
the connection, extractor, ledger, media and content processors and the
target entity store together, and exposes the operations of the
command line: testing the connection, previewing legacy data and running
migration batches.

Configuration is supplied via a JSON file path or directly as a
dictionary (see :mod:`wordpress_migrate.config`).  With
``migration.dry_run`` enabled, or without a Drupal base URL, entities
are written to an :class:`InMemoryEntityStore` and the ledger lives in
memory, so nothing is persisted.
"""

from __future__ import annotations

import os
from typing import Any, Callable, Dict, Iterable, List, Optional

from .config import apply_defaults, load_config, validate_batch_size
from .extractors.connection import WordPressConnection
from .extractors.wordpress_extractor import WordPressDataExtractor
from .migrators.content_processor import WordPressContentProcessor
from .migrators.drupal_store import DrupalJsonApiStore
from .migrators.entity_store import EntityStore
from .migrators.ledger import MigrationLedger
from .migrators.media_processor import WordPressMediaProcessor
from .migrators.memory_store import InMemoryEntityStore
from .models.results import RUN_ORDER, Category, RunResult
from .utils.errors import ConfigError, report_error, report_ok
from .utils.logger import MigrationLogger

PREVIEW_STATUSES = ("ok", "warning")


def parse_categories(types: Optional[Iterable[str]]) -> List[Category]:
    """
    Validate category names and return them in dependency order.

    :raises ConfigError: for unknown names or an empty selection.
    """
    selected = set()
    for value in types or ():
        try:
            selected.add(Category.parse(str(value)))
        except ValueError as e:
            raise ConfigError(str(e)) from None
    if not selected:
        raise ConfigError("Please select at least one migration type.")
    return [category for category in RUN_ORDER if category in selected]


def summarize(results: Dict[Category, RunResult]) -> Dict[str, int]:
    total = sum(results.values(), RunResult())
    return {
        "processed": total.processed,
        "success": total.success,
        "failed": total.failed,
        "skipped": total.skipped,
    }


class WordPressMigrationTool:
    """
    Entry point object for all migration operations.

    :param config: Settings mapping; defaults are filled in.
    :param config_file: JSON settings file, used when ``config`` is not given.
    :param logger: Logger; by default one writing to ``reports.dir``.
    :param store: Target entity store; by default chosen from the settings.
    :param connect_fn: Database connect function passed to the connection.
    :param http_get: Download function passed to the media processor.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        *,
        config_file: Optional[str] = None,
        logger: Optional[MigrationLogger] = None,
        store: Optional[EntityStore] = None,
        connect_fn: Optional[Callable[..., Any]] = None,
        http_get: Optional[Callable[..., Any]] = None,
    ) -> None:
        if config is None:
            config = load_config(config_file)
        self.config = apply_defaults(config)
        self.logger = logger or MigrationLogger(self.config["reports"]["dir"])

        self.connection = WordPressConnection(self.config, self.logger, connect_fn=connect_fn)
        self.extractor = WordPressDataExtractor(self.connection, self.logger)
        self.store = store or self._build_store()
        self.ledger = MigrationLedger(self.store, self.logger, self._ledger_path())

        media_kwargs = {"http_get": http_get} if http_get else {}
        self.media_processor = WordPressMediaProcessor(self.store, self.logger, self.config, **media_kwargs)
        self.processor = WordPressContentProcessor(
            self.extractor,
            self.media_processor,
            self.store,
            self.ledger,
            self.logger,
            self.config,
        )

    @property
    def dry_run(self) -> bool:
        return bool(self.config["migration"].get("dry_run"))

    @property
    def report_dir(self) -> str:
        return self.config["reports"]["dir"]

    def _build_store(self) -> EntityStore:
        drupal = self.config["drupal"]
        if self.dry_run:
            self.logger.info("Dry-run: entities are kept in memory only")
            return InMemoryEntityStore()
        if not drupal.get("base_url"):
            self.logger.warning("No Drupal base URL configured; entities are kept in memory only")
            return InMemoryEntityStore()
        return DrupalJsonApiStore(drupal, self.logger)

    def _ledger_path(self) -> str:
        if self.dry_run or isinstance(self.store, InMemoryEntityStore):
            return ":memory:"
        path = self.config["ledger"]["path"]
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        return path

    def close(self) -> None:
        self.ledger.close()

    def __enter__(self) -> "WordPressMigrationTool":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def log_message(self, message: str, level: str = "INFO") -> None:
        self.logger.log_message(message, level)

    def test_connection(self) -> Dict[str, Any]:
        return self.connection.test_connection()

    def preview(self, limit: int = 5) -> Dict[str, Any]:
        """
        Short listing of what would be migrated.

        Returns the connection status and, when the database is usable,
        one list of summary strings per category.
        """
        status = self.test_connection()
        if status["status"] not in PREVIEW_STATUSES:
            report_error("CONNECTION", {"error": status["message"]}, report_dir=self.report_dir)
            return {"status": "error", "message": status["message"]}

        users = self.extractor.get_users(limit)
        posts = self.extractor.get_posts("post", limit)
        pages = self.extractor.get_posts("page", limit)
        media = self.extractor.get_media(limit)
        categories = self.extractor.get_terms("category", limit * 2)
        tags = self.extractor.get_terms("post_tag", limit * 2)

        self.logger.info(
            f"Preview data: Users: {len(users)}, Posts: {len(posts)}, Pages: {len(pages)}, "
            f"Media: {len(media)}, Categories: {len(categories)}, Tags: {len(tags)}"
        )
        return {
            "status": status["status"],
            "message": status["message"],
            "users": [f"{u.user_login} ({u.user_email})" for u in users.values()],
            "posts": [f"{p.post_title} ({p.post_date})" for p in posts.values()],
            "pages": [f"{p.post_title} ({p.post_date})" for p in pages.values()],
            "media": [f"{m.post_title} ({m.post_mime_type})" for m in media.values()],
            "categories": [f"{t.name} ({t.count} posts)" for t in categories.values()],
            "tags": [f"{t.name} ({t.count} posts)" for t in tags.values()],
        }

    def run(
        self,
        types: Optional[Iterable[str]] = None,
        batch_size: Optional[int] = None,
        offset: int = 0,
    ) -> Dict[Category, RunResult]:
        """
        Process one batch for each selected category.

        :param types: Category names; all categories when ``None``.
        :param batch_size: Records per category; ``migration.batch_size``
            when ``None``.
        :param offset: Pagination offset applied to every category.
        :raises ConfigError: on unknown categories or an invalid batch size.
        """
        categories = parse_categories(types if types is not None else [c.value for c in RUN_ORDER])
        batch_size = validate_batch_size(batch_size if batch_size is not None else self.config["migration"]["batch_size"])
        offset = max(0, int(offset or 0))

        results: Dict[Category, RunResult] = {}
        for category in categories:
            self.log_message(f"Migrating {category.value} (batch size {batch_size}, offset {offset})")
            try:
                result = self.processor.process(category, batch_size, offset)
            except Exception as e:
                self.log_message(f"Migration of {category.value} aborted: {e}", "ERROR")
                report_error("CATEGORY_FAILED", {"category": category.value}, e, report_dir=self.report_dir)
                result = RunResult()
            else:
                report_ok("CATEGORY_COMPLETED", {"category": category.value}, result.to_dict(), report_dir=self.report_dir)
                self.log_message(
                    f"{category.value}: {result.success} succeeded, {result.failed} failed, {result.skipped} skipped",
                    "SUCCESS" if not result.failed else "WARNING",
                )
            results[category] = result

        totals = summarize(results)
        self.log_message(
            f"Migration batch finished: {totals['processed']} processed, {totals['success']} succeeded, "
            f"{totals['failed']} failed, {totals['skipped']} skipped"
        )
        return results

    def process_batch_request(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Handle a JSON batch request ``{"migration_types": [...],
        "batch_size": n, "offset": n}``.

        :return: Counts keyed by category name, or ``{"error": message}``.
        """
        try:
            results = self.run(
                payload.get("migration_types") or [],
                payload.get("batch_size"),
                payload.get("offset") or 0,
            )
        except ConfigError as e:
            self.log_message(f"Rejected batch request: {e}", "ERROR")
            return {"error": str(e)}
        return {category.value: result.to_dict() for category, result in results.items()}
