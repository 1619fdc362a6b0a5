"""
Orchestration of the WordPress → Drupal migration, one category at a time.

:class:`WordPressContentProcessor` drives the same loop for every
content category: extract a page of legacy records, skip the ones the
ledger already knows, create the Drupal entity for the others and write
the outcome back to the ledger.  What differs per category (how records
are extracted, which ledger type they use, how an entity is built) lives
in a :class:`CategoryStrategy`, and the processor holds one strategy per
:class:`~wordpress_migrate.models.results.Category`.

Posts and pages are not simply skipped: when the ledger already maps them
to a node that still exists, the node is updated in place.  Such an
update is counted as ``skipped`` because nothing new was created.

A failing record never stops the batch.  The exception is logged, a
``failed`` ledger row is written with its message, an ``ITEM_FAILED``
entry is appended to ``errors.jsonl`` and the loop moves on.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional

from ..extractors.wordpress_extractor import WordPressDataExtractor
from ..models.records import LegacyAttachment, LegacyPost, LegacyRecord, LegacyTerm, LegacyUser, TermRef
from ..models.results import Category, LedgerStatus, RunResult
from ..utils.errors import DEFAULT_REPORT_DIR, ItemError, MigrationError, report_error
from ..utils.logger import MigrationLogger
from ..utils.text import LANGUAGE_META_KEYS, UNDEFINED_LANGCODE, build_alias, map_langcode, to_timestamp
from .entity_store import Entity, EntityStore
from .ledger import MigrationLedger
from .media_processor import WordPressMediaProcessor

VOCABULARIES = {
    "category": "wordpress_categories",
    "post_tag": "wordpress_tags",
}

NODE_BUNDLES = {
    "wordpress_post": "WordPress Post",
    "wordpress_page": "WordPress Page",
}
NODE_BUNDLE_FIELDS = ("body", "field_categories", "field_tags")

USER_PROFILE_FIELDS = (
    ("field_display_name", "display_name"),
    ("field_first_name", "first_name"),
    ("field_last_name", "last_name"),
)


def vocabulary_name(taxonomy: str) -> str:
    return VOCABULARIES.get(taxonomy, f"wordpress_{taxonomy}")


def node_bundle(post_type: str) -> str:
    return "wordpress_page" if post_type == "page" else "wordpress_post"


def resolve_langcode(record: LegacyRecord) -> Optional[str]:
    """Drupal langcode from the first non-empty language meta key."""
    for key in LANGUAGE_META_KEYS:
        value = record.meta_value(key)
        if value:
            return map_langcode(value)
    return None


@dataclass(frozen=True)
class CategoryStrategy:
    """
    How one content category is migrated.

    ``migrate`` receives the legacy record and whether the ledger already
    holds a live entity for it; it returns the Drupal entity or ``None``.
    """
    migration_type: str
    entity_label: str
    extract: Callable[[int, int], Mapping[int, LegacyRecord]]
    migrate: Callable[[Any, bool], Optional[Entity]]
    update_existing: bool = False
    prepare: Optional[Callable[[], None]] = None


class WordPressContentProcessor:
    """
    :param extractor: Reads legacy records.
    :param media_processor: Downloads attachments and creates media.
    :param store: Target entity store.
    :param ledger: Migration ledger.
    :param logger: Shared migration logger.
    :param config: The full settings mapping.
    """

    def __init__(
        self,
        extractor: WordPressDataExtractor,
        media_processor: WordPressMediaProcessor,
        store: EntityStore,
        ledger: MigrationLedger,
        logger: MigrationLogger,
        config: Dict[str, Any],
    ) -> None:
        self.extractor = extractor
        self.media_processor = media_processor
        self.store = store
        self.ledger = ledger
        self.logger = logger
        self.config = config
        self._content_types_checked = False

        self.strategies: Dict[Category, CategoryStrategy] = {
            Category.USERS: CategoryStrategy(
                migration_type=Category.USERS.ledger_type,
                entity_label="user",
                extract=lambda limit, offset: self.extractor.get_users(limit, offset),
                migrate=self.create_user,
            ),
            Category.CATEGORIES: self._terms_strategy("category"),
            Category.TAGS: self._terms_strategy("post_tag"),
            Category.MEDIA: CategoryStrategy(
                migration_type=Category.MEDIA.ledger_type,
                entity_label="media",
                extract=lambda limit, offset: self.extractor.get_media(limit, offset),
                migrate=self._migrate_media,
            ),
            Category.POSTS: self._posts_strategy("post"),
            Category.PAGES: self._posts_strategy("page"),
        }
        missing = [c.value for c in Category if c not in self.strategies]
        if missing:
            raise MigrationError(f"No migration strategy for: {', '.join(missing)}")

    ###########################################################################
    # Strategies
    ###########################################################################

    def _terms_strategy(self, taxonomy: str) -> CategoryStrategy:
        return CategoryStrategy(
            migration_type=Category.CATEGORIES.ledger_type,
            entity_label="term",
            extract=lambda limit, offset: self.extractor.get_terms(taxonomy, limit, offset),
            migrate=lambda term, migrated: self.create_term(term, taxonomy),
            prepare=lambda: self.ensure_vocabulary(taxonomy),
        )

    def _posts_strategy(self, post_type: str) -> CategoryStrategy:
        return CategoryStrategy(
            migration_type=Category.POSTS.ledger_type,
            entity_label="node",
            extract=lambda limit, offset: self.extractor.get_posts(post_type, limit, offset),
            migrate=self._migrate_post,
            update_existing=True,
            prepare=self.ensure_content_types,
        )

    ###########################################################################
    # Batch loop
    ###########################################################################

    def process(self, category: Category, batch_size: int = 100, offset: int = 0) -> RunResult:
        """Migrate one page of ``category`` and return its counts."""
        return self._run(self.strategies[Category(category)], batch_size, offset)

    def process_users(self, batch_size: int = 100, offset: int = 0) -> RunResult:
        return self.process(Category.USERS, batch_size, offset)

    def process_terms(self, taxonomy: str = "category", batch_size: int = 100, offset: int = 0) -> RunResult:
        if taxonomy == "category":
            return self.process(Category.CATEGORIES, batch_size, offset)
        if taxonomy == "post_tag":
            return self.process(Category.TAGS, batch_size, offset)
        return self._run(self._terms_strategy(taxonomy), batch_size, offset)

    def process_media(self, batch_size: int = 100, offset: int = 0) -> RunResult:
        return self.process(Category.MEDIA, batch_size, offset)

    def process_posts(self, post_type: str = "post", batch_size: int = 100, offset: int = 0) -> RunResult:
        if post_type == "page":
            return self.process(Category.PAGES, batch_size, offset)
        if post_type == "post":
            return self.process(Category.POSTS, batch_size, offset)
        return self._run(self._posts_strategy(post_type), batch_size, offset)

    def _run(self, strategy: CategoryStrategy, batch_size: int, offset: int) -> RunResult:
        results = RunResult()
        migration_type = strategy.migration_type

        if strategy.prepare:
            try:
                strategy.prepare()
            except Exception as e:
                self.logger.error(f"Error preparing WordPress {migration_type} migration: {e}")

        records = strategy.extract(batch_size, offset)
        for record in records.values():
            legacy_id = record.legacy_id
            try:
                migrated = self.ledger.is_migrated(migration_type, legacy_id)
                if migrated and not strategy.update_existing:
                    results.skipped += 1
                    continue

                entity = strategy.migrate(record, migrated)
                if not entity:
                    raise ItemError(f"Failed to create {strategy.entity_label}")
                if migrated and entity["id"] == self.ledger.get_target_id(migration_type, legacy_id):
                    # Updated in place; the existing success row still applies.
                    results.skipped += 1
                    continue
                self.ledger.record(migration_type, legacy_id, entity["id"], LedgerStatus.SUCCESS)
                results.success += 1
            except Exception as e:
                self.ledger.record(migration_type, legacy_id, None, LedgerStatus.FAILED, str(e))
                results.failed += 1
                self.logger.error(f"Error processing WordPress {migration_type} {legacy_id}: {e}")
                report_error(
                    "ITEM_FAILED",
                    {"migration_type": migration_type, "legacy_id": legacy_id},
                    e,
                    report_dir=self.report_dir,
                )

        return results

    @property
    def report_dir(self) -> str:
        return self.config.get("reports", {}).get("dir", DEFAULT_REPORT_DIR)

    ###########################################################################
    # Users
    ###########################################################################

    def create_user(self, user: LegacyUser, migrated: bool = False) -> Optional[Entity]:
        """Create the Drupal user, or reuse the one already using its email."""
        existing = self.store.find_user_by_mail(user.user_email)
        if existing:
            self.logger.info(f"Reusing Drupal user {existing['id']} for {user.user_email}")
            return existing

        fields = self.store.field_definitions("user", "user")
        values: Entity = {
            "name": user.user_login,
            "mail": user.user_email,
            "status": 1,
            "created": to_timestamp(user.user_registered) or int(time.time()),
        }
        for field, key in USER_PROFILE_FIELDS:
            value = user.meta_value(key) or user.get(key)
            if value and field in fields:
                values[field] = value
        return self.store.create("user", values)

    ###########################################################################
    # Terms
    ###########################################################################

    def ensure_vocabulary(self, taxonomy: str) -> None:
        vid = vocabulary_name(taxonomy)
        if self.store.vocabulary_exists(vid):
            return
        self.store.create("taxonomy_vocabulary", {
            "vid": vid,
            "name": taxonomy[:1].upper() + taxonomy[1:],
            "description": f"Migrated from WordPress {taxonomy}",
        })
        self.logger.info(f"Created vocabulary {vid}")

    def create_term(self, term: LegacyTerm, taxonomy: str) -> Optional[Entity]:
        values: Entity = {
            "vid": vocabulary_name(taxonomy),
            "name": term.name,
            "description": {"value": term.description, "format": "basic_html"},
        }
        if term.parent > 0:
            parent_id = self.ledger.get_target_id("terms", term.parent)
            if parent_id:
                values["parent"] = parent_id
        return self.store.create("taxonomy_term", values)

    ###########################################################################
    # Media
    ###########################################################################

    def _migrate_media(self, media: LegacyAttachment, migrated: bool) -> Optional[Entity]:
        return self.media_processor.process(media)

    ###########################################################################
    # Posts and pages
    ###########################################################################

    def ensure_content_types(self) -> None:
        """Create the ``wordpress_post`` and ``wordpress_page`` bundles if missing."""
        if self._content_types_checked or not self.config.get("migration", {}).get("create_content_types", True):
            return
        for bundle, label in NODE_BUNDLES.items():
            if self.store.bundle_exists("node", bundle):
                continue
            if self.store.create_bundle("node", bundle, label, NODE_BUNDLE_FIELDS):
                self.logger.info(f"Created content type {bundle}")
        self._content_types_checked = True

    def _term_ids(self, terms: tuple) -> List[int]:
        ids: List[int] = []
        for term in terms:
            term_id = self.ledger.get_target_id("terms", term.term_id if isinstance(term, TermRef) else term)
            if term_id:
                ids.append(term_id)
        return ids

    def _migrate_post(self, post: LegacyPost, migrated: bool) -> Optional[Entity]:
        if migrated:
            node_id = self.ledger.get_target_id("posts", post.id)
            node = self.store.load("node", node_id) if node_id else None
            if node:
                return self.update_node(node, post)
        return self.create_node(post)

    def create_node(self, post: LegacyPost) -> Optional[Entity]:
        bundle = node_bundle(post.post_type)
        fields = self.store.field_definitions("node", bundle)
        now = int(time.time())

        values: Entity = {
            "type": bundle,
            "title": post.post_title or "(untitled)",
            "status": 1,
            "created": to_timestamp(post.post_date) or now,
            "changed": to_timestamp(post.post_modified) or now,
        }
        if "body" in fields and post.post_content:
            values["body"] = {"value": post.post_content, "format": "full_html"}

        langcode = resolve_langcode(post) or UNDEFINED_LANGCODE
        if "langcode" in fields:
            values["langcode"] = langcode

        if post.post_author:
            author_id = self.ledger.get_target_id("users", post.post_author)
            if author_id:
                values["uid"] = author_id

        for field, terms in (("field_categories", post.categories), ("field_tags", post.tags)):
            if terms and field in fields:
                term_ids = self._term_ids(terms)
                if term_ids:
                    values[field] = term_ids

        node = self.store.create("node", values)
        if not node:
            return None
        self.set_node_alias(node, post, langcode)
        return node

    def update_node(self, node: Entity, post: LegacyPost) -> Entity:
        """Overwrite the fields of ``node`` for which ``post`` has a value."""
        fields = self.store.field_definitions("node", node.get("type"))

        if post.post_title:
            node["title"] = post.post_title
        if "body" in fields and post.post_content:
            node["body"] = {"value": post.post_content, "format": "full_html"}
        if post.post_author:
            author_id = self.ledger.get_target_id("users", post.post_author)
            if author_id:
                node["uid"] = author_id
        created = to_timestamp(post.post_date)
        if created:
            node["created"] = created
        changed = to_timestamp(post.post_modified)
        if changed:
            node["changed"] = changed

        for field, terms in (("field_categories", post.categories), ("field_tags", post.tags)):
            if terms and field in fields:
                term_ids = self._term_ids(terms)
                if term_ids:
                    node[field] = term_ids

        langcode = resolve_langcode(post)
        if langcode and "langcode" in fields:
            node["langcode"] = langcode

        self.store.save("node", node)
        self.logger.debug(f"Updated node {node['id']} from WordPress post {post.id}")
        self.set_node_alias(node, post, langcode or node.get("langcode"))
        return node

    def set_node_alias(self, node: Entity, post: LegacyPost, langcode: Optional[str] = None) -> Optional[Entity]:
        """
        Replace the alias of ``node`` in ``langcode`` with one built from
        the WordPress slug.

        Only the alias for the same path and language is replaced.  When a
        post changes language (``und`` to ``ar``, say) the alias saved under
        the old language is left in place next to the new one.
        """
        if not post.post_name:
            return None
        alias = build_alias(post.post_name, langcode)
        if not alias:
            return None

        path = f"/node/{node['id']}"
        langcode = langcode or node.get("langcode") or UNDEFINED_LANGCODE
        for existing in self.store.find_path_aliases(path, langcode):
            self.store.delete("path_alias", existing["id"])

        return self.store.create("path_alias", {
            "path": path,
            "alias": alias,
            "langcode": langcode,
        })
