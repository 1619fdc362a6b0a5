"""
Drupal migrators and helpers.

This subpackage holds the migration ledger, the media and content
processors, and the entity stores they write to: an in-memory store for
dry runs and tests, and a JSON:API client for a live Drupal site with
rate limiting and automatic retries.
"""

from .content_processor import WordPressContentProcessor
from .drupal_store import DrupalJsonApiStore
from .entity_store import EntityStore
from .ledger import MigrationLedger
from .media_processor import WordPressMediaProcessor
from .memory_store import InMemoryEntityStore

__all__ = [
    "WordPressContentProcessor",
    "DrupalJsonApiStore",
    "EntityStore",
    "MigrationLedger",
    "WordPressMediaProcessor",
    "InMemoryEntityStore",
]
