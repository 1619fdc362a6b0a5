"""
Interface to the Drupal entity storage.

The migration only builds creation and update payloads; persisting them
is the job of an :class:`EntityStore`.  Entities travel as plain
dictionaries keyed by Drupal field name, with the numeric entity id under
``"id"``.  Reference fields hold numeric target ids (``uid``, ``parent``,
``field_categories``, ``field_media_file.target_id`` ...).

Entity types used by the migration: ``user``, ``node``,
``taxonomy_term``, ``taxonomy_vocabulary``, ``media``, ``file`` and
``path_alias``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Set

Entity = Dict[str, Any]

# Field holding the bundle name, per entity type.
BUNDLE_KEYS: Dict[str, str] = {
    "node": "type",
    "media": "bundle",
    "taxonomy_term": "vid",
}


def bundle_of(entity_type: str, entity: Entity) -> str:
    key = BUNDLE_KEYS.get(entity_type)
    return entity.get(key) if key else entity_type


class EntityStore(ABC):
    """Create, load, save and delete Drupal entities."""

    @abstractmethod
    def create(self, entity_type: str, values: Entity) -> Optional[Entity]:
        """Persist a new entity and return it with its ``id`` set."""

    @abstractmethod
    def load(self, entity_type: str, entity_id: int) -> Optional[Entity]:
        ...

    @abstractmethod
    def save(self, entity_type: str, entity: Entity) -> Entity:
        """Persist changes to an existing entity."""

    @abstractmethod
    def delete(self, entity_type: str, entity_id: int) -> None:
        ...

    def exists(self, entity_type: str, entity_id: int) -> bool:
        return self.load(entity_type, entity_id) is not None

    @abstractmethod
    def field_definitions(self, entity_type: str, bundle: Optional[str] = None) -> Set[str]:
        """Names of the fields defined for ``entity_type`` / ``bundle``."""

    @abstractmethod
    def find_user_by_mail(self, mail: str) -> Optional[Entity]:
        ...

    @abstractmethod
    def vocabulary_exists(self, vid: str) -> bool:
        ...

    @abstractmethod
    def find_path_aliases(self, path: str, langcode: Optional[str] = None) -> List[Entity]:
        """Aliases for ``path``; all languages when ``langcode`` is ``None``."""

    @abstractmethod
    def write_file(self, data: bytes, uri: str) -> Entity:
        """
        Store ``data`` at ``uri``, replacing any file already stored there,
        and return the file entity with ``id``, ``uri``, ``filename`` and
        ``filemime``.
        """

    @abstractmethod
    def bundle_exists(self, entity_type: str, bundle: str) -> bool:
        ...

    def create_bundle(self, entity_type: str, bundle: str, label: str, fields: Iterable[str]) -> bool:
        """
        Create ``bundle`` with ``fields``.  Returns ``False`` when the store
        cannot create bundles.
        """
        return False
