"""In-process entity store, used for dry runs and by the test-suite."""

from __future__ import annotations

import copy
import mimetypes
import posixpath
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .entity_store import Entity, EntityStore, bundle_of

BASE_FIELDS: Dict[str, Set[str]] = {
    "user": {"name", "mail", "status", "created", "langcode"},
    "node": {"type", "title", "uid", "status", "created", "changed", "langcode"},
    "taxonomy_term": {"vid", "name", "description", "parent", "langcode"},
    "taxonomy_vocabulary": {"vid", "name", "description"},
    "media": {"bundle", "name", "status", "langcode"},
    "file": {"uri", "filename", "filemime", "filesize"},
    "path_alias": {"path", "alias", "langcode"},
}

DEFAULT_BUNDLE_FIELDS: Dict[Tuple[str, str], Set[str]] = {
    ("user", "user"): {"field_display_name", "field_first_name", "field_last_name"},
    ("media", "image"): {"field_media_file", "field_media_image", "field_media_description"},
    ("media", "video"): {"field_media_file", "field_media_description"},
    ("media", "audio"): {"field_media_file", "field_media_description"},
    ("media", "document"): {"field_media_file", "field_media_description"},
    ("media", "file"): {"field_media_file", "field_media_description"},
}


class InMemoryEntityStore(EntityStore):
    """
    Keeps entities in dictionaries with one id sequence per entity type.

    :param bundle_fields: Extra fields per ``(entity_type, bundle)``; merged
        over the defaults.
    :param node_types: Node bundles that exist up front.
    """

    def __init__(
        self,
        bundle_fields: Optional[Dict[Tuple[str, str], Iterable[str]]] = None,
        node_types: Iterable[str] = (),
    ) -> None:
        self.entities: Dict[str, Dict[int, Entity]] = {}
        self._next_ids: Dict[str, int] = {}
        self.bundle_fields: Dict[Tuple[str, str], Set[str]] = {k: set(v) for k, v in DEFAULT_BUNDLE_FIELDS.items()}
        for key, fields in (bundle_fields or {}).items():
            self.bundle_fields[key] = set(fields)
        self.node_types: Set[str] = set(node_types)
        self.files: Dict[str, bytes] = {}

    def _storage(self, entity_type: str) -> Dict[int, Entity]:
        return self.entities.setdefault(entity_type, {})

    def create(self, entity_type: str, values: Entity) -> Optional[Entity]:
        entity_id = self._next_ids.get(entity_type, 1)
        self._next_ids[entity_type] = entity_id + 1
        entity = copy.deepcopy(values)
        entity["id"] = entity_id
        self._storage(entity_type)[entity_id] = entity
        return copy.deepcopy(entity)

    def load(self, entity_type: str, entity_id: int) -> Optional[Entity]:
        entity = self._storage(entity_type).get(int(entity_id))
        return copy.deepcopy(entity) if entity is not None else None

    def save(self, entity_type: str, entity: Entity) -> Entity:
        storage = self._storage(entity_type)
        if entity.get("id") not in storage:
            raise KeyError(f"{entity_type} {entity.get('id')} does not exist")
        storage[entity["id"]] = copy.deepcopy(entity)
        return entity

    def delete(self, entity_type: str, entity_id: int) -> None:
        self._storage(entity_type).pop(int(entity_id), None)

    def all(self, entity_type: str) -> List[Entity]:
        return [copy.deepcopy(e) for _, e in sorted(self._storage(entity_type).items())]

    def field_definitions(self, entity_type: str, bundle: Optional[str] = None) -> Set[str]:
        fields = set(BASE_FIELDS.get(entity_type, set()))
        fields |= self.bundle_fields.get((entity_type, bundle or entity_type), set())
        return fields

    def find_user_by_mail(self, mail: str) -> Optional[Entity]:
        if not mail:
            return None
        for user in self.all("user"):
            if (user.get("mail") or "").lower() == mail.lower():
                return user
        return None

    def vocabulary_exists(self, vid: str) -> bool:
        return any(v.get("vid") == vid for v in self._storage("taxonomy_vocabulary").values())

    def find_path_aliases(self, path: str, langcode: Optional[str] = None) -> List[Entity]:
        return [
            alias for alias in self.all("path_alias")
            if alias.get("path") == path and (langcode is None or alias.get("langcode") == langcode)
        ]

    def write_file(self, data: bytes, uri: str) -> Entity:
        self.files[uri] = data
        for entity in self._storage("file").values():
            if entity["uri"] == uri:
                entity["filesize"] = len(data)
                return copy.deepcopy(entity)

        filename = posixpath.basename(uri)
        filemime = mimetypes.guess_type(filename)[0] or "application/octet-stream"
        return self.create("file", {
            "uri": uri,
            "filename": filename,
            "filemime": filemime,
            "filesize": len(data),
        })

    def bundle_exists(self, entity_type: str, bundle: str) -> bool:
        if entity_type == "node":
            return bundle in self.node_types
        return (entity_type, bundle) in self.bundle_fields

    def create_bundle(self, entity_type: str, bundle: str, label: str, fields: Iterable[str]) -> bool:
        if entity_type == "node":
            self.node_types.add(bundle)
        self.bundle_fields.setdefault((entity_type, bundle), set()).update(fields)
        return True

    def count(self, entity_type: str, bundle: Optional[str] = None) -> int:
        return sum(
            1 for e in self._storage(entity_type).values()
            if bundle is None or bundle_of(entity_type, e) == bundle
        )
