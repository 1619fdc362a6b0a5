"""
Drupal JSON:API client implementing :class:`EntityStore`.

This module talks to a live Drupal site through its JSON:API module
(``/jsonapi/{entity_type}/{bundle}``).  The migration works with numeric
Drupal ids, JSON:API with UUIDs; the store keeps a map between the two
and looks ids up by their ``drupal_internal__*`` attribute when an entity
was not created by the current process.

Reference fields (``uid``, ``parent``, ``field_categories``,
``field_tags``, ``field_media_file``, ``field_media_image``) are sent as
JSON:API relationships.  Files are uploaded through the file-field upload
route of a configurable media bundle.

A simple rate limiter keeps the number of requests per minute under
``drupal.rpm``, and a retry wrapper handles transient errors (429 or
5xx).  Media downloads from WordPress do not go through here and are
never retried.
"""

from __future__ import annotations

import mimetypes
import posixpath
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

import requests

from ..utils.errors import MigrationError
from ..utils.logger import MigrationLogger
from .entity_store import BUNDLE_KEYS, Entity, EntityStore

###############################################################################
# Rate limiting and retry utilities
###############################################################################

class RateLimiter:
    """
    Simple time-based rate limiter.  Ensures that no more than ``rpm``
    requests are dispatched per minute.
    """

    def __init__(self, rpm: int = 300) -> None:
        self.rpm = max(1, rpm)
        self.interval = 60.0 / float(self.rpm)
        self._last = 0.0

    def wait(self, time_fn: Callable[[], float] = time.time, sleep_fn: Callable[[float], None] = time.sleep) -> None:
        now = time_fn()
        dt = now - self._last
        if dt < self.interval:
            sleep_fn(self.interval - dt)
        self._last = time_fn()


def jsonapi_headers(content_type: str = "application/vnd.api+json") -> Dict[str, str]:
    return {
        "Accept": "application/vnd.api+json",
        "Content-Type": content_type,
    }


def with_retries(fn: Callable[[], requests.Response], *, max_attempts: int = 5, base_delay: float = 0.7) -> requests.Response:
    """
    Execute a function returning a ``requests.Response``, retrying on
    status codes 429 and 5xx with exponential backoff (or the
    ``Retry-After`` header when the server sends one).

    :raises requests.HTTPError: if all attempts fail.
    """
    attempt = 0
    while True:
        try:
            resp = fn()
            resp.raise_for_status()
            return resp
        except requests.HTTPError as e:
            status = e.response.status_code
            if status not in (429, 500, 502, 503, 504) or attempt >= max_attempts - 1:
                raise
            retry_after = e.response.headers.get("Retry-After")
            if retry_after:
                wait = float(retry_after)
            else:
                wait = base_delay * (2 ** attempt)
            time.sleep(wait)
            attempt += 1
        except requests.RequestException:
            if attempt >= max_attempts - 1:
                raise
            time.sleep(base_delay * (2 ** attempt))
            attempt += 1


###############################################################################
# Resource mapping
###############################################################################

INTERNAL_ID_KEYS: Dict[str, str] = {
    "node": "drupal_internal__nid",
    "user": "drupal_internal__uid",
    "taxonomy_term": "drupal_internal__tid",
    "media": "drupal_internal__mid",
    "file": "drupal_internal__fid",
    "path_alias": "drupal_internal__id",
}

# Field name -> (target entity type, multiple values)
REFERENCE_FIELDS: Dict[str, Tuple[str, bool]] = {
    "uid": ("user", False),
    "parent": ("taxonomy_term", True),
    "field_categories": ("taxonomy_term", True),
    "field_tags": ("taxonomy_term", True),
    "field_media_file": ("file", False),
    "field_media_image": ("file", False),
}

TIMESTAMP_FIELDS = ("created", "changed")

DEFAULT_BUNDLES: Dict[str, List[str]] = {
    "node": ["wordpress_post", "wordpress_page"],
    "media": ["image", "video", "audio", "document", "file"],
    "taxonomy_term": ["wordpress_categories", "wordpress_tags"],
}

# Bundle-config entity queried by bundle_exists().
BUNDLE_ENTITY_TYPES: Dict[str, str] = {
    "node": "node_type",
    "media": "media_type",
    "taxonomy_term": "taxonomy_vocabulary",
}

BASE_FIELDS: Dict[str, Set[str]] = {
    "user": {"name", "mail", "status", "created", "langcode"},
    "node": {"type", "title", "uid", "status", "created", "changed", "langcode"},
    "taxonomy_term": {"vid", "name", "description", "parent", "langcode"},
    "media": {"bundle", "name", "status", "langcode"},
}


def _timestamp_to_iso(value: Any) -> Any:
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc).isoformat()
    return value


class DrupalJsonApiStore(EntityStore):
    """
    :param config: The ``drupal`` settings section (``base_url``,
        ``username``, ``password``, ``rpm``, ``bundles``, ``upload_target``).
    :param logger: Shared migration logger.
    :param session: Optional pre-built :class:`requests.Session`.
    """

    def __init__(self, config: Dict[str, Any], logger: MigrationLogger, *, session: Optional[requests.Session] = None) -> None:
        self.config = config
        self.logger = logger
        self.base_url = (config.get("base_url") or "").rstrip("/")
        self.session = session or requests.Session()
        if config.get("username"):
            self.session.auth = (config["username"], config.get("password") or "")
        self.limiter = RateLimiter(int(config.get("rpm") or 300))
        self.upload_target = config.get("upload_target") or "media/file/field_media_file"

        self.bundles: Dict[str, List[str]] = {k: list(v) for k, v in DEFAULT_BUNDLES.items()}
        for entity_type, names in (config.get("bundles") or {}).items():
            known = self.bundles.setdefault(entity_type, [])
            known.extend(n for n in names if n not in known)

        # (entity_type, numeric id) -> (bundle, uuid)
        self._index: Dict[Tuple[str, int], Tuple[str, str]] = {}
        self._field_cache: Dict[Tuple[str, str], Set[str]] = {}

    ###########################################################################
    # HTTP helpers
    ###########################################################################

    def _url(self, path: str) -> str:
        return f"{self.base_url}/jsonapi/{path.lstrip('/')}"

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        self.limiter.wait()
        headers = kwargs.pop("headers", None) or jsonapi_headers()

        def do_request() -> requests.Response:
            return self.session.request(method, self._url(path), headers=headers, **kwargs)

        return with_retries(do_request)

    def _get_data(self, path: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        data = self._request("GET", path, params=params).json().get("data") or []
        return data if isinstance(data, list) else [data]

    def _bundles_for(self, entity_type: str) -> List[str]:
        return self.bundles.get(entity_type) or [entity_type]

    def _locate(self, entity_type: str, entity_id: int) -> Optional[Tuple[str, str]]:
        key = (entity_type, int(entity_id))
        if key in self._index:
            return self._index[key]

        id_key = INTERNAL_ID_KEYS.get(entity_type)
        if not id_key:
            return None
        for bundle in self._bundles_for(entity_type):
            try:
                found = self._get_data(f"{entity_type}/{bundle}", {f"filter[{id_key}]": int(entity_id)})
            except requests.HTTPError as e:
                if e.response is not None and e.response.status_code == 404:
                    continue
                raise
            if found:
                self._index[key] = (bundle, found[0]["id"])
                return self._index[key]
        return None

    ###########################################################################
    # Document conversion
    ###########################################################################

    def _relationship(self, target_type: str, value: Any) -> Optional[Dict[str, Any]]:
        meta: Dict[str, Any] = {}
        if isinstance(value, dict):
            meta = {k: v for k, v in value.items() if k != "target_id"}
            value = value.get("target_id")
        if value in (None, ""):
            return None
        located = self._locate(target_type, int(value))
        if located is None:
            self.logger.warning(f"Dropping reference to missing {target_type} {value}")
            return None
        bundle, uuid = located
        item: Dict[str, Any] = {"type": f"{target_type}--{bundle}", "id": uuid}
        if meta:
            item["meta"] = meta
        return item

    def _to_document(self, entity_type: str, bundle: str, values: Entity, uuid: Optional[str] = None) -> Dict[str, Any]:
        attributes: Dict[str, Any] = {}
        relationships: Dict[str, Any] = {}
        bundle_key = BUNDLE_KEYS.get(entity_type)

        for field, value in values.items():
            if field == "id" or field == bundle_key:
                continue
            if field in REFERENCE_FIELDS:
                target_type, multiple = REFERENCE_FIELDS[field]
                items = value if isinstance(value, list) else [value]
                data = [r for r in (self._relationship(target_type, v) for v in items) if r]
                relationships[field] = {"data": data if multiple else (data[0] if data else None)}
            elif field in TIMESTAMP_FIELDS:
                attributes[field] = _timestamp_to_iso(value)
            elif field == "status":
                attributes[field] = bool(value)
            else:
                attributes[field] = value

        resource: Dict[str, Any] = {"type": f"{entity_type}--{bundle}", "attributes": attributes}
        if uuid:
            resource["id"] = uuid
        if relationships:
            resource["relationships"] = relationships
        return {"data": resource}

    def _from_resource(self, entity_type: str, bundle: str, resource: Dict[str, Any]) -> Entity:
        attributes = dict(resource.get("attributes") or {})
        id_key = INTERNAL_ID_KEYS.get(entity_type, "drupal_internal__id")
        entity_id = attributes.pop(id_key, None)
        entity: Entity = {k: v for k, v in attributes.items() if not k.startswith("drupal_internal__")}
        entity["id"] = entity_id
        bundle_key = BUNDLE_KEYS.get(entity_type)
        if bundle_key:
            entity[bundle_key] = bundle

        for field, rel in (resource.get("relationships") or {}).items():
            if field not in REFERENCE_FIELDS:
                continue
            data = rel.get("data")
            items = data if isinstance(data, list) else ([data] if data else [])
            ids = [
                (item.get("meta") or {}).get("drupal_internal__target_id")
                for item in items
            ]
            ids = [i for i in ids if i is not None]
            entity[field] = ids if REFERENCE_FIELDS[field][1] else (ids[0] if ids else None)

        if entity_id is not None:
            self._index[(entity_type, int(entity_id))] = (bundle, resource["id"])
        return entity

    ###########################################################################
    # EntityStore
    ###########################################################################

    def create(self, entity_type: str, values: Entity) -> Optional[Entity]:
        if entity_type == "taxonomy_vocabulary":
            raise MigrationError(
                f"Vocabulary '{values.get('vid')}' must be created on the Drupal site; "
                "JSON:API cannot create configuration entities"
            )
        bundle = values.get(BUNDLE_KEYS.get(entity_type, ""), entity_type) or entity_type
        resp = self._request("POST", f"{entity_type}/{bundle}", json=self._to_document(entity_type, bundle, values))
        resource = resp.json().get("data")
        if not resource:
            return None
        return self._from_resource(entity_type, bundle, resource)

    def load(self, entity_type: str, entity_id: int) -> Optional[Entity]:
        located = self._locate(entity_type, entity_id)
        if located is None:
            return None
        bundle, uuid = located
        try:
            found = self._get_data(f"{entity_type}/{bundle}/{uuid}")
        except requests.HTTPError as e:
            if e.response is not None and e.response.status_code == 404:
                self._index.pop((entity_type, int(entity_id)), None)
                return None
            raise
        return self._from_resource(entity_type, bundle, found[0]) if found else None

    def save(self, entity_type: str, entity: Entity) -> Entity:
        located = self._locate(entity_type, entity["id"])
        if located is None:
            raise MigrationError(f"{entity_type} {entity['id']} does not exist")
        bundle, uuid = located
        self._request(
            "PATCH",
            f"{entity_type}/{bundle}/{uuid}",
            json=self._to_document(entity_type, bundle, entity, uuid),
        )
        return entity

    def delete(self, entity_type: str, entity_id: int) -> None:
        located = self._locate(entity_type, entity_id)
        if located is None:
            return
        bundle, uuid = located
        self._request("DELETE", f"{entity_type}/{bundle}/{uuid}")
        self._index.pop((entity_type, int(entity_id)), None)

    def exists(self, entity_type: str, entity_id: int) -> bool:
        self._index.pop((entity_type, int(entity_id)), None)
        return self._locate(entity_type, entity_id) is not None

    def field_definitions(self, entity_type: str, bundle: Optional[str] = None) -> Set[str]:
        bundle = bundle or entity_type
        key = (entity_type, bundle)
        if key not in self._field_cache:
            found = self._get_data(
                "field_config/field_config",
                {"filter[entity_type]": entity_type, "filter[bundle]": bundle},
            )
            fields = {item.get("attributes", {}).get("field_name") for item in found}
            fields.discard(None)
            self._field_cache[key] = set(BASE_FIELDS.get(entity_type, set())) | fields
        return set(self._field_cache[key])

    def find_user_by_mail(self, mail: str) -> Optional[Entity]:
        if not mail:
            return None
        found = self._get_data("user/user", {"filter[mail]": mail})
        return self._from_resource("user", "user", found[0]) if found else None

    def vocabulary_exists(self, vid: str) -> bool:
        found = self._get_data(
            "taxonomy_vocabulary/taxonomy_vocabulary",
            {"filter[drupal_internal__vid]": vid},
        )
        if found and vid not in self.bundles.setdefault("taxonomy_term", []):
            self.bundles["taxonomy_term"].append(vid)
        return bool(found)

    def find_path_aliases(self, path: str, langcode: Optional[str] = None) -> List[Entity]:
        params = {"filter[path]": path}
        if langcode:
            params["filter[langcode]"] = langcode
        found = self._get_data("path_alias/path_alias", params)
        return [self._from_resource("path_alias", "path_alias", item) for item in found]

    def write_file(self, data: bytes, uri: str) -> Entity:
        filename = posixpath.basename(uri)
        headers = jsonapi_headers("application/octet-stream")
        headers["Content-Disposition"] = f'file; filename="{filename}"'
        resp = self._request("POST", self.upload_target, data=data, headers=headers)
        entity = self._from_resource("file", "file", resp.json()["data"])
        entity.setdefault("filename", filename)
        if not entity.get("filemime"):
            entity["filemime"] = mimetypes.guess_type(filename)[0] or "application/octet-stream"
        return entity

    def bundle_exists(self, entity_type: str, bundle: str) -> bool:
        config_type = BUNDLE_ENTITY_TYPES.get(entity_type)
        if not config_type:
            return bundle == entity_type
        found = self._get_data(
            f"{config_type}/{config_type}",
            {"filter[drupal_internal__" + ("vid" if config_type == "taxonomy_vocabulary" else "type") + "]": bundle},
        )
        if found and bundle not in self.bundles.setdefault(entity_type, []):
            self.bundles[entity_type].append(bundle)
        return bool(found)

    def create_bundle(self, entity_type: str, bundle: str, label: str, fields: Iterable[str]) -> bool:
        self.logger.warning(
            f"Cannot create {entity_type} bundle '{bundle}' through JSON:API; create it on the Drupal site"
        )
        return False
