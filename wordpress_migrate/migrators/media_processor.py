"""
Materialization of WordPress attachments as Drupal media.

For each attachment the processor resolves the URL of the original file,
downloads it into ``public://wordpress-migrate`` (replacing a file with
the same name) and creates a media entity whose bundle follows the MIME
type of the stored file.

Downloads are plain blocking ``GET`` requests: there is no timeout and
no retry.  Any failure makes :meth:`WordPressMediaProcessor.process`
return ``None`` for that attachment only.
"""

from __future__ import annotations

import posixpath
import re
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlparse

import requests

from ..models.records import LegacyAttachment
from ..utils.errors import DEFAULT_REPORT_DIR, ResourceError, report_error
from ..utils.logger import MigrationLogger
from ..utils.text import sanitize_filename
from .entity_store import Entity, EntityStore

MEDIA_DIRECTORY = "public://wordpress-migrate"

# Full MIME types are matched before major types.
MIME_BUNDLES: Dict[str, str] = {
    "application/pdf": "document",
    "image": "image",
    "video": "video",
    "audio": "audio",
}
DEFAULT_MEDIA_BUNDLE = "file"

_ABSOLUTE_URL = re.compile(r"^https?://", re.IGNORECASE)
_URL_ORIGIN = re.compile(r"^https?://[^/]+", re.IGNORECASE)


def get_media_bundle(mime_type: Optional[str]) -> str:
    mime_type = (mime_type or "").lower()
    if mime_type in MIME_BUNDLES:
        return MIME_BUNDLES[mime_type]
    return MIME_BUNDLES.get(mime_type.split("/")[0], DEFAULT_MEDIA_BUNDLE)


class WordPressMediaProcessor:
    """
    :param store: Target entity store.
    :param logger: Shared migration logger.
    :param config: The full settings mapping; ``wordpress.base_url`` is
        read on every call.
    :param http_get: Callable used for downloads, ``requests.get`` by default.
    """

    def __init__(
        self,
        store: EntityStore,
        logger: MigrationLogger,
        config: Dict[str, Any],
        *,
        http_get: Callable[..., requests.Response] = requests.get,
    ) -> None:
        self.store = store
        self.logger = logger
        self.config = config
        self.http_get = http_get

    @property
    def base_url(self) -> str:
        return (self.config.get("wordpress", {}).get("base_url") or "").rstrip("/")

    @property
    def report_dir(self) -> str:
        return self.config.get("reports", {}).get("dir") or DEFAULT_REPORT_DIR

    def process(self, media: LegacyAttachment) -> Optional[Entity]:
        """
        Download the attachment's file and create its media entity.

        :return: The media entity, or ``None`` if any step failed.
        """
        try:
            file_url = self.resolve_url(media)
            if not file_url:
                self.logger.warning(f"No file URL found for WordPress media ID {media.id}")
                return None

            file = self.download(file_url, media)
            entity = self.create_media_entity(file, media)
            if entity:
                self.logger.info(
                    f"Successfully processed WordPress media ID {media.id} as Drupal media ID {entity['id']}"
                )
            return entity
        except ResourceError as e:
            self.logger.error(f"Error downloading file for WordPress media ID {media.id}: {e}")
            report_error("MEDIA_DOWNLOAD", {"legacy_id": media.id, "title": media.post_title}, e, report_dir=self.report_dir)
            return None
        except Exception as e:
            self.logger.error(f"Error processing WordPress media ID {media.id}: {e}")
            return None

    def resolve_url(self, media: LegacyAttachment) -> Optional[str]:
        """
        Source URL of the attachment's file.

        ``_wp_attached_file`` wins: as is when absolute, otherwise below
        ``/wp-content/uploads/`` of the configured base URL or, without
        one, of the host of the attachment's ``guid``.  Failing that, the
        ``guid`` itself is used when it is an absolute URL.
        """
        attached_file = media.attached_file
        if attached_file:
            if _ABSOLUTE_URL.match(attached_file):
                return attached_file
            attached_file = attached_file.lstrip("/")
            if self.base_url:
                return f"{self.base_url}/wp-content/uploads/{attached_file}"
            origin = _URL_ORIGIN.match(media.guid or "")
            if origin:
                return f"{origin.group(0)}/wp-content/uploads/{attached_file}"

        if media.guid and _ABSOLUTE_URL.match(media.guid):
            return media.guid
        return None

    def build_filename(self, url: str, media: LegacyAttachment) -> str:
        basename = posixpath.basename(urlparse(url).path)
        if media.post_title:
            extension = posixpath.splitext(basename)[1].lstrip(".")
            return f"{sanitize_filename(media.post_title)}.{extension}"
        return basename

    def download(self, url: str, media: LegacyAttachment) -> Entity:
        """
        Fetch ``url`` and store it under :data:`MEDIA_DIRECTORY`.

        :raises ResourceError: on network errors or a non-OK response.
        """
        filename = self.build_filename(url, media)
        try:
            resp = self.http_get(url)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise ResourceError(f"Failed to download file from URL: {url} ({e})") from e

        uri = f"{MEDIA_DIRECTORY}/{filename}"
        file = self.store.write_file(resp.content, uri)
        if not file:
            raise ResourceError(f"Failed to store file {uri}")
        self.logger.info(f"Downloaded file: {filename}")
        return file

    def create_media_entity(self, file: Entity, media: LegacyAttachment) -> Optional[Entity]:
        bundle = get_media_bundle(file.get("filemime"))
        fields = self.store.field_definitions("media", bundle)

        values: Entity = {
            "bundle": bundle,
            "name": media.post_title or file.get("filename"),
            "field_media_file": {"target_id": file["id"]},
        }
        alt = media.alt_text
        if alt is not None and "field_media_image" in fields:
            values["field_media_image"] = {"target_id": file["id"], "alt": alt}
        if media.post_content and "field_media_description" in fields:
            values["field_media_description"] = media.post_content

        return self.store.create("media", values)
