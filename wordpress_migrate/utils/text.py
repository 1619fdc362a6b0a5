from __future__ import annotations

import re
from datetime import datetime
from typing import Optional, Union

# WordPress language meta keys, checked in this order.
LANGUAGE_META_KEYS = ("_lang", "lang", "_language")

UNDEFINED_LANGCODE = "und"


def sanitize_filename(value: str) -> str:
    """
    Replace anything outside ``[A-Za-z0-9-_.]`` with underscores, collapse
    repeated underscores and trim them from both ends.
    """
    text = re.sub(r"[^a-zA-Z0-9\-_.]", "_", value or "")
    text = re.sub(r"_+", "_", text)
    return text.strip("_")


def map_langcode(value: Optional[str]) -> Optional[str]:
    """
    Map a WordPress language or locale value to a Drupal langcode.

    ``ar-SA`` → ``ar``, ``english`` → ``en``; anything else is ``und``.
    Empty input gives ``None`` so callers can tell "no language" apart
    from "unknown language".
    """
    if not value:
        return None
    text = str(value).strip().lower()
    if text.startswith("ar"):
        return "ar"
    if text.startswith("en"):
        return "en"
    return UNDEFINED_LANGCODE


def build_alias(slug: Optional[str], langcode: Optional[str]) -> Optional[str]:
    """
    Build the path alias for a WordPress slug.

    Arabic content is prefixed with ``/ar``.  Returns ``None`` when the
    result would be the bare root ``/``.
    """
    slug = (slug or "").strip().strip("/")
    prefix = "/ar" if langcode == "ar" else ""
    alias = re.sub(r"/+", "/", f"{prefix}/{slug}")
    if alias == "/":
        return None
    return alias


def to_timestamp(value: Union[datetime, str, None]) -> Optional[int]:
    """
    Unix timestamp for a WordPress date column.

    MySQL zero dates (``0000-00-00 00:00:00``) and unparseable values give
    ``None``.
    """
    if isinstance(value, datetime):
        return int(value.timestamp())
    if not value:
        return None
    text = str(value).strip()
    if text.startswith("0000-00-00"):
        return None
    try:
        return int(datetime.fromisoformat(text).timestamp())
    except ValueError:
        return None
