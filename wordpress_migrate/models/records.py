from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

RawDate = Union[datetime, str, None]


def _none_to_empty(v: Any) -> Any:
    return "" if v is None else v


class TermRef(BaseModel):
    """A category or tag attached to a post."""

    model_config = ConfigDict(frozen=True)

    term_id: int
    name: str = ""
    slug: str = ""


class LegacyRecord(BaseModel):
    """
    A row read from the WordPress database.

    Known columns are typed fields; every other column of the row is kept
    as an extra attribute and can be read with :meth:`get`.  Records are
    frozen once built.
    """

    model_config = ConfigDict(
        extra="allow",
        frozen=True,
        populate_by_name=True,
    )

    meta: Dict[str, Any] = Field(default_factory=dict)

    @property
    def legacy_id(self) -> int:
        raise NotImplementedError

    def get(self, column: str, default: Any = None) -> Any:
        if column in type(self).model_fields:
            value = getattr(self, column)
        else:
            value = (self.model_extra or {}).get(column, default)
        return default if value is None else value

    def meta_value(self, key: str, default: Any = None) -> Any:
        value = self.meta.get(key)
        return default if value in (None, "") else value


class LegacyUser(LegacyRecord):
    id: int = Field(alias="ID")
    user_login: str = ""
    user_email: str = ""
    user_registered: RawDate = None
    display_name: str = ""

    @field_validator("user_login", "user_email", "display_name", mode="before")
    @classmethod
    def _blank_strings(cls, v: Any) -> Any:
        return _none_to_empty(v)

    @property
    def legacy_id(self) -> int:
        return self.id


class LegacyPost(LegacyRecord):
    id: int = Field(alias="ID")
    post_type: str = "post"
    post_status: str = ""
    post_title: str = ""
    post_content: str = ""
    post_name: str = ""
    post_author: int = 0
    post_date: RawDate = None
    post_modified: RawDate = None
    guid: str = ""
    post_mime_type: str = ""
    categories: Tuple[TermRef, ...] = ()
    tags: Tuple[TermRef, ...] = ()

    @field_validator(
        "post_type", "post_status", "post_title", "post_content", "post_name", "guid", "post_mime_type",
        mode="before",
    )
    @classmethod
    def _blank_strings(cls, v: Any) -> Any:
        return _none_to_empty(v)

    @field_validator("post_author", mode="before")
    @classmethod
    def _author_id(cls, v: Any) -> int:
        return int(v) if v not in (None, "") else 0

    @field_validator("categories", "tags", mode="before")
    @classmethod
    def _dedup_terms(cls, v: Any) -> Any:
        if not v:
            return ()
        if isinstance(v, Mapping):
            v = list(v.values())
        seen = set()
        deduped = []
        for item in v:
            term_id = item.term_id if isinstance(item, TermRef) else int(item["term_id"])
            if term_id not in seen:
                seen.add(term_id)
                deduped.append(item)
        return tuple(deduped)

    @property
    def legacy_id(self) -> int:
        return self.id


class LegacyAttachment(LegacyPost):
    """An ``attachment`` post; the file path lives in its meta."""

    post_type: str = "attachment"

    @property
    def attached_file(self) -> Optional[str]:
        return self.meta_value("_wp_attached_file")

    @property
    def alt_text(self) -> Optional[str]:
        return self.meta_value("_wp_attachment_image_alt")


class LegacyTerm(LegacyRecord):
    term_id: int
    name: str = ""
    slug: str = ""
    term_taxonomy_id: Optional[int] = None
    taxonomy: str = ""
    description: str = ""
    parent: int = 0
    count: int = 0

    @field_validator("name", "slug", "taxonomy", "description", mode="before")
    @classmethod
    def _blank_strings(cls, v: Any) -> Any:
        return _none_to_empty(v)

    @field_validator("parent", "count", mode="before")
    @classmethod
    def _int_or_zero(cls, v: Any) -> int:
        return int(v) if v not in (None, "") else 0

    @property
    def legacy_id(self) -> int:
        return self.term_id


class LegacyComment(LegacyRecord):
    comment_id: int = Field(alias="comment_ID")
    comment_post_id: int = Field(0, alias="comment_post_ID")
    comment_author: str = ""
    comment_author_email: str = ""
    comment_content: str = ""
    comment_date: RawDate = None
    comment_parent: int = 0

    @field_validator("comment_author", "comment_author_email", "comment_content", mode="before")
    @classmethod
    def _blank_strings(cls, v: Any) -> Any:
        return _none_to_empty(v)

    @field_validator("comment_post_id", "comment_parent", mode="before")
    @classmethod
    def _int_or_zero(cls, v: Any) -> int:
        return int(v) if v not in (None, "") else 0

    @property
    def legacy_id(self) -> int:
        return self.comment_id
