"""Run results, ledger entries and the migration categories."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class Category(str, Enum):
    """Content categories that can be selected for a migration run."""
    USERS = "users"
    CATEGORIES = "categories"
    TAGS = "tags"
    MEDIA = "media"
    POSTS = "posts"
    PAGES = "pages"

    @property
    def ledger_type(self) -> str:
        """Ledger ``migration_type`` the category writes to."""
        return _LEDGER_TYPES[self]

    @classmethod
    def parse(cls, value: str) -> "Category":
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(f"Unknown migration type '{value}'") from None


_LEDGER_TYPES = {
    Category.USERS: "users",
    Category.CATEGORIES: "terms",
    Category.TAGS: "terms",
    Category.MEDIA: "media",
    Category.POSTS: "posts",
    Category.PAGES: "posts",
}

# Dependencies first: posts reference users, terms and media.
RUN_ORDER = (
    Category.USERS,
    Category.CATEGORIES,
    Category.TAGS,
    Category.MEDIA,
    Category.POSTS,
    Category.PAGES,
)


class LedgerStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class RunResult:
    """Counts for one category in one invocation."""
    success: int = 0
    failed: int = 0
    skipped: int = 0

    @property
    def processed(self) -> int:
        return self.success + self.failed + self.skipped

    def __add__(self, other: "RunResult") -> "RunResult":
        return RunResult(
            success=self.success + other.success,
            failed=self.failed + other.failed,
            skipped=self.skipped + other.skipped,
        )

    def to_dict(self) -> Dict[str, int]:
        return {"success": self.success, "failed": self.failed, "skipped": self.skipped}


@dataclass
class LedgerEntry:
    """A row of the ``wordpress_migrate_log`` table."""
    id: int
    migration_type: str
    wordpress_id: int
    drupal_id: Optional[int]
    status: str
    message: str = ""
    created: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "migration_type": self.migration_type,
            "wordpress_id": self.wordpress_id,
            "drupal_id": self.drupal_id,
            "status": self.status,
            "message": self.message,
            "created": self.created.isoformat() if self.created else None,
        }
