"""
Typed records for the migration.

Legacy rows are read into frozen pydantic models so that the processors
work with named attributes instead of ad-hoc nested dictionaries.
"""

from .records import (
    LegacyAttachment,
    LegacyComment,
    LegacyPost,
    LegacyRecord,
    LegacyTerm,
    LegacyUser,
    TermRef,
)
from .results import RUN_ORDER, Category, LedgerEntry, LedgerStatus, RunResult

__all__ = [
    "LegacyAttachment",
    "LegacyComment",
    "LegacyPost",
    "LegacyRecord",
    "LegacyTerm",
    "LegacyUser",
    "TermRef",
    "RUN_ORDER",
    "Category",
    "LedgerEntry",
    "LedgerStatus",
    "RunResult",
]
