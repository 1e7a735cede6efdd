"""Relational persistence for imported repositories."""

from forgesync.store.models import (
    UNKNOWN_SIZE,
    BranchRecord,
    CommitBranchRecord,
    CommitRecord,
    ContributorRecord,
    FileRecord,
    LanguageRecord,
    ModificationRecord,
    RepositoryRecord,
)
from forgesync.store.sqlite_store import DEFAULT_LANGUAGES, SQLiteSession, SQLiteStore

__all__ = [
    "BranchRecord",
    "CommitBranchRecord",
    "CommitRecord",
    "ContributorRecord",
    "DEFAULT_LANGUAGES",
    "FileRecord",
    "LanguageRecord",
    "ModificationRecord",
    "RepositoryRecord",
    "SQLiteSession",
    "SQLiteStore",
    "UNKNOWN_SIZE",
]
