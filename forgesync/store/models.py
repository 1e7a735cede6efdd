"""Persisted record models.

Identifiers are assigned by the store and never change. Records are frozen:
nothing in the ingestion path mutates an entity after creating it.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

# Size recorded for placeholder files synthesized from historical paths.
UNKNOWN_SIZE: int | None = None


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True)


class LanguageRecord(_Record):
    id: int
    name: str
    extensions: list[str] = []


class RepositoryRecord(_Record):
    id: int
    name: str
    description: str
    owner: str
    created_at: datetime


class ContributorRecord(_Record):
    id: int
    name: str
    repo: int


class BranchRecord(_Record):
    id: int
    name: str
    type: str
    repo: int


class CommitRecord(_Record):
    id: int
    title: str
    content: str
    hash: str
    author: int
    created_at: datetime
    repo: int


class CommitBranchRecord(_Record):
    commit: int
    branch: int


class FileRecord(_Record):
    id: int
    name: str
    size: int | None
    path: str
    repo: int
    language: int | None = None

    @property
    def is_placeholder(self) -> bool:
        return self.size is UNKNOWN_SIZE


class ModificationRecord(_Record):
    id: int
    type: str
    commit: int
    file: int
