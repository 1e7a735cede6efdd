"""Persistence store interface.

Writes happen only through a StoreSession obtained from
PersistenceStore.transaction(); everything written in one session is
committed together or not at all.
"""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import Protocol, runtime_checkable

from forgesync.store.models import (
    BranchRecord,
    CommitBranchRecord,
    CommitRecord,
    ContributorRecord,
    FileRecord,
    LanguageRecord,
    ModificationRecord,
    RepositoryRecord,
)


@runtime_checkable
class StoreSession(Protocol):
    """Write operations scoped to one atomic transaction."""

    async def create_repository(
        self, name: str, description: str, owner: str
    ) -> RepositoryRecord: ...

    async def add_repository_language(self, repo_id: int, language_id: int) -> None: ...

    async def create_contributor(self, name: str, repo_id: int) -> ContributorRecord: ...

    async def create_branch(self, name: str, type: str, repo_id: int) -> BranchRecord: ...

    async def create_commit(
        self,
        *,
        title: str,
        content: str,
        hash: str,
        author_id: int,
        created_at: datetime,
        repo_id: int,
    ) -> CommitRecord: ...

    async def link_commit_branch(self, commit_id: int, branch_id: int) -> None: ...

    async def create_file(
        self,
        *,
        name: str,
        size: int | None,
        path: str,
        repo_id: int,
        language_id: int | None,
    ) -> FileRecord: ...

    async def create_modification(
        self, *, type: str, commit_id: int, file_id: int
    ) -> ModificationRecord: ...


@runtime_checkable
class RepositoryReader(Protocol):
    """Read-side queries over imported repositories."""

    async def find_repository(self, name: str, owner: str) -> RepositoryRecord | None: ...

    async def search_repositories(self, term: str) -> list[RepositoryRecord]: ...

    async def list_repositories_for_owner(self, owner: str) -> list[RepositoryRecord]: ...

    async def list_repository_languages(self, repo_id: int) -> list[LanguageRecord]: ...

    async def list_contributors(self, repo_id: int) -> list[ContributorRecord]: ...

    async def list_branches(self, repo_id: int) -> list[BranchRecord]: ...

    async def list_commits(self, repo_id: int) -> list[CommitRecord]: ...

    async def list_commit_branches(self, repo_id: int) -> list[CommitBranchRecord]: ...

    async def list_files(self, repo_id: int) -> list[FileRecord]: ...

    async def list_modifications(self, repo_id: int) -> list[ModificationRecord]: ...


@runtime_checkable
class PersistenceStore(RepositoryReader, Protocol):
    """Full store: read queries plus transactional write sessions."""

    def transaction(self) -> AbstractAsyncContextManager[StoreSession]: ...
