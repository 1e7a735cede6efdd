"""Ingestion engine: turns one extraction result into persisted, cross-referenced records.

Write order follows foreign-key dependencies:

    repository -> repository languages
               -> {contributors, branches, files}   (concurrently)
               -> commits + commit/branch links
               -> modifications -> placeholder files + their modifications

Everything runs inside a single store transaction; any failure rolls back
every row written for the ingestion.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from collections.abc import Awaitable, Callable, Iterable, Sequence
from typing import TypeVar

from forgesync.errors import (
    ConflictError,
    ForgeSyncError,
    IntegrityViolation,
    NotFoundError,
    StoreError,
    UnexpectedError,
)
from forgesync.ingest.models import IngestReport
from forgesync.ingest.reconcile import file_extension, partition_modifications, placeholder_name
from forgesync.interfaces.registry import LanguageRegistry
from forgesync.interfaces.store import PersistenceStore, StoreSession
from forgesync.source.models import (
    ExtractionResult,
    SourceBranch,
    SourceCommit,
    SourceFile,
    SourceModification,
)
from forgesync.store.models import (
    UNKNOWN_SIZE,
    BranchRecord,
    CommitRecord,
    ContributorRecord,
    FileRecord,
    LanguageRecord,
    RepositoryRecord,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
ItemT = TypeVar("ItemT")


async def _join(*aws: Awaitable) -> list:
    """Gather awaitables; on the first failure cancel and drain the rest."""
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


def check_extraction(extraction: ExtractionResult) -> None:
    """Reject extraction results whose keys are not unique."""
    dup_paths = [p for p, n in Counter(f.path for f in extraction.files).items() if n > 1]
    if dup_paths:
        raise UnexpectedError(f"Metadata source reported duplicate file paths: {dup_paths}")
    dup_hashes = [h for h, n in Counter(c.hash for c in extraction.commits).items() if n > 1]
    if dup_hashes:
        raise UnexpectedError(f"Metadata source reported duplicate commit hashes: {dup_hashes}")


class IngestionEngine:
    """Runs the write cascade for one repository at a time per call.

    Independent entity groups are written concurrently, bounded by
    ``max_concurrency`` in-flight store calls per ingestion.
    """

    def __init__(
        self,
        store: PersistenceStore,
        registry: LanguageRegistry,
        max_concurrency: int = 8,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.store = store
        self.registry = registry
        self.max_concurrency = max_concurrency

    async def ingest(
        self,
        *,
        name: str,
        description: str,
        owner: str,
        languages: Sequence[LanguageRecord],
        extraction: ExtractionResult,
    ) -> IngestReport:
        check_extraction(extraction)
        logger.info(
            "Importing repository %s for %s", name, owner, extra={"repo": name, "owner": owner}
        )
        try:
            async with self.store.transaction() as session:
                report = await _Cascade(self, session).run(
                    name=name,
                    description=description,
                    owner=owner,
                    languages=languages,
                    extraction=extraction,
                )
        except ForgeSyncError as e:
            logger.warning("Import of %s rolled back: %s", name, e.message)
            raise
        except IntegrityViolation as e:
            if e.entity == "repository":
                raise ConflictError(f"User {owner} already has a repository named {name}.") from e
            logger.exception("Import of %s rolled back on constraint violation", name)
            raise UnexpectedError(f"Integrity violation while writing {e.entity}.", e) from e
        except StoreError as e:
            logger.exception("Import of %s rolled back on store failure", name)
            raise UnexpectedError(f"Store failure during {e.operation}.", e) from e

        logger.info(
            "Imported %s: %d commits, %d files (%d placeholders), %d modifications",
            name,
            report.commits,
            report.files,
            report.placeholder_files,
            report.modifications,
            extra={"repo": name, "owner": owner},
        )
        return report


class _Cascade:
    """State for a single ingestion inside one open session."""

    def __init__(self, engine: IngestionEngine, session: StoreSession) -> None:
        self.session = session
        self.registry = engine.registry
        self.limiter = asyncio.Semaphore(engine.max_concurrency)
        self._ext_cache: dict[str, int | None] = {}

    async def _fan_out(self, fn: Callable[[ItemT], Awaitable[T]], items: Iterable[ItemT]) -> list[T]:
        async def _bounded(item: ItemT) -> T:
            async with self.limiter:
                return await fn(item)

        return await _join(*(_bounded(item) for item in items))

    async def run(
        self,
        *,
        name: str,
        description: str,
        owner: str,
        languages: Sequence[LanguageRecord],
        extraction: ExtractionResult,
    ) -> IngestReport:
        repo = await self.session.create_repository(name, description, owner)
        report = IngestReport(repository_id=repo.id)

        await self._fan_out(
            lambda lang: self.session.add_repository_language(repo.id, lang.id), languages
        )
        report.languages = len(languages)

        contributors, branches, files = await _join(
            self._create_contributors(repo, extraction.contributors),
            self._create_branches(repo, extraction.branches),
            self._create_files(repo, extraction.files),
        )
        report.contributors = len(contributors)
        report.branches = len(branches)
        report.files = len(files)

        commits, links = await self._create_commits(repo, extraction.commits, contributors, branches)
        report.commits = len(commits)
        report.commit_branches = links

        created, placeholders = await self._create_modifications(
            repo, extraction.modifications, commits, files
        )
        report.modifications = created
        report.placeholder_files = placeholders
        report.files += placeholders
        return report

    # -- contributors / branches / files --------------------------------------

    async def _create_contributors(
        self, repo: RepositoryRecord, names: list[str]
    ) -> dict[str, ContributorRecord]:
        distinct = list(dict.fromkeys(names))
        records = await self._fan_out(
            lambda n: self.session.create_contributor(n, repo.id), distinct
        )
        logger.debug("Created %d contributors", len(records))
        return {r.name: r for r in records}

    async def _create_branches(
        self, repo: RepositoryRecord, branches: list[SourceBranch]
    ) -> list[BranchRecord]:
        distinct = list(dict.fromkeys((b.name, b.type) for b in branches))
        if len(distinct) != len(branches):
            logger.warning(
                "Dropped %d duplicate branch entries", len(branches) - len(distinct)
            )
        records = await self._fan_out(
            lambda b: self.session.create_branch(b[0], b[1], repo.id), distinct
        )
        logger.debug("Created %d branches", len(records))
        return records

    async def _language_for(self, filename: str) -> int | None:
        ext = file_extension(filename)
        if ext is None:
            return None
        key = ext.lower()
        if key not in self._ext_cache:
            self._ext_cache[key] = await self.registry.resolve_extension(ext)
        return self._ext_cache[key]

    async def _create_files(
        self, repo: RepositoryRecord, files: list[SourceFile]
    ) -> dict[str, FileRecord]:
        async def _create(file: SourceFile) -> FileRecord:
            return await self.session.create_file(
                name=file.name,
                size=file.size,
                path=file.path,
                repo_id=repo.id,
                language_id=await self._language_for(file.name),
            )

        records = await self._fan_out(_create, files)
        logger.debug("Created %d files", len(records))
        return {r.path: r for r in records}

    # -- commits ---------------------------------------------------------------

    async def _create_commits(
        self,
        repo: RepositoryRecord,
        commits: list[SourceCommit],
        contributors: dict[str, ContributorRecord],
        branches: list[BranchRecord],
    ) -> tuple[dict[str, CommitRecord], int]:
        authors: list[ContributorRecord] = []
        for commit in commits:
            author = contributors.get(commit.author)
            if author is None:
                raise NotFoundError(
                    "contributor",
                    f"Author {commit.author!r} of commit {commit.hash} is not a contributor.",
                )
            authors.append(author)

        async def _create(pair: tuple[SourceCommit, ContributorRecord]) -> tuple[CommitRecord, int]:
            commit, author = pair
            record = await self.session.create_commit(
                title=commit.title,
                content=commit.content,
                hash=commit.hash,
                author_id=author.id,
                created_at=commit.created_at,
                repo_id=repo.id,
            )
            declared = set(commit.branches)
            targets = [b for b in branches if b.name in declared]
            for branch in targets:
                await self.session.link_commit_branch(record.id, branch.id)
            return record, len(targets)

        results = await self._fan_out(_create, zip(commits, authors))
        logger.debug("Created %d commits", len(results))
        return {r.hash: r for r, _ in results}, sum(n for _, n in results)

    # -- modifications and reconciliation --------------------------------------

    async def _create_modifications(
        self,
        repo: RepositoryRecord,
        modifications: list[SourceModification],
        commits: dict[str, CommitRecord],
        files: dict[str, FileRecord],
    ) -> tuple[int, int]:
        for mod in modifications:
            if mod.commit not in commits:
                raise NotFoundError(
                    "commit", f"Commit {mod.commit} touching {mod.file} was not imported."
                )

        plan = partition_modifications(modifications, files)

        async def _create(pair: tuple[SourceModification, FileRecord]) -> None:
            mod, file = pair
            await self.session.create_modification(
                type=mod.type, commit_id=commits[mod.commit].id, file_id=file.id
            )

        await self._fan_out(_create, ((m, files[m.file]) for m in plan.resolvable))

        if plan.orphaned:
            logger.warning(
                "Creating %d placeholder files for paths missing from the snapshot",
                len(plan.orphaned),
            )

        async def _placeholder(path: str) -> FileRecord:
            return await self.session.create_file(
                name=placeholder_name(path),
                size=UNKNOWN_SIZE,
                path=path,
                repo_id=repo.id,
                language_id=None,
            )

        placeholders = await self._fan_out(_placeholder, plan.orphaned_paths)
        by_path = {p.path: p for p in placeholders}
        deferred = [(m, by_path[path]) for path, mods in plan.orphaned.items() for m in mods]
        await self._fan_out(_create, deferred)

        return len(plan.resolvable) + len(deferred), len(placeholders)
