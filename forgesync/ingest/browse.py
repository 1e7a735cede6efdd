"""Read side: browse repositories that have already been imported."""

from __future__ import annotations

from forgesync.config.models import ValidationConfig
from forgesync.errors import ForgeSyncError, NotFoundError, ValidationError
from forgesync.ingest.models import (
    BranchInfo,
    CommitInfo,
    FileInfo,
    ModificationInfo,
    RepositoryInfo,
    ServiceResult,
)
from forgesync.ingest.validation import validate_name
from forgesync.interfaces.registry import LanguageRegistry
from forgesync.interfaces.store import RepositoryReader
from forgesync.store.models import RepositoryRecord


class RepositoryBrowser:
    """Assembles stored rows into browsable views. Never writes."""

    def __init__(
        self,
        reader: RepositoryReader,
        registry: LanguageRegistry,
        config: ValidationConfig | None = None,
    ) -> None:
        self.reader = reader
        self.registry = registry
        self.config = config or ValidationConfig()

    async def get_info(self, name: str, owner: str) -> ServiceResult:
        """Full browsable view of one imported repository."""
        try:
            validate_name(name, self.config)
            if not owner:
                raise ValidationError("owner", "Owner is required.")
            repo = await self.reader.find_repository(name, owner)
            if repo is None:
                raise NotFoundError("repository", f"User {owner} has no repository named {name}.")
            info = await self._build_info(repo)
        except ForgeSyncError as e:
            return ServiceResult.fail(e)
        return ServiceResult.ok(info)

    async def search(self, term: str) -> ServiceResult:
        try:
            validate_name(term, self.config, field="term")
            repos = await self.reader.search_repositories(term)
            if not repos:
                raise NotFoundError("repository", f"No repositories match {term}.")
        except ForgeSyncError as e:
            return ServiceResult.fail(e)
        return ServiceResult.ok(repos)

    async def list_for_owner(self, owner: str) -> ServiceResult:
        if not owner:
            return ServiceResult.fail(ValidationError("owner", "Owner is required."))
        return ServiceResult.ok(await self.reader.list_repositories_for_owner(owner))

    async def _build_info(self, repo: RepositoryRecord) -> RepositoryInfo:
        languages = await self.reader.list_repository_languages(repo.id)
        contributors = await self.reader.list_contributors(repo.id)
        branches = await self.reader.list_branches(repo.id)
        commits = await self.reader.list_commits(repo.id)
        links = await self.reader.list_commit_branches(repo.id)
        files = await self.reader.list_files(repo.id)
        modifications = await self.reader.list_modifications(repo.id)

        author_names = {c.id: c.name for c in contributors}
        branch_names = {b.id: b.name for b in branches}
        commit_branches: dict[int, list[str]] = {}
        for link in links:
            commit_branches.setdefault(link.commit, []).append(branch_names[link.branch])

        language_names: dict[int, str] = {}
        if any(f.language is not None for f in files):
            language_names = {lang.id: lang.name for lang in await self.registry.list_languages()}

        commit_hashes = {c.id: c.hash for c in commits}
        file_paths = {f.id: f.path for f in files}

        return RepositoryInfo(
            id=repo.id,
            name=repo.name,
            description=repo.description,
            owner=repo.owner,
            created_at=repo.created_at,
            languages=[lang.name for lang in languages],
            contributors=[c.name for c in contributors],
            branches=[BranchInfo(name=b.name, type=b.type) for b in branches],
            commits=[
                CommitInfo(
                    hash=c.hash,
                    title=c.title,
                    content=c.content,
                    author=author_names[c.author],
                    created_at=c.created_at,
                    branches=commit_branches.get(c.id, []),
                )
                for c in commits
            ],
            files=[
                FileInfo(
                    path=f.path,
                    name=f.name,
                    size=f.size,
                    language=language_names.get(f.language) if f.language is not None else None,
                )
                for f in files
            ],
            modifications=[
                ModificationInfo(
                    type=m.type, commit=commit_hashes[m.commit], file=file_paths[m.file]
                )
                for m in modifications
            ],
        )
