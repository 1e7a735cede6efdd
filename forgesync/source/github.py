"""GitHub metadata source using PyGithub."""

import asyncio
import os
from functools import cached_property

from github import Auth, Github, UnknownObjectException
from github.Repository import Repository

from forgesync.config.models import SourceConfig
from forgesync.source.git_local import split_message
from forgesync.source.models import (
    ExtractionResult,
    SourceBranch,
    SourceCommit,
    SourceFile,
    SourceModification,
)

# GitHub file status -> modification type
_STATUS_TYPES = {
    "added": "add",
    "copied": "add",
    "removed": "delete",
    "modified": "modify",
    "changed": "modify",
    "renamed": "rename",
}


class GitHubSource:
    """Reads repository history from the GitHub API.

    PyGithub is synchronous, so all blocking calls are wrapped
    with asyncio.to_thread() to avoid blocking the event loop.
    """

    def __init__(
        self, token: str | None = None, owner: str | None = None, max_commits: int = 1000
    ):
        self._token = token or os.environ.get("GITHUB_TOKEN", "")
        if not self._token:
            raise ValueError(
                "GitHub token required. Pass token= or set GITHUB_TOKEN env var."
            )
        self.owner = owner
        self.max_commits = max_commits

    @classmethod
    def from_config(cls, config: SourceConfig) -> "GitHubSource":
        token = os.environ.get(config.token_env, "")
        if not token:
            raise ValueError(
                f"GitHub token not found. Set the {config.token_env} environment variable."
            )
        return cls(token=token, owner=config.github_owner, max_commits=config.max_commits)

    @cached_property
    def _client(self) -> Github:
        auth = Auth.Token(self._token)
        return Github(auth=auth)

    def _full_name(self, name: str) -> str:
        if self.owner and "/" not in name:
            return f"{self.owner}/{name}"
        return name

    def _get_repo(self, name: str) -> Repository:
        return self._client.get_repo(self._full_name(name))

    async def exists(self, name: str) -> bool:
        def _sync() -> bool:
            try:
                self._get_repo(name)
            except UnknownObjectException:
                return False
            return True

        return await asyncio.to_thread(_sync)

    async def extract(self, name: str) -> ExtractionResult:
        return await asyncio.to_thread(self._extract_sync, name)

    def _extract_sync(self, name: str) -> ExtractionResult:
        repo = self._get_repo(name)

        branches: list[SourceBranch] = []
        membership: dict[str, list[str]] = {}
        seen: dict[str, object] = {}
        for branch in repo.get_branches():
            branches.append(SourceBranch(name=branch.name, type="local"))
            for commit in repo.get_commits(sha=branch.name)[: self.max_commits]:
                names = membership.setdefault(commit.sha, [])
                if branch.name not in names:
                    names.append(branch.name)
                seen.setdefault(commit.sha, commit)

        ordered = sorted(
            seen.values(), key=lambda c: c.commit.author.date, reverse=True
        )[: self.max_commits]

        commits: list[SourceCommit] = []
        contributors: list[str] = []
        modifications: list[SourceModification] = []
        for commit in ordered:
            git_commit = commit.commit
            title, body = split_message(git_commit.message)
            author = git_commit.author.name or ""
            commits.append(
                SourceCommit(
                    title=title,
                    content=body,
                    hash=commit.sha,
                    author=author,
                    created_at=git_commit.author.date,
                    branches=membership[commit.sha],
                )
            )
            if author not in contributors:
                contributors.append(author)
            for changed in commit.files:
                modifications.append(
                    SourceModification(
                        type=_STATUS_TYPES.get(changed.status, "modify"),
                        file=changed.filename,
                        commit=commit.sha,
                    )
                )

        files: list[SourceFile] = []
        if branches:
            tree = repo.get_git_tree(repo.default_branch, recursive=True)
            files = [
                SourceFile(
                    name=element.path.rsplit("/", 1)[-1],
                    size=element.size or 0,
                    path=element.path,
                )
                for element in tree.tree
                if element.type == "blob"
            ]

        return ExtractionResult(
            commits=commits,
            files=files,
            branches=branches,
            contributors=contributors,
            modifications=modifications,
        )
