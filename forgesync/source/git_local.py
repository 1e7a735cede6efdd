"""Metadata source for repositories pushed to a local directory, read with GitPython."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from git import Repo
from git.exc import InvalidGitRepositoryError, NoSuchPathError

from forgesync.config.models import SourceConfig
from forgesync.source.models import (
    ExtractionResult,
    SourceBranch,
    SourceCommit,
    SourceFile,
    SourceModification,
)

logger = logging.getLogger(__name__)

# git diff change letters -> modification type
_CHANGE_TYPES = {
    "A": "add",
    "C": "add",
    "D": "delete",
    "M": "modify",
    "T": "modify",
    "R": "rename",
}


def split_message(message: str) -> tuple[str, str]:
    """Split a commit message into (title, body)."""
    title, _, body = message.strip().partition("\n")
    return title.strip(), body.strip()


class LocalGitSource:
    """Reads repositories stored as ``<repos_dir>/<name>`` git work trees.

    GitPython is synchronous, so extraction runs in a worker thread to keep
    the event loop free.
    """

    def __init__(self, repos_dir: str, max_commits: int = 1000) -> None:
        self.repos_dir = Path(repos_dir)
        self.max_commits = max_commits

    @classmethod
    def from_config(cls, config: SourceConfig) -> LocalGitSource:
        return cls(repos_dir=config.repos_dir, max_commits=config.max_commits)

    def _repo_path(self, name: str) -> Path | None:
        """Resolve a repository name to its directory, refusing anything path-like."""
        if not name or name in (".", "..") or "/" in name or "\\" in name:
            return None
        return self.repos_dir / name

    def _open(self, name: str) -> Repo:
        path = self._repo_path(name)
        if path is None:
            raise ValueError(f"Invalid repository name: {name!r}")
        return Repo(str(path))

    async def exists(self, name: str) -> bool:
        def _sync() -> bool:
            path = self._repo_path(name)
            if path is None or not path.is_dir():
                return False
            try:
                Repo(str(path))
            except (InvalidGitRepositoryError, NoSuchPathError):
                return False
            return True

        return await asyncio.to_thread(_sync)

    async def extract(self, name: str) -> ExtractionResult:
        return await asyncio.to_thread(self._extract_sync, name)

    # -- extraction ------------------------------------------------------------

    def _extract_sync(self, name: str) -> ExtractionResult:
        repo = self._open(name)
        branches, refs = self._collect_branches(repo)

        membership: dict[str, list[str]] = {}
        seen: dict[str, object] = {}
        for branch_name, ref in refs:
            for commit in repo.iter_commits(ref, max_count=self.max_commits):
                names = membership.setdefault(commit.hexsha, [])
                if branch_name not in names:
                    names.append(branch_name)
                seen.setdefault(commit.hexsha, commit)

        ordered = sorted(seen.values(), key=lambda c: c.committed_date, reverse=True)
        ordered = ordered[: self.max_commits]

        commits: list[SourceCommit] = []
        contributors: list[str] = []
        modifications: list[SourceModification] = []
        for commit in ordered:
            title, body = split_message(commit.message)
            author = commit.author.name or ""
            commits.append(
                SourceCommit(
                    title=title,
                    content=body,
                    hash=commit.hexsha,
                    author=author,
                    created_at=commit.authored_datetime,
                    branches=membership[commit.hexsha],
                )
            )
            if author not in contributors:
                contributors.append(author)
            modifications.extend(self._commit_modifications(commit))

        result = ExtractionResult(
            commits=commits,
            files=self._snapshot_files(repo),
            branches=branches,
            contributors=contributors,
            modifications=modifications,
        )
        logger.debug(
            "Extracted %s: %d commits, %d files, %d branches",
            name,
            len(result.commits),
            len(result.files),
            len(result.branches),
        )
        return result

    def _collect_branches(self, repo: Repo) -> tuple[list[SourceBranch], list[tuple[str, object]]]:
        branches: list[SourceBranch] = []
        refs: list[tuple[str, object]] = []
        for head in repo.heads:
            branches.append(SourceBranch(name=head.name, type="local"))
            refs.append((head.name, head))
        for remote in repo.remotes:
            for ref in remote.refs:
                if ref.remote_head == "HEAD":
                    continue
                branches.append(SourceBranch(name=ref.remote_head, type="remote"))
                refs.append((ref.remote_head, ref))
        return branches, refs

    def _commit_modifications(self, commit) -> list[SourceModification]:
        if not commit.parents:
            return [
                SourceModification(type="add", file=item.path, commit=commit.hexsha)
                for item in commit.tree.traverse()
                if item.type == "blob"
            ]

        result: list[SourceModification] = []
        for diff in commit.parents[0].diff(commit):
            change = _CHANGE_TYPES.get(diff.change_type, "modify")
            path = diff.a_path if change == "delete" else (diff.b_path or diff.a_path)
            if path:
                result.append(SourceModification(type=change, file=path, commit=commit.hexsha))
        return result

    def _snapshot_files(self, repo: Repo) -> list[SourceFile]:
        try:
            tree = repo.head.commit.tree
        except ValueError:
            # Unborn HEAD: nothing committed yet.
            return []
        return [
            SourceFile(name=item.name, size=item.size, path=item.path)
            for item in tree.traverse()
            if item.type == "blob"
        ]
