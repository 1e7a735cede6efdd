"""Metadata sources for forgesync."""

from forgesync.config.models import SourceConfig
from forgesync.source.git_local import LocalGitSource
from forgesync.source.github import GitHubSource
from forgesync.source.models import (
    ExtractionResult,
    SourceBranch,
    SourceCommit,
    SourceFile,
    SourceModification,
)


def create_source(config: SourceConfig) -> LocalGitSource | GitHubSource:
    """Create a metadata source from config."""
    if config.provider == "local":
        return LocalGitSource.from_config(config)
    if config.provider == "github":
        return GitHubSource.from_config(config)
    raise ValueError(
        f"Unsupported source provider: {config.provider!r}. "
        "Supported: 'local', 'github'."
    )


__all__ = [
    "ExtractionResult",
    "GitHubSource",
    "LocalGitSource",
    "SourceBranch",
    "SourceCommit",
    "SourceFile",
    "SourceModification",
    "create_source",
]
