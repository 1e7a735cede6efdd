"""Request, outcome, and report models for the ingestion service."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from forgesync.errors import ErrorKind, ForgeSyncError, NotFoundError, ValidationError


class RepoData(BaseModel):
    """Payload of a create-repository request.

    Fields are taken as given; ValidationGate owns the type checks so that
    failures are reported in its fixed order.
    """

    name: Any = None
    description: Any = ""
    languages: Any = Field(default_factory=list)


class ServiceError(BaseModel):
    kind: ErrorKind
    message: str
    field: str | None = None
    subject: str | None = None


class ServiceResult(BaseModel):
    """Single outcome value handed back to the caller; never raised."""

    success: bool
    error: ServiceError | None = None
    data: Any = None

    @classmethod
    def ok(cls, data: Any = None) -> ServiceResult:
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, exc: ForgeSyncError) -> ServiceResult:
        return cls(
            success=False,
            error=ServiceError(
                kind=exc.kind,
                message=exc.message,
                field=exc.field if isinstance(exc, ValidationError) else None,
                subject=exc.subject if isinstance(exc, NotFoundError) else None,
            ),
        )


class IngestReport(BaseModel):
    """Row counts written by one successful ingestion."""

    repository_id: int
    languages: int = 0
    contributors: int = 0
    branches: int = 0
    commits: int = 0
    commit_branches: int = 0
    files: int = 0
    placeholder_files: int = 0
    modifications: int = 0


# -- read side -----------------------------------------------------------------


class CommitInfo(BaseModel):
    hash: str
    title: str
    content: str
    author: str
    created_at: datetime
    branches: list[str] = Field(default_factory=list)


class FileInfo(BaseModel):
    path: str
    name: str
    size: int | None = Field(description="None for files that no longer exist")
    language: str | None = None


class ModificationInfo(BaseModel):
    type: str
    commit: str
    file: str


class BranchInfo(BaseModel):
    name: str
    type: str


class RepositoryInfo(BaseModel):
    """Browsable view of one imported repository."""

    id: int
    name: str
    description: str
    owner: str
    created_at: datetime
    languages: list[str] = Field(default_factory=list)
    contributors: list[str] = Field(default_factory=list)
    branches: list[BranchInfo] = Field(default_factory=list)
    commits: list[CommitInfo] = Field(default_factory=list)
    files: list[FileInfo] = Field(default_factory=list)
    modifications: list[ModificationInfo] = Field(default_factory=list)
