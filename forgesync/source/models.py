"""Pydantic models for extracted version-control metadata."""

from datetime import datetime

from pydantic import BaseModel, Field


class SourceCommit(BaseModel):
    """A commit as reported by a metadata source."""

    title: str
    content: str = ""
    hash: str = Field(min_length=1)
    author: str = Field(description="Author name exactly as recorded in history")
    created_at: datetime
    branches: list[str] = Field(
        default_factory=list, description="Names of the branches this commit belongs to"
    )


class SourceFile(BaseModel):
    """A file in the current snapshot of the repository."""

    name: str
    size: int = Field(ge=0, description="Size in bytes")
    path: str


class SourceBranch(BaseModel):
    name: str
    type: str = "local"


class SourceModification(BaseModel):
    """A change applied to one file path by one commit."""

    type: str = Field(description="add | modify | delete | rename")
    file: str = Field(description="Path of the touched file")
    commit: str = Field(description="Hash of the commit that made the change")


class ExtractionResult(BaseModel):
    """Everything a metadata source knows about one repository."""

    commits: list[SourceCommit] = Field(default_factory=list)
    files: list[SourceFile] = Field(default_factory=list)
    branches: list[SourceBranch] = Field(default_factory=list)
    contributors: list[str] = Field(default_factory=list)
    modifications: list[SourceModification] = Field(default_factory=list)
