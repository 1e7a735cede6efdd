"""ForgeSync - import a hosted repository's metadata graph into a relational store."""

from forgesync.config import ForgeSyncConfig, load_config
from forgesync.errors import (
    ConflictError,
    ErrorKind,
    ForgeSyncError,
    NotFoundError,
    UnexpectedError,
    ValidationError,
)
from forgesync.ingest import IngestionEngine, RepoData, RepositoryService, ServiceResult

__version__ = "0.1.0"

__all__ = [
    "ConflictError",
    "ErrorKind",
    "ForgeSyncConfig",
    "ForgeSyncError",
    "IngestionEngine",
    "NotFoundError",
    "RepoData",
    "RepositoryService",
    "ServiceResult",
    "UnexpectedError",
    "ValidationError",
    "load_config",
]
