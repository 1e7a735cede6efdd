"""Repository ingestion: validation, write cascade, and the service facade."""

from forgesync.ingest.browse import RepositoryBrowser
from forgesync.ingest.engine import IngestionEngine, check_extraction
from forgesync.ingest.models import (
    BranchInfo,
    CommitInfo,
    FileInfo,
    IngestReport,
    ModificationInfo,
    RepoData,
    RepositoryInfo,
    ServiceError,
    ServiceResult,
)
from forgesync.ingest.reconcile import (
    ReconciliationPlan,
    file_extension,
    partition_modifications,
    placeholder_name,
)
from forgesync.ingest.service import RepositoryService
from forgesync.ingest.validation import ValidationGate, validate_name

__all__ = [
    "BranchInfo",
    "CommitInfo",
    "FileInfo",
    "IngestReport",
    "IngestionEngine",
    "ModificationInfo",
    "ReconciliationPlan",
    "RepoData",
    "RepositoryBrowser",
    "RepositoryInfo",
    "RepositoryService",
    "ServiceError",
    "ServiceResult",
    "ValidationGate",
    "check_extraction",
    "file_extension",
    "partition_modifications",
    "placeholder_name",
    "validate_name",
]
