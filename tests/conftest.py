"""Shared test fixtures for ForgeSync."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from jose import jwt

from forgesync.auth import JoseTokenVerifier
from forgesync.config.models import ForgeSyncConfig
from forgesync.ingest import IngestionEngine, RepositoryService
from forgesync.source.models import (
    ExtractionResult,
    SourceBranch,
    SourceCommit,
    SourceFile,
    SourceModification,
)
from forgesync.store import SQLiteStore

TEST_SECRET = "test-secret"


def make_token(sub: str = "alice-id", secret: str = TEST_SECRET, **claims) -> str:
    return jwt.encode({"sub": sub, **claims}, secret, algorithm="HS256")


@pytest.fixture
def sample_config():
    return ForgeSyncConfig()


@pytest.fixture
def store(tmp_path) -> SQLiteStore:
    s = SQLiteStore(db_path=str(tmp_path / "forgesync.db"))
    s.seed_languages()
    return s


@pytest.fixture
def engine(store) -> IngestionEngine:
    return IngestionEngine(store, store, max_concurrency=4)


@pytest.fixture
def verifier() -> JoseTokenVerifier:
    return JoseTokenVerifier(secret=TEST_SECRET)


@pytest.fixture
def token() -> str:
    return make_token()


@pytest.fixture
def token_factory():
    return make_token


@pytest.fixture
def demo_extraction() -> ExtractionResult:
    """Two commits by alice touching src/app.js on main and feature."""
    return ExtractionResult(
        commits=[
            SourceCommit(
                title="Add app",
                content="Initial version",
                hash="c1",
                author="alice",
                created_at=datetime(2024, 1, 1, tzinfo=UTC),
                branches=["main", "feature"],
            ),
            SourceCommit(
                title="Tweak app",
                hash="c2",
                author="alice",
                created_at=datetime(2024, 1, 2, tzinfo=UTC),
                branches=["feature"],
            ),
        ],
        files=[SourceFile(name="app.js", size=120, path="src/app.js")],
        branches=[SourceBranch(name="main"), SourceBranch(name="feature")],
        contributors=["alice"],
        modifications=[
            SourceModification(type="add", file="src/app.js", commit="c1"),
            SourceModification(type="modify", file="src/app.js", commit="c2"),
        ],
    )


@pytest.fixture
def mock_source(demo_extraction):
    source = MagicMock(name="MetadataSource")
    source.exists = AsyncMock(return_value=True)
    source.extract = AsyncMock(return_value=demo_extraction)
    return source


@pytest.fixture
def service(mock_source, store, verifier, sample_config) -> RepositoryService:
    return RepositoryService(mock_source, store, store, verifier, sample_config)
