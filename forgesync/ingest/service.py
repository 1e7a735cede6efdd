"""Service layer: the create-repository operation plus read-side browsing."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from forgesync.config.models import ForgeSyncConfig
from forgesync.errors import (
    ConflictError,
    ForgeSyncError,
    NotFoundError,
    UnexpectedError,
    ValidationError,
)
from forgesync.ingest.browse import RepositoryBrowser
from forgesync.ingest.engine import IngestionEngine
from forgesync.ingest.models import IngestReport, RepoData, ServiceResult
from forgesync.ingest.validation import ValidationGate
from forgesync.interfaces.auth import TokenVerifier
from forgesync.interfaces.registry import LanguageRegistry
from forgesync.interfaces.source import MetadataSource
from forgesync.interfaces.store import PersistenceStore
from forgesync.source.models import ExtractionResult
from forgesync.store.models import LanguageRecord

logger = logging.getLogger(__name__)


class RepositoryService:
    """Imports repositories and exposes the imported graph for browsing.

    All collaborators are injected; nothing here reaches for a global.
    Public methods return a ServiceResult and do not raise for expected
    failures.
    """

    def __init__(
        self,
        source: MetadataSource,
        registry: LanguageRegistry,
        store: PersistenceStore,
        verifier: TokenVerifier,
        config: ForgeSyncConfig | None = None,
    ) -> None:
        config = config or ForgeSyncConfig()
        self.source = source
        self.registry = registry
        self.store = store
        self.gate = ValidationGate(verifier, config.validation)
        self.engine = IngestionEngine(
            store, registry, max_concurrency=config.ingest.max_concurrency
        )
        self.browser = RepositoryBrowser(store, registry, config.validation)

    async def create_repository(
        self, repo_data: RepoData | dict[str, Any], token: str | None
    ) -> ServiceResult:
        """Validate, extract, and import one repository for the token's actor."""
        try:
            report = await self._create(repo_data, token)
        except ForgeSyncError as e:
            return ServiceResult.fail(e)
        except Exception as e:
            logger.exception("Unexpected failure while importing repository")
            return ServiceResult.fail(UnexpectedError(f"Unexpected failure: {e}", e))
        logger.debug("Import report: %s", report.model_dump())
        return ServiceResult.ok()

    async def _create(self, repo_data: RepoData | dict[str, Any], token: str | None) -> IngestReport:
        data = _coerce_repo_data(repo_data)
        actor = self.gate.check(data, token)
        name: str = data.name

        if not await self._guard_source(self.source.exists(name), "existence check"):
            raise NotFoundError("repository", f"Repository {name} does not exist upstream.")

        if await self.store.find_repository(name, actor) is not None:
            raise ConflictError(f"User {actor} already has a repository named {name}.")

        languages: list[LanguageRecord] = []
        for lang in data.languages:
            record = await self.registry.get_language(lang)
            if record is None:
                raise NotFoundError("language", f"Language {lang} does not exist.")
            languages.append(record)

        extraction: ExtractionResult = await self._guard_source(
            self.source.extract(name), "extraction"
        )
        return await self.engine.ingest(
            name=name,
            description=data.description or "",
            owner=actor,
            languages=languages,
            extraction=extraction,
        )

    async def _guard_source(self, call, what: str):
        try:
            return await call
        except ForgeSyncError:
            raise
        except Exception as e:
            logger.exception("Metadata source %s failed", what)
            raise UnexpectedError(f"Metadata source {what} failed: {e}", e) from e

    # -- read side -----------------------------------------------------------------

    async def get_info(self, name: str, owner: str) -> ServiceResult:
        return await self.browser.get_info(name, owner)

    async def search(self, term: str) -> ServiceResult:
        return await self.browser.search(term)

    async def list_for_owner(self, owner: str) -> ServiceResult:
        return await self.browser.list_for_owner(owner)


def _coerce_repo_data(repo_data: RepoData | dict[str, Any]) -> RepoData:
    if isinstance(repo_data, RepoData):
        return repo_data
    try:
        return RepoData.model_validate(repo_data)
    except PydanticValidationError as e:
        raise ValidationError("body", "Request body must be an object.") from e
