"""Metadata source interface."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from forgesync.source.models import ExtractionResult


@runtime_checkable
class MetadataSource(Protocol):
    """Upstream system of record that holds the raw repositories.

    The engine treats it as opaque: it only depends on the shape of
    ExtractionResult, never on how the history was walked.
    """

    async def exists(self, name: str) -> bool: ...

    async def extract(self, name: str) -> ExtractionResult: ...
