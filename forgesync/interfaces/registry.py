"""Language registry interface."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from forgesync.store.models import LanguageRecord


@runtime_checkable
class LanguageRegistry(Protocol):
    """Read-only extension -> language lookup."""

    async def get_language(self, name: str) -> LanguageRecord | None: ...

    async def resolve_extension(self, extension: str) -> int | None: ...

    async def list_languages(self) -> list[LanguageRecord]: ...
