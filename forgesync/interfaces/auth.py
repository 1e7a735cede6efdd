"""Actor token interface."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class TokenVerifier(Protocol):
    """Resolves an opaque actor token to the actor's identifier, or None."""

    def resolve(self, token: str | None) -> str | None: ...
