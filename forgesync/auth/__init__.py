"""Actor identity resolution."""

from forgesync.auth.tokens import JoseTokenVerifier

__all__ = ["JoseTokenVerifier"]
