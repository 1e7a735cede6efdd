"""Actor token verification with python-jose."""

from __future__ import annotations

import logging
import os

from jose import JWTError, jwt

from forgesync.config.models import AuthConfig

logger = logging.getLogger(__name__)


class JoseTokenVerifier:
    """Resolves a signed JWT to the actor id stored in its ``sub`` claim.

    Token issuance belongs to the authentication service; this class only
    checks signature and expiry and never raises for a bad token.
    """

    def __init__(self, secret: str, algorithm: str = "HS256") -> None:
        if not secret:
            raise ValueError("Token secret must not be empty.")
        self._secret = secret
        self.algorithm = algorithm

    @classmethod
    def from_config(cls, config: AuthConfig) -> JoseTokenVerifier:
        """Build a verifier, reading the secret from the env var named in config."""
        secret = os.environ.get(config.secret_env, "")
        if not secret:
            raise ValueError(
                f"Token secret not found. Set the {config.secret_env} environment variable."
            )
        return cls(secret=secret, algorithm=config.algorithm)

    def resolve(self, token: str | None) -> str | None:
        if not token:
            return None
        if token.lower().startswith("bearer "):
            token = token[7:].strip()
        try:
            claims = jwt.decode(token, self._secret, algorithms=[self.algorithm])
        except JWTError as e:
            logger.debug("Rejected actor token: %s", e)
            return None
        subject = claims.get("sub")
        if subject is None or subject == "":
            return None
        return str(subject)
