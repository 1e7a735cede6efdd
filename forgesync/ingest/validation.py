"""Pre-flight checks run before any mutation."""

from __future__ import annotations

import re
from collections.abc import Callable
from typing import Any

from forgesync.config.models import ValidationConfig
from forgesync.errors import ValidationError
from forgesync.ingest.models import RepoData
from forgesync.interfaces.auth import TokenVerifier


class ValidationGate:
    """Validates a create-repository request and resolves the acting user.

    Every check runs, then the first failure in declared order is raised:
    name, actor, description, languages.
    """

    def __init__(self, verifier: TokenVerifier, config: ValidationConfig | None = None) -> None:
        self.verifier = verifier
        self.config = config or ValidationConfig()

    def check(self, data: RepoData, token: str | None) -> str:
        """Return the actor id, or raise ValidationError for the first failing field."""
        actor = self.verifier.resolve(token)
        checks: list[Callable[[], Any]] = [
            lambda: self.validate_name(data.name),
            lambda: self.validate_actor(actor),
            lambda: self.validate_description(data.description),
            lambda: self.validate_languages(data.languages),
        ]
        failures: list[ValidationError] = []
        for check in checks:
            try:
                check()
            except ValidationError as e:
                failures.append(e)

        if failures:
            raise failures[0]
        return self.validate_actor(actor)

    def validate_actor(self, actor: str | None) -> str:
        if actor is None:
            raise ValidationError("token", "Invalid or expired actor token.")
        return actor

    def validate_name(self, name: Any, field: str = "name") -> str:
        return validate_name(name, self.config, field)

    def validate_description(self, description: Any) -> str:
        if description is None:
            return ""
        if not isinstance(description, str):
            raise ValidationError("description", "Description must be text.")
        if len(description) > self.config.description_max_length:
            raise ValidationError(
                "description",
                f"Description must be at most {self.config.description_max_length} characters.",
            )
        return description

    def validate_languages(self, languages: Any) -> list[str]:
        if not isinstance(languages, list):
            raise ValidationError("languages", "Languages must be a list.")
        if len(languages) > self.config.max_languages:
            raise ValidationError(
                "languages", f"At most {self.config.max_languages} languages are allowed."
            )
        for lang in languages:
            if not isinstance(lang, str) or not lang.strip():
                raise ValidationError("languages", "Every language must be a non-empty name.")
        if len(set(languages)) != len(languages):
            raise ValidationError("languages", "Languages must not repeat.")
        return languages


def validate_name(name: Any, config: ValidationConfig, field: str = "name") -> str:
    """Check a repository name against length and character rules."""
    if not isinstance(name, str) or not name.strip():
        raise ValidationError(field, "Repository name is required.")
    if len(name) > config.name_max_length:
        raise ValidationError(
            field, f"Repository name must be at most {config.name_max_length} characters."
        )
    if name in (".", "..") or not re.fullmatch(config.name_pattern, name):
        raise ValidationError(
            field, "Repository name may only contain letters, digits, '.', '_' and '-'."
        )
    return name
