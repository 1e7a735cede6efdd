from pydantic import BaseModel, Field
from typing import Literal


class StoreConfig(BaseModel):
    db_path: str = ".forgesync/forgesync.db"
    busy_timeout: float = Field(default=5.0, gt=0)


class SourceConfig(BaseModel):
    provider: Literal["local", "github"] = "local"
    repos_dir: str = ".forgesync/repos"
    token_env: str = "GITHUB_TOKEN"
    github_owner: str | None = None
    max_commits: int = Field(default=1000, gt=0)


class IngestConfig(BaseModel):
    max_concurrency: int = Field(default=8, gt=0)


class ValidationConfig(BaseModel):
    name_pattern: str = r"^[A-Za-z0-9._-]+$"
    name_max_length: int = Field(default=100, gt=0)
    description_max_length: int = Field(default=255, ge=0)
    max_languages: int = Field(default=20, gt=0)


class AuthConfig(BaseModel):
    secret_env: str = "FORGESYNC_SECRET"
    algorithm: str = "HS256"


class ForgeSyncConfig(BaseModel):
    store: StoreConfig = Field(default_factory=StoreConfig)
    source: SourceConfig = Field(default_factory=SourceConfig)
    ingest: IngestConfig = Field(default_factory=IngestConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    log_level: Literal["debug", "info", "warn", "error"] = "info"
    log_format: Literal["text", "json"] = "text"
