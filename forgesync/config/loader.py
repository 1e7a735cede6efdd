"""YAML config loading with env var expansion."""

import os
import re
from pathlib import Path

import yaml
from pydantic import ValidationError

from .models import ForgeSyncConfig


def load_config(cli_path: str | None = None) -> ForgeSyncConfig:
    """Load config with resolution order: CLI > project-local > user-global > defaults."""
    config_paths = [
        Path(cli_path) if cli_path else None,
        Path("./forgesync.yaml"),
        Path.home() / ".forgesync" / "config.yaml",
    ]

    for path in config_paths:
        if path and path.exists():
            try:
                with open(path) as f:
                    raw = yaml.safe_load(f)
                if raw is None:
                    continue
                raw = _expand_env_vars(raw)
                return _resolve_paths(ForgeSyncConfig(**raw), path)
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in {path}: {e}") from e
            except ValidationError as e:
                raise ValueError(f"Invalid config in {path}: {e}") from e

    return ForgeSyncConfig()


def _expand_env_vars(obj: object) -> object:
    """Recursively expand ${VAR} references in strings."""
    if isinstance(obj, str):
        return re.sub(r"\$\{(\w+)\}", lambda m: os.environ.get(m.group(1), ""), obj)
    elif isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(v) for v in obj]
    return obj


_PATH_FIELDS = (("store", "db_path"), ("source", "repos_dir"))


def _resolve_paths(config: ForgeSyncConfig, path: Path) -> ForgeSyncConfig:
    """Expand ~ in the store and repos paths. An empty path (usually an unset ${VAR}) is an error."""
    for section_name, field in _PATH_FIELDS:
        section = getattr(config, section_name)
        value = getattr(section, field).strip()
        if not value:
            raise ValueError(f"Invalid config in {path}: {section_name}.{field} is empty")
        setattr(section, field, str(Path(value).expanduser()))
    return config


# Default YAML template for `forgesync config init`
DEFAULT_CONFIG_TEMPLATE = """\
# forgesync.yaml

# Relational store
store:
  db_path: ".forgesync/forgesync.db"
  busy_timeout: 5.0

# Upstream metadata source
source:
  provider: "local"            # local | github
  repos_dir: ".forgesync/repos"
  token_env: "GITHUB_TOKEN"
  # github_owner: "acme"
  max_commits: 1000

# Ingestion
ingest:
  max_concurrency: 8

# Request validation
validation:
  name_pattern: "^[A-Za-z0-9._-]+$"
  name_max_length: 100
  description_max_length: 255
  max_languages: 20

# Actor tokens
auth:
  secret_env: "FORGESYNC_SECRET"
  algorithm: "HS256"

# Logging
log_level: "info"              # debug | info | warn | error
log_format: "text"             # text | json
"""
