from .loader import load_config
from .models import (
    AuthConfig,
    ForgeSyncConfig,
    IngestConfig,
    SourceConfig,
    StoreConfig,
    ValidationConfig,
)

__all__ = [
    "AuthConfig",
    "ForgeSyncConfig",
    "IngestConfig",
    "SourceConfig",
    "StoreConfig",
    "ValidationConfig",
    "load_config",
]
