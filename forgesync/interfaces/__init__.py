"""Collaborator interfaces injected into the ingestion service."""

from forgesync.interfaces.auth import TokenVerifier
from forgesync.interfaces.registry import LanguageRegistry
from forgesync.interfaces.source import MetadataSource
from forgesync.interfaces.store import PersistenceStore, RepositoryReader, StoreSession

__all__ = [
    "LanguageRegistry",
    "MetadataSource",
    "PersistenceStore",
    "RepositoryReader",
    "StoreSession",
    "TokenVerifier",
]
