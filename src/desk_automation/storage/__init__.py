"""
Persistence for desk-automation.

Rules and global settings live in one document, stored as YAML on disk or in
memory for tests.
"""

from .backends import StorageBackend, MemoryBackend, YamlFileBackend
from .settings import GlobalSettings
from .store import ConfigurationStore, EXPORT_VERSION

__all__ = [
    "ConfigurationStore",
    "GlobalSettings",
    "StorageBackend",
    "MemoryBackend",
    "YamlFileBackend",
    "EXPORT_VERSION",
]
