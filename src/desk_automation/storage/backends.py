"""
Storage backends for the configuration store.

A backend reads and writes one plain-data document:

    {"rules": [...], "settings": {...}}
"""

import copy
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)


class StorageBackend(ABC):
    """Abstract persistence for the configuration document."""

    @abstractmethod
    def read(self) -> Optional[Dict[str, Any]]:
        """
        Read the stored document.

        Returns:
            The document, or None if nothing has been stored yet
        """
        pass

    @abstractmethod
    def write(self, data: Dict[str, Any]) -> None:
        """Replace the stored document."""
        pass


class MemoryBackend(StorageBackend):
    """In-memory backend for tests and ephemeral runs."""

    def __init__(self, data: Optional[Dict[str, Any]] = None) -> None:
        self._data = copy.deepcopy(data) if data is not None else None
        self.writes = 0

    def read(self) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self._data)

    def write(self, data: Dict[str, Any]) -> None:
        self._data = copy.deepcopy(data)
        self.writes += 1


class YamlFileBackend(StorageBackend):
    """
    YAML file backend.

    Writes go to a temporary file in the same directory which then replaces
    the target, so readers never see a partial document.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).expanduser()

    def __repr__(self) -> str:
        return f"YamlFileBackend({str(self.path)!r})"

    def read(self) -> Optional[Dict[str, Any]]:
        if not self.path.exists():
            logger.debug(f"No configuration file at {self.path}")
            return None

        with open(self.path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)

        if data is None:
            return None
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} does not contain a mapping")
        return data

    def write(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        text = yaml.safe_dump(data, sort_keys=False, allow_unicode=True)

        fd, tmp_path = tempfile.mkstemp(prefix=self.path.name + ".", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as tmp:
                tmp.write(text)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_path, self.path)
        finally:
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass
        logger.debug(f"Configuration written to {self.path}")
