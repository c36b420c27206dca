"""Key-value stores that hold the catalog's JSON blobs."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from threading import Lock

from quizbuddy.core.errors import StorageError

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Opaque string blobs addressed by key."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        raise NotImplementedError

    @abstractmethod
    def put(self, key: str, value: str) -> None:
        raise NotImplementedError


class InMemoryStore(KeyValueStore):
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._lock = Lock()
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def put(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value


class JsonFileStore(KeyValueStore):
    """Stores each key as ``<directory>/<key>.json``."""

    def __init__(self, directory: Path) -> None:
        self._directory = directory.expanduser().resolve()
        self._lock = Lock()

    @property
    def directory(self) -> Path:
        return self._directory

    def get(self, key: str) -> str | None:
        path = self._path_for(key)
        with self._lock:
            if not path.exists():
                return None
            try:
                return path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                raise StorageError(f"Could not read {path}: {exc}") from exc

    def put(self, key: str, value: str) -> None:
        path = self._path_for(key)
        temp_path = path.with_suffix(".json.tmp")
        with self._lock:
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                temp_path.write_text(value, encoding="utf-8")
                temp_path.replace(path)
            except OSError as exc:
                raise StorageError(f"Could not write {path}: {exc}") from exc
        logger.debug("Wrote %d characters to %s", len(value), path)

    def _path_for(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key.startswith("."):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self._directory / f"{key}.json"
