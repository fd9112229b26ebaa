"""Key-value store backends for portfolio persistence.

``memory``  — process-local dict, nothing survives a restart.
``file``    — one JSON document on disk, rewritten atomically on each write.
``redis``   — one Redis string per key under a configurable prefix.
"""

from __future__ import annotations

import json
import os
import tempfile
from collections.abc import Mapping
from pathlib import Path

import redis

from config.settings import Settings, get_settings
from papertrade.core.exceptions import PersistenceError
from papertrade.core.interfaces import BaseKeyValueStore
from papertrade.core.logging import get_logger

log = get_logger(__name__)


class InMemoryStore(BaseKeyValueStore):
    """Dict-backed store, mainly for tests and throwaway sessions."""

    def __init__(self, initial: dict[str, bytes] | None = None) -> None:
        self._data: dict[str, bytes] = dict(initial or {})

    def get(self, key: str) -> bytes | None:
        return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        self._data[key] = bytes(value)

    def set_many(self, items: Mapping[str, bytes]) -> None:
        self._data.update({key: bytes(value) for key, value in items.items()})

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileStore(BaseKeyValueStore):
    """Stores every key in a single JSON file.

    Values are kept as UTF-8 text. An unreadable or corrupt file is
    treated as empty so a damaged state file never blocks startup.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._cache: dict[str, str] | None = None

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str) -> bytes | None:
        value = self._read().get(key)
        return value.encode("utf-8") if value is not None else None

    def set(self, key: str, value: bytes) -> None:
        self.set_many({key: value})

    def set_many(self, items: Mapping[str, bytes]) -> None:
        """Apply every entry with a single file rewrite."""
        data = dict(self._read())
        for key, value in items.items():
            try:
                data[key] = value.decode("utf-8")
            except UnicodeDecodeError as exc:
                msg = f"JsonFileStore only stores UTF-8 values (key={key})"
                raise PersistenceError(msg, context={"key": key}) from exc
        self._write(data)
        self._cache = data

    def _read(self) -> dict[str, str]:
        if self._cache is not None:
            return self._cache
        if not self._path.exists():
            self._cache = {}
            return self._cache
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            log.warning("state_file_unreadable", path=str(self._path), error=str(exc))
            raw = {}
        if not isinstance(raw, dict):
            log.warning("state_file_malformed", path=str(self._path))
            raw = {}
        self._cache = {str(k): str(v) for k, v in raw.items()}
        return self._cache

    def _write(self, data: dict[str, str]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self._path.name}.", dir=self._path.parent,
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, indent=2, sort_keys=True)
            os.replace(tmp_name, self._path)
        except OSError as exc:
            msg = f"Cannot write state file {self._path}: {exc}"
            raise PersistenceError(msg, context={"path": str(self._path)}) from exc


class RedisStore(BaseKeyValueStore):
    """Redis-backed store using plain string keys under *prefix*."""

    def __init__(
        self,
        client: redis.Redis,
        prefix: str = "papertrade:",
    ) -> None:
        self._redis = client
        self._prefix = prefix

    @classmethod
    def from_url(cls, url: str, prefix: str = "papertrade:") -> RedisStore:
        client = redis.Redis.from_url(url)
        log.info("redis_connected", prefix=prefix)
        return cls(client, prefix=prefix)

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def get(self, key: str) -> bytes | None:
        try:
            raw = self._redis.get(self._key(key))
        except redis.RedisError as exc:
            msg = f"Redis GET failed for {key}: {exc}"
            raise PersistenceError(msg, context={"key": key}) from exc
        if raw is None:
            return None
        return raw if isinstance(raw, bytes) else str(raw).encode("utf-8")

    def set(self, key: str, value: bytes) -> None:
        try:
            self._redis.set(self._key(key), value)
        except redis.RedisError as exc:
            msg = f"Redis SET failed for {key}: {exc}"
            raise PersistenceError(msg, context={"key": key}) from exc

    def set_many(self, items: Mapping[str, bytes]) -> None:
        """Write every entry with one atomic ``MSET``."""
        try:
            self._redis.mset({self._key(key): value for key, value in items.items()})
        except redis.RedisError as exc:
            msg = f"Redis MSET failed: {exc}"
            raise PersistenceError(msg, context={"keys": list(items)}) from exc

    def close(self) -> None:
        self._redis.close()
        log.info("redis_closed")


def build_store(settings: Settings | None = None) -> BaseKeyValueStore:
    """Create the backend selected by ``settings.store_backend``."""
    settings = settings or get_settings()
    if settings.store_backend == "memory":
        return InMemoryStore()
    if settings.store_backend == "redis":
        return RedisStore.from_url(
            settings.redis_url.get_secret_value(),
            prefix=settings.redis_key_prefix,
        )
    return JsonFileStore(settings.state_path)
