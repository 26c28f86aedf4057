"""
Key-value stores for chunked-run state.

A run may be resumed from a different process than the one that started
it, so state is written through an ordered list of stores:

    MemoryStore   - same process, fastest
    RedisStore    - shared cache, entries expire after a TTL
    JsonFileStore - durable source of truth, never expires

Reads try each tier in order and copy a hit back into the faster tiers.
"""

import json
import logging
import re
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional, Protocol, Tuple

from .errors import StateStoreError

log = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    name: str

    def get(self, key: str) -> Optional[str]: ...

    def put(self, key: str, value: str, ttl: Optional[int] = None) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStore:
    """In-process dict store with optional expiry."""

    name = "memory"

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}

    def get(self, key: str) -> Optional[str]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return value

    def put(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        expires_at = self._clock() + ttl if ttl else None
        self._data[key] = (value, expires_at)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def __len__(self) -> int:
        return len(self._data)


class RedisStore:
    """
    Redis-backed cache tier.

    Connection or command failures are logged and treated as a miss (get)
    or a skipped write (put/delete); the durable tier stays authoritative.
    """

    name = "redis"

    def __init__(self, redis_client, key_prefix: str = "listing_dedupe:", default_ttl: Optional[int] = None):
        self.redis_client = redis_client
        self.key_prefix = key_prefix
        self.default_ttl = default_ttl

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "RedisStore":
        import redis

        return cls(redis.Redis.from_url(url, decode_responses=True), **kwargs)

    def _get_key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    def get(self, key: str) -> Optional[str]:
        try:
            value = self.redis_client.get(self._get_key(key))
        except Exception as e:
            log.warning(f"Failed to read {key} from Redis: {e}")
            return None
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    def put(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        ttl = ttl or self.default_ttl
        try:
            if ttl:
                self.redis_client.setex(self._get_key(key), int(ttl), value)
            else:
                self.redis_client.set(self._get_key(key), value)
        except Exception as e:
            log.warning(f"Failed to write {key} to Redis: {e}")
            raise StateStoreError(f"redis write failed for {key}") from e

    def delete(self, key: str) -> None:
        try:
            self.redis_client.delete(self._get_key(key))
        except Exception as e:
            log.warning(f"Failed to delete {key} from Redis: {e}")


class JsonFileStore:
    """One JSON document per key under ``directory``. Entries never expire."""

    name = "file"

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        safe = re.sub(r"[^A-Za-z0-9_.-]", "_", key)
        return self.directory / f"{safe}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def put(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(value, encoding="utf-8")
        tmp.replace(path)

    def delete(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()


class TieredStore:
    """
    Ordered list of stores, fastest first.

    ``put`` writes to every tier and fails only when none accepted the
    value. ``get`` returns the first hit and back-fills faster tiers.
    """

    def __init__(self, stores: List[KeyValueStore], ttl: Optional[int] = None):
        if not stores:
            raise ValueError("TieredStore needs at least one store")
        self.stores = stores
        self.ttl = ttl

    def get(self, key: str) -> Optional[str]:
        for depth, store in enumerate(self.stores):
            try:
                value = store.get(key)
            except Exception as e:
                log.warning(f"{store.name} store read failed for {key}: {e}")
                continue
            if value is None:
                continue
            if depth > 0:
                log.debug(f"{key} found in {store.name} store; repopulating faster tiers")
                for faster in self.stores[:depth]:
                    try:
                        faster.put(key, value, self.ttl)
                    except Exception as e:
                        log.warning(f"Could not repopulate {faster.name} store for {key}: {e}")
            return value
        return None

    def put(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        written = 0
        for store in self.stores:
            try:
                store.put(key, value, ttl or self.ttl)
                written += 1
            except Exception as e:
                log.warning(f"{store.name} store write failed for {key}: {e}")
        if not written:
            raise StateStoreError(f"No store accepted {key}")

    def delete(self, key: str) -> None:
        for store in self.stores:
            try:
                store.delete(key)
            except Exception as e:
                log.warning(f"{store.name} store delete failed for {key}: {e}")

    def get_json(self, key: str):
        raw = self.get(key)
        return None if raw is None else json.loads(raw)

    def put_json(self, key: str, value, ttl: Optional[int] = None) -> None:
        self.put(key, json.dumps(value, ensure_ascii=False), ttl)


def build_store(state_dir: Path, redis_url: Optional[str] = None, ttl: Optional[int] = None) -> TieredStore:
    """Memory, optional Redis, then file store."""
    stores: List[KeyValueStore] = [MemoryStore()]
    if redis_url:
        stores.append(RedisStore.from_url(redis_url, default_ttl=ttl))
    stores.append(JsonFileStore(state_dir))
    return TieredStore(stores, ttl=ttl)
