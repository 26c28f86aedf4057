"""
Unit tests for the state key-value stores.
"""
import pytest

from listing_dedupe.errors import StateStoreError
from listing_dedupe.stores import JsonFileStore, MemoryStore, RedisStore, TieredStore


class Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestMemoryStore:
    """Tests for the in-process tier."""

    def test_put_get_delete(self):
        store = MemoryStore()
        store.put("k", "v")
        assert store.get("k") == "v"
        store.delete("k")
        assert store.get("k") is None

    def test_ttl_expiry(self):
        clock = Clock()
        store = MemoryStore(clock=clock)
        store.put("k", "v", ttl=10)
        clock.now = 9.9
        assert store.get("k") == "v"
        clock.now = 10.0
        assert store.get("k") is None
        assert len(store) == 0


class TestRedisStore:
    """Tests for the redis cache tier."""

    def test_prefixed_keys_and_ttl(self, fake_redis):
        store = RedisStore(fake_redis, default_ttl=60)
        store.put("state:abc", "{}")
        assert fake_redis.data == {"listing_dedupe:state:abc": "{}"}
        assert fake_redis.ttls["listing_dedupe:state:abc"] == 60
        assert store.get("state:abc") == "{}"

    def test_no_ttl_uses_plain_set(self, fake_redis):
        RedisStore(fake_redis).put("k", "v")
        assert fake_redis.ttls == {}
        assert fake_redis.data["listing_dedupe:k"] == "v"

    def test_bytes_decoded(self, fake_redis):
        fake_redis.data["listing_dedupe:k"] = b"value"
        assert RedisStore(fake_redis).get("k") == "value"

    def test_read_failure_is_a_miss(self, broken_redis):
        assert RedisStore(broken_redis).get("k") is None

    def test_write_failure_raises(self, broken_redis):
        with pytest.raises(StateStoreError):
            RedisStore(broken_redis).put("k", "v")

    def test_delete_failure_ignored(self, broken_redis):
        RedisStore(broken_redis).delete("k")


class TestJsonFileStore:
    """Tests for the durable tier."""

    def test_round_trip(self, tmp_path):
        store = JsonFileStore(tmp_path / "state")
        store.put("rows:abc:0", '[["1", "Lamp"]]', ttl=1)
        assert store.get("rows:abc:0") == '[["1", "Lamp"]]'
        assert [p.name for p in (tmp_path / "state").iterdir()] == ["rows_abc_0.json"]

    def test_missing_key(self, tmp_path):
        store = JsonFileStore(tmp_path)
        assert store.get("nope") is None
        store.delete("nope")


class TestTieredStore:
    """Tests for ordered multi-tier reads and writes."""

    def test_writes_every_tier(self, tmp_path, fake_redis):
        memory, redis_tier, file_tier = MemoryStore(), RedisStore(fake_redis), JsonFileStore(tmp_path)
        TieredStore([memory, redis_tier, file_tier]).put("k", "v")
        assert memory.get("k") == redis_tier.get("k") == file_tier.get("k") == "v"

    def test_durable_hit_repopulates_faster_tiers(self, tmp_path, fake_redis):
        memory, redis_tier, file_tier = MemoryStore(), RedisStore(fake_redis), JsonFileStore(tmp_path)
        file_tier.put("k", "v")
        store = TieredStore([memory, redis_tier, file_tier], ttl=30)

        assert store.get("k") == "v"
        assert memory.get("k") == "v"
        assert fake_redis.data["listing_dedupe:k"] == "v"
        assert fake_redis.ttls["listing_dedupe:k"] == 30

    def test_broken_cache_tier_falls_through(self, tmp_path, broken_redis):
        store = TieredStore([MemoryStore(), RedisStore(broken_redis), JsonFileStore(tmp_path)])
        store.put("k", "v")
        fresh = TieredStore([MemoryStore(), RedisStore(broken_redis), JsonFileStore(tmp_path)])
        assert fresh.get("k") == "v"

    def test_write_fails_when_no_tier_accepts(self, broken_redis):
        store = TieredStore([RedisStore(broken_redis)])
        with pytest.raises(StateStoreError):
            store.put("k", "v")

    def test_delete_from_every_tier(self, tmp_path):
        memory, file_tier = MemoryStore(), JsonFileStore(tmp_path)
        store = TieredStore([memory, file_tier])
        store.put("k", "v")
        store.delete("k")
        assert store.get("k") is None
        assert file_tier.get("k") is None

    def test_json_helpers(self, store):
        store.put_json("meta:abc", {"header": ["Item ID", "Título"]})
        assert store.get_json("meta:abc") == {"header": ["Item ID", "Título"]}
        assert store.get_json("missing") is None

    def test_needs_a_store(self):
        with pytest.raises(ValueError):
            TieredStore([])
