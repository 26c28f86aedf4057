"""
Pytest configuration and fixtures for listing duplicate detection tests.
"""
import pytest

from listing_dedupe.config import DedupeConfig
from listing_dedupe.stores import JsonFileStore, MemoryStore, TieredStore

HEADER = ["Item number", "Title", "Start date"]


def make_csv(rows, header=HEADER):
    """Join rows into CSV text without quoting."""
    return "\n".join(",".join(str(c) for c in row) for row in [header] + list(rows))


@pytest.fixture
def listing_rows():
    """
    Parsed export with one duplicate group of three listings.
    1001, 1002 and 1004 share a title; 1004 has no usable date.
    """
    return [
        list(HEADER),
        ["1001", "Blue Widget Large", "2024-01-01"],
        ["1002", "blue widget large", "2024-03-01"],
        ["1003", "Red Gadget", "2024-02-01"],
        ["1004", "Blue  Widget Large", "not a date"],
        ["1005", "Green Thing", "2024-01-15"],
    ]


@pytest.fixture
def listing_csv(listing_rows):
    return make_csv(listing_rows[1:])


@pytest.fixture
def unique_csv():
    return make_csv([
        ["1", "Alpha Lamp", "2024-01-01"],
        ["2", "Beta Chair", "2024-01-02"],
        ["3", "Gamma Table", "2024-01-03"],
    ])


@pytest.fixture
def config(tmp_path):
    return DedupeConfig(state_dir=tmp_path / "state", output_dir=tmp_path / "out")


@pytest.fixture
def store(tmp_path):
    return TieredStore([MemoryStore(), JsonFileStore(tmp_path / "state")])


class FakeRedis:
    """Minimal stand-in for the redis client calls RedisStore makes."""

    def __init__(self):
        self.data = {}
        self.ttls = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        self.data[key] = value

    def setex(self, key, ttl, value):
        self.data[key] = value
        self.ttls[key] = ttl

    def delete(self, key):
        self.data.pop(key, None)


class BrokenRedis:
    """Redis client whose every call fails as if the server were down."""

    def get(self, key):
        raise ConnectionError("connection refused")

    def set(self, key, value):
        raise ConnectionError("connection refused")

    def setex(self, key, ttl, value):
        raise ConnectionError("connection refused")

    def delete(self, key):
        raise ConnectionError("connection refused")


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def broken_redis():
    return BrokenRedis()
