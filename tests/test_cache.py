import json
from unittest.mock import MagicMock, patch

import redis

from lesson_tracker.utils.cache import (
    ANALYTICS_EVENTS_KEY, NullCache, RedisCache, build_cache, statistics_key, subscription_key
)


def test_keys():
    assert statistics_key(5) == "stats:user:5"
    assert subscription_key(5).endswith("5")


def test_null_cache_stores_nothing():
    cache = NullCache()
    assert cache.set("k", {"a": 1}) is False
    assert cache.get("k") is None
    assert cache.delete_pattern("stats:user:*") == 0
    assert cache.push_event({"event_type": "open"}) is False


def test_redis_cache_round_trip():
    client = MagicMock()
    cache = RedisCache(client, default_ttl=60)

    assert cache.set("k", {"a": 1}) is True
    client.setex.assert_called_once_with("k", 60, json.dumps({"a": 1}))

    client.get.return_value = json.dumps({"a": 1})
    assert cache.get("k") == {"a": 1}


def test_redis_errors_are_misses():
    client = MagicMock()
    client.get.side_effect = redis.ConnectionError("down")
    client.setex.side_effect = redis.ConnectionError("down")
    cache = RedisCache(client)

    assert cache.get("k") is None
    assert cache.set("k", 1) is False


def test_delete_pattern_scans_keys():
    client = MagicMock()
    client.scan_iter.return_value = iter(["stats:user:1", "stats:user:2"])
    cache = RedisCache(client)

    assert cache.delete_pattern("stats:user:*") == 2
    client.delete.assert_called_once_with("stats:user:1", "stats:user:2")


def test_push_event_caps_list():
    client = MagicMock()
    pipe = client.pipeline.return_value
    cache = RedisCache(client)

    assert cache.push_event({"event_type": "open"}, max_length=100) is True
    pipe.lpush.assert_called_once()
    pipe.ltrim.assert_called_once_with(ANALYTICS_EVENTS_KEY, 0, 99)
    pipe.execute.assert_called_once()


def test_build_cache_without_url():
    assert isinstance(build_cache(""), NullCache)
    assert not isinstance(build_cache(""), RedisCache)


def test_build_cache_unreachable_redis():
    client = MagicMock()
    client.ping.side_effect = redis.ConnectionError("refused")
    with patch("lesson_tracker.utils.cache.redis.from_url", return_value=client):
        cache = build_cache("redis://localhost:6399/0")
    assert cache.enabled is False
