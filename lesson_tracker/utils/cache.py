"""
Redis cache utility for statistics, subscription and lesson caching
"""
import redis
import json
import logging
from typing import Optional, Any, Dict
from lesson_tracker.config import settings

logger = logging.getLogger(__name__)

STATISTICS_PREFIX = "stats:user:"
SUBSCRIPTION_PREFIX = "subscription:status:"
LESSON_STRUCTURE_KEY = "lesson:structure"
ANALYTICS_EVENTS_KEY = "analytics:events"


def statistics_key(telegram_id: int) -> str:
    return f"{STATISTICS_PREFIX}{telegram_id}"


def subscription_key(telegram_id: int) -> str:
    return f"{SUBSCRIPTION_PREFIX}{telegram_id}"


class NullCache:
    """Cache that stores nothing; used when Redis is not configured or unreachable"""

    enabled = False

    def get(self, key: str) -> Optional[Any]:
        return None

    def set(self, key: str, value: Any, ttl: int = None) -> bool:
        return False

    def delete(self, key: str) -> bool:
        return False

    def delete_pattern(self, pattern: str) -> int:
        return 0

    def push_event(self, event: Dict[str, Any], max_length: int = None) -> bool:
        return False


class RedisCache(NullCache):
    """Redis-backed cache; every failure is logged and reported as a miss"""

    enabled = True

    def __init__(self, client: "redis.Redis", default_ttl: int = 600):
        self.redis_client = client
        self.default_ttl = default_ttl

    def get(self, key: str) -> Optional[Any]:
        """
        Get value from cache

        Args:
            key: Cache key

        Returns:
            Cached value or None
        """
        try:
            value = self.redis_client.get(key)
            if value:
                logger.debug(f"Cache hit: {key}")
                return json.loads(value)
            logger.debug(f"Cache miss: {key}")
            return None
        except Exception as e:
            logger.error(f"Cache get error: {str(e)}")
            return None

    def set(self, key: str, value: Any, ttl: int = None) -> bool:
        """
        Set value in cache

        Args:
            key: Cache key
            value: Value to cache (must be JSON serializable)
            ttl: Time to live in seconds (default from constructor)

        Returns:
            Success status
        """
        try:
            ttl = ttl or self.default_ttl
            serialized = json.dumps(value)
            self.redis_client.setex(key, ttl, serialized)
            logger.debug(f"Cache set: {key} (TTL: {ttl}s)")
            return True
        except Exception as e:
            logger.error(f"Cache set error: {str(e)}")
            return False

    def delete(self, key: str) -> bool:
        """Delete key from cache"""
        try:
            self.redis_client.delete(key)
            logger.debug(f"Cache delete: {key}")
            return True
        except Exception as e:
            logger.error(f"Cache delete error: {str(e)}")
            return False

    def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern"""
        try:
            keys = list(self.redis_client.scan_iter(match=pattern))
            if keys:
                self.redis_client.delete(*keys)
                logger.info(f"Cleared {len(keys)} cache entries matching {pattern}")
            return len(keys)
        except Exception as e:
            logger.error(f"Cache clear error: {str(e)}")
            return 0

    def push_event(self, event: Dict[str, Any], max_length: int = None) -> bool:
        """Append an analytics event to a capped list"""
        if max_length is None:
            max_length = settings.ANALYTICS_EVENTS_MAX
        try:
            pipe = self.redis_client.pipeline()
            pipe.lpush(ANALYTICS_EVENTS_KEY, json.dumps(event, default=str))
            pipe.ltrim(ANALYTICS_EVENTS_KEY, 0, max_length - 1)
            pipe.execute()
            return True
        except Exception as e:
            logger.error(f"Analytics event push error: {str(e)}")
            return False


def build_cache(url: str):
    """Connect to Redis, falling back to a NullCache when unavailable"""
    if not url:
        logger.info("Redis URL not configured. Caching disabled.")
        return NullCache()

    try:
        client = redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=5
        )
        # Test connection
        client.ping()
        logger.info("Redis connection established")
        return RedisCache(client, default_ttl=settings.STATISTICS_CACHE_TTL)
    except Exception as e:
        logger.warning(f"Redis connection failed: {str(e)}. Caching disabled.")
        return NullCache()


# Global instance
cache_service = build_cache(settings.REDIS_URL)
