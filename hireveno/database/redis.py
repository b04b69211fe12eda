from hireveno.config import get_settings
import redis
import json

KEY_PREFIX = "hireveno:"

class RedisClient:
    """
    Thin JSON cache on top of redis.

    Only two things are cached: the restricted keyword list used by the chat
    content filter and the admin analytics snapshot. Callers check USE_REDIS
    before touching the client, so nothing here connects until first use.

    Keys are namespaced with KEY_PREFIX so the app can share a redis database.
    """

    def __init__(self):
        settings = get_settings()
        self.client = redis.StrictRedis(
            host=settings.redis_host,
            port=settings.redis_port,
            password=settings.redis_password,
            decode_responses=True
        )

    @staticmethod
    def _key(key: str) -> str:
        return f"{KEY_PREFIX}{key}"

    def get_json(self, key: str):
        """
        Read a cached JSON document.

        Returns:
            The decoded value, or None when the key is missing or expired
        """
        cached = self.client.get(self._key(key))
        return json.loads(cached) if cached else None

    def set_json(self, key: str, value, expiration: int):
        """
        Cache a JSON-serialisable value for `expiration` seconds.
        Datetimes and other non-JSON types are stored as strings.
        """
        self.client.setex(self._key(key), expiration, json.dumps(value, default=str))

    def delete_cache(self, key: str):
        self.client.delete(self._key(key))

# Global Redis client instance
redis_client = RedisClient()
