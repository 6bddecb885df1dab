import redis

from core.config import settings

# Connections are opened lazily on first command
redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)


def get_redis():
    """Return the shared client; looked up at call time so tests can swap it."""
    return redis_client
