from contextlib import contextmanager
from typing import Iterator, Optional

from redis import Redis
from app.settings import settings


def get_redis() -> Redis:
    return Redis.from_url(settings.REDIS_URL, decode_responses=True)


@contextmanager
def scoped_redis(r: Optional[Redis] = None) -> Iterator[Redis]:
    """
    Yield a client for one operation. A caller-supplied client is used as-is
    and left open; otherwise a fresh one is opened and closed afterwards.
    """
    if r is not None:
        yield r
        return
    client = get_redis()
    try:
        yield client
    finally:
        client.close()
