from contextlib import contextmanager
import time
import uuid
from typing import Optional

from app.observability.logging import log
from app.settings import settings
from app.store.redis_conn import get_redis

_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class LockContention(RuntimeError):
    pass


@contextmanager
def submission_lock(submission_id: str, ttl_ms: Optional[int] = None, spins: int = 5, spin_sleep: float = 0.1):
    """
    Distributed lock to ensure single-writer per submission.
    Load, verification transition and save must all happen inside it.
    """
    ttl_ms = int(ttl_ms or settings.LOCK_TTL_MS)
    r = get_redis()
    key = f"lock:submission:{submission_id}"
    token = uuid.uuid4().hex
    acquired = bool(r.set(key, token, px=ttl_ms, nx=True))

    try:
        if not acquired:
            # Short spin, then give up so the API can answer 409
            for _ in range(spins):
                time.sleep(spin_sleep)
                if r.set(key, token, px=ttl_ms, nx=True):
                    acquired = True
                    break

            if not acquired:
                raise LockContention(f"Could not acquire lock for submission {submission_id}")

        yield
    finally:
        if acquired:
            # Release only if we own it; the TTL covers a failed release
            try:
                r.eval(_RELEASE_SCRIPT, 1, key, token)
            except Exception as e:
                log(event="lock_release_failed", submissionId=submission_id, error=str(e))
        r.close()
