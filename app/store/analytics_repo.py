import json
from typing import Any, Dict, List, Optional

from redis import Redis

from app.settings import settings
from app.store.redis_conn import scoped_redis


def store_event(event: Dict[str, Any], r: Optional[Redis] = None) -> None:
    """Append one (already redacted) event, keeping the newest ANALYTICS_MAX_EVENTS."""
    key = settings.ANALYTICS_EVENTS_KEY
    cap = int(getattr(settings, "ANALYTICS_MAX_EVENTS", 10000) or 10000)
    with scoped_redis(r) as conn:
        conn.lpush(key, json.dumps(event, default=str))
        conn.ltrim(key, 0, cap - 1)


def recent_events(limit: int = 50, r: Optional[Redis] = None) -> List[Dict[str, Any]]:
    with scoped_redis(r) as conn:
        raw = conn.lrange(settings.ANALYTICS_EVENTS_KEY, 0, max(0, limit - 1)) or []
    out = []
    for item in raw:
        try:
            out.append(json.loads(item))
        except (TypeError, ValueError):
            continue
    return out
