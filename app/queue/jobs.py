from typing import Any, Dict

from app.observability.logging import log
from app.store.analytics_repo import store_event

def record_analytics_event_job(event: Dict[str, Any]):
    """
    Background job writing one analytics event. The event was redacted by
    the producer; failures propagate so RQ can retry.
    """
    try:
        store_event(event)
    except Exception as e:
        log(event="analytics_job_exception", eventType=event.get("eventType"), error=str(e))
        raise
