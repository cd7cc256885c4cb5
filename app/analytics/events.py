"""
Funnel analytics events emitted by the intake flow.

Event payloads pass through the masker before they leave the process, so a
national id shows up masked and verification answers show up redacted.
Delivery problems are logged and never fail the calling request.
"""
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional

from rq import Retry

from app.core.masking import redact_fields
from app.observability.logging import log
from app.queue.jobs import record_analytics_event_job
from app.queue.rq_conn import get_queue
from app.settings import settings
from app.store.analytics_repo import store_event
from app.utils.time import utc_now_iso

SUBMISSION_SUCCESS = "formSubmissionSuccess"
SUBMISSION_ERROR = "formSubmissionError"
STATUS_UPDATE = "submissionStatusUpdate"
VERIFICATION_STEP = "verificationStep"
NATIONAL_ID_VALIDATION = "cpfValidation"

# Free-form client fields scrubbed like `data`
_STRUCTURED_FIELDS = ("formData", "formSteps", "customData", "location")


@dataclass
class AnalyticsEvent:
    eventType: str
    sessionId: str = "unknown"
    timestamp: str = field(default_factory=utc_now_iso)
    userAgent: Optional[str] = None
    ipAddress: Optional[str] = None
    screenResolution: Optional[str] = None
    referrer: Optional[str] = None
    step: Optional[str] = None
    # Milliseconds spent on the step, as reported by the client
    duration: Optional[float] = None
    location: Optional[Dict[str, Any]] = None
    formData: Optional[Dict[str, Any]] = None
    formSteps: Optional[Dict[str, Any]] = None
    customData: Optional[Dict[str, Any]] = None
    data: Dict[str, Any] = field(default_factory=dict)


def build_event(event_type: str, session_id: Optional[str], **kwargs) -> AnalyticsEvent:
    data = redact_fields(kwargs.pop("data", None) or {})
    for key in _STRUCTURED_FIELDS:
        if kwargs.get(key) is not None:
            kwargs[key] = redact_fields(kwargs[key])
    return AnalyticsEvent(eventType=event_type, sessionId=session_id or "unknown", data=data, **kwargs)


def emit_event(event_type: str, session_id: Optional[str], **kwargs) -> Optional[AnalyticsEvent]:
    mode = settings.ANALYTICS_MODE
    event = build_event(event_type, session_id, **kwargs)
    payload = asdict(event)

    if mode == "off":
        log(event="analytics_dropped", eventType=event_type, sessionId=event.sessionId)
        return event

    try:
        if mode == "rq":
            q = get_queue()
            q.enqueue(record_analytics_event_job, payload, retry=Retry(max=3, interval=[1, 5, 15]))
        else:
            store_event(payload)
    except Exception as e:
        log(event="analytics_emit_failed", eventType=event_type, sessionId=event.sessionId, mode=mode, error=str(e))
        return None
    return event
