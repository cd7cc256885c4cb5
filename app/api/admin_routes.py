from dataclasses import asdict

from fastapi import APIRouter, Depends, Request

from app.analytics.events import STATUS_UPDATE, emit_event
from app.api.auth import require_admin
from app.api.schemas import CommentRequest, StatusUpdateRequest
from app.core.submission import add_admin_comment, sanitized_view, update_status
from app.observability.logging import log
from app.store.analytics_repo import recent_events
from app.store.submission_repo import load_submission, save_submission
from app.utils.lock import submission_lock
import app.observability.metrics as metrics

router = APIRouter(prefix="/admin", tags=["admin"])

@router.get("/submissions/{submission_id}")
def get_submission_admin(submission_id: str, _=Depends(require_admin)):
    """
    Sanitized record plus the verification counters an outside lockout policy
    reads. The stored verification answers are only ever returned here.
    """
    record = load_submission(submission_id)
    view = asdict(sanitized_view(record))
    return {
        "success": True,
        "data": view,
        "personalInfo": asdict(record.personalInfo),
        "verification": {
            "verified": bool(record.verification.verified),
            "method": record.verification.method,
            "attempts": int(record.verification.attempts or 0),
        },
    }

@router.patch("/submissions/{submission_id}/status")
def update_submission_status(submission_id: str, body: StatusUpdateRequest, request: Request, _=Depends(require_admin)):
    with submission_lock(submission_id):
        record = load_submission(submission_id)
        previous = update_status(record, body.status)
        save_submission(record)

    metrics.increment_status_update(body.status)
    emit_event(
        STATUS_UPDATE,
        record.sessionId,
        userAgent=request.headers.get("user-agent"),
        data={"submissionId": record.id, "oldStatus": previous, "newStatus": body.status},
    )
    log(event="submission_status_updated", submissionId=record.id, oldStatus=previous, newStatus=body.status)
    return {"success": True, "message": "Status updated", "data": asdict(sanitized_view(record))}

@router.post("/submissions/{submission_id}/comments")
def add_comment(submission_id: str, body: CommentRequest, _=Depends(require_admin)):
    with submission_lock(submission_id):
        record = load_submission(submission_id)
        add_admin_comment(record, body.comment, created_by=body.adminUser)
        save_submission(record)
    log(event="submission_comment_added", submissionId=record.id, comments=len(record.adminComments))
    return {"success": True, "message": "Comment added", "data": asdict(sanitized_view(record))}

@router.get("/metrics")
def get_metrics(_=Depends(require_admin)):
    return metrics.get_metrics_snapshot()

@router.get("/analytics/recent")
def get_recent_analytics(limit: int = 50, _=Depends(require_admin)):
    """Latest funnel events (already redacted at emit time)."""
    limit = max(1, min(int(limit), 500))
    return {"events": recent_events(limit)}
