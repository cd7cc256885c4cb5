from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import ValidationError

from app.analytics.events import (
    NATIONAL_ID_VALIDATION,
    SUBMISSION_ERROR,
    SUBMISSION_SUCCESS,
    VERIFICATION_STEP,
    emit_event,
)
from app.api.auth import require_api_key
from app.api.normalize import normalize_form_payload
from app.api.schemas import (
    AnalyticsEventRequest,
    CreateSubmissionRequest,
    SubmissionCreated,
    SubmissionForm,
    ValidateRequest,
    ValidateResponse,
    VerificationStepRequest,
    VerificationStepResponse,
)
from app.core.checksum import (
    format_national_id,
    only_digits,
    validate_card_number,
    validate_national_id,
)
from app.core.errors import EngineError, InvalidInput, InvalidNationalId
from app.core.masking import mask_card_number, redact_value
from app.core.submission import create_submission, sanitized_view
from app.core.verification import submit_verification_step, verification_status
from app.settings import settings
from app.store.models import ClientMeta
from app.store.submission_repo import find_by_protocol, list_by_national_id, load_submission, save_submission
from app.utils.lock import submission_lock
from app.utils.time import now_ms
import app.observability.metrics as metrics

router = APIRouter(prefix="/api", dependencies=[Depends(require_api_key)])


def _client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def _parse_form(form_data: dict) -> SubmissionForm:
    try:
        return SubmissionForm.model_validate(normalize_form_payload(form_data))
    except ValidationError as e:
        # Field paths only; pydantic errors also carry the offending input
        fields = sorted({".".join(str(p) for p in err.get("loc", ())) for err in e.errors()})
        raise InvalidInput("Form fields failed validation", detail={"fields": fields})


@router.post("/submissions", status_code=201)
def create_submission_route(body: CreateSubmissionRequest, request: Request):
    user_agent = body.userAgent or request.headers.get("user-agent")
    client_ip = _client_ip(request)

    try:
        form = _parse_form(body.formData)
        record = create_submission(
            form,
            body.sessionId,
            client_meta=ClientMeta(userAgent=user_agent, ipAddress=client_ip, location=body.location),
            submitted_at=body.timestamp,
        )
        save_submission(record)
    except EngineError as e:
        metrics.increment_submission_rejected(e.code)
        emit_event(
            SUBMISSION_ERROR,
            body.sessionId,
            userAgent=user_agent,
            ipAddress=client_ip,
            data={"code": e.code, **e.detail},
        )
        raise

    metrics.increment_submission_created()
    emit_event(
        SUBMISSION_SUCCESS,
        record.sessionId,
        userAgent=user_agent,
        ipAddress=client_ip,
        data={
            "submissionId": record.id,
            "issueCategory": record.issueCategory,
            "protocol": record.protocolCode,
        },
    )
    created = SubmissionCreated(id=record.id, protocol=record.protocolCode, timestamp=record.submittedAt)
    return {"success": True, "message": "Submission recorded", "data": created.model_dump()}


@router.get("/submissions/{submission_id}")
def get_submission(submission_id: str):
    record = load_submission(submission_id)
    return {"success": True, "data": asdict(sanitized_view(record))}


@router.get("/submissions/national-id/{national_id}")
def get_submissions_by_national_id(national_id: str):
    digits = only_digits(national_id)
    if not validate_national_id(digits):
        raise InvalidNationalId("Invalid national id", detail={"nationalId": redact_value("nationalId", digits)})
    records = list_by_national_id(digits)
    return {
        "success": True,
        "count": len(records),
        "data": [asdict(sanitized_view(r)) for r in records],
    }


@router.get("/submissions/protocol/{code}")
def get_submission_by_protocol(code: str):
    record = find_by_protocol(only_digits(code))
    if record is None:
        raise HTTPException(status_code=404, detail="Submission not found")
    return {"success": True, "data": asdict(sanitized_view(record))}


@router.post("/submissions/{submission_id}/verify", response_model=VerificationStepResponse)
def verify_step(submission_id: str, body: VerificationStepRequest, request: Request):
    started = now_ms()
    with submission_lock(submission_id):
        record = load_submission(submission_id)

        # Lockout is a policy decision made here; the state machine only counts
        max_attempts = int(settings.VERIFICATION_MAX_ATTEMPTS or 0)
        v = record.verification
        if max_attempts > 0 and not v.verified and v.attempts >= max_attempts:
            raise HTTPException(status_code=429, detail="Too many verification attempts")

        outcome = submit_verification_step(record, body.step, body.value)
        save_submission(record)

    metrics.increment_verification_outcome(body.step, outcome.value)
    metrics.record_verification_latency(now_ms() - started)
    emit_event(
        VERIFICATION_STEP,
        record.sessionId,
        userAgent=request.headers.get("user-agent"),
        ipAddress=_client_ip(request),
        step=body.step,
        data={"submissionId": record.id, "outcome": outcome.value, "attempts": record.verification.attempts},
    )
    return VerificationStepResponse(
        outcome=outcome.value,
        status=verification_status(record),
        attempts=record.verification.attempts,
        verified=record.verification.verified,
    )


@router.post("/validate/national-id", response_model=ValidateResponse)
def validate_national_id_route(body: ValidateRequest, request: Request):
    valid = validate_national_id(body.value)
    emit_event(
        NATIONAL_ID_VALIDATION,
        body.sessionId,
        userAgent=request.headers.get("user-agent"),
        ipAddress=_client_ip(request),
        data={"nationalId": only_digits(body.value), "valid": valid},
    )
    return ValidateResponse(valid=valid, formatted=format_national_id(body.value) if valid else "")


@router.post("/validate/card", response_model=ValidateResponse)
def validate_card_route(body: ValidateRequest):
    # Never echo a full card number back, valid or not
    return ValidateResponse(valid=validate_card_number(body.value), formatted=mask_card_number(body.value)[0])


@router.post("/analytics", status_code=201)
def record_client_event(body: AnalyticsEventRequest, request: Request):
    fields = body.model_dump(exclude={"eventType", "sessionId"}, exclude_none=True)
    fields.setdefault("userAgent", request.headers.get("user-agent"))
    event = emit_event(body.eventType, body.sessionId, ipAddress=_client_ip(request), **fields)
    if event is None:
        raise HTTPException(status_code=503, detail="Event could not be recorded")
    return {"success": True, "message": "Event recorded", "timestamp": event.timestamp}
