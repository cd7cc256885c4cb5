from typing import Optional

from app.api.schemas import SubmissionForm
from app.core.checksum import only_digits, validate_card_number, validate_national_id, validate_postal_code
from app.core.errors import InvalidCard, InvalidInput, InvalidNationalId
from app.core.masking import mask_card_number, mask_national_id, redact_value, sanitize_for_display
from app.core.protocol import generate_protocol
from app.observability.logging import log
from app.store.models import (
    SUBMISSION_STATUSES,
    Address,
    AdminComment,
    CardInfo,
    ClientMeta,
    DisplayRecord,
    FinancialInfo,
    PersonalInfo,
    SubmissionRecord,
    VerificationState,
)
from app.utils.time import to_iso, utc_now_iso


def _card_info(form: SubmissionForm) -> CardInfo:
    """
    Reduce card fields to their retained form. The raw number and CVV are
    read here and nowhere else; only the masked number and last4 survive.
    """
    if not form.cardNumber:
        return CardInfo(expiry=form.cardExpiry, cvvPresent=bool(form.cardCvv))
    masked, last4 = mask_card_number(form.cardNumber)
    return CardInfo(
        numberMasked=masked,
        last4=last4,
        expiry=form.cardExpiry,
        cvvPresent=bool(form.cardCvv),
    )


def create_submission(
    form: SubmissionForm,
    session_id: str,
    client_meta: Optional[ClientMeta] = None,
    submitted_at=None,
) -> SubmissionRecord:
    """
    Validate a form and build the record to persist.

    Raises InvalidInput (also for a malformed postal code), InvalidNationalId
    or InvalidCard. Error details only carry masked values. The returned
    record has no raw card number or CVV; `id` stays empty until the
    repository saves it.
    """
    session_id = (session_id or "").strip()
    if not session_id:
        raise InvalidInput("sessionId is required", detail={"field": "sessionId"})

    national_id = only_digits(form.nationalId)
    if not national_id:
        raise InvalidInput("nationalId is required", detail={"field": "nationalId"})

    if not validate_national_id(national_id):
        raise InvalidNationalId(
            "National id failed checksum validation",
            detail={"nationalId": redact_value("nationalId", national_id)},
        )

    if form.cardNumber and not validate_card_number(form.cardNumber):
        raise InvalidCard(
            "Card number failed checksum validation",
            detail={"cardNumber": mask_card_number(form.cardNumber)[0]},
        )

    if form.postalCode and not validate_postal_code(form.postalCode):
        raise InvalidInput("postalCode must have 8 digits", detail={"field": "postalCode"})

    card = _card_info(form)
    now = utc_now_iso()

    record = SubmissionRecord(
        sessionId=session_id,
        nationalId=national_id,
        issueCategory=form.issueCategory,
        personalInfo=PersonalInfo(
            fullName=form.fullName,
            birthDate=form.birthDate,
            motherName=form.motherName,
            gender=form.gender,
        ),
        cardInfo=card,
        address=Address(
            postalCode=only_digits(form.postalCode) or None,
            street=form.street,
            number=form.number,
            complement=form.complement,
            district=form.district,
            city=form.city,
            state=form.state,
        ),
        financialInfo=FinancialInfo(
            income=form.income,
            currentLimit=form.currentLimit,
            desiredLimit=form.desiredLimit,
        ),
        verification=VerificationState(),
        status="new",
        protocolCode=generate_protocol(),
        clientMeta=client_meta or ClientMeta(),
        submittedAt=to_iso(submitted_at),
        createdAt=now,
        updatedAt=now,
    )

    log(
        event="submission_built",
        sessionId=session_id,
        nationalId=mask_national_id(national_id),
        protocol=record.protocolCode,
        issueCategory=record.issueCategory or "",
        hasCard=bool(card.numberMasked),
    )
    return record


def sanitized_view(record: SubmissionRecord) -> DisplayRecord:
    return sanitize_for_display(record)


def update_status(record: SubmissionRecord, status: str) -> str:
    """Set a new status and return the previous one."""
    if status not in SUBMISSION_STATUSES:
        raise InvalidInput(
            "Invalid status",
            detail={"status": str(status)[:32], "allowed": list(SUBMISSION_STATUSES)},
        )
    previous = record.status
    record.status = status
    record.updatedAt = utc_now_iso()
    return previous


def add_admin_comment(record: SubmissionRecord, text: str, created_by: Optional[str] = None) -> AdminComment:
    text = (text or "").strip()
    if not text:
        raise InvalidInput("Comment cannot be empty", detail={"field": "comment"})
    now = utc_now_iso()
    comment = AdminComment(text=text, createdBy=created_by or "admin", createdAt=now)
    record.adminComments.append(comment)
    record.updatedAt = now
    return comment
