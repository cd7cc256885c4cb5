"""
Masking and redaction policy for secret form fields.

Masking is a display transform that keeps a fixed subset of digits visible
(first 3 + last 2 of the national id, last 4 of a card). Hashing is one-way
and covers every secret without a dedicated rule (passwords, tokens,
verification answers) when it has to travel into logs or telemetry. Callers
must not use one where the other is expected.
"""
import copy
import hashlib
import re
from typing import Any, Dict, Tuple

from app.core.checksum import format_postal_code, only_digits, NATIONAL_ID_LENGTH
from app.store.models import DisplayCardInfo, DisplayPersonalInfo, DisplayRecord, SubmissionRecord

CVV_PLACEHOLDER = "***"
_MASKED_NATIONAL_ID = re.compile(r"^\d{3}\*{5}\d{2}$")
CARD_MASK_PREFIX = "****"

# Keys scrubbed from structured payloads (logs, analytics)
NATIONAL_ID_KEYS = {"nationalId", "cpf"}
CARD_NUMBER_KEYS = {"cardNumber"}
CVV_KEYS = {"cvv", "cardCvv"}
HASHED_KEYS = {
    "birthDate", "dataNascimento", "motherName", "nomeMae",
    "password", "token", "value",
}


def mask_national_id(value) -> str:
    digits = only_digits(value)
    if len(digits) != NATIONAL_ID_LENGTH:
        # Malformed input passes through cleaned so callers can tell
        return digits
    return f"{digits[:3]}*****{digits[9:]}"


def mask_card_number(raw) -> Tuple[str, str]:
    digits = only_digits(raw)
    last4 = digits[-4:]
    return f"{CARD_MASK_PREFIX}{last4}", last4


def redact_cvv(_value=None) -> str:
    return CVV_PLACEHOLDER


def hash_secret(value) -> str:
    if value is None:
        value = ""
    if not isinstance(value, str):
        value = str(value)
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def sanitize_for_display(record: SubmissionRecord) -> DisplayRecord:
    """
    Build the display projection of a record. The stored record is not
    touched; nested objects are deep-copied so the view can be mutated freely.
    """
    card = record.cardInfo
    address = copy.deepcopy(record.address)
    if address.postalCode:
        address.postalCode = format_postal_code(address.postalCode)
    return DisplayRecord(
        id=record.id,
        sessionId=record.sessionId,
        nationalIdMasked=mask_national_id(record.nationalId),
        issueCategory=record.issueCategory,
        personalInfo=DisplayPersonalInfo(
            fullName=record.personalInfo.fullName,
            gender=record.personalInfo.gender,
        ),
        cardInfo=DisplayCardInfo(
            numberMasked=card.numberMasked,
            expiry=card.expiry,
            cvv=redact_cvv() if card.cvvPresent else None,
        ),
        address=address,
        financialInfo=copy.deepcopy(record.financialInfo),
        verification=copy.deepcopy(record.verification),
        status=record.status,
        protocolCode=record.protocolCode,
        adminComments=copy.deepcopy(record.adminComments),
        submittedAt=record.submittedAt,
        createdAt=record.createdAt,
        updatedAt=record.updatedAt,
    )


def redact_value(key: str, value: Any) -> Any:
    if value is None or value == "":
        return value
    if key in NATIONAL_ID_KEYS:
        # Already-masked values pass through
        if isinstance(value, str) and _MASKED_NATIONAL_ID.match(value):
            return value
        masked = mask_national_id(value)
        if "*" not in masked:
            # Malformed ids come back unmasked from the masker
            return hash_secret(value)
        return masked
    if key in CARD_NUMBER_KEYS:
        return mask_card_number(value)[0]
    if key in CVV_KEYS:
        return redact_cvv(value)
    if key in HASHED_KEYS:
        return hash_secret(value)
    return value


def redact_fields(payload: Any) -> Any:
    """Recursively scrub secret keys from dict/list payloads."""
    if isinstance(payload, dict):
        out: Dict[str, Any] = {}
        for k, v in payload.items():
            if isinstance(v, (dict, list)):
                out[k] = redact_fields(v)
            else:
                out[k] = redact_value(k, v)
        return out
    if isinstance(payload, list):
        return [redact_fields(v) for v in payload]
    return payload
