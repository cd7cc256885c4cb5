"""
Two-step identity re-verification.

States (derived from VerificationState, not stored separately):

    UNVERIFIED --birthDate ok--> PARTIALLY_VERIFIED --motherName ok--> VERIFIED

A wrong answer records the failed step and increments `attempts` without
moving the state backwards. VERIFIED is terminal. There is no lockout here:
`attempts` is exposed for an outside policy to act on.

Transitions mutate the record in memory only. Callers serialize access per
record (see app.utils.lock.submission_lock) and persist afterwards.
"""
import re
import unicodedata
from enum import Enum
from typing import Optional

from app.core.errors import InvalidInput, VerificationOutOfSequence
from app.observability.logging import log
from app.settings import settings
from app.store.models import (
    METHOD_TWO_STEP,
    STEP_BIRTH_DATE,
    STEP_MOTHER_NAME,
    StepRecord,
    SubmissionRecord,
    VERIFICATION_STEPS,
)
from app.utils.time import normalize_date, to_iso

UNVERIFIED = "UNVERIFIED"
PARTIALLY_VERIFIED = "PARTIALLY_VERIFIED"
VERIFIED = "VERIFIED"

_WS = re.compile(r"\s+")


class StepOutcome(str, Enum):
    FAILED = "failed"
    PARTIAL = "partial"
    SUCCEEDED = "succeeded"


def verification_status(record: SubmissionRecord) -> str:
    v = record.verification
    if v.verified:
        return VERIFIED
    step = v.steps.get(STEP_BIRTH_DATE)
    if step is not None and step.verified:
        return PARTIALLY_VERIFIED
    return UNVERIFIED


def _relaxed(name: str) -> str:
    decomposed = unicodedata.normalize("NFKD", name)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _WS.sub(" ", stripped).strip().casefold()


def names_match(expected: Optional[str], given: Optional[str]) -> bool:
    if not expected or not given:
        return False
    if settings.MOTHER_NAME_MATCH == "relaxed":
        return _relaxed(expected) == _relaxed(given)
    # Stored fields are trimmed on intake, so trim the answer the same way
    return expected.strip() == given.strip()


def _record_step(record: SubmissionRecord, step: str, ok: bool, ts: str) -> None:
    record.verification.steps[step] = StepRecord(verified=ok, timestamp=ts)
    if not ok:
        record.verification.attempts += 1
    record.updatedAt = ts


def _log_transition(record: SubmissionRecord, step: str, outcome: StepOutcome) -> None:
    log(
        event="verification_step",
        submissionId=record.id,
        protocol=record.protocolCode,
        step=step,
        outcome=outcome.value,
        attempts=int(record.verification.attempts),
        status=verification_status(record),
    )


def submit_step1(record: SubmissionRecord, birth_date, now=None) -> StepOutcome:
    if record.verification.verified:
        return StepOutcome.SUCCEEDED

    ts = to_iso(now)
    expected = normalize_date(record.personalInfo.birthDate)
    given = normalize_date(birth_date)
    ok = expected is not None and given is not None and expected == given

    _record_step(record, STEP_BIRTH_DATE, ok, ts)
    outcome = StepOutcome.PARTIAL if ok else StepOutcome.FAILED
    _log_transition(record, STEP_BIRTH_DATE, outcome)
    return outcome


def submit_step2(record: SubmissionRecord, mother_name, now=None) -> StepOutcome:
    if record.verification.verified:
        return StepOutcome.SUCCEEDED
    if verification_status(record) != PARTIALLY_VERIFIED:
        raise VerificationOutOfSequence(
            "Birth date must be verified before mother's name",
            detail={"submissionId": record.id, "step": STEP_MOTHER_NAME},
        )

    # An omitted answer costs nothing; only a wrong one counts as an attempt
    if mother_name is None or not str(mother_name).strip():
        return StepOutcome.PARTIAL

    ts = to_iso(now)
    ok = names_match(record.personalInfo.motherName, str(mother_name))
    _record_step(record, STEP_MOTHER_NAME, ok, ts)

    if not ok:
        _log_transition(record, STEP_MOTHER_NAME, StepOutcome.FAILED)
        return StepOutcome.FAILED

    v = record.verification
    v.verified = True
    v.method = METHOD_TWO_STEP
    v.timestamp = ts
    _log_transition(record, STEP_MOTHER_NAME, StepOutcome.SUCCEEDED)
    return StepOutcome.SUCCEEDED


def submit_verification_step(record: SubmissionRecord, step_name: str, value, now=None) -> StepOutcome:
    if step_name == STEP_BIRTH_DATE:
        return submit_step1(record, value, now=now)
    if step_name == STEP_MOTHER_NAME:
        return submit_step2(record, value, now=now)
    raise InvalidInput(
        "Unknown verification step",
        detail={"step": str(step_name)[:32], "allowed": list(VERIFICATION_STEPS)},
    )
