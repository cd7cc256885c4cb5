import json
import uuid
from dataclasses import asdict, fields as dc_fields
from typing import Any, Dict, List, Optional

from redis import Redis

from app.core.masking import hash_secret
from app.core.protocol import generate_protocol
from app.observability.logging import log
from app.settings import settings
from app.store.models import (
    METHOD_NONE,
    VERIFICATION_METHODS,
    Address,
    AdminComment,
    CardInfo,
    ClientMeta,
    FinancialInfo,
    PersonalInfo,
    StepRecord,
    SubmissionRecord,
    VerificationState,
)
from app.store.redis_conn import scoped_redis
from app.utils.time import now_ms

PREFIX = "submission:"
PROTOCOL_PREFIX = "protocol:"
NATIONAL_ID_INDEX_PREFIX = "submissions:nid:"


class SubmissionNotFound(LookupError):
    pass


class ProtocolCollision(RuntimeError):
    pass


def _key(submission_id: str) -> str:
    return f"{PREFIX}{submission_id}"


def _protocol_key(code: str) -> str:
    return f"{PROTOCOL_PREFIX}{code}"


def _nid_index_key(national_id: str) -> str:
    # Hashed so the raw id never appears in key names
    return f"{NATIONAL_ID_INDEX_PREFIX}{hash_secret(national_id)}"


def _ttl_seconds() -> Optional[int]:
    days = int(getattr(settings, "SUBMISSION_TTL_DAYS", 0) or 0)
    return days * 86400 if days > 0 else None


def _only_fields(cls, data: Any) -> Dict[str, Any]:
    """Drop unknown keys so cls(**kwargs) never explodes on legacy documents."""
    if not isinstance(data, dict):
        return {}
    allowed = {f.name for f in dc_fields(cls)}
    return {k: v for k, v in data.items() if k in allowed}


def _rehydrate(data: Dict[str, Any]) -> SubmissionRecord:
    data = _only_fields(SubmissionRecord, data)

    verification = _only_fields(VerificationState, data.get("verification"))
    if "method" in verification and verification["method"] not in VERIFICATION_METHODS:
        verification["method"] = METHOD_NONE
    steps = verification.get("steps") or {}
    verification["steps"] = {
        name: StepRecord(**_only_fields(StepRecord, step))
        for name, step in steps.items()
        if isinstance(step, dict)
    }

    data["personalInfo"] = PersonalInfo(**_only_fields(PersonalInfo, data.get("personalInfo")))
    data["cardInfo"] = CardInfo(**_only_fields(CardInfo, data.get("cardInfo")))
    data["address"] = Address(**_only_fields(Address, data.get("address")))
    data["financialInfo"] = FinancialInfo(**_only_fields(FinancialInfo, data.get("financialInfo")))
    data["clientMeta"] = ClientMeta(**_only_fields(ClientMeta, data.get("clientMeta")))
    data["verification"] = VerificationState(**verification)
    data["adminComments"] = [
        AdminComment(**_only_fields(AdminComment, c))
        for c in (data.get("adminComments") or [])
        if isinstance(c, dict)
    ]
    return SubmissionRecord(**data)


def _reserve_protocol(r: Redis, record: SubmissionRecord) -> None:
    """
    Claim record.protocolCode, drawing a new code on conflict.
    Codes are only unique because of this reservation.
    """
    retries = int(getattr(settings, "PROTOCOL_MAX_RETRIES", 5) or 5)
    for attempt in range(retries + 1):
        if attempt > 0:
            record.protocolCode = generate_protocol()
        if r.set(_protocol_key(record.protocolCode), record.id, nx=True, ex=_ttl_seconds()):
            if attempt > 0:
                log(event="protocol_regenerated", submissionId=record.id, retries=attempt)
            return
    raise ProtocolCollision(f"Could not reserve a unique protocol after {retries} retries")


def save_submission(record: SubmissionRecord, r: Optional[Redis] = None) -> SubmissionRecord:
    """
    Persist a record. First save assigns the id, reserves the protocol code
    and indexes the record under its hashed national id. A failed first save
    leaves the record unsaved (empty id) and its protocol code unreserved.
    """
    ttl = _ttl_seconds()
    with scoped_redis(r) as conn:
        is_new = not record.id
        if is_new:
            record.id = uuid.uuid4().hex
            try:
                _reserve_protocol(conn, record)
            except ProtocolCollision:
                record.id = ""
                raise

        try:
            conn.set(_key(record.id), json.dumps(asdict(record)), ex=ttl)
        except Exception as e:
            if is_new:
                conn.delete(_protocol_key(record.protocolCode))
                log(event="submission_save_failed", submissionId=record.id, error=str(e))
                record.id = ""
            raise

        if not is_new and ttl:
            # Keep the protocol lookup alive as long as the document
            conn.expire(_protocol_key(record.protocolCode), ttl)

        if is_new:
            conn.zadd(_nid_index_key(record.nationalId), {record.id: now_ms()})
            log(
                event="submission_saved",
                submissionId=record.id,
                sessionId=record.sessionId,
                protocol=record.protocolCode,
            )
    return record


def load_submission(submission_id: str, r: Optional[Redis] = None) -> SubmissionRecord:
    with scoped_redis(r) as conn:
        raw = conn.get(_key(submission_id))
    if not raw:
        raise SubmissionNotFound(submission_id)
    return _rehydrate(json.loads(raw))


def find_by_protocol(code: str, r: Optional[Redis] = None) -> Optional[SubmissionRecord]:
    with scoped_redis(r) as conn:
        submission_id = conn.get(_protocol_key(code))
        if not submission_id:
            return None
        raw = conn.get(_key(submission_id))
    return _rehydrate(json.loads(raw)) if raw else None


def list_by_national_id(national_id: str, limit: int = 50, r: Optional[Redis] = None) -> List[SubmissionRecord]:
    """Newest first. Index entries whose document expired are skipped."""
    out: List[SubmissionRecord] = []
    with scoped_redis(r) as conn:
        ids = conn.zrevrange(_nid_index_key(national_id), 0, max(0, limit - 1)) or []
        for submission_id in ids:
            raw = conn.get(_key(submission_id))
            if raw:
                out.append(_rehydrate(json.loads(raw)))
    return out
