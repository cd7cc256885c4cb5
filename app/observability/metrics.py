"""
Intake & Verification Counters
------------------------------
Lightweight Redis counters for the intake funnel and the verification flow,
plus a single snapshot consumed by /admin/metrics. Missing keys (first boot)
read as zero. Counters never carry field values, only outcome labels.

Counter writes are best effort: a Redis failure is logged and swallowed so it
never replaces the response (or the error) of the request being counted. The
snapshot read propagates failures.
"""
from __future__ import annotations
import time
from contextlib import contextmanager
from typing import Dict, Iterable, List

from redis.exceptions import RedisError

from app.observability.logging import log
from app.store.redis_conn import scoped_redis

K_SUB_CREATED = "metrics:submissions:created"
K_SUB_REJECTED = "metrics:submissions:rejected"        # HINCRBY by error code
K_VERIFY_OUTCOMES = "metrics:verification:outcomes"    # HINCRBY by "<step>:<outcome>"
K_VERIFY_LAT = "metrics:verification:latencies"        # LPUSH ms
K_STATUS_UPDATES = "metrics:submissions:status"        # HINCRBY by new status

_MAX_SAMPLES = 500


def _now_s() -> int:
    return int(time.time())


def _percentile(data: List[float], p: float) -> float:
    """Deterministic percentile (nearest-rank on sorted data)."""
    if not data:
        return 0.0
    d = sorted(data)
    k = max(1, int(round(p * len(d))))
    return float(d[k - 1])


@contextmanager
def _best_effort(metric: str):
    try:
        with scoped_redis() as r:
            yield r
    except RedisError as e:
        log(event="metrics_write_failed", metric=metric, error=str(e))


def increment_submission_created() -> None:
    with _best_effort(K_SUB_CREATED) as r:
        r.incr(K_SUB_CREATED, 1)


def increment_submission_rejected(code: str) -> None:
    with _best_effort(K_SUB_REJECTED) as r:
        r.hincrby(K_SUB_REJECTED, code or "unknown", 1)


def increment_verification_outcome(step: str, outcome: str) -> None:
    with _best_effort(K_VERIFY_OUTCOMES) as r:
        r.hincrby(K_VERIFY_OUTCOMES, f"{step}:{outcome}", 1)


def increment_status_update(status: str) -> None:
    with _best_effort(K_STATUS_UPDATES) as r:
        r.hincrby(K_STATUS_UPDATES, status, 1)


def record_verification_latency(ms: int) -> None:
    try:
        ms = int(ms)
    except (TypeError, ValueError):
        return
    with _best_effort(K_VERIFY_LAT) as r:
        r.lpush(K_VERIFY_LAT, ms)
        r.ltrim(K_VERIFY_LAT, 0, _MAX_SAMPLES - 1)


def _int_map(raw: Dict) -> Dict[str, int]:
    out: Dict[str, int] = {}
    for k, v in (raw or {}).items():
        try:
            out[str(k)] = int(v)
        except (TypeError, ValueError):
            continue
    return out


def _floats(raw: Iterable) -> List[float]:
    out: List[float] = []
    for x in raw or []:
        try:
            out.append(float(x))
        except (TypeError, ValueError):
            continue
    return out


def get_metrics_snapshot() -> dict:
    with scoped_redis() as r:
        created = int(r.get(K_SUB_CREATED) or 0)
        rejected = _int_map(r.hgetall(K_SUB_REJECTED))
        outcomes = _int_map(r.hgetall(K_VERIFY_OUTCOMES))
        statuses = _int_map(r.hgetall(K_STATUS_UPDATES))
        lat = _floats(r.lrange(K_VERIFY_LAT, 0, _MAX_SAMPLES - 1))

    attempted = created + sum(rejected.values())
    succeeded = outcomes.get("motherName:succeeded", 0)

    return {
        "submissions_created": created,
        "submissions_rejected": rejected,
        "acceptance_rate": round((created / attempted) * 100.0, 3) if attempted else 0.0,
        "verification_outcomes": outcomes,
        "verifications_succeeded": succeeded,
        "status_updates": statuses,
        "p50_verification_latency_ms": _percentile(lat, 0.50),
        "p95_verification_latency_ms": _percentile(lat, 0.95),
        "snapshot_at": _now_s(),
    }
