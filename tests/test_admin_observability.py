import pytest
from unittest.mock import patch, MagicMock
from fastapi.testclient import TestClient
from app.main import app
from app.api.auth import require_admin
from app.settings import settings

client = TestClient(app)

@pytest.fixture
def skip_auth():
    app.dependency_overrides[require_admin] = lambda: None
    yield
    app.dependency_overrides = {}

@patch("app.store.redis_conn.get_redis")
def test_metrics_snapshot(mock_get_redis, skip_auth):
    mr = MagicMock()
    mock_get_redis.return_value = mr

    mr.get.side_effect = lambda k: {"metrics:submissions:created": "9"}.get(k)

    def hgetall_side_effect(k):
        return {
            "metrics:submissions:rejected": {"invalid_national_id": "2", "invalid_card": "1"},
            "metrics:verification:outcomes": {"birthDate:partial": "5", "motherName:succeeded": "4", "motherName:failed": "x"},
            "metrics:submissions:status": {"handled": "3"},
        }.get(k, {})
    mr.hgetall.side_effect = hgetall_side_effect

    mr.lrange.side_effect = lambda k, start, end: {
        "metrics:verification:latencies": ["30", "10", "20", "bad"],
    }.get(k, [])

    resp = client.get("/admin/metrics")
    assert resp.status_code == 200
    data = resp.json()

    # 9 / (9 + 3) * 100
    assert data["acceptance_rate"] == 75.0
    assert data["submissions_created"] == 9
    assert data["submissions_rejected"] == {"invalid_national_id": 2, "invalid_card": 1}
    assert data["verifications_succeeded"] == 4
    # unparseable counter values are skipped
    assert "motherName:failed" not in data["verification_outcomes"]
    assert data["status_updates"] == {"handled": 3}
    assert data["p50_verification_latency_ms"] == 20.0
    assert data["p95_verification_latency_ms"] == 30.0
    mr.close.assert_called_once()

@patch("app.store.redis_conn.get_redis")
def test_metrics_snapshot_first_boot(mock_get_redis, skip_auth):
    mr = MagicMock()
    mr.get.return_value = None
    mr.hgetall.return_value = {}
    mr.lrange.return_value = []
    mock_get_redis.return_value = mr

    data = client.get("/admin/metrics").json()
    assert data["submissions_created"] == 0
    assert data["acceptance_rate"] == 0.0
    assert data["p95_verification_latency_ms"] == 0.0

@patch("app.store.redis_conn.get_redis")
def test_counters_carry_labels_only(mock_get_redis):
    from app.observability import metrics

    mr = MagicMock()
    mock_get_redis.return_value = mr

    metrics.increment_submission_rejected("")
    mr.hincrby.assert_called_with("metrics:submissions:rejected", "unknown", 1)

    metrics.increment_verification_outcome("motherName", "failed")
    mr.hincrby.assert_called_with("metrics:verification:outcomes", "motherName:failed", 1)

    metrics.record_verification_latency("not-a-number")
    mr.lpush.assert_not_called()
    metrics.record_verification_latency(12)
    mr.lpush.assert_called_once_with("metrics:verification:latencies", 12)
    mr.ltrim.assert_called_once_with("metrics:verification:latencies", 0, 499)
    # one short-lived client per write
    assert mr.close.call_count == 3

@patch("app.observability.metrics.log")
@patch("app.store.redis_conn.get_redis")
def test_counter_write_failure_is_swallowed(mock_get_redis, mock_log):
    from redis.exceptions import ConnectionError as RedisConnectionError
    from app.observability import metrics

    mr = MagicMock()
    mr.hincrby.side_effect = RedisConnectionError("down")
    mock_get_redis.return_value = mr

    metrics.increment_submission_rejected("invalid_card")
    mr.close.assert_called_once()
    assert mock_log.call_args.kwargs["event"] == "metrics_write_failed"
    assert mock_log.call_args.kwargs["metric"] == "metrics:submissions:rejected"

@patch("app.store.redis_conn.get_redis")
def test_metrics_snapshot_failure_propagates(mock_get_redis):
    from redis.exceptions import ConnectionError as RedisConnectionError
    from app.observability.metrics import get_metrics_snapshot

    mr = MagicMock()
    mr.get.side_effect = RedisConnectionError("down")
    mock_get_redis.return_value = mr
    with pytest.raises(RedisConnectionError):
        get_metrics_snapshot()
    mr.close.assert_called_once()

@patch("app.api.admin_routes.recent_events")
def test_recent_analytics_limit_is_clamped(mock_recent, skip_auth):
    mock_recent.return_value = [{"eventType": "formSubmissionSuccess"}]
    resp = client.get("/admin/analytics/recent?limit=10000")
    assert resp.status_code == 200
    assert resp.json()["events"] == [{"eventType": "formSubmissionSuccess"}]
    mock_recent.assert_called_once_with(500)

def test_rbac_enforcement():
    with patch.object(settings, "ADMIN_RBAC_ENABLED", True), \
         patch.object(settings, "ADMIN_API_KEY", "secret"):

        app.dependency_overrides = {}

        # No header -> 403
        resp = client.get("/admin/metrics")
        assert resp.status_code == 403

        # Wrong header -> 403
        resp = client.get("/admin/metrics", headers={"x-admin-key": "wrong"})
        assert resp.status_code == 403

        # Correct header -> 200 (need to mock redis to avoid a real connection)
        with patch("app.store.redis_conn.get_redis") as mock_get_redis:
            mr = mock_get_redis.return_value
            mr.get.return_value = None
            mr.hgetall.return_value = {}
            mr.lrange.return_value = []
            resp = client.get("/admin/metrics", headers={"x-admin-key": "secret"})
            assert resp.status_code == 200

def test_rbac_without_configured_key_rejects_all():
    with patch.object(settings, "ADMIN_RBAC_ENABLED", True), \
         patch.object(settings, "ADMIN_API_KEY", ""):
        app.dependency_overrides = {}
        resp = client.get("/admin/metrics", headers={"x-admin-key": ""})
        assert resp.status_code == 403
