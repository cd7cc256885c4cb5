import json
from unittest.mock import MagicMock, patch

from app.analytics.events import (
    NATIONAL_ID_VALIDATION,
    SUBMISSION_ERROR,
    VERIFICATION_STEP,
    build_event,
    emit_event,
)
from app.core.masking import hash_secret
from app.settings import settings
from app.store.analytics_repo import recent_events, store_event

def test_build_event_redacts_payload():
    ev = build_event(
        SUBMISSION_ERROR,
        None,
        ipAddress="10.0.0.1",
        data={"code": "invalid_card", "cardNumber": "4532015112830366", "nested": {"cpf": "52998224725", "value": "Maria"}},
    )
    assert ev.sessionId == "unknown"
    assert ev.data["code"] == "invalid_card"
    assert ev.data["cardNumber"] == "****0366"
    assert ev.data["nested"]["cpf"] == "529*****25"
    assert ev.data["nested"]["value"] == hash_secret("Maria")
    assert ev.timestamp

def test_build_event_redacts_client_fields():
    ev = build_event(
        "formStepCompleted",
        "s1",
        screenResolution="1920x1080",
        duration=5300,
        formData={"cpf": "529.982.247-25", "cardNumber": "4532015112830366", "fullName": "Ana"},
        formSteps={"completed": ["personal"], "answers": {"motherName": "Maria"}},
        customData={"password": "hunter27", "variant": "b"},
        location={"city": "Campinas"},
    )
    assert ev.screenResolution == "1920x1080"
    assert ev.duration == 5300
    assert ev.formData == {"cpf": "529*****25", "cardNumber": "****0366", "fullName": "Ana"}
    assert ev.formSteps["completed"] == ["personal"]
    assert ev.formSteps["answers"]["motherName"] == hash_secret("Maria")
    assert ev.customData == {"password": hash_secret("hunter27"), "variant": "b"}
    assert ev.location == {"city": "Campinas"}

def test_national_id_validation_event_is_masked():
    ev = build_event(NATIONAL_ID_VALIDATION, "s1", data={"nationalId": "52998224725", "valid": True})
    assert ev.eventType == "cpfValidation"
    assert ev.data == {"nationalId": "529*****25", "valid": True}

@patch("app.analytics.events.store_event")
def test_inline_mode_stores(mock_store):
    with patch.object(settings, "ANALYTICS_MODE", "inline"):
        ev = emit_event(VERIFICATION_STEP, "s1", step="birthDate", data={"outcome": "partial"})
    assert ev is not None
    payload = mock_store.call_args.args[0]
    assert payload["eventType"] == "verificationStep"
    assert payload["step"] == "birthDate"

@patch("app.analytics.events.get_queue")
def test_rq_mode_enqueues_with_retry(mock_get_queue):
    q = MagicMock()
    mock_get_queue.return_value = q
    with patch.object(settings, "ANALYTICS_MODE", "rq"):
        emit_event(VERIFICATION_STEP, "s1")
    args, kwargs = q.enqueue.call_args
    assert args[0].__name__ == "record_analytics_event_job"
    assert args[1]["sessionId"] == "s1"
    assert kwargs["retry"].max == 3

@patch("app.analytics.events.store_event")
@patch("app.analytics.events.log")
def test_off_mode_drops(mock_log, mock_store):
    with patch.object(settings, "ANALYTICS_MODE", "off"):
        ev = emit_event(VERIFICATION_STEP, "s1")
    assert ev.eventType == "verificationStep"
    mock_store.assert_not_called()
    assert mock_log.call_args.kwargs["event"] == "analytics_dropped"

@patch("app.analytics.events.log")
@patch("app.analytics.events.store_event", side_effect=ConnectionError("down"))
def test_delivery_failure_never_raises(mock_store, mock_log):
    with patch.object(settings, "ANALYTICS_MODE", "inline"):
        assert emit_event(VERIFICATION_STEP, "s1") is None
    assert mock_log.call_args.kwargs["event"] == "analytics_emit_failed"

def test_store_event_caps_list():
    r = MagicMock()
    with patch.object(settings, "ANALYTICS_MAX_EVENTS", 3):
        store_event({"eventType": "x"}, r=r)
    key = settings.ANALYTICS_EVENTS_KEY
    assert json.loads(r.lpush.call_args.args[1]) == {"eventType": "x"}
    r.ltrim.assert_called_once_with(key, 0, 2)
    r.close.assert_not_called()

def test_recent_events_skips_corrupt_entries():
    r = MagicMock()
    r.lrange.return_value = ['{"eventType": "a"}', "not json", '{"eventType": "b"}']
    assert [e["eventType"] for e in recent_events(10, r=r)] == ["a", "b"]
    r.lrange.assert_called_once_with(settings.ANALYTICS_EVENTS_KEY, 0, 9)
