import json
from unittest.mock import patch

from app.core.masking import hash_secret
from app.observability.logging import log
from app.settings import settings

def _last_line(capsys):
    return json.loads(capsys.readouterr().out.strip().splitlines()[-1])

def test_log_masks_secret_keys(capsys):
    with patch.object(settings, "ENABLE_PII_REDACTION", True):
        log(
            event="form_check",
            nationalId="52998224725",
            cardNumber="4532015112830366",
            detail={"cpf": "52998224725", "motherName": "Maria"},
            submissionId="sub-1",
        )
    out = _last_line(capsys)
    assert out["event"] == "form_check"
    assert out["nationalId"] == "529*****25"
    assert out["cardNumber"] == "****0366"
    assert out["detail"] == {"cpf": "529*****25", "motherName": hash_secret("Maria")}
    assert out["submissionId"] == "sub-1"
    assert isinstance(out["ts"], int)

def test_log_redacts_free_text(capsys):
    with patch.object(settings, "ENABLE_PII_REDACTION", True):
        log(event="form_check", comment="call me at 555", error="bad input 52998224725", formData={"cpf": "x"})
    out = _last_line(capsys)
    assert out["comment"] == "[REDACTED:14chars]"
    assert out["error"].startswith("[REDACTED:")
    assert out["formData"] == {"cpf": "[REDACTED:1chars]"}

def test_log_keeps_masked_values(capsys):
    with patch.object(settings, "ENABLE_PII_REDACTION", True):
        log(event="form_check", nationalId="529*****25")
    assert _last_line(capsys)["nationalId"] == "529*****25"

def test_log_without_redaction(capsys):
    with patch.object(settings, "ENABLE_PII_REDACTION", False):
        log(event="form_check", comment="hello")
    assert _last_line(capsys)["comment"] == "hello"

def test_log_hashes_credentials(capsys):
    with patch.object(settings, "ENABLE_PII_REDACTION", True):
        log(event="form_check", password="hunter27", token="tok-123456")
    out = _last_line(capsys)
    assert out["password"] == hash_secret("hunter27")
    assert out["token"] == hash_secret("tok-123456")
    # no length placeholder for credentials
    assert "REDACTED" not in json.dumps(out)
