import json
import time
from app.settings import settings
from app.core.masking import redact_fields

# Free-text fields that may carry whatever the submitter typed
SENSITIVE_KEYS = {"formData", "comment", "text", "error"}

def _redact_value(v):
    if isinstance(v, str) and len(v) > 0:
        return f"[REDACTED:{len(v)}chars]"
    if isinstance(v, dict):
        return {k: _redact_value(val) for k, val in v.items()}
    return v

def log(event: str, **fields):
    payload = {"ts": int(time.time()), "event": event}

    if settings.ENABLE_PII_REDACTION:
        clean_fields = {}
        for k, v in fields.items():
            if k in SENSITIVE_KEYS:
                clean_fields[k] = _redact_value(v)
            else:
                # Secret keys (national id, card, cvv, verification answers) at any depth
                clean_fields[k] = redact_fields({k: v})[k]
        payload.update(clean_fields)
    else:
        payload.update(fields)

    print(json.dumps(payload, ensure_ascii=False, default=str))
