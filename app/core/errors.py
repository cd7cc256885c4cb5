from typing import Any, Dict, Optional


class EngineError(Exception):
    """
    Base for recoverable engine failures.

    `detail` is echoed to callers and logs, so it must only ever hold
    masked or redacted values.
    """
    code = "engine_error"

    def __init__(self, message: str, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.detail = dict(detail or {})

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "detail": self.detail}


class InvalidInput(EngineError):
    code = "invalid_input"


class InvalidNationalId(EngineError):
    code = "invalid_national_id"


class InvalidCard(EngineError):
    code = "invalid_card"


class VerificationOutOfSequence(EngineError):
    code = "verification_out_of_sequence"
