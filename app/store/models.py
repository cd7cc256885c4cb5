from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

SUBMISSION_STATUSES = ("new", "inReview", "handled", "cancelled")
METHOD_NONE = "none"
METHOD_TWO_STEP = "twoStep"
VERIFICATION_METHODS = (METHOD_NONE, METHOD_TWO_STEP, "password", "token")

STEP_BIRTH_DATE = "birthDate"
STEP_MOTHER_NAME = "motherName"
VERIFICATION_STEPS = (STEP_BIRTH_DATE, STEP_MOTHER_NAME)


@dataclass
class PersonalInfo:
    fullName: Optional[str] = None
    # birthDate and motherName double as verification secrets
    birthDate: Optional[str] = None
    motherName: Optional[str] = None
    gender: Optional[str] = None


@dataclass
class CardInfo:
    # Raw number and CVV are write-only and never reach this object
    numberMasked: Optional[str] = None
    last4: Optional[str] = None
    expiry: Optional[str] = None
    cvvPresent: bool = False


@dataclass
class Address:
    postalCode: Optional[str] = None
    street: Optional[str] = None
    number: Optional[str] = None
    complement: Optional[str] = None
    district: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None


@dataclass
class FinancialInfo:
    income: Optional[float] = None
    currentLimit: Optional[float] = None
    desiredLimit: Optional[float] = None


@dataclass
class ClientMeta:
    userAgent: Optional[str] = None
    ipAddress: Optional[str] = None
    location: Optional[Dict[str, Any]] = None


@dataclass
class StepRecord:
    verified: bool = False
    timestamp: Optional[str] = None


@dataclass
class VerificationState:
    verified: bool = False
    method: str = METHOD_NONE
    # step name -> StepRecord
    steps: Dict[str, StepRecord] = field(default_factory=dict)
    attempts: int = 0
    timestamp: Optional[str] = None


@dataclass
class AdminComment:
    text: str = ""
    createdBy: str = "admin"
    createdAt: Optional[str] = None


@dataclass
class SubmissionRecord:
    """Internal aggregate. Never leaves the service; read paths use DisplayRecord."""
    sessionId: str = ""
    nationalId: str = ""
    id: str = ""
    issueCategory: Optional[str] = None
    personalInfo: PersonalInfo = field(default_factory=PersonalInfo)
    cardInfo: CardInfo = field(default_factory=CardInfo)
    address: Address = field(default_factory=Address)
    financialInfo: FinancialInfo = field(default_factory=FinancialInfo)
    verification: VerificationState = field(default_factory=VerificationState)
    status: str = "new"
    protocolCode: str = ""
    clientMeta: ClientMeta = field(default_factory=ClientMeta)
    adminComments: List[AdminComment] = field(default_factory=list)
    submittedAt: Optional[str] = None
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None


@dataclass
class DisplayPersonalInfo:
    # birthDate and motherName are verification answers and are never displayed
    fullName: Optional[str] = None
    gender: Optional[str] = None


@dataclass
class DisplayCardInfo:
    numberMasked: Optional[str] = None
    expiry: Optional[str] = None
    # Fixed placeholder when a CVV was supplied
    cvv: Optional[str] = None


@dataclass
class DisplayRecord:
    """
    Display-safe projection of a SubmissionRecord.
    Has no field able to hold an unmasked national id, card number, CVV
    or a verification answer.
    """
    id: str = ""
    sessionId: str = ""
    nationalIdMasked: str = ""
    issueCategory: Optional[str] = None
    personalInfo: DisplayPersonalInfo = field(default_factory=DisplayPersonalInfo)
    cardInfo: DisplayCardInfo = field(default_factory=DisplayCardInfo)
    address: Address = field(default_factory=Address)
    financialInfo: FinancialInfo = field(default_factory=FinancialInfo)
    verification: VerificationState = field(default_factory=VerificationState)
    status: str = "new"
    protocolCode: str = ""
    adminComments: List[AdminComment] = field(default_factory=list)
    submittedAt: Optional[str] = None
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None
