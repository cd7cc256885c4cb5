import pytest
from unittest.mock import patch

from app.api.schemas import SubmissionForm
from app.core.submission import create_submission

VALID_NATIONAL_ID = "52998224725"
VALID_CARD = "4532015112830366"


def make_form(**overrides) -> SubmissionForm:
    data = {
        "nationalId": "529.982.247-25",
        "issueCategory": "increaseLimit",
        "fullName": "Ana Souza",
        "birthDate": "15/03/1985",
        "motherName": "Maria da Silva",
        "gender": "F",
        "cardNumber": "4532 0151 1283 0366",
        "cardExpiry": "12/29",
        "cardCvv": "987",
        "postalCode": "01310-100",
        "street": "Av. Paulista",
        "number": "1000",
        "city": "São Paulo",
        "state": "SP",
        "income": 3500.0,
        "currentLimit": 1200.0,
        "desiredLimit": 5000.0,
    }
    data.update(overrides)
    return SubmissionForm.model_validate(data)


@pytest.fixture
def form():
    return make_form()


@pytest.fixture
def record(form):
    with patch("app.core.submission.generate_protocol", return_value="1234561234"):
        rec = create_submission(form, "sess-1")
    rec.id = "sub-1"
    return rec
