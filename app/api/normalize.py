import re
from typing import Any, Dict, Optional

# Canonical key -> accepted variants (first present wins)
FIELD_ALIASES = {
    "nationalId": ("nationalId", "national_id", "cpf"),
    "issueCategory": ("issueCategory", "issueType", "tipoProblema"),
    "fullName": ("fullName", "name", "nome"),
    "birthDate": ("birthDate", "dataNascimento"),
    "motherName": ("motherName", "nomeMae"),
    "gender": ("gender", "genero"),
    "cardNumber": ("cardNumber",),
    "cardExpiry": ("cardExpiry", "validade"),
    "cardCvv": ("cardCvv", "cvv"),
    "postalCode": ("postalCode", "cep"),
    "street": ("street", "logradouro"),
    "number": ("number", "numero"),
    "complement": ("complement", "complemento"),
    "district": ("district", "neighborhood", "bairro"),
    "city": ("city", "cidade"),
    "state": ("state", "estado"),
    "income": ("income", "renda"),
    "currentLimit": ("currentLimit", "limiteAtual"),
    "desiredLimit": ("desiredLimit", "limiteDesejado"),
}

ISSUE_CATEGORY_ALIASES = {
    "limite": "limit",
    "aumentarLimite": "increaseLimit",
    "emprestimo": "loan",
    "outros": "other",
}

MONEY_FIELDS = ("income", "currentLimit", "desiredLimit")

_MONEY_CHARS = re.compile(r"[^\d,.]")
_THOUSANDS_DOT = re.compile(r"^\d{1,3}(\.\d{3})+$")


def parse_money(value: Any) -> Optional[float]:
    """
    Parse amounts typed into the form ("R$ 1.234,56", "1500", 2500.0).
    A comma is the decimal separator; dots before it group thousands.
    Returns None for anything that is not a number.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if not isinstance(value, str):
        return None

    s = _MONEY_CHARS.sub("", value)
    if not s:
        return None
    if "," in s:
        s = s.replace(".", "").replace(",", ".")
    elif _THOUSANDS_DOT.match(s):
        s = s.replace(".", "")
    try:
        return float(s)
    except ValueError:
        return None


def _stringify(value: Any) -> Any:
    # Numeric fields typed as numbers by some clients (e.g. cpf, cvv, cep)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


def normalize_form_payload(payload: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Accepts the form field names used by the different front-end versions and
    converts them into the canonical keys expected by SubmissionForm. Keys not
    listed in FIELD_ALIASES are dropped here.
    """
    if not isinstance(payload, dict):
        return {}

    out: Dict[str, Any] = {}
    for canonical, variants in FIELD_ALIASES.items():
        for key in variants:
            if key in payload and payload[key] not in (None, ""):
                out[canonical] = payload[key]
                break

    for key in MONEY_FIELDS:
        if key in out:
            out[key] = parse_money(out[key])

    for key, value in list(out.items()):
        if key not in MONEY_FIELDS:
            out[key] = _stringify(value)

    cat = out.get("issueCategory")
    if isinstance(cat, str):
        out["issueCategory"] = ISSUE_CATEGORY_ALIASES.get(cat, cat)

    return out
