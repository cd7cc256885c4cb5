"""
Checksum validators for the national id (two mod-11 check digits) and
payment-card numbers (Luhn mod-10), plus the display formatters that share
their digit cleaning.

All functions are total: any input, including None or non-strings, yields a
result instead of raising.
"""
import re

_REPEATED = re.compile(r"^(\d)\1{10}$")

NATIONAL_ID_LENGTH = 11
CARD_MIN_LENGTH = 13
CARD_MAX_LENGTH = 19
POSTAL_CODE_LENGTH = 8


def only_digits(value) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        value = str(value)
    # ASCII only; \d and str.isdigit() also accept other scripts
    return "".join(ch for ch in value if "0" <= ch <= "9")


def _check_digit(digits: str, top_weight: int) -> int:
    total = 0
    for i, ch in enumerate(digits, start=1):
        total += int(ch) * (top_weight - i)
    remainder = (total * 10) % 11
    if remainder in (10, 11):
        remainder = 0
    return remainder


def validate_national_id(raw) -> bool:
    digits = only_digits(raw)
    if len(digits) != NATIONAL_ID_LENGTH:
        return False
    if _REPEATED.match(digits):
        return False

    if _check_digit(digits[:9], 11) != int(digits[9]):
        return False
    if _check_digit(digits[:10], 12) != int(digits[10]):
        return False
    return True


def validate_card_number(raw) -> bool:
    digits = only_digits(raw)
    if not (CARD_MIN_LENGTH <= len(digits) <= CARD_MAX_LENGTH):
        return False

    total = 0
    double = False
    # Right to left, doubling every second digit
    for ch in reversed(digits):
        d = int(ch)
        if double:
            d *= 2
            if d > 9:
                d -= 9
        total += d
        double = not double
    return total % 10 == 0


def validate_postal_code(raw) -> bool:
    return len(only_digits(raw)) == POSTAL_CODE_LENGTH


def format_national_id(raw) -> str:
    """000.000.000-00, or the cleaned digits when the length is wrong."""
    digits = only_digits(raw)
    if len(digits) != NATIONAL_ID_LENGTH:
        return digits
    return f"{digits[:3]}.{digits[3:6]}.{digits[6:9]}-{digits[9:]}"


def format_postal_code(raw) -> str:
    digits = only_digits(raw)
    if len(digits) != POSTAL_CODE_LENGTH:
        return digits
    return f"{digits[:5]}-{digits[5:]}"
