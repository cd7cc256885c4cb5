import random
from typing import Optional

from app.utils.time import now_ms

PROTOCOL_LENGTH = 10


def generate_protocol(now: Optional[int] = None, rng: Optional[random.Random] = None) -> str:
    """
    Short reference code: last 6 digits of the epoch-ms clock followed by a
    random 4-digit number in [1000, 9999].

    Codes are not guaranteed unique (two submissions in the same millisecond
    can draw the same suffix). Uniqueness is enforced by the repository when
    it reserves the code.
    """
    ts = int(now if now is not None else now_ms())
    prefix = str(abs(ts) % 1_000_000).zfill(6)
    suffix = (rng or random).randint(1000, 9999)
    return f"{prefix}{suffix}"
