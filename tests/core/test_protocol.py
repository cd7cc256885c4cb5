import random
from unittest.mock import patch

from app.core.protocol import PROTOCOL_LENGTH, generate_protocol

def test_protocol_shape():
    for _ in range(200):
        code = generate_protocol()
        assert len(code) == PROTOCOL_LENGTH == 10
        assert code.isdigit()
        assert 1000 <= int(code[6:]) <= 9999

def test_protocol_uses_last_six_clock_digits():
    code = generate_protocol(now=1700000123456, rng=random.Random(7))
    assert code.startswith("123456")
    assert len(code) == 10

def test_protocol_pads_small_clock_values():
    code = generate_protocol(now=42, rng=random.Random(1))
    assert code.startswith("000042")
    assert len(code) == 10

def test_protocol_reads_clock_when_not_given():
    with patch("app.core.protocol.now_ms", return_value=1699999999999):
        code = generate_protocol(rng=random.Random(3))
    assert code.startswith("999999")

def test_same_millisecond_same_seed_collides():
    # Known limitation: uniqueness is the repository's job
    a = generate_protocol(now=1700000000000, rng=random.Random(5))
    b = generate_protocol(now=1700000000000, rng=random.Random(5))
    assert a == b
