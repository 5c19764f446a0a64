from hypothesis import given, strategies as st
import pytest

from zkflow.exceptions import InputError
from zkflow.fingerprint import fingerprint, fingerprint_data, serialize


def test_empty_string_maps_to_zero() -> None:
    assert fingerprint("") == "0"


def test_known_values() -> None:
    assert fingerprint("ab") == "c21"
    assert fingerprint("hello") == "5e918d2"
    assert fingerprint("hello world") == "6aefe2c4"


def test_wraps_at_32_bits() -> None:
    # Hashes to the minimum signed 32-bit value; its absolute value is 2**31.
    assert fingerprint("polygenelubricants") == "80000000"


def test_counts_utf16_code_units() -> None:
    assert fingerprint("\U0001F600") == "1b0d63"


@given(st.text())
def test_deterministic(text: str) -> None:
    assert fingerprint(text) == fingerprint(text)


def test_distinct_samples_do_not_collide() -> None:
    samples = [f"circuit-{i}" for i in range(500)]
    assert len({fingerprint(s) for s in samples}) == len(samples)


def test_structured_data_uses_compact_json() -> None:
    assert serialize({"a": 5, "b": [1, "x"]}) == '{"a":5,"b":[1,"x"]}'
    assert fingerprint_data({"a": 5}) == fingerprint('{"a":5}')


def test_unserializable_data_is_input_error() -> None:
    with pytest.raises(InputError):
        fingerprint_data({"a": object()})
