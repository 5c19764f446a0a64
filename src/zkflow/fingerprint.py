"""Deterministic fingerprints used to tag circuits, inputs and proofs."""

from __future__ import annotations

import json
from typing import Any

from .exceptions import InputError

_MASK = 0xFFFFFFFF


def _to_int32(value: int) -> int:
    value &= _MASK
    return value - (1 << 32) if value & 0x80000000 else value


def fingerprint(text: str) -> str:
    """Rolling ``hash * 31 + code`` over UTF-16 code units, rendered as hex.

    Not a security primitive: only a short, stable operational tag.
    """

    if not text:
        return "0"
    encoded = text.encode("utf-16-le", "surrogatepass")
    value = 0
    for index in range(0, len(encoded), 2):
        code = encoded[index] | (encoded[index + 1] << 8)
        value = _to_int32(value * 31 + code)
    return format(abs(value), "x")


def serialize(value: Any) -> str:
    """Compact JSON rendering shared by every fingerprinted payload."""

    try:
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise InputError(f"Value is not serializable structured data: {exc}") from exc


def fingerprint_data(value: Any) -> str:
    return fingerprint(serialize(value))
