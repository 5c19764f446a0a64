"""Operating-mode selection and the deterministic mock executor."""

from __future__ import annotations

import logging
import math
from numbers import Real
from typing import Any, Dict, Mapping, Optional

from .exceptions import InputError
from .fingerprint import fingerprint, serialize
from .models import CompiledCircuit, ExecutionMode, MockOutcome, ServiceMode, StageResult

logger = logging.getLogger(__name__)

MOCK_PROOF_PREFIX = "mock_proof_data_"


def _as_number(value: Any) -> Optional[float]:
    """Numeric view of ``value`` or ``None``; booleans are not numbers here."""

    if isinstance(value, bool):
        return None
    if isinstance(value, Real):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _tidy(number: float) -> Any:
    return int(number) if number.is_integer() else number


def _require_number(inputs: Mapping[str, Any], key: str) -> float:
    number = _as_number(inputs[key])
    if number is None:
        raise InputError(f"Public input '{key}' must be numeric, got {inputs[key]!r}")
    return number


def mock_execute(public_inputs: Mapping[str, Any] | None) -> MockOutcome:
    """Stand-in for real circuit execution, fed only public inputs.

    Dispatch order: ``{a, b}`` adds, ``{x, y}`` or any two numeric entries
    multiply, any other non-empty map yields ``len * 7``, empty yields 42.
    """

    if public_inputs is None:
        public_inputs = {}
    if not isinstance(public_inputs, Mapping):
        raise InputError("Invalid public inputs: must be an object")

    keys = set(public_inputs)
    if keys == {"a", "b"}:
        a, b = public_inputs["a"], public_inputs["b"]
        result = _tidy(_require_number(public_inputs, "a") + _require_number(public_inputs, "b"))
        return MockOutcome(result=result, computed=f"{a} + {b} = {result}", circuit_type="addition")

    if keys == {"x", "y"}:
        for key in ("x", "y"):
            _require_number(public_inputs, key)
        pair = list(public_inputs.items())
    elif len(public_inputs) == 2 and all(_as_number(v) is not None for v in public_inputs.values()):
        pair = list(public_inputs.items())
    else:
        pair = None

    if pair is not None:
        (_, p), (_, q) = pair[:2]
        result = _tidy(_as_number(p) * _as_number(q))
        return MockOutcome(result=result, computed=f"{p} * {q} = {result}", circuit_type="multiplication")

    if public_inputs:
        count = len(public_inputs)
        return MockOutcome(result=count * 7, computed=f"Mock computation on {count} inputs",
                           circuit_type="generic")

    return MockOutcome(result=42, computed="Default mock result", circuit_type="empty")


def mock_proof_data(circuit_fingerprint: str, public_inputs: Mapping[str, Any]) -> str:
    return MOCK_PROOF_PREFIX + fingerprint(f"{circuit_fingerprint}:{serialize(dict(public_inputs))}")


def is_mock_proof_data(proof_data: Any) -> bool:
    return isinstance(proof_data, str) and proof_data.startswith(MOCK_PROOF_PREFIX)


class DegradationPolicy:
    """Decides between real and synthetic execution.

    Demo wins over everything; a ready backend gives Production; anything else
    is Fallback, or Error when ``allow_fallback`` is off.
    """

    def __init__(self, allow_fallback: bool = True):
        self.allow_fallback = allow_fallback
        self.backend_available = True
        self.last_backend_error: Dict[str, Any] | None = None

    def current_mode(self, init_result: StageResult[None] | None, explicit_demo: bool) -> ServiceMode:
        if explicit_demo:
            return ServiceMode.DEMO
        if init_result is not None and init_result.success and self.backend_available:
            return ServiceMode.PRODUCTION
        return ServiceMode.FALLBACK if self.allow_fallback else ServiceMode.ERROR

    def record_backend_failure(self, error: Dict[str, Any]) -> None:
        if self.backend_available:
            logger.warning("Proving backend became unavailable (%s during %s)",
                           error.get("kind"), error.get("stage"))
        self.backend_available = False
        self.last_backend_error = error

    def record_backend_recovered(self) -> None:
        if not self.backend_available:
            logger.info("Proving backend available again")
        self.backend_available = True
        self.last_backend_error = None

    def mock_compile(self, source_fingerprint: str, mode: ServiceMode) -> CompiledCircuit:
        ir = {"type": "mock", "sourceFingerprint": source_fingerprint, "reason": mode.value}
        return CompiledCircuit(ir=ir, mode=ExecutionMode.MOCK, fingerprint=source_fingerprint)

    def mock_execute(self, public_inputs: Mapping[str, Any] | None) -> MockOutcome:
        return mock_execute(public_inputs)
