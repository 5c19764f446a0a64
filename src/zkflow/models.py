"""Domain models used throughout the pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Generic, Mapping, Optional, TypeVar

from .exceptions import InputError, ZkflowError

T = TypeVar("T")


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class ExecutionMode(str, Enum):
    """Which execution path produced an artifact."""

    REAL = "real"
    MOCK = "mock"


class ServiceMode(str, Enum):
    INITIALIZING = "initializing"
    PRODUCTION = "production"
    FALLBACK = "fallback"
    DEMO = "demo"
    ERROR = "error"


class Stage(str, Enum):
    INITIALIZE = "initialize"
    COMPILE = "compile"
    GENERATE = "generate"
    VERIFY = "verify"


@dataclass
class CompiledCircuit:
    """Intermediate representation returned by the compile stage."""

    ir: Any
    mode: ExecutionMode
    fingerprint: str

    def to_dict(self) -> Dict[str, Any]:
        return {"ir": self.ir, "mode": self.mode.value, "fingerprint": self.fingerprint}


@dataclass
class ProofResult:
    """Raw proof material handed back by a proving backend."""

    proof_data: Any
    public_outputs: Any = None


@dataclass
class Proof:
    proof_data: Any
    public_outputs: Any
    circuit_fingerprint: str
    mode: ExecutionMode

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proofData": self.proof_data,
            "publicOutputs": self.public_outputs,
            "circuitFingerprint": self.circuit_fingerprint,
            "mode": self.mode.value,
        }

    @classmethod
    def from_dict(cls, payload: Any) -> "Proof":
        """Rebuild a proof from its wire form, rejecting untagged or empty payloads."""

        if not isinstance(payload, Mapping):
            raise InputError("Invalid proof: must be an object")
        if not payload.get("proofData"):
            raise InputError("Invalid proof: missing proof data")
        raw_mode = payload.get("mode")
        try:
            mode = ExecutionMode(raw_mode)
        except ValueError as exc:
            raise InputError(f"Invalid proof: unknown mode tag {raw_mode!r}") from exc
        return cls(
            proof_data=payload["proofData"],
            public_outputs=payload.get("publicOutputs"),
            circuit_fingerprint=str(payload.get("circuitFingerprint", "")),
            mode=mode,
        )


@dataclass
class VerificationResult:
    is_valid: bool
    fingerprint: str
    timestamp: str = field(default_factory=utc_timestamp)

    def to_dict(self) -> Dict[str, Any]:
        return {"isValid": self.is_valid, "fingerprint": self.fingerprint, "timestamp": self.timestamp}


@dataclass
class MockOutcome:
    """Deterministic stand-in for a circuit's public outputs."""

    result: Any
    computed: str
    circuit_type: str

    def to_dict(self) -> Dict[str, Any]:
        return {"result": self.result, "computed": self.computed, "circuitType": self.circuit_type}


@dataclass
class FullRun:
    proof: Proof
    verification: VerificationResult

    def to_dict(self) -> Dict[str, Any]:
        return {"proof": self.proof.to_dict(), "verification": self.verification.to_dict()}


@dataclass
class StageError:
    kind: str
    message: str
    stage: str
    timestamp: str
    duration_ms: float
    detail: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_exception(cls, exc: ZkflowError, stage: Stage, duration_ms: float) -> "StageError":
        return cls(
            kind=exc.kind,
            message=str(exc),
            stage=stage.value,
            timestamp=utc_timestamp(),
            duration_ms=duration_ms,
            detail=dict(exc.detail),
        )

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            "kind": self.kind,
            "message": self.message,
            "stage": self.stage,
            "timestamp": self.timestamp,
            "durationMs": self.duration_ms,
        }
        if self.detail:
            payload["detail"] = self.detail
        return payload


@dataclass
class StageResult(Generic[T]):
    """Uniform envelope returned by every stage."""

    success: bool
    value: Optional[T] = None
    error: Optional[StageError] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, value: T = None, **metadata: Any) -> "StageResult[T]":
        return cls(success=True, value=value, metadata=metadata)

    @classmethod
    def fail(cls, error: StageError, **metadata: Any) -> "StageResult[T]":
        return cls(success=False, error=error, metadata=metadata)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": self.success, "metadata": dict(self.metadata)}
        if self.value is not None:
            payload["value"] = self.value.to_dict() if hasattr(self.value, "to_dict") else self.value
        if self.error is not None:
            payload["error"] = self.error.to_dict()
        return payload


@dataclass
class ServiceStatus:
    is_initialized: bool
    is_ready: bool
    mode: ServiceMode
    message: str
    error: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isInitialized": self.is_initialized,
            "isReady": self.is_ready,
            "mode": self.mode.value,
            "message": self.message,
            "error": self.error,
        }
