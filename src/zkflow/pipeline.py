"""Compile, generate and verify as a staged, short-circuiting pipeline."""

from __future__ import annotations

import logging
import time
import uuid
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Mapping, Type

from .backends import build_backend
from .backends.base import ProvingBackend
from .config import ServiceSettings
from .degradation import DegradationPolicy, is_mock_proof_data, mock_proof_data
from .exceptions import (
    BackendError,
    CompilationError,
    InitializationError,
    InputError,
    ProofGenerationError,
    VerificationError,
    ZkflowError,
)
from .fingerprint import fingerprint, fingerprint_data
from .initializer import ServiceInitializer
from .models import (
    CompiledCircuit,
    ExecutionMode,
    FullRun,
    Proof,
    ServiceMode,
    ServiceStatus,
    Stage,
    StageError,
    StageResult,
    VerificationResult,
)
from .retry import is_positive
from .status import StatusReporter

logger = logging.getLogger(__name__)

StageBody = Callable[[Dict[str, Any]], Awaitable[Any]]


class RunState(str, Enum):
    IDLE = "idle"
    COMPILING = "compiling"
    GENERATING = "generating"
    VERIFYING = "verifying"
    DONE = "done"
    FAILED = "failed"


def _require_inputs(name: str, inputs: Any) -> Mapping[str, Any]:
    if inputs is None or not isinstance(inputs, Mapping):
        raise InputError(f"Invalid {name} inputs: must be an object")
    return inputs


class PipelineOrchestrator:
    """Main façade tying initialization, degradation policy and the backend together."""

    def __init__(self, initializer: ServiceInitializer, policy: DegradationPolicy | None = None,
                 demo_mode: bool = False):
        self.initializer = initializer
        self.policy = policy or DegradationPolicy()
        self.demo_mode = demo_mode
        self.reporter = StatusReporter(initializer, self.policy, demo_mode)

    @classmethod
    def from_settings(cls, settings: ServiceSettings | None = None) -> "PipelineOrchestrator":
        settings = settings or ServiceSettings.load()
        initializer = ServiceInitializer(
            build_backend(settings),
            schedule=settings.readiness,
            extra_capabilities=settings.required_capabilities,
        )
        return cls(initializer, DegradationPolicy(settings.allow_fallback), demo_mode=settings.demo_mode)

    @property
    def backend(self) -> ProvingBackend:
        return self.initializer.backend

    def backend_usable(self) -> bool:
        return self.initializer.is_ready() and self.policy.backend_available

    def status(self) -> ServiceStatus:
        return self.reporter.status()

    # Core flow ------------------------------------------------------------
    async def compile(self, source: Any) -> StageResult[CompiledCircuit]:
        async def body(meta: Dict[str, Any]) -> CompiledCircuit:
            if not isinstance(source, str):
                raise InputError("Invalid circuit source: must be a non-empty string")
            source_fp = fingerprint(source)
            meta["fingerprint"] = source_fp
            if not source:
                raise InputError("Invalid circuit source: must be a non-empty string")

            mode = await self._resolve_mode()
            meta["mode"] = mode.value
            if mode is ServiceMode.PRODUCTION:
                ir = await self.backend.compile(self.initializer.handle, source)
                meta["executionMode"] = ExecutionMode.REAL.value
                return CompiledCircuit(ir=ir, mode=ExecutionMode.REAL, fingerprint=source_fp)
            if mode is ServiceMode.ERROR:
                raise self._unavailable_error()

            logger.warning("Compiling circuit %s in %s mode with a synthetic IR", source_fp, mode.value)
            meta["executionMode"] = ExecutionMode.MOCK.value
            return self.policy.mock_compile(source_fp, mode)

        return await self._run_stage(Stage.COMPILE, CompilationError, body)

    async def generate(self, circuit: Any, public_inputs: Any, private_inputs: Any) -> StageResult[Proof]:
        async def body(meta: Dict[str, Any]) -> Proof:
            public = _require_inputs("public", public_inputs)
            private = _require_inputs("private", private_inputs)
            if not isinstance(circuit, CompiledCircuit):
                raise InputError("Invalid circuit: circuit must be compiled first")
            meta["publicInputsFingerprint"] = fingerprint_data(dict(public))
            meta["privateInputsFingerprint"] = fingerprint_data(dict(private))
            overlap = sorted(set(public) & set(private))
            if overlap:
                raise InputError(f"Inputs declared both public and private: {', '.join(overlap)}")

            logger.info("Generating proof for %s (%d public, %d private inputs)",
                        circuit.fingerprint, len(public), len(private))
            if circuit.mode is ExecutionMode.MOCK or not self.backend_usable():
                if circuit.mode is ExecutionMode.REAL and not self.policy.allow_fallback:
                    raise BackendError("Proving backend unavailable and fallback disabled")
                meta["mode"] = ExecutionMode.MOCK.value
                outcome = self.policy.mock_execute(public)
                logger.warning("Using fallback proof generation for %s", circuit.fingerprint)
                return Proof(
                    proof_data=mock_proof_data(circuit.fingerprint, public),
                    public_outputs=outcome.to_dict(),
                    circuit_fingerprint=circuit.fingerprint,
                    mode=ExecutionMode.MOCK,
                )

            meta["mode"] = ExecutionMode.REAL.value
            witness = {**public, **private}
            result = await self.backend.generate_proof(self.initializer.handle, circuit, witness)
            if result is None or not result.proof_data:
                raise ProofGenerationError("Proof generation failed - no result from proof provider")
            return Proof(
                proof_data=result.proof_data,
                public_outputs=result.public_outputs,
                circuit_fingerprint=circuit.fingerprint,
                mode=ExecutionMode.REAL,
            )

        return await self._run_stage(Stage.GENERATE, ProofGenerationError, body)

    async def verify(self, proof: Any) -> StageResult[VerificationResult]:
        async def body(meta: Dict[str, Any]) -> VerificationResult:
            checked = proof if isinstance(proof, Proof) else Proof.from_dict(proof)
            if not checked.proof_data:
                raise InputError("Invalid proof: missing proof data")
            proof_fp = fingerprint_data(checked.to_dict())
            meta["fingerprint"] = proof_fp
            meta["mode"] = checked.mode.value

            if checked.mode is ExecutionMode.MOCK:
                valid = is_mock_proof_data(checked.proof_data)
            else:
                if not self.initializer.is_ready():
                    await self.initializer.initialize()
                if not self.backend_usable():
                    raise BackendError("Proving backend unavailable; real proof cannot be verified")
                valid = await self.backend.verify(self.initializer.handle, checked)
                if not isinstance(valid, bool):
                    raise VerificationError(f"Backend returned a non-boolean verdict: {valid!r}")
            logger.info("Proof %s verification completed: %s", proof_fp, "VALID" if valid else "INVALID")
            return VerificationResult(is_valid=valid, fingerprint=proof_fp)

        return await self._run_stage(Stage.VERIFY, VerificationError, body)

    async def run_full(self, source: Any, public_inputs: Any, private_inputs: Any) -> StageResult[FullRun]:
        """Compile, generate and verify in order, stopping at the first failed stage."""

        run_id = uuid.uuid4().hex
        state = RunState.IDLE

        state = self._transition(run_id, state, RunState.COMPILING)
        compiled = await self.compile(source)
        if not compiled.success:
            self._transition(run_id, state, RunState.FAILED)
            return compiled

        state = self._transition(run_id, state, RunState.GENERATING)
        generated = await self.generate(compiled.value, public_inputs, private_inputs)
        if not generated.success:
            self._transition(run_id, state, RunState.FAILED)
            return generated

        state = self._transition(run_id, state, RunState.VERIFYING)
        verified = await self.verify(generated.value)
        if not verified.success:
            self._transition(run_id, state, RunState.FAILED)
            return verified
        self._transition(run_id, state, RunState.DONE)

        durations = {
            Stage.COMPILE.value: compiled.metadata["durationMs"],
            Stage.GENERATE.value: generated.metadata["durationMs"],
            Stage.VERIFY.value: verified.metadata["durationMs"],
        }
        return StageResult.ok(
            FullRun(proof=generated.value, verification=verified.value),
            runId=run_id,
            mode=compiled.metadata.get("mode"),
            executionMode=generated.value.mode.value,
            circuitFingerprint=compiled.metadata["fingerprint"],
            publicInputsFingerprint=generated.metadata["publicInputsFingerprint"],
            privateInputsFingerprint=generated.metadata["privateInputsFingerprint"],
            proofFingerprint=verified.metadata["fingerprint"],
            durationsMs=durations,
            totalDurationMs=sum(durations.values()),
        )

    # Helpers --------------------------------------------------------------
    async def _resolve_mode(self) -> ServiceMode:
        await self.initializer.initialize()
        if self.initializer.is_ready() and not self.policy.backend_available:
            await self._recheck_backend()
        return self.policy.current_mode(self.initializer.last_result, self.demo_mode)

    async def _recheck_backend(self) -> None:
        try:
            ready = await self.backend.readiness_probe(self.initializer.handle)
        except Exception as exc:
            logger.debug("Backend still unavailable: %s", exc)
            return
        if is_positive(ready):
            self.policy.record_backend_recovered()

    def _unavailable_error(self) -> ZkflowError:
        last = self.initializer.last_result
        if last is not None and last.error is not None:
            return InitializationError(f"{last.error.message} (fallback disabled)", last.error.detail)
        return BackendError("Proving backend unavailable and fallback disabled",
                            self.policy.last_backend_error or {})

    async def _run_stage(self, stage: Stage, default_error: Type[ZkflowError],
                         body: StageBody) -> StageResult[Any]:
        meta: Dict[str, Any] = {"stage": stage.value}
        started = time.perf_counter()
        try:
            value = await body(meta)
        except ZkflowError as exc:
            error = exc
        except (TimeoutError, ConnectionError) as exc:
            error = BackendError(f"{type(exc).__name__}: {exc}")
        except Exception as exc:
            error = default_error(f"{type(exc).__name__}: {exc}")
        else:
            meta["durationMs"] = (time.perf_counter() - started) * 1000
            logger.debug("Stage %s finished in %.1fms", stage.value, meta["durationMs"])
            return StageResult.ok(value, **meta)

        elapsed = (time.perf_counter() - started) * 1000
        meta["durationMs"] = elapsed
        stage_error = StageError.from_exception(error, stage, elapsed)
        if isinstance(error, BackendError):
            self.policy.record_backend_failure(stage_error.to_dict())
        if stage is Stage.GENERATE:
            # failure text may echo witness values
            logger.error("Stage %s failed with %s", stage.value, stage_error.kind)
        else:
            logger.error("Stage %s failed with %s: %s", stage.value, stage_error.kind, stage_error.message)
        return StageResult.fail(stage_error, **meta)

    @staticmethod
    def _transition(run_id: str, current: RunState, target: RunState) -> RunState:
        logger.debug("run %s: %s -> %s", run_id[:8], current.value, target.value)
        return target
