import asyncio
from collections import Counter
from typing import Any, Mapping

import pytest

from zkflow.backends.base import ProvingBackend
from zkflow.degradation import DegradationPolicy
from zkflow.exceptions import BackendError
from zkflow.initializer import ServiceInitializer
from zkflow.models import CompiledCircuit, Proof, ProofResult
from zkflow.pipeline import PipelineOrchestrator
from zkflow.retry import BackoffSchedule


class StubBackend(ProvingBackend):
    """In-memory prover that counts calls and accepts only proofs it issued."""

    required_capabilities = ("secure_random",)

    def __init__(self, probe_delay: float = 0.0, ready_after: int = 1):
        self.calls: Counter = Counter()
        self.probe_delay = probe_delay
        self.ready_after = ready_after
        self.connect_error: Exception | None = None
        self.compile_error: Exception | None = None
        self.generate_error: Exception | None = None
        self.down = False
        self.issued: set = set()
        self.last_witness: Mapping[str, Any] | None = None
        self.closed: list = []

    async def connect(self) -> Any:
        self.calls["connect"] += 1
        if self.connect_error is not None:
            raise self.connect_error
        return {"session": self.calls["connect"]}

    def close(self, handle: Any) -> None:
        self.calls["close"] += 1
        self.closed.append(handle)

    async def readiness_probe(self, handle: Any) -> Any:
        self.calls["probe"] += 1
        if self.probe_delay:
            await asyncio.sleep(self.probe_delay)
        if self.down:
            raise BackendError("backend down")
        return self.calls["probe"] >= self.ready_after

    async def compile(self, handle: Any, source: str) -> Any:
        self.calls["compile"] += 1
        if self.compile_error is not None:
            raise self.compile_error
        return {"gates": len(source.split())}

    async def generate_proof(self, handle: Any, circuit: CompiledCircuit,
                             witness: Mapping[str, Any]) -> ProofResult:
        self.calls["generate_proof"] += 1
        if self.generate_error is not None:
            raise self.generate_error
        self.last_witness = dict(witness)
        proof_data = f"stub-proof-{len(self.issued)}"
        self.issued.add(proof_data)
        return ProofResult(proof_data=proof_data, public_outputs={"accepted": True})

    async def verify(self, handle: Any, proof: Proof) -> bool:
        self.calls["verify"] += 1
        return proof.proof_data in self.issued


FAST_SCHEDULE = BackoffSchedule(initial_delay=0.0, multiplier=1.5, max_delay=0.0, max_attempts=5)

CIRCUIT = """
circuit AdditionCircuit {
  public fn main(a: u32, b: u32) -> u32 {
    a + b
  }
}
"""


@pytest.fixture
def stub_backend() -> StubBackend:
    return StubBackend()


@pytest.fixture
def initializer(stub_backend: StubBackend) -> ServiceInitializer:
    return ServiceInitializer(stub_backend, schedule=FAST_SCHEDULE)


@pytest.fixture
def orchestrator(initializer: ServiceInitializer) -> PipelineOrchestrator:
    return PipelineOrchestrator(initializer, DegradationPolicy())
