"""Backend used when no prover endpoint is configured."""

from __future__ import annotations

from typing import Any, Mapping

from ..exceptions import BackendError
from ..models import CompiledCircuit, Proof, ProofResult
from .base import ProvingBackend


class OfflineBackend(ProvingBackend):
    """Never connects, so the pipeline settles in Fallback mode."""

    required_capabilities = ()

    def __init__(self, reason: str = "No proving backend endpoint configured"):
        self.reason = reason

    async def connect(self) -> Any:
        raise BackendError(self.reason)

    async def readiness_probe(self, handle: Any) -> Any:
        return False

    async def compile(self, handle: Any, source: str) -> Any:
        raise BackendError(self.reason)

    async def generate_proof(self, handle: Any, circuit: CompiledCircuit,
                             witness: Mapping[str, Any]) -> ProofResult:
        raise BackendError(self.reason)

    async def verify(self, handle: Any, proof: Proof) -> bool:
        raise BackendError(self.reason)
