from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping, Tuple

from ..models import CompiledCircuit, Proof, ProofResult


class ProvingBackend(ABC):
    """Narrow interface the pipeline needs from a proof system."""

    #: Host capabilities checked before any connection attempt.
    required_capabilities: Tuple[str, ...] = ("secure_random",)

    @abstractmethod
    async def connect(self) -> Any:
        """Open a session and return an opaque handle."""

    def close(self, handle: Any) -> None:
        """Release a handle returned by ``connect()``. Default: nothing to release."""

    @abstractmethod
    async def readiness_probe(self, handle: Any) -> Any:
        """Return ``True`` (or a positive integer) once the backend can serve."""

    @abstractmethod
    async def compile(self, handle: Any, source: str) -> Any:
        """Compile circuit source into the backend's IR."""

    @abstractmethod
    async def generate_proof(
        self,
        handle: Any,
        circuit: CompiledCircuit,
        witness: Mapping[str, Any],
    ) -> ProofResult:
        pass

    @abstractmethod
    async def verify(self, handle: Any, proof: Proof) -> bool:
        pass
