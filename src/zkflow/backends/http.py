"""HTTP client for a remote proving service."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, Mapping, Type

import requests

from ..exceptions import (
    BackendError,
    CompilationError,
    ProofGenerationError,
    VerificationError,
    ZkflowError,
)
from ..models import CompiledCircuit, Proof, ProofResult
from .base import ProvingBackend

logger = logging.getLogger(__name__)


class HttpProvingBackend(ProvingBackend):
    """Talks JSON to a prover exposing /health, /compile, /prove and /verify."""

    required_capabilities = ("secure_random", "threads")

    def __init__(self, endpoint: str, timeout: float = 60.0, session: requests.Session | None = None):
        if not endpoint:
            raise BackendError("Proving backend endpoint missing")
        self.endpoint = endpoint.rstrip("/")
        self.timeout = timeout
        self.session = session

    async def connect(self) -> requests.Session:
        logger.info("Connecting to proving backend at %s", self.endpoint)
        return self.session or requests.Session()

    def close(self, handle: requests.Session | None) -> None:
        # an injected session belongs to the caller
        if handle is not None and handle is not self.session:
            handle.close()

    async def readiness_probe(self, handle: requests.Session) -> Any:
        data = await self._request(handle, "GET", "/health", None, BackendError)
        return data.get("ready") is True

    async def compile(self, handle: requests.Session, source: str) -> Any:
        data = await self._request(handle, "POST", "/compile", {"source": source}, CompilationError)
        if "ir" not in data:
            raise CompilationError("Backend compile response carried no IR")
        return data["ir"]

    async def generate_proof(
        self,
        handle: requests.Session,
        circuit: CompiledCircuit,
        witness: Mapping[str, Any],
    ) -> ProofResult:
        payload = {"ir": circuit.ir, "witness": dict(witness)}
        data = await self._request(handle, "POST", "/prove", payload, ProofGenerationError)
        proof_data = data.get("proof") or data.get("proofBytes")
        if not proof_data:
            raise ProofGenerationError("Proof generation failed - no proof in backend response")
        outputs = data.get("publicOutputs", data.get("outputs"))
        return ProofResult(proof_data=proof_data, public_outputs=outputs)

    async def verify(self, handle: requests.Session, proof: Proof) -> bool:
        payload = {"proof": proof.proof_data, "publicOutputs": proof.public_outputs}
        data = await self._request(handle, "POST", "/verify", payload, VerificationError)
        valid = data.get("valid")
        if not isinstance(valid, bool):
            raise VerificationError("Backend verify response carried no boolean 'valid'")
        return valid

    async def _request(
        self,
        handle: requests.Session,
        method: str,
        path: str,
        payload: Dict[str, Any] | None,
        error_type: Type[ZkflowError],
    ) -> Dict[str, Any]:
        return await asyncio.to_thread(self._send, handle, method, path, payload, error_type)

    def _send(
        self,
        handle: requests.Session,
        method: str,
        path: str,
        payload: Dict[str, Any] | None,
        error_type: Type[ZkflowError],
    ) -> Dict[str, Any]:
        url = f"{self.endpoint}{path}"
        try:
            response = handle.request(
                method,
                url,
                headers={"Content-Type": "application/json"},
                data=json.dumps(payload) if payload is not None else None,
                timeout=self.timeout,
            )
        except requests.Timeout as exc:
            raise BackendError(f"Proving backend timed out on {path}", {"path": path}) from exc
        except requests.RequestException as exc:
            raise BackendError(f"Proving backend unreachable: {exc}", {"path": path}) from exc

        if response.status_code >= 500:
            raise BackendError(
                f"Proving backend error {response.status_code} on {path}",
                {"path": path, "status": response.status_code},
            )
        if response.status_code >= 400:
            raise error_type(
                f"Proving backend rejected request {response.status_code} on {path}",
                {"path": path, "status": response.status_code},
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise BackendError(f"Proving backend returned non-JSON body on {path}") from exc
        if not isinstance(data, dict):
            raise BackendError(f"Proving backend returned unexpected payload on {path}")
        return data
