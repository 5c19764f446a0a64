"""Custom exceptions for the zkflow pipeline."""

from __future__ import annotations

from typing import Any, Dict


class ZkflowError(RuntimeError):
    """Base class for domain-specific runtime errors."""

    def __init__(self, message: str, detail: Dict[str, Any] | None = None):
        super().__init__(message)
        self.detail = dict(detail or {})

    @property
    def kind(self) -> str:
        return type(self).__name__


class ConfigError(ZkflowError):
    """Raised when a configuration file or value cannot be used."""


class InitializationError(ZkflowError):
    """Raised when the proving backend cannot be brought up."""


class InputError(ZkflowError):
    """Raised for malformed circuit source, input maps or proof payloads."""


class CompilationError(ZkflowError):
    """Raised when the backend rejects a circuit."""


class ProofGenerationError(ZkflowError):
    """Raised when the backend fails to produce a proof."""


class VerificationError(ZkflowError):
    """Raised when the backend fails to check a proof."""


class BackendError(ZkflowError):
    """Raised on transport failures or timeouts talking to the backend."""
