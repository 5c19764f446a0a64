"""Proving backend adapters."""

from __future__ import annotations

from ..config import ServiceSettings
from ..exceptions import ConfigError
from .base import ProvingBackend
from .http import HttpProvingBackend
from .offline import OfflineBackend

__all__ = ["ProvingBackend", "HttpProvingBackend", "OfflineBackend", "build_backend"]


def build_backend(settings: ServiceSettings) -> ProvingBackend:
    provider = settings.provider.lower()
    if provider == "offline":
        return OfflineBackend()
    if provider == "http":
        if not settings.endpoint:
            return OfflineBackend("HTTP provider selected but no endpoint configured")
        return HttpProvingBackend(settings.endpoint, timeout=settings.request_timeout)
    raise ConfigError(f"Unknown proving backend provider '{settings.provider}'")
