"""Externally observable service status snapshot."""

from __future__ import annotations

from typing import Any, Dict, Optional, TYPE_CHECKING

from .models import ServiceMode, ServiceStatus

if TYPE_CHECKING:
    from .degradation import DegradationPolicy
    from .initializer import ServiceInitializer

MESSAGES = {
    ServiceMode.INITIALIZING: "Service is initializing",
    ServiceMode.PRODUCTION: "Real proofs enabled",
    ServiceMode.FALLBACK: "Operating without backend — synthetic results",
    ServiceMode.DEMO: "Demo mode explicitly enabled",
    ServiceMode.ERROR: "Backend unavailable and fallback disabled",
}

_SERVING = {ServiceMode.PRODUCTION, ServiceMode.FALLBACK, ServiceMode.DEMO}


class StatusReporter:
    """Reads initializer and policy state; never starts initialization itself."""

    def __init__(self, initializer: "ServiceInitializer", policy: "DegradationPolicy",
                 demo_mode: bool = False):
        self.initializer = initializer
        self.policy = policy
        self.demo_mode = demo_mode

    def status(self) -> ServiceStatus:
        if not self.initializer.attempted and not self.initializer.is_initialized:
            mode = ServiceMode.INITIALIZING
        else:
            mode = self.policy.current_mode(self.initializer.last_result, self.demo_mode)

        return ServiceStatus(
            is_initialized=self.initializer.is_initialized,
            is_ready=mode in _SERVING,
            mode=mode,
            message=MESSAGES[mode],
            error=self._error_for(mode),
        )

    def _error_for(self, mode: ServiceMode) -> Optional[Dict[str, Any]]:
        if mode not in (ServiceMode.FALLBACK, ServiceMode.ERROR):
            return None
        if self.policy.last_backend_error is not None:
            return dict(self.policy.last_backend_error)
        last = self.initializer.last_result
        if last is not None and last.error is not None:
            return last.error.to_dict()
        return None
