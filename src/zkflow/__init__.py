"""zkflow: staged compile / prove / verify orchestration for a ZK proving backend."""

from .degradation import DegradationPolicy, mock_execute
from .fingerprint import fingerprint, fingerprint_data
from .initializer import ServiceInitializer
from .pipeline import PipelineOrchestrator
from .status import StatusReporter

__all__ = [
    "DegradationPolicy",
    "PipelineOrchestrator",
    "ServiceInitializer",
    "StatusReporter",
    "fingerprint",
    "fingerprint_data",
    "mock_execute",
]
