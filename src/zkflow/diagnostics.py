"""Operator-facing hints for stage failures and timing categories."""

from __future__ import annotations

from typing import Dict, List, Tuple

_SUGGESTIONS: Dict[str, List[str]] = {
    "CompilationError": [
        "Check the circuit source for typos or missing semicolons",
        "Ensure all functions have proper return types",
        "Verify that all variables are properly declared",
    ],
    "ProofGenerationError": [
        "Verify that all public and private inputs match circuit requirements",
        "Check if input values are within valid ranges for the circuit",
        "Try with simpler input values to isolate the issue",
    ],
    "VerificationError": [
        "Check if the proof was generated correctly",
        "Verify that the same circuit and inputs were used",
        "Ensure the proof file was not modified after it was written",
    ],
    "InputError": [
        "Ensure JSON input is properly formatted",
        "Verify all required input parameters are provided",
        "Remove any trailing commas in JSON objects",
    ],
    "InitializationError": [
        "Check that the proving backend endpoint is reachable",
        "Run 'zkflow status --init' to see the initialization error",
        "Unset the endpoint to run in fallback mode",
    ],
    "BackendError": [
        "Verify the proving backend endpoint is accessible",
        "Try again in a few moments, the backend may be temporarily unavailable",
        "Increase request_timeout in the backend config for large circuits",
    ],
}

_DEFAULT = [
    "Retry the operation",
    "Run with --verbose for additional detail",
]

# (keyword, hint) pairs that are promoted to the top of the list
_KEYWORD_HINTS: Dict[str, List[Tuple[str, str]]] = {
    "CompilationError": [
        ("syntax", "Syntax error detected - review the source for missing brackets or keywords"),
        ("type", "Type error detected - check variable types and function signatures"),
    ],
    "ProofGenerationError": [
        ("input", "Input mismatch - verify input names and types match circuit parameters"),
    ],
    "InputError": [
        ("json", "JSON parsing error - check brackets, quotes and comma usage"),
        ("numeric", "A mock circuit input is not a number - check the public input values"),
    ],
}


def suggestions(kind: str, message: str = "") -> List[str]:
    hints = list(_SUGGESTIONS.get(kind, _DEFAULT))
    lowered = message.lower()
    for keyword, hint in _KEYWORD_HINTS.get(kind, []):
        if keyword in lowered:
            hints.insert(0, hint)
    return hints


def classify_duration(duration_ms: float) -> Tuple[str, str]:
    """Return ``(formatted, category)`` for an elapsed time in milliseconds."""

    if duration_ms < 100:
        return f"{round(duration_ms)}ms", "very-fast"
    if duration_ms < 1000:
        return f"{round(duration_ms)}ms", "fast"
    if duration_ms < 5000:
        return f"{duration_ms / 1000:.2f}s", "normal"
    if duration_ms < 30000:
        return f"{duration_ms / 1000:.1f}s", "slow"
    return f"{duration_ms / 1000:.1f}s", "very-slow"
