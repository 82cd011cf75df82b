"""
Error taxonomy for pactkit.

Raised errors:
- ContractLoadError / MalformedContract: the contract file is absent or invalid
- UnmatchedInteraction: a registered interaction never received its request
- UnexpectedRequest: the mock server received a request nothing matched
- VerificationFailed: raised on demand from a completed VerificationRun

Recorded (never raised) outcomes such as ResponseMismatch, ProviderUnreachable
and ProviderDown live on the verification schemas as FailureKind values.
"""

from typing import Any, Dict, List, Optional


class PactKitError(Exception):
    """Base class for every error raised by pactkit."""


# =============================================================================
# Contract Store
# =============================================================================


class ContractLoadError(PactKitError):
    """The contract could not be loaded (missing file or unreadable content)."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class MalformedContract(ContractLoadError):
    """
    The contract document is not valid structured data or misses required fields.

    Attributes:
        path: File the document was read from, when known
        location: Dotted location inside the document of the first problem
    """

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        location: Optional[str] = None,
    ):
        if location:
            message = f"{message} (at {location})"
        super().__init__(message, path=path)
        self.location = location


# =============================================================================
# Mock Matching Server
# =============================================================================


class MockServerError(PactKitError):
    """Base class for consumer-side mock server failures."""


class UnmatchedInteraction(MockServerError):
    """One or more registered interactions were never requested."""

    def __init__(self, descriptions: List[str]):
        listed = "\n".join(f"  - {d}" for d in descriptions)
        super().__init__(
            f"{len(descriptions)} registered interaction(s) never received "
            f"a matching request:\n{listed}"
        )
        self.descriptions = descriptions


class UnexpectedRequest(MockServerError):
    """The mock server received request(s) that matched no registered interaction."""

    def __init__(self, requests: List[Dict[str, Any]]):
        listed = "\n".join(
            f"  - {r.get('method')} {r.get('path')}" for r in requests
        )
        super().__init__(
            f"{len(requests)} request(s) did not match any registered "
            f"interaction:\n{listed}"
        )
        self.requests = requests


# =============================================================================
# Verifier
# =============================================================================


class VerificationFailed(PactKitError):
    """A verification run completed with at least one failing interaction."""

    def __init__(self, report: str, failed: List[str]):
        super().__init__(report)
        self.failed = failed


__all__ = [
    "PactKitError",
    "ContractLoadError",
    "MalformedContract",
    "MockServerError",
    "UnmatchedInteraction",
    "UnexpectedRequest",
    "VerificationFailed",
]
