"""
Pydantic schemas for pactkit.
"""

from .interaction import (
    Contract,
    Interaction,
    ProviderState,
    RequestMatcher,
    ResponseTemplate,
    contract_file_name,
)
from .verification import (
    CallResult,
    FailureKind,
    Mismatch,
    VerificationRun,
    VerificationVerdict,
)

__all__ = [
    # Contract
    "Contract",
    "Interaction",
    "ProviderState",
    "RequestMatcher",
    "ResponseTemplate",
    "contract_file_name",
    # Verification
    "CallResult",
    "FailureKind",
    "Mismatch",
    "VerificationRun",
    "VerificationVerdict",
]
