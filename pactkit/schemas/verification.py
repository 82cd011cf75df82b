"""
Pydantic schemas for verification results.

A VerificationVerdict is produced for every replayed interaction; the
verdicts of one run are aggregated into a VerificationRun. CallResult
describes the outcome of a single best-effort remote call (provider-state
setup, broker publishing) so callers decide explicitly how to react.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from pactkit.core.errors import VerificationFailed


class FailureKind(str, Enum):
    """Why an interaction failed verification."""

    RESPONSE_MISMATCH = "ResponseMismatch"
    PROVIDER_UNREACHABLE = "ProviderUnreachable"


class Mismatch(BaseModel):
    """One field-level difference between expectation and actual value."""

    kind: str = Field(..., description="status, header, body, response, method, path or query")
    path: str = Field(..., description="Location of the difference, e.g. $[0].subject")
    expected: Any = None
    actual: Any = None
    message: str

    def describe(self) -> str:
        return f"[{self.kind}] {self.path}: {self.message}"


class VerificationVerdict(BaseModel):
    """Outcome of replaying one interaction."""

    interaction_description: str
    passed: bool
    mismatches: List[Mismatch] = Field(default_factory=list)
    failure_kind: Optional[FailureKind] = None
    provider_state: Optional[str] = None
    state_setup_warnings: List[str] = Field(default_factory=list)


class VerificationRun(BaseModel):
    """All verdicts of one verification run against a live provider."""

    consumer_name: str
    provider_name: str
    provider_version: str
    verdicts: List[VerificationVerdict] = Field(default_factory=list)
    provider_down: bool = False

    @property
    def overall_success(self) -> bool:
        """True iff every verdict passed."""
        return all(v.passed for v in self.verdicts)

    def failures(self) -> List[VerificationVerdict]:
        return [v for v in self.verdicts if not v.passed]

    def report(self) -> str:
        """
        Render a human-readable report of the run.

        Every failing interaction is listed with its mismatches
        (path, expected, actual), not just a pass/fail flag.
        """
        status = "PASSED" if self.overall_success else "FAILED"
        lines = [
            f"Verifying a pact between {self.consumer_name} and {self.provider_name} "
            f"(provider version {self.provider_version}): {status}",
        ]
        if self.provider_down:
            lines.append("  Provider unreachable for every interaction (ProviderDown)")
        for verdict in self.verdicts:
            mark = "OK" if verdict.passed else "FAILED"
            state = f" given '{verdict.provider_state}'" if verdict.provider_state else ""
            lines.append(f"  {verdict.interaction_description}{state} ... {mark}")
            for warning in verdict.state_setup_warnings:
                lines.append(f"    warning: {warning}")
            if verdict.failure_kind is not None:
                lines.append(f"    {verdict.failure_kind.value}")
            for mismatch in verdict.mismatches:
                lines.append(f"    {mismatch.describe()}")
                lines.append(f"      expected: {mismatch.expected!r}")
                lines.append(f"      actual:   {mismatch.actual!r}")
        passed = len(self.verdicts) - len(self.failures())
        lines.append(f"{passed}/{len(self.verdicts)} interactions passed")
        return "\n".join(lines)

    def raise_for_failure(self) -> None:
        """Raise VerificationFailed carrying the full report if any verdict failed."""
        if not self.overall_success:
            raise VerificationFailed(
                self.report(),
                failed=[v.interaction_description for v in self.failures()],
            )


@dataclass
class CallResult:
    """Outcome of one best-effort remote call."""

    ok: bool
    status_code: Optional[int] = None
    reason: Optional[str] = None
    value: Optional[Any] = None

    @classmethod
    def success(cls, status_code: Optional[int] = None, value: Any = None) -> "CallResult":
        return cls(ok=True, status_code=status_code, value=value)

    @classmethod
    def failure(cls, reason: str, status_code: Optional[int] = None) -> "CallResult":
        return cls(ok=False, status_code=status_code, reason=reason)
