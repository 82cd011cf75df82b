"""
Verifier / Replay Engine.

Replays every interaction of a contract against a live provider and
records a verdict per interaction. One failing interaction never stops the
run: the result always holds one verdict per replayed interaction.

Phases of a run:
    Idle -> Loading -> [SettingState -> Requesting -> Comparing]* -> Aggregating -> Done

Usage:
    verifier = Verifier(settings, provider_base_url="http://localhost:9001",
                        provider_states_url="http://localhost:9001/provider-states")
    run = verifier.verify(path_to_pact)
    print(run.report())
"""

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Optional, Union

import httpx

from pactkit.core import storage
from pactkit.core.config import Settings
from pactkit.core.errors import ContractLoadError
from pactkit.schemas.interaction import Contract, Interaction
from pactkit.schemas.verification import (
    CallResult,
    FailureKind,
    Mismatch,
    VerificationRun,
    VerificationVerdict,
)
from pactkit.services.matching import match_response

logger = logging.getLogger(__name__)


class VerifierPhase(str, Enum):
    IDLE = "Idle"
    LOADING = "Loading"
    SETTING_STATE = "SettingState"
    REQUESTING = "Requesting"
    COMPARING = "Comparing"
    AGGREGATING = "Aggregating"
    DONE = "Done"


class Verifier:
    """
    Replays a contract against a running provider.

    Args:
        settings: Process settings (timeouts, provider version)
        provider_base_url: Base URL of the live provider
        provider_states_url: Provider-state endpoint; state setup is skipped when None
        transport: Optional httpx transport (tests inject httpx.MockTransport)
    """

    def __init__(
        self,
        settings: Settings,
        provider_base_url: str,
        provider_states_url: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.settings = settings
        self.provider_base_url = provider_base_url.rstrip("/")
        self.provider_states_url = provider_states_url
        self.transport = transport
        self.phase = VerifierPhase.IDLE

    def _enter(self, phase: VerifierPhase) -> None:
        logger.debug(f"Verifier phase: {self.phase.value} -> {phase.value}")
        self.phase = phase

    # =========================================================================
    # Run
    # =========================================================================

    def verify(
        self,
        source: Union[str, Path, Contract],
        only: Optional[Iterable[str]] = None,
    ) -> VerificationRun:
        """
        Verify a contract against the provider.

        Args:
            source: Path of the contract file, or an already loaded Contract
            only: Optional interaction descriptions to restrict the run to

        Returns:
            VerificationRun with one verdict per replayed interaction

        Raises:
            ContractLoadError: If the contract is absent or malformed
            ValueError: If ``only`` names a description the contract lacks
        """
        self._enter(VerifierPhase.LOADING)
        try:
            contract = source if isinstance(source, Contract) else storage.load(source)
        except ContractLoadError:
            self._enter(VerifierPhase.IDLE)
            raise

        selected = set(only) if only is not None else None
        if selected is not None:
            unknown = sorted(selected - set(contract.descriptions()))
            if unknown:
                self._enter(VerifierPhase.IDLE)
                raise ValueError(f"Unknown interaction descriptions: {', '.join(unknown)}")
        interactions = [
            i for i in contract.interactions
            if selected is None or i.description in selected
        ]
        logger.info(
            f"Verifying a pact between {contract.consumer_name} and {contract.provider_name} "
            f"({len(interactions)} interactions) against {self.provider_base_url}"
        )

        verdicts: List[VerificationVerdict] = []
        with httpx.Client(
            timeout=self.settings.provider_request_timeout,
            transport=self.transport,
        ) as client:
            for interaction in interactions:
                verdict = self._verify_interaction(client, contract, interaction)
                verdicts.append(verdict)

        self._enter(VerifierPhase.AGGREGATING)
        unreachable = [
            v for v in verdicts if v.failure_kind == FailureKind.PROVIDER_UNREACHABLE
        ]
        run = VerificationRun(
            consumer_name=contract.consumer_name,
            provider_name=contract.provider_name,
            provider_version=self.settings.provider_version,
            verdicts=verdicts,
            provider_down=bool(verdicts) and len(unreachable) == len(verdicts),
        )
        if run.provider_down:
            logger.error(f"Provider at {self.provider_base_url} was unreachable for every interaction")
        self._enter(VerifierPhase.DONE)

        passed = len(verdicts) - len(run.failures())
        logger.info(f"Verification finished: {passed}/{len(verdicts)} interactions passed")
        return run

    def _verify_interaction(
        self,
        client: httpx.Client,
        contract: Contract,
        interaction: Interaction,
    ) -> VerificationVerdict:
        warnings: List[str] = []

        self._enter(VerifierPhase.SETTING_STATE)
        for state in interaction.provider_states:
            result = self.set_provider_state(client, contract.consumer_name, state.name, state.params)
            if not result.ok:
                message = f"Provider state '{state.name}' setup failed: {result.reason}"
                logger.warning(message)
                warnings.append(message)

        self._enter(VerifierPhase.REQUESTING)
        request = interaction.request
        headers = dict(request.headers)
        content = _encode_body(request.body, headers)
        try:
            response = client.request(
                request.method,
                f"{self.provider_base_url}{request.path}",
                params=request.query,
                headers=headers,
                content=content,
            )
        except httpx.TransportError as e:
            logger.warning(f"{interaction.description}: provider unreachable ({e!r})")
            return VerificationVerdict(
                interaction_description=interaction.description,
                passed=False,
                failure_kind=FailureKind.PROVIDER_UNREACHABLE,
                provider_state=interaction.provider_state,
                state_setup_warnings=warnings,
                mismatches=[Mismatch(
                    kind="request",
                    path=request.path,
                    message=f"Provider unreachable: {type(e).__name__}: {e}",
                )],
            )
        except httpx.HTTPError as e:
            # reached the provider but the response could not be read
            logger.warning(f"{interaction.description} ... FAILED (unreadable response: {e!r})")
            return VerificationVerdict(
                interaction_description=interaction.description,
                passed=False,
                failure_kind=FailureKind.RESPONSE_MISMATCH,
                provider_state=interaction.provider_state,
                state_setup_warnings=warnings,
                mismatches=[Mismatch(
                    kind="response",
                    path=request.path,
                    message=f"Unreadable response: {type(e).__name__}: {e}",
                )],
            )

        self._enter(VerifierPhase.COMPARING)
        mismatches = match_response(
            interaction.response,
            status=response.status_code,
            headers=response.headers,
            body=response.content,
        )
        passed = not mismatches
        if passed:
            logger.info(f"{interaction.description} ... OK")
        else:
            logger.warning(f"{interaction.description} ... FAILED ({len(mismatches)} mismatches)")
        return VerificationVerdict(
            interaction_description=interaction.description,
            passed=passed,
            mismatches=mismatches,
            failure_kind=None if passed else FailureKind.RESPONSE_MISMATCH,
            provider_state=interaction.provider_state,
            state_setup_warnings=warnings,
        )

    # =========================================================================
    # Provider state
    # =========================================================================

    def set_provider_state(
        self,
        client: httpx.Client,
        consumer: str,
        state: str,
        params: Optional[dict] = None,
    ) -> CallResult:
        """
        Ask the provider to enter ``state``; best effort.

        Returns:
            CallResult: ok for a 2xx answer; otherwise the status or network error
        """
        if not self.provider_states_url:
            return CallResult.success()
        try:
            response = client.post(
                self.provider_states_url,
                json={"consumer": consumer, "state": state, "params": params or {}},
            )
        except httpx.HTTPError as e:
            return CallResult.failure(f"{type(e).__name__}: {e}")
        if response.is_success:
            return CallResult.success(response.status_code)
        return CallResult.failure(f"HTTP {response.status_code}", status_code=response.status_code)


def _encode_body(body, headers: dict) -> Optional[bytes]:
    """Encode the example body; adds a JSON Content-Type when none was declared."""
    if body is None:
        return None
    content_type = next((v for k, v in headers.items() if k.lower() == "content-type"), None)
    if isinstance(body, str) and content_type is not None and "json" not in content_type.lower():
        return body.encode("utf-8")
    if content_type is None:
        headers["Content-Type"] = "application/json"
    return json.dumps(body).encode("utf-8")
