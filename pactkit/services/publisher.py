"""
Broker Publisher.

Reports a finished verification run to a pact broker in three sequential,
best-effort calls:

1. GET  /pacts/provider/{provider}/consumer/{consumer}/latest
   -> pact version id from _links["pb:pact-version"].name
2. POST /pacts/provider/{provider}/consumer/{consumer}/pact-version/{id}/verification-results
3. PUT  /pacticipants/{provider}/versions/{version}/tags/{branch}

Every call has a bounded timeout and returns a CallResult; failures are
logged and never raised, and nothing here can change the outcome of the
run being published.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional
from urllib.parse import quote

import httpx

from pactkit import __version__
from pactkit.core.config import Settings
from pactkit.schemas.verification import CallResult, VerificationRun

logger = logging.getLogger(__name__)

VERIFIED_BY = {"implementation": "pactkit", "version": __version__}


@dataclass
class PublishOutcome:
    """Results of the three publishing steps (None when a step was skipped)."""

    pact_version: CallResult
    verification_result: Optional[CallResult] = None
    tag: Optional[CallResult] = None
    skipped: list = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(
            r is not None and r.ok
            for r in (self.pact_version, self.verification_result, self.tag)
        )


def _segment(value: str) -> str:
    return quote(value, safe="")


class BrokerPublisher:
    """
    Publishes verification results to a pact broker.

    Args:
        settings: Broker URL, credentials, timeout, provider version and branch
        transport: Optional httpx transport (tests inject httpx.MockTransport)
    """

    def __init__(self, settings: Settings, transport: Optional[httpx.BaseTransport] = None):
        if not settings.pact_broker_base_url:
            raise ValueError("pact_broker_base_url is not configured")
        self.settings = settings
        self.base_url = settings.pact_broker_base_url.rstrip("/")
        self.transport = transport

    def _client(self) -> httpx.Client:
        auth = None
        headers: Dict[str, str] = {"Accept": "application/hal+json, application/json"}
        if self.settings.pact_broker_token:
            headers["Authorization"] = f"Bearer {self.settings.pact_broker_token}"
        elif self.settings.pact_broker_username:
            auth = (self.settings.pact_broker_username, self.settings.pact_broker_password or "")
        return httpx.Client(
            timeout=self.settings.broker_timeout,
            headers=headers,
            auth=auth,
            transport=self.transport,
        )

    # =========================================================================
    # Workflow
    # =========================================================================

    def publish(self, run: VerificationRun) -> PublishOutcome:
        """
        Publish ``run`` to the broker.

        Args:
            run: Completed verification run

        Returns:
            PublishOutcome with one CallResult per attempted step
        """
        logger.info(f"Publishing verification results to broker: {self.base_url}")
        with self._client() as client:
            fetched = self.fetch_pact_version(client, run.provider_name, run.consumer_name)
            if not fetched.ok:
                logger.warning(f"Skipping verification result publishing: {fetched.reason}")
                return PublishOutcome(
                    pact_version=fetched,
                    skipped=["verification_result", "tag"],
                )

            posted = self.post_verification_result(
                client,
                run.provider_name,
                run.consumer_name,
                fetched.value,
                run.overall_success,
                run.provider_version,
            )
            tagged = self.tag_provider_version(
                client,
                run.provider_name,
                run.provider_version,
                self.settings.branch_name,
            )
        return PublishOutcome(pact_version=fetched, verification_result=posted, tag=tagged)

    # =========================================================================
    # Steps
    # =========================================================================

    def fetch_pact_version(self, client: httpx.Client, provider: str, consumer: str) -> CallResult:
        """Fetch the latest pact and extract its content-addressed version id."""
        url = (
            f"{self.base_url}/pacts/provider/{_segment(provider)}"
            f"/consumer/{_segment(consumer)}/latest"
        )
        logger.info(f"Fetching pact metadata from: {url}")
        try:
            response = client.get(url)
        except httpx.HTTPError as e:
            logger.warning(f"Failed to fetch pact metadata: {type(e).__name__}: {e}")
            return CallResult.failure(f"{type(e).__name__}: {e}")

        if not response.is_success:
            logger.warning(f"Failed to fetch pact metadata: {response.status_code}")
            return CallResult.failure(f"HTTP {response.status_code}", status_code=response.status_code)

        try:
            sha = response.json()["_links"]["pb:pact-version"]["name"]
        except (ValueError, KeyError, TypeError):
            sha = None
        if not sha:
            logger.warning("Could not extract pact version SHA from metadata")
            return CallResult.failure("pact version missing from broker metadata", response.status_code)

        logger.info(f"Pact version SHA: {sha}")
        return CallResult.success(response.status_code, value=sha)

    def post_verification_result(
        self,
        client: httpx.Client,
        provider: str,
        consumer: str,
        pact_version: str,
        success: bool,
        provider_version: str,
    ) -> CallResult:
        """POST the verification verdict for one pact version."""
        url = (
            f"{self.base_url}/pacts/provider/{_segment(provider)}"
            f"/consumer/{_segment(consumer)}"
            f"/pact-version/{_segment(pact_version)}/verification-results"
        )
        payload = {
            "success": success,
            "providerApplicationVersion": provider_version,
            "verifiedBy": VERIFIED_BY,
        }
        logger.info(f"Publishing verification results to: {url}")
        try:
            response = client.post(url, json=payload)
        except httpx.HTTPError as e:
            logger.warning(f"Failed to publish verification results: {type(e).__name__}: {e}")
            return CallResult.failure(f"{type(e).__name__}: {e}")

        if response.is_success:
            logger.info(f"Verification results published successfully: {response.status_code}")
            return CallResult.success(response.status_code)
        logger.warning(
            f"Failed to publish verification results: {response.status_code} {response.text}"
        )
        return CallResult.failure(f"HTTP {response.status_code}", status_code=response.status_code)

    def tag_provider_version(
        self,
        client: httpx.Client,
        provider: str,
        version: str,
        branch: str,
    ) -> CallResult:
        """PUT a branch tag on the provider version."""
        url = (
            f"{self.base_url}/pacticipants/{_segment(provider)}"
            f"/versions/{_segment(version)}/tags/{_segment(branch)}"
        )
        logger.info(f"Tagging provider version: {url}")
        try:
            response = client.put(url, json={})
        except httpx.HTTPError as e:
            logger.warning(f"Failed to tag provider version: {type(e).__name__}: {e}")
            return CallResult.failure(f"{type(e).__name__}: {e}")

        if response.is_success:
            logger.info(f"Provider version tagged successfully with '{branch}'")
            return CallResult.success(response.status_code)
        logger.warning(f"Failed to tag provider version: {response.status_code}")
        return CallResult.failure(f"HTTP {response.status_code}", status_code=response.status_code)
