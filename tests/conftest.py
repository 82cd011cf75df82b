"""
Shared test fixtures for pactkit tests.

Provides:
- Settings isolated from the environment (tmp pact directory, fixed version)
- A sample contract covering the BulkUsers scenarios
- The example BulkUsers provider served on a real port
- An httpx.MockTransport based fake pact broker
"""

import json
from typing import Any, Dict, Generator, List, Optional

import httpx
import pytest

from pactkit.core.config import Settings
from pactkit.core.server import BackgroundServer
from pactkit.schemas.interaction import (
    Contract,
    Interaction,
    ProviderState,
    RequestMatcher,
    ResponseTemplate,
)
from tests.utils.bulk_users_app import create_bulk_users_app

CONSUMER = "SF-Consumer"
PROVIDER = "VAIS-Producer"
BROKER_URL = "http://broker.test"
PACT_VERSION_SHA = "2f3a9c51d7e0b4a86c1f"


# =============================================================================
# Settings
# =============================================================================


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings that never read the developer's environment or .env file."""
    return Settings(
        _env_file=None,
        pact_broker_base_url=None,
        publish_verification_results=False,
        pact_dir=str(tmp_path / "pacts"),
        provider_version="1.0.20260101000000",
        branch_name="main",
        provider_request_timeout=2.0,
        broker_timeout=2.0,
    )


@pytest.fixture
def broker_settings(settings) -> Settings:
    return settings.model_copy(update={
        "pact_broker_base_url": BROKER_URL,
        "publish_verification_results": True,
    })


# =============================================================================
# Contracts
# =============================================================================


def make_interaction(
    description: str,
    status: int = 200,
    response_body: Any = None,
    request_body: Any = None,
    state: Optional[str] = None,
    path: str = "/BulkUsers",
    token: str = "valid-token-from-SF",
    response_rules: Optional[Dict[str, Any]] = None,
) -> Interaction:
    """Build a POST /BulkUsers interaction with sensible defaults."""
    return Interaction(
        description=description,
        provider_states=[ProviderState(name=state)] if state else [],
        request=RequestMatcher(
            method="POST",
            path=path,
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
            },
            body=request_body,
        ),
        response=ResponseTemplate(
            status=status,
            body=response_body,
            matching_rules=response_rules or {},
        ),
    )


VALID_USER = {
    "displayName": "TestUser",
    "identityProviders": [{"provider": "windows", "providerId": "vms\\administrator"}],
    "isAccountDisabled": False,
    "subject": None,
}

INVALID_USER = {
    "displayName": "InvalidUser",
    "identityProviders": [{"provider": "windows", "providerId": "invalid-user"}],
    "isAccountDisabled": False,
    "subject": None,
}


@pytest.fixture
def sample_contract() -> Contract:
    """Contract holding the three BulkUsers scenarios."""
    return Contract(
        consumer_name=CONSUMER,
        provider_name=PROVIDER,
        interactions=[
            make_interaction(
                "A POST request to BulkUsers with invalid token",
                status=401,
                request_body=[],
                state="Invalid authentication token provided",
                token="invalid-token",
            ),
            make_interaction(
                "A POST request to sync users via BulkUsers API",
                status=200,
                request_body=[VALID_USER],
                response_body=[dict(VALID_USER, subject="user-subject-id-123")],
                state="Valid Windows users exist in VAIS",
                response_rules={"body": {
                    "$[*].subject": {"matchers": [{"match": "type"}], "combine": "AND"},
                }},
            ),
            make_interaction(
                "A POST request to BulkUsers with invalid Windows user",
                status=400,
                request_body=[INVALID_USER],
                response_body={
                    "error": "InvalidWindowsUserName",
                    "message": "Invalid UserName. User 'invalid-user' does not exist in Windows.",
                },
                state="Windows user does not exist in domain",
                response_rules={"body": {
                    "$.message": {
                        "matchers": [{"match": "include", "value": "invalid-user"}],
                        "combine": "AND",
                    },
                }},
            ),
        ],
    )


# =============================================================================
# Provider
# =============================================================================


@pytest.fixture
def provider_app():
    return create_bulk_users_app()


@pytest.fixture
def provider_server(provider_app) -> Generator[BackgroundServer, None, None]:
    """The example provider listening on an ephemeral local port."""
    with BackgroundServer(provider_app) as server:
        yield server


# =============================================================================
# Fake broker
# =============================================================================


class FakeBroker:
    """Records broker calls and answers them from a small routing table."""

    def __init__(self):
        self.calls: List[httpx.Request] = []
        self.fail: Dict[str, int] = {}
        self.down = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        if self.down:
            raise httpx.ConnectError("broker unreachable", request=request)
        path = request.url.path
        if request.method == "GET" and path.endswith("/latest"):
            if "fetch" in self.fail:
                return httpx.Response(self.fail["fetch"])
            return httpx.Response(200, json={
                "_links": {"pb:pact-version": {"name": PACT_VERSION_SHA}},
            })
        if request.method == "POST" and path.endswith("/verification-results"):
            if "post" in self.fail:
                return httpx.Response(self.fail["post"], text="broker rejected result")
            return httpx.Response(201, json={"success": json.loads(request.content)["success"]})
        if request.method == "PUT" and "/tags/" in path:
            if "tag" in self.fail:
                return httpx.Response(self.fail["tag"])
            return httpx.Response(201, json={})
        return httpx.Response(404)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def fake_broker() -> FakeBroker:
    return FakeBroker()

