"""
Consumer contract tests for the SF-Consumer -> VAIS-Producer BulkUsers API.

Each test declares one interaction, drives a small BulkUsers client against
the mock server and records the interaction into the pact directory.
"""

import json
from typing import Any, Dict, List, Optional

import httpx
import pytest

from pactkit import Include, Like, Pact
from pactkit.core import storage
from pactkit.core.errors import UnexpectedRequest, UnmatchedInteraction
from tests.conftest import CONSUMER, INVALID_USER, PROVIDER, VALID_USER


class BulkUsersClient:
    """The consumer's client for POST /BulkUsers."""

    def __init__(self, base_url: str, token: str):
        self.base_url = base_url
        self.token = token

    def sync_users(self, users: List[Dict[str, Any]]) -> httpx.Response:
        return httpx.post(
            f"{self.base_url}/BulkUsers",
            json=users,
            headers={
                "Authorization": f"Bearer {self.token}",
                "Accept": "application/json",
            },
        )


@pytest.fixture
def pact(settings) -> Pact:
    return Pact(CONSUMER, PROVIDER, pact_dir=settings.pact_dir)


def _declare_bulk_users(
    pact: Pact,
    description: str,
    state: str,
    token: str,
    users: List[Dict[str, Any]],
    status: int,
    body: Optional[Any] = None,
):
    response = (
        pact.upon_receiving(description)
        .given(state)
        .with_request("POST", "/BulkUsers")
        .with_header("Authorization", f"Bearer {token}")
        .with_header("Content-Type", "application/json")
        .with_json_body(users)
        .will_respond_with(status)
    )
    if body is not None:
        response.with_header("Content-Type", Include("application/json")).with_json_body(body)
    return response


class TestBulkUsersConsumer:
    """Scenarios recorded into SF-Consumer-VAIS-Producer.json."""

    def test_invalid_token_returns_401(self, pact):
        """Test that an invalid token is recorded as a 401 with no body."""
        _declare_bulk_users(
            pact,
            "A POST request to BulkUsers with invalid token",
            "Invalid authentication token provided",
            token="invalid-token",
            users=[],
            status=401,
        )

        with pact.serve() as server:
            response = BulkUsersClient(server.url, "invalid-token").sync_users([])
            assert response.status_code == 401

        contract = storage.load(pact.pact_file)
        interaction = contract.interactions[0]
        assert interaction.response.status == 401
        assert interaction.response.body is None

    def test_valid_user_returns_subject(self, pact):
        """Test that a valid user gets a generated subject, recorded with a type rule."""
        _declare_bulk_users(
            pact,
            "A POST request to sync users via BulkUsers API",
            "Valid Windows users exist in VAIS",
            token="valid-token-from-SF",
            users=[VALID_USER],
            status=200,
            body=[{
                "displayName": "TestUser",
                "identityProviders": [{"provider": "windows", "providerId": "vms\\administrator"}],
                "isAccountDisabled": False,
                "subject": Like("user-subject-id-123"),
            }],
        )

        with pact.serve() as server:
            response = BulkUsersClient(server.url, "valid-token-from-SF").sync_users([VALID_USER])
            assert response.status_code == 200
            users = response.json()
            assert len(users) == 1
            assert users[0]["displayName"] == "TestUser"
            assert users[0]["subject"] is not None

        document = json.loads(pact.pact_file.read_text())
        recorded = next(
            i for i in document["interactions"]
            if i["description"] == "A POST request to sync users via BulkUsers API"
        )
        rules = recorded["response"]["matchingRules"]
        assert rules["body"]["$[0].subject"]["matchers"] == [{"match": "type"}]
        assert rules["header"]["Content-Type"]["matchers"] == [
            {"match": "include", "value": "application/json"},
        ]

    def test_invalid_windows_user_returns_400(self, pact):
        """Test that an unknown Windows user is recorded as a 400 error."""
        _declare_bulk_users(
            pact,
            "A POST request to BulkUsers with invalid Windows user",
            "Windows user does not exist in domain",
            token="valid-token-from-SF",
            users=[INVALID_USER],
            status=400,
            body={
                "error": "InvalidWindowsUserName",
                "message": Include(
                    "invalid-user",
                    "Invalid UserName. User 'invalid-user' does not exist in Windows.",
                ),
            },
        )

        with pact.serve() as server:
            response = BulkUsersClient(server.url, "valid-token-from-SF").sync_users([INVALID_USER])
            assert response.status_code == 400
            error = response.json()
            assert error["error"] == "InvalidWindowsUserName"
            assert "invalid-user" in error["message"]

    def test_all_scenarios_share_one_file(self, pact):
        """Test that every scenario lands in one pact file, in order."""
        self.test_invalid_token_returns_401(pact)
        self.test_valid_user_returns_subject(pact)
        self.test_invalid_windows_user_returns_400(pact)

        contract = storage.load(pact.pact_file)
        assert pact.pact_file.name == "SF-Consumer-VAIS-Producer.json"
        assert contract.descriptions() == [
            "A POST request to BulkUsers with invalid token",
            "A POST request to sync users via BulkUsers API",
            "A POST request to BulkUsers with invalid Windows user",
        ]


class TestMockServerFailures:
    """A consumer test fails loudly when it does not exercise its contract."""

    def test_unrequested_interaction_fails_test(self, pact):
        """Test that an interaction never requested fails and writes nothing."""
        _declare_bulk_users(
            pact,
            "never sent",
            "Valid Windows users exist in VAIS",
            token="valid-token-from-SF",
            users=[],
            status=200,
        )
        with pytest.raises(UnmatchedInteraction):
            with pact.serve():
                pass
        assert pact.pact_file is None

    def test_unexpected_request_fails_test(self, pact):
        """Test that an unexpected request fails the test."""
        _declare_bulk_users(
            pact,
            "A POST request to BulkUsers with invalid token",
            "Invalid authentication token provided",
            token="invalid-token",
            users=[],
            status=401,
        )
        with pytest.raises(UnexpectedRequest):
            with pact.serve() as server:
                BulkUsersClient(server.url, "invalid-token").sync_users([])
                response = BulkUsersClient(server.url, "unknown").sync_users([])
                assert response.status_code == 500
                assert response.json()["error"] == "UnexpectedRequest"

    def test_failing_test_body_writes_nothing(self, pact):
        """Test that a failing test body leaves no pact file."""
        _declare_bulk_users(
            pact,
            "A POST request to BulkUsers with invalid token",
            "Invalid authentication token provided",
            token="invalid-token",
            users=[],
            status=401,
        )
        with pytest.raises(AssertionError):
            with pact.serve() as server:
                BulkUsersClient(server.url, "invalid-token").sync_users([])
                raise AssertionError("consumer assertion failed")
        assert pact.pact_file is None
