"""
Mock Matching Server for consumer-side tests.

Registered interactions are matched, in declared order, against live
requests sent by the consumer's client code. A matched interaction is
consumed (at most once) and its example response returned; a request that
matches nothing is answered with a diagnostic 500 and recorded.

Usage:
    mock = MockServer("SF-Consumer", "VAIS-Producer", interactions)
    with mock:
        httpx.post(f"{mock.url}/BulkUsers", json=[])
    mock.verify()
    contract = mock.contract()
"""

import json
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from pactkit.core.errors import UnexpectedRequest, UnmatchedInteraction
from pactkit.core.server import BackgroundServer
from pactkit.schemas.interaction import Contract, Interaction
from pactkit.services.matching import match_request

logger = logging.getLogger(__name__)

UNEXPECTED_REQUEST_STATUS = 500


@dataclass
class RecordedRequest:
    """A live request as seen by the mock server."""

    method: str
    path: str
    query: Dict[str, List[str]] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    def summary(self) -> Dict[str, Any]:
        return {
            "method": self.method.upper(),
            "path": self.path,
            "query": self.query,
            "headers": self.headers,
            "body": self.body.decode("utf-8", errors="replace"),
        }


@dataclass
class MockReply:
    """Response the mock server sends back."""

    status: int
    headers: Dict[str, str]
    body: bytes


class MockServer:
    """
    Interaction registry plus the HTTP server exposing it.

    Args:
        consumer_name: Consumer declaring the interactions
        provider_name: Provider the consumer talks to
        interactions: Interactions registered up front, in declared order
        host: Interface the HTTP server binds
        port: Port to bind; 0 picks a free ephemeral port
    """

    def __init__(
        self,
        consumer_name: str,
        provider_name: str,
        interactions: Iterable[Interaction] = (),
        host: str = "127.0.0.1",
        port: int = 0,
    ):
        self.consumer_name = consumer_name
        self.provider_name = provider_name
        self._lock = threading.Lock()
        self._interactions: List[Interaction] = []
        self._consumed: List[bool] = []
        self._unexpected: List[RecordedRequest] = []
        self._server: Optional[BackgroundServer] = None
        self.host = host
        self.port = port
        for interaction in interactions:
            self.register(interaction)

    # =========================================================================
    # Registry
    # =========================================================================

    def register(self, interaction: Interaction) -> None:
        """
        Register an interaction after those already registered.

        Raises:
            ValueError: If an interaction with the same description is registered
        """
        with self._lock:
            if any(i.description == interaction.description for i in self._interactions):
                raise ValueError(f"Duplicate interaction description: {interaction.description}")
            self._interactions.append(interaction)
            self._consumed.append(False)

    @property
    def interactions(self) -> List[Interaction]:
        with self._lock:
            return list(self._interactions)

    def consumed(self) -> List[Interaction]:
        """Interactions that received their request, in declared order."""
        with self._lock:
            return [i for i, used in zip(self._interactions, self._consumed) if used]

    def unconsumed(self) -> List[Interaction]:
        with self._lock:
            return [i for i, used in zip(self._interactions, self._consumed) if not used]

    @property
    def unexpected_requests(self) -> List[RecordedRequest]:
        with self._lock:
            return list(self._unexpected)

    def reset(self) -> None:
        """Forget every registration, consumption and unexpected request."""
        with self._lock:
            self._interactions.clear()
            self._consumed.clear()
            self._unexpected.clear()

    # =========================================================================
    # Request handling
    # =========================================================================

    def handle(self, request: RecordedRequest) -> MockReply:
        """
        Match a live request and build the reply.

        The first unconsumed interaction whose request matcher matches is
        consumed atomically; two concurrent identical requests can never
        claim the same interaction.
        """
        candidates: List[Dict[str, Any]] = []
        with self._lock:
            for idx, interaction in enumerate(self._interactions):
                if self._consumed[idx]:
                    continue
                mismatches = match_request(
                    interaction.request,
                    method=request.method,
                    path=request.path,
                    query=request.query,
                    headers=request.headers,
                    body=request.body,
                )
                if not mismatches:
                    self._consumed[idx] = True
                    break
                candidates.append({
                    "description": interaction.description,
                    "mismatches": [m.describe() for m in mismatches],
                })
            else:
                self._unexpected.append(request)
                interaction = None

        if interaction is None:
            logger.warning(
                f"Unexpected request {request.method.upper()} {request.path}: "
                f"no registered interaction matched"
            )
            payload = {
                "error": "UnexpectedRequest",
                "message": (
                    f"No interaction found for {request.method.upper()} {request.path}"
                ),
                "request": request.summary(),
                "candidates": candidates,
            }
            return MockReply(
                status=UNEXPECTED_REQUEST_STATUS,
                headers={"Content-Type": "application/json"},
                body=json.dumps(payload).encode("utf-8"),
            )

        logger.info(f"Matched interaction: {interaction.description}")
        return _render_response(interaction)

    # =========================================================================
    # Verification
    # =========================================================================

    def verify(self) -> None:
        """
        Check the outcome of a test body.

        Raises:
            UnexpectedRequest: If any request matched no interaction
            UnmatchedInteraction: If any registered interaction was never requested
        """
        unexpected = self.unexpected_requests
        if unexpected:
            raise UnexpectedRequest([r.summary() for r in unexpected])
        missing = self.unconsumed()
        if missing:
            raise UnmatchedInteraction([i.description for i in missing])

    def contract(self) -> Contract:
        """Contract holding only the interactions that were actually exercised."""
        return Contract(
            consumer_name=self.consumer_name,
            provider_name=self.provider_name,
            interactions=self.consumed(),
        )

    # =========================================================================
    # HTTP server lifecycle
    # =========================================================================

    @property
    def url(self) -> str:
        if self._server is None:
            raise RuntimeError("Mock server is not running")
        return self._server.url

    def start(self) -> "MockServer":
        from pactkit.api.mock import create_mock_app

        self._server = BackgroundServer(create_mock_app(self), host=self.host, port=self.port)
        self._server.start()
        logger.info(
            f"Mock server for {self.consumer_name} -> {self.provider_name} "
            f"listening on {self._server.url}"
        )
        return self

    def stop(self) -> None:
        if self._server is not None:
            self._server.stop()
            self._server = None

    def __enter__(self) -> "MockServer":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()


def _render_response(interaction: Interaction) -> MockReply:
    template = interaction.response
    headers = dict(template.headers)
    body = template.body
    if body is None:
        content = b""
    elif isinstance(body, str) and not _is_json_content(headers):
        content = body.encode("utf-8")
    else:
        content = json.dumps(body).encode("utf-8")
        if not any(k.lower() == "content-type" for k in headers):
            headers["Content-Type"] = "application/json"
    return MockReply(status=template.status, headers=headers, body=content)


def _is_json_content(headers: Dict[str, str]) -> bool:
    for name, value in headers.items():
        if name.lower() == "content-type":
            return "json" in value.lower()
    return False
