"""
Consumer-side DSL.

Declare the interactions a consumer expects, exercise the consumer's client
code against a mock server, and record the contract:

    pact = Pact("SF-Consumer", "VAIS-Producer", pact_dir="pacts")
    (
        pact.upon_receiving("A POST request to BulkUsers with invalid token")
        .given("Invalid authentication token provided")
        .with_request("POST", "/BulkUsers")
        .with_header("Authorization", "Bearer invalid-token")
        .with_json_body([])
        .will_respond_with(401)
    )

    with pact.serve() as server:
        response = httpx.post(f"{server.url}/BulkUsers", ...)
        assert response.status_code == 401

Leaving ``serve()`` cleanly verifies the mock server (every interaction
requested exactly once, no unexpected request) and merges the exercised
interactions into ``{pact_dir}/{consumer}-{provider}.json``. If the test
body raises, the server is stopped and nothing is written.
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, TypeVar, Union

from pactkit.core import storage
from pactkit.schemas.interaction import (
    Interaction,
    ProviderState,
    RequestMatcher,
    ResponseTemplate,
)
from pactkit.schemas.matchers import Matcher, compile_flat, compile_matchers
from pactkit.services.mock_server import MockServer

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ResponseBuilder:
    """Response half of an interaction declaration."""

    def __init__(self, parent: "InteractionBuilder", status: int):
        self._parent = parent
        self.status = status
        self.headers: Dict[str, Any] = {}
        self.body: Any = None

    def with_header(self, name: str, value: Any) -> "ResponseBuilder":
        self.headers[name] = value
        return self

    def with_headers(self, headers: Mapping[str, Any]) -> "ResponseBuilder":
        self.headers.update(headers)
        return self

    def with_json_body(self, body: Any) -> "ResponseBuilder":
        self.body = body
        return self

    def build(self) -> Interaction:
        return self._parent.build()


class InteractionBuilder:
    """Request half of an interaction declaration."""

    def __init__(self, description: str):
        self.description = description
        self.states: List[ProviderState] = []
        self.method: Optional[str] = None
        self.path: Any = None
        self.query: Optional[Dict[str, Any]] = None
        self.headers: Dict[str, Any] = {}
        self.body: Any = None
        self.response: Optional[ResponseBuilder] = None

    def given(self, state: str, **params: Any) -> "InteractionBuilder":
        self.states.append(ProviderState(name=state, params=params))
        return self

    def with_request(
        self,
        method: str,
        path: Union[str, Matcher],
        query: Optional[Dict[str, Any]] = None,
    ) -> "InteractionBuilder":
        self.method = method.upper()
        self.path = path
        self.query = query
        return self

    def with_header(self, name: str, value: Any) -> "InteractionBuilder":
        self.headers[name] = value
        return self

    def with_headers(self, headers: Mapping[str, Any]) -> "InteractionBuilder":
        self.headers.update(headers)
        return self

    def with_json_body(self, body: Any) -> "InteractionBuilder":
        self.body = body
        return self

    def will_respond_with(self, status: int) -> ResponseBuilder:
        self.response = ResponseBuilder(self, status)
        return self.response

    def build(self) -> Interaction:
        """
        Compile the declaration into an Interaction.

        Raises:
            ValueError: If the request or the response was never declared
        """
        if self.method is None:
            raise ValueError(f"Interaction '{self.description}' has no request")
        if self.response is None:
            raise ValueError(f"Interaction '{self.description}' has no response")

        request_rules: Dict[str, Any] = {}
        path = self.path
        if isinstance(path, Matcher):
            request_rules["path"] = {"matchers": [path.rule()], "combine": "AND"}
            path = path.example()

        query = None
        if self.query is not None:
            query, query_rules = {}, {}
            for name, value in self.query.items():
                values = list(value) if isinstance(value, (list, tuple)) else [value]
                examples = []
                for item in values:
                    if isinstance(item, Matcher):
                        query_rules[name] = {"matchers": [item.rule()], "combine": "AND"}
                        item = item.example()
                    examples.append(str(item))
                query[name] = examples
            if query_rules:
                request_rules["query"] = query_rules

        headers, header_rules = compile_flat(self.headers)
        if header_rules:
            request_rules["header"] = header_rules

        body = None
        if self.body is not None:
            body, body_rules = compile_matchers(self.body)
            if body_rules:
                request_rules["body"] = body_rules

        response_rules: Dict[str, Any] = {}
        response_headers, response_header_rules = compile_flat(self.response.headers)
        if response_header_rules:
            response_rules["header"] = response_header_rules
        response_body = None
        if self.response.body is not None:
            response_body, response_body_rules = compile_matchers(self.response.body)
            if response_body_rules:
                response_rules["body"] = response_body_rules

        return Interaction(
            description=self.description,
            provider_states=self.states,
            request=RequestMatcher(
                method=self.method,
                path=path,
                query=query,
                headers=headers,
                body=body,
                matching_rules=request_rules,
            ),
            response=ResponseTemplate(
                status=self.response.status,
                headers=response_headers,
                body=response_body,
                matching_rules=response_rules,
            ),
        )


class Pact:
    """
    Contract between one consumer and one provider, built up by tests.

    Args:
        consumer: Consumer name
        provider: Provider name
        pact_dir: Directory the contract file is merged into
        host: Interface the mock server binds
        port: Mock server port; 0 picks a free ephemeral port
    """

    def __init__(
        self,
        consumer: str,
        provider: str,
        pact_dir: Union[str, Path] = "pacts",
        host: str = "127.0.0.1",
        port: int = 0,
    ):
        self.consumer = consumer
        self.provider = provider
        self.pact_dir = Path(pact_dir)
        self.host = host
        self.port = port
        self.pact_file: Optional[Path] = None
        self._pending: List[InteractionBuilder] = []

    def upon_receiving(self, description: str) -> InteractionBuilder:
        """Start declaring a new interaction."""
        builder = InteractionBuilder(description)
        self._pending.append(builder)
        return builder

    @contextmanager
    def serve(self) -> Iterator[MockServer]:
        """
        Run a mock server holding the declared interactions.

        Yields:
            MockServer: Running server (use ``server.url``)

        Raises:
            UnexpectedRequest: A request matched no interaction
            UnmatchedInteraction: A declared interaction was never requested
        """
        pending, self._pending = self._pending, []
        server = MockServer(
            self.consumer,
            self.provider,
            [b.build() for b in pending],
            host=self.host,
            port=self.port,
        )
        server.start()
        try:
            yield server
        finally:
            server.stop()

        server.verify()
        self.pact_file = self._write(server)

    def verify(self, test: Callable[[MockServer], T]) -> T:
        """Run ``test`` against the mock server; verification as in serve()."""
        with self.serve() as server:
            result = test(server)
        return result

    def _write(self, server: MockServer) -> Optional[Path]:
        contract = server.contract()
        if not contract.interactions:
            logger.info("No interactions exercised, contract file left unchanged")
            return None
        return storage.save_merged(contract, self.pact_dir)
