"""
HTTP front end of the mock matching server.

A single catch-all route hands every request to MockServer.handle(); there
is no default response, so anything that does not match a registered
interaction gets the mock server's diagnostic 500.
"""

from fastapi import FastAPI, Request, Response

from pactkit.services.mock_server import MockServer, RecordedRequest

ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


def create_mock_app(mock: MockServer) -> FastAPI:
    """
    Build the ASGI app serving ``mock``.

    Args:
        mock: Interaction registry answering the requests

    Returns:
        FastAPI: App with a single catch-all route and no docs routes
    """
    app = FastAPI(
        title=f"pactkit mock: {mock.consumer_name} -> {mock.provider_name}",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    @app.api_route("/{full_path:path}", methods=ALL_METHODS, include_in_schema=False)
    async def dispatch(request: Request, full_path: str) -> Response:
        body = await request.body()
        recorded = RecordedRequest(
            method=request.method,
            path=request.url.path,
            query={k: request.query_params.getlist(k) for k in request.query_params.keys()},
            headers={k: ", ".join(request.headers.getlist(k)) for k in request.headers.keys()},
            body=body,
        )
        reply = mock.handle(recorded)
        return Response(content=reply.body, status_code=reply.status, headers=reply.headers)

    return app
