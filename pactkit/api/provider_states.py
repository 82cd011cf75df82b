"""
Provider-state endpoint for provider applications.

Mount the router on the app under verification:

    app.include_router(create_provider_states_router(registry))

The endpoint answers ``200 {}`` for recognized, unrecognized and
unreadable state requests alike.
"""

import json
import logging

from fastapi import APIRouter, Request, status
from pydantic import ValidationError

from pactkit.services.provider_states import ProviderStateRegistry, ProviderStateRequest

logger = logging.getLogger(__name__)

PROVIDER_STATES_PATH = "/provider-states"


def parse_state_request(raw: bytes) -> ProviderStateRequest:
    """
    Parse a provider-state call body.

    An empty, non-JSON or ill-typed body yields an empty request, which the
    registry treats as "no state".
    """
    if not raw:
        return ProviderStateRequest()
    try:
        return ProviderStateRequest.model_validate(json.loads(raw))
    except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as e:
        logger.warning(f"[ProviderStates] Unreadable state request ignored: {e}")
        return ProviderStateRequest()


def create_provider_states_router(
    registry: ProviderStateRegistry,
    path: str = PROVIDER_STATES_PATH,
) -> APIRouter:
    """
    Build the router exposing ``POST {path}``.

    Args:
        registry: Handlers the endpoint dispatches to
        path: Route path (default ``/provider-states``)

    Returns:
        APIRouter: Router to include in the provider app
    """
    router = APIRouter(tags=["provider-states"])

    @router.post(path, status_code=status.HTTP_200_OK)
    async def set_provider_state(request: Request) -> dict:
        """Put the provider into the requested state."""
        registry.dispatch(parse_state_request(await request.body()))
        return {}

    return router
