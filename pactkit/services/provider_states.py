"""
Provider State Dispatcher.

Maps provider-state names to setup handlers. The verifier posts the state
of each interaction before replaying it; the provider puts its backing data
into that condition. Unknown states fall back to a logged no-op, so a
consumer may declare states the provider has not implemented yet without
the dispatch call being rejected.

Usage:
    registry = ProviderStateRegistry()

    @registry.register("Valid Windows users exist in VAIS")
    def seed_users(params):
        ...
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

StateHandler = Callable[[Dict[str, Any]], None]


class ProviderStateRequest(BaseModel):
    """Body of a provider-state setup call."""

    consumer: Optional[str] = None
    state: Optional[str] = None
    params: Optional[Dict[str, Any]] = Field(default=None)


def _noop(params: Dict[str, Any]) -> None:
    return None


class ProviderStateRegistry:
    """
    Registry of provider-state setup handlers.

    Args:
        fallback: Handler used for unrecognized states (default: no-op)
    """

    def __init__(self, fallback: Optional[StateHandler] = None):
        self._handlers: Dict[str, StateHandler] = {}
        self._fallback = fallback or _noop
        self.history: List[ProviderStateRequest] = []

    def register(self, name: str) -> Callable[[StateHandler], StateHandler]:
        """Decorator registering ``handler`` for the state ``name``."""

        def decorator(handler: StateHandler) -> StateHandler:
            self.add(name, handler)
            return handler

        return decorator

    def add(self, name: str, handler: StateHandler) -> None:
        if name in self._handlers:
            raise ValueError(f"Provider state already registered: {name}")
        self._handlers[name] = handler

    @property
    def states(self) -> List[str]:
        return list(self._handlers)

    def dispatch(self, request: ProviderStateRequest) -> bool:
        """
        Run the handler for the requested state.

        Args:
            request: Parsed provider-state call

        Returns:
            True if the state was recognized, False if the fallback ran
            (or no state was given)
        """
        self.history.append(request)
        logger.info(
            f"[ProviderStates] Received request: Consumer={request.consumer}, State={request.state}"
        )

        if not request.state:
            logger.info("[ProviderStates] No state provided")
            return False

        params = request.params or {}
        handler = self._handlers.get(request.state)
        if handler is None:
            logger.warning(f"[ProviderStates] Unknown state: {request.state}")
            self._fallback(params)
            return False

        logger.info(f"[ProviderStates] Setting up: {request.state}")
        handler(params)
        return True
