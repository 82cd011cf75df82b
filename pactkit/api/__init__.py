"""
pactkit HTTP endpoints.

- mock: catch-all app served by the consumer-side mock server
- provider_states: router provider apps mount for state setup calls
"""

from .mock import create_mock_app
from .provider_states import PROVIDER_STATES_PATH, create_provider_states_router

__all__ = [
    "create_mock_app",
    "create_provider_states_router",
    "PROVIDER_STATES_PATH",
]
