"""
pactkit

Consumer-driven contract testing for HTTP services: declare interactions
against a mock server, persist them as a pact file, and verify a live
provider against that file.
"""

__version__ = "0.1.0"

from .consumer import Pact
from .core.config import Settings, get_settings
from .schemas.matchers import (
    Boolean,
    Decimal,
    EachLike,
    Equality,
    Include,
    Integer,
    Like,
    Null,
    Number,
    Term,
)
from .services.matching import matches
from .services.mock_server import MockServer
from .services.provider_states import ProviderStateRegistry
from .services.publisher import BrokerPublisher
from .services.verifier import Verifier

__all__ = [
    "__version__",
    "Pact",
    "MockServer",
    "Verifier",
    "BrokerPublisher",
    "ProviderStateRegistry",
    "Settings",
    "get_settings",
    "matches",
    "Like",
    "EachLike",
    "Term",
    "Include",
    "Integer",
    "Decimal",
    "Number",
    "Boolean",
    "Null",
    "Equality",
]
