# Core modules for pactkit
from .errors import (
    ContractLoadError,
    MalformedContract,
    MockServerError,
    PactKitError,
    UnexpectedRequest,
    UnmatchedInteraction,
    VerificationFailed,
)
from .config import Settings, default_provider_version, get_settings
from .locator import ContractLocator
from .server import BackgroundServer
from .storage import (
    CONTRACT_SCHEMA,
    contract_from_document,
    contract_path,
    contract_to_document,
    load,
    merge,
    save,
    save_merged,
)

__all__ = [
    # Errors
    "PactKitError",
    "ContractLoadError",
    "MalformedContract",
    "MockServerError",
    "UnmatchedInteraction",
    "UnexpectedRequest",
    "VerificationFailed",
    # Config
    "Settings",
    "get_settings",
    "default_provider_version",
    # Locator
    "ContractLocator",
    # Server
    "BackgroundServer",
    # Storage
    "CONTRACT_SCHEMA",
    "contract_from_document",
    "contract_path",
    "contract_to_document",
    "load",
    "merge",
    "save",
    "save_merged",
]
