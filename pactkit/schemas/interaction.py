"""
Pydantic schemas for contracts and their interactions.

An Interaction pairs the request a consumer sends with the response it
expects back. Request and response carry plain example values plus the
matching rules compiled from the matcher DSL (see pactkit.schemas.matchers),
so the same object drives both the mock server and the verifier.

Example usage:
    from pactkit.schemas.interaction import Contract

    contract = Contract(consumer_name="SF-Consumer", provider_name="VAIS-Producer")
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Request / Response
# =============================================================================


class ProviderState(BaseModel):
    """A named precondition the provider must establish before replay."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    params: Dict[str, Any] = Field(default_factory=dict)


class RequestMatcher(BaseModel):
    """Expected request: literal examples plus matching rules.

    ``matching_rules`` follows the Pact v3 layout: categories ``path``,
    ``query``, ``header`` and ``body``. A ``body`` of None means the body
    is not asserted, so a literal JSON null body cannot be expected.
    """

    model_config = ConfigDict(frozen=True)

    method: str
    path: str
    query: Optional[Dict[str, List[str]]] = None
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Optional[Any] = None
    matching_rules: Dict[str, Any] = Field(default_factory=dict)


class ResponseTemplate(BaseModel):
    """Expected response: returned by the mock server, asserted by the verifier."""

    model_config = ConfigDict(frozen=True)

    status: int = Field(..., ge=100, le=599)
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Optional[Any] = None
    matching_rules: Dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# Interaction / Contract
# =============================================================================


class Interaction(BaseModel):
    """One contract unit, identified by its description."""

    model_config = ConfigDict(frozen=True)

    description: str = Field(..., min_length=1)
    provider_states: List[ProviderState] = Field(default_factory=list)
    request: RequestMatcher
    response: ResponseTemplate

    @property
    def provider_state(self) -> Optional[str]:
        """Name of the first provider state, or None when the interaction has none."""
        return self.provider_states[0].name if self.provider_states else None


class Contract(BaseModel):
    """The ordered interactions agreed between one consumer and one provider."""

    model_config = ConfigDict(frozen=True)

    consumer_name: str = Field(..., min_length=1)
    provider_name: str = Field(..., min_length=1)
    interactions: List[Interaction] = Field(default_factory=list)
    specification_version: str = "3.0.0"

    @property
    def file_name(self) -> str:
        """Deterministic file name for the (consumer, provider) pair."""
        return contract_file_name(self.consumer_name, self.provider_name)

    def descriptions(self) -> List[str]:
        return [i.description for i in self.interactions]

    def duplicate_descriptions(self) -> List[str]:
        """Descriptions that occur more than once, in first-seen order."""
        seen: set[str] = set()
        duplicates: List[str] = []
        for description in self.descriptions():
            if description in seen and description not in duplicates:
                duplicates.append(description)
            seen.add(description)
        return duplicates

    def get_interaction(self, description: str) -> Optional[Interaction]:
        for interaction in self.interactions:
            if interaction.description == description:
                return interaction
        return None


def contract_file_name(consumer_name: str, provider_name: str) -> str:
    """
    Build the contract file name for a consumer/provider pair.

    Example:
        >>> contract_file_name("SF-Consumer", "VAIS-Producer")
        'SF-Consumer-VAIS-Producer.json'
    """
    return f"{consumer_name}-{provider_name}.json"
