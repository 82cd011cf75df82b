"""
Contract Store

Serialization boundary between Contract objects and pact files:
- Pact specification v3 compatible JSON documents
- JSON Schema validation of every loaded document
- Atomic writes (temp file in the target directory, fsync, rename)
- Path traversal prevention for contract file names

The store performs no matching logic.
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from urllib.parse import parse_qs

import jsonschema
from pydantic import ValidationError

from pactkit import __version__
from pactkit.core.errors import ContractLoadError, MalformedContract
from pactkit.schemas.interaction import (
    Contract,
    Interaction,
    ProviderState,
    RequestMatcher,
    ResponseTemplate,
)

logger = logging.getLogger(__name__)

PACT_SPECIFICATION_VERSION = "3.0.0"

# Serializes read-merge-write cycles of consumer tests within one process
_merge_lock = threading.Lock()

_PARTICIPANT = {
    "type": "object",
    "required": ["name"],
    "properties": {"name": {"type": "string", "minLength": 1}},
}

_HEADERS = {"type": "object", "additionalProperties": {"type": "string"}}

CONTRACT_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["interactions"],
    "allOf": [
        {"anyOf": [{"required": ["consumer"]}, {"required": ["consumerName"]}]},
        {"anyOf": [{"required": ["provider"]}, {"required": ["providerName"]}]},
    ],
    "properties": {
        "consumer": _PARTICIPANT,
        "provider": _PARTICIPANT,
        "consumerName": {"type": "string", "minLength": 1},
        "providerName": {"type": "string", "minLength": 1},
        "interactions": {
            "type": "array",
            "items": {"$ref": "#/definitions/interaction"},
        },
        "metadata": {"type": "object"},
    },
    "definitions": {
        "interaction": {
            "type": "object",
            "required": ["description", "request", "response"],
            "properties": {
                "description": {"type": "string", "minLength": 1},
                "providerState": {"type": ["string", "null"]},
                "providerStates": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "required": ["name"],
                        "properties": {
                            "name": {"type": "string", "minLength": 1},
                            "params": {"type": "object"},
                        },
                    },
                },
                "request": {
                    "type": "object",
                    "required": ["method", "path"],
                    "properties": {
                        "method": {"type": "string", "minLength": 1},
                        "path": {"type": "string"},
                        "query": {
                            "type": ["object", "string"],
                            "additionalProperties": {
                                "type": ["string", "array"],
                                "items": {"type": "string"},
                            },
                        },
                        "headers": _HEADERS,
                        "matchingRules": {"type": "object"},
                    },
                },
                "response": {
                    "type": "object",
                    "required": ["status"],
                    "properties": {
                        "status": {"type": "integer", "minimum": 100, "maximum": 599},
                        "headers": _HEADERS,
                        "matchingRules": {"type": "object"},
                    },
                },
            },
        },
    },
}


# =============================================================================
# Document conversion
# =============================================================================


def _part_to_document(part: Union[RequestMatcher, ResponseTemplate]) -> Dict[str, Any]:
    document: Dict[str, Any] = {}
    if isinstance(part, RequestMatcher):
        document["method"] = part.method.upper()
        document["path"] = part.path
        if part.query is not None:
            document["query"] = part.query
    else:
        document["status"] = part.status
    if part.headers:
        document["headers"] = dict(part.headers)
    if part.body is not None:
        document["body"] = part.body
    if part.matching_rules:
        document["matchingRules"] = part.matching_rules
    return document


def contract_to_document(contract: Contract) -> Dict[str, Any]:
    """
    Convert a Contract into a Pact v3 JSON document.

    Args:
        contract: Contract to serialize

    Returns:
        Plain dict ready for json.dump
    """
    interactions: List[Dict[str, Any]] = []
    for interaction in contract.interactions:
        item: Dict[str, Any] = {"description": interaction.description}
        if interaction.provider_states:
            item["providerStates"] = [
                {"name": s.name, "params": dict(s.params)} if s.params else {"name": s.name}
                for s in interaction.provider_states
            ]
        item["request"] = _part_to_document(interaction.request)
        item["response"] = _part_to_document(interaction.response)
        interactions.append(item)

    return {
        "consumer": {"name": contract.consumer_name},
        "provider": {"name": contract.provider_name},
        "interactions": interactions,
        "metadata": {
            "pactSpecification": {"version": contract.specification_version},
            "pactkit": {"version": __version__},
        },
    }


def _normalize_query(query: Any) -> Optional[Dict[str, List[str]]]:
    if query is None:
        return None
    if isinstance(query, str):
        return {k: list(v) for k, v in parse_qs(query, keep_blank_values=True).items()}
    return {k: [v] if isinstance(v, str) else list(v) for k, v in query.items()}


def contract_from_document(data: Any, path: Optional[str] = None) -> Contract:
    """
    Build a Contract from a parsed JSON document.

    Accepts Pact v3 documents (``consumer.name``), flat documents
    (``consumerName``) and v2 style ``providerState`` strings.

    Raises:
        MalformedContract: If the document fails schema or model validation,
            or repeats an interaction description
    """
    try:
        jsonschema.validate(data, CONTRACT_SCHEMA)
    except jsonschema.ValidationError as e:
        location = ".".join(str(p) for p in e.absolute_path) or None
        raise MalformedContract(f"Schema: {e.message}", path=path, location=location) from e

    consumer = data["consumer"]["name"] if "consumer" in data else data["consumerName"]
    provider = data["provider"]["name"] if "provider" in data else data["providerName"]
    version = (
        data.get("metadata", {}).get("pactSpecification", {}).get("version")
        or PACT_SPECIFICATION_VERSION
    )

    try:
        interactions = []
        for item in data["interactions"]:
            states = [ProviderState(**s) for s in item.get("providerStates", [])]
            if not states and item.get("providerState"):
                states = [ProviderState(name=item["providerState"])]
            request = item["request"]
            response = item["response"]
            interactions.append(Interaction(
                description=item["description"],
                provider_states=states,
                request=RequestMatcher(
                    method=request["method"].upper(),
                    path=request["path"],
                    query=_normalize_query(request.get("query")),
                    headers=request.get("headers", {}),
                    body=request.get("body"),
                    matching_rules=request.get("matchingRules", {}),
                ),
                response=ResponseTemplate(
                    status=response["status"],
                    headers=response.get("headers", {}),
                    body=response.get("body"),
                    matching_rules=response.get("matchingRules", {}),
                ),
            ))
        contract = Contract(
            consumer_name=consumer,
            provider_name=provider,
            interactions=interactions,
            specification_version=version,
        )
    except ValidationError as e:
        err = e.errors()[0]
        location = ".".join(str(x) for x in err["loc"])
        raise MalformedContract(f"Pydantic: {err['msg']}", path=path, location=location) from e

    duplicates = contract.duplicate_descriptions()
    if duplicates:
        raise MalformedContract(
            f"Duplicate interaction descriptions: {', '.join(duplicates)}", path=path
        )
    return contract


# =============================================================================
# File operations
# =============================================================================


def contract_path(contract: Contract, directory: Union[str, Path]) -> Path:
    """
    Resolve the file a contract is stored in, refusing to escape ``directory``.

    Raises:
        ValueError: If a participant name would place the file outside ``directory``
    """
    root = Path(directory).resolve()
    target = (root / contract.file_name).resolve()
    if target.parent != root:
        raise ValueError("Path traversal detected: contract file escapes pact directory")
    return target


def save(contract: Contract, directory: Union[str, Path]) -> Path:
    """
    Write a contract to ``directory`` atomically.

    The document is written to a temporary file in the same directory,
    flushed to disk and renamed over the target, so an existing contract
    is either fully replaced or left untouched.

    Args:
        contract: Contract to persist
        directory: Directory receiving ``{consumer}-{provider}.json``

    Returns:
        Path: Absolute path of the written file

    Raises:
        MalformedContract: If interaction descriptions are not unique
    """
    duplicates = contract.duplicate_descriptions()
    if duplicates:
        raise MalformedContract(f"Duplicate interaction descriptions: {', '.join(duplicates)}")

    target = contract_path(contract, directory)
    target.parent.mkdir(parents=True, exist_ok=True)
    document = contract_to_document(contract)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(document, fh, indent=2, ensure_ascii=False)
            fh.write("\n")
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_name, target)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise

    logger.info(
        f"Wrote contract {contract.consumer_name} -> {contract.provider_name} "
        f"({len(contract.interactions)} interactions) to {target}"
    )
    return target


def load(path: Union[str, Path]) -> Contract:
    """
    Read a contract file.

    Args:
        path: Path of the pact file

    Returns:
        Contract: Parsed contract

    Raises:
        ContractLoadError: If the file does not exist or cannot be read
        MalformedContract: If the content is not valid JSON or not a valid contract
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise MalformedContract(f"Invalid UTF-8: {e}", path=str(path)) from e
    except FileNotFoundError as e:
        raise ContractLoadError(f"Contract file not found: {path}", path=str(path)) from e
    except OSError as e:
        raise ContractLoadError(f"Cannot read contract file {path}: {e}", path=str(path)) from e

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedContract(f"JSON parse error: {e}", path=str(path)) from e

    return contract_from_document(data, path=str(path))


def merge(existing: Contract, incoming: Contract) -> Contract:
    """
    Merge the interactions of ``incoming`` into ``existing``.

    Interactions with a description already present are replaced in place;
    new descriptions are appended in their declared order.

    Raises:
        ValueError: If the two contracts belong to different participants
    """
    if (existing.consumer_name, existing.provider_name) != (
        incoming.consumer_name,
        incoming.provider_name,
    ):
        raise ValueError("Cannot merge contracts between different participants")

    replacements = {i.description: i for i in incoming.interactions}
    merged = [replacements.pop(i.description, i) for i in existing.interactions]
    merged.extend(i for i in incoming.interactions if i.description in replacements)
    return existing.model_copy(update={"interactions": merged})


def save_merged(contract: Contract, directory: Union[str, Path]) -> Path:
    """
    Merge ``contract`` into the file already present in ``directory`` and save.

    Several consumer tests can contribute interactions to the same contract
    file; this read-merge-write cycle is serialized within the process.
    """
    with _merge_lock:
        target = contract_path(contract, directory)
        if target.exists():
            contract = merge(load(target), contract)
        return save(contract, directory)
