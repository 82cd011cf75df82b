"""
Structural matching engine.

Compares an expected value (example + Pact v3 matching rules) with an
actual value and reports every field-level difference. The mock server
uses it to pick the interaction a live request belongs to; the verifier
uses it to judge a provider's live response.

Semantics:
- objects: every expected key must exist and match; extra actual keys are ignored
- arrays: element-wise with equal length, or "each like" under a type rule
  (every actual element matches the first expected element, min/max respected)
- a type rule cascades to the children of the value it is attached to
- headers: names case-insensitive, values exact (comma lists and
  Content-Type parameters normalised) or rule-based

Usage:
    from pactkit.services.matching import matches
    from pactkit.schemas.matchers import Like

    matches({"id": Like("abc")}, {"id": "xyz", "extra": 1})  # True
"""

import json
import re
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pactkit.schemas.interaction import RequestMatcher, ResponseTemplate
from pactkit.schemas.matchers import RuleMap, child_path, compile_matchers
from pactkit.schemas.verification import Mismatch

_PATH_TOKEN = re.compile(
    r"\.(?P<key>[A-Za-z_][A-Za-z0-9_\-]*)"
    r"|\.\*"
    r"|\[(?P<index>\d+)\]"
    r"|\[\*\]"
    r"|\['(?P<quoted>[^']*)'\]"
)

# Marker for an absent body, distinct from a JSON null
_NO_BODY = object()


# =============================================================================
# Rule lookup
# =============================================================================


def parse_rule_path(expression: str) -> List[Any]:
    """
    Parse a rule path such as ``$[*].identityProviders[0].provider`` into tokens.

    Raises:
        ValueError: If the expression is not a valid rule path
    """
    if not expression.startswith("$"):
        raise ValueError(f"Invalid rule path: {expression!r}")
    tokens: List[Any] = ["$"]
    pos = 1
    while pos < len(expression):
        m = _PATH_TOKEN.match(expression, pos)
        if m is None:
            raise ValueError(f"Invalid rule path: {expression!r}")
        if m.group("key") is not None:
            tokens.append(m.group("key"))
        elif m.group("index") is not None:
            tokens.append(int(m.group("index")))
        elif m.group("quoted") is not None:
            tokens.append(m.group("quoted"))
        else:
            tokens.append("*")
        pos = m.end()
    return tokens


def format_path(tokens: List[Any]) -> str:
    path = "$"
    for token in tokens[1:]:
        path = child_path(path, token)
    return path


class RuleIndex:
    """Pre-parsed matching rules of one category (body, or a single header)."""

    def __init__(self, rules: Optional[RuleMap] = None):
        self._entries: List[Tuple[List[Any], Dict[str, Any]]] = [
            (parse_rule_path(path), ruleset) for path, ruleset in (rules or {}).items()
        ]

    def lookup(self, tokens: List[Any]) -> Optional[Dict[str, Any]]:
        """Return the most specific ruleset whose path matches ``tokens`` exactly."""
        best: Optional[Dict[str, Any]] = None
        best_weight = -1
        for pattern, ruleset in self._entries:
            if len(pattern) != len(tokens):
                continue
            weight = 0
            for expected, actual in zip(pattern, tokens):
                if expected == "*":
                    weight += 1
                elif expected == actual:
                    weight += 2
                else:
                    weight = -1
                    break
            if weight > best_weight:
                best, best_weight = ruleset, weight
        return best


# =============================================================================
# Value comparison
# =============================================================================


def json_type(value: Any) -> str:
    """Name the JSON type of a Python value."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def _leaf_equal(expected: Any, actual: Any) -> bool:
    if isinstance(expected, bool) or isinstance(actual, bool):
        return isinstance(expected, bool) and isinstance(actual, bool) and expected == actual
    return json_type(expected) == json_type(actual) and expected == actual


def compare(
    expected: Any,
    actual: Any,
    rules: Optional[RuleMap] = None,
    path: str = "$",
    kind: str = "body",
) -> List[Mismatch]:
    """
    Compare an actual value against an expected example and its rules.

    Args:
        expected: Example value (plain JSON)
        actual: Value received
        rules: Matching rules keyed by rule path
        path: Rule path of ``expected`` (``$`` for a body root)
        kind: Mismatch kind reported for differences

    Returns:
        List of mismatches (empty when the values match)
    """
    out: List[Mismatch] = []
    _compare(expected, actual, parse_rule_path(path), RuleIndex(rules), False, kind, out)
    return out


def _mismatch(kind: str, tokens: List[Any], expected: Any, actual: Any, message: str) -> Mismatch:
    return Mismatch(
        kind=kind,
        path=format_path(tokens),
        expected=expected,
        actual=actual,
        message=message,
    )


def _compare(
    expected: Any,
    actual: Any,
    tokens: List[Any],
    index: RuleIndex,
    type_mode: bool,
    kind: str,
    out: List[Mismatch],
) -> None:
    ruleset = index.lookup(tokens)
    if ruleset is not None:
        _apply_ruleset(ruleset, expected, actual, tokens, index, kind, out)
        return
    _structural(expected, actual, tokens, index, type_mode, kind, out)


def _structural(
    expected: Any,
    actual: Any,
    tokens: List[Any],
    index: RuleIndex,
    type_mode: bool,
    kind: str,
    out: List[Mismatch],
) -> None:
    if isinstance(expected, dict):
        if not isinstance(actual, dict):
            out.append(_mismatch(
                kind, tokens, expected, actual,
                f"Expected an object but received {json_type(actual)}",
            ))
            return
        for key, value in expected.items():
            child = tokens + [key]
            if key not in actual:
                out.append(_mismatch(
                    kind, child, value, None,
                    f"Expected key '{key}' but it was missing",
                ))
                continue
            _compare(value, actual[key], child, index, type_mode, kind, out)
        return

    if isinstance(expected, (list, tuple)):
        if not isinstance(actual, (list, tuple)):
            out.append(_mismatch(
                kind, tokens, expected, actual,
                f"Expected an array but received {json_type(actual)}",
            ))
            return
        if len(actual) != len(expected):
            out.append(_mismatch(
                kind, tokens, expected, actual,
                f"Expected an array of {len(expected)} element(s) but received {len(actual)}",
            ))
        for i, (e, a) in enumerate(zip(expected, actual)):
            _compare(e, a, tokens + [i], index, type_mode, kind, out)
        return

    if type_mode:
        if json_type(expected) != json_type(actual):
            out.append(_mismatch(
                kind, tokens, expected, actual,
                f"Expected a value of type {json_type(expected)} but received {json_type(actual)}",
            ))
        return

    if not _leaf_equal(expected, actual):
        out.append(_mismatch(
            kind, tokens, expected, actual,
            f"Expected {expected!r} but received {actual!r}",
        ))


def _apply_ruleset(
    ruleset: Dict[str, Any],
    expected: Any,
    actual: Any,
    tokens: List[Any],
    index: RuleIndex,
    kind: str,
    out: List[Mismatch],
) -> None:
    matchers = ruleset.get("matchers") or []
    if str(ruleset.get("combine", "AND")).upper() == "OR":
        attempts: List[List[Mismatch]] = []
        for matcher in matchers:
            attempt: List[Mismatch] = []
            _apply_matcher(matcher, expected, actual, tokens, index, kind, attempt)
            if not attempt:
                return
            attempts.append(attempt)
        if attempts:
            out.extend(attempts[0])
        return
    for matcher in matchers:
        _apply_matcher(matcher, expected, actual, tokens, index, kind, out)


def _apply_matcher(
    matcher: Dict[str, Any],
    expected: Any,
    actual: Any,
    tokens: List[Any],
    index: RuleIndex,
    kind: str,
    out: List[Mismatch],
) -> None:
    match = matcher.get("match", "type")

    if match == "type":
        if json_type(expected) != json_type(actual):
            out.append(_mismatch(
                kind, tokens, expected, actual,
                f"Expected a value of type {json_type(expected)} but received {json_type(actual)}",
            ))
            return
        if isinstance(expected, (list, tuple)):
            minimum, maximum = matcher.get("min"), matcher.get("max")
            if minimum is not None and len(actual) < minimum:
                out.append(_mismatch(
                    kind, tokens, expected, actual,
                    f"Expected at least {minimum} element(s) but received {len(actual)}",
                ))
            if maximum is not None and len(actual) > maximum:
                out.append(_mismatch(
                    kind, tokens, expected, actual,
                    f"Expected at most {maximum} element(s) but received {len(actual)}",
                ))
            if expected:
                for i, item in enumerate(actual):
                    _compare(expected[0], item, tokens + [i], index, True, kind, out)
            return
        _structural(expected, actual, tokens, index, True, kind, out)
        return

    if match == "equality":
        _structural(expected, actual, tokens, index, False, kind, out)
        return

    if match == "regex":
        regex = matcher.get("regex", "")
        if (
            actual is None
            or isinstance(actual, (dict, list, bool))
            or re.fullmatch(regex, str(actual)) is None
        ):
            out.append(_mismatch(
                kind, tokens, expected, actual,
                f"Expected {actual!r} to match regex {regex!r}",
            ))
        return

    if match == "include":
        value = matcher.get("value", "")
        if not isinstance(actual, str) or value not in actual:
            out.append(_mismatch(
                kind, tokens, expected, actual,
                f"Expected {actual!r} to include {value!r}",
            ))
        return

    checks = {
        "integer": lambda v: isinstance(v, int) and not isinstance(v, bool),
        "decimal": lambda v: isinstance(v, float),
        "number": lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
        "boolean": lambda v: isinstance(v, bool),
        "null": lambda v: v is None,
    }
    check = checks.get(match)
    if check is None:
        out.append(_mismatch(
            kind, tokens, expected, actual, f"Unsupported matcher {match!r}",
        ))
        return
    if not check(actual):
        out.append(_mismatch(
            kind, tokens, expected, actual,
            f"Expected a value matching '{match}' but received {actual!r}",
        ))


def matches(matcher: Any, actual: Any) -> bool:
    """
    Evaluate a matcher DSL value (or a plain literal) against an actual value.

    Args:
        matcher: Literal JSON value, possibly containing Matcher instances
        actual: Value to check

    Returns:
        True when ``actual`` satisfies ``matcher``
    """
    return not diff(matcher, actual)


def diff(matcher: Any, actual: Any) -> List[Mismatch]:
    """Like matches(), but return the mismatches instead of a boolean."""
    example, rules = compile_matchers(matcher)
    return compare(example, actual, rules)


# =============================================================================
# HTTP parts
# =============================================================================


def _split_content_type(value: str) -> Tuple[str, Dict[str, str]]:
    media_type, _, rest = value.partition(";")
    params: Dict[str, str] = {}
    for part in rest.split(";"):
        name, sep, param_value = part.partition("=")
        if sep:
            params[name.strip().lower()] = param_value.strip().strip('"').lower()
    return media_type.strip().lower(), params


def header_values_equal(name: str, expected: str, actual: str) -> bool:
    """
    Compare two header values.

    Content-Type compares the media type and only the parameters the
    expectation names; other headers compare comma-separated items.
    """
    if name.lower() == "content-type":
        expected_type, expected_params = _split_content_type(expected)
        actual_type, actual_params = _split_content_type(actual)
        if expected_type != actual_type:
            return False
        return all(actual_params.get(k) == v for k, v in expected_params.items())
    split = lambda v: [item.strip() for item in v.split(",")]
    return split(expected) == split(actual)


def compare_headers(
    expected: Mapping[str, str],
    actual: Mapping[str, str],
    rules: Optional[RuleMap] = None,
) -> List[Mismatch]:
    """Compare expected headers against actual ones; extra actual headers are ignored."""
    actual_lower = {k.lower(): v for k, v in actual.items()}
    rules_lower = {k.lower(): v for k, v in (rules or {}).items()}
    out: List[Mismatch] = []
    for name, value in expected.items():
        received = actual_lower.get(name.lower())
        if received is None:
            out.append(Mismatch(
                kind="header", path=name, expected=value, actual=None,
                message=f"Expected header '{name}' but it was missing",
            ))
            continue
        ruleset = rules_lower.get(name.lower())
        if ruleset is not None:
            for m in compare(value, received, {"$": ruleset}, kind="header"):
                out.append(m.model_copy(update={"path": name}))
        elif not header_values_equal(name, value, received):
            out.append(Mismatch(
                kind="header", path=name, expected=value, actual=received,
                message=f"Expected header '{name}' to have value {value!r} but was {received!r}",
            ))
    return out


def compare_query(
    expected: Optional[Mapping[str, List[str]]],
    actual: Mapping[str, List[str]],
    rules: Optional[RuleMap] = None,
) -> List[Mismatch]:
    """Compare expected query parameters; parameters not named in the expectation are ignored."""
    if expected is None:
        return []
    rules = rules or {}
    out: List[Mismatch] = []
    for name, values in expected.items():
        received = actual.get(name)
        if received is None:
            out.append(Mismatch(
                kind="query", path=name, expected=values, actual=None,
                message=f"Expected query parameter '{name}' but it was missing",
            ))
            continue
        ruleset = rules.get(name)
        if ruleset is not None and values:
            for item in received:
                for m in compare(values[0], item, {"$": ruleset}, kind="query"):
                    out.append(m.model_copy(update={"path": name}))
        elif list(received) != list(values):
            out.append(Mismatch(
                kind="query", path=name, expected=values, actual=list(received),
                message=f"Expected query parameter '{name}' to be {values!r} but was {list(received)!r}",
            ))
    return out


def decode_body(raw: bytes) -> Any:
    """
    Decode a raw HTTP body as JSON, falling back to text.

    Returns:
        Parsed JSON, the decoded text when it is not JSON, or the internal
        no-body marker for an empty body
    """
    if not raw:
        return _NO_BODY
    text = raw.decode("utf-8", errors="replace")
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


def compare_body(expected: Any, raw: bytes, rules: Optional[RuleMap] = None) -> List[Mismatch]:
    """Compare a raw body against the expected body; None means "not asserted"."""
    if expected is None:
        return []
    actual = decode_body(raw)
    if actual is _NO_BODY:
        return [Mismatch(
            kind="body", path="$", expected=expected, actual=None,
            message="Expected a body but received none",
        )]
    return compare(expected, actual, rules, kind="body")


def match_request(
    expected: RequestMatcher,
    method: str,
    path: str,
    query: Mapping[str, List[str]],
    headers: Mapping[str, str],
    body: bytes,
) -> List[Mismatch]:
    """
    Compare a live request against an interaction's request matcher.

    Returns:
        List of mismatches (empty when the request satisfies the matcher)
    """
    rules = expected.matching_rules or {}
    out: List[Mismatch] = []

    if method.upper() != expected.method.upper():
        out.append(Mismatch(
            kind="method", path="method", expected=expected.method.upper(), actual=method.upper(),
            message=f"Expected method {expected.method.upper()} but received {method.upper()}",
        ))

    path_rules = rules.get("path")
    if path_rules:
        for m in compare(expected.path, path, {"$": path_rules}, kind="path"):
            out.append(m.model_copy(update={"path": "path"}))
    elif path != expected.path:
        out.append(Mismatch(
            kind="path", path="path", expected=expected.path, actual=path,
            message=f"Expected path {expected.path!r} but received {path!r}",
        ))

    out.extend(compare_query(expected.query, query, rules.get("query")))
    out.extend(compare_headers(expected.headers, headers, rules.get("header")))
    out.extend(compare_body(expected.body, body, rules.get("body")))
    return out


def match_response(
    expected: ResponseTemplate,
    status: int,
    headers: Mapping[str, str],
    body: bytes,
) -> List[Mismatch]:
    """Compare a live response against an interaction's response template."""
    rules = expected.matching_rules or {}
    out: List[Mismatch] = []
    if status != expected.status:
        out.append(Mismatch(
            kind="status", path="status", expected=expected.status, actual=status,
            message=f"Expected status {expected.status} but received {status}",
        ))
    out.extend(compare_headers(expected.headers, headers, rules.get("header")))
    out.extend(compare_body(expected.body, body, rules.get("body")))
    return out
