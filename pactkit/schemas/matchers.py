"""
Matcher DSL for declaring flexible expectations.

Consumer tests mix these objects into request/response bodies, headers,
query values and paths. Before an interaction is stored, the DSL is compiled
into two parts:

- the example value (plain JSON, every matcher replaced by its example), which
  the mock server returns and the verifier sends verbatim
- the matching rules (Pact v3 "matchingRules" layout), which tell the
  comparison engine where type/regex/include semantics replace equality

Example usage:
    from pactkit.schemas.matchers import EachLike, Include, Like

    body = EachLike({"subject": Like("user-subject-id-123")})
    example, rules = compile_matchers(body)
"""

import copy
import re
from typing import Any, Dict, Optional, Tuple

# Matching rules for one category, keyed by path expression
RuleMap = Dict[str, Dict[str, Any]]

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_\-]*$")


class Matcher:
    """Base class for every matcher DSL value."""

    def rule(self) -> Dict[str, Any]:
        """Return the single Pact matcher definition for this value."""
        raise NotImplementedError

    def example(self) -> Any:
        """Return the example value with nested matchers left in place."""
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.example()!r})"


class Like(Matcher):
    """Matches any value of the same JSON type as the example (cascades to children)."""

    def __init__(self, example: Any):
        self.value = example

    def rule(self) -> Dict[str, Any]:
        return {"match": "type"}

    def example(self) -> Any:
        return self.value


class EachLike(Matcher):
    """
    Matches an array whose every element matches the template.

    Args:
        template: Element template (may contain nested matchers)
        minimum: Minimum number of elements; the example repeats the template this often
        maximum: Optional maximum number of elements
    """

    def __init__(self, template: Any, minimum: int = 1, maximum: Optional[int] = None):
        if minimum < 0:
            raise ValueError("minimum must be >= 0")
        if maximum is not None and maximum < max(minimum, 1):
            raise ValueError("maximum must be >= minimum")
        self.template = template
        self.minimum = minimum
        self.maximum = maximum

    def rule(self) -> Dict[str, Any]:
        rule: Dict[str, Any] = {"match": "type", "min": self.minimum}
        if self.maximum is not None:
            rule["max"] = self.maximum
        return rule

    def example(self) -> Any:
        return [self.template] * max(self.minimum, 1)


class Term(Matcher):
    """Matches a string against a regular expression (full match)."""

    def __init__(self, regex: str, example: str):
        if re.fullmatch(regex, example) is None:
            raise ValueError(f"Example {example!r} does not match regex {regex!r}")
        self.regex = regex
        self.value = example

    def rule(self) -> Dict[str, Any]:
        return {"match": "regex", "regex": self.regex}

    def example(self) -> Any:
        return self.value


class Include(Matcher):
    """Matches a string containing the given substring."""

    def __init__(self, value: str, example: Optional[str] = None):
        example = value if example is None else example
        if value not in example:
            raise ValueError(f"Example {example!r} does not include {value!r}")
        self.value = value
        self.example_value = example

    def rule(self) -> Dict[str, Any]:
        return {"match": "include", "value": self.value}

    def example(self) -> Any:
        return self.example_value


class Integer(Matcher):
    """Matches any integer."""

    def __init__(self, example: int = 1):
        self.value = example

    def rule(self) -> Dict[str, Any]:
        return {"match": "integer"}

    def example(self) -> Any:
        return self.value


class Decimal(Matcher):
    """Matches any floating point number."""

    def __init__(self, example: float = 1.0):
        self.value = example

    def rule(self) -> Dict[str, Any]:
        return {"match": "decimal"}

    def example(self) -> Any:
        return self.value


class Number(Matcher):
    """Matches any integer or floating point number."""

    def __init__(self, example: float = 1):
        self.value = example

    def rule(self) -> Dict[str, Any]:
        return {"match": "number"}

    def example(self) -> Any:
        return self.value


class Boolean(Matcher):
    """Matches true or false."""

    def __init__(self, example: bool = True):
        self.value = example

    def rule(self) -> Dict[str, Any]:
        return {"match": "boolean"}

    def example(self) -> Any:
        return self.value


class Null(Matcher):
    """Matches JSON null only."""

    def rule(self) -> Dict[str, Any]:
        return {"match": "null"}

    def example(self) -> Any:
        return None


class Equality(Matcher):
    """Forces exact equality, overriding a type rule inherited from a parent."""

    def __init__(self, example: Any):
        self.value = example

    def rule(self) -> Dict[str, Any]:
        return {"match": "equality"}

    def example(self) -> Any:
        return self.value


# =============================================================================
# Compilation
# =============================================================================


def child_path(path: str, key: Any) -> str:
    """
    Extend a rule path with an object key or array index.

    Example:
        >>> child_path("$", "subject")
        '$.subject'
        >>> child_path("$", 0)
        '$[0]'
        >>> child_path("$", "display name")
        "$['display name']"
    """
    if isinstance(key, int):
        return f"{path}[{key}]"
    if key == "*":
        return f"{path}[*]"
    if _IDENTIFIER.match(key):
        return f"{path}.{key}"
    return f"{path}['{key}']"


def compile_matchers(value: Any, path: str = "$") -> Tuple[Any, RuleMap]:
    """
    Split a DSL value into its example and its matching rules.

    Args:
        value: Literal JSON value, possibly containing Matcher instances
        path: Rule path of ``value`` (``$`` for a body root)

    Returns:
        Tuple of (example value, rules keyed by path)
    """
    rules: RuleMap = {}
    example = _compile(value, path, rules)
    return example, rules


def _compile(value: Any, path: str, rules: RuleMap) -> Any:
    if isinstance(value, EachLike):
        rules[path] = {"matchers": [value.rule()], "combine": "AND"}
        element = _compile(value.template, child_path(path, "*"), rules)
        return [copy.deepcopy(element) for _ in range(max(value.minimum, 1))]
    if isinstance(value, Matcher):
        rules[path] = {"matchers": [value.rule()], "combine": "AND"}
        return _compile(value.example(), path, rules)
    if isinstance(value, dict):
        return {k: _compile(v, child_path(path, k), rules) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_compile(v, child_path(path, i), rules) for i, v in enumerate(value)]
    return value


def reify(value: Any) -> Any:
    """Return ``value`` with every matcher replaced by its example."""
    example, _ = compile_matchers(value)
    return example


def compile_flat(values: Dict[str, Any]) -> Tuple[Dict[str, Any], RuleMap]:
    """
    Compile a flat name -> value mapping (headers, query parameters).

    Rules are keyed by the plain name, as Pact does for the header and
    query categories.
    """
    examples: Dict[str, Any] = {}
    rules: RuleMap = {}
    for name, value in values.items():
        if isinstance(value, Matcher):
            rules[name] = {"matchers": [value.rule()], "combine": "AND"}
            examples[name] = value.example()
        else:
            examples[name] = value
    return examples, rules


__all__ = [
    "Matcher",
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
    "RuleMap",
    "child_path",
    "compile_matchers",
    "compile_flat",
    "reify",
]
