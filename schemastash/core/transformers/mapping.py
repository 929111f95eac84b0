"""
Declarative JSON mapping transformer.

The source is a JSON document describing the output shape. String leaves
beginning with "$" are JSONPath expressions resolved against the wrapped
input; other scalars are literals. Operator objects combine values:

    {"$path": "$.input.a", "$default": 0}
    {"$concat": ["prefix-", "$.input.name"]}
    {"$sum": ["$.input.a", "$.input.b"]}
    {"$literal": "$not-a-path"}

A path with one match yields the value, several matches yield a list and
no match yields the "$default" (or null). A null operand of "$concat" or
"$sum" fails the transformation rather than being skipped.
"""

import json
from functools import lru_cache
from typing import Any, Mapping

from jsonpath_ng.ext import parse as parse_jsonpath

from .base import Transformer, TransformerLanguage

OPERATORS = ("$path", "$concat", "$sum", "$literal")


@lru_cache(maxsize=1024)
def _compile_path(expression: str):
    return parse_jsonpath(expression)


def _is_path(value: Any) -> bool:
    return isinstance(value, str) and value.startswith("$")


def _resolve_path(expression: str, wrapped: Mapping[str, Any], default: Any = None) -> Any:
    matches = [match.value for match in _compile_path(expression).find(wrapped)]
    if not matches:
        return default
    if len(matches) == 1:
        return matches[0]
    return matches


def _flatten(operator: str, values: list[Any]) -> list[Any]:
    out: list[Any] = []
    for value in values:
        if isinstance(value, list):
            out.extend(value)
        else:
            out.append(value)
    if any(value is None for value in out):
        raise ValueError(f"{operator} operand resolved to null")
    return out


def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return json.dumps(value)


def _evaluate(node: Any, wrapped: Mapping[str, Any]) -> Any:
    if _is_path(node):
        return _resolve_path(node, wrapped)

    if isinstance(node, list):
        return [_evaluate(item, wrapped) for item in node]

    if not isinstance(node, dict):
        return node

    operators = [key for key in node if key in OPERATORS]
    if not operators:
        return {key: _evaluate(value, wrapped) for key, value in node.items()}
    if len(operators) > 1:
        raise ValueError(f"mapping node mixes operators: {operators}")

    operator = operators[0]
    argument = node[operator]
    if operator == "$literal":
        return argument
    if operator == "$path":
        default = _evaluate(node.get("$default"), wrapped)
        return _resolve_path(argument, wrapped, default)
    if not isinstance(argument, list):
        raise ValueError(f"{operator} expects a list, got {type(argument).__name__}")

    values = _flatten(operator, [_evaluate(item, wrapped) for item in argument])
    if operator == "$concat":
        return "".join(_as_text(value) for value in values)
    for value in values:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise TypeError(f"$sum expects numbers, got {value!r}")
    return sum(values)


class MappingTransformer(Transformer):
    """
    Transformer for declarative JSON mappings (JSONPath via jsonpath-ng).

    Example:
        {"output": {"data": {"total": {"$sum": ["$.input.a", "$.input.b"]}}}}
    """

    @property
    def language(self) -> TransformerLanguage:
        return TransformerLanguage.MAPPING

    def compile(self) -> Any:
        spec = json.loads(self.source_code)
        # Parse every path up front so a bad expression fails before evaluation
        _walk_paths(spec)
        return spec

    def apply(self, compiled: Any, wrapped: Mapping[str, Any]) -> Any:
        return _evaluate(compiled, wrapped)


def _walk_paths(node: Any) -> None:
    if _is_path(node):
        _compile_path(node)
    elif isinstance(node, list):
        for item in node:
            _walk_paths(item)
    elif isinstance(node, dict):
        for key, value in node.items():
            if key == "$literal":
                continue
            if key == "$path":
                _compile_path(value)
            else:
                _walk_paths(value)
