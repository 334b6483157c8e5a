"""Predicate evaluation for conditional coordination.

Grammar: ``<reference> <op> <literal>`` where ``reference`` is
``agent_type.field[.nested]`` (``confidence`` maps to the confidence score) or
``context.key`` for caller-supplied execution context, ``op`` is one of
``> < >= <= == !=`` and ``literal`` is a number, a quoted string,
``true``/``false``/``null``, or any other text up to the end of the predicate.
Operators need no surrounding whitespace, and unquoted literals such as dates,
emails or URLs are compared as text.
"""

from __future__ import annotations

import operator
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Mapping, Sequence

from ..core.logging import get_logger
from ..schemas.coordination import AgentResult, ExecutionContext
from .mapping import MISSING, is_missing, resolve_reference

logger = get_logger(name=__name__)

CONTEXT_REFERENCE = "context"
CONFIDENCE_FIELD = "confidence"

_PREDICATE = re.compile(
    r"""
    \s*(?P<reference>[A-Za-z_][\w-]*(?:\.[\w-]+)+)
    \s*(?P<op>>=|<=|==|!=|>|<)
    \s*(?P<literal>.+?)\s*
    """,
    re.VERBOSE,
)
_QUOTED = re.compile(r"""(?P<quote>["'])(?P<body>(?:(?!(?P=quote))[^\\]|\\.)*)(?P=quote)""")
_NUMBER = re.compile(r"[-+]?(?:\d+\.\d*|\.\d+|\d+)(?:[eE][-+]?\d+)?")
_KEYWORDS: dict[str, Any] = {"true": True, "false": False, "null": None, "none": None}

_ORDERING: dict[str, Callable[[float, float], bool]] = {
    ">": operator.gt,
    "<": operator.lt,
    ">=": operator.ge,
    "<=": operator.le,
}


class MalformedPredicateError(ValueError):
    """Raised when a predicate does not match the condition grammar."""


@dataclass(frozen=True, slots=True)
class Predicate:
    source: str
    path: str
    op: str
    literal: Any


@lru_cache(maxsize=512)
def parse_predicate(text: str) -> Predicate:
    match = _PREDICATE.fullmatch(text)
    if match is None:
        raise MalformedPredicateError(f"Expected '<agent.field> <op> <literal>', got '{text}'")
    raw = match.group("literal")
    if raw[0] in "<>=!":
        raise MalformedPredicateError(f"Unexpected operator in literal of '{text}'")
    source, _, path = match.group("reference").partition(".")
    return Predicate(source=source, path=path, op=match.group("op"), literal=literal_value(raw))


def literal_value(raw: str) -> Any:
    """Interpret the text after the operator: quoted string, number, keyword or raw text."""
    if not raw:
        raise MalformedPredicateError("Empty literal")
    if raw[0] in "\"'":
        quoted = _QUOTED.fullmatch(raw)
        if quoted is None:
            raise MalformedPredicateError(f"Unterminated string literal {raw}")
        return re.sub(r"\\(.)", r"\1", quoted.group("body"))
    if _NUMBER.fullmatch(raw):
        return float(raw)
    return _KEYWORDS.get(raw.lower(), raw)


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _as_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


def compare(value: Any, op: str, literal: Any) -> bool:
    if op in _ORDERING:
        left, right = _as_number(value), _as_number(literal)
        if left is None or right is None:
            return False
        return _ORDERING[op](left, right)
    left_number, right_number = _as_number(value), _as_number(literal)
    if left_number is not None and right_number is not None:
        equal = left_number == right_number
    else:
        equal = _as_text(value) == _as_text(literal)
    return equal if op == "==" else not equal


class ConditionEvaluator:
    """ANDs predicate strings against recorded results and execution context."""

    def evaluate(
        self,
        conditions: Sequence[str],
        agent_results: Mapping[str, AgentResult],
        context: ExecutionContext,
    ) -> bool:
        return all(self.evaluate_one(condition, agent_results, context) for condition in conditions)

    def evaluate_one(
        self,
        condition: str,
        agent_results: Mapping[str, AgentResult],
        context: ExecutionContext,
    ) -> bool:
        try:
            predicate = parse_predicate(condition)
        except MalformedPredicateError as exc:
            logger.warning("condition_malformed", condition=condition, error=str(exc))
            return False

        value = self._resolve(predicate, agent_results, context)
        if is_missing(value):
            return False
        return compare(value, predicate.op, predicate.literal)

    def _resolve(
        self,
        predicate: Predicate,
        agent_results: Mapping[str, AgentResult],
        context: ExecutionContext,
    ) -> Any:
        if predicate.source == CONTEXT_REFERENCE:
            return resolve_reference(
                {**context.values, "workflow_id": context.workflow_id, "workflow_type": context.workflow_type},
                predicate.path,
            )
        result = agent_results.get(predicate.source)
        if result is None:
            return MISSING
        if predicate.path == CONFIDENCE_FIELD:
            return result.confidence_score
        return resolve_reference(result.result_data, predicate.path)


__all__ = [
    "ConditionEvaluator",
    "MalformedPredicateError",
    "Predicate",
    "compare",
    "parse_predicate",
    "literal_value",
]
