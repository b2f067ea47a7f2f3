"""Condition language for transitions and conditional form fields.

Grammar: ``<field> <op> <literal>`` with ``op`` one of ``>= <= != == = > <``
and an optionally quoted literal, e.g. ``Monto > 1000`` or ``Ciudad = 'Bogota'``.

Two outcomes are fixed on purpose and kept as separate branches:

* a condition without a recognised operator is *malformed* and never blocks
  a path (``MALFORMED_CONDITION_RESULT``);
* a condition on a field that has no captured value is never satisfied
  (``MISSING_FIELD_RESULT``).
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Iterable, Mapping
from typing import Any, NamedTuple

from bpmflow.models.activity_field import FieldKind

logger = logging.getLogger(__name__)

# Longer operators first so "=" does not match inside "!=", ">=", "<=" or "=="
OPERATORS = (">=", "<=", "!=", "==", "=", ">", "<")

MALFORMED_CONDITION_RESULT = True
MISSING_FIELD_RESULT = False

_LEADING_FLOAT = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")
_STRICT_FLOAT = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")
_SURROUNDING_QUOTE = re.compile(r"^['\"]|['\"]$")
_VISIBILITY = re.compile(r"^(\w+)\s*(==|!=|>=|<=|>|<)\s*['\"]?([^'\"]*)['\"]?$")

_PHRASES = {
    ">": "es mayor que",
    "<": "es menor que",
    ">=": "es mayor o igual a",
    "<=": "es menor o igual a",
    "=": "es igual a",
    "==": "es igual a",
    "!=": "es diferente de",
}


class ParsedCondition(NamedTuple):
    field: str
    operator: str
    value: str


def parse_number(value: Any) -> float | None:
    """Read the leading decimal number of ``value`` ("1500 USD" -> 1500.0).

    Returns None when the text does not start with a number.
    """
    if value is None:
        return None
    match = _LEADING_FLOAT.match(str(value))
    if not match:
        return None
    return float(match.group(1))


def parse_condition(condition: str) -> ParsedCondition | None:
    """Split a condition on its first recognised operator; None when there is none.

    The value ends at a second occurrence of the operator, so `a = b = c` compares `a` with `b`.
    """
    for op in OPERATORS:
        if op in condition:
            left, _, right = condition.partition(op)
            value = _SURROUNDING_QUOTE.sub("", right.partition(op)[0].strip())
            return ParsedCondition(left.strip(), op, value)
    return None


def _compare(actual: str, op: str, target: str) -> bool:
    num_actual = parse_number(actual)
    num_target = parse_number(target)

    if num_actual is not None and num_target is not None:
        if op in ("=", "=="):
            return num_actual == num_target
        if op == "!=":
            return num_actual != num_target
        if op == ">":
            return num_actual > num_target
        if op == "<":
            return num_actual < num_target
        if op == ">=":
            return num_actual >= num_target
        return num_actual <= num_target

    if op in ("=", "=="):
        return actual.lower() == target.lower()
    if op == "!=":
        return actual.lower() != target.lower()
    if op == ">":
        return actual > target
    if op == "<":
        return actual < target
    if op == ">=":
        return actual >= target
    return actual <= target


def evaluate_condition(condition: str | None, data: Mapping[str, Any]) -> bool:
    """Evaluate a transition condition against captured field values."""
    if not condition or not condition.strip():
        return True

    parsed = parse_condition(condition)
    if parsed is None:
        logger.warning("Condition has no valid operator: %r", condition)
        return MALFORMED_CONDITION_RESULT

    actual = data.get(parsed.field)
    if actual is None:
        logger.debug("Field %r not found in data for condition %r", parsed.field, condition)
        return MISSING_FIELD_RESULT

    return _compare(str(actual), parsed.operator, parsed.value)


def _format_currency(amount: float) -> str:
    return f"${amount:,.2f}"


def translate_condition(condition: str | None, fields: Iterable[Any] = ()) -> str:
    """Render a condition as a sentence for tooltips: 'Si "Monto" es mayor que $1,000.00'."""
    if not condition or not condition.strip():
        return "Siempre (sin condición)"

    parsed = parse_condition(condition)
    if parsed is None:
        return condition.strip()

    field = next((f for f in fields if getattr(f, "name", None) == parsed.field), None)
    label = (getattr(field, "label", None) or parsed.field) if field else parsed.field
    kind = FieldKind.parse(getattr(field, "type", None)) if field else FieldKind.TEXT

    number = parse_number(parsed.value)
    if kind == FieldKind.CURRENCY and number is not None:
        rendered = _format_currency(number)
    elif number is not None:
        rendered = parsed.value
    else:
        rendered = f'"{parsed.value}"'

    return f'Si "{label}" {_PHRASES[parsed.operator]} {rendered}'


def _to_number(value: str | None) -> float:
    # Whole-string conversion: blank is 0, anything else non-numeric is NaN
    if value is None:
        return math.nan
    text = value.strip()
    if not text:
        return 0.0
    return float(text) if _STRICT_FLOAT.match(text) else math.nan


def is_field_visible(field: Any, form_data: Mapping[str, Any]) -> bool:
    """Whether a form field should render, given the in-progress (unsaved) form values."""
    condition = (getattr(field, "visibility_condition", None) or "").strip()
    if not condition:
        return True

    match = _VISIBILITY.match(condition)
    if not match:
        return True

    other_name, op, value = match.groups()
    raw = form_data.get(other_name)
    other = None if raw is None else str(raw)

    if op == "==":
        return other is not None and other == value
    if op == "!=":
        return other is None or other != value

    left, right = _to_number(other), _to_number(value)
    if op == ">=":
        return left >= right
    if op == "<=":
        return left <= right
    if op == ">":
        return left > right
    return left < right
