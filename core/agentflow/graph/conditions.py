"""
Branch conditions for scenario-decision nodes.

A condition is ``LEFT OP RIGHT`` with ``OP`` one of ``== != >= <= > <``.
Tokens are substituted first: strings become double-quoted literals, other
values their JSON form, and unresolved paths the bare word ``undefined``.
Ordering operators compare numerically and are false when either side is not
a number. Equality operators compare the unquoted text.

The literal condition ``default`` always matches.
"""

import json
import logging
import re
from collections.abc import Mapping, Sequence
from typing import Any

from agentflow.graph.template import MISSING, TEMPLATE_PATTERN, get_path

logger = logging.getLogger(__name__)

DEFAULT_CONDITION = "default"

_OPERAND = r"\"[^\"]*\"|'[^']*'|[^\"'=!<>]+?"
CONDITION_PATTERN = re.compile(
    rf"^\s*(?P<left>{_OPERAND})\s*(?P<op>==|!=|>=|<=|>|<)\s*(?P<right>{_OPERAND})\s*$"
)


def substitute_tokens(condition: str, context: Mapping[str, Any]) -> str:
    """Replace ``{{path}}`` tokens with condition literals."""

    def _replace(match: re.Match) -> str:
        value = get_path(context, match.group(1))
        if value is MISSING:
            return "undefined"
        if isinstance(value, str):
            return f'"{value}"'
        return json.dumps(value, default=str)

    return TEMPLATE_PATTERN.sub(_replace, condition)


def _unquote(operand: str) -> str:
    operand = operand.strip()
    if len(operand) >= 2 and operand[0] == operand[-1] and operand[0] in "\"'":
        return operand[1:-1]
    return operand


def _to_number(text: str) -> float | None:
    try:
        number = float(text)
    except ValueError:
        return None
    if number != number:  # NaN
        return None
    return number


def compare(left: str, op: str, right: str) -> bool:
    if op == "==":
        return left == right
    if op == "!=":
        return left != right

    left_num = _to_number(left)
    right_num = _to_number(right)
    if left_num is None or right_num is None:
        return False

    if op == ">=":
        return left_num >= right_num
    if op == "<=":
        return left_num <= right_num
    if op == ">":
        return left_num > right_num
    if op == "<":
        return left_num < right_num
    return False


def evaluate_condition(condition: str, context: Mapping[str, Any]) -> bool:
    """
    Evaluate one branch condition against the context.

    >>> evaluate_condition('{{intent}} == "billing"', {"intent": "billing"})
    True
    >>> evaluate_condition("{{score}} >= 10", {"score": 7})
    False
    """
    if condition.strip() == DEFAULT_CONDITION:
        return True

    processed = substitute_tokens(condition, context)
    match = CONDITION_PATTERN.match(processed)
    if match is None:
        logger.debug(f"Condition did not parse as LEFT OP RIGHT: {processed!r}")
        return False

    return compare(_unquote(match["left"]), match["op"], _unquote(match["right"]))


def select_branch(conditions: Sequence[str], context: Mapping[str, Any]) -> int:
    """Index of the first matching condition, or 0 when none match."""
    for index, condition in enumerate(conditions):
        if evaluate_condition(condition, context):
            return index
    return 0
