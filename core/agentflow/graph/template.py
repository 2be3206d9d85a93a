"""
Template resolution for ``{{ path }}`` tokens.

A token names a dot-separated path into the execution context, e.g.
``{{input.message}}`` or ``{{classify.output.category}}``. Tokens whose path
does not resolve are left in place verbatim so a broken reference is visible
in the output instead of silently disappearing.
"""

import json
import re
from collections.abc import Mapping
from typing import Any

TEMPLATE_PATTERN = re.compile(r"\{\{([^}]+)\}\}")


class _Missing:
    """Sentinel for a path that does not resolve."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


def get_path(data: Any, path: str) -> Any:
    """
    Walk a dot-separated path through nested dicts and lists.

    Digit segments index into lists. Returns MISSING when any segment
    fails to resolve.
    """
    current = data
    for part in path.strip().split("."):
        part = part.strip()
        if isinstance(current, Mapping):
            if part not in current:
                return MISSING
            current = current[part]
        elif isinstance(current, list | tuple) and part.isdigit():
            idx = int(part)
            if idx >= len(current):
                return MISSING
            current = current[idx]
        else:
            return MISSING
    return current


def stringify(value: Any) -> str:
    """Render a resolved value for substitution into a string."""
    if isinstance(value, str):
        return value
    if value is None or isinstance(value, bool | dict | list | tuple):
        return json.dumps(value, default=str)
    return str(value)


def resolve(template: str, context: Mapping[str, Any]) -> str:
    """
    Replace every ``{{ path }}`` token in a string.

    >>> resolve("Hello {{user.name}}", {"user": {"name": "Ada"}})
    'Hello Ada'
    >>> resolve("{{user.email}}", {"user": {"name": "Ada"}})
    '{{user.email}}'
    """

    def _replace(match: re.Match) -> str:
        value = get_path(context, match.group(1))
        if value is MISSING:
            return match.group(0)
        return stringify(value)

    return TEMPLATE_PATTERN.sub(_replace, template)


def resolve_deep(value: Any, context: Mapping[str, Any]) -> Any:
    """Resolve tokens in every string of a nested structure. Other leaves are untouched."""
    if isinstance(value, str):
        return resolve(value, context)
    if isinstance(value, list | tuple):
        return [resolve_deep(item, context) for item in value]
    if isinstance(value, Mapping):
        return {key: resolve_deep(item, context) for key, item in value.items()}
    return value
