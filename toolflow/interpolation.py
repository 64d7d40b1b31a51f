"""Template substitution for step parameters.

Strings may reference the execution context with ``${context.a.b}`` or a
prior step's output with ``${steps.step_id.a.b}``. References that cannot be
resolved are left in place verbatim so one bad reference never prevents the
rest of a parameter tree from being resolved.
"""

from __future__ import annotations

import json
import re
from typing import Any, Mapping, Sequence

TEMPLATE_PATTERN = re.compile(r"\$\{([^{}]*)\}")

_MISSING = object()


def _walk(root: Any, parts: Sequence[str]) -> Any:
    value = root
    for part in parts:
        if isinstance(value, Mapping):
            if part not in value:
                return _MISSING
            value = value[part]
        elif isinstance(value, (list, tuple)):
            try:
                value = value[int(part)]
            except (ValueError, IndexError):
                return _MISSING
        else:
            return _MISSING
    return value


def _lookup(
    expression: str, context: Mapping[str, Any], step_results: Mapping[str, Any]
) -> Any:
    """Return the value a template expression points at, or ``_MISSING``."""
    parts = expression.strip().split(".")
    if len(parts) < 2 or any(not p for p in parts):
        return _MISSING
    root, path = parts[0], parts[1:]
    if root == "context":
        return _walk(context, path)
    if root == "steps":
        return _walk(step_results, path)
    return _MISSING


def _to_text(value: Any) -> str:
    if isinstance(value, (Mapping, list, tuple)):
        return json.dumps(value, default=str)
    return str(value)


def _resolve_string(
    text: str, context: Mapping[str, Any], step_results: Mapping[str, Any]
) -> Any:
    whole = TEMPLATE_PATTERN.fullmatch(text)
    if whole:
        value = _lookup(whole.group(1), context, step_results)
        return text if value is _MISSING else value

    def substitute(match: re.Match) -> str:
        value = _lookup(match.group(1), context, step_results)
        return match.group(0) if value is _MISSING else _to_text(value)

    return TEMPLATE_PATTERN.sub(substitute, text)


def resolve(
    value: Any,
    context: Mapping[str, Any] | None = None,
    step_results: Mapping[str, Any] | None = None,
) -> Any:
    """Resolve every template reference inside ``value``.

    A string consisting of exactly one template is replaced by the referenced
    value itself, keeping its type. Templates embedded in longer strings are
    substituted textually. Mappings and sequences are resolved recursively and
    rebuilt; any other value is returned unchanged.
    """
    context = context or {}
    step_results = step_results or {}
    if isinstance(value, str):
        return _resolve_string(value, context, step_results)
    if isinstance(value, Mapping):
        return {k: resolve(v, context, step_results) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [resolve(v, context, step_results) for v in value]
    return value


def has_templates(value: Any) -> bool:
    """Return ``True`` if any string inside ``value`` contains a template."""
    if isinstance(value, str):
        return TEMPLATE_PATTERN.search(value) is not None
    if isinstance(value, Mapping):
        return any(has_templates(v) for v in value.values())
    if isinstance(value, (list, tuple)):
        return any(has_templates(v) for v in value)
    return False
