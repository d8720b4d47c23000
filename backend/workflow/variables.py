"""Variable resolution for node configuration.

Node configs reference run data with ``{{path}}`` placeholders, e.g.
``"Hello {{contact.name}}"`` or ``{{trigger.payload.text.body}}``.
A path that cannot be resolved is not an error: it stays visible as the
original placeholder in text, and becomes ``null`` in JSON.
"""

import json
import math
import re
from collections.abc import Mapping, Sequence
from typing import Any

_PLACEHOLDER = re.compile(r"\{\{([^}]+)\}\}")
_QUOTED_PLACEHOLDER = re.compile(r'"\{\{([^}]+)\}\}"')


def get_value_from_path(context: Any, path: str) -> Any:
    """Resolve a dot-notation path like 'contact.custom_fields.city'.

    Walks mappings key by key (and numeric segments into lists).
    Returns None as soon as a segment is missing or the root is absent.
    """
    if not path or context is None:
        return None

    current = context
    for part in path.split("."):
        if current is None:
            return None
        if isinstance(current, Mapping):
            current = current.get(part)
        elif isinstance(current, Sequence) and not isinstance(current, (str, bytes)):
            if not part.isdigit() or int(part) >= len(current):
                return None
            current = current[int(part)]
        else:
            return None
    return current


def stringify(value: Any) -> str:
    """Render a resolved value the way it should appear inside text."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (Mapping, list)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)


def resolve_variables(text: Any, context: Mapping[str, Any]) -> Any:
    """Substitute every ``{{path}}`` in ``text`` with its resolved value.

    Lists are joined with ", ". Unresolved paths keep their placeholder.
    Non-string input is returned unchanged.
    """
    if not isinstance(text, str):
        return text

    def _replace(match: re.Match) -> str:
        path = match.group(1).strip()
        value = get_value_from_path(context, path)
        if value is None:
            return f"{{{{{path}}}}}"
        if isinstance(value, (list, tuple)):
            return ", ".join(stringify(v) for v in value)
        return stringify(value)

    return _PLACEHOLDER.sub(_replace, text)


def resolve_json_placeholders(json_template: Any, context: Mapping[str, Any]) -> str:
    """Build a JSON document from a template with ``"{{path}}"`` placeholders.

    Quotes around a placeholder are dropped first so the substituted value
    keeps its JSON type: numbers and booleans are inlined raw, missing values
    become ``null``, everything else is JSON-encoded.
    """
    if not isinstance(json_template, str):
        return json.dumps(_finite(json_template), default=str)

    unquoted = _QUOTED_PLACEHOLDER.sub(r"{{\1}}", json_template)

    def _replace(match: re.Match) -> str:
        value = get_value_from_path(context, match.group(1).strip())
        if value is None:
            return "null"
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (int, float)):
            return json.dumps(_finite(value))
        return json.dumps(_finite(value), ensure_ascii=False, default=str)

    return _PLACEHOLDER.sub(_replace, unquoted)


def _finite(value: Any) -> Any:
    """Replace NaN and infinities, which JSON cannot represent, with None."""
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, Mapping):
        return {k: _finite(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_finite(v) for v in value]
    return value
