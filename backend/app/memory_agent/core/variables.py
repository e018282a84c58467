"""
Variable Substitution

Replaces {{name}} placeholders in action parameters before replay.

The replacement is textual over the whole JSON-serialized parameter
blob, not per field: a placeholder inside any string value (or key)
is replaced. Unknown placeholders are left as they are.
"""

import json
import re
from typing import Any, Dict, List, Optional

PLACEHOLDER_RE = re.compile(r"\{\{([^{}]+)\}\}")


def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value)


def substitute_variables(parameters: Dict[str, Any], variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Apply {{variable}} substitution to a parameter mapping.

    Args:
        parameters: Stored action parameters
        variables: Values keyed by placeholder name; non-strings are
            converted to their JSON text

    Returns:
        New parameter mapping with placeholders replaced
    """
    serialized = json.dumps(parameters, ensure_ascii=False)

    for name, value in (variables or {}).items():
        # Every placeholder sits inside a JSON string, so both the
        # placeholder and its replacement are matched in escaped form
        placeholder = json.dumps("{{" + str(name) + "}}", ensure_ascii=False)[1:-1]
        escaped = json.dumps(_as_text(value), ensure_ascii=False)[1:-1]
        serialized = serialized.replace(placeholder, escaped)

    return json.loads(serialized)


def find_placeholders(parameters: Dict[str, Any]) -> List[str]:
    """Names of all placeholders in a parameter mapping, in first-seen order"""
    seen: List[str] = []
    for name in PLACEHOLDER_RE.findall(json.dumps(parameters, ensure_ascii=False)):
        if name not in seen:
            seen.append(name)
    return seen
