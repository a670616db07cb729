import json
from typing import Any


def pretty(value: Any) -> str:
    """
    Render a value as tab-indented JSON for log output.
    Returns an empty string if the value cannot be serialized.
    """
    try:
        return json.dumps(value, indent="\t")
    except (TypeError, ValueError):
        return ""
