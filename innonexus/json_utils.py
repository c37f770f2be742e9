"""
Key-case conversion between Python records and Firestore documents.
"""

from __future__ import annotations

import re
from typing import Any

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def camel_to_snake(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def snake_to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def convert_keys(data: Any, direction: str) -> Any:
    """
    Recursively convert dict keys. ``direction`` is "camel_to_snake" or
    "snake_to_camel". Non-dict values (datetimes, enums) pass through.
    """
    if direction == "camel_to_snake":
        convert = camel_to_snake
    elif direction == "snake_to_camel":
        convert = snake_to_camel
    else:
        raise ValueError(f"Unknown direction: {direction}")

    if isinstance(data, dict):
        return {convert(k): convert_keys(v, direction) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_keys(item, direction) for item in data]
    return data
