"""
The generic value tree that decoding produces and validation consumes, plus
helpers for building field paths like `learning.prerequisites[2]`.
"""

import math
from typing import Any, Dict, List, Tuple, Union

YamlScalar = Union[str, int, float, bool, None]

YamlValue = Union[YamlScalar, List["YamlValue"], Dict[str, "YamlValue"]]
"""A decoded document: mappings, sequences and scalars, nothing else."""


def join_path(parent: str, key: str) -> str:
    return f"{parent}.{key}" if parent else key


def index_path(parent: str, index: int) -> str:
    return f"{parent}[{index}]"


def is_mapping(value: Any) -> bool:
    return isinstance(value, dict)


def is_number(value: Any) -> bool:
    """
    True for ints and floats but not bools (which are ints in Python) or NaN.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not (isinstance(value, float) and math.isnan(value))


def type_name(value: Any) -> str:
    """
    Name of a value's type in document terms, for messages like "Expected string, got number".
    """
    if value is None:
        return "null"
    elif isinstance(value, bool):
        return "boolean"
    elif isinstance(value, float) and math.isnan(value):
        return "NaN"
    elif isinstance(value, (int, float)):
        return "number"
    elif isinstance(value, str):
        return "string"
    elif isinstance(value, list):
        return "array"
    elif isinstance(value, dict):
        return "object"
    else:
        return type(value).__name__


def non_string_keys(value: Any, path: str = "") -> List[Tuple[str, Any]]:
    """
    Paths and keys of every mapping key in a value tree that isn't a string, such as
    the `2024` in `2024: notes`. Documents are only JSON-safe with string keys.
    """
    found: List[Tuple[str, Any]] = []
    if isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                found.append((join_path(path, display_value(key)), key))
            else:
                found.extend(non_string_keys(item, join_path(path, key)))
    elif isinstance(value, list):
        for i, item in enumerate(value):
            found.extend(non_string_keys(item, index_path(path, i)))
    return found


def display_value(value: Any) -> str:
    """
    Render a scalar the way it would be written in a document, for error messages.
    """
    if value is None:
        return "null"
    elif isinstance(value, bool):
        return "true" if value else "false"
    else:
        return str(value)


## Tests


def test_paths():
    assert join_path("", "kind") == "kind"
    assert join_path("metadata", "name") == "metadata.name"
    assert index_path(join_path("learning", "prerequisites"), 2) == "learning.prerequisites[2]"


def test_types():
    assert is_number(3) and is_number(0.5)
    assert not is_number(True)
    assert not is_number("3")
    assert not is_number(float("nan"))
    assert type_name(True) == "boolean"
    assert type_name(3) == "number"
    assert type_name(["a"]) == "array"
    assert type_name({}) == "object"
    assert display_value(False) == "false"
    assert display_value(None) == "null"
    assert type_name(float("nan")) == "NaN"


def test_non_string_keys():
    value = {"kind": "Strand", 2024: "notes", "notes": {1: "a", "ok": [{True: "x"}]}}
    assert non_string_keys(value) == [("2024", 2024), ("notes.1", 1), ("notes.ok[0].true", True)]
    assert non_string_keys({"a": {"b": [1, {"c": None}]}}) == []
