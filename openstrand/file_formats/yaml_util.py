"""
YAML encoding and decoding between text and generic values (dicts, lists and
scalars). No schema knowledge lives here.

Decoding either returns a complete value or raises `YamlDecodeError` carrying
the parser's message. Encoding is deterministic for a given value, uses block
style, and never wraps long lines.
"""

from io import StringIO
from typing import Any, Callable, List, Optional, Tuple

from ruamel.yaml import YAML
from ruamel.yaml.constructor import SafeConstructor
from ruamel.yaml.error import YAMLError

from openstrand.errors import YamlDecodeError

KeySort = Callable[[str], tuple]

NO_WRAP_WIDTH = 2**31 - 1
"""Emitter line width large enough that no line is ever wrapped."""


class _StringTimestampConstructor(SafeConstructor):
    """
    Safe constructor that keeps timestamps as the strings they were written as,
    so dates round-trip as text rather than becoming datetime objects.
    """


def _construct_timestamp_str(constructor, node):
    return constructor.construct_scalar(node)


_StringTimestampConstructor.add_constructor("tag:yaml.org,2002:timestamp", _construct_timestamp_str)


def new_yaml(key_sort: Optional[KeySort] = None) -> YAML:
    """
    Configure a new YAML instance with our settings.
    """
    yaml = YAML(typ="safe", pure=True)
    yaml.Constructor = _StringTimestampConstructor
    yaml.default_flow_style = False  # Block style dictionaries.
    yaml.width = NO_WRAP_WIDTH
    yaml.allow_unicode = True

    # Keep insertion order unless a key sort is given.
    def represent_dict(dumper, data):
        if key_sort:
            data = {k: data[k] for k in sorted(data.keys(), key=key_sort)}
        return dumper.represent_dict(data)

    yaml.representer.add_representer(dict, represent_dict)
    yaml.representer.sort_base_mapping_type_on_output = False

    # Multi-line strings read best as literal blocks.
    def represent_str(dumper, data):
        if "\n" in data:
            return dumper.represent_scalar("tag:yaml.org,2002:str", data, style="|")
        return dumper.represent_str(data)

    yaml.representer.add_representer(str, represent_str)

    return yaml


def from_yaml_string(yaml_string: str) -> Any:
    """
    Read a YAML string into a Python object. Raises `YamlDecodeError` on malformed input.
    """
    try:
        return new_yaml().load(yaml_string)
    except YAMLError as e:
        raise YamlDecodeError(f"Failed to parse YAML: {e}") from e


def decode_yaml(yaml_string: str) -> Tuple[Any, Optional[str]]:
    """
    Non-throwing decode. Returns `(value, None)` on success or `(None, message)`
    on malformed input.
    """
    try:
        return from_yaml_string(yaml_string), None
    except YamlDecodeError as e:
        return None, str(e)


def to_yaml_string(value: Any, key_sort: Optional[KeySort] = None) -> str:
    """
    Convert a Python object to a YAML string.
    """
    stream = StringIO()
    new_yaml(key_sort).dump(value, stream)
    return stream.getvalue()


def custom_key_sort(priority_keys: List[str]) -> KeySort:
    """
    Key sort that puts the given keys first, in order, then the rest alphabetically.
    """

    def sort_func(key):
        try:
            return (priority_keys.index(key), key)
        except ValueError:
            return (float("inf"), key)

    return sort_func


## Tests


def test_decode_errors_are_single_and_descriptive():
    value, error = decode_yaml("kind: Loom\nmetadata: [unclosed\n")
    assert value is None
    assert error and error.startswith("Failed to parse YAML")

    try:
        from_yaml_string("a: b\n  c: d\n")
        assert False, "expected YamlDecodeError"
    except YamlDecodeError:
        pass


def test_round_trip_and_determinism():
    text = (
        "kind: Loom\n"
        "metadata:\n"
        "  name: Research Notes\n"
        "  created: 2024-05-01\n"
        "tags: [a, b]\n"
        "style:\n"
        "  opacity: 0.5\n"
        "  blur: 3\n"
        "notes: |\n"
        "  line one\n"
        "  line two\n"
    )
    value = from_yaml_string(text)
    assert value["metadata"]["created"] == "2024-05-01"
    encoded = to_yaml_string(value)
    assert encoded == to_yaml_string(value)
    assert from_yaml_string(encoded) == value


def test_no_line_wrapping():
    long_text = " ".join(["word"] * 200)
    encoded = to_yaml_string({"description": long_text})
    assert len(encoded.splitlines()) == 1
    assert from_yaml_string(encoded) == {"description": long_text}


def test_key_order():
    value = {"tags": ["x"], "kind": "Strand", "version": "1.0"}
    assert to_yaml_string(value).splitlines()[0] == "tags:"
    sorted_yaml = to_yaml_string(value, key_sort=custom_key_sort(["version", "kind"]))
    assert sorted_yaml.splitlines()[:2] == ["version: '1.0'", "kind: Strand"]
