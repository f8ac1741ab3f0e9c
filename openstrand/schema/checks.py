"""
Field checks used by the schema validator. Each check records any problem on a
`ValidationContext` and returns whether the value passed, so callers can keep
going and report every problem in one pass.

Checks never coerce: `"3"` is not a number and `true` is not a number either.
"""

import re
from enum import Enum
from typing import Any, Dict, List, Optional, Type
from urllib.parse import urlsplit

from openstrand.model.schema_model import ValidationIssue
from openstrand.model.values import (
    display_value,
    index_path,
    is_mapping,
    is_number,
    join_path,
    type_name,
)
from openstrand.schema.icons import IconRegistry

HEX_COLOR_RE = re.compile(r"^#([0-9a-fA-F]{3}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")
RGB_COLOR_RE = re.compile(r"^rgba?\(\s*\d+\s*,\s*\d+\s*,\s*\d+\s*(,\s*[\d.]+\s*)?\)$")
HSL_COLOR_RE = re.compile(r"^hsla?\(\s*\d+\s*,\s*\d+%\s*,\s*\d+%\s*(,\s*[\d.]+\s*)?\)$")

NAMED_COLORS = frozenset(
    [
        "transparent",
        "currentcolor",
        "inherit",
        "black",
        "white",
        "red",
        "green",
        "blue",
        "yellow",
        "orange",
        "purple",
        "gray",
        "grey",
        "pink",
        "brown",
        "cyan",
        "magenta",
    ]
)
"""Named colors, lowercased. Matching is case-insensitive."""

RELATIVE_URL_PREFIXES = ("/", "./", "../")


def is_valid_css_color(value: str) -> bool:
    return bool(
        HEX_COLOR_RE.fullmatch(value)
        or RGB_COLOR_RE.fullmatch(value)
        or HSL_COLOR_RE.fullmatch(value)
        or value.lower() in NAMED_COLORS
    )


def is_valid_url(value: str) -> bool:
    """
    Absolute URLs with a scheme (`https://...`, `data:...`) or paths starting
    with `/`, `./` or `../`.
    """
    if value.startswith(RELATIVE_URL_PREFIXES):
        return True
    if any(c.isspace() for c in value):
        return False
    try:
        parts = urlsplit(value)
    except ValueError:
        return False
    return bool(parts.scheme) and bool(parts.netloc or parts.path)


class ValidationContext:
    """
    Accumulates errors and warnings while validating one document.
    """

    def __init__(self, icons: IconRegistry):
        self.icons = icons
        self.errors: List[ValidationIssue] = []
        self.warnings: List[ValidationIssue] = []

    def error(self, path: str, message: str, value: Any = None) -> bool:
        self.errors.append(ValidationIssue(path, message, value))
        return False

    def warning(self, path: str, message: str, value: Any = None) -> None:
        self.warnings.append(ValidationIssue(path, message, value))

    def require(self, data: Dict[str, Any], key: str, path: str) -> bool:
        """
        Check a required field is present. A null value counts as missing.
        """
        if data.get(key) is None:
            return self.error(join_path(path, key), f'Required field "{key}" is missing')
        return True

    def group(self, data: Dict[str, Any], key: str, path: str = "") -> Optional[Dict[str, Any]]:
        """
        Return a nested group if it is present and a mapping. A present group that
        isn't a mapping is an error.
        """
        value = data.get(key)
        if value is None:
            return None
        if not is_mapping(value):
            self.error(join_path(path, key), f"{key} must be an object", value)
            return None
        return value

    def string(
        self,
        value: Any,
        path: str,
        min_length: Optional[int] = None,
        max_length: Optional[int] = None,
    ) -> bool:
        if not isinstance(value, str):
            return self.error(path, f"Expected string, got {type_name(value)}", value)
        if min_length is not None and len(value) < min_length:
            return self.error(path, f"String must be at least {min_length} characters", value)
        if max_length is not None and len(value) > max_length:
            return self.error(path, f"String must be at most {max_length} characters", value)
        return True

    def number(
        self,
        value: Any,
        path: str,
        min: Optional[float] = None,
        max: Optional[float] = None,
    ) -> bool:
        if not is_number(value):
            return self.error(path, f"Expected number, got {type_name(value)}", value)
        if min is not None and value < min:
            return self.error(path, f"Number must be at least {min}", value)
        if max is not None and value > max:
            return self.error(path, f"Number must be at most {max}", value)
        return True

    def boolean(self, value: Any, path: str) -> bool:
        if not isinstance(value, bool):
            return self.error(path, f"Expected boolean, got {type_name(value)}", value)
        return True

    def enum(self, value: Any, path: str, enum_cls: Type[Enum], field_name: str) -> bool:
        allowed = [member.value for member in enum_cls]
        if not isinstance(value, str) or value not in allowed:
            message = f'Invalid {field_name}: "{display_value(value)}".'
            return self.error(path, f"{message} Allowed values: {', '.join(allowed)}", value)
        return True

    def string_list(self, value: Any, path: str) -> bool:
        if not isinstance(value, list):
            return self.error(path, f"Expected array, got {type_name(value)}", value)
        results = [self.string(item, index_path(path, i)) for i, item in enumerate(value)]
        return all(results)

    def color(self, value: Any, path: str) -> bool:
        if not isinstance(value, str):
            return self.error(path, f"Expected color string, got {type_name(value)}", value)
        if not is_valid_css_color(value):
            return self.error(path, f'"{value}" is not a valid CSS color value', value)
        return True

    def url(self, value: Any, path: str) -> bool:
        if not isinstance(value, str):
            return self.error(path, f"Expected URL string, got {type_name(value)}", value)
        if not is_valid_url(value):
            return self.error(path, f'"{value}" is not a valid URL', value)
        return True

    def icon(self, value: Any, path: str) -> bool:
        """
        Icon ids must be strings. An id not in the registry is only a warning.
        """
        if not isinstance(value, str):
            return self.error(path, f"Expected icon ID string, got {type_name(value)}", value)
        if not self.icons.has_icon(value):
            self.warning(
                path, f'Icon "{value}" not found in preset registry. Will use default.', value
            )
        return True


## Tests


def test_css_colors():
    for color in [
        "#fff",
        "#A0B1C2",
        "#a0b1c2ff",
        "rgb(1, 2, 3)",
        "rgba(1,2,3,0.5)",
        "hsl(120, 50%, 50%)",
        "hsla(120, 50%, 50%, 0.3)",
        "currentColor",
        "Transparent",
        "grey",
    ]:
        assert is_valid_css_color(color), color

    for color in ["#ffff", "fff", "rgb(1,2)", "hsl(120, 50, 50)", "chartreuse", "", "#12345g"]:
        assert not is_valid_css_color(color), color


def test_urls():
    for url in [
        "https://example.com/a.png",
        "http://localhost:3000/x",
        "data:image/png;base64,AAAA",
        "/images/cover.png",
        "./cover.png",
        "../cover.png",
    ]:
        assert is_valid_url(url), url

    for url in ["cover.png", "images/cover.png", "not a url", "", "https://"]:
        assert not is_valid_url(url), url


def test_context_accumulates():
    from openstrand.schema.icons import PresetIconRegistry

    ctx = ValidationContext(PresetIconRegistry())
    assert not ctx.number(True, "order", min=0)
    assert not ctx.number("3", "order")
    assert not ctx.number(6, "difficulty", min=1, max=5)
    assert ctx.number(3, "difficulty", min=1, max=5)
    assert not ctx.string_list(["a", 2, None], "tags")
    assert ctx.icon("unicorn", "metadata.icon")
    assert not ctx.enum("loud", "scope.visibility", Enum("V", {"a": "a", "b": "b"}), "visibility")

    paths = [e.path for e in ctx.errors]
    assert paths == ["order", "order", "difficulty", "tags[1]", "tags[2]", "scope.visibility"]
    assert ctx.errors[0].message == "Expected number, got boolean"
    assert ctx.errors[2].message == "Number must be at most 5"
    assert ctx.errors[-1].message == 'Invalid visibility: "loud". Allowed values: a, b'
    assert [w.path for w in ctx.warnings] == ["metadata.icon"]


def test_required_and_groups():
    from openstrand.schema.icons import PresetIconRegistry

    ctx = ValidationContext(PresetIconRegistry())
    data = {"metadata": {"name": None}, "style": "red", "scope": {"type": "TEAM"}}
    metadata = ctx.group(data, "metadata")
    assert metadata is not None
    assert not ctx.require(metadata, "name", "metadata")
    assert ctx.group(data, "style") is None
    assert ctx.group(data, "scope") == {"type": "TEAM"}
    assert ctx.group(data, "team") is None
    assert [str(e) for e in ctx.errors] == [
        'metadata.name: Required field "name" is missing',
        "style: style must be an object",
    ]
