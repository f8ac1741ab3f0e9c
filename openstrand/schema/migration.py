"""
Migration of legacy, un-versioned documents to the current versioned format.

Early documents were flat maps tagged with `type: loom` or `type: weave`:

    type: loom
    name: Research Notes
    icon: book

These become `version: "1.0"` documents with a `kind` and a nested `metadata`
group. Documents that already carry a version, or that don't match a legacy
shape, are returned unchanged. A kind is never guessed.
"""

from typing import Any, cast, Dict, List, Optional, Tuple

from openstrand.config.logger import get_logger
from openstrand.config.settings import global_settings
from openstrand.model.schema_model import SchemaKind
from openstrand.model.values import YamlValue

log = get_logger(__name__)


# For each legacy type: the kind, the fields moved under `metadata`, and the
# fields carried over at the top level.
LEGACY_SHAPES: Dict[str, Tuple[SchemaKind, List[str], List[str]]] = {
    "loom": (SchemaKind.loom, ["name", "description", "icon", "useCase"], ["style", "tags"]),
    "weave": (SchemaKind.weave, ["name", "domain", "description", "icon"], ["style", "graph"]),
}

LEGACY_TYPE_NAMES = {
    "loom": "loom",
    "Loom": "loom",
    "weave": "weave",
    "Weave": "weave",
}


def _legacy_shape(value: YamlValue) -> Optional[Tuple[SchemaKind, List[str], List[str]]]:
    if not isinstance(value, dict) or value.get("version"):
        return None
    legacy_type = value.get("type")
    if not isinstance(legacy_type, str) or legacy_type not in LEGACY_TYPE_NAMES:
        return None
    return LEGACY_SHAPES[LEGACY_TYPE_NAMES[legacy_type]]


def needs_migration(value: YamlValue) -> bool:
    """
    True if the value is an un-versioned legacy Loom or Weave document.
    """
    return _legacy_shape(value) is not None


def migrate_schema(value: YamlValue) -> YamlValue:
    """
    Rewrite a legacy document into the current shape. Pure: the input is never
    modified. Fields absent in the legacy document stay absent.
    """
    shape = _legacy_shape(value)
    if not shape:
        return value
    value = cast(Dict[str, Any], value)

    kind, metadata_fields, carried_fields = shape
    migrated: Dict[str, Any] = {
        "version": global_settings().schema_version,
        "kind": kind.value,
        "metadata": {key: value[key] for key in metadata_fields if value.get(key) is not None},
    }
    for key in carried_fields:
        if value.get(key) is not None:
            migrated[key] = value[key]

    log.debug("Migrated legacy %s document: %s", kind, value.get("name"))
    return migrated


## Tests


def test_migrate_legacy_loom():
    legacy = {"type": "loom", "name": "X", "icon": "book", "tags": ["a"], "other": 1}
    migrated = migrate_schema(legacy)
    assert migrated == {
        "version": "1.0",
        "kind": "Loom",
        "metadata": {"name": "X", "icon": "book"},
        "tags": ["a"],
    }
    assert legacy["type"] == "loom"
    assert needs_migration(legacy)
    assert not needs_migration(migrated)


def test_migrate_legacy_weave():
    legacy = {"type": "Weave", "name": "Graph", "domain": "bio", "graph": {"layout": "grid"}}
    assert migrate_schema(legacy) == {
        "version": "1.0",
        "kind": "Weave",
        "metadata": {"name": "Graph", "domain": "bio"},
        "graph": {"layout": "grid"},
    }


def test_migration_passes_through():
    current = {"version": "1.0", "kind": "Loom", "metadata": {"name": "X"}}
    assert migrate_schema(current) is current
    assert migrate_schema(migrate_schema(current)) == current

    # Versioned documents are never rewritten, even with a legacy type field.
    versioned = {"version": "1.0", "type": "loom", "name": "X"}
    assert migrate_schema(versioned) is versioned

    unknown = {"type": "thread", "name": "X"}
    assert migrate_schema(unknown) is unknown
    assert "kind" not in migrate_schema({"name": "X"})
    assert migrate_schema(["a", "b"]) == ["a", "b"]
    assert migrate_schema(None) is None

    legacy = {"type": "loom", "name": "X"}
    assert migrate_schema(migrate_schema(legacy)) == migrate_schema(legacy)
