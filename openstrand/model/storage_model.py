"""
Records kept by the local schema store: a schema, its save metadata, and the
last published snapshot of it.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from openstrand.model.schema_model import OpenStrandSchema, schema_from_dict, SchemaKind


class SaveState(Enum):
    """
    Lifecycle of a locally saved schema. Saving moves a record to draft, saved or
    pending. Only explicit calls move it to published or conflict.
    """

    draft = "draft"
    saved = "saved"
    pending = "pending"
    published = "published"
    conflict = "conflict"

    def __str__(self):
        return self.value


UNSAVED_STATES = (SaveState.draft, SaveState.pending)
"""States in which a record has local edits not yet queued or published."""


@dataclass
class LocalSaveMetadata:
    id: str
    kind: SchemaKind
    state: SaveState
    saved_at: str
    checksum: str
    published_at: Optional[str] = None

    @classmethod
    def from_dict(cls, value: Dict[str, Any]) -> "LocalSaveMetadata":
        return cls(
            id=value["id"],
            kind=SchemaKind(value["kind"]),
            state=SaveState(value["state"]),
            saved_at=value["savedAt"],
            checksum=value["checksum"],
            published_at=value.get("publishedAt"),
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "id": self.id,
            "kind": self.kind.value,
            "state": self.state.value,
            "savedAt": self.saved_at,
        }
        if self.published_at is not None:
            result["publishedAt"] = self.published_at
        result["checksum"] = self.checksum
        return result


@dataclass
class LocalSavedSchema:
    """
    One record in the local store. `original` is the last published snapshot and
    is None until the schema has been published (or a server baseline was given).
    """

    schema: OpenStrandSchema
    meta: LocalSaveMetadata
    original: Optional[OpenStrandSchema] = None

    @property
    def id(self) -> str:
        return self.meta.id

    @property
    def state(self) -> SaveState:
        return self.meta.state

    @classmethod
    def from_dict(cls, value: Dict[str, Any]) -> "LocalSavedSchema":
        original = value.get("original")
        return cls(
            schema=schema_from_dict(value["schema"]),
            meta=LocalSaveMetadata.from_dict(value["meta"]),
            original=schema_from_dict(original) if original is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"schema": self.schema.to_dict(), "meta": self.meta.to_dict()}
        if self.original is not None:
            result["original"] = self.original.to_dict()
        return result


@dataclass
class SchemaDiff:
    """
    Current and last published versions of a saved schema, for showing a diff.
    """

    current: OpenStrandSchema
    original: Optional[OpenStrandSchema]
    has_changes: bool


## Tests


def test_saved_schema_dict_round_trip():
    record = {
        "schema": {"version": "1.0", "kind": "Strand", "title": "Intro", "difficulty": 2},
        "meta": {
            "id": "strand-1",
            "kind": "Strand",
            "state": "published",
            "savedAt": "2024-05-01T10:00:00.000000Z",
            "publishedAt": "2024-05-01T10:05:00.000000Z",
            "checksum": "sha1:0000",
        },
        "original": {"version": "1.0", "kind": "Strand", "title": "Intro"},
    }
    saved = LocalSavedSchema.from_dict(record)
    assert saved.id == "strand-1"
    assert saved.state == SaveState.published
    assert saved.meta.kind == SchemaKind.strand
    assert saved.original and saved.original.kind == SchemaKind.strand
    assert saved.to_dict() == record
