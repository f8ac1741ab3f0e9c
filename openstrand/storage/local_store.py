"""
The local schema store: schemas saved on this machine with their lifecycle
state, a checksum of the current version and a snapshot of the last published
version.

Saving moves a record to `draft`, `saved` or `pending`. Only
`mark_as_published()` and `mark_as_conflict()` move it to `published` or
`conflict`. Nothing resolves a conflict automatically: the caller saves again.

All operations are coroutines. Engine calls run in a worker thread so a
file-backed engine never blocks the event loop.
"""

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from openstrand.config.logger import get_logger
from openstrand.config.settings import (
    EXPORT_FORMAT_VERSION,
    global_settings,
    resolve_and_create_dirs,
)
from openstrand.config.text_styles import EMOJI_PUBLISHED, EMOJI_SAVED
from openstrand.errors import InvalidImportFormat, InvalidInput, SchemaNotFound
from openstrand.model.schema_model import (
    LoomSchema,
    OpenStrandSchema,
    SchemaKind,
    StrandSchema,
    WeaveSchema,
)
from openstrand.model.storage_model import (
    LocalSavedSchema,
    LocalSaveMetadata,
    SaveState,
    SchemaDiff,
    UNSAVED_STATES,
)
from openstrand.model.values import non_string_keys
from openstrand.storage.engines import (
    MemoryStorageEngine,
    Record,
    StorageEngine,
    YamlDirStorageEngine,
)
from openstrand.util.hash_utils import checksum_value
from openstrand.util.time_utils import now_iso

log = get_logger(__name__)


SAVE_STATES = (SaveState.draft, SaveState.saved, SaveState.pending)
"""States a save may put a record in."""


def schema_checksum(schema: OpenStrandSchema) -> str:
    """
    Checksum of a schema's document form. Used both when saving and when
    comparing against the published snapshot.
    """
    return checksum_value(schema.to_dict())


def _check_import_record(item: Any, index: int) -> LocalSavedSchema:
    where = f"schemas[{index}]"
    if not isinstance(item, dict):
        raise InvalidImportFormat(f"{where}: expected an object")
    if not isinstance(item.get("schema"), dict):
        raise InvalidImportFormat(f"{where}: missing `schema` object")
    meta = item.get("meta")
    if not isinstance(meta, dict):
        raise InvalidImportFormat(f"{where}: missing `meta` object")
    for key in ("id", "kind", "state"):
        if not isinstance(meta.get(key), str):
            raise InvalidImportFormat(f"{where}: missing `meta.{key}`")
    original = item.get("original")
    if original is not None and not isinstance(original, dict):
        raise InvalidImportFormat(f"{where}: `original` must be an object")

    try:
        saved = LocalSavedSchema.from_dict(
            {
                "schema": item["schema"],
                "meta": {"savedAt": "", "checksum": "", **meta},
                "original": original,
            }
        )
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidImportFormat(f"{where}: {e}") from e

    if saved.schema.kind != saved.meta.kind:
        raise InvalidImportFormat(
            f"{where}: meta.kind is {saved.meta.kind} but schema is {saved.schema.kind}"
        )
    return saved


class LocalSchemaStore:
    """
    Async store of `LocalSavedSchema` records keyed by id, over a `StorageEngine`.
    """

    def __init__(self, engine: Optional[StorageEngine] = None):
        self.engine: StorageEngine = engine if engine is not None else MemoryStorageEngine()

    @classmethod
    def open(cls, store_dir: Optional[Path] = None) -> "LocalSchemaStore":
        """
        A store persisted in a directory, by default the `store_dir` from settings.
        """
        store_dir = resolve_and_create_dirs(store_dir or global_settings().store_dir, is_dir=True)
        return cls(YamlDirStorageEngine(store_dir))

    async def _get(self, schema_id: str) -> Optional[LocalSavedSchema]:
        record = await asyncio.to_thread(self.engine.get, schema_id)
        return LocalSavedSchema.from_dict(record) if record is not None else None

    async def _require(self, schema_id: str) -> LocalSavedSchema:
        saved = await self._get(schema_id)
        if saved is None:
            raise SchemaNotFound(schema_id)
        return saved

    async def _put(self, saved: LocalSavedSchema) -> None:
        await asyncio.to_thread(self.engine.put, saved.to_dict())

    @staticmethod
    def _from_records(records: List[Record]) -> List[LocalSavedSchema]:
        return [LocalSavedSchema.from_dict(record) for record in records]

    ## Saving

    async def save_schema(
        self,
        schema_id: str,
        schema: OpenStrandSchema,
        mark_pending: bool = False,
        original: Optional[OpenStrandSchema] = None,
        state: Optional[SaveState] = None,
    ) -> LocalSavedSchema:
        """
        Save a schema under an id, replacing any existing version. The state is
        `saved`, or `pending` with `mark_pending`, unless a save state is given
        explicitly. The publish time and the published snapshot carry over from the
        existing record unless a new `original` is given.
        """
        if state is None:
            state = SaveState.pending if mark_pending else SaveState.saved
        if state not in SAVE_STATES:
            allowed = ", ".join(str(s) for s in SAVE_STATES)
            raise InvalidInput(f"Can't save a schema as {state}: use one of {allowed}")
        bad_keys = non_string_keys(schema.to_dict())
        if bad_keys:
            paths = ", ".join(path for path, _key in bad_keys)
            raise InvalidInput(f"Can't save a schema with non-string field names: {paths}")

        existing = await self._get(schema_id)
        if original is None and existing:
            original = existing.original
        if existing and existing.meta.kind != schema.kind:
            log.warning(
                "Schema %r changed kind: %s -> %s", schema_id, existing.meta.kind, schema.kind
            )

        saved = LocalSavedSchema(
            schema=schema,
            meta=LocalSaveMetadata(
                id=schema_id,
                kind=schema.kind,
                state=state,
                saved_at=now_iso(),
                checksum=schema_checksum(schema),
                published_at=existing.meta.published_at if existing else None,
            ),
            original=original,
        )
        await self._put(saved)

        old_state = existing.state if existing else None
        if old_state != state:
            log.info(
                "%s Saved %s %r: %s -> %s", EMOJI_SAVED, schema.kind, schema_id, old_state, state
            )
        else:
            log.debug("Saved %s %r (%s)", schema.kind, schema_id, state)
        return saved

    async def save_loom(
        self, schema_id: str, schema: LoomSchema, mark_pending: bool = False
    ) -> LocalSavedSchema:
        return await self.save_schema(schema_id, schema, mark_pending)

    async def save_weave(
        self, schema_id: str, schema: WeaveSchema, mark_pending: bool = False
    ) -> LocalSavedSchema:
        return await self.save_schema(schema_id, schema, mark_pending)

    async def save_strand(
        self, schema_id: str, schema: StrandSchema, mark_pending: bool = False
    ) -> LocalSavedSchema:
        return await self.save_schema(schema_id, schema, mark_pending)

    ## Queries

    async def get_schema_by_id(self, schema_id: str) -> Optional[LocalSavedSchema]:
        return await self._get(schema_id)

    async def get_schemas_by_kind(self, kind: SchemaKind) -> List[LocalSavedSchema]:
        records = await asyncio.to_thread(self.engine.by_index, "kind", kind.value)
        return self._from_records(records)

    async def get_all_looms(self) -> List[LocalSavedSchema]:
        return await self.get_schemas_by_kind(SchemaKind.loom)

    async def get_all_weaves(self) -> List[LocalSavedSchema]:
        return await self.get_schemas_by_kind(SchemaKind.weave)

    async def get_all_strands(self) -> List[LocalSavedSchema]:
        return await self.get_schemas_by_kind(SchemaKind.strand)

    async def get_schemas_by_state(self, state: SaveState) -> List[LocalSavedSchema]:
        records = await asyncio.to_thread(self.engine.by_index, "state", state.value)
        return self._from_records(records)

    async def get_pending_schemas(self) -> List[LocalSavedSchema]:
        """
        Everything queued for publishing.
        """
        return await self.get_schemas_by_state(SaveState.pending)

    ## Lifecycle

    async def mark_as_published(self, schema_id: str) -> LocalSavedSchema:
        """
        Record that the current version was published: the current schema becomes
        the published snapshot. Callers should only do this after the server has
        accepted the schema.
        """
        saved = await self._require(schema_id)
        old_state = saved.state
        saved.meta.state = SaveState.published
        saved.meta.published_at = now_iso()
        saved.original = saved.schema
        await self._put(saved)

        log.info(
            "%s Published %s %r: %s -> %s",
            EMOJI_PUBLISHED,
            saved.meta.kind,
            schema_id,
            old_state,
            saved.state,
        )
        return saved

    async def mark_as_conflict(self, schema_id: str) -> LocalSavedSchema:
        saved = await self._require(schema_id)
        old_state = saved.state
        saved.meta.state = SaveState.conflict
        await self._put(saved)

        log.info("Conflict on %s %r: %s -> %s", saved.meta.kind, schema_id, old_state, saved.state)
        return saved

    async def delete_schema(self, schema_id: str) -> bool:
        deleted = await asyncio.to_thread(self.engine.delete, schema_id)
        if deleted:
            log.info("Deleted schema %r", schema_id)
        return deleted

    async def clear_all_schemas(self) -> None:
        await asyncio.to_thread(self.engine.clear)
        log.info("Cleared all local schemas")

    ## Change detection

    async def has_unsaved_changes(self, schema_id: str) -> bool:
        saved = await self._get(schema_id)
        return saved is not None and saved.state in UNSAVED_STATES

    async def has_unpublished_changes(self, schema_id: str) -> bool:
        """
        True if the schema was never published or has changed since. False for
        unknown ids.
        """
        saved = await self._get(schema_id)
        if saved is None:
            return False
        if saved.original is None:
            return True
        return saved.meta.checksum != schema_checksum(saved.original)

    async def get_schema_diff(self, schema_id: str) -> Optional[SchemaDiff]:
        saved = await self._get(schema_id)
        if saved is None:
            return None
        has_changes = saved.original is None or saved.meta.checksum != schema_checksum(
            saved.original
        )
        return SchemaDiff(current=saved.schema, original=saved.original, has_changes=has_changes)

    ## Export and import

    async def export_all_schemas(self) -> str:
        """
        All records as one JSON document, with an export time and format version.
        """
        records = await asyncio.to_thread(self.engine.all)
        doc: Dict[str, Any] = {
            "exportedAt": now_iso(),
            "version": EXPORT_FORMAT_VERSION,
            "schemas": records,
        }
        log.message("Exported %s schemas", len(records))
        return json.dumps(doc, indent=2, ensure_ascii=False)

    async def import_schemas(self, text: str) -> int:
        """
        Import a document from `export_all_schemas()`, replacing records with the
        same id. The whole document is checked before anything is written, so a
        malformed document imports nothing. Records are then written one at a time.
        Returns the number of records written.
        """
        try:
            doc = json.loads(text)
        except json.JSONDecodeError as e:
            raise InvalidImportFormat(f"Import is not valid JSON: {e}") from e

        if not isinstance(doc, dict) or not isinstance(doc.get("schemas"), list):
            raise InvalidImportFormat("Import must be an object with a `schemas` list")
        version = doc.get("version")
        if version is not None and version != EXPORT_FORMAT_VERSION:
            log.warning("Importing export format version %s as %s", version, EXPORT_FORMAT_VERSION)

        records = [_check_import_record(item, i) for i, item in enumerate(doc["schemas"])]

        for saved in records:
            saved.meta.checksum = schema_checksum(saved.schema)
            await self._put(saved)

        log.message("Imported %s schemas", len(records))
        return len(records)


## Tests


def _loom(name: str = "Research") -> LoomSchema:
    return LoomSchema.from_dict({"version": "1.0", "kind": "Loom", "metadata": {"name": name}})


def test_save_and_query():
    async def run():
        store = LocalSchemaStore()
        await store.save_loom("l1", _loom())
        await store.save_strand("s1", StrandSchema(title="Intro"), mark_pending=True)
        await store.save_loom("l2", _loom("Other"))
        await store.save_schema("s2", StrandSchema(title="Draft"), state=SaveState.draft)

        assert [s.id for s in await store.get_all_looms()] == ["l1", "l2"]
        assert [s.id for s in await store.get_all_strands()] == ["s1", "s2"]
        assert await store.get_all_weaves() == []
        assert [s.id for s in await store.get_pending_schemas()] == ["s1"]
        assert await store.has_unsaved_changes("s2")
        assert not await store.has_unsaved_changes("l1")
        assert not await store.has_unsaved_changes("missing")

        saved = await store.get_schema_by_id("l1")
        assert saved and saved.schema == _loom()
        assert saved.meta.checksum == schema_checksum(_loom())
        assert await store.get_schema_by_id("missing") is None

        assert await store.delete_schema("l1")
        assert not await store.delete_schema("l1")
        await store.clear_all_schemas()
        assert await store.get_all_strands() == []
        assert json.loads(await store.export_all_schemas())["schemas"] == []

    asyncio.run(run())


def test_save_state_checks():
    async def run():
        store = LocalSchemaStore()
        try:
            await store.save_schema("x", _loom(), state=SaveState.published)
            assert False, "expected InvalidInput"
        except InvalidInput:
            pass

        try:
            await store.mark_as_published("missing")
            assert False, "expected SchemaNotFound"
        except SchemaNotFound as e:
            assert e.schema_id == "missing"

    asyncio.run(run())


def test_diff():
    async def run():
        store = LocalSchemaStore()
        assert await store.get_schema_diff("l1") is None
        await store.save_loom("l1", _loom())
        diff = await store.get_schema_diff("l1")
        assert diff and diff.has_changes and diff.original is None

        await store.mark_as_published("l1")
        diff = await store.get_schema_diff("l1")
        assert diff and not diff.has_changes and diff.original == _loom()

        await store.save_loom("l1", _loom("Renamed"))
        diff = await store.get_schema_diff("l1")
        assert diff and diff.has_changes
        assert diff.original == _loom() and diff.current == _loom("Renamed")

    asyncio.run(run())
