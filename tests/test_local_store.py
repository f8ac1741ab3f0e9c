"""
The local store's lifecycle, change detection and export/import, on both
storage engines.
"""

import asyncio
import json

from openstrand.errors import InvalidImportFormat, InvalidInput, SchemaNotFound
from openstrand.model.schema_model import LoomSchema, StrandSchema, WeaveSchema
from openstrand.model.storage_model import SaveState
from openstrand.storage.engines import YamlDirStorageEngine
from openstrand.storage.local_store import LocalSchemaStore, schema_checksum


def loom(name: str = "Research") -> LoomSchema:
    return LoomSchema.from_dict({"version": "1.0", "kind": "Loom", "metadata": {"name": name}})


def weave(name: str = "Biology") -> WeaveSchema:
    return WeaveSchema.from_dict(
        {"version": "1.0", "kind": "Weave", "metadata": {"name": name}, "graph": {"layout": "grid"}}
    )


def strand(title: str = "Intro", difficulty: int = 2) -> StrandSchema:
    return StrandSchema.from_dict(
        {"version": "1.0", "kind": "Strand", "title": title, "difficulty": difficulty}
    )


def test_state_machine():
    async def run():
        store = LocalSchemaStore()

        saved = await store.save_schema("s1", strand(), state=SaveState.draft)
        assert saved.state == SaveState.draft
        assert await store.has_unsaved_changes("s1")

        saved = await store.save_strand("s1", strand())
        assert saved.state == SaveState.saved
        assert not await store.has_unsaved_changes("s1")

        saved = await store.save_strand("s1", strand(), mark_pending=True)
        assert saved.state == SaveState.pending
        assert await store.has_unsaved_changes("s1")
        assert [s.id for s in await store.get_pending_schemas()] == ["s1"]

        saved = await store.mark_as_published("s1")
        assert saved.state == SaveState.published
        assert saved.meta.published_at is not None
        assert saved.original == strand()
        assert await store.get_pending_schemas() == []

        published_at = saved.meta.published_at
        saved = await store.mark_as_conflict("s1")
        assert saved.state == SaveState.conflict
        assert [s.id for s in await store.get_schemas_by_state(SaveState.conflict)] == ["s1"]

        # Saving again after a conflict is the only way out, and never to published.
        saved = await store.save_strand("s1", strand("Intro, merged"))
        assert saved.state == SaveState.saved
        assert saved.meta.published_at == published_at
        assert saved.original == strand()
        saved = await store.save_strand("s1", strand("Intro, merged"), mark_pending=True)
        assert saved.state == SaveState.pending

    asyncio.run(run())


def test_unknown_ids():
    async def run():
        store = LocalSchemaStore()
        assert await store.get_schema_by_id("nope") is None
        assert not await store.has_unsaved_changes("nope")
        assert not await store.has_unpublished_changes("nope")
        assert not await store.delete_schema("nope")
        for mark in [store.mark_as_published, store.mark_as_conflict]:
            try:
                await mark("nope")
                assert False, "expected SchemaNotFound"
            except SchemaNotFound as e:
                assert e.schema_id == "nope"

    asyncio.run(run())


def test_non_string_field_names_rejected():
    async def run():
        store = LocalSchemaStore()
        bad = StrandSchema(title="Intro", extra={"notes": {1: "a"}})
        try:
            await store.save_schema("s1", bad)
            assert False, "expected InvalidInput"
        except InvalidInput as e:
            assert "notes.1" in str(e)
        assert await store.get_schema_by_id("s1") is None

    asyncio.run(run())


def test_checksum_stability():
    async def run():
        store = LocalSchemaStore()
        first = await store.save_loom("l1", loom())
        assert await store.has_unpublished_changes("l1")

        await store.mark_as_published("l1")
        assert not await store.has_unpublished_changes("l1")

        second = await store.save_loom("l1", loom())
        assert second.meta.checksum == first.meta.checksum
        assert not await store.has_unpublished_changes("l1")

        changed = loom()
        changed.metadata.description = "Papers"
        third = await store.save_loom("l1", changed)
        assert third.meta.checksum != first.meta.checksum
        assert third.meta.checksum == schema_checksum(changed)
        assert await store.has_unpublished_changes("l1")

        await store.mark_as_published("l1")
        assert not await store.has_unpublished_changes("l1")

    asyncio.run(run())


def test_explicit_original():
    async def run():
        store = LocalSchemaStore()
        await store.save_loom("l1", loom())
        await store.save_schema("l1", loom("Renamed"), original=loom())
        saved = await store.get_schema_by_id("l1")
        assert saved and saved.original == loom()
        assert await store.has_unpublished_changes("l1")

        await store.save_schema("l1", loom(), original=loom())
        assert not await store.has_unpublished_changes("l1")

    asyncio.run(run())


def test_queries_by_kind_keep_insertion_order():
    async def run():
        store = LocalSchemaStore()
        await store.save_strand("s2", strand("Second"))
        await store.save_loom("l1", loom())
        await store.save_strand("s1", strand("First"))
        await store.save_weave("w1", weave())
        await store.save_strand("s2", strand("Second, edited"))

        assert [s.id for s in await store.get_all_strands()] == ["s2", "s1"]
        assert [s.id for s in await store.get_all_looms()] == ["l1"]
        assert [s.id for s in await store.get_all_weaves()] == ["w1"]

        s2 = await store.get_schema_by_id("s2")
        assert s2 and isinstance(s2.schema, StrandSchema)
        assert s2.schema.title == "Second, edited"

    asyncio.run(run())


async def _populate(store: LocalSchemaStore) -> None:
    await store.save_loom("loom/research", loom())
    await store.save_weave("weave/bio", weave(), mark_pending=True)
    await store.save_strand("strand/intro", strand())
    await store.mark_as_published("strand/intro")
    await store.save_strand("strand/intro", strand(difficulty=4))
    await store.save_schema("strand/draft", strand("Draft"), state=SaveState.draft)


def test_export_import_restores_records():
    async def run():
        source = LocalSchemaStore()
        await _populate(source)
        exported = await source.export_all_schemas()

        doc = json.loads(exported)
        assert doc["version"] == "1.0"
        assert doc["exportedAt"].endswith("Z")
        assert len(doc["schemas"]) == 4

        target = LocalSchemaStore()
        assert await target.import_schemas(exported) == 4
        assert target.engine.all() == source.engine.all()
        assert await target.has_unpublished_changes("strand/intro")
        assert [s.id for s in await target.get_pending_schemas()] == ["weave/bio"]

        # Importing again replaces rather than duplicates.
        assert await target.import_schemas(exported) == 4
        assert len(target.engine.all()) == 4

    asyncio.run(run())


def test_malformed_import_writes_nothing():
    good = {
        "schema": {"version": "1.0", "kind": "Loom", "metadata": {"name": "X"}},
        "meta": {
            "id": "l1",
            "kind": "Loom",
            "state": "saved",
            "savedAt": "2024-05-01T10:00:00.000000Z",
            "checksum": "sha1:0",
        },
    }
    bad_docs = [
        "not json",
        "[]",
        json.dumps({"version": "1.0"}),
        json.dumps({"schemas": {"l1": good}}),
        json.dumps({"schemas": [good, "oops"]}),
        json.dumps({"schemas": [good, {"schema": good["schema"]}]}),
        json.dumps({"schemas": [good, {**good, "meta": {**good["meta"], "state": "lost"}}]}),
        json.dumps({"schemas": [good, {**good, "meta": {**good["meta"], "kind": "Weave"}}]}),
        json.dumps({"schemas": [good, {**good, "schema": {"kind": "Thread"}}]}),
    ]

    async def run():
        store = LocalSchemaStore()
        for text in bad_docs:
            try:
                await store.import_schemas(text)
                assert False, f"expected InvalidImportFormat: {text}"
            except InvalidImportFormat:
                pass
            assert store.engine.all() == []

        assert await store.import_schemas(json.dumps({"schemas": [good]})) == 1
        saved = await store.get_schema_by_id("l1")
        assert saved and saved.meta.checksum == schema_checksum(saved.schema)

    asyncio.run(run())


def test_file_backed_store(tmp_path):
    async def run():
        store = LocalSchemaStore.open(tmp_path / "schemas")
        assert isinstance(store.engine, YamlDirStorageEngine)
        await _populate(store)
        await store.delete_schema("strand/draft")
        exported = json.loads(await store.export_all_schemas())

        reopened = LocalSchemaStore.open(tmp_path / "schemas")
        assert json.loads(await reopened.export_all_schemas())["schemas"] == exported["schemas"]
        assert [s.id for s in await reopened.get_all_strands()] == ["strand/intro"]

        intro = await reopened.get_schema_by_id("strand/intro")
        assert intro and intro.state == SaveState.saved
        assert intro.original == strand()
        assert await reopened.has_unpublished_changes("strand/intro")

        await reopened.clear_all_schemas()
        assert LocalSchemaStore.open(tmp_path / "schemas").engine.all() == []

    asyncio.run(run())
