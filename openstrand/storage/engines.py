"""
Storage engines for the local schema store. An engine is a keyed table of
records (plain dicts in document form) with secondary indexes on
`meta.kind` and `meta.state`. Engines are synchronous and thread safe. The
async store runs them off the event loop.

Records come back in insertion order. Replacing a record keeps its position.
"""

import copy
import functools
import hashlib
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol, TypeVar

from frontmatter_format import read_yaml_file, write_yaml_file
from ruamel.yaml.error import YAMLError
from slugify import slugify
from strif import atomic_output_file

from openstrand.config.logger import get_logger
from openstrand.errors import StorageError
from openstrand.file_formats.yaml_util import custom_key_sort, from_yaml_string, to_yaml_string

log = get_logger(__name__)

T = TypeVar("T")

Record = Dict[str, Any]

INDEX_FIELDS = ("kind", "state")
"""Fields of a record's `meta` that can be queried with `by_index()`."""


def synchronized(method: Callable[..., T]) -> Callable[..., T]:
    """
    Simple way to synchronize a few methods.
    """

    @functools.wraps(method)
    def synchronized_method(self, *args: Any, **kwargs: Any) -> T:
        with self._lock:
            return method(self, *args, **kwargs)

    return synchronized_method


def record_key(record: Record) -> str:
    return record["meta"]["id"]


class StorageEngine(Protocol):
    def get(self, key: str) -> Optional[Record]: ...

    def put(self, record: Record) -> None: ...

    def delete(self, key: str) -> bool: ...

    def clear(self) -> None: ...

    def all(self) -> List[Record]: ...

    def by_index(self, field: str, value: str) -> List[Record]: ...


class MemoryStorageEngine:
    """
    Records in a dict, with manually maintained indexes. Nothing is persisted.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._records: Dict[str, Record] = {}
        self._indexes: Dict[str, Dict[str, Dict[str, None]]] = {f: {} for f in INDEX_FIELDS}

    def _index_add(self, record: Record) -> None:
        key = record_key(record)
        for field in INDEX_FIELDS:
            self._indexes[field].setdefault(record["meta"][field], {})[key] = None

    def _index_remove(self, record: Record) -> None:
        key = record_key(record)
        for field in INDEX_FIELDS:
            self._indexes[field].get(record["meta"][field], {}).pop(key, None)

    @synchronized
    def get(self, key: str) -> Optional[Record]:
        record = self._records.get(key)
        return copy.deepcopy(record) if record is not None else None

    @synchronized
    def put(self, record: Record) -> None:
        key = record_key(record)
        old = self._records.get(key)
        if old is not None:
            self._index_remove(old)
        self._records[key] = copy.deepcopy(record)
        self._index_add(record)

    @synchronized
    def delete(self, key: str) -> bool:
        old = self._records.pop(key, None)
        if old is None:
            return False
        self._index_remove(old)
        return True

    @synchronized
    def clear(self) -> None:
        self._records.clear()
        self._indexes = {f: {} for f in INDEX_FIELDS}

    @synchronized
    def all(self) -> List[Record]:
        return [copy.deepcopy(r) for r in self._records.values()]

    @synchronized
    def by_index(self, field: str, value: str) -> List[Record]:
        if field not in self._indexes:
            raise ValueError(f"Not an indexed field: {field!r}")
        keys = self._indexes[field].get(value, {})
        return [copy.deepcopy(r) for key, r in self._records.items() if key in keys]

    def __len__(self) -> int:
        return len(self._records)


class YamlDirStorageEngine(MemoryStorageEngine):
    """
    Records as YAML files in a directory, one file per record, plus an index file
    listing keys in insertion order. All records are loaded into memory on open and
    the indexes rebuilt. Each file write is atomic, so a failed write never leaves a
    partial record.
    """

    INDEX_FILENAME = "index.yml"
    RECORDS_DIRNAME = "records"

    def __init__(self, root: str | Path):
        super().__init__()
        self.root = Path(root)
        self.index_path = self.root / self.INDEX_FILENAME
        self.records_dir = self.root / self.RECORDS_DIRNAME
        self._open()

    def record_path(self, key: str) -> Path:
        """
        Filenames are a readable slug of the key plus a short hash, so distinct keys
        never collide.
        """
        digest = hashlib.sha1(key.encode("utf-8")).hexdigest()[:10]
        slug = slugify(key, max_length=60, word_boundary=True)
        filename = f"{slug}-{digest}.yml" if slug else f"{digest}.yml"
        return self.records_dir / filename

    def _open(self) -> None:
        try:
            self.records_dir.mkdir(parents=True, exist_ok=True)
            if not self.index_path.exists():
                write_yaml_file([], str(self.index_path))
            keys = read_yaml_file(str(self.index_path)) or []
            for key in keys:
                record = from_yaml_string(self.record_path(key).read_text(encoding="utf-8"))
                MemoryStorageEngine.put(self, record)
        except (OSError, ValueError, KeyError, TypeError, YAMLError) as e:
            raise StorageError(f"Failed to open schema store at {self.root}: {e}") from e

        log.info("Opened schema store: %s (%s records)", self.root, len(self))

    def _write_record(self, record: Record) -> None:
        path = self.record_path(record_key(record))
        text = to_yaml_string(record, key_sort=custom_key_sort(["schema", "meta", "original"]))
        with atomic_output_file(path, make_parents=True) as temp_path:
            Path(temp_path).write_text(text, encoding="utf-8")

    @synchronized
    def put(self, record: Record) -> None:
        key = record_key(record)
        is_new = key not in self._records
        try:
            self._write_record(record)
            if is_new:
                self._write_index_with(key)
        except OSError as e:
            raise StorageError(f"Failed to write schema {key!r}: {e}") from e
        super().put(record)

    def _write_index_with(self, key: str) -> None:
        write_yaml_file(list(self._records.keys()) + [key], str(self.index_path))

    @synchronized
    def delete(self, key: str) -> bool:
        if key not in self._records:
            return False
        try:
            write_yaml_file([k for k in self._records if k != key], str(self.index_path))
            self.record_path(key).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to delete schema {key!r}: {e}") from e
        return super().delete(key)

    @synchronized
    def clear(self) -> None:
        try:
            write_yaml_file([], str(self.index_path))
            for key in self._records:
                self.record_path(key).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to clear schema store at {self.root}: {e}") from e
        super().clear()


## Tests


def _record(key: str, kind: str = "Loom", state: str = "saved") -> Record:
    return {
        "schema": {"kind": kind, "metadata": {"name": key}},
        "meta": {
            "id": key,
            "kind": kind,
            "state": state,
            "savedAt": "2024-05-01T10:00:00.000000Z",
            "checksum": "sha1:0",
        },
    }


def test_memory_engine_indexes():
    engine = MemoryStorageEngine()
    engine.put(_record("a"))
    engine.put(_record("b", kind="Weave"))
    engine.put(_record("c", state="pending"))
    assert [record_key(r) for r in engine.all()] == ["a", "b", "c"]
    assert [record_key(r) for r in engine.by_index("kind", "Loom")] == ["a", "c"]
    assert [record_key(r) for r in engine.by_index("state", "pending")] == ["c"]

    # Replacing keeps position and moves index entries.
    engine.put(_record("a", state="pending"))
    assert [record_key(r) for r in engine.all()] == ["a", "b", "c"]
    assert [record_key(r) for r in engine.by_index("state", "pending")] == ["a", "c"]
    assert engine.by_index("state", "saved") == [_record("b", kind="Weave")]

    # Returned records are copies.
    got = engine.get("a")
    assert got is not None
    got["meta"]["state"] = "published"
    assert engine.by_index("state", "published") == []

    assert engine.delete("a") and not engine.delete("a")
    assert engine.get("a") is None
    engine.clear()
    assert engine.all() == [] and engine.by_index("kind", "Loom") == []


def test_yaml_dir_engine_persists(tmp_path):
    engine = YamlDirStorageEngine(tmp_path / "store")
    engine.put(_record("loom/one"))
    engine.put(_record("weave two", kind="Weave", state="pending"))
    engine.put(_record("loom/three"))
    engine.delete("loom/three")

    path = engine.record_path("loom/one")
    assert path.exists() and path.name.startswith("loom-one-")
    assert path.read_text().startswith("schema:\n")
    assert not engine.record_path("loom/three").exists()

    reopened = YamlDirStorageEngine(tmp_path / "store")
    assert [record_key(r) for r in reopened.all()] == ["loom/one", "weave two"]
    assert reopened.get("loom/one") == _record("loom/one")
    assert [record_key(r) for r in reopened.by_index("state", "pending")] == ["weave two"]

    reopened.clear()
    assert YamlDirStorageEngine(tmp_path / "store").all() == []


def test_yaml_dir_engine_corrupt_store(tmp_path):
    engine = YamlDirStorageEngine(tmp_path)
    engine.put(_record("a"))
    engine.record_path("a").unlink()
    try:
        YamlDirStorageEngine(tmp_path)
        assert False, "expected StorageError"
    except StorageError as e:
        assert "Failed to open schema store" in str(e)
