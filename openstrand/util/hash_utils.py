import hashlib
import json
from typing import Any


def canonical_json(value: Any) -> str:
    """
    Canonical JSON encoding of a plain value: sorted keys, no extra whitespace,
    non-ASCII kept as is. Equal values always give equal text.
    """
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def checksum_value(value: Any, algorithm: str = "sha1") -> str:
    """
    Hash the canonical JSON encoding of a value and return a string in the
    format `algorithm:hash`.
    """
    if algorithm not in hashlib.algorithms_available:
        raise ValueError(f"Unsupported hash algorithm: {algorithm}")

    hasher = hashlib.new(algorithm)
    hasher.update(canonical_json(value).encode("utf-8"))
    return f"{algorithm}:{hasher.hexdigest()}"


## Tests


def test_checksum_value():
    a = {"kind": "Loom", "metadata": {"name": "X", "slug": "x"}}
    b = {"metadata": {"slug": "x", "name": "X"}, "kind": "Loom"}
    assert checksum_value(a) == checksum_value(b)
    assert checksum_value(a).startswith("sha1:")
    assert len(checksum_value(a)) == len("sha1:") + 40

    changed = {"kind": "Loom", "metadata": {"name": "Y", "slug": "x"}}
    assert checksum_value(a) != checksum_value(changed)

    assert checksum_value({}) == "sha1:bf21a9e8fbc5a3846fb05b4fa0859e0917b2202f"
