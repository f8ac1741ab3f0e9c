"""
Unified hierarchy of error types. These inherit from standard errors like
ValueError and FileNotFoundError but are more fine-grained.

Parsing and validation never raise these past their public functions (they
return a `ParseResult` instead). Storage operations and file helpers do raise.
"""

from typing import Tuple, Type


class OpenStrandError(ValueError):
    """Base class for openstrand errors."""

    pass


class SelfExplanatoryError(OpenStrandError):
    """Common errors that arise from 'normal' problems that are largely self-explanatory,
    i.e., no stack trace should be necessary when reporting to the user."""

    pass


class InvalidInput(SelfExplanatoryError):
    """Raised when the wrong kind of input is given to an operation."""

    pass


class YamlDecodeError(InvalidInput):
    """Raised when text is not well-formed YAML."""

    pass


class FileFormatError(InvalidInput):
    """Raised when a file's content format is invalid."""

    pass


class InvalidImportFormat(InvalidInput):
    """Raised when an export document does not have the expected top-level shape."""

    pass


class InvalidState(SelfExplanatoryError):
    """Raised when the store is not in a valid state for an operation."""

    pass


class SchemaNotFound(InvalidState, KeyError):
    """Raised when no locally saved schema exists for an id."""

    def __init__(self, schema_id: str):
        super().__init__(f"Schema not found: {schema_id!r}")
        self.schema_id = schema_id

    def __str__(self) -> str:
        return self.args[0]


class StorageError(OpenStrandError, IOError):
    """Raised when the storage engine fails to open, read, write or delete."""

    pass


NONFATAL_EXCEPTIONS: Tuple[Type[Exception], ...] = (
    SelfExplanatoryError,
    FileNotFoundError,
)
"""Exceptions that are not fatal and usually don't merit a full stack trace."""


def is_fatal(exception: Exception) -> bool:
    for e in NONFATAL_EXCEPTIONS:
        if isinstance(exception, e):
            return False
    return True


## Tests


def test_error_hierarchy():
    assert isinstance(YamlDecodeError("x"), ValueError)
    assert not is_fatal(YamlDecodeError("bad yaml"))
    assert not is_fatal(SchemaNotFound("loom-1"))
    assert is_fatal(StorageError("disk full"))
    assert is_fatal(RuntimeError("boom"))

    e = SchemaNotFound("loom-1")
    assert e.schema_id == "loom-1"
    assert str(e) == "Schema not found: 'loom-1'"
    assert isinstance(e, KeyError)
