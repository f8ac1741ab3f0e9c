"""
OpenStrand schemas: Looms, Weaves and Strands as YAML or Markdown frontmatter,
with validation, migration of legacy documents and a local store of edited
schemas.
"""

from openstrand.errors import (
    InvalidImportFormat,
    OpenStrandError,
    SchemaNotFound,
    StorageError,
)
from openstrand.model.schema_model import (
    LoomSchema,
    OpenStrandSchema,
    ParseResult,
    SchemaKind,
    StrandSchema,
    ValidationIssue,
    WeaveSchema,
)
from openstrand.model.storage_model import LocalSavedSchema, SaveState, SchemaDiff
from openstrand.schema.migration import migrate_schema, needs_migration
from openstrand.schema.parser import (
    detect_schema_kind,
    generate_markdown_with_frontmatter,
    parse_loom_schema,
    parse_schema,
    parse_strand_frontmatter,
    parse_weave_schema,
    read_schema_file,
    serialize_schema,
    write_schema_file,
)
from openstrand.schema.validator import validate_schema
from openstrand.storage.local_store import LocalSchemaStore

__all__ = [
    "InvalidImportFormat",
    "OpenStrandError",
    "SchemaNotFound",
    "StorageError",
    "LoomSchema",
    "OpenStrandSchema",
    "ParseResult",
    "SchemaKind",
    "StrandSchema",
    "ValidationIssue",
    "WeaveSchema",
    "LocalSavedSchema",
    "SaveState",
    "SchemaDiff",
    "migrate_schema",
    "needs_migration",
    "detect_schema_kind",
    "generate_markdown_with_frontmatter",
    "parse_loom_schema",
    "parse_schema",
    "parse_strand_frontmatter",
    "parse_weave_schema",
    "read_schema_file",
    "serialize_schema",
    "write_schema_file",
    "validate_schema",
    "LocalSchemaStore",
]
