"""
Parsing and serializing OpenStrand documents.

A document is YAML, either bare (`loom.yaml`, `weave.yaml`) or as the
frontmatter of a Markdown file (Strands). Either way the schema may be wrapped
one level deeper under an `openstrand` key:

---
openstrand:
  version: '1.0'
  kind: Strand
  title: Intro
---
Body text

Parsing runs decode -> unwrap -> migrate -> validate and never raises: every
problem comes back on the `ParseResult`. Serializing is the inverse and always
writes the wrapped form.
"""

from pathlib import Path
from typing import Any, Dict, Optional

from strif import atomic_output_file

from openstrand.config.logger import get_logger
from openstrand.config.settings import global_settings
from openstrand.errors import FileFormatError
from openstrand.file_formats.frontmatter import has_frontmatter, join_frontmatter, split_frontmatter
from openstrand.file_formats.yaml_util import decode_yaml, to_yaml_string
from openstrand.model.schema_model import (
    LoomSchema,
    OpenStrandSchema,
    ParseResult,
    SchemaKind,
    StrandSchema,
    ValidationIssue,
    WeaveSchema,
)
from openstrand.model.values import YamlValue
from openstrand.schema.icons import IconRegistry
from openstrand.schema.migration import migrate_schema
from openstrand.schema.validator import validate_schema

log = get_logger(__name__)


ENVELOPE_KEY = "openstrand"

LOOM_FILENAMES = ("loom.yaml", "loom.yml")
WEAVE_FILENAMES = ("weave.yaml", "weave.yml")
MARKDOWN_SUFFIXES = (".md", ".mdx")


def unwrap_envelope(value: YamlValue) -> YamlValue:
    """
    Return the schema inside an `openstrand:` envelope, or the value itself if it
    isn't wrapped.
    """
    if isinstance(value, dict) and isinstance(value.get(ENVELOPE_KEY), dict):
        return value[ENVELOPE_KEY]
    return value


def parse_schema(
    text: str, icons: Optional[IconRegistry] = None
) -> ParseResult[OpenStrandSchema]:
    """
    Parse a YAML document of any kind, wrapped or bare.
    """
    value, error = decode_yaml(text)
    if error:
        return ParseResult.failed([ValidationIssue("", error)])
    if value is None:
        return ParseResult.failed([ValidationIssue("", "Empty document")])

    return validate_schema(migrate_schema(unwrap_envelope(value)), icons)


def _expect_kind(result: ParseResult, kind: SchemaKind) -> ParseResult:
    if not result.success or result.data is None or result.data.kind == kind:
        return result
    got = result.data.kind
    return ParseResult.failed(
        [ValidationIssue("kind", f"Expected {kind} schema, got {got}", str(got))],
        result.warnings,
        body=result.body,
    )


def parse_loom_schema(text: str, icons: Optional[IconRegistry] = None) -> ParseResult[LoomSchema]:
    return _expect_kind(parse_schema(text, icons), SchemaKind.loom)


def parse_weave_schema(
    text: str, icons: Optional[IconRegistry] = None
) -> ParseResult[WeaveSchema]:
    return _expect_kind(parse_schema(text, icons), SchemaKind.weave)


def _strip_separator_line(body: str) -> str:
    if body.startswith("\r\n"):
        return body[2:]
    elif body.startswith("\n"):
        return body[1:]
    return body


def parse_strand_frontmatter(
    markdown: str, icons: Optional[IconRegistry] = None
) -> ParseResult[StrandSchema]:
    """
    Parse a Markdown document whose frontmatter is a Strand. Frontmatter is
    required. The body is returned on the result whether or not parsing
    succeeded (the whole document if there was no frontmatter). One blank line
    right after the closing `---` separates frontmatter from body and is not
    part of the body.
    """
    fm = split_frontmatter(markdown)
    if not fm:
        return ParseResult.failed(
            [ValidationIssue("", "No frontmatter found in Markdown")], body=markdown
        )

    result = parse_schema(fm.frontmatter_text, icons)
    result.body = _strip_separator_line(fm.body_text)
    return _expect_kind(result, SchemaKind.strand)


def parse_document(
    text: str, kind: SchemaKind, icons: Optional[IconRegistry] = None
) -> ParseResult[OpenStrandSchema]:
    """
    Parse a document expected to be of the given kind. Strands may be Markdown
    with frontmatter or bare YAML.
    """
    match kind:
        case SchemaKind.loom:
            return parse_loom_schema(text, icons)
        case SchemaKind.weave:
            return parse_weave_schema(text, icons)
        case SchemaKind.strand:
            if has_frontmatter(text):
                return parse_strand_frontmatter(text, icons)
            return _expect_kind(parse_schema(text, icons), SchemaKind.strand)


def is_loom_schema(schema: OpenStrandSchema) -> bool:
    return schema.kind == SchemaKind.loom


def is_weave_schema(schema: OpenStrandSchema) -> bool:
    return schema.kind == SchemaKind.weave


def is_strand_schema(schema: OpenStrandSchema) -> bool:
    return schema.kind == SchemaKind.strand


def serialize_schema(
    schema: OpenStrandSchema, as_frontmatter: bool = False, include_version: bool = True
) -> str:
    """
    Serialize a schema to YAML. With `as_frontmatter` the schema is wrapped in an
    `openstrand:` envelope. With `include_version` the version is always written,
    defaulting to the current one.
    """
    data: Dict[str, Any] = schema.to_dict()
    if include_version:
        data = {"version": schema.version or global_settings().schema_version, **data}
    if as_frontmatter:
        data = {ENVELOPE_KEY: data}
    return to_yaml_string(data)


def generate_markdown_with_frontmatter(schema: StrandSchema, body: str) -> str:
    """
    A complete Markdown document: the schema as frontmatter, a blank line, then the body.
    """
    return join_frontmatter(serialize_schema(schema, as_frontmatter=True), body)


def _is_markdown(path: Path) -> bool:
    return path.suffix.lower() in MARKDOWN_SUFFIXES


def detect_schema_kind(
    file_path: str | Path, content: Optional[str] = None
) -> Optional[SchemaKind]:
    """
    Kind of a schema file: `loom.yaml` and `weave.yaml` by name, Markdown files
    are Strands, and anything else by the `kind` in its content. Returns None
    if the kind can't be determined.
    """
    path = Path(file_path)
    name = path.name.lower()
    if name in LOOM_FILENAMES:
        return SchemaKind.loom
    if name in WEAVE_FILENAMES:
        return SchemaKind.weave
    if _is_markdown(path):
        return SchemaKind.strand

    if content:
        fm = split_frontmatter(content)
        value, _error = decode_yaml(fm.frontmatter_text if fm else content)
        value = unwrap_envelope(value)
        if isinstance(value, dict):
            try:
                return SchemaKind(value.get("kind"))
            except ValueError:
                pass

    return None


def read_schema_file(path: str | Path, icons: Optional[IconRegistry] = None) -> ParseResult:
    """
    Read and parse a schema file, detecting its kind. File errors raise as usual
    and a file that isn't UTF-8 text raises `FileFormatError`. Content problems
    are reported on the result.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise FileFormatError(f"Not a UTF-8 text file: {path}: {e}") from e

    if _is_markdown(path):
        result = parse_strand_frontmatter(text, icons)
    else:
        kind = detect_schema_kind(path, text)
        result = parse_document(text, kind, icons) if kind else parse_schema(text, icons)

    log.debug("Read %s: success=%s", path, result.success)
    return result


def write_schema_file(
    path: str | Path, schema: OpenStrandSchema, body: Optional[str] = None
) -> None:
    """
    Write a schema to a file atomically. Markdown files (or any file when a body
    is given) get the schema as frontmatter followed by the body. Other files
    get bare YAML.
    """
    path = Path(path)
    if body is not None or _is_markdown(path):
        text = generate_markdown_with_frontmatter(schema, body or "")  # type: ignore
    else:
        text = serialize_schema(schema)

    with atomic_output_file(path, make_parents=True) as temp_path:
        Path(temp_path).write_text(text, encoding="utf-8")

    log.debug("Wrote %s schema: %s", schema.kind, path)


## Tests


def test_envelope_forms_agree():
    bare = "kind: Loom\nmetadata:\n  name: Research\n"
    wrapped = "openstrand:\n  kind: Loom\n  metadata:\n    name: Research\n"
    assert parse_schema(bare).data == parse_schema(wrapped).data
    assert parse_schema(bare).success


def test_decode_and_empty_errors():
    result = parse_schema("kind: Loom\nmetadata: [unclosed\n")
    assert not result.success
    assert len(result.errors) == 1 and result.errors[0].path == ""
    assert result.errors[0].message.startswith("Failed to parse YAML")

    result = parse_schema("")
    assert [e.message for e in result.errors] == ["Empty document"]


def test_kind_mismatch():
    result = parse_loom_schema("kind: Weave\nmetadata:\n  name: Graph\n")
    assert not result.success
    assert [str(e) for e in result.errors] == ["kind: Expected Loom schema, got Weave"]

    assert parse_weave_schema("kind: Weave\nmetadata:\n  name: Graph\n").success

    weave = parse_document("kind: Weave\nmetadata:\n  name: Graph\n", SchemaKind.weave).data
    assert weave and is_weave_schema(weave)
    assert not is_loom_schema(weave) and not is_strand_schema(weave)


def test_strand_frontmatter():
    result = parse_strand_frontmatter("---\nkind: Strand\ntitle: Intro\n---\nBody text")
    assert result.success
    assert isinstance(result.data, StrandSchema) and result.data.title == "Intro"
    assert result.body == "Body text"

    result = parse_strand_frontmatter("# Just a heading\n\nBody text")
    assert not result.success
    assert result.errors[0].message == "No frontmatter found in Markdown"
    assert result.body == "# Just a heading\n\nBody text"

    result = parse_strand_frontmatter("---\nkind: Strand\ndifficulty: 9\n---\nBody")
    assert not result.success and result.body == "Body"

    result = parse_strand_frontmatter("---\nkind: Loom\nmetadata:\n  name: X\n---\nBody")
    assert [e.path for e in result.errors] == ["kind"]
    assert result.body == "Body"


def test_serialize_and_markdown():
    strand = StrandSchema(title="Intro", tags=["a"])
    text = serialize_schema(strand)
    assert text.splitlines()[:2] == ["version: '1.0'", "kind: Strand"]
    assert serialize_schema(strand) == text
    assert "version" not in serialize_schema(strand, include_version=False)

    doc = generate_markdown_with_frontmatter(strand, "Body text")
    assert doc.startswith("---\nopenstrand:\n  version: '1.0'\n  kind: Strand\n")
    assert doc.endswith("---\n\nBody text")
    result = parse_strand_frontmatter(doc)
    assert result.success and result.data == StrandSchema(version="1.0", title="Intro", tags=["a"])
    assert result.body == "Body text"


def test_markdown_body_stable_across_cycles():
    strand = StrandSchema(version="1.0", title="Intro")
    doc = generate_markdown_with_frontmatter(strand, "Body text")
    for _ in range(3):
        result = parse_strand_frontmatter(doc)
        assert result.success and result.body == "Body text"
        regenerated = generate_markdown_with_frontmatter(result.data, result.body)  # type: ignore
        assert regenerated == doc
        doc = regenerated

    # Only one separator line is dropped; further blank lines belong to the body.
    result = parse_strand_frontmatter("---\nkind: Strand\n---\n\n\nBody")
    assert result.body == "\nBody"
    result = parse_strand_frontmatter("---\r\nkind: Strand\r\n---\r\n\r\nBody\r\n")
    assert result.success and result.body == "Body\r\n"


def test_detect_schema_kind():
    assert detect_schema_kind("/content/loom.yaml") == SchemaKind.loom
    assert detect_schema_kind("Weave.YML") == SchemaKind.weave
    assert detect_schema_kind("notes/intro.md") == SchemaKind.strand
    assert detect_schema_kind("notes/intro.mdx", "kind: Loom") == SchemaKind.strand
    assert detect_schema_kind("graph.yaml", "kind: Weave\n") == SchemaKind.weave
    assert detect_schema_kind("x.yaml", "openstrand:\n  kind: Strand\n") == SchemaKind.strand
    assert detect_schema_kind("x.yaml", "kind: Thread\n") is None
    assert detect_schema_kind("x.yaml", "[unclosed") is None
    assert detect_schema_kind("x.yaml") is None


def test_schema_files(tmp_path):
    loom = LoomSchema.from_dict({"kind": "Loom", "metadata": {"name": "Research"}})
    loom_path = tmp_path / "research" / "loom.yaml"
    write_schema_file(loom_path, loom)
    result = read_schema_file(loom_path)
    assert result.success and isinstance(result.data, LoomSchema)
    assert result.data.metadata.name == "Research"

    strand = StrandSchema(version="1.0", title="Intro")
    md_path = tmp_path / "intro.md"
    write_schema_file(md_path, strand, body="Hello\n")
    assert md_path.read_text() == generate_markdown_with_frontmatter(strand, "Hello\n")
    result = read_schema_file(md_path)
    assert result.success and result.data == strand
    assert result.body == "Hello\n"

    bad_path = tmp_path / "binary.yaml"
    bad_path.write_bytes(b"kind: Loom\n\xff\xfe")
    try:
        read_schema_file(bad_path)
        assert False, "expected FileFormatError"
    except FileFormatError as e:
        assert "binary.yaml" in str(e)
