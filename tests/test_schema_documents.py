"""
Parsing, validating and serializing whole documents, across modules.
"""

from textwrap import dedent

from openstrand.config.settings import global_settings, update_global_settings
from openstrand.file_formats.yaml_util import from_yaml_string
from openstrand.model.schema_model import LoomSchema, SchemaKind, StrandSchema, WeaveSchema
from openstrand.schema.migration import migrate_schema
from openstrand.schema.parser import (
    parse_loom_schema,
    parse_schema,
    parse_strand_frontmatter,
    parse_weave_schema,
    serialize_schema,
    unwrap_envelope,
)

LOOM_DOC = dedent(
    """
    version: '1.0'
    kind: Loom
    metadata:
      name: Research Notes
      slug: research-notes
      description: Papers and reading notes
      icon: microscope
      useCase: research
    style:
      accentColor: '#22c55e'
      coverImage: https://example.com/cover.png
      opacity: 0.9
    scope:
      type: PROJECT
      visibility: team
      autoApprove: false
    content:
      rootPath: research/
      includes: ['**/*.md']
      excludes: [drafts/**]
    tags: [ml, papers]
    team:
      id: lab
      collaborators: [ana, ben]
    x-origin: imported
    """
)

WEAVE_DOC = dedent(
    """
    version: '1.0'
    kind: Weave
    metadata:
      name: Biology
      domain: bio
      icon: dna
    style:
      nodeColor: rgb(10, 20, 30)
      edgeColor: hsl(200, 50%, 40%)
    graph:
      layout: force-directed
      physics:
        enabled: true
        gravity: -30
        springLength: 120
      clustering:
        enabled: true
        algorithm: louvain
    nodes:
      defaultSize: 12
      showLabels: true
    edges:
      defaultWidth: 1.5
      curveStyle: bezier
    visibility:
      isPublic: false
      contributors: [ana]
    """
)

STRAND_DOC = dedent(
    """
    version: '1.0'
    kind: Strand
    title: Cell Structure
    type: document
    classification: lesson
    parent: biology/intro
    order: 2
    tags: [cells]
    difficulty: 3
    estimatedDuration: 25
    learning:
      phase: core
      prerequisites: [biology/what-is-life]
    style:
      icon: microscope
      accentColor: '#0ea5e9'
    """
)


def test_round_trip_each_kind():
    for text, cls in [(LOOM_DOC, LoomSchema), (WEAVE_DOC, WeaveSchema), (STRAND_DOC, StrandSchema)]:
        result = parse_schema(text)
        assert result.success, result.errors
        assert isinstance(result.data, cls)
        assert not result.warnings

        for as_frontmatter in [False, True]:
            encoded = serialize_schema(result.data, as_frontmatter=as_frontmatter)
            assert serialize_schema(result.data, as_frontmatter=as_frontmatter) == encoded
            reparsed = parse_schema(encoded)
            assert reparsed.success and reparsed.data == result.data

            value = unwrap_envelope(from_yaml_string(encoded))
            assert value == result.data.to_dict()


def test_unknown_top_level_fields_survive():
    result = parse_loom_schema(LOOM_DOC)
    assert result.data and result.data.extra == {"x-origin": "imported"}
    assert "x-origin: imported" in serialize_schema(result.data)


def test_difficulty_bounds():
    result = parse_schema("kind: Strand\ndifficulty: 6")
    assert not result.success
    assert [e.path for e in result.errors] == ["difficulty"]
    assert "at most 5" in result.errors[0].message

    result = parse_schema("kind: Strand\ndifficulty: 0")
    assert [e.message for e in result.errors] == ["Number must be at least 1"]

    result = parse_schema("kind: Strand\ndifficulty: 3")
    assert result.success
    assert isinstance(result.data, StrandSchema) and result.data.difficulty == 3


def test_frontmatter_document():
    result = parse_strand_frontmatter("---\nkind: Strand\ntitle: Intro\n---\nBody text")
    assert result.success
    assert result.data == StrandSchema(title="Intro")
    assert result.body == "Body text"

    result = parse_strand_frontmatter("kind: Strand\ntitle: Intro\n\nBody text")
    assert not result.success
    assert "No frontmatter found" in result.errors[0].message
    assert result.body == "kind: Strand\ntitle: Intro\n\nBody text"


def test_kind_mismatch_is_not_a_field_error():
    result = parse_loom_schema(WEAVE_DOC)
    assert not result.success
    assert len(result.errors) == 1
    assert result.errors[0].path == "kind"
    assert result.errors[0].message == "Expected Loom schema, got Weave"

    result = parse_weave_schema(STRAND_DOC)
    assert [str(e) for e in result.errors] == ["kind: Expected Weave schema, got Strand"]


def test_all_errors_reported_at_once():
    doc = dedent(
        """
        kind: Weave
        metadata:
          name: 42
          domain: bio
        graph:
          layout: spiral
          physics: {gravity: strong}
        nodes:
          showLabels: 'yes'
        edges:
          defaultWidth: -1
        visibility:
          contributors: [ana, 7]
        """
    )
    result = parse_schema(doc)
    assert not result.success
    assert [e.path for e in result.errors] == [
        "metadata.name",
        "graph.layout",
        "graph.physics.gravity",
        "nodes.showLabels",
        "edges.defaultWidth",
        "visibility.contributors[1]",
    ]
    assert result.errors[0].message == "Expected string, got number"


def test_missing_required_fields():
    result = parse_schema("kind: Loom\ntags: [a]\n")
    assert [str(e) for e in result.errors] == ['metadata: Required field "metadata" is missing']

    result = parse_schema("kind: Loom\nmetadata:\n  description: no name\ntags: [a, 1]\n")
    assert [e.path for e in result.errors] == ["metadata.name", "tags[1]"]


def test_unknown_icon_warns_but_bad_enum_fails():
    result = parse_schema("kind: Loom\nmetadata:\n  name: X\n  icon: unicorn\n")
    assert result.success
    assert [w.path for w in result.warnings] == ["metadata.icon"]
    assert "unicorn" in result.warnings[0].message

    result = parse_schema("kind: Loom\nmetadata:\n  name: X\nscope:\n  visibility: everyone\n")
    assert not result.success
    assert [e.path for e in result.errors] == ["scope.visibility"]
    assert result.errors[0].message.startswith('Invalid visibility: "everyone".')


def test_no_coercion():
    result = parse_schema("kind: Strand\ndifficulty: '3'\norder: true\ntags: tag\n")
    assert [e.path for e in result.errors] == ["order", "tags", "difficulty"]


def test_legacy_loom_migrates_and_validates():
    result = parse_loom_schema("type: loom\nname: X\n")
    assert result.success, result.errors
    assert isinstance(result.data, LoomSchema)
    assert result.data.kind == SchemaKind.loom
    assert result.data.metadata.name == "X"
    assert result.data.version == "1.0"

    current = from_yaml_string(LOOM_DOC)
    assert migrate_schema(migrate_schema(current)) == current


def test_non_string_field_names_are_errors():
    result = parse_schema("kind: Strand\ntitle: Intro\n2024: notes\n")
    assert not result.success
    assert [str(e) for e in result.errors] == ["2024: Field names must be strings, got number"]

    result = parse_schema("kind: Strand\ntitle: Intro\nnotes:\n  1: a\n")
    assert [e.path for e in result.errors] == ["notes.1"]


def test_schema_version_from_settings():
    previous = global_settings().schema_version
    try:
        with update_global_settings() as settings:
            settings.schema_version = "2.0"
        assert serialize_schema(StrandSchema(title="Intro")).startswith("version: '2.0'\n")

        result = parse_loom_schema("type: loom\nname: X\n")
        assert result.success and result.data and result.data.version == "2.0"
        assert not parse_schema("version: '1.0'\nkind: Strand\n").success
    finally:
        with update_global_settings() as settings:
            settings.schema_version = previous
