"""
Validation of decoded documents into typed schemas.

The document's `kind` picks one of three validation routines. Each routine
checks required fields first (skipping the rest of a group when a required
field is missing), then type-checks optional fields that are present, then
applies semantic checks: allowed values, ranges, lengths, colors, URLs and
icons. Every problem is collected so a caller can show them all at once.
Unknown fields are ignored.
"""

from typing import Any, Callable, cast, Dict, Optional

from openstrand.config.logger import get_logger
from openstrand.config.settings import global_settings, update_global_settings
from openstrand.model.schema_model import (
    ClusteringAlgorithm,
    EdgeCurveStyle,
    GraphLayout,
    LearningPhase,
    LoomSchema,
    LoomUseCase,
    OpenStrandSchema,
    ParseResult,
    schema_class,
    SchemaKind,
    ScopeType,
    StrandClassification,
    StrandSchema,
    StrandType,
    ValidationIssue,
    Visibility,
    WeaveSchema,
)
from openstrand.model.values import (
    display_value,
    is_mapping,
    join_path,
    non_string_keys,
    type_name,
    YamlValue,
)
from openstrand.schema.checks import ValidationContext
from openstrand.schema.icons import default_icon_registry, IconRegistry

log = get_logger(__name__)


STYLE_COLOR_FIELDS = ["backgroundColor", "accentColor", "textColor", "borderColor"]
WEAVE_STYLE_COLOR_FIELDS = STYLE_COLOR_FIELDS + ["nodeColor", "edgeColor"]
STYLE_URL_FIELDS = ["thumbnail", "coverImage", "backgroundImage"]

NAME_MAX_LENGTH = 255
TITLE_MAX_LENGTH = 500


def _check_version(ctx: ValidationContext, data: Dict[str, Any]) -> None:
    version = data.get("version")
    if version is None:
        return
    current = global_settings().schema_version
    if not isinstance(version, str):
        ctx.error("version", f"Expected string, got {type_name(version)}", version)
    elif version != current:
        ctx.error("version", f'Invalid version: "{version}". Allowed values: {current}', version)


def _check_style(
    ctx: ValidationContext, style: Dict[str, Any], path: str, color_fields=STYLE_COLOR_FIELDS
) -> None:
    if style.get("icon") is not None:
        ctx.icon(style["icon"], join_path(path, "icon"))
    for key in color_fields:
        if style.get(key) is not None:
            ctx.color(style[key], join_path(path, key))
    for key in STYLE_URL_FIELDS:
        if style.get(key) is not None:
            ctx.url(style[key], join_path(path, key))
    if style.get("borderRadius") is not None:
        ctx.string(style["borderRadius"], join_path(path, "borderRadius"))
    if style.get("opacity") is not None:
        ctx.number(style["opacity"], join_path(path, "opacity"), min=0, max=1)
    if style.get("blur") is not None:
        ctx.number(style["blur"], join_path(path, "blur"), min=0)
    if style.get("gradient") is not None:
        ctx.string(style["gradient"], join_path(path, "gradient"))


def _check_metadata(
    ctx: ValidationContext, data: Dict[str, Any], optional_name_field: str
) -> Optional[Dict[str, Any]]:
    """
    Shared Loom and Weave metadata checks. Returns the metadata group so callers
    can check their own fields, or None if the group was unusable.
    """
    if not ctx.require(data, "metadata", ""):
        return None
    metadata = ctx.group(data, "metadata")
    if metadata is None:
        return None
    if not ctx.require(metadata, "name", "metadata"):
        return None

    ctx.string(metadata["name"], "metadata.name", min_length=1, max_length=NAME_MAX_LENGTH)
    if metadata.get(optional_name_field) is not None:
        ctx.string(
            metadata[optional_name_field],
            join_path("metadata", optional_name_field),
            max_length=NAME_MAX_LENGTH,
        )
    if metadata.get("description") is not None:
        ctx.string(metadata["description"], "metadata.description")
    if metadata.get("icon") is not None:
        ctx.icon(metadata["icon"], "metadata.icon")
    return metadata


def _check_loom(ctx: ValidationContext, data: Dict[str, Any]) -> None:
    metadata = _check_metadata(ctx, data, "slug")
    if metadata and metadata.get("useCase") is not None:
        ctx.enum(metadata["useCase"], "metadata.useCase", LoomUseCase, "use case")

    style = ctx.group(data, "style")
    if style is not None:
        _check_style(ctx, style, "style")

    scope = ctx.group(data, "scope")
    if scope is not None:
        if scope.get("type") is not None:
            ctx.enum(scope["type"], "scope.type", ScopeType, "scope type")
        if scope.get("visibility") is not None:
            ctx.enum(scope["visibility"], "scope.visibility", Visibility, "visibility")
        if scope.get("autoApprove") is not None:
            ctx.boolean(scope["autoApprove"], "scope.autoApprove")

    content = ctx.group(data, "content")
    if content is not None:
        if content.get("rootPath") is not None:
            ctx.string(content["rootPath"], "content.rootPath")
        for key in ["includes", "excludes"]:
            if content.get(key) is not None:
                ctx.string_list(content[key], join_path("content", key))

    if data.get("tags") is not None:
        ctx.string_list(data["tags"], "tags")

    team = ctx.group(data, "team")
    if team is not None:
        if team.get("id") is not None:
            ctx.string(team["id"], "team.id")
        if team.get("collaborators") is not None:
            ctx.string_list(team["collaborators"], "team.collaborators")


def _check_weave(ctx: ValidationContext, data: Dict[str, Any]) -> None:
    _check_metadata(ctx, data, "domain")

    style = ctx.group(data, "style")
    if style is not None:
        _check_style(ctx, style, "style", color_fields=WEAVE_STYLE_COLOR_FIELDS)

    graph = ctx.group(data, "graph")
    if graph is not None:
        if graph.get("layout") is not None:
            ctx.enum(graph["layout"], "graph.layout", GraphLayout, "layout")

        physics = ctx.group(graph, "physics", "graph")
        if physics is not None:
            if physics.get("enabled") is not None:
                ctx.boolean(physics["enabled"], "graph.physics.enabled")
            for key in ["gravity", "springLength", "springConstant"]:
                if physics.get(key) is not None:
                    ctx.number(physics[key], join_path("graph.physics", key))

        clustering = ctx.group(graph, "clustering", "graph")
        if clustering is not None:
            if clustering.get("enabled") is not None:
                ctx.boolean(clustering["enabled"], "graph.clustering.enabled")
            if clustering.get("algorithm") is not None:
                ctx.enum(
                    clustering["algorithm"],
                    "graph.clustering.algorithm",
                    ClusteringAlgorithm,
                    "clustering algorithm",
                )

    nodes = ctx.group(data, "nodes")
    if nodes is not None:
        for key in ["defaultSize", "labelTruncate"]:
            if nodes.get(key) is not None:
                ctx.number(nodes[key], join_path("nodes", key), min=0)
        for key in ["sizeByImportance", "colorByCluster", "showLabels"]:
            if nodes.get(key) is not None:
                ctx.boolean(nodes[key], join_path("nodes", key))

    edges = ctx.group(data, "edges")
    if edges is not None:
        if edges.get("defaultWidth") is not None:
            ctx.number(edges["defaultWidth"], "edges.defaultWidth", min=0)
        for key in ["widthByWeight", "showArrows"]:
            if edges.get(key) is not None:
                ctx.boolean(edges[key], join_path("edges", key))
        if edges.get("curveStyle") is not None:
            ctx.enum(edges["curveStyle"], "edges.curveStyle", EdgeCurveStyle, "curve style")

    visibility = ctx.group(data, "visibility")
    if visibility is not None:
        if visibility.get("isPublic") is not None:
            ctx.boolean(visibility["isPublic"], "visibility.isPublic")
        if visibility.get("contributors") is not None:
            ctx.string_list(visibility["contributors"], "visibility.contributors")


def _check_strand(ctx: ValidationContext, data: Dict[str, Any]) -> None:
    # No required fields.
    if data.get("title") is not None:
        ctx.string(data["title"], "title", max_length=TITLE_MAX_LENGTH)
    if data.get("type") is not None:
        ctx.enum(data["type"], "type", StrandType, "strand type")
    if data.get("classification") is not None:
        ctx.enum(data["classification"], "classification", StrandClassification, "classification")
    if data.get("parent") is not None:
        ctx.string(data["parent"], "parent")
    if data.get("order") is not None:
        ctx.number(data["order"], "order", min=0)
    if data.get("tags") is not None:
        ctx.string_list(data["tags"], "tags")
    if data.get("difficulty") is not None:
        ctx.number(data["difficulty"], "difficulty", min=1, max=5)
    if data.get("estimatedDuration") is not None:
        ctx.number(data["estimatedDuration"], "estimatedDuration", min=0)

    learning = ctx.group(data, "learning")
    if learning is not None:
        if learning.get("phase") is not None:
            ctx.enum(learning["phase"], "learning.phase", LearningPhase, "learning phase")
        if learning.get("prerequisites") is not None:
            ctx.string_list(learning["prerequisites"], "learning.prerequisites")

    style = ctx.group(data, "style")
    if style is not None:
        if style.get("icon") is not None:
            ctx.icon(style["icon"], "style.icon")
        if style.get("accentColor") is not None:
            ctx.color(style["accentColor"], "style.accentColor")


def _drop_nulls(value: YamlValue) -> YamlValue:
    """
    Null fields count as absent, so they don't reach the typed records.
    """
    if isinstance(value, dict):
        return {k: _drop_nulls(v) for k, v in value.items() if v is not None}
    return value


def _validate_kind(
    value: Dict[str, Any],
    kind: SchemaKind,
    icons: Optional[IconRegistry],
    check: Callable[[ValidationContext, Dict[str, Any]], None],
) -> ParseResult:
    ctx = ValidationContext(icons or default_icon_registry())
    _check_version(ctx, value)
    check(ctx, value)
    for path, key in non_string_keys(value):
        ctx.error(path, f"Field names must be strings, got {type_name(key)}", key)

    log.debug("Validated %s: %s errors, %s warnings", kind, len(ctx.errors), len(ctx.warnings))
    if ctx.errors:
        return ParseResult.failed(ctx.errors, ctx.warnings)

    schema = schema_class(kind).from_dict(_drop_nulls(value))  # type: ignore
    return ParseResult.ok(schema, ctx.warnings)


def validate_loom(
    value: Dict[str, Any], icons: Optional[IconRegistry] = None
) -> ParseResult[LoomSchema]:
    """
    Validate a Loom document (its `kind` is not checked here).
    """
    return _validate_kind(value, SchemaKind.loom, icons, _check_loom)


def validate_weave(
    value: Dict[str, Any], icons: Optional[IconRegistry] = None
) -> ParseResult[WeaveSchema]:
    """
    Validate a Weave document (its `kind` is not checked here).
    """
    return _validate_kind(value, SchemaKind.weave, icons, _check_weave)


def validate_strand(
    value: Dict[str, Any], icons: Optional[IconRegistry] = None
) -> ParseResult[StrandSchema]:
    """
    Validate a Strand document (its `kind` is not checked here).
    """
    return _validate_kind(value, SchemaKind.strand, icons, _check_strand)


def validate_schema(
    value: YamlValue, icons: Optional[IconRegistry] = None
) -> ParseResult[OpenStrandSchema]:
    """
    Validate any decoded document and return the typed schema, or every error
    found. Never raises. Without a usable `kind` there is a single error and no
    further checks.
    """
    if not is_mapping(value):
        return ParseResult.failed(
            [ValidationIssue("", f"Expected an object, got {type_name(value)}", value)]
        )
    value = cast(Dict[str, Any], value)

    kind_value = value.get("kind")
    if kind_value is None:
        return ParseResult.failed([ValidationIssue("kind", 'Required field "kind" is missing')])
    try:
        kind = SchemaKind(kind_value)
    except ValueError:
        return ParseResult.failed(
            [
                ValidationIssue(
                    "kind",
                    f'Invalid kind: "{display_value(kind_value)}". Must be Loom, Weave, or Strand',
                    kind_value,
                )
            ]
        )

    match kind:
        case SchemaKind.loom:
            return validate_loom(value, icons)
        case SchemaKind.weave:
            return validate_weave(value, icons)
        case SchemaKind.strand:
            return validate_strand(value, icons)


## Tests


def test_kind_dispatch():
    result = validate_schema({"metadata": {"name": "X"}})
    assert not result.success
    assert [str(e) for e in result.errors] == ['kind: Required field "kind" is missing']

    result = validate_schema({"kind": "Thread", "metadata": {"name": ""}})
    assert len(result.errors) == 1
    assert result.errors[0].message == 'Invalid kind: "Thread". Must be Loom, Weave, or Strand'

    for value in [None, "kind: Loom", ["Loom"], 3]:
        result = validate_schema(value)
        assert not result.success
        assert len(result.errors) == 1 and result.errors[0].path == ""


def test_loom_validation():
    result = validate_schema(
        {
            "version": "1.0",
            "kind": "Loom",
            "metadata": {"name": "Research", "icon": "book", "useCase": "research"},
            "style": {"accentColor": "#22c55e", "opacity": 0.8, "coverImage": "/covers/r.png"},
            "scope": {"type": "PROJECT", "visibility": "team", "autoApprove": False},
            "content": {"rootPath": "research/", "includes": ["**/*.md"]},
            "tags": ["ml"],
            "team": {"id": "t1", "collaborators": ["ana"]},
        }
    )
    assert result.success, result.errors
    loom = result.data
    assert isinstance(loom, LoomSchema)
    assert loom.metadata.name == "Research"
    assert loom.scope and loom.scope.visibility == Visibility.team
    assert loom.content and loom.content.includes == ["**/*.md"]
    assert not result.warnings


def test_loom_errors_accumulate():
    result = validate_schema(
        {
            "kind": "Loom",
            "metadata": {"name": "", "useCase": "gaming", "slug": 7},
            "style": {"accentColor": "chartreuse", "opacity": 2, "thumbnail": "cover.png"},
            "scope": "team",
            "tags": ["a", 1],
        }
    )
    assert not result.success
    assert [e.path for e in result.errors] == [
        "metadata.name",
        "metadata.slug",
        "metadata.useCase",
        "style.accentColor",
        "style.thumbnail",
        "style.opacity",
        "scope",
        "tags[1]",
    ]
    assert result.errors[2].message == (
        'Invalid use case: "gaming". Allowed values: storytelling, worldbuilding, research, '
        "notebook, documentation, education, custom"
    )


def test_required_short_circuit():
    result = validate_schema({"kind": "Weave", "metadata": {"icon": "not-an-icon", "domain": 3}})
    assert [str(e) for e in result.errors] == ['metadata.name: Required field "name" is missing']
    assert not result.warnings

    result = validate_schema({"kind": "Loom", "metadata": "X", "tags": "a"})
    assert [e.path for e in result.errors] == ["metadata", "tags"]

    result = validate_schema({"kind": "Loom"})
    assert [str(e) for e in result.errors] == ['metadata: Required field "metadata" is missing']


def test_weave_validation():
    result = validate_schema(
        {
            "kind": "Weave",
            "metadata": {"name": "Concepts", "icon": "sparkles"},
            "style": {"nodeColor": "rgb(10, 20, 30)", "edgeColor": "hsla(1, 2%, 3%, 0.4)"},
            "graph": {
                "layout": "radial",
                "physics": {"enabled": True, "gravity": -0.5, "springLength": 120},
                "clustering": {"enabled": True, "algorithm": "louvain"},
            },
            "nodes": {"defaultSize": 8, "showLabels": True},
            "edges": {"defaultWidth": 1.5, "curveStyle": "bezier"},
            "visibility": {"isPublic": True, "contributors": ["ana"]},
        }
    )
    assert result.success, result.errors
    weave = result.data
    assert isinstance(weave, WeaveSchema)
    assert weave.graph and weave.graph.layout == GraphLayout.radial
    assert weave.graph.physics and weave.graph.physics.spring_length == 120
    assert weave.edges and weave.edges.curve_style == EdgeCurveStyle.bezier

    result = validate_schema(
        {
            "kind": "Weave",
            "metadata": {"name": "Concepts"},
            "graph": {"layout": "circle", "clustering": "louvain"},
            "nodes": {"defaultSize": -1, "showLabels": "yes"},
            "edges": {"curveStyle": "zigzag"},
        }
    )
    assert [e.path for e in result.errors] == [
        "graph.layout",
        "graph.clustering",
        "nodes.defaultSize",
        "nodes.showLabels",
        "edges.curveStyle",
    ]


def test_strand_validation():
    result = validate_schema({"kind": "Strand", "difficulty": 6})
    assert not result.success
    assert result.errors[0].path == "difficulty"
    assert result.errors[0].message == "Number must be at most 5"
    assert result.errors[0].value == 6

    result = validate_schema({"kind": "Strand", "difficulty": 3})
    assert result.success
    assert isinstance(result.data, StrandSchema) and result.data.difficulty == 3

    result = validate_schema(
        {
            "kind": "Strand",
            "title": "x" * 501,
            "order": True,
            "learning": {"phase": "expert", "prerequisites": ["a", None]},
            "style": {"icon": "unicorn", "accentColor": "#abc"},
        }
    )
    assert [e.path for e in result.errors] == [
        "title",
        "order",
        "learning.phase",
        "learning.prerequisites[1]",
    ]
    assert [w.path for w in result.warnings] == ["style.icon"]


def test_icon_warning_vs_enum_error():
    result = validate_schema({"kind": "Loom", "metadata": {"name": "X", "icon": "unicorn"}})
    assert result.success
    assert [w.message for w in result.warnings] == [
        'Icon "unicorn" not found in preset registry. Will use default.'
    ]

    result = validate_schema({"kind": "Loom", "metadata": {"name": "X", "useCase": "unicorn"}})
    assert not result.success


def test_version_and_unknown_fields():
    result = validate_schema({"version": 1.0, "kind": "Strand"})
    assert [str(e) for e in result.errors] == ["version: Expected string, got number"]

    result = validate_schema({"version": "2.0", "kind": "Strand"})
    assert not result.success

    result = validate_schema(
        {"kind": "Strand", "title": "A", "customField": {"x": 1}, "style": {"shadow": "big"}}
    )
    assert result.success and not result.errors and not result.warnings
    assert isinstance(result.data, StrandSchema)
    assert result.data.extra == {"customField": {"x": 1}}


def test_non_string_field_names():
    result = validate_schema({"kind": "Strand", "title": "Intro", 2024: "notes"})
    assert not result.success
    assert [str(e) for e in result.errors] == ["2024: Field names must be strings, got number"]

    result = validate_schema({"kind": "Strand", "notes": {1: "a", "ok": {True: "b"}}})
    assert [e.path for e in result.errors] == ["notes.1", "notes.ok.true"]
    assert result.errors[1].message == "Field names must be strings, got boolean"


def test_nan_is_not_a_number():
    result = validate_schema({"kind": "Strand", "style": {"opacity": float("nan")}})
    assert [str(e) for e in result.errors] == ["style.opacity: Expected number, got NaN"]


def test_version_follows_settings():
    previous = global_settings().schema_version
    try:
        with update_global_settings() as settings:
            settings.schema_version = "2.0"
        assert validate_schema({"version": "2.0", "kind": "Strand"}).success
        result = validate_schema({"version": "1.0", "kind": "Strand"})
        assert [str(e) for e in result.errors] == [
            'version: Invalid version: "1.0". Allowed values: 2.0'
        ]
    finally:
        with update_global_settings() as settings:
            settings.schema_version = previous
