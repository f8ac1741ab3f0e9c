"""
The data model for OpenStrand schemas: three kinds of documents (Loom, Weave
and Strand) distinguished by their `kind` field, plus the results of parsing
and validating them.

Records are plain dataclasses with snake_case field names. On the wire (YAML,
JSON exports) the same fields use camelCase keys, e.g. `use_case` <->
`useCase`. `from_dict()` trusts its input's types, so only call it on values
that have passed validation or were produced by `to_dict()`.
"""

import dataclasses
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import (
    Any,
    ClassVar,
    Dict,
    Generic,
    List,
    Optional,
    Type,
    TypeVar,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)

from openstrand.config.settings import SCHEMA_VERSION
from openstrand.model.values import YamlValue


class SchemaKind(Enum):
    """The three kinds of schema document."""

    loom = "Loom"
    weave = "Weave"
    strand = "Strand"

    def __str__(self):
        return self.value


class LoomUseCase(Enum):
    storytelling = "storytelling"
    worldbuilding = "worldbuilding"
    research = "research"
    notebook = "notebook"
    documentation = "documentation"
    education = "education"
    custom = "custom"


class ScopeType(Enum):
    """Organizational boundary of a Loom."""

    collection = "COLLECTION"
    dataset = "DATASET"
    project = "PROJECT"
    team = "TEAM"
    global_ = "GLOBAL"


class Visibility(Enum):
    private = "private"
    team = "team"
    public = "public"


class GraphLayout(Enum):
    force_directed = "force-directed"
    hierarchical = "hierarchical"
    radial = "radial"
    grid = "grid"


class ClusteringAlgorithm(Enum):
    louvain = "louvain"
    label_propagation = "label-propagation"
    spectral = "spectral"


class EdgeCurveStyle(Enum):
    bezier = "bezier"
    straight = "straight"
    step = "step"


class StrandType(Enum):
    note = "note"
    document = "document"
    dataset = "dataset"
    media = "media"
    code = "code"
    visualization = "visualization"


class StrandClassification(Enum):
    """Position of a Strand in a content hierarchy."""

    folder = "folder"
    chapter = "chapter"
    section = "section"
    lesson = "lesson"
    card = "card"


class LearningPhase(Enum):
    introduction = "introduction"
    core = "core"
    practice = "practice"
    mastery = "mastery"


def wire_name(field_name: str) -> str:
    """
    The document key for a field name: `estimated_duration` -> `estimatedDuration`.
    """
    first, *rest = field_name.split("_")
    return first + "".join(part.capitalize() for part in rest)


## Record conversion


def _convert_in(hint: Any, value: Any) -> Any:
    if value is None:
        return None
    origin = get_origin(hint)
    if origin is Union:
        (inner,) = [arg for arg in get_args(hint) if arg is not type(None)]
        return _convert_in(inner, value)
    elif origin in (list, List):
        (item_hint,) = get_args(hint)
        return [_convert_in(item_hint, item) for item in value]
    elif isinstance(hint, type) and issubclass(hint, Enum):
        return hint(value)
    elif dataclasses.is_dataclass(hint):
        return record_from_dict(hint, value)
    else:
        return value


def _convert_out(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    elif dataclasses.is_dataclass(value):
        return record_to_dict(value)
    elif isinstance(value, list):
        return [_convert_out(item) for item in value]
    else:
        return value


R = TypeVar("R")


def record_from_dict(cls: Type[R], value: Dict[str, Any]) -> R:
    """
    Build a record from a document mapping. Keys the record doesn't know are ignored.
    """
    hints = get_type_hints(cls)
    kwargs = {}
    for f in fields(cls):  # type: ignore
        if f.name == "extra":
            continue
        key = wire_name(f.name)
        if key in value:
            kwargs[f.name] = _convert_in(hints[f.name], value[key])
    return cls(**kwargs)


def record_to_dict(record: Any) -> Dict[str, Any]:
    """
    Convert a record to a document mapping, in field order, omitting unset fields.
    """
    result: Dict[str, Any] = {}
    for f in fields(record):
        if f.name == "extra":
            continue
        value = getattr(record, f.name)
        if value is not None:
            result[wire_name(f.name)] = _convert_out(value)
    return result


## Style properties


@dataclass
class StyleProperties:
    """
    Visual style shared with the rendering layer. Only the shape is checked here.
    """

    icon: Optional[str] = None
    thumbnail: Optional[str] = None
    cover_image: Optional[str] = None
    background_image: Optional[str] = None
    background_color: Optional[str] = None
    accent_color: Optional[str] = None
    text_color: Optional[str] = None
    border_color: Optional[str] = None
    border_radius: Optional[str] = None
    opacity: Optional[float] = None
    blur: Optional[float] = None
    gradient: Optional[str] = None


@dataclass
class WeaveStyleProperties(StyleProperties):
    node_color: Optional[str] = None
    edge_color: Optional[str] = None


@dataclass
class StrandStyleProperties:
    icon: Optional[str] = None
    accent_color: Optional[str] = None


## Loom


@dataclass
class LoomMetadata:
    name: str
    slug: Optional[str] = None
    description: Optional[str] = None
    icon: Optional[str] = None
    use_case: Optional[LoomUseCase] = None


@dataclass
class LoomScope:
    type: Optional[ScopeType] = None
    visibility: Optional[Visibility] = None
    auto_approve: Optional[bool] = None


@dataclass
class LoomContent:
    root_path: Optional[str] = None
    includes: Optional[List[str]] = None
    excludes: Optional[List[str]] = None


@dataclass
class LoomTeam:
    id: Optional[str] = None
    collaborators: Optional[List[str]] = None


@dataclass
class LoomSchema:
    """
    A Loom is a named collection of content, with its scope, inclusion rules and team.
    """

    kind: ClassVar[SchemaKind] = SchemaKind.loom

    metadata: LoomMetadata
    version: Optional[str] = None
    style: Optional[StyleProperties] = None
    scope: Optional[LoomScope] = None
    content: Optional[LoomContent] = None
    tags: Optional[List[str]] = None
    team: Optional[LoomTeam] = None

    # Unrecognized top-level fields, kept so documents round-trip.
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, value: Dict[str, Any]) -> "LoomSchema":
        return _schema_from_dict(cls, value)

    def to_dict(self) -> Dict[str, Any]:
        return _schema_to_dict(self)


## Weave


@dataclass
class WeaveMetadata:
    name: str
    domain: Optional[str] = None
    description: Optional[str] = None
    icon: Optional[str] = None


@dataclass
class GraphPhysics:
    enabled: Optional[bool] = None
    gravity: Optional[float] = None
    spring_length: Optional[float] = None
    spring_constant: Optional[float] = None


@dataclass
class GraphClustering:
    enabled: Optional[bool] = None
    algorithm: Optional[ClusteringAlgorithm] = None


@dataclass
class GraphConfig:
    layout: Optional[GraphLayout] = None
    physics: Optional[GraphPhysics] = None
    clustering: Optional[GraphClustering] = None


@dataclass
class NodeConfig:
    default_size: Optional[float] = None
    size_by_importance: Optional[bool] = None
    color_by_cluster: Optional[bool] = None
    show_labels: Optional[bool] = None
    label_truncate: Optional[float] = None


@dataclass
class EdgeConfig:
    default_width: Optional[float] = None
    width_by_weight: Optional[bool] = None
    show_arrows: Optional[bool] = None
    curve_style: Optional[EdgeCurveStyle] = None


@dataclass
class WeaveVisibility:
    is_public: Optional[bool] = None
    contributors: Optional[List[str]] = None


@dataclass
class WeaveSchema:
    """
    A Weave is a graph view over content, with layout, physics and display rules.
    """

    kind: ClassVar[SchemaKind] = SchemaKind.weave

    metadata: WeaveMetadata
    version: Optional[str] = None
    style: Optional[WeaveStyleProperties] = None
    graph: Optional[GraphConfig] = None
    nodes: Optional[NodeConfig] = None
    edges: Optional[EdgeConfig] = None
    visibility: Optional[WeaveVisibility] = None

    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, value: Dict[str, Any]) -> "WeaveSchema":
        return _schema_from_dict(cls, value)

    def to_dict(self) -> Dict[str, Any]:
        return _schema_to_dict(self)


## Strand


@dataclass
class StrandLearning:
    phase: Optional[LearningPhase] = None
    prerequisites: Optional[List[str]] = None


@dataclass
class StrandSchema:
    """
    A Strand is a single piece of content, usually the frontmatter of a Markdown file.
    No fields are required.
    """

    kind: ClassVar[SchemaKind] = SchemaKind.strand

    version: Optional[str] = None
    title: Optional[str] = None
    type: Optional[StrandType] = None
    classification: Optional[StrandClassification] = None
    parent: Optional[str] = None
    order: Optional[float] = None
    tags: Optional[List[str]] = None
    difficulty: Optional[float] = None
    estimated_duration: Optional[float] = None
    learning: Optional[StrandLearning] = None
    style: Optional[StrandStyleProperties] = None

    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, value: Dict[str, Any]) -> "StrandSchema":
        return _schema_from_dict(cls, value)

    def to_dict(self) -> Dict[str, Any]:
        return _schema_to_dict(self)


OpenStrandSchema = Union[LoomSchema, WeaveSchema, StrandSchema]

S = TypeVar("S", LoomSchema, WeaveSchema, StrandSchema)


def _schema_from_dict(cls: Type[S], value: Dict[str, Any]) -> S:
    schema = record_from_dict(cls, value)
    known = {"kind"} | {wire_name(f.name) for f in fields(cls) if f.name != "extra"}
    schema.extra = {k: v for k, v in value.items() if k not in known}
    return schema


def _schema_to_dict(schema: OpenStrandSchema) -> Dict[str, Any]:
    # Envelope first, then fields, then anything we didn't recognize.
    result: Dict[str, Any] = {}
    if schema.version is not None:
        result["version"] = schema.version
    result["kind"] = schema.kind.value
    for key, value in record_to_dict(schema).items():
        if key != "version":
            result[key] = value
    for key, value in schema.extra.items():
        result.setdefault(key, value)
    return result


def schema_class(kind: SchemaKind) -> Type[OpenStrandSchema]:
    match kind:
        case SchemaKind.loom:
            return LoomSchema
        case SchemaKind.weave:
            return WeaveSchema
        case SchemaKind.strand:
            return StrandSchema


def schema_from_dict(value: Dict[str, Any]) -> OpenStrandSchema:
    """
    Build the typed schema for a document mapping, dispatching on its `kind`.
    Raises `ValueError` for an unknown kind.
    """
    return schema_class(SchemaKind(value.get("kind"))).from_dict(value)


## Validation results


@dataclass(frozen=True)
class ValidationIssue:
    """
    A problem found at a field path like `metadata.name` or `tags[0]`. Empty path
    means the document as a whole.
    """

    path: str
    message: str
    value: YamlValue = None

    def __str__(self):
        return f"{self.path}: {self.message}" if self.path else self.message


T = TypeVar("T")


@dataclass
class ParseResult(Generic[T]):
    """
    Outcome of parsing or validating a document. `data` is set exactly when
    `success` is true, which is exactly when there are no errors. Warnings never
    block success. `body` is the Markdown body for Strand documents.
    """

    success: bool
    data: Optional[T] = None
    errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)
    body: Optional[str] = None

    @classmethod
    def ok(
        cls, data: T, warnings: Optional[List[ValidationIssue]] = None, body: Optional[str] = None
    ) -> "ParseResult[T]":
        return cls(success=True, data=data, warnings=list(warnings or []), body=body)

    @classmethod
    def failed(
        cls,
        errors: List[ValidationIssue],
        warnings: Optional[List[ValidationIssue]] = None,
        body: Optional[str] = None,
    ) -> "ParseResult[T]":
        if not errors:
            raise ValueError("failed result needs at least one error")
        return cls(success=False, errors=list(errors), warnings=list(warnings or []), body=body)


## Tests


def test_wire_names():
    assert wire_name("name") == "name"
    assert wire_name("use_case") == "useCase"
    assert wire_name("estimated_duration") == "estimatedDuration"
    assert wire_name("size_by_importance") == "sizeByImportance"


def test_schema_dict_conversion():
    doc = {
        "version": SCHEMA_VERSION,
        "kind": "Loom",
        "metadata": {"name": "Research", "useCase": "research", "unknownNested": 1},
        "scope": {"type": "GLOBAL", "autoApprove": True},
        "style": {"opacity": 0.5, "accentColor": "#fff"},
        "tags": ["a", "b"],
        "x-custom": {"keep": "me"},
    }
    loom = schema_from_dict(doc)
    assert isinstance(loom, LoomSchema)
    assert loom.kind == SchemaKind.loom
    assert loom.metadata.use_case == LoomUseCase.research
    assert loom.scope and loom.scope.type == ScopeType.global_
    assert loom.extra == {"x-custom": {"keep": "me"}}

    out = loom.to_dict()
    assert list(out.keys())[:2] == ["version", "kind"]
    assert out["metadata"] == {"name": "Research", "useCase": "research"}
    assert out["scope"] == {"type": "GLOBAL", "autoApprove": True}
    assert out["x-custom"] == {"keep": "me"}
    assert LoomSchema.from_dict(out) == loom


def test_strand_defaults():
    strand = StrandSchema.from_dict({"kind": "Strand", "title": "Intro", "difficulty": 3})
    assert strand.title == "Intro"
    assert strand.difficulty == 3
    assert strand.to_dict() == {"kind": "Strand", "title": "Intro", "difficulty": 3}

    try:
        schema_from_dict({"kind": "Thread"})
        assert False, "expected ValueError"
    except ValueError:
        pass


def test_parse_result():
    issue = ValidationIssue("difficulty", "bad", 6)
    result: ParseResult[StrandSchema] = ParseResult.failed([issue])
    assert not result.success and result.data is None
    assert str(result.errors[0]) == "difficulty: bad"
    assert str(ValidationIssue("", "Empty document")) == "Empty document"

    try:
        ParseResult.failed([])
        assert False, "expected ValueError"
    except ValueError:
        pass
