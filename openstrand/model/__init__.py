"""
The data model for OpenStrand schemas and the records of the local store.

This is plain data and conversion to and from documents. Validation lives in
`openstrand.schema`.
"""

from openstrand.model.schema_model import (
    ClusteringAlgorithm,
    EdgeConfig,
    EdgeCurveStyle,
    GraphClustering,
    GraphConfig,
    GraphLayout,
    GraphPhysics,
    LearningPhase,
    LoomContent,
    LoomMetadata,
    LoomSchema,
    LoomScope,
    LoomTeam,
    LoomUseCase,
    NodeConfig,
    OpenStrandSchema,
    ParseResult,
    schema_from_dict,
    SchemaKind,
    ScopeType,
    StrandClassification,
    StrandLearning,
    StrandSchema,
    StrandStyleProperties,
    StrandType,
    StyleProperties,
    ValidationIssue,
    Visibility,
    WeaveMetadata,
    WeaveSchema,
    WeaveStyleProperties,
    WeaveVisibility,
)
from openstrand.model.storage_model import (
    LocalSavedSchema,
    LocalSaveMetadata,
    SaveState,
    SchemaDiff,
)
from openstrand.model.values import YamlValue
