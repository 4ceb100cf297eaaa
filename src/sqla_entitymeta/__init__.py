"""Entity metadata and find-options resolution on top of SQLAlchemy.

sqla_entitymeta turns declarative entity schemas into a normalized metadata
graph (synthesizing junction tables for many-to-many relations) and turns
declarative find options into a join plan.  Build a ``Registry`` once with
``build_registry(schemas)``, then apply options to a ``SelectQueryBuilder``
with ``apply_find_many_options_or_conditions`` and render it with
``to_select()``.
"""

from ._version import __version__, __version_tuple__
from .builder import MetadataBuilder
from .core import (
    apply_find_many_options_or_conditions,
    apply_options_to_query_builder,
    cache_clear,
    cache_info,
)
from .datastructures import freeze, frozendict
from .errors import (
    ColumnNotFoundError,
    EagerRelationCycleError,
    EntityMetadataError,
    EntityNotFoundError,
    JoinPathError,
    ReferencedColumnNotFoundError,
    RelationsNotFoundError,
)
from .junction import JunctionEntityMetadataBuilder
from .metadata import (
    ColumnMetadata,
    EntityMetadata,
    ForeignKeyMetadata,
    IndexMetadata,
    RelationMetadata,
)
from .naming import DefaultNamingStrategy, NamingStrategy
from .options import (
    CacheOptions,
    FindManyOptions,
    FindOneOptions,
    JoinOptions,
    RawPredicate,
    RelationIdOptions,
    coerce_options,
    extract_find_many_options_alias,
    is_find_many_options,
    is_find_one_options,
)
from .querybuilder import QueryBuilder, SelectQueryBuilder
from .registry import Registry, build_registry
from .resolver import JoinAttribute, JoinGraph, join_eager_relations, resolve_relations
from .schema import EntitySchema, EntitySchemaTransformer, MetadataArgsStorage, normalize_schemas
from .tools import build_table, build_tables


__all__ = (
    "CacheOptions",
    "ColumnMetadata",
    "ColumnNotFoundError",
    "DefaultNamingStrategy",
    "EagerRelationCycleError",
    "EntityMetadata",
    "EntityMetadataError",
    "EntityNotFoundError",
    "EntitySchema",
    "EntitySchemaTransformer",
    "FindManyOptions",
    "FindOneOptions",
    "ForeignKeyMetadata",
    "IndexMetadata",
    "JoinAttribute",
    "JoinGraph",
    "JoinOptions",
    "JoinPathError",
    "JunctionEntityMetadataBuilder",
    "MetadataArgsStorage",
    "MetadataBuilder",
    "NamingStrategy",
    "QueryBuilder",
    "RawPredicate",
    "ReferencedColumnNotFoundError",
    "Registry",
    "RelationIdOptions",
    "RelationMetadata",
    "RelationsNotFoundError",
    "SelectQueryBuilder",
    "__version__",
    "__version_tuple__",
    "apply_find_many_options_or_conditions",
    "apply_options_to_query_builder",
    "build_registry",
    "build_table",
    "build_tables",
    "cache_clear",
    "cache_info",
    "coerce_options",
    "extract_find_many_options_alias",
    "freeze",
    "frozendict",
    "is_find_many_options",
    "is_find_one_options",
    "join_eager_relations",
    "normalize_schemas",
    "resolve_relations",
)
