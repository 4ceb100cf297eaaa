"""Entity schema normalization.

Declarative per-entity schema definitions (plain dictionaries, typically read
from configuration or produced by a declaration layer) are flattened here into
target-tagged argument records, the same shape a decorator-based declaration
would produce. :class:`~sqla_entitymeta.builder.MetadataBuilder` consumes them.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Final, Literal


if sys.version_info >= (3, 11):
    from typing import Required, TypedDict
else:
    from typing_extensions import Required, TypedDict

from .metadata import ColumnMode, OnDeleteType, RelationType, TableType


logger = logging.getLogger(__name__)

OBJECT_ID_COLUMN_NAME: Final[str] = "_id"
DEFAULT_GENERATION_STRATEGY: Final[str] = "increment"
DEFAULT_TABLE_TYPE: Final[TableType] = "regular"

# first flag set wins
_MODE_FLAGS: Final[tuple[tuple[str, ColumnMode], ...]] = (
    ("create_date", "createDate"),
    ("update_date", "updateDate"),
    ("version", "version"),
    ("tree_children_count", "treeChildrenCount"),
    ("tree_level", "treeLevel"),
    ("object_id", "objectId"),
)

_COLUMN_OPTION_KEYS: Final[tuple[str, ...]] = (
    "type",
    "length",
    "width",
    "nullable",
    "readonly",
    "select",
    "primary",
    "unique",
    "comment",
    "default",
    "on_update",
    "precision",
    "scale",
    "zerofill",
    "unsigned",
    "charset",
    "collation",
    "enum",
    "as_expression",
    "generated_type",
    "hstore_type",
    "array",
    "transformer",
)


# ---------------------------------------------------------------------------
# schema input


class EntitySchemaColumnOptions(TypedDict, total=False):
    type: Any
    name: str
    length: int | str
    width: int
    nullable: bool
    readonly: bool
    select: bool
    primary: bool
    unique: bool
    comment: str
    default: Any
    on_update: str
    precision: int
    scale: int
    zerofill: bool
    unsigned: bool
    charset: str
    collation: str
    enum: Sequence[Any]
    as_expression: str
    generated_type: Literal["VIRTUAL", "STORED"]
    hstore_type: Literal["object", "string"]
    array: bool
    transformer: Any
    generated: bool | Literal["increment", "uuid", "rowid"]
    create_date: bool
    update_date: bool
    version: bool
    tree_children_count: bool
    tree_level: bool
    object_id: bool


class EntitySchemaJoinColumnOptions(TypedDict, total=False):
    name: str
    referenced_column_name: str


class EntitySchemaJoinTableOptions(TypedDict, total=False):
    name: str
    database: str
    schema: str
    join_column: EntitySchemaJoinColumnOptions
    join_columns: Sequence[EntitySchemaJoinColumnOptions]
    inverse_join_column: EntitySchemaJoinColumnOptions
    inverse_join_columns: Sequence[EntitySchemaJoinColumnOptions]


class EntitySchemaRelationOptions(TypedDict, total=False):
    type: Required[RelationType]
    target: Required[str]
    inverse_side: str
    lazy: bool
    eager: bool
    cascade: bool | Sequence[str]
    nullable: bool
    on_delete: OnDeleteType
    on_update: OnDeleteType
    primary: bool
    persistence: bool
    tree_parent: bool
    tree_children: bool
    join_column: bool | EntitySchemaJoinColumnOptions
    join_table: bool | EntitySchemaJoinTableOptions


class EntitySchemaIndexOptions(TypedDict, total=False):
    name: str
    columns: Required[Sequence[str]]
    unique: bool
    spatial: bool
    fulltext: bool
    synchronize: bool
    where: str
    sparse: bool


class EntitySchemaUniqueOptions(TypedDict, total=False):
    name: str
    columns: Required[Sequence[str]]


class EntitySchemaCheckOptions(TypedDict, total=False):
    name: str
    expression: Required[str]


class EntitySchemaOptions(TypedDict, total=False):
    name: Required[str]
    target: str
    table_name: str
    database: str
    schema: str
    type: TableType
    order_by: Mapping[str, Any]
    synchronize: bool
    columns: Required[Mapping[str, EntitySchemaColumnOptions]]
    relations: Mapping[str, EntitySchemaRelationOptions]
    indices: Sequence[EntitySchemaIndexOptions]
    uniques: Sequence[EntitySchemaUniqueOptions]
    checks: Sequence[EntitySchemaCheckOptions]
    exclusions: Sequence[EntitySchemaCheckOptions]


@dataclass(slots=True, frozen=True)
class EntitySchema:
    """A single entity definition: ``EntitySchema({"name": "Post", "columns": {...}})``."""

    options: EntitySchemaOptions

    @property
    def identity(self) -> str:
        return self.options.get("target") or self.options["name"]


# ---------------------------------------------------------------------------
# normalized args


@dataclass(slots=True, frozen=True)
class TableArgs:
    target: str
    name: str | None = None
    database: str | None = None
    schema: str | None = None
    type: TableType = DEFAULT_TABLE_TYPE
    order_by: Mapping[str, Any] | None = None
    synchronize: bool | None = None


@dataclass(slots=True, frozen=True)
class ColumnArgs:
    target: str
    property_name: str
    mode: ColumnMode
    options: Mapping[str, Any]


@dataclass(slots=True, frozen=True)
class GenerationArgs:
    target: str
    property_name: str
    strategy: str


@dataclass(slots=True, frozen=True)
class RelationArgs:
    target: str
    property_name: str
    relation_type: RelationType
    type: str
    inverse_side_property: str | None = None
    is_lazy: bool = False
    is_tree_parent: bool = False
    is_tree_children: bool = False
    options: Mapping[str, Any] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class JoinColumnArgs:
    target: str
    property_name: str
    name: str | None = None
    referenced_column_name: str | None = None


@dataclass(slots=True, frozen=True)
class JoinTableArgs:
    target: str
    property_name: str
    name: str | None = None
    database: str | None = None
    schema: str | None = None
    join_columns: tuple[EntitySchemaJoinColumnOptions, ...] | None = None
    inverse_join_columns: tuple[EntitySchemaJoinColumnOptions, ...] | None = None


@dataclass(slots=True, frozen=True)
class IndexArgs:
    target: str
    columns: tuple[str, ...]
    name: str | None = None
    unique: bool = False
    spatial: bool = False
    fulltext: bool = False
    synchronize: bool = True
    where: str | None = None
    sparse: bool | None = None


@dataclass(slots=True, frozen=True)
class UniqueArgs:
    target: str
    columns: tuple[str, ...]
    name: str | None = None


@dataclass(slots=True, frozen=True)
class CheckArgs:
    target: str
    expression: str
    name: str | None = None


@dataclass(slots=True, frozen=True)
class ExclusionArgs:
    target: str
    expression: str
    name: str | None = None


@dataclass(slots=True)
class MetadataArgsStorage:
    tables: list[TableArgs] = field(default_factory=list)
    columns: list[ColumnArgs] = field(default_factory=list)
    generations: list[GenerationArgs] = field(default_factory=list)
    relations: list[RelationArgs] = field(default_factory=list)
    join_columns: list[JoinColumnArgs] = field(default_factory=list)
    join_tables: list[JoinTableArgs] = field(default_factory=list)
    indices: list[IndexArgs] = field(default_factory=list)
    uniques: list[UniqueArgs] = field(default_factory=list)
    checks: list[CheckArgs] = field(default_factory=list)
    exclusions: list[ExclusionArgs] = field(default_factory=list)

    def filter_columns(self, target: str) -> list[ColumnArgs]:
        return [column for column in self.columns if column.target == target]

    def filter_relations(self, target: str) -> list[RelationArgs]:
        return [relation for relation in self.relations if relation.target == target]

    def find_generation(self, target: str, property_name: str) -> GenerationArgs | None:
        return next(
            (
                generation
                for generation in self.generations
                if generation.target == target and generation.property_name == property_name
            ),
            None,
        )

    def find_join_column(self, target: str, property_name: str) -> JoinColumnArgs | None:
        return next(
            (
                join_column
                for join_column in self.join_columns
                if join_column.target == target and join_column.property_name == property_name
            ),
            None,
        )

    def find_join_table(self, target: str, property_name: str) -> JoinTableArgs | None:
        return next(
            (
                join_table
                for join_table in self.join_tables
                if join_table.target == target and join_table.property_name == property_name
            ),
            None,
        )


# ---------------------------------------------------------------------------
# transformer


def _column_mode(column: EntitySchemaColumnOptions) -> ColumnMode:
    return next((mode for flag, mode in _MODE_FLAGS if column.get(flag)), "regular")


def _join_column_list(
    single: EntitySchemaJoinColumnOptions | None,
    many: Sequence[EntitySchemaJoinColumnOptions] | None,
) -> tuple[EntitySchemaJoinColumnOptions, ...] | None:
    if single is None and many is None:
        return None

    return (*((single,) if single else ()), *(many or ()))


class EntitySchemaTransformer:
    """Flatten :class:`EntitySchema` definitions into a :class:`MetadataArgsStorage`."""

    __slots__ = ()

    def transform(self, schemas: Sequence[EntitySchema]) -> MetadataArgsStorage:
        storage = MetadataArgsStorage()

        for entity_schema in schemas:
            options = entity_schema.options
            target = entity_schema.identity

            storage.tables.append(
                TableArgs(
                    target=target,
                    name=options.get("table_name"),
                    database=options.get("database"),
                    schema=options.get("schema"),
                    type=options.get("type") or DEFAULT_TABLE_TYPE,
                    order_by=options.get("order_by"),
                    synchronize=options.get("synchronize"),
                )
            )

            for column_name, column in options["columns"].items():
                self._add_column(storage, target, column_name, column)

            for relation_name, relation in (options.get("relations") or {}).items():
                self._add_relation(storage, target, relation_name, relation)

            for index in options.get("indices") or ():
                storage.indices.append(
                    IndexArgs(
                        target=target,
                        name=index.get("name"),
                        columns=tuple(index["columns"]),
                        unique=index.get("unique") is True,
                        spatial=index.get("spatial") is True,
                        fulltext=index.get("fulltext") is True,
                        synchronize=index.get("synchronize") is not False,
                        where=index.get("where"),
                        sparse=index.get("sparse"),
                    )
                )

            for unique in options.get("uniques") or ():
                storage.uniques.append(
                    UniqueArgs(target=target, name=unique.get("name"), columns=tuple(unique["columns"]))
                )

            for check in options.get("checks") or ():
                storage.checks.append(
                    CheckArgs(target=target, name=check.get("name"), expression=check["expression"])
                )

            for exclusion in options.get("exclusions") or ():
                storage.exclusions.append(
                    ExclusionArgs(
                        target=target, name=exclusion.get("name"), expression=exclusion["expression"]
                    )
                )

            logger.debug("Normalized entity schema %s", target)

        return storage

    def _add_column(
        self,
        storage: MetadataArgsStorage,
        target: str,
        column_name: str,
        column: EntitySchemaColumnOptions,
    ) -> None:
        column_options: dict[str, Any] = {key: column.get(key) for key in _COLUMN_OPTION_KEYS}
        column_options["name"] = OBJECT_ID_COLUMN_NAME if column.get("object_id") else column.get("name")

        storage.columns.append(
            ColumnArgs(
                target=target,
                property_name=column_name,
                mode=_column_mode(column),
                options=column_options,
            )
        )

        if generated := column.get("generated"):
            storage.generations.append(
                GenerationArgs(
                    target=target,
                    property_name=column_name,
                    strategy=generated if isinstance(generated, str) else DEFAULT_GENERATION_STRATEGY,
                )
            )

    def _add_relation(
        self,
        storage: MetadataArgsStorage,
        target: str,
        relation_name: str,
        relation: EntitySchemaRelationOptions,
    ) -> None:
        cascade = relation.get("cascade")
        storage.relations.append(
            RelationArgs(
                target=target,
                property_name=relation_name,
                relation_type=relation["type"],
                type=relation["target"],
                inverse_side_property=relation.get("inverse_side"),
                is_lazy=relation.get("lazy") or False,
                is_tree_parent=relation.get("tree_parent") or False,
                is_tree_children=relation.get("tree_children") or False,
                options={
                    "eager": relation.get("eager") or False,
                    "cascade": tuple(cascade) if isinstance(cascade, (list, tuple)) else cascade,
                    "nullable": relation.get("nullable"),
                    "on_delete": relation.get("on_delete"),
                    "on_update": relation.get("on_update"),
                    "primary": relation.get("primary"),
                    "persistence": relation.get("persistence"),
                },
            )
        )

        if join_column := relation.get("join_column"):
            if isinstance(join_column, bool):
                storage.join_columns.append(JoinColumnArgs(target=target, property_name=relation_name))
            else:
                storage.join_columns.append(
                    JoinColumnArgs(
                        target=target,
                        property_name=relation_name,
                        name=join_column.get("name"),
                        referenced_column_name=join_column.get("referenced_column_name"),
                    )
                )

        if join_table := relation.get("join_table"):
            if isinstance(join_table, bool):
                storage.join_tables.append(JoinTableArgs(target=target, property_name=relation_name))
            else:
                storage.join_tables.append(
                    JoinTableArgs(
                        target=target,
                        property_name=relation_name,
                        name=join_table.get("name"),
                        database=join_table.get("database"),
                        schema=join_table.get("schema"),
                        join_columns=_join_column_list(
                            join_table.get("join_column"), join_table.get("join_columns")
                        ),
                        inverse_join_columns=_join_column_list(
                            join_table.get("inverse_join_column"),
                            join_table.get("inverse_join_columns"),
                        ),
                    )
                )


def normalize_schemas(schemas: Sequence[EntitySchema]) -> MetadataArgsStorage:
    """Shortcut for ``EntitySchemaTransformer().transform(schemas)``."""
    return EntitySchemaTransformer().transform(schemas)
