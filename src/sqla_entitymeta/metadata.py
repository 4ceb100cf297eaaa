from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal


ColumnMode = Literal[
    "regular",
    "createDate",
    "updateDate",
    "version",
    "treeChildrenCount",
    "treeLevel",
    "objectId",
    "virtual",
]
RelationType = Literal["one-to-one", "many-to-one", "one-to-many", "many-to-many"]
TableType = Literal["regular", "junction"]
OnDeleteType = Literal["RESTRICT", "CASCADE", "SET NULL", "DEFAULT", "NO ACTION"]


@dataclass(slots=True, eq=False)
class ColumnMetadata:
    """One physical column owned by exactly one :class:`EntityMetadata`.

    ``relation_metadata`` is set on columns that back a relation (junction
    columns and relation join columns); ``referenced_column`` on columns that
    act as a foreign key.
    """

    entity_metadata: EntityMetadata = field(repr=False)
    property_name: str
    database_name: str
    mode: ColumnMode = "regular"
    type: Any = None
    length: int | str | None = None
    width: int | None = None
    precision: int | None = None
    scale: int | None = None
    charset: str | None = None
    collation: str | None = None
    zerofill: bool = False
    unsigned: bool = False
    primary: bool = False
    nullable: bool = False
    unique: bool = False
    default: Any = None
    comment: str | None = None
    generation_strategy: str | None = None
    relation_metadata: RelationMetadata | None = field(default=None, repr=False)
    referenced_column: ColumnMetadata | None = field(default=None, repr=False)

    @property
    def is_virtual(self) -> bool:
        return self.mode == "virtual"

    @property
    def is_generated(self) -> bool:
        return self.generation_strategy is not None


@dataclass(slots=True, eq=False)
class RelationMetadata:
    entity_metadata: EntityMetadata = field(repr=False)
    property_name: str
    relation_type: RelationType
    target: str
    inverse_side_property: str | None = None
    is_eager: bool = False
    is_lazy: bool = False
    is_tree_parent: bool = False
    is_tree_children: bool = False
    cascade: bool | tuple[str, ...] = False
    nullable: bool = True
    on_delete: OnDeleteType | None = None
    on_update: OnDeleteType | None = None
    primary: bool = False
    persistence: bool = True
    inverse_entity_metadata: EntityMetadata = field(default=None, repr=False)  # type: ignore[assignment]
    inverse_relation: RelationMetadata | None = field(default=None, repr=False)
    join_columns: tuple[ColumnMetadata, ...] = field(default=(), repr=False)
    junction_entity_metadata: EntityMetadata | None = field(default=None, repr=False)

    @property
    def property_path(self) -> str:
        return self.property_name

    @property
    def is_one_to_one(self) -> bool:
        return self.relation_type == "one-to-one"

    @property
    def is_many_to_one(self) -> bool:
        return self.relation_type == "many-to-one"

    @property
    def is_one_to_many(self) -> bool:
        return self.relation_type == "one-to-many"

    @property
    def is_many_to_many(self) -> bool:
        return self.relation_type == "many-to-many"

    @property
    def is_owning(self) -> bool:
        """True when this side holds the join columns or the junction table."""
        return bool(self.join_columns) or self.junction_entity_metadata is not None


@dataclass(slots=True, eq=False)
class ForeignKeyMetadata:
    entity_metadata: EntityMetadata = field(repr=False)
    referenced_entity_metadata: EntityMetadata = field(repr=False)
    columns: tuple[ColumnMetadata, ...]
    referenced_columns: tuple[ColumnMetadata, ...]
    on_delete: OnDeleteType | None = None
    on_update: OnDeleteType | None = None

    def __post_init__(self) -> None:
        if len(self.columns) != len(self.referenced_columns):
            raise ValueError(
                f"Foreign key on {self.entity_metadata.name} has {len(self.columns)} columns "
                f"but references {len(self.referenced_columns)}"
            )

    @property
    def column_names(self) -> tuple[str, ...]:
        return tuple(column.database_name for column in self.columns)

    @property
    def referenced_column_names(self) -> tuple[str, ...]:
        return tuple(column.database_name for column in self.referenced_columns)


@dataclass(slots=True, eq=False)
class IndexMetadata:
    entity_metadata: EntityMetadata = field(repr=False)
    columns: tuple[ColumnMetadata, ...]
    name: str | None = None
    unique: bool = False
    spatial: bool = False
    fulltext: bool = False
    synchronize: bool = True
    where: str | None = None


@dataclass(slots=True, eq=False)
class CheckMetadata:
    entity_metadata: EntityMetadata = field(repr=False)
    expression: str
    name: str | None = None


@dataclass(slots=True, eq=False)
class ExclusionMetadata:
    entity_metadata: EntityMetadata = field(repr=False)
    expression: str
    name: str | None = None


@dataclass(slots=True, eq=False)
class EntityMetadata:
    """Normalized description of one mapped table and everything it owns.

    Built once by :class:`~sqla_entitymeta.builder.MetadataBuilder` (or the
    junction builder) and treated as read-only afterwards, so it can be shared
    between concurrent queries without locking.
    """

    target: str
    table_name: str
    database: str | None = None
    schema: str | None = None
    type: TableType = "regular"
    order_by: Any = None
    synchronize: bool = True
    own_columns: tuple[ColumnMetadata, ...] = ()
    relations: tuple[RelationMetadata, ...] = ()
    foreign_keys: tuple[ForeignKeyMetadata, ...] = ()
    indices: tuple[IndexMetadata, ...] = ()
    checks: tuple[CheckMetadata, ...] = ()
    exclusions: tuple[ExclusionMetadata, ...] = ()
    owner_columns: tuple[ColumnMetadata, ...] = ()
    inverse_columns: tuple[ColumnMetadata, ...] = ()

    @property
    def name(self) -> str:
        return self.target

    @property
    def is_junction(self) -> bool:
        return self.type == "junction"

    @property
    def columns(self) -> tuple[ColumnMetadata, ...]:
        """Own columns followed by the join columns relations add to this table."""
        join_columns = tuple(
            column
            for relation in self.relations
            for column in relation.join_columns
            if column not in self.own_columns
        )

        return (*self.own_columns, *join_columns)

    @property
    def primary_columns(self) -> tuple[ColumnMetadata, ...]:
        return tuple(column for column in self.columns if column.primary)

    @property
    def eager_relations(self) -> tuple[RelationMetadata, ...]:
        return tuple(relation for relation in self.relations if relation.is_eager)

    def find_column_with_property_path(self, property_path: str) -> ColumnMetadata | None:
        return next(
            (column for column in self.columns if column.property_name == property_path),
            None,
        )

    def find_relation_with_property_path(self, property_path: str) -> RelationMetadata | None:
        return next(
            (relation for relation in self.relations if relation.property_path == property_path),
            None,
        )
