from __future__ import annotations

import datetime
import decimal
import uuid
import warnings
from collections.abc import Callable, Mapping
from typing import Any, Final

import sqlalchemy as sa
from sqlalchemy.types import NullType, TypeEngine

from .datastructures import frozendict
from .metadata import ColumnMetadata, EntityMetadata, ForeignKeyMetadata
from .naming import DefaultNamingStrategy, NamingStrategy
from .registry import Registry


def _length(column: ColumnMetadata) -> int | None:
    if column.length is None or column.length == "":
        return None

    return int(column.length)


_NAMED_TYPES: Final[Mapping[str, Callable[[ColumnMetadata], TypeEngine[Any]]]] = frozendict({
    "int": lambda _: sa.Integer(),
    "integer": lambda _: sa.Integer(),
    "smallint": lambda _: sa.SmallInteger(),
    "bigint": lambda _: sa.BigInteger(),
    "varchar": lambda c: sa.String(_length(c), collation=c.collation),
    "string": lambda c: sa.String(_length(c), collation=c.collation),
    "char": lambda c: sa.CHAR(_length(c), collation=c.collation),
    "text": lambda c: sa.Text(collation=c.collation),
    "boolean": lambda _: sa.Boolean(),
    "bool": lambda _: sa.Boolean(),
    "float": lambda _: sa.Float(),
    "double": lambda _: sa.Double(),
    "real": lambda _: sa.Float(),
    "decimal": lambda c: sa.Numeric(c.precision, c.scale),
    "numeric": lambda c: sa.Numeric(c.precision, c.scale),
    "date": lambda _: sa.Date(),
    "time": lambda _: sa.Time(),
    "datetime": lambda _: sa.DateTime(),
    "timestamp": lambda _: sa.DateTime(),
    "timestamptz": lambda _: sa.DateTime(timezone=True),
    "uuid": lambda _: sa.Uuid(),
    "json": lambda _: sa.JSON(),
    "jsonb": lambda _: sa.JSON(),
    "simple-json": lambda _: sa.JSON(),
    "blob": lambda _: sa.LargeBinary(),
    "bytea": lambda _: sa.LargeBinary(),
})

_PYTHON_TYPES: Final[Mapping[type, Callable[[ColumnMetadata], TypeEngine[Any]]]] = frozendict({
    int: _NAMED_TYPES["int"],
    str: _NAMED_TYPES["varchar"],
    bool: _NAMED_TYPES["boolean"],
    float: _NAMED_TYPES["float"],
    decimal.Decimal: _NAMED_TYPES["decimal"],
    datetime.datetime: _NAMED_TYPES["datetime"],
    datetime.date: _NAMED_TYPES["date"],
    datetime.time: _NAMED_TYPES["time"],
    uuid.UUID: _NAMED_TYPES["uuid"],
    bytes: _NAMED_TYPES["blob"],
    dict: _NAMED_TYPES["json"],
})

_MODE_TYPES: Final[Mapping[str, Callable[[ColumnMetadata], TypeEngine[Any]]]] = frozendict({
    "createDate": _NAMED_TYPES["datetime"],
    "updateDate": _NAMED_TYPES["datetime"],
    "version": _NAMED_TYPES["int"],
    "treeLevel": _NAMED_TYPES["int"],
    "treeChildrenCount": _NAMED_TYPES["int"],
    "objectId": lambda _: sa.String(24),
})


def column_type(column: ColumnMetadata) -> TypeEngine[Any]:
    """Map the declared column type to a SQLAlchemy type.

    Accepts SQLAlchemy type instances or classes, Python types and the usual
    type strings (``"int"``, ``"varchar"``, ``"timestamp"``, ...). Columns without
    a type fall back on their mode (dates for ``createDate``, integers for
    ``version``); unknown strings map to ``NullType`` with a warning.
    """
    declared = column.type
    if isinstance(declared, TypeEngine):
        return declared

    if isinstance(declared, type) and issubclass(declared, TypeEngine):
        return declared()

    if isinstance(declared, type) and (factory := _PYTHON_TYPES.get(declared)):
        return factory(column)

    if isinstance(declared, str):
        if factory := _NAMED_TYPES.get(declared.lower()):
            return factory(column)

        warnings.warn(
            f"Unknown column type {declared!r} for {column.entity_metadata.name}.{column.property_name}. "
            "Using NullType.",
            stacklevel=2,
        )
        return NullType()

    if declared is None and (factory := _MODE_TYPES.get(column.mode)):
        return factory(column)

    return NullType()


def get_table_key(entity: EntityMetadata) -> str:
    """Return the key *entity*'s table is stored under in ``sa.MetaData.tables``."""
    return f"{entity.schema}.{entity.table_name}" if entity.schema else entity.table_name


def _foreign_key(foreign_key: ForeignKeyMetadata, naming: NamingStrategy) -> sa.ForeignKeyConstraint:
    referenced_key = get_table_key(foreign_key.referenced_entity_metadata)

    return sa.ForeignKeyConstraint(
        foreign_key.column_names,
        [f"{referenced_key}.{name}" for name in foreign_key.referenced_column_names],
        name=naming.foreign_key_name(
            foreign_key.entity_metadata.table_name,
            foreign_key.column_names,
            foreign_key.referenced_entity_metadata.table_name,
        ),
        ondelete=foreign_key.on_delete,
        onupdate=foreign_key.on_update,
    )


def build_table(
    entity: EntityMetadata,
    sa_metadata: sa.MetaData,
    naming_strategy: NamingStrategy | None = None,
) -> sa.Table:
    """Render *entity* as a ``sa.Table`` in *sa_metadata*, reusing it if already there.

    Args:
        entity: Regular or junction entity metadata.
        sa_metadata: Target SQLAlchemy metadata collection.
        naming_strategy: Used for foreign key and unnamed index names.

    Returns:
        The table, with primary key, foreign keys, checks and indices.
    """
    if (existing := sa_metadata.tables.get(get_table_key(entity))) is not None:
        return existing

    naming = naming_strategy or DefaultNamingStrategy()
    columns = [
        sa.Column(
            column.database_name,
            column_type(column),
            primary_key=column.primary,
            nullable=column.nullable and not column.primary,
            unique=column.unique or None,
            autoincrement=column.generation_strategy == "increment",
            default=column.default,
            comment=column.comment,
        )
        for column in entity.columns
    ]
    constraints: list[sa.Constraint] = [
        _foreign_key(foreign_key, naming) for foreign_key in entity.foreign_keys
    ]
    constraints += [sa.CheckConstraint(check.expression, name=check.name) for check in entity.checks]

    table = sa.Table(entity.table_name, sa_metadata, *columns, *constraints, schema=entity.schema)

    for index in entity.indices:
        if not index.synchronize:
            continue

        names = [column.database_name for column in index.columns]
        where = sa.text(index.where) if index.where else None
        sa.Index(
            index.name or naming.index_name(entity.table_name, names),
            *(table.c[name] for name in names),
            unique=index.unique,
            postgresql_where=where,
            sqlite_where=where,
        )

    return table


def build_tables(registry: Registry, naming_strategy: NamingStrategy | None = None) -> sa.MetaData:
    """Render every entity and junction of *registry* into a fresh ``sa.MetaData``.

    Example:
        >>> sa_metadata = build_tables(registry)
        >>> sorted(sa_metadata.tables)
        ['category', 'post', 'post_categories_category']
        >>> sa_metadata.create_all(engine)
    """
    sa_metadata = sa.MetaData()
    for entity in registry.all_entities():
        build_table(entity, sa_metadata, naming_strategy)

    return sa_metadata
