from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Final

from .errors import ReferencedColumnNotFoundError
from .metadata import (
    ColumnMetadata,
    EntityMetadata,
    ForeignKeyMetadata,
    IndexMetadata,
    OnDeleteType,
    RelationMetadata,
)
from .naming import DefaultNamingStrategy, NamingStrategy
from .schema import EntitySchemaJoinColumnOptions, JoinTableArgs


logger = logging.getLogger(__name__)

DEFAULT_ON_DELETE: Final[OnDeleteType] = "CASCADE"


class JunctionEntityMetadataBuilder:
    """Synthesize the implicit association table of a many-to-many relation.

    The junction gets one primary, non-nullable virtual column per referenced
    column on each side, two foreign keys back to the endpoints and one
    non-unique index per foreign key. Nothing on the relation's own entities is
    modified.

    Example:
        >>> builder = JunctionEntityMetadataBuilder()
        >>> junction = builder.build(post.find_relation_with_property_path("categories"), join_table)
        >>> junction.table_name
        'post_categories_category'
        >>> [c.database_name for c in junction.own_columns]
        ['post_id', 'category_id']
    """

    __slots__ = ("naming_strategy",)

    def __init__(self, naming_strategy: NamingStrategy | None = None) -> None:
        self.naming_strategy = naming_strategy or DefaultNamingStrategy()

    def build(self, relation: RelationMetadata, join_table: JoinTableArgs) -> EntityMetadata:
        """Build junction :class:`EntityMetadata` for *relation*.

        Args:
            relation: Owning side of a many-to-many relation, with both
                ``entity_metadata`` and ``inverse_entity_metadata`` resolved.
            join_table: Join-table configuration declared on that side.

        Returns:
            New entity metadata of type ``"junction"``.

        Raises:
            ReferencedColumnNotFoundError: If an explicit ``referenced_column_name``
                names a column the endpoint entity does not declare.
        """
        naming = self.naming_strategy
        owner = relation.entity_metadata
        inverse = relation.inverse_entity_metadata

        referenced_columns = self._collect_referenced_columns(owner, join_table.join_columns)
        inverse_referenced_columns = self._collect_referenced_columns(
            inverse, join_table.inverse_join_columns
        )

        table_name = join_table.name or naming.join_table_name(
            owner.table_name,
            inverse.table_name,
            relation.property_path,
            relation.inverse_relation.property_name if relation.inverse_relation else "",
        )
        junction = EntityMetadata(
            target=table_name,
            table_name=table_name,
            type="junction",
            database=join_table.database or owner.database,
            schema=join_table.schema or owner.schema,
        )

        owner_columns = [
            self._junction_column(
                junction,
                referenced,
                _explicit_name(join_table.join_columns, referenced)
                or naming.join_table_column_name(
                    owner.table_name, referenced.property_name, referenced.database_name
                ),
            )
            for referenced in referenced_columns
        ]
        inverse_columns = [
            self._junction_column(
                junction,
                referenced,
                _explicit_name(join_table.inverse_join_columns, referenced)
                or naming.join_table_inverse_column_name(
                    inverse.table_name, referenced.property_name, referenced.database_name
                ),
            )
            for referenced in inverse_referenced_columns
        ]

        self._change_duplicated_column_names(owner_columns, inverse_columns)

        junction.owner_columns = tuple(owner_columns)
        junction.inverse_columns = tuple(inverse_columns)
        junction.own_columns = (*owner_columns, *inverse_columns)
        for column in junction.own_columns:
            column.relation_metadata = relation

        on_delete = relation.on_delete or DEFAULT_ON_DELETE
        junction.foreign_keys = (
            ForeignKeyMetadata(
                entity_metadata=junction,
                referenced_entity_metadata=owner,
                columns=junction.owner_columns,
                referenced_columns=tuple(referenced_columns),
                on_delete=on_delete,
            ),
            ForeignKeyMetadata(
                entity_metadata=junction,
                referenced_entity_metadata=inverse,
                columns=junction.inverse_columns,
                referenced_columns=tuple(inverse_referenced_columns),
                on_delete=on_delete,
            ),
        )
        junction.indices = (
            IndexMetadata(entity_metadata=junction, columns=junction.owner_columns, synchronize=True),
            IndexMetadata(entity_metadata=junction, columns=junction.inverse_columns, synchronize=True),
        )

        logger.debug(
            "Synthesized junction %s for %s.%s",
            table_name,
            owner.name,
            relation.property_name,
        )

        return junction

    def _collect_referenced_columns(
        self,
        entity: EntityMetadata,
        join_columns: Sequence[EntitySchemaJoinColumnOptions] | None,
    ) -> list[ColumnMetadata]:
        if not join_columns or not any(jc.get("referenced_column_name") for jc in join_columns):
            return list(entity.primary_columns)

        referenced: list[ColumnMetadata] = []
        for join_column in join_columns:
            name = join_column.get("referenced_column_name") or ""
            column = entity.find_column_with_property_path(name)
            if column is None:
                raise ReferencedColumnNotFoundError(name, entity.name)

            referenced.append(column)

        return referenced

    def _junction_column(
        self,
        junction: EntityMetadata,
        referenced: ColumnMetadata,
        name: str,
    ) -> ColumnMetadata:
        return ColumnMetadata(
            entity_metadata=junction,
            property_name=name,
            database_name=name,
            mode="virtual",
            type=referenced.type,
            length=referenced.length,
            width=referenced.width,
            precision=referenced.precision,
            scale=referenced.scale,
            charset=referenced.charset,
            collation=referenced.collation,
            zerofill=referenced.zerofill,
            unsigned=True if referenced.zerofill else referenced.unsigned,
            primary=True,
            nullable=False,
            referenced_column=referenced,
        )

    def _change_duplicated_column_names(
        self,
        owner_columns: Sequence[ColumnMetadata],
        inverse_columns: Sequence[ColumnMetadata],
    ) -> None:
        naming = self.naming_strategy
        for owner_column in owner_columns:
            for inverse_column in inverse_columns:
                if owner_column.database_name != inverse_column.database_name:
                    continue

                owner_name = naming.join_table_column_duplication_prefix(owner_column.property_name, 1)
                owner_column.property_name = owner_column.database_name = owner_name

                inverse_name = naming.join_table_column_duplication_prefix(
                    inverse_column.property_name, 2
                )
                inverse_column.property_name = inverse_column.database_name = inverse_name


def _explicit_name(
    join_columns: Sequence[EntitySchemaJoinColumnOptions] | None,
    referenced: ColumnMetadata,
) -> str | None:
    """Name of the join column configured for *referenced*, if any."""
    for join_column in join_columns or ():
        referenced_name = join_column.get("referenced_column_name")
        if (not referenced_name or referenced_name == referenced.property_name) and (
            name := join_column.get("name")
        ):
            return name

    return None
