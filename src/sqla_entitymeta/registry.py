from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from typing import TYPE_CHECKING, final

from .datastructures import frozendict
from .errors import EntityNotFoundError
from .metadata import EntityMetadata


if TYPE_CHECKING:
    from .naming import NamingStrategy
    from .schema import EntitySchema


@final
class Registry:
    """Read-only collection of every :class:`EntityMetadata` built at bootstrap.

    Regular entities are addressed by their target name; junction entities,
    which have no user-visible target, are kept separately and addressed by
    table name. A registry is passed explicitly to whatever needs it; there is
    no module-level instance.
    """

    __slots__ = ("_entities", "_junctions")

    def __init__(
        self,
        entities: Mapping[str, EntityMetadata],
        junctions: Sequence[EntityMetadata] = (),
    ) -> None:
        self._entities: frozendict[str, EntityMetadata] = frozendict(entities)
        self._junctions: frozendict[str, EntityMetadata] = frozendict(
            (junction.table_name, junction) for junction in junctions
        )

    def get(self, target: str) -> EntityMetadata | None:
        """Return metadata for *target*, or ``None`` if it was never declared."""
        return self._entities.get(target)

    def __getitem__(self, target: str) -> EntityMetadata:
        """Look up metadata for *target*, raising ``EntityNotFoundError`` if missing."""
        try:
            return self._entities[target]
        except KeyError:
            raise EntityNotFoundError(target) from None

    def __contains__(self, target: object) -> bool:
        return target in self._entities

    def __iter__(self) -> Iterator[EntityMetadata]:
        return iter(self._entities.values())

    def __len__(self) -> int:
        return len(self._entities)

    @property
    def entities(self) -> Mapping[str, EntityMetadata]:
        return self._entities

    @property
    def junctions(self) -> Mapping[str, EntityMetadata]:
        return self._junctions

    def all_entities(self) -> tuple[EntityMetadata, ...]:
        """Regular entities followed by junction entities, in build order."""
        return (*self._entities.values(), *self._junctions.values())


def build_registry(
    schemas: Sequence[EntitySchema],
    *,
    naming_strategy: NamingStrategy | None = None,
) -> Registry:
    """Normalize *schemas* and build the complete metadata graph.

    Args:
        schemas: Entity schema definitions.
        naming_strategy: Naming strategy; defaults to
            :class:`~sqla_entitymeta.naming.DefaultNamingStrategy`.

    Returns:
        Registry holding every regular and junction entity.

    Example:
        >>> registry = build_registry([post_schema, category_schema])
        >>> registry["Post"].table_name
        'post'
    """
    from .builder import MetadataBuilder
    from .schema import normalize_schemas

    return MetadataBuilder(naming_strategy).build(normalize_schemas(schemas))
