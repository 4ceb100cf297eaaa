from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from functools import lru_cache
from typing import Literal

from .errors import RelationsNotFoundError
from .metadata import EntityMetadata, RelationMetadata


logger = logging.getLogger(__name__)

JoinKind = Literal["left", "inner"]


@dataclass(slots=True, frozen=True)
class JoinAttribute:
    """One resolved join of a single query.

    Holds direct references to the relation it follows and to the metadata on
    both ends, so nothing downstream has to look metadata up by alias.
    """

    alias: str
    parent_alias: str
    parent_metadata: EntityMetadata
    relation: RelationMetadata
    kind: JoinKind = "left"
    select: bool = True

    @property
    def metadata(self) -> EntityMetadata:
        return self.relation.inverse_entity_metadata

    @property
    def entity_or_property(self) -> str:
        return f"{self.parent_alias}.{self.relation.property_path}"


@dataclass(slots=True, frozen=True)
class JoinGraph:
    joins: tuple[JoinAttribute, ...] = ()

    @property
    def aliases(self) -> tuple[str, ...]:
        return tuple(join.alias for join in self.joins)

    def __iter__(self) -> Iterator[JoinAttribute]:
        return iter(self.joins)

    def __len__(self) -> int:
        return len(self.joins)


def resolve_relations(paths: Sequence[str], alias: str, metadata: EntityMetadata) -> JoinGraph:
    """Resolve dotted relation paths into the joins needed to load them.

    Every path segment is joined with a ``left`` join that selects the related
    entity, under the alias ``<parent alias>__<relation>``. Eager relations of
    each joined entity are added after it (see :func:`join_eager_relations`).
    Paths sharing a prefix reuse the prefix join; requesting ``"author.profile"``
    alone joins ``author`` as well.

    Args:
        paths: Relation paths such as ``("author", "author.profile")``.
        alias: Alias of the entity the paths start from.
        metadata: Metadata of that entity.

    Returns:
        Join graph in match order, depth first.

    Raises:
        RelationsNotFoundError: After the whole traversal, listing every path
            that did not resolve. No join graph is returned in that case.
    """
    return _resolve_relations(tuple(paths), alias, metadata)


@lru_cache(maxsize=1028)
def _resolve_relations(paths: tuple[str, ...], alias: str, metadata: EntityMetadata) -> JoinGraph:
    joins, remaining = _apply_relations_recursively(paths, alias, metadata, "")
    if remaining:
        raise RelationsNotFoundError(remaining)

    logger.debug("Resolved %d relation paths on %s into %d joins", len(paths), metadata.name, len(joins))

    return JoinGraph(joins)


def _apply_relations_recursively(
    remaining: tuple[str, ...],
    alias: str,
    metadata: EntityMetadata,
    prefix: str,
) -> tuple[tuple[JoinAttribute, ...], tuple[str, ...]]:
    """Join relations matching *prefix* and recurse into them.

    Returns the joins added below *alias* and the paths still unresolved.
    """
    if prefix:
        head = f"{prefix}."
        candidates = [path[len(head) :] for path in remaining if path.startswith(head)]
    else:
        candidates = list(remaining)

    matched: list[RelationMetadata] = []
    for candidate in candidates:
        relation = metadata.find_relation_with_property_path(candidate.split(".", 1)[0])
        if relation is not None and relation not in matched:
            matched.append(relation)

    joins: list[JoinAttribute] = []
    for relation in matched:
        relation_alias = f"{alias}__{relation.property_name}"
        joins.append(
            JoinAttribute(
                alias=relation_alias,
                parent_alias=alias,
                parent_metadata=metadata,
                relation=relation,
            )
        )
        joins.extend(join_eager_relations(relation_alias, relation.inverse_entity_metadata))

        consumed = f"{prefix}.{relation.property_name}" if prefix else relation.property_name
        remaining = tuple(path for path in remaining if path != consumed)

        nested, remaining = _apply_relations_recursively(
            remaining, relation_alias, relation.inverse_entity_metadata, consumed
        )
        joins.extend(nested)

    return tuple(joins), remaining


def join_eager_relations(alias: str, metadata: EntityMetadata) -> tuple[JoinAttribute, ...]:
    """Joins for every eager relation reachable from *metadata*, transitively.

    Child aliases are ``<alias>_<property path>``. Cycles are not guarded
    against here; :class:`~sqla_entitymeta.builder.MetadataBuilder` rejects
    them when the metadata is built.
    """
    joins: list[JoinAttribute] = []
    for relation in metadata.eager_relations:
        relation_alias = f"{alias}_{relation.property_path.replace('.', '_')}"
        joins.append(
            JoinAttribute(
                alias=relation_alias,
                parent_alias=alias,
                parent_metadata=metadata,
                relation=relation,
            )
        )
        joins.extend(join_eager_relations(relation_alias, relation.inverse_entity_metadata))

    return tuple(joins)
