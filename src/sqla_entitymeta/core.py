from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Final, TypeVar

from .errors import ColumnNotFoundError, EntityMetadataError
from .naming import snake_case
from .options import (
    CacheOptions,
    FindManyOptions,
    FindOneOptions,
    RawPredicate,
    RelationIdOptions,
    coerce_options,
)
from .querybuilder import OrderDirection, QueryBuilder
from .resolver import _resolve_relations, join_eager_relations, resolve_relations


logger = logging.getLogger(__name__)

QB = TypeVar("QB", bound=QueryBuilder)

_JOIN_METHODS: Final[tuple[str, ...]] = (
    "left_join",
    "inner_join",
    "left_join_and_select",
    "inner_join_and_select",
)


def _order_direction(value: Any) -> OrderDirection | None:
    """Map ``1`` / ``-1`` / ``"ASC"`` / ``"DESC"`` to a direction; anything else gives ``None``."""
    if isinstance(value, bool):
        return None

    if value == 1 or value == "ASC":
        return "ASC"

    if value == -1 or value == "DESC":
        return "DESC"

    return None


def apply_options_to_query_builder(qb: QB, options: FindOneOptions | None) -> QB:
    """Apply typed find options to a query builder.

    Steps run in a fixed order, each only when its option is set:

    1. ``select`` replaces the selection (every name must be a column, and it
       must name at least one);
    2. ``where`` is applied as is;
    3. ``skip`` then ``take`` (:class:`FindManyOptions` only);
    4. ``order``, with ``1``/``"ASC"`` and ``-1``/``"DESC"``; other values are ignored;
    5. ``relations`` are resolved into joins against the root alias;
    6. ``join`` directives: left, inner, left-and-select, inner-and-select;
    7. ``cache``;
    8. ``load_relation_ids``;
    9. ``load_eager_relations=True`` joins the root entity's eager relations.

    Args:
        qb: Query builder rooted at the entity being queried.
        options: Find options; anything that is not :class:`FindOneOptions`
            returns *qb* unchanged.

    Returns:
        New query builder with the options applied. *qb* itself is not modified,
        also when an error is raised.

    Raises:
        ColumnNotFoundError: A ``select`` or ``order`` entry is not a column.
        EntityMetadataError: ``select`` is empty.
        RelationsNotFoundError: Some relation paths could not be resolved.
        JoinPathError: A ``join`` directive does not name a known relation.

    Example:
        >>> qb = apply_options_to_query_builder(
        ...     SelectQueryBuilder(registry["Post"], "post"),
        ...     FindManyOptions(relations=("author",), order={"id": -1}, take=10),
        ... )
        >>> [join.alias for join in qb.join_attributes]
        ['post__author']
    """
    if not isinstance(options, FindOneOptions):
        return qb

    metadata = qb.metadata
    alias = qb.alias

    if options.select is not None:
        if not options.select:
            raise EntityMetadataError(f"Empty select for the {metadata.name} entity")
        selection = []
        for name in options.select:
            if metadata.find_column_with_property_path(name) is None:
                raise ColumnNotFoundError(name, metadata.name)
            selection.append(f"{alias}.{name}")
        qb = qb.select(selection)

    if options.where is not None:
        qb = qb.where(options.where)

    if isinstance(options, FindManyOptions):
        if options.skip is not None:
            qb = qb.skip(options.skip)
        if options.take is not None:
            qb = qb.take(options.take)

    if options.order:
        for key, value in options.order.items():
            if metadata.find_column_with_property_path(key) is None:
                raise ColumnNotFoundError(key, metadata.name)
            if direction := _order_direction(value):
                qb = qb.add_order_by(f"{alias}.{key}", direction)

    if options.relations is not None:
        qb = qb.add_joins(resolve_relations(options.relations, alias, metadata))

    if options.join is not None:
        for method in _JOIN_METHODS:
            directives: Mapping[str, str] = getattr(options.join, method)
            for join_alias, entity_or_property in directives.items():
                qb = getattr(qb, method)(entity_or_property, join_alias)

    if options.cache:
        if isinstance(options.cache, CacheOptions):
            cache_id = options.cache.id
            qb = qb.cache(True if cache_id is None else cache_id, options.cache.milliseconds)
        else:
            qb = qb.cache(options.cache)

    if options.load_relation_ids is True:
        qb = qb.load_all_relation_ids()
    elif isinstance(options.load_relation_ids, RelationIdOptions):
        qb = qb.load_all_relation_ids(options.load_relation_ids)

    if options.load_eager_relations:
        qb = qb.add_joins(join_eager_relations(alias, metadata))

    logger.debug("Applied find options to %s with %d joins", metadata.name, len(qb.join_attributes))
    return qb


def apply_find_many_options_or_conditions(qb: QB, options_or_conditions: Any) -> QB:
    """Apply find options, or a bare condition, to *qb*.

    Untyped input is converted by :func:`~sqla_entitymeta.options.coerce_options`:
    mappings shaped like find options are applied as options, any other value
    becomes the WHERE clause, and ``None`` leaves *qb* unchanged.

    Example:
        >>> qb = apply_find_many_options_or_conditions(qb, {"relations": ["author"], "take": 5})
        >>> qb = apply_find_many_options_or_conditions(qb, {"title": "hello"})  # WHERE title = 'hello'
    """
    options = coerce_options(options_or_conditions)
    if options is None:
        return qb

    if isinstance(options, RawPredicate):
        return qb.where(options.value)

    return apply_options_to_query_builder(qb, options)


def cache_info() -> dict[str, Any]:
    """Return LRU cache statistics for all internal caches."""
    return {fn.__name__: fn.cache_info() for fn in (_resolve_relations, snake_case)}


def cache_clear() -> None:
    """Clear all internal LRU caches."""
    for fn in (_resolve_relations, snake_case):
        fn.cache_clear()
