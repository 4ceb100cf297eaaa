"""Typed find options.

Callers describe a query with :class:`FindOneOptions` / :class:`FindManyOptions`
or, for a bare condition, :class:`RawPredicate`. Untyped input (plain dicts from
request parsing, configuration, ...) is converted once, at the boundary, by
:func:`coerce_options`; nothing past that point inspects shapes.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal, TypeAlias

from sqlalchemy.sql.elements import ClauseElement

from .datastructures import frozendict, freeze


logger = logging.getLogger(__name__)

OrderValue: TypeAlias = Literal[1, -1, "ASC", "DESC"]


@dataclass(slots=True, frozen=True)
class JoinOptions:
    """Explicit joins, keyed by the alias to register, valued by ``"alias.relation"``."""

    alias: str | None = None
    left_join: Mapping[str, str] = field(default_factory=frozendict)
    inner_join: Mapping[str, str] = field(default_factory=frozendict)
    left_join_and_select: Mapping[str, str] = field(default_factory=frozendict)
    inner_join_and_select: Mapping[str, str] = field(default_factory=frozendict)


@dataclass(slots=True, frozen=True)
class CacheOptions:
    """Object form of ``cache``; without an ``id`` it only enables caching."""

    id: str | None = None
    milliseconds: int | None = None


@dataclass(slots=True, frozen=True)
class RelationIdOptions:
    relations: tuple[str, ...] | None = None
    disable_mixed_map: bool = False


@dataclass(slots=True, frozen=True)
class FindOneOptions:
    select: tuple[str, ...] | None = None
    where: Any = None
    relations: tuple[str, ...] | None = None
    join: JoinOptions | None = None
    order: Mapping[str, OrderValue] | None = None
    cache: bool | int | CacheOptions | None = None
    load_relation_ids: bool | RelationIdOptions | None = None
    load_eager_relations: bool | None = None


@dataclass(slots=True, frozen=True)
class FindManyOptions(FindOneOptions):
    skip: int | str | None = None
    take: int | str | None = None


@dataclass(slots=True, frozen=True)
class RawPredicate:
    """A bare condition applied as the WHERE clause of the query."""

    value: Any


FindOptions: TypeAlias = FindOneOptions | FindManyOptions | RawPredicate

_FIND_MANY_KEYS = ("skip", "take")


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_object(value: Any) -> bool:
    return isinstance(value, (Mapping, ClauseElement))


def is_find_one_options(obj: Any) -> bool:
    """Check whether *obj* is shaped like single-result find options."""
    if isinstance(obj, FindOneOptions):
        return True

    if not isinstance(obj, Mapping):
        return False

    cache = obj.get("cache")
    load_relation_ids = obj.get("load_relation_ids")

    return (
        _is_sequence(obj.get("select"))
        or _is_object(obj.get("where"))
        or isinstance(obj.get("where"), str)
        or _is_sequence(obj.get("where"))
        or _is_sequence(obj.get("relations"))
        or isinstance(obj.get("join"), Mapping)
        or isinstance(obj.get("order"), Mapping)
        or isinstance(cache, (Mapping, bool, int, float))
        or isinstance(load_relation_ids, (Mapping, bool))
        or isinstance(obj.get("load_eager_relations"), bool)
    )


def is_find_many_options(obj: Any) -> bool:
    """Check whether *obj* is shaped like multi-result find options."""
    if is_find_one_options(obj):
        return True

    return isinstance(obj, Mapping) and any(
        _is_number(obj.get(key)) or isinstance(obj.get(key), str) for key in _FIND_MANY_KEYS
    )


def coerce_options(obj: Any) -> FindOptions | None:
    """Convert untyped find options to their typed form.

    Typed options pass through. A mapping shaped like find options becomes
    :class:`FindManyOptions`; anything else that is truthy becomes a
    :class:`RawPredicate`; ``None`` and empty values give ``None``.

    Example:
        >>> coerce_options({"relations": ["author"], "take": 10})
        FindManyOptions(select=None, ..., relations=('author',), ..., take=10)
        >>> coerce_options({"title": "hello"})
        RawPredicate(value=<frozendict {'title': 'hello'}>)
    """
    if isinstance(obj, (FindOneOptions, RawPredicate)):
        return obj

    if not is_find_many_options(obj):
        if obj is None or (not isinstance(obj, ClauseElement) and not obj):
            return None

        logger.debug("Options of type %s applied as a raw predicate", type(obj).__name__)
        return RawPredicate(freeze(obj))

    join = obj.get("join")
    cache = obj.get("cache")
    load_relation_ids = obj.get("load_relation_ids")

    return FindManyOptions(
        select=tuple(obj["select"]) if _is_sequence(obj.get("select")) else None,
        where=freeze(obj.get("where")),
        relations=tuple(obj["relations"]) if _is_sequence(obj.get("relations")) else None,
        join=JoinOptions(
            alias=join.get("alias"),
            left_join=frozendict(join.get("left_join") or {}),
            inner_join=frozendict(join.get("inner_join") or {}),
            left_join_and_select=frozendict(join.get("left_join_and_select") or {}),
            inner_join_and_select=frozendict(join.get("inner_join_and_select") or {}),
        )
        if isinstance(join, Mapping)
        else None,
        order=frozendict(obj["order"]) if isinstance(obj.get("order"), Mapping) else None,
        cache=CacheOptions(id=cache.get("id"), milliseconds=cache.get("milliseconds"))
        if isinstance(cache, Mapping)
        else cache,
        load_relation_ids=RelationIdOptions(
            relations=tuple(load_relation_ids["relations"]) if load_relation_ids.get("relations") else None,
            disable_mixed_map=bool(load_relation_ids.get("disable_mixed_map")),
        )
        if isinstance(load_relation_ids, Mapping)
        else load_relation_ids,
        load_eager_relations=obj.get("load_eager_relations"),
        skip=obj.get("skip"),
        take=obj.get("take"),
    )


def extract_find_many_options_alias(obj: Any) -> str | None:
    """Return the root alias requested through ``join.alias``, if any."""
    options = obj if isinstance(obj, (FindOneOptions, RawPredicate)) else coerce_options(obj)
    if isinstance(options, FindOneOptions) and options.join is not None:
        return options.join.alias

    return None
