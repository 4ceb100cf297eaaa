from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any, TypeVar


K = TypeVar("K")
V = TypeVar("V")


class frozendict(Mapping[K, V]):  # noqa: N801
    """Immutable, hashable mapping that keeps insertion order.

    Registries, option bags and join directives are stored in ``frozendict``
    instances so metadata built at bootstrap cannot be mutated afterwards and
    option objects stay usable as cache keys.

    Hashing is lazy: a ``frozendict`` holding unhashable values can still be
    built and read, it only fails once ``hash()`` is requested. Use
    :func:`freeze` to convert nested dicts and lists first.

    Example:
        >>> fd = frozendict({"title": "ASC", "id": -1})
        >>> list(fd)
        ['title', 'id']
        >>> fd == {"id": -1, "title": "ASC"}
        True
    """

    __slots__ = ("_dict", "_hash")

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        self._dict: dict[K, V] = dict(*args, **kwargs)
        self._hash: int | None = None

    def __getitem__(self, key: K) -> V:
        return self._dict[key]

    def __contains__(self, key: Any) -> bool:
        return key in self._dict

    def __iter__(self) -> Iterator[K]:
        return iter(self._dict)

    def __len__(self) -> int:
        return len(self._dict)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self._dict!r}>"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, frozendict):
            return self._dict == other._dict

        if isinstance(other, dict):
            return self._dict == other

        return NotImplemented

    def __hash__(self) -> int:
        if self._hash is None:
            self._hash = hash(frozenset(self._dict.items()))

        return self._hash


def freeze(value: Any) -> Any:
    """Recursively convert dicts to ``frozendict`` and lists/sets to tuples.

    Strings, numbers and arbitrary objects (for example SQLAlchemy clauses) are
    returned unchanged.
    """
    if isinstance(value, Mapping):
        return frozendict((key, freeze(item)) for key, item in value.items())

    if isinstance(value, (list, tuple)):
        return tuple(freeze(item) for item in value)

    if isinstance(value, (set, frozenset)):
        return frozenset(freeze(item) for item in value)

    return value
