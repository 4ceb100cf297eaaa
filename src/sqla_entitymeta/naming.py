from __future__ import annotations

import re
from collections.abc import Sequence
from functools import lru_cache
from typing import Protocol, runtime_checkable


_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")
_NON_WORD = re.compile(r"[^0-9a-zA-Z]+")


@lru_cache(maxsize=1024)
def snake_case(value: str) -> str:
    """Convert ``PostCategory`` / ``postCategory`` / ``post.category`` to ``post_category``."""
    value = _CAMEL_BOUNDARY.sub("_", value)
    value = _NON_WORD.sub("_", value)

    return value.strip("_").lower()


@runtime_checkable
class NamingStrategy(Protocol):
    """Deterministic derivation of physical names from logical identifiers.

    Every method must be a pure function of its arguments: the same input always
    yields the same name, across calls and across processes.
    """

    def table_name(self, target: str, given: str | None) -> str: ...

    def column_name(self, property_name: str, given: str | None) -> str: ...

    def join_column_name(self, relation_name: str, referenced_column_name: str) -> str: ...

    def join_table_name(
        self,
        first_table_name: str,
        second_table_name: str,
        first_property_name: str,
        second_property_name: str,
    ) -> str: ...

    def join_table_column_name(
        self, table_name: str, property_name: str, column_name: str | None = None
    ) -> str: ...

    def join_table_inverse_column_name(
        self, table_name: str, property_name: str, column_name: str | None = None
    ) -> str: ...

    def join_table_column_duplication_prefix(self, column_name: str, index: int) -> str: ...

    def index_name(self, table_name: str, column_names: Sequence[str]) -> str: ...

    def foreign_key_name(
        self, table_name: str, column_names: Sequence[str], referenced_table_name: str
    ) -> str: ...


class DefaultNamingStrategy:
    """snake_case naming used when no custom strategy is supplied.

    Example:
        >>> naming = DefaultNamingStrategy()
        >>> naming.join_table_name("post", "category", "categories", "posts")
        'post_categories_category'
        >>> naming.join_table_column_name("post", "id", "id")
        'post_id'
    """

    __slots__ = ()

    def table_name(self, target: str, given: str | None) -> str:
        return given if given else snake_case(target)

    def column_name(self, property_name: str, given: str | None) -> str:
        return given if given else property_name

    def join_column_name(self, relation_name: str, referenced_column_name: str) -> str:
        return snake_case(f"{relation_name}_{referenced_column_name}")

    def join_table_name(
        self,
        first_table_name: str,
        second_table_name: str,
        first_property_name: str,
        second_property_name: str,  # noqa: ARG002
    ) -> str:
        return snake_case(
            f"{first_table_name}_{first_property_name.replace('.', '_')}_{second_table_name}"
        )

    def join_table_column_name(
        self, table_name: str, property_name: str, column_name: str | None = None
    ) -> str:
        return snake_case(f"{table_name}_{column_name or property_name}")

    def join_table_inverse_column_name(
        self, table_name: str, property_name: str, column_name: str | None = None
    ) -> str:
        return self.join_table_column_name(table_name, property_name, column_name)

    def join_table_column_duplication_prefix(self, column_name: str, index: int) -> str:
        return f"{column_name}_{index}"

    def index_name(self, table_name: str, column_names: Sequence[str]) -> str:
        return f"ix_{table_name}_{'_'.join(column_names)}"

    def foreign_key_name(
        self, table_name: str, column_names: Sequence[str], referenced_table_name: str
    ) -> str:
        return f"fk_{table_name}_{'_'.join(column_names)}_{referenced_table_name}"
