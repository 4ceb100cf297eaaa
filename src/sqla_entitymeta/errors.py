from __future__ import annotations

from collections.abc import Sequence


class EntityMetadataError(ValueError):
    """Base class for every error raised while building or querying entity metadata."""


class EntityNotFoundError(EntityMetadataError):
    def __init__(self, target: str) -> None:
        self.target = target
        super().__init__(f"No metadata for {target!r} was found")


class ColumnNotFoundError(EntityMetadataError):
    """Raised when a select or order entry names a column the entity does not declare."""

    def __init__(self, column: str, entity: str) -> None:
        self.column = column
        self.entity = entity
        super().__init__(f"{column} column was not found in the {entity} entity.")


class ReferencedColumnNotFoundError(EntityMetadataError):
    """Raised when a join-table join column references a column missing on its entity."""

    def __init__(self, column: str, entity: str) -> None:
        self.column = column
        self.entity = entity
        super().__init__(f"Referenced column {column} was not found in entity {entity}")


class RelationsNotFoundError(EntityMetadataError):
    """Raised after a relation-graph traversal when requested paths were left unconsumed.

    ``paths`` always holds the complete set of unresolved paths, in request order.
    """

    def __init__(self, paths: Sequence[str]) -> None:
        self.paths = tuple(paths)
        joined = ", ".join(self.paths)
        super().__init__(
            f"Relation{'s' if len(self.paths) > 1 else ''} {joined} "
            f"{'were' if len(self.paths) > 1 else 'was'} not found, "
            "please check if they are correct and really exist in your entity."
        )


class JoinPathError(EntityMetadataError):
    def __init__(self, expression: str, reason: str) -> None:
        self.expression = expression
        super().__init__(f"Cannot join {expression!r}: {reason}")


class EagerRelationCycleError(EntityMetadataError):
    """Raised at build time when eager relations reference each other in a loop."""

    def __init__(self, cycle: Sequence[str]) -> None:
        self.cycle = tuple(cycle)
        super().__init__(f"Eager relations form a cycle: {' -> '.join(self.cycle)}")
