"""
Exceptions raised by an exploration run.

Only `SeedNotFoundError`, `RelationshipResolutionError` (strict runs) and
`UnresolvedDependencyOrderError` (when configured) escape `Explorer.run`.
Anything else is recorded on the `ExplorationResult`.
"""
from typing import TYPE_CHECKING, Any, Dict, Optional, Set

if TYPE_CHECKING:
    from dbexplorer.models import EntityRef, ExplorationResult


class ExplorerError(Exception):
    """Base class for all explorer errors."""


class SeedNotFoundError(ExplorerError):
    """The starting record could not be looked up."""

    def __init__(self, entity_type: str, primary_key: Any) -> None:
        self.entity_type = entity_type
        self.primary_key = primary_key
        super().__init__(f"Seed record {entity_type}/{primary_key} not found")


class RelationshipResolutionError(ExplorerError):
    """Resolving or fetching relationships of one queue entry failed."""

    def __init__(self, entity_type: str, ref: Optional["EntityRef"], cause: BaseException) -> None:
        self.entity_type = entity_type
        self.ref = ref
        self.cause = cause
        where = str(ref) if ref is not None else entity_type
        super().__init__(f"Failed to explore {where}: {cause}")


class UnresolvedDependencyOrderError(ExplorerError):
    """Some entity types could not be placed in the insert order."""

    def __init__(self, residual: Dict[str, Set[str]], result: Optional["ExplorationResult"] = None) -> None:
        self.residual = residual
        self.result = result
        super().__init__(f"Some dependencies could not be inserted: {sorted(residual)}")


class DuplicateInsertError(ExplorerError):
    """The same record was collected twice."""

    def __init__(self, ref: "EntityRef") -> None:
        self.ref = ref
        super().__init__(f"Insert for {ref} already collected")
