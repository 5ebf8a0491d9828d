"""
Core data types for record graph exploration.

Entity types are plain strings (a table or model name). Entity instances are
opaque handles owned by a schema provider; the explorer only ever touches them
through the provider's accessors.
"""
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Tuple

from pydantic import BaseModel, ConfigDict, Field

EntityType = str


class RelationshipKind(str, Enum):
    """Kinds of declared relationships between entity types."""
    HAS_ONE = "has_one"
    HAS_MANY = "has_many"
    BELONGS_TO = "belongs_to"  # owning side, holds the foreign key
    THROUGH = "through"
    MANY_TO_MANY = "many_to_many"


MANY_KINDS = frozenset({
    RelationshipKind.HAS_MANY,
    RelationshipKind.THROUGH,
    RelationshipKind.MANY_TO_MANY,
})


class EntityRef(BaseModel):
    """Identity of a single record: its type plus primary key."""
    entity_type: EntityType
    primary_key: Any

    model_config = ConfigDict(frozen=True)

    def __hash__(self) -> int:
        return hash((self.entity_type, _hashable(self.primary_key)))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EntityRef):
            return False
        return (self.entity_type, _hashable(self.primary_key)) == (other.entity_type, _hashable(other.primary_key))

    def __str__(self) -> str:
        return f"{self.entity_type}/{self.primary_key}"


def _hashable(value: Any) -> Any:
    if isinstance(value, list):
        return tuple(value)
    return value


class RelationshipDef(BaseModel):
    """
    One declared relationship on an entity type.

    `target_type` is the statically declared target; polymorphic relationships
    resolve their real target per instance through the provider. `chain` lists
    the steps that must be walked to reach the related records. A direct
    relationship is its own single-step chain.
    """
    name: str
    kind: RelationshipKind
    target_type: Optional[EntityType] = None
    polymorphic: bool = False
    steps: Tuple["RelationshipDef", ...] = Field(default_factory=tuple)

    model_config = ConfigDict(frozen=True)

    @property
    def chain(self) -> Tuple["RelationshipDef", ...]:
        if self.steps:
            return self.steps
        return (self,)

    @property
    def is_owning(self) -> bool:
        return self.kind == RelationshipKind.BELONGS_TO

    @property
    def is_many(self) -> bool:
        return self.kind in MANY_KINDS

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.name}->{self.target_type}"


class QueueEntry(BaseModel):
    """A pending (type, instance) pair on the exploration queue."""
    entity_type: EntityType
    instance: Any = Field(exclude=True)

    model_config = ConfigDict(arbitrary_types_allowed=True)


class SkippedEntry(BaseModel):
    """Diagnostic for a queue entry that failed and was skipped."""
    entity_type: EntityType
    ref: Optional[EntityRef] = None
    error: str


class ExplorationResult(BaseModel):
    """
    Everything a finished (or aborted) exploration run produced.

    `insert_order` lists entity types so that each type comes after every type
    it depends on. `inserts` holds the rendered inserts per type in visitation
    order. Types caught in dependency cycles are in `residual`, not in
    `insert_order`.
    """
    seed: EntityRef
    insert_order: List[EntityType] = Field(default_factory=list)
    inserts: Dict[EntityType, List[Any]] = Field(default_factory=dict)
    dependencies: Dict[EntityType, Set[EntityType]] = Field(default_factory=dict)
    residual: Dict[EntityType, Set[EntityType]] = Field(default_factory=dict)
    cycles: List[List[EntityType]] = Field(default_factory=list)
    visited: List[EntityRef] = Field(default_factory=list)
    skipped: List[SkippedEntry] = Field(default_factory=list)
    missing_relationships: int = 0
    completed: bool = True
    abort_reason: Optional[str] = None
    elapsed_seconds: float = 0.0

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @property
    def visited_count(self) -> int:
        return len(self.visited)

    @property
    def is_complete(self) -> bool:
        """True when traversal finished and every type got ordered."""
        return self.completed and not self.residual and not self.skipped

    def ordered_inserts(self, include_residual: bool = True) -> List[Any]:
        """Flatten the collected inserts in dependency order."""
        statements: List[Any] = []
        for entity_type in self.insert_order:
            statements.extend(self.inserts.get(entity_type, []))
        if include_residual:
            for entity_type in self.residual:
                statements.extend(self.inserts.get(entity_type, []))
        return statements

    def to_script(self, include_residual: bool = True) -> str:
        """
        Render the inserts as one SQL script.

        Types left in the residual graph are appended after the ordered ones
        under a comment, since no safe position exists for them.
        """
        lines: List[str] = []
        for entity_type in self.insert_order:
            lines.extend(_terminated(s) for s in self.inserts.get(entity_type, []))
        if include_residual and self.residual:
            unresolved = ", ".join(
                f"{t} -> {{{', '.join(sorted(deps))}}}" for t, deps in self.residual.items()
            )
            lines.append(f"-- Unresolved dependencies: {unresolved}")
            for entity_type in self.residual:
                lines.extend(_terminated(s) for s in self.inserts.get(entity_type, []))
        return "\n".join(lines) + ("\n" if lines else "")


def _terminated(statement: Any) -> str:
    text = str(statement).rstrip()
    return text if text.endswith(";") else f"{text};"


RelationshipDef.model_rebuild()
