"""Decides which relationships get traversed and which ones order inserts."""
from typing import AbstractSet, Optional

from dbexplorer.models import EntityType, RelationshipDef, RelationshipKind


class RelationshipClassifier:
    """
    Relationship filtering rules.

    "Many" relationships (has-many, through, many-to-many) into a type whose
    records are already being visited are not expanded again. Single-record
    relationships are always followed. Only owning (belongs-to) relationships
    make the owner depend on the target for insert order.
    """

    def is_many(self, relationship: RelationshipDef) -> bool:
        return relationship.is_many

    def should_traverse(
        self,
        relationship: RelationshipDef,
        resolved_target_type: Optional[EntityType],
        visited_types: AbstractSet[EntityType],
    ) -> bool:
        return not (self.is_many(relationship) and resolved_target_type in visited_types)

    def is_dependency_source(self, relationship: RelationshipDef) -> bool:
        return relationship.kind == RelationshipKind.BELONGS_TO
