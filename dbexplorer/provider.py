"""
Schema/fetch providers.

A provider is the only thing that knows what entity instances look like: it
lists the relationships of a type, resolves polymorphic targets, fetches
related records and renders inserts. The explorer core talks to it through
the `SchemaProvider` protocol.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple, runtime_checkable

from dbexplorer.models import EntityRef, EntityType, RelationshipDef


@runtime_checkable
class SchemaProvider(Protocol):
    """Protocol for the metadata and fetch layer the explorer depends on."""
    def relationships_of(self, entity_type: EntityType) -> Sequence[RelationshipDef]: ...
    def resolve_target_type(self, step: RelationshipDef, instance: Any) -> Optional[EntityType]: ...
    def exposes(self, instance: Any, step: RelationshipDef) -> bool: ...
    def related_instances(self, instance: Any, step: RelationshipDef) -> Sequence[Any]: ...
    def identity_of(self, instance: Any) -> EntityRef: ...
    def render_insert(self, instance: Any) -> Any: ...
    def find(self, entity_type: EntityType, primary_key: Any) -> Optional[Any]: ...


def sql_literal(value: Any) -> str:
    """Render a Python value as a SQL literal."""
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        value = value.isoformat()
    text = str(value).replace("'", "''")
    return f"'{text}'"


##############################
# In-memory provider
##############################

@dataclass(eq=False)
class Record:
    """
    A plain in-memory row.

    `fields` are the persisted column values; `relations` maps relationship
    names to a related Record, a list of Records, or None.
    """
    entity_type: EntityType
    fields: Dict[str, Any] = field(default_factory=dict)
    relations: Dict[str, Any] = field(default_factory=dict)

    def link(self, name: str, other: Optional["Record"]) -> "Record":
        """Set a single-valued relationship."""
        self.relations[name] = other
        return self

    def append(self, name: str, *others: "Record") -> "Record":
        """Add records to a collection relationship."""
        self.relations.setdefault(name, []).extend(others)
        return self

    def __repr__(self) -> str:
        return f"Record({self.entity_type}, {self.fields})"


@dataclass
class TypeInfo:
    """Registered metadata for one entity type."""
    entity_type: EntityType
    relationships: Tuple[RelationshipDef, ...] = ()
    primary_key: str = "id"
    table_name: Optional[str] = None


class InMemorySchemaProvider(SchemaProvider):
    """
    Provider over explicitly declared types and in-memory records.

    Polymorphic relationships resolve through a `<name>_type` field on the
    owning record, the same convention as a polymorphic foreign key column.
    """
    def __init__(self) -> None:
        self._logger = logging.getLogger("InMemorySchemaProvider")
        self._types: Dict[EntityType, TypeInfo] = {}
        self._records: Dict[Tuple[EntityType, Any], Record] = {}

    def register_type(
        self,
        entity_type: EntityType,
        relationships: Sequence[RelationshipDef] = (),
        primary_key: str = "id",
        table_name: Optional[str] = None,
    ) -> TypeInfo:
        info = TypeInfo(entity_type, tuple(relationships), primary_key, table_name)
        self._types[entity_type] = info
        self._logger.debug(f"Registered {entity_type} with {len(info.relationships)} relationships")
        return info

    def add(self, entity_type: EntityType, **fields: Any) -> Record:
        """Create and store a record of `entity_type`."""
        record = Record(entity_type, dict(fields))
        self._records[(entity_type, self._primary_key(record))] = record
        return record

    def _info(self, entity_type: EntityType) -> TypeInfo:
        info = self._types.get(entity_type)
        if info is None:
            info = self.register_type(entity_type)
        return info

    def _primary_key(self, record: Record) -> Any:
        return record.fields.get(self._info(record.entity_type).primary_key)

    def relationships_of(self, entity_type: EntityType) -> Sequence[RelationshipDef]:
        return self._info(entity_type).relationships

    def resolve_target_type(self, step: RelationshipDef, instance: Record) -> Optional[EntityType]:
        if not step.polymorphic:
            return step.target_type
        declared = instance.fields.get(f"{step.name}_type")
        if declared:
            return declared
        related = instance.relations.get(step.name)
        if isinstance(related, Record):
            return related.entity_type
        return step.target_type

    def exposes(self, instance: Record, step: RelationshipDef) -> bool:
        return step.name in instance.relations

    def related_instances(self, instance: Record, step: RelationshipDef) -> Sequence[Any]:
        value = instance.relations.get(step.name)
        if value is None:
            return []
        if isinstance(value, (list, tuple, set)):
            return list(value)
        return [value]

    def identity_of(self, instance: Record) -> EntityRef:
        return EntityRef(entity_type=instance.entity_type, primary_key=self._primary_key(instance))

    def render_insert(self, instance: Record) -> str:
        info = self._info(instance.entity_type)
        table = info.table_name or instance.entity_type
        columns = ", ".join(instance.fields)
        values = ", ".join(sql_literal(v) for v in instance.fields.values())
        return f"INSERT INTO {table} ({columns}) VALUES ({values});"

    def find(self, entity_type: EntityType, primary_key: Any) -> Optional[Record]:
        return self._records.get((entity_type, primary_key))

    def records(self, entity_type: Optional[EntityType] = None) -> List[Record]:
        return [r for (t, _), r in self._records.items() if entity_type is None or t == entity_type]
