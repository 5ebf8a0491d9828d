"""
SQLAlchemy-backed schema provider.

Relationship metadata comes from the mappers of declarative classes:

- many-to-one relationships own the foreign key (BELONGS_TO)
- one-to-many relationships are HAS_MANY, or HAS_ONE when `uselist=False`
- relationships with a `secondary` table are MANY_TO_MANY
- association proxies over a relationship become THROUGH relationships whose
  chain is the intermediate collection followed by the proxied relationship

Entity types are mapped class names. Inserts are rendered with
`sqlalchemy.insert` compiled for the session's dialect with literal binds,
one statement per mapped table (joined inheritance spans several).

The provider only reads: it never flushes, commits or adds to the session.
"""
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Type

from sqlalchemy import inspect, insert
from sqlalchemy.engine import Dialect
from sqlalchemy.engine.default import DefaultDialect
from sqlalchemy.ext.associationproxy import AssociationProxyExtensionType
from sqlalchemy.orm import Mapper, RelationshipDirection, RelationshipProperty, Session
from sqlalchemy.orm.exc import UnmappedColumnError

from dbexplorer.models import EntityRef, EntityType, RelationshipDef, RelationshipKind
from dbexplorer.provider import SchemaProvider


class SqlAlchemySchemaProvider(SchemaProvider):
    """
    Provider over SQLAlchemy declarative models.

    Args:
        session: Session used for the seed lookup and lazy loads
        models: Mapped classes the explorer may encounter
        dialect: Optional dialect to render inserts for (defaults to the
            session's bind)
    """
    def __init__(
        self,
        session: Session,
        models: Iterable[Type[Any]],
        dialect: Optional[Dialect] = None,
    ) -> None:
        self._logger = logging.getLogger("SqlAlchemySchemaProvider")
        self._session = session
        self._classes: Dict[EntityType, Type[Any]] = {}
        for model in models:
            self._classes[model.__name__] = model
        self._dialect = dialect
        self._relationship_cache: Dict[EntityType, List[RelationshipDef]] = {}
        self._logger.info(f"Initialized SQL provider with {len(self._classes)} mapped classes")

    @classmethod
    def from_base(cls, session: Session, base: Any, dialect: Optional[Dialect] = None) -> "SqlAlchemySchemaProvider":
        """Build a provider for every class mapped on a declarative base."""
        models = [mapper.class_ for mapper in base.registry.mappers]
        return cls(session, models, dialect)

    @property
    def dialect(self) -> Dialect:
        if self._dialect is None:
            bind = self._session.get_bind()
            self._dialect = bind.dialect if bind is not None else DefaultDialect()
        return self._dialect

    def model_for(self, entity_type: EntityType) -> Type[Any]:
        try:
            return self._classes[entity_type]
        except KeyError:
            raise KeyError(f"No mapped class registered for entity type {entity_type!r}") from None

    def _type_name(self, cls: Type[Any]) -> EntityType:
        self._classes.setdefault(cls.__name__, cls)
        return cls.__name__

    ##############################
    # Relationship metadata
    ##############################

    def relationships_of(self, entity_type: EntityType) -> Sequence[RelationshipDef]:
        cached = self._relationship_cache.get(entity_type)
        if cached is not None:
            return cached

        mapper: Mapper = inspect(self.model_for(entity_type))
        relationships: List[RelationshipDef] = []
        for prop in mapper.relationships:
            if prop.viewonly:
                self._logger.debug(f"Ignoring view-only relationship {entity_type}.{prop.key}")
                continue
            relationships.append(self._relationship_def(prop))

        for key, descriptor in mapper.all_orm_descriptors.items():
            if descriptor.extension_type is not AssociationProxyExtensionType.ASSOCIATION_PROXY:
                continue
            through = self._through_def(mapper, key, descriptor)
            if through is not None:
                relationships.append(through)

        self._relationship_cache[entity_type] = relationships
        self._logger.debug(f"{entity_type} declares {len(relationships)} relationships")
        return relationships

    def _relationship_def(self, prop: RelationshipProperty, name: Optional[str] = None) -> RelationshipDef:
        if prop.secondary is not None or prop.direction is RelationshipDirection.MANYTOMANY:
            kind = RelationshipKind.MANY_TO_MANY
        elif prop.direction is RelationshipDirection.MANYTOONE:
            kind = RelationshipKind.BELONGS_TO
        elif prop.uselist:
            kind = RelationshipKind.HAS_MANY
        else:
            kind = RelationshipKind.HAS_ONE
        target = prop.mapper
        return RelationshipDef(
            name=name or prop.key,
            kind=kind,
            target_type=self._type_name(target.class_),
            polymorphic=target.polymorphic_on is not None,
        )

    def _through_def(self, mapper: Mapper, key: str, proxy: Any) -> Optional[RelationshipDef]:
        collection = _relationship(mapper, proxy.target_collection)
        if collection is None:
            return None
        source = _relationship(collection.mapper, proxy.value_attr)
        if source is None:
            # Proxies to plain columns don't reach other records
            return None
        first = self._relationship_def(collection)
        second = self._relationship_def(source, name=key)
        return RelationshipDef(
            name=key,
            kind=RelationshipKind.THROUGH,
            target_type=second.target_type,
            polymorphic=second.polymorphic,
            steps=(first, second),
        )

    def resolve_target_type(self, step: RelationshipDef, instance: Any) -> Optional[EntityType]:
        """
        Resolve the class a relationship points to for this instance.

        For polymorphic single-valued relationships the loaded object's class
        wins over the declared base class.
        """
        if not step.polymorphic or step.kind in (RelationshipKind.HAS_MANY, RelationshipKind.MANY_TO_MANY,
                                                 RelationshipKind.THROUGH):
            return step.target_type
        related = getattr(instance, step.name, None)
        # Proxied collections and empty references keep the declared class
        state = inspect(related, raiseerr=False) if related is not None else None
        if state is None or not hasattr(state, "mapper"):
            return step.target_type
        return self._type_name(state.mapper.class_)

    ##############################
    # Instance access
    ##############################

    def exposes(self, instance: Any, step: RelationshipDef) -> bool:
        return hasattr(type(instance), step.name)

    def related_instances(self, instance: Any, step: RelationshipDef) -> Sequence[Any]:
        value = getattr(instance, step.name, None)
        if value is None:
            return []
        if inspect(value, raiseerr=False) is not None:
            return [value]
        if isinstance(value, Mapping):
            return list(value.values())
        return list(value)

    def identity_of(self, instance: Any) -> EntityRef:
        state = inspect(instance)
        mapper = state.mapper
        key = mapper.primary_key_from_instance(instance)
        primary_key = key[0] if len(key) == 1 else tuple(key)
        return EntityRef(entity_type=self._type_name(mapper.class_), primary_key=primary_key)

    def find(self, entity_type: EntityType, primary_key: Any) -> Optional[Any]:
        return self._session.get(self.model_for(entity_type), primary_key)

    def render_insert(self, instance: Any) -> str:
        """Render the INSERT statement(s) recreating this row."""
        mapper = inspect(instance).mapper
        statements = []
        for table in mapper.tables:
            values = {}
            for column in table.columns:
                try:
                    prop = mapper.get_property_by_column(column)
                except UnmappedColumnError:
                    continue
                values[column] = getattr(instance, prop.key)
            stmt = insert(table).values(values)
            compiled = stmt.compile(dialect=self.dialect, compile_kwargs={"literal_binds": True})
            statements.append(f"{compiled};")
        return "\n".join(statements)


def _relationship(mapper: Mapper, key: str) -> Optional[RelationshipProperty]:
    if key in mapper.relationships:
        return mapper.relationships[key]
    return None
