"""
Record graph explorer.

Starting from one seed record, the explorer walks relationships until every
reachable record has been visited, collecting an insert for each record and
the foreign-key dependencies between entity types. Once the queue is empty
the dependency graph is solved into an insert order.

Traversal is bounded by three rules:

1. A record is processed at most once (visited set keyed by EntityRef).
2. "Many" relationships into a type that already has visited records are not
   expanded again.
3. The seed type is blacklisted; a blacklisted type's owning relationships
   blacklist their targets as well. Blacklisted types are never enqueued,
   though owning relationships into them still order the inserts.
"""
import logging
import time
from typing import Any, List, Optional, Set

from dbexplorer.config import ExplorerConfig
from dbexplorer.dependency.graph import TypeDependencyGraph
from dbexplorer.errors import (
    ExplorerError, RelationshipResolutionError, SeedNotFoundError, UnresolvedDependencyOrderError
)
from dbexplorer.explorer.classifier import RelationshipClassifier
from dbexplorer.explorer.inserts import InsertCollector
from dbexplorer.models import (
    EntityRef, EntityType, ExplorationResult, QueueEntry, RelationshipDef, SkippedEntry
)
from dbexplorer.provider import SchemaProvider


class ExplorationSession:
    """All mutable state of one exploration run."""

    def __init__(self, seed_type: EntityType, seed_ref: EntityRef) -> None:
        self.seed_ref = seed_ref
        # LIFO work list of records to explore
        self.queue: List[QueueEntry] = []
        # Types not to expand; grows along owning relationships of blacklisted types
        self.blacklist: Set[EntityType] = {seed_type}
        self.visited: Set[EntityRef] = set()
        self.visited_order: List[EntityRef] = []
        # Used to tell if a "many" relationship is visitable
        self.visited_types: Set[EntityType] = set()
        self.dependencies = TypeDependencyGraph()
        self.inserts = InsertCollector()
        self.skipped: List[SkippedEntry] = []
        self.missing_relationships = 0
        self.abort_reason: Optional[str] = None
        self.started_at = time.monotonic()

    def is_visited(self, ref: EntityRef) -> bool:
        return ref in self.visited

    def mark_as_visited(self, ref: EntityRef, entity_type: EntityType) -> None:
        self.visited.add(ref)
        self.visited_order.append(ref)
        self.visited_types.add(entity_type)

    def add_to_blacklist(self, calling_type: EntityType, type_to_blacklist: Optional[EntityType],
                         step: RelationshipDef) -> None:
        """Blacklist the target when an already blacklisted type owns it."""
        if type_to_blacklist is None:
            return
        if step.is_owning and calling_type in self.blacklist:
            self.blacklist.add(type_to_blacklist)

    def elapsed(self) -> float:
        return time.monotonic() - self.started_at


class Explorer:
    """
    Extracts the subgraph of records reachable from a seed record.

    Args:
        provider: Schema/fetch provider giving access to records
        config: Run configuration; defaults to a lenient configuration
        classifier: Relationship filtering rules
    """

    def __init__(
        self,
        provider: SchemaProvider,
        config: Optional[ExplorerConfig] = None,
        classifier: Optional[RelationshipClassifier] = None,
    ) -> None:
        self._logger = logging.getLogger("Explorer")
        self.provider = provider
        self.config = config or ExplorerConfig()
        self.classifier = classifier or RelationshipClassifier()
        self._cancelled = False
        self.session: Optional[ExplorationSession] = None

    def cancel(self) -> None:
        """Stop the current run before its next queue entry."""
        self._cancelled = True

    def explore(self, entity_type: EntityType, primary_key: Any) -> ExplorationResult:
        """Look up the seed record by primary key and explore from it."""
        try:
            seed = self.provider.find(entity_type, primary_key)
        except Exception as e:
            self._logger.error(f"Seed lookup for {entity_type}/{primary_key} failed: {e}")
            raise SeedNotFoundError(entity_type, primary_key) from e
        if seed is None:
            raise SeedNotFoundError(entity_type, primary_key)
        return self.run(entity_type, seed)

    def run(self, seed_type: EntityType, seed_instance: Any) -> ExplorationResult:
        """
        Explore every record reachable from `seed_instance`.

        Returns:
            The exploration result with insert order and collected inserts

        Raises:
            RelationshipResolutionError: an entry failed and the run is strict
            UnresolvedDependencyOrderError: types were left unordered and the
                config asks to fail on that
        """
        if seed_instance is None:
            raise SeedNotFoundError(seed_type, None)
        self._cancelled = False
        session = ExplorationSession(seed_type, self.provider.identity_of(seed_instance))
        self.session = session
        session.queue.append(QueueEntry(entity_type=seed_type, instance=seed_instance))
        self._logger.info(f"Exploring from {session.seed_ref}")

        while session.queue:
            if self._should_abort(session):
                break
            entry = session.queue.pop()
            self._process_entry(session, entry)

        return self._finish(session)

    def _should_abort(self, session: ExplorationSession) -> bool:
        if self._cancelled:
            session.abort_reason = "cancelled"
        elif self.config.timeout_seconds is not None and session.elapsed() > self.config.timeout_seconds:
            session.abort_reason = f"timed out after {self.config.timeout_seconds} seconds"
        elif self.config.max_entities is not None and len(session.visited) >= self.config.max_entities:
            session.abort_reason = f"reached max_entities ({self.config.max_entities})"
        else:
            return False
        self._logger.warning(f"Exploration aborted: {session.abort_reason}, {len(session.queue)} entries left")
        return True

    def _process_entry(self, session: ExplorationSession, entry: QueueEntry) -> None:
        ref: Optional[EntityRef] = None
        try:
            ref = self.provider.identity_of(entry.instance)
            self._execute(session, entry.entity_type, entry.instance, ref)
        except ExplorerError:
            raise
        except Exception as e:
            self._logger.error(f"Error exploring {ref or entry.entity_type}: {e}", exc_info=True)
            if self.config.strict:
                raise RelationshipResolutionError(entry.entity_type, ref, e) from e
            session.skipped.append(SkippedEntry(entity_type=entry.entity_type, ref=ref, error=str(e)))

    def _execute(self, session: ExplorationSession, entity_type: EntityType, obj: Any, ref: EntityRef) -> None:
        if session.is_visited(ref):
            self._logger.debug(f"{ref} already visited")
            return
        session.mark_as_visited(ref, entity_type)
        session.inserts.add(entity_type, ref, self.provider.render_insert(obj))
        # Every visited type gets a place in the insert order
        session.dependencies.ensure_node(entity_type)

        visitable = [
            relationship for relationship in self.provider.relationships_of(entity_type)
            if self.classifier.should_traverse(
                relationship,
                self.provider.resolve_target_type(relationship, obj),
                session.visited_types,
            )
        ]
        self._logger.debug(f"{ref}: visiting {len(visitable)} relationships")

        for relationship in visitable:
            chain = relationship.chain
            if len(chain) > 2:
                self._logger.debug(f"Chain size: {len(chain)} type: {entity_type} obj: {ref} name: {relationship.name}")
            for step in chain:
                self._visit_step(session, entity_type, obj, relationship, step)

    def _visit_step(
        self,
        session: ExplorationSession,
        entity_type: EntityType,
        obj: Any,
        relationship: RelationshipDef,
        step: RelationshipDef,
    ) -> None:
        step_type = self.provider.resolve_target_type(step, obj)
        session.add_to_blacklist(calling_type=entity_type, type_to_blacklist=step_type, step=step)
        owning = self.classifier.is_dependency_source(relationship)
        blacklisted = step_type in session.blacklist
        if blacklisted and not owning:
            self._logger.debug(f"Skipping {step_type} because blacklisted. type: {entity_type}, step: {step.name}")
            return

        if not self.provider.exposes(obj, step):
            session.missing_relationships += 1
            self._logger.debug(f"{entity_type} does not expose {step.name}, skipping")
            return

        new_objects = [o for o in self.provider.related_instances(obj, step) if o is not None]

        if (owning and new_objects and step_type is not None and step_type != entity_type
                and not session.dependencies.depends_on(entity_type, step_type)):
            session.dependencies.add_dependency(entity_type, step_type)
            session.dependencies.ensure_node(step_type)

        if blacklisted:
            return
        for new_obj in new_objects:
            session.queue.append(QueueEntry(entity_type=step_type, instance=new_obj))

    def _finish(self, session: ExplorationSession) -> ExplorationResult:
        insert_order, residual = session.dependencies.solve()
        cycles: List[List[EntityType]] = []
        if residual:
            session.dependencies.detect_cycles(only=set(residual))
            cycles = [list(c) for c in session.dependencies.get_cycles()]

        elapsed = session.elapsed()
        result = ExplorationResult(
            seed=session.seed_ref,
            insert_order=insert_order,
            inserts=session.inserts.as_dict(),
            dependencies=session.dependencies.as_dict(),
            residual=residual,
            cycles=cycles,
            visited=list(session.visited_order),
            skipped=list(session.skipped),
            missing_relationships=session.missing_relationships,
            completed=session.abort_reason is None,
            abort_reason=session.abort_reason,
            elapsed_seconds=elapsed,
        )
        self._logger.info(f"Finished in {elapsed:.3f} seconds")
        self._logger.info(f"Visited {len(session.visited)} objects")
        if session.skipped:
            self._logger.warning(f"Skipped {len(session.skipped)} entries after errors")

        if residual and self.config.fail_on_residual:
            raise UnresolvedDependencyOrderError(residual, result)
        return result
