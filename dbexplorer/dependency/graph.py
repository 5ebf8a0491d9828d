"""
Implementation of the entity type dependency graph.

Each node is an entity type; an edge A -> B means rows of A hold a foreign key
to rows of B, so B must be inserted first. The graph only grows while records
are explored. Ordering works on a clone so the explored graph stays available
for diagnostics afterwards.
"""
import logging
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple

from pydantic import BaseModel, Field

# Configure logging
logger = logging.getLogger("TypeDependencyGraph")


class CycleStatus(Enum):
    """Status of cycle detection."""
    NO_CYCLE = 0
    CYCLE_DETECTED = 1


class GraphNode(BaseModel):
    """Represents one entity type in the dependency graph."""
    entity_type: str
    dependencies: Set[str] = Field(default_factory=set)  # types that must be inserted before this one
    dependents: Set[str] = Field(default_factory=set)  # types that must be inserted after this one

    def add_dependency(self, dep_type: str) -> None:
        """Add a dependency to this node."""
        self.dependencies.add(dep_type)

    def add_dependent(self, dep_type: str) -> None:
        """Add a dependent to this node."""
        self.dependents.add(dep_type)

    def __str__(self) -> str:
        return f"Node({self.entity_type}, deps={len(self.dependencies)}, dependents={len(self.dependents)})"

    def __repr__(self) -> str:
        return self.__str__()


class TypeDependencyGraph(BaseModel):
    """
    Accumulates and orders the dependencies between entity types.

    This class provides methods to:
    1. Register visited types and the types they depend on
    2. Derive an insert order (dependencies first)
    3. Report the residual graph and its cycles when no full order exists
    """
    nodes: Dict[str, GraphNode] = Field(default_factory=dict)  # insertion ordered
    cycles: List[List[str]] = Field(default_factory=list)

    @classmethod
    def from_dict(cls, dependencies: Dict[str, Set[str]]) -> "TypeDependencyGraph":
        """Build a graph from a plain mapping of type -> types it depends on."""
        graph = cls()
        for entity_type, deps in dependencies.items():
            graph.ensure_node(entity_type)
            for dep in deps:
                graph.add_dependency(entity_type, dep)
        return graph

    def ensure_node(self, entity_type: str) -> GraphNode:
        """Make sure a type has an entry, even without dependencies."""
        node = self.nodes.get(entity_type)
        if node is None:
            node = GraphNode(entity_type=entity_type)
            node.dependents.update(t for t, other in self.nodes.items() if entity_type in other.dependencies)
            self.nodes[entity_type] = node
        return node

    def add_dependency(self, entity_type: str, dep_type: str) -> bool:
        """
        Record that `entity_type` must be inserted after `dep_type`.

        The dependency target does not get a node of its own; it only becomes
        orderable once it is registered through `ensure_node`.

        Returns:
            True if the dependency was new
        """
        node = self.ensure_node(entity_type)
        if dep_type in node.dependencies:
            return False
        node.add_dependency(dep_type)
        if dep_type in self.nodes:
            self.nodes[dep_type].add_dependent(entity_type)
        logger.debug(f"Dependency: {entity_type} depends on {dep_type}")
        return True

    def depends_on(self, entity_type: str, dep_type: str) -> bool:
        node = self.nodes.get(entity_type)
        return node is not None and dep_type in node.dependencies

    def get_node(self, entity_type: str) -> Optional[GraphNode]:
        """Get a node by entity type."""
        return self.nodes.get(entity_type)

    def get_dependent_types(self, entity_type: str) -> Set[str]:
        """
        Get the types that depend on this type.

        Args:
            entity_type: Type to get dependents for

        Returns:
            Set of dependent entity types
        """
        node = self.get_node(entity_type)
        if node:
            return node.dependents
        return set()

    def as_dict(self) -> Dict[str, Set[str]]:
        """Plain copy of the graph: type -> set of types it depends on."""
        return {t: set(node.dependencies) for t, node in self.nodes.items()}

    def clone(self) -> "TypeDependencyGraph":
        """Independent deep copy; mutating it leaves this graph untouched."""
        return self.model_copy(deep=True)

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, entity_type: object) -> bool:
        return entity_type in self.nodes

    def solve(self) -> Tuple[List[str], Dict[str, Set[str]]]:
        """
        Derive the insert order.

        Repeatedly takes the first type (in registration order) whose
        dependencies are all placed, appends it and removes it from every
        remaining dependency set. Whatever is left can't be ordered: it is
        returned as the residual graph instead of raising.

        Returns:
            Tuple of (insert_order, residual)
        """
        deps = self.clone().as_dict()
        insert_order: List[str] = []

        while True:
            to_insert = next((t for t, d in deps.items() if not d), None)
            if to_insert is None:
                break
            insert_order.append(to_insert)
            del deps[to_insert]
            for remaining in deps.values():
                remaining.discard(to_insert)

        if deps:
            logger.warning(f"Some dependencies could not be inserted: {sorted(deps)}")
        else:
            logger.debug(f"Derived insert order for {len(insert_order)} types")
        return insert_order, deps

    def detect_cycles(self, only: Optional[Set[str]] = None) -> CycleStatus:
        """
        Find dependency cycles using DFS and store them in `cycles`.

        Args:
            only: Optional subset of types to search (e.g. a residual graph)

        Returns:
            CycleStatus indicating if any cycles were detected
        """
        self.cycles.clear()
        deps = self.as_dict()
        if only is not None:
            deps = {t: d & only for t, d in deps.items() if t in only}

        seen: Set[Tuple[str, ...]] = set()
        visited: Set[str] = set()  # Nodes we've fully processed
        path: List[str] = []  # Nodes in current path

        def find_cycles(node_type: str) -> None:
            if node_type in path:
                cycle = path[path.index(node_type):]
                # Rotate so the same cycle found from another start matches
                start = cycle.index(min(cycle))
                key = tuple(cycle[start:] + cycle[:start])
                if key not in seen:
                    seen.add(key)
                    self.cycles.append(list(key))
                    logger.warning(f"Detected cycle: {' -> '.join(key + (key[0],))}")
                return
            if node_type in visited:
                return

            path.append(node_type)
            for dep_type in sorted(deps.get(node_type, ())):
                find_cycles(dep_type)
            path.pop()
            visited.add(node_type)

        for node_type in deps:
            find_cycles(node_type)

        return CycleStatus.CYCLE_DETECTED if self.cycles else CycleStatus.NO_CYCLE

    def get_cycles(self) -> List[List[str]]:
        """Get all detected cycles in the graph."""
        return self.cycles
