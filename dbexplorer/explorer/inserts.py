from typing import Any, Dict, List, Set

from dbexplorer.errors import DuplicateInsertError
from dbexplorer.models import EntityRef, EntityType


class InsertCollector:
    """Rendered inserts per entity type, kept in visitation order."""

    def __init__(self) -> None:
        self._inserts: Dict[EntityType, List[Any]] = {}
        self._refs: Set[EntityRef] = set()

    def add(self, entity_type: EntityType, ref: EntityRef, rendered: Any) -> None:
        if ref in self._refs:
            raise DuplicateInsertError(ref)
        self._refs.add(ref)
        self._inserts.setdefault(entity_type, []).append(rendered)

    def get(self, entity_type: EntityType) -> List[Any]:
        return list(self._inserts.get(entity_type, []))

    def as_dict(self) -> Dict[EntityType, List[Any]]:
        return {t: list(rows) for t, rows in self._inserts.items()}

    def count(self) -> int:
        return sum(len(rows) for rows in self._inserts.values())

    def __contains__(self, ref: object) -> bool:
        return ref in self._refs

    def __len__(self) -> int:
        return self.count()
