from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, List, Sequence

from spatialhub.shared.models import DemandItem, LayerType, PointItem, ResourceItem

logger = logging.getLogger(__name__)

MutationListener = Callable[[LayerType], None]


class DatasetStore:
    """Append-only point collections, one per layer, resettable per layer."""

    def __init__(self) -> None:
        self._items: Dict[LayerType, List[PointItem]] = {
            LayerType.RESOURCE: [],
            LayerType.DEMAND: [],
        }
        self._listeners: List[MutationListener] = []

    def subscribe(self, listener: MutationListener) -> None:
        self._listeners.append(listener)

    def append(self, kind: LayerType, items: Iterable[PointItem]) -> int:
        kind = LayerType(kind)
        expected = ResourceItem if kind == LayerType.RESOURCE else DemandItem
        batch = list(items)
        for item in batch:
            if not isinstance(item, expected):
                raise TypeError(f"{kind.value} layer only accepts {expected.__name__}, got {type(item).__name__}")
        # Rebinding keeps earlier snapshots from items() unchanged.
        self._items[kind] = self._items[kind] + batch
        logger.info("Appended %s %s items (total=%s)", len(batch), kind.value, len(self._items[kind]))
        self._notify(kind)
        return len(batch)

    def reset(self, kind: LayerType) -> None:
        kind = LayerType(kind)
        cleared = len(self._items[kind])
        self._items[kind] = []
        logger.info("Reset %s layer (%s items removed)", kind.value, cleared)
        self._notify(kind)

    def items(self, kind: LayerType) -> Sequence[PointItem]:
        return tuple(self._items[LayerType(kind)])

    @property
    def resources(self) -> Sequence[ResourceItem]:
        return self.items(LayerType.RESOURCE)  # type: ignore[return-value]

    @property
    def demands(self) -> Sequence[DemandItem]:
        return self.items(LayerType.DEMAND)  # type: ignore[return-value]

    def size(self, kind: LayerType) -> int:
        return len(self._items[LayerType(kind)])

    def both_populated(self) -> bool:
        return all(self._items[kind] for kind in LayerType)

    def aggregate(self, kind: LayerType) -> float:
        """Total capacity for RESOURCE, mean case count for DEMAND (0 when empty)."""
        kind = LayerType(kind)
        if kind == LayerType.RESOURCE:
            return float(sum(item.capacity for item in self.resources))
        demands = self.demands
        if not demands:
            return 0.0
        return sum(item.count for item in demands) / len(demands)

    def _notify(self, kind: LayerType) -> None:
        for listener in list(self._listeners):
            listener(kind)
