from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional, Set

from spatialhub.ingest.csv_adapter import CsvIngestionAdapter, IngestionResult
from spatialhub.insights.debounce import Scheduler
from spatialhub.insights.summarizer import InsightSummarizer, Runner
from spatialhub.dashboard.store import DatasetStore
from spatialhub.shared.constants import (
    DENSITY_SCALE_DEFAULT,
    DENSITY_SCALE_MAX,
    DENSITY_SCALE_MIN,
)
from spatialhub.shared.models import LayerType, PointItem

logger = logging.getLogger(__name__)


@dataclass
class InsightView:
    open: bool = False
    minimized: bool = False


class DashboardSession:
    """Owner of all mutable dashboard state; views read through snapshot()."""

    def __init__(
        self,
        adapter: Optional[CsvIngestionAdapter] = None,
        llm: Optional[Callable[..., Any]] = None,
        scheduler: Optional[Scheduler] = None,
        debounce_seconds: Optional[float] = None,
        sample_limit: Optional[int] = None,
        runner: Optional[Runner] = None,
    ) -> None:
        self._lock = threading.RLock()
        self.store = DatasetStore()
        self.active_layers: Set[LayerType] = {LayerType.RESOURCE, LayerType.DEMAND}
        self.density_scale = DENSITY_SCALE_DEFAULT
        self.view = InsightView()
        self.uploads_in_progress = 0
        self.adapter = adapter or CsvIngestionAdapter(llm=llm)
        self.summarizer = InsightSummarizer(
            self.store,
            llm=llm,
            scheduler=scheduler,
            delay=debounce_seconds,
            sample_limit=sample_limit,
            runner=runner,
            on_request_start=self._open_for_request,
            lock=self._lock,
        )

    @property
    def insight_report(self) -> str:
        return self.summarizer.report

    @property
    def loading(self) -> bool:
        return self.summarizer.loading

    @property
    def has_insights(self) -> bool:
        return bool(self.summarizer.report)

    def ingest(self, kind: LayerType, csv_text: str, force_local: bool = False) -> IngestionResult:
        kind = LayerType(kind)
        with self._lock:
            self.uploads_in_progress += 1
        try:
            result = self.adapter.ingest(csv_text, kind, force_local=force_local)
        finally:
            with self._lock:
                self.uploads_in_progress -= 1
        if result.ok and result.items:
            self.load(kind, result.items)
        return result

    def load(self, kind: LayerType, items: Iterable[PointItem]) -> int:
        with self._lock:
            return self.store.append(kind, items)

    def reset(self, kind: LayerType) -> None:
        with self._lock:
            self.store.reset(kind)
            self.summarizer.clear_report()
            self.view.open = False

    def toggle_layer(self, kind: LayerType) -> bool:
        kind = LayerType(kind)
        with self._lock:
            if kind in self.active_layers:
                self.active_layers.discard(kind)
            else:
                self.active_layers.add(kind)
            return kind in self.active_layers

    def set_density_scale(self, value: float) -> float:
        """Clamp and store the demand marker scale; non-finite input raises ValueError."""
        scale = float(value)
        if not math.isfinite(scale):
            raise ValueError(f"density scale must be finite, got {value!r}")
        scale = min(max(scale, DENSITY_SCALE_MIN), DENSITY_SCALE_MAX)
        with self._lock:
            self.density_scale = round(scale, 2)
            return self.density_scale

    def open_insights(self) -> None:
        with self._lock:
            self.view.open = True
            self.view.minimized = False

    def close_insights(self) -> None:
        with self._lock:
            self.view.open = False

    def toggle_minimized(self) -> bool:
        with self._lock:
            self.view.minimized = not self.view.minimized
            return self.view.minimized

    def _open_for_request(self) -> None:
        self.view.open = True
        self.view.minimized = False

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "active_layers": sorted(layer.value for layer in self.active_layers),
                "density_scale": self.density_scale,
                "counts": {kind.value: self.store.size(kind) for kind in LayerType},
                "total_capacity": self.store.aggregate(LayerType.RESOURCE),
                "average_demand_per_hundred": round(self.store.aggregate(LayerType.DEMAND), 1),
                "uploads_in_progress": self.uploads_in_progress,
                "insight": {
                    "state": self.summarizer.state.value,
                    "loading": self.summarizer.loading,
                    "has_report": self.has_insights,
                    "open": self.view.open,
                    "minimized": self.view.minimized,
                },
            }
