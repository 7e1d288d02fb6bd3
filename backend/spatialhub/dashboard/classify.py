"""Per-hundred color ramps for resource capacity and demand counts."""

from __future__ import annotations

import math
from typing import Dict, List, Tuple

from spatialhub.shared.models import LayerType

BUCKET_WIDTH = 100
BUCKET_COUNT = 10

PALETTES: Dict[LayerType, Tuple[str, ...]] = {
    LayerType.RESOURCE: (
        "#dbeafe",
        "#bfdbfe",
        "#93c5fd",
        "#60a5fa",
        "#3b82f6",
        "#2563eb",
        "#1d4ed8",
        "#1e40af",
        "#1e3a8a",
        "#172554",
    ),
    LayerType.DEMAND: (
        "#ffe4e6",
        "#fecdd3",
        "#fda4af",
        "#fb7185",
        "#f43f5e",
        "#e11d48",
        "#be123c",
        "#9f1239",
        "#881337",
        "#4c0519",
    ),
}


def bucket(magnitude: float) -> int:
    """Return the 0-9 bucket for a magnitude; negative or non-finite input is bucket 0."""
    try:
        value = float(magnitude)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(value) or value < 0:
        return 0
    return min(int(value // BUCKET_WIDTH), BUCKET_COUNT - 1)


def classify(magnitude: float, kind: LayerType) -> str:
    return PALETTES[LayerType(kind)][bucket(magnitude)]


def legend(kind: LayerType) -> List[Tuple[str, str]]:
    palette = PALETTES[LayerType(kind)]
    entries: List[Tuple[str, str]] = []
    for index, color in enumerate(palette):
        if index == 0:
            label = f"<{BUCKET_WIDTH}"
        elif index == BUCKET_COUNT - 1:
            label = f">{index * BUCKET_WIDTH}"
        else:
            label = f"{index * BUCKET_WIDTH}-{(index + 1) * BUCKET_WIDTH}"
        entries.append((label, color))
    return entries
