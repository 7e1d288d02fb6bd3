from __future__ import annotations

from datetime import date
from typing import Optional, Tuple

from spatialhub.shared.constants import (
    DEMAND_TEMPLATE_CSV,
    DEMAND_TEMPLATE_FILENAME,
    REPORT_FILENAME_PREFIX,
    RESOURCE_TEMPLATE_CSV,
    RESOURCE_TEMPLATE_FILENAME,
)
from spatialhub.shared.models import LayerType


def csv_template(kind: LayerType) -> Tuple[str, str]:
    """Return (download filename, CSV body) for a layer's upload template."""
    if LayerType(kind) == LayerType.RESOURCE:
        return RESOURCE_TEMPLATE_FILENAME, RESOURCE_TEMPLATE_CSV
    return DEMAND_TEMPLATE_FILENAME, DEMAND_TEMPLATE_CSV


def report_filename(today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"{REPORT_FILENAME_PREFIX}_{today.isoformat()}.txt"


def report_export(report: str, today: Optional[date] = None) -> Tuple[str, str]:
    return report_filename(today), report or ""
