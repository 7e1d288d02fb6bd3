"""Parse upload CSVs without the extraction model, placing rows by district centroid."""

from __future__ import annotations

import csv
import io
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from spatialhub.shared.models import LayerType

logger = logging.getLogger(__name__)

Geocoder = Callable[..., Tuple[float, float]]

HEADER_ALIASES: Dict[LayerType, Dict[str, Tuple[str, ...]]] = {
    LayerType.RESOURCE: {
        "name": ("name", "名稱", "機構名稱", "醫療機構", "機構"),
        "address": ("address", "地址", "住址"),
        "capacity": ("capacity", "量能", "服務量能", "容量", "床數"),
    },
    LayerType.DEMAND: {
        "district": ("district", "區", "行政區", "區別"),
        "village": ("village", "里", "里別", "村里"),
        "count": ("count", "個案數", "需求數", "人數", "數量"),
    },
}


def _normalize_header(value: Optional[str]) -> str:
    return (value or "").strip().lstrip("\ufeff").strip().lower()


def _resolve_columns(fieldnames: List[str], kind: LayerType) -> Optional[Dict[str, str]]:
    normalized = {_normalize_header(name): name for name in fieldnames if name}
    columns: Dict[str, str] = {}
    for field, aliases in HEADER_ALIASES[kind].items():
        for alias in aliases:
            if alias.lower() in normalized:
                columns[field] = normalized[alias.lower()]
                break
        else:
            return None
    return columns


def _to_number(raw: Optional[str]) -> Any:
    text = (raw or "").strip().replace(",", "")
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return text


def parse_csv_locally(csv_text: str, kind: LayerType, geocoder: Geocoder) -> Optional[List[Dict[str, Any]]]:
    """Return raw records shaped like the extraction schema, or None when headers are unknown."""
    kind = LayerType(kind)
    reader = csv.DictReader(io.StringIO(csv_text or ""))
    columns = _resolve_columns(list(reader.fieldnames or []), kind)
    if columns is None:
        logger.warning("Local CSV parse: unrecognized %s header %s", kind.value, reader.fieldnames)
        return None

    records: List[Dict[str, Any]] = []
    for row in reader:
        if not any((value or "").strip() for value in row.values() if isinstance(value, str)):
            continue
        if kind == LayerType.RESOURCE:
            address = (row.get(columns["address"]) or "").strip()
            lat, lng = geocoder(address)
            records.append(
                {
                    "name": (row.get(columns["name"]) or "").strip(),
                    "address": address,
                    "capacity": _to_number(row.get(columns["capacity"])),
                    "lat": lat,
                    "lng": lng,
                }
            )
        else:
            district = (row.get(columns["district"]) or "").strip()
            village = (row.get(columns["village"]) or "").strip()
            lat, lng = geocoder(f"{district}{village}", district)
            records.append(
                {
                    "district": district,
                    "village": village,
                    "count": _to_number(row.get(columns["count"])),
                    "lat": lat,
                    "lng": lng,
                }
            )
    logger.info("Local CSV parse produced %s %s rows", len(records), kind.value)
    return records
