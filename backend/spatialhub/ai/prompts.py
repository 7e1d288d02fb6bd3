from __future__ import annotations

import json
from typing import Any, Dict, Sequence

from pydantic import BaseModel

RESOURCE_EXTRACTION_SYSTEM_PROMPT = """
You are a geographic information specialist for Tainan City, Taiwan.

Task: Parse the medical resource CSV supplied by the user and place every
facility on the map.

Rules:
- Emit one item per data row; skip the header row and blank rows.
- name: facility name as written in the CSV.
- address: full street address as written in the CSV.
- capacity: service capacity as a plain number (no units, no thousands separators).
- lat/lng: WGS84 decimal degrees for the address. Resolve the address as precisely
  as you can; never leave coordinates at 0.
- Output must strictly follow the required JSON schema.
- Return ONLY JSON. Do not wrap in markdown or code fences.
"""


DEMAND_EXTRACTION_SYSTEM_PROMPT = """
You are a Tainan City geography specialist.

Task: Parse the case-demand CSV supplied by the user and place every row at the
centre point of its village (里).

Rules:
- Emit one item per data row; skip the header row and blank rows.
- district: the district (區) as written in the CSV.
- village: the village (里) as written in the CSV.
- count: number of cases per hundred people as a plain number.
- lat/lng: WGS84 decimal degrees of the centre of that village within that district.
- Output must strictly follow the required JSON schema.
- Return ONLY JSON. Do not wrap in markdown or code fences.
"""


INSIGHT_SYSTEM_PROMPT = """
You are a senior urban development and public health strategy consultant for
Tainan City. Write concise, professional, insightful analysis in Traditional
Chinese, using bullet points.
"""


INSIGHT_PROMPT_TEMPLATE = """
Below is the current geographic data for Tainan City.

Supply side (medical facilities): {resources}
Demand side (case distribution): {demands}

Produce an in-depth spatial strategy report with these sections:
1. 【空間供需現況】 Geographic overlap between resource points and demand clusters.
2. 【服務缺口分析】 Villages (精確到里別) with the highest demand and the fewest nearby resources.
3. 【具體行動建議】 Specific districts/villages where temporary resource points or mobile
   medical services should be added.
4. 【優先級建議】 An urgency ranking based on the data.
"""


def _record_schema(properties: Dict[str, str]) -> Dict[str, Any]:
    return {
        "type": "object",
        "properties": {name: {"type": kind} for name, kind in properties.items()},
        "required": list(properties),
        "additionalProperties": False,
    }


def _batch_schema(title: str, record: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "title": title,
        "type": "object",
        "properties": {"items": {"type": "array", "items": record}},
        "required": ["items"],
        "additionalProperties": False,
    }


RESOURCE_BATCH_SCHEMA = _batch_schema(
    "ResourceBatch",
    _record_schema(
        {"name": "string", "address": "string", "capacity": "number", "lat": "number", "lng": "number"}
    ),
)

DEMAND_BATCH_SCHEMA = _batch_schema(
    "DemandBatch",
    _record_schema(
        {"district": "string", "village": "string", "count": "number", "lat": "number", "lng": "number"}
    ),
)


def build_extraction_prompt(csv_text: str) -> str:
    return f"CSV content:\n{csv_text}"


def build_insight_prompt(resources: Sequence[BaseModel], demands: Sequence[BaseModel]) -> str:
    return INSIGHT_PROMPT_TEMPLATE.format(
        resources=json.dumps([item.model_dump() for item in resources], ensure_ascii=False),
        demands=json.dumps([item.model_dump() for item in demands], ensure_ascii=False),
    )
