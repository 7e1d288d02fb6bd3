"""Turn uploaded CSV text into typed, geocoded map points via the extraction model.

The whole CSV is forwarded to the model together with a strict record schema;
the model resolves coordinates itself. Its answer is untrusted: the payload is
parsed, each record is validated on its own, and coordinates that are missing
or out of range are re-resolved with the district geocoder. Failures never
propagate; they come back on ``IngestionResult.error`` with no items.
"""

from __future__ import annotations

import logging
import math
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Tuple, Type, Union

from pydantic import BaseModel, ValidationError

from spatialhub.ai.llm_client import LlmResponseError, LlmResult, call_llm, parse_json_payload
from spatialhub.ai.prompts import (
    DEMAND_BATCH_SCHEMA,
    DEMAND_EXTRACTION_SYSTEM_PROMPT,
    RESOURCE_BATCH_SCHEMA,
    RESOURCE_EXTRACTION_SYSTEM_PROMPT,
    build_extraction_prompt,
)
from spatialhub.config.settings import hub_config
from spatialhub.geo.geocode import DistrictGeocoder
from spatialhub.ingest.local_parse import parse_csv_locally
from spatialhub.shared.models import (
    DemandItem,
    DemandRecord,
    LayerType,
    PointItem,
    ResourceItem,
    ResourceRecord,
)

logger = logging.getLogger(__name__)

LlmCall = Callable[..., LlmResult]
Geocoder = Callable[..., Tuple[float, float]]


class IngestionError(Exception):
    """Base class for upload failures reported on IngestionResult.error."""


class IngestionParseError(IngestionError):
    """The extraction response was empty, malformed, or not a list of records."""


class IngestionServiceError(IngestionError):
    """The extraction service could not be reached and no fallback was allowed."""


@dataclass
class ValidatedRecord:
    index: int
    record: Union[ResourceRecord, DemandRecord]
    regeocoded: bool = False


@dataclass
class InvalidRecord:
    index: int
    reason: str
    raw: Any = None


RecordCheck = Union[ValidatedRecord, InvalidRecord]


@dataclass
class IngestionResult:
    kind: LayerType
    items: List[PointItem] = field(default_factory=list)
    rejected: List[InvalidRecord] = field(default_factory=list)
    regeocoded: int = 0
    source: str = "llm"
    trace_id: Optional[str] = None
    error: Optional[IngestionError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


_LAYER_SPECS = {
    LayerType.RESOURCE: ("res", ResourceRecord, ResourceItem, RESOURCE_BATCH_SCHEMA, RESOURCE_EXTRACTION_SYSTEM_PROMPT),
    LayerType.DEMAND: ("dem", DemandRecord, DemandItem, DEMAND_BATCH_SCHEMA, DEMAND_EXTRACTION_SYSTEM_PROMPT),
}


def _coordinate_ok(value: Any, bound: float) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and -bound <= value <= bound


def _describe_validation_error(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(piece) for piece in error.get("loc", ())) or "record"
        parts.append(f"{location}: {error.get('msg', 'invalid')}")
    return "; ".join(parts)


def validate_record(raw: Any, kind: LayerType, index: int, geocoder: Geocoder) -> RecordCheck:
    record_model: Type[BaseModel] = _LAYER_SPECS[LayerType(kind)][1]
    if not isinstance(raw, dict):
        return InvalidRecord(index=index, reason="record is not an object", raw=raw)

    candidate = dict(raw)
    regeocoded = False
    lat, lng = candidate.get("lat"), candidate.get("lng")
    # (0, 0) counts as unplaced.
    placed = _coordinate_ok(lat, 90) and _coordinate_ok(lng, 180) and (lat, lng) != (0, 0)
    if not placed:
        if kind == LayerType.RESOURCE:
            address = candidate.get("address")
            lat, lng = geocoder(address if isinstance(address, str) else "")
        else:
            district = candidate.get("district") if isinstance(candidate.get("district"), str) else ""
            village = candidate.get("village") if isinstance(candidate.get("village"), str) else ""
            lat, lng = geocoder(f"{district}{village}", district)
        candidate["lat"], candidate["lng"] = lat, lng
        regeocoded = True

    try:
        record = record_model.model_validate(candidate)
    except ValidationError as exc:
        return InvalidRecord(index=index, reason=_describe_validation_error(exc), raw=raw)
    return ValidatedRecord(index=index, record=record, regeocoded=regeocoded)


def _unwrap_records(payload: Any) -> Optional[List[Any]]:
    if isinstance(payload, dict) and "items" in payload:
        payload = payload["items"]
    if isinstance(payload, list):
        return payload
    return None


class CsvIngestionAdapter:
    def __init__(
        self,
        llm: Optional[LlmCall] = None,
        geocoder: Optional[Geocoder] = None,
        local_fallback: Optional[bool] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.llm = llm or call_llm
        self.geocoder = geocoder or DistrictGeocoder()
        self.local_fallback = hub_config.ingest_local_fallback if local_fallback is None else local_fallback
        self.clock = clock

    def ingest(
        self,
        csv_text: str,
        kind: LayerType,
        force_local: bool = False,
        trace_id: Optional[str] = None,
    ) -> IngestionResult:
        kind = LayerType(kind)
        trace_id = trace_id or str(uuid.uuid4())
        result = self._ingest_locally(csv_text, kind) if force_local else self._extract(csv_text, kind, trace_id)
        result.trace_id = trace_id
        return result

    def _extract(self, csv_text: str, kind: LayerType, trace_id: str) -> IngestionResult:
        _, _, _, schema, system_prompt = _LAYER_SPECS[kind]
        step_id = f"{kind.value.lower()}_extract"
        try:
            response = self.llm(
                prompt=build_extraction_prompt(csv_text),
                schema=schema,
                system_prompt=system_prompt,
                temperature=0.0,
                trace_id=trace_id,
                step_id=step_id,
                input_refs={"kind": kind.value, "csv_chars": len(csv_text or "")},
                mock_key=step_id,
            )
            payload = response.parsed if response.parsed is not None else parse_json_payload(response.text)
        except LlmResponseError as exc:
            logger.error("Failed to parse %s CSV: %s", kind.value, exc)
            return IngestionResult(kind=kind, error=IngestionParseError(str(exc)))
        except Exception as exc:
            logger.error("%s extraction call failed: %s", kind.value, exc)
            if self.local_fallback:
                logger.warning("Falling back to local CSV parsing for %s upload", kind.value)
                return self._ingest_locally(csv_text, kind)
            return IngestionResult(kind=kind, error=IngestionServiceError(str(exc)))

        records = _unwrap_records(payload)
        if records is None:
            logger.error("Failed to parse %s CSV: response is %s, not a list", kind.value, type(payload).__name__)
            return IngestionResult(kind=kind, error=IngestionParseError("Extraction response is not a JSON array."))
        return self._build_result(records, kind, source="llm")

    def _ingest_locally(self, csv_text: str, kind: LayerType) -> IngestionResult:
        records = parse_csv_locally(csv_text, kind, self.geocoder)
        if records is None:
            return IngestionResult(
                kind=kind,
                source="local",
                error=IngestionParseError(f"Unrecognized {kind.value} CSV header."),
            )
        return self._build_result(records, kind, source="local")

    def _build_result(self, records: List[Any], kind: LayerType, source: str) -> IngestionResult:
        prefix, _, item_model, _, _ = _LAYER_SPECS[kind]
        stamp = int(self.clock() * 1000)
        batch = uuid.uuid4().hex[:6]
        result = IngestionResult(kind=kind, source=source)
        for index, raw in enumerate(records):
            check = validate_record(raw, kind, index, self.geocoder)
            if isinstance(check, InvalidRecord):
                logger.warning("Dropping %s record %s: %s", kind.value, index, check.reason)
                result.rejected.append(check)
                continue
            if check.regeocoded:
                result.regeocoded += 1
            result.items.append(
                item_model(id=f"{prefix}-{index}-{stamp}-{batch}", **check.record.model_dump())
            )
        logger.info(
            "Ingested %s %s items via %s (rejected=%s, regeocoded=%s)",
            len(result.items),
            kind.value,
            source,
            len(result.rejected),
            result.regeocoded,
        )
        return result

