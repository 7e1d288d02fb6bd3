from __future__ import annotations

from enum import Enum
from typing import List, Union

from pydantic import BaseModel, Field


class LayerType(str, Enum):
    RESOURCE = "RESOURCE"
    DEMAND = "DEMAND"

    @classmethod
    def parse(cls, raw: str) -> "LayerType":
        key = (raw or "").strip().upper()
        aliases = {"RES": "RESOURCE", "RESOURCES": "RESOURCE", "DEM": "DEMAND", "DEMANDS": "DEMAND"}
        return cls(aliases.get(key, key))


class ResourceRecord(BaseModel):
    """Record shape requested from the extraction model for resource uploads."""

    name: str = Field(min_length=1)
    address: str
    capacity: float = Field(ge=0, allow_inf_nan=False)
    lat: float
    lng: float


class DemandRecord(BaseModel):
    """Record shape requested from the extraction model for demand uploads."""

    district: str = Field(min_length=1)
    village: str
    count: float = Field(ge=0, allow_inf_nan=False)
    lat: float
    lng: float


class ResourceItem(BaseModel):
    id: str
    name: str = Field(min_length=1)
    address: str
    capacity: float = Field(ge=0)
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class DemandItem(BaseModel):
    id: str
    district: str = Field(min_length=1)
    village: str
    count: float = Field(ge=0)
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


PointItem = Union[ResourceItem, DemandItem]


class MapData(BaseModel):
    resources: List[ResourceItem] = Field(default_factory=list)
    demands: List[DemandItem] = Field(default_factory=list)
