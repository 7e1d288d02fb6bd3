"""District-centroid geocoder used when the extraction model cannot place a point."""

from __future__ import annotations

import random
from typing import Mapping, Optional, Tuple

from spatialhub.shared.constants import CITY_FALLBACK_CENTROID, DISTRICT_COORDS

JITTER_WINDOW = 0.005


class DistrictGeocoder:
    def __init__(
        self,
        table: Optional[Mapping[str, Tuple[float, float]]] = None,
        fallback: Tuple[float, float] = CITY_FALLBACK_CENTROID,
        rng: Optional[random.Random] = None,
        jitter_window: float = JITTER_WINDOW,
    ) -> None:
        self.table = dict(table if table is not None else DISTRICT_COORDS)
        self.fallback = fallback
        self.rng = rng or random.Random()
        self.jitter_window = jitter_window

    def match(self, address: str, district_hint: Optional[str] = None) -> Optional[str]:
        address = address or ""
        for district in self.table:
            if district in address or (district_hint and district in district_hint):
                return district
        return None

    def __call__(self, address: str, district_hint: Optional[str] = None) -> Tuple[float, float]:
        return self.geocode(address, district_hint)

    def geocode(self, address: str, district_hint: Optional[str] = None) -> Tuple[float, float]:
        district = self.match(address, district_hint)
        lat, lng = self.table[district] if district else self.fallback
        return lat + self._jitter(), lng + self._jitter()

    def _jitter(self) -> float:
        return (self.rng.random() - 0.5) * self.jitter_window


_default_geocoder = DistrictGeocoder()


def geocode(address: str, district_hint: Optional[str] = None) -> Tuple[float, float]:
    return _default_geocoder.geocode(address, district_hint)
