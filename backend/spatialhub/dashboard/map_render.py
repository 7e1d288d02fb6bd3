"""Leaflet map page for the dashboard, rendered with folium."""

from __future__ import annotations

import html
import logging
import time
from typing import Any, Callable, Dict, Iterable, Optional, Sequence

import folium
import requests

from spatialhub.config.settings import HubConfig, hub_config
from spatialhub.dashboard.classify import bucket, classify, legend
from spatialhub.shared.constants import COUNTY_NAMES, DISTRICT_COORDS, TAINAN_CENTER
from spatialhub.shared.models import DemandItem, LayerType, ResourceItem

logger = logging.getLogger(__name__)

MARKER_RADIUS = 12
TILE_ATTRIBUTION = "&copy; OpenStreetMap contributors &copy; CARTO"

BOUNDARY_STYLE = {
    "color": "#cbd5e1",
    "weight": 1,
    "opacity": 0.4,
    "fillColor": "#f1f5f9",
    "fillOpacity": 0.1,
}


def filter_county_features(payload: Any, county_names: Iterable[str] = COUNTY_NAMES) -> Optional[Dict[str, Any]]:
    if not isinstance(payload, dict) or not isinstance(payload.get("features"), list):
        return None
    names = set(county_names)
    features = []
    for feature in payload["features"]:
        properties = (feature or {}).get("properties") or {}
        if properties.get("COUNTYNAME") not in names:
            continue
        properties["label"] = properties.get("TOWNNAME") or properties.get("name") or ""
        features.append(feature)
    return {"type": "FeatureCollection", "features": features}


def _resource_popup(item: ResourceItem) -> str:
    return (
        '<div class="popup resource">'
        '<div class="popup-kind">醫療資源中心</div>'
        f"<h4>{html.escape(item.name)}</h4>"
        f"<p>百人量能層級: <b>{bucket(item.capacity)}</b></p>"
        f"<p>總服務量能: <b>{item.capacity:g}</b></p>"
        f"<p><i>{html.escape(item.address)}</i></p>"
        "</div>"
    )


def _demand_popup(item: DemandItem) -> str:
    return (
        '<div class="popup demand">'
        '<div class="popup-kind">個案需求分布 (每百人)</div>'
        f"<h4>{html.escape(item.district)} {html.escape(item.village)}</h4>"
        f"<p>需求層級: <b>{bucket(item.count)}</b> (百人色階)</p>"
        f"<p>個案需求數: <b>{item.count:g}</b> / 百人</p>"
        "</div>"
    )


def _legend_html() -> str:
    rows = []
    for kind, title in ((LayerType.RESOURCE, "醫療量能 (百人色階)"), (LayerType.DEMAND, "個案需求 (百人色階)")):
        swatches = "".join(
            f'<span title="{html.escape(label)}" style="display:inline-block;width:12px;height:8px;'
            f'margin-right:2px;background:{color}"></span>'
            for label, color in legend(kind)
        )
        rows.append(f'<div style="margin-bottom:8px"><b>{title}</b><div>{swatches} 深:高 淺:低</div></div>')
    return (
        '<div id="layer-legend" style="position:fixed;bottom:32px;left:32px;z-index:1000;'
        "background:rgba(255,255,255,0.9);padding:16px;border-radius:16px;font-size:12px;"
        'box-shadow:0 4px 12px rgba(0,0,0,0.08)">'
        '<div style="font-size:10px;color:#94a3b8;margin-bottom:8px">圖層顯示規則</div>'
        + "".join(rows)
        + "</div>"
    )


class MapRenderer:
    def __init__(
        self,
        config: Optional[HubConfig] = None,
        http: Any = requests,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or hub_config
        self.http = http
        self.clock = clock
        self._boundary: Optional[Dict[str, Any]] = None
        self._boundary_loaded = False
        self._retry_at: Optional[float] = None

    def boundary(self) -> Optional[Dict[str, Any]]:
        """Fetch the county boundary once; after a failure wait before trying again."""
        if self._boundary_loaded:
            return self._boundary
        if self._retry_at is not None and self.clock() < self._retry_at:
            return None
        try:
            response = self.http.get(self.config.boundary_url, timeout=self.config.boundary_timeout)
            response.raise_for_status()
            self._boundary = filter_county_features(response.json())
        except (requests.RequestException, ValueError) as exc:
            self._retry_at = self.clock() + self.config.boundary_retry_seconds
            logger.warning(
                "Boundary fetch failed, rendering without it for %ss: %s",
                self.config.boundary_retry_seconds,
                exc,
            )
            return None
        self._retry_at = None
        self._boundary_loaded = True
        if self._boundary is None:
            logger.warning("Boundary payload from %s has no feature list", self.config.boundary_url)
        return self._boundary

    def build_map(
        self,
        resources: Sequence[ResourceItem],
        demands: Sequence[DemandItem],
        active_layers: Iterable[LayerType],
        density_scale: float = 1.0,
        boundary: Optional[Dict[str, Any]] = None,
    ) -> folium.Map:
        active = {LayerType(layer) for layer in active_layers}
        fmap = folium.Map(location=list(TAINAN_CENTER), zoom_start=11, tiles=None, zoom_control=False)
        folium.TileLayer(tiles=self.config.tile_url, attr=TILE_ATTRIBUTION, max_zoom=19, name="basemap").add_to(fmap)

        if boundary and boundary.get("features"):
            folium.GeoJson(
                boundary,
                name="boundaries",
                style_function=lambda _feature: dict(BOUNDARY_STYLE),
                tooltip=folium.GeoJsonTooltip(fields=["label"], labels=False, sticky=True),
            ).add_to(fmap)

        labels = folium.FeatureGroup(name="districts")
        for name, (lat, lng) in DISTRICT_COORDS.items():
            folium.Marker(
                location=[lat, lng],
                icon=folium.DivIcon(
                    html=f'<span class="district-label">{html.escape(name)}</span>',
                    icon_size=(60, 20),
                    icon_anchor=(30, 10),
                ),
            ).add_to(labels)
        labels.add_to(fmap)

        # Demand is added before resources so resource markers draw on top.
        demand_group = folium.FeatureGroup(name="demand")
        if LayerType.DEMAND in active:
            for item in demands:
                folium.CircleMarker(
                    location=[item.lat, item.lng],
                    radius=MARKER_RADIUS * density_scale,
                    color="#450a0a",
                    weight=1.2,
                    fill=True,
                    fill_color=classify(item.count, LayerType.DEMAND),
                    fill_opacity=0.85,
                    popup=folium.Popup(_demand_popup(item), max_width=260),
                ).add_to(demand_group)
        demand_group.add_to(fmap)

        resource_group = folium.FeatureGroup(name="resources")
        if LayerType.RESOURCE in active:
            for item in resources:
                folium.CircleMarker(
                    location=[item.lat, item.lng],
                    radius=MARKER_RADIUS,
                    color="#1e293b",
                    weight=1.5,
                    fill=True,
                    fill_color=classify(item.capacity, LayerType.RESOURCE),
                    fill_opacity=0.9,
                    popup=folium.Popup(_resource_popup(item), max_width=260),
                ).add_to(resource_group)
        resource_group.add_to(fmap)

        fmap.get_root().html.add_child(folium.Element(_legend_html()))
        return fmap

    def render_session(self, session) -> str:
        snapshot_layers = set(session.active_layers)
        fmap = self.build_map(
            session.store.resources,
            session.store.demands,
            snapshot_layers,
            session.density_scale,
            boundary=self.boundary(),
        )
        return fmap.get_root().render()
