from __future__ import annotations

import os
import sys
import traceback


def _bootstrap_path() -> None:
    base_dir = os.path.dirname(os.path.dirname(__file__))
    if base_dir not in sys.path:
        sys.path.insert(0, base_dir)


def main() -> int:
    _bootstrap_path()
    os.environ.setdefault("LLM_DISABLED", "true")
    try:
        from spatialhub.dashboard.classify import classify
        from spatialhub.dashboard.session import DashboardSession
        from spatialhub.geo.geocode import geocode
        from spatialhub.insights.debounce import ManualScheduler
        from spatialhub.shared.constants import DEMAND_TEMPLATE_CSV, RESOURCE_TEMPLATE_CSV
        from spatialhub.shared.models import LayerType

        if classify(950, LayerType.RESOURCE) != "#172554":
            raise RuntimeError("Resource color ramp is misconfigured.")
        lat, lng = geocode("台南市東區崇德路")
        if not (22.9 < lat < 23.1 and 120.1 < lng < 120.3):
            raise RuntimeError("District geocoder returned an unexpected centroid.")

        session = DashboardSession(scheduler=ManualScheduler())
        resources = session.ingest(LayerType.RESOURCE, RESOURCE_TEMPLATE_CSV, force_local=True)
        demands = session.ingest(LayerType.DEMAND, DEMAND_TEMPLATE_CSV, force_local=True)
        if not (resources.items and demands.items):
            raise RuntimeError("Template CSVs did not ingest through the local parser.")
        if session.store.aggregate(LayerType.RESOURCE) <= 0:
            raise RuntimeError("Resource capacity aggregate is empty.")
    except Exception:
        traceback.print_exc()
        return 1
    print("health_check: ok")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
