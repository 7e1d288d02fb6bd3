import io
import json

import pytest
import requests

from spatialhub.api.server import create_app
from spatialhub.config.settings import HubConfig
from spatialhub.dashboard.map_render import MapRenderer
from spatialhub.dashboard.session import DashboardSession
from spatialhub.ingest.csv_adapter import CsvIngestionAdapter
from spatialhub.insights.debounce import ManualScheduler
from spatialhub.shared.constants import INGEST_FAILURE_MESSAGE

RESOURCE_JSON = json.dumps(
    {"items": [{"name": "成大醫院", "address": "台南市北區", "capacity": 850, "lat": 23.0, "lng": 120.21}]},
    ensure_ascii=False,
)
DEMAND_JSON = json.dumps(
    {"items": [{"district": "安南區", "village": "海佃里", "count": 120, "lat": 23.05, "lng": 120.18}]},
    ensure_ascii=False,
)


class _OfflineHttp:
    def get(self, url, timeout=None):
        raise requests.ConnectionError("offline")


@pytest.fixture
def make_client(fake_llm):
    def _make(responses=None):
        llm = fake_llm(responses)
        scheduler = ManualScheduler()
        session = DashboardSession(
            adapter=CsvIngestionAdapter(llm=llm, local_fallback=False),
            llm=llm,
            scheduler=scheduler,
            debounce_seconds=1.5,
        )
        app = create_app(session=session, renderer=MapRenderer(config=HubConfig(), http=_OfflineHttp()))
        app.config["TESTING"] = True
        return app.test_client(), session, scheduler, llm

    return _make


def test_health(make_client):
    client, _, _, _ = make_client()
    response = client.get("/health")
    assert response.status_code == 200
    assert response.get_json()["status"] == "healthy"


def test_upload_json_body(make_client):
    client, session, _, _ = make_client([RESOURCE_JSON])
    response = client.post("/upload/resource", json={"csv": "name,address,capacity\n成大醫院,北區,850"})
    assert response.status_code == 200
    body = response.get_json()
    assert body["kind"] == "RESOURCE"
    assert body["added"] == 1
    assert body["items"][0]["id"].startswith("res-0-")
    assert session.store.size("RESOURCE") == 1


def test_upload_multipart_file(make_client):
    client, _, _, _ = make_client([DEMAND_JSON])
    data = {"file": (io.BytesIO("district,village,count\n安南區,海佃里,120".encode("utf-8")), "demand.csv")}
    response = client.post("/upload/demand", data=data, content_type="multipart/form-data")
    assert response.status_code == 200
    assert response.get_json()["items"][0]["village"] == "海佃里"


def test_upload_rejects_non_csv_file(make_client):
    client, _, _, _ = make_client()
    data = {"file": (io.BytesIO(b"x"), "demand.xlsx")}
    response = client.post("/upload/demand", data=data, content_type="multipart/form-data")
    assert response.status_code == 400


def test_upload_parse_failure_returns_user_message(make_client):
    client, session, _, _ = make_client(["not json"])
    response = client.post("/upload/resource", json={"csv": "a,b"})
    assert response.status_code == 422
    assert response.get_json()["detail"] == INGEST_FAILURE_MESSAGE
    assert session.store.size("RESOURCE") == 0


def test_unknown_layer_is_404(make_client):
    client, _, _, _ = make_client()
    assert client.post("/upload/parks", json={"csv": "a"}).status_code == 404
    assert client.get("/data/parks").status_code == 404


def test_data_and_state_after_uploads(make_client):
    client, _, scheduler, _ = make_client([RESOURCE_JSON, DEMAND_JSON, "報告內容"])
    client.post("/upload/resource", json={"csv": "x"})
    client.post("/upload/demand", json={"csv": "x"})
    scheduler.advance(1.5)
    assert len(client.get("/data/resource").get_json()) == 1
    both = client.get("/data").get_json()
    assert [item["village"] for item in both["demands"]] == ["海佃里"]
    state = client.get("/state").get_json()
    assert state["counts"] == {"RESOURCE": 1, "DEMAND": 1}
    insight = client.get("/insights").get_json()
    assert insight["report"] == "報告內容"
    assert insight["open"] is True


def test_reset_layer_closes_insights(make_client):
    client, _, scheduler, _ = make_client([RESOURCE_JSON, DEMAND_JSON, "報告"])
    client.post("/upload/resource", json={"csv": "x"})
    client.post("/upload/demand", json={"csv": "x"})
    scheduler.advance(1.5)
    state = client.post("/layers/demand/reset").get_json()
    assert state["counts"]["DEMAND"] == 0
    assert state["insight"]["has_report"] is False
    assert state["insight"]["open"] is False


def test_toggle_and_density(make_client):
    client, _, _, _ = make_client()
    assert client.post("/layers/resource/toggle").get_json() == {"kind": "RESOURCE", "visible": False}
    assert client.post("/density", json={"scale": 9}).get_json() == {"density_scale": 3.0}
    assert client.post("/density", json={"scale": "big"}).status_code == 400
    for bad in ("nan", "inf"):
        response = client.post("/density", json={"scale": bad})
        assert response.status_code == 400
        assert response.get_json() == {"detail": "scale must be a number"}
    assert client.get("/state").get_json()["density_scale"] == 3.0


def test_insight_view_controls(make_client):
    client, _, _, _ = make_client()
    assert client.post("/insights/open").get_json()["open"] is True
    assert client.post("/insights/minimize").get_json()["minimized"] is True
    assert client.post("/insights/close").get_json()["open"] is False


def test_template_download(make_client):
    client, _, _, _ = make_client()
    response = client.get("/templates/resource")
    assert response.status_code == 200
    assert response.data.decode("utf-8").splitlines()[0] == "name,address,capacity"
    assert "attachment" in response.headers["Content-Disposition"]
    assert "filename*=UTF-8''" in response.headers["Content-Disposition"]


def test_report_export(make_client):
    client, _, _, _ = make_client()
    response = client.get("/insights/export")
    assert response.status_code == 200
    assert response.data == b""
    assert ".txt" in response.headers["Content-Disposition"]


def test_index_renders_map_without_boundary(make_client):
    client, _, _, _ = make_client()
    response = client.get("/")
    assert response.status_code == 200
    assert b"leaflet" in response.data.lower()


def test_upload_trace_can_be_fetched(monkeypatch):
    monkeypatch.setenv("LLM_DISABLED", "true")
    session = DashboardSession(adapter=CsvIngestionAdapter(local_fallback=False), scheduler=ManualScheduler())
    app = create_app(session=session, renderer=MapRenderer(config=HubConfig(), http=_OfflineHttp()))
    client = app.test_client()
    body = client.post("/upload/resource", json={"csv": "name,address,capacity\n成大醫院,北區,850"}).get_json()
    trace = client.get(f"/traces/{body['trace_id']}").get_json()
    assert trace["steps"][0]["step_id"] == "resource_extract"
    assert client.get("/traces/unknown-trace").status_code == 404
