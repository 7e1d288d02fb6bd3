from __future__ import annotations

import io
import logging
from typing import Any, Dict, Optional, Tuple

from flask import Flask, Response, jsonify, request, send_file
from flask_cors import CORS

from spatialhub.config.settings import hub_config
from spatialhub.dashboard.exports import csv_template, report_export
from spatialhub.dashboard.map_render import MapRenderer
from spatialhub.dashboard.session import DashboardSession
from spatialhub.observability.trace_store import get_trace_steps
from spatialhub.shared.constants import INGEST_FAILURE_MESSAGE
from spatialhub.shared.models import LayerType, MapData

logger = logging.getLogger(__name__)


def _layer_or_404(raw: str) -> Tuple[Optional[LayerType], Optional[Tuple[Response, int]]]:
    try:
        return LayerType.parse(raw), None
    except ValueError:
        return None, (jsonify({"detail": f"Unknown layer '{raw}'"}), 404)


def _read_upload() -> Tuple[Optional[str], Optional[str]]:
    if "file" in request.files:
        file = request.files["file"]
        if not file.filename:
            return None, "No file selected"
        if not file.filename.lower().endswith(".csv"):
            return None, "Only CSV files are supported"
        return file.read().decode("utf-8-sig", errors="replace"), None
    payload = request.get_json(silent=True) or {}
    text = payload.get("csv")
    if not isinstance(text, str) or not text.strip():
        return None, "No file provided"
    return text, None


def _insight_payload(session: DashboardSession) -> Dict[str, Any]:
    snapshot = session.snapshot()["insight"]
    snapshot["report"] = session.insight_report
    return snapshot


def create_app(session: Optional[DashboardSession] = None, renderer: Optional[MapRenderer] = None) -> Flask:
    app = Flask(__name__)
    CORS(app)
    app.json.ensure_ascii = False

    session = session or DashboardSession()
    renderer = renderer or MapRenderer()
    app.extensions["dashboard_session"] = session

    @app.route("/health", methods=["GET"])
    def health():
        return jsonify({"status": "healthy", "service": "Tainan Spatial Hub", "llm_configured": hub_config.llm_configured})

    @app.route("/", methods=["GET"])
    def index():
        return Response(renderer.render_session(session), mimetype="text/html")

    @app.route("/state", methods=["GET"])
    def state():
        return jsonify(session.snapshot())

    @app.route("/data", methods=["GET"])
    def all_data():
        map_data = MapData(resources=list(session.store.resources), demands=list(session.store.demands))
        return jsonify(map_data.model_dump())

    @app.route("/data/<kind>", methods=["GET"])
    def data(kind: str):
        layer, error = _layer_or_404(kind)
        if error:
            return error
        return jsonify([item.model_dump() for item in session.store.items(layer)])

    @app.route("/upload/<kind>", methods=["POST"])
    def upload(kind: str):
        layer, error = _layer_or_404(kind)
        if error:
            return error
        csv_text, problem = _read_upload()
        if problem:
            return jsonify({"detail": problem}), 400

        force_local = request.args.get("fallback") == "true"
        result = session.ingest(layer, csv_text, force_local=force_local)
        if not result.ok:
            logger.error("Upload of %s data failed: %s", layer.value, result.error)
            return (
                jsonify({"detail": INGEST_FAILURE_MESSAGE, "error": str(result.error), "trace_id": result.trace_id}),
                422,
            )
        return jsonify(
            {
                "kind": layer.value,
                "added": len(result.items),
                "source": result.source,
                "trace_id": result.trace_id,
                "regeocoded": result.regeocoded,
                "rejected": [{"index": item.index, "reason": item.reason} for item in result.rejected],
                "items": [item.model_dump() for item in result.items],
            }
        )

    @app.route("/traces/<trace_id>", methods=["GET"])
    def trace(trace_id: str):
        steps = get_trace_steps(trace_id)
        if not steps:
            return jsonify({"detail": f"Unknown trace '{trace_id}'"}), 404
        return jsonify({"trace_id": trace_id, "steps": steps})

    @app.route("/layers/<kind>/reset", methods=["POST"])
    def reset_layer(kind: str):
        layer, error = _layer_or_404(kind)
        if error:
            return error
        session.reset(layer)
        return jsonify(session.snapshot())

    @app.route("/layers/<kind>/toggle", methods=["POST"])
    def toggle_layer(kind: str):
        layer, error = _layer_or_404(kind)
        if error:
            return error
        visible = session.toggle_layer(layer)
        return jsonify({"kind": layer.value, "visible": visible})

    @app.route("/density", methods=["POST"])
    def density():
        payload = request.get_json(silent=True) or {}
        try:
            return jsonify({"density_scale": session.set_density_scale(payload.get("scale"))})
        except (TypeError, ValueError):
            return jsonify({"detail": "scale must be a number"}), 400

    @app.route("/insights", methods=["GET"])
    def insights():
        return jsonify(_insight_payload(session))

    @app.route("/insights/open", methods=["POST"])
    def insights_open():
        session.open_insights()
        return jsonify(_insight_payload(session))

    @app.route("/insights/close", methods=["POST"])
    def insights_close():
        session.close_insights()
        return jsonify(_insight_payload(session))

    @app.route("/insights/minimize", methods=["POST"])
    def insights_minimize():
        session.toggle_minimized()
        return jsonify(_insight_payload(session))

    @app.route("/insights/export", methods=["GET"])
    def insights_export():
        filename, body = report_export(session.insight_report)
        return send_file(
            io.BytesIO(body.encode("utf-8")),
            mimetype="text/plain; charset=utf-8",
            as_attachment=True,
            download_name=filename,
        )

    @app.route("/templates/<kind>", methods=["GET"])
    def template(kind: str):
        layer, error = _layer_or_404(kind)
        if error:
            return error
        filename, body = csv_template(layer)
        return send_file(
            io.BytesIO(body.encode("utf-8")),
            mimetype="text/csv; charset=utf-8",
            as_attachment=True,
            download_name=filename,
        )

    return app


def main() -> None:
    logging.basicConfig(
        level=hub_config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = create_app()
    logger.info("Starting Tainan Spatial Hub on %s:%s", hub_config.host, hub_config.port)
    app.run(host=hub_config.host, port=hub_config.port)


if __name__ == "__main__":
    main()
