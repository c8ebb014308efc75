"""
Flask HTTP API for swapwatch.

Endpoints:
  POST /metrics             Ingest one station sample, evaluate its station
  GET  /alerts              List alerts (?status=PENDING|EXECUTED|DISMISSED&limit=50)
  GET  /alerts/<alert_id>   One alert with its decisions
  POST /alerts/decision     Approve or reject a PENDING alert
  POST /engine/sweep        Run the rule engine over all active stations
  GET  /health              Liveness probe

Started via: python main.py web [--port 5000] [--host 0.0.0.0]
"""
import logging

from flask import Flask, jsonify, request

from alerts.errors import ConflictError, NotFoundError, UpstreamError, ValidationError
from models.enums import AlertStatus
from utils.validation import validate_decision_payload

logger = logging.getLogger("swapwatch.web.app")

_VALID_STATUSES = {s.value for s in AlertStatus}


def create_app(config: dict, engines: dict) -> Flask:
    """
    Factory function. Receives initialized engines from main.py / wsgi.py.

    Args:
        config: Application config dict
        engines: dict with "ingestor", "lifecycle" and "engine"; optional "scheduler"
    """
    app = Flask(__name__)
    default_user = (config or {}).get("web", {}).get("default_user", "ops-manager")

    # ─── Cross-cutting ───────────────────────────────────

    @app.after_request
    def add_cors_headers(resp):
        resp.headers["Access-Control-Allow-Origin"] = "*"
        resp.headers["Access-Control-Allow-Headers"] = "Content-Type, X-User-Id"
        resp.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
        return resp

    @app.errorhandler(ValidationError)
    def handle_validation(e):
        return jsonify({"error": str(e), "details": e.errors}), 400

    @app.errorhandler(NotFoundError)
    def handle_not_found(e):
        return jsonify({"error": "Alert not found", "alertId": e.alert_id}), 404

    @app.errorhandler(ConflictError)
    def handle_conflict(e):
        return jsonify({"error": str(e), "status": e.status}), 409

    @app.errorhandler(UpstreamError)
    def handle_upstream(e):
        logger.error(f"Upstream failure: {e}")
        return jsonify({"error": "Internal server error", "message": str(e)}), 500

    def _json_body():
        body = request.get_json(silent=True)
        if body is None:
            raise ValidationError(["Invalid JSON in request body"], message="Invalid JSON in request body")
        return body

    def _user_id():
        return request.headers.get("X-User-Id") or default_user

    # ─── Routes ──────────────────────────────────────────

    @app.route("/health")
    def health():
        body = {"status": "ok"}
        if engines.get("scheduler") is not None:
            body["scheduler"] = engines["scheduler"].status()
        return jsonify(body)

    @app.route("/metrics", methods=["POST", "OPTIONS"])
    def ingest_metric():
        if request.method == "OPTIONS":
            return jsonify({"message": "OK"})
        result = engines["ingestor"].ingest(_json_body())
        return jsonify(result.to_dict()), 201

    @app.route("/alerts", methods=["GET", "OPTIONS"])
    def list_alerts():
        if request.method == "OPTIONS":
            return jsonify({"message": "OK"})
        status = request.args.get("status")
        if status and status.upper() not in _VALID_STATUSES:
            raise ValidationError([f"status must be one of: {', '.join(sorted(_VALID_STATUSES))}"])
        try:
            limit = max(1, min(int(request.args.get("limit", 50)), 500))
        except ValueError:
            raise ValidationError(["limit must be an integer"])
        try:
            return jsonify(engines["lifecycle"].list_alerts(status=status, limit=limit))
        except Exception as e:
            raise UpstreamError(f"Failed to fetch alerts: {e}", cause=e) from e

    @app.route("/alerts/<alert_id>")
    def get_alert(alert_id):
        return jsonify(engines["lifecycle"].get_alert(alert_id))

    @app.route("/alerts/decision", methods=["POST", "OPTIONS"])
    def decide():
        if request.method == "OPTIONS":
            return jsonify({"message": "OK"})
        body = _json_body()
        errors = validate_decision_payload(body)
        if errors:
            raise ValidationError(errors)
        outcome = engines["lifecycle"].decide(
            body["alertId"],
            body["decision"],
            user_id=_user_id(),
            reason=body.get("reason"),
        )
        return jsonify(outcome.to_dict())

    @app.route("/engine/sweep", methods=["POST"])
    def sweep():
        summary = engines["engine"].sweep()
        return jsonify({"message": "Rule engine execution completed", "summary": summary.to_dict()})

    return app
