"""Payload validation for metric ingestion and operator decisions.

Each validator returns the full list of violated constraints (empty when valid).
"""
import math

from models.enums import ChargerHealth, DecisionType

_CHARGER_HEALTH = [h.value for h in ChargerHealth]


def _is_number(value):
    # bool is an int subclass but never a valid metric value; NaN and Infinity
    # arrive as floats from lenient JSON parsers
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return False
    return isinstance(value, int) or math.isfinite(value)


def validate_metric_payload(body):
    if not isinstance(body, dict):
        return ["request body must be a JSON object"]

    errors = []
    station_id = body.get("stationId")
    if not station_id or not isinstance(station_id, str):
        errors.append("stationId is required and must be a string")

    if body.get("timestamp") is not None:
        ts = body["timestamp"]
        if not _is_number(ts) or ts <= 0 or int(ts) != ts:
            errors.append("timestamp must be a positive integer (Unix epoch milliseconds)")

    for name in ("swapRate", "queue", "chargedBatteries", "unchargedBatteries", "maxCapacity"):
        if body.get(name) is not None and not _is_number(body[name]):
            errors.append(f"{name} must be a number")

    if body.get("demandSurge") is not None and not isinstance(body["demandSurge"], bool):
        errors.append("demandSurge must be a boolean")

    if body.get("chargerUptime") is not None:
        uptime = body["chargerUptime"]
        if not _is_number(uptime) or uptime < 0 or uptime > 100:
            errors.append("chargerUptime must be a number between 0 and 100")

    if body.get("chargerHealth") is not None and body["chargerHealth"] not in _CHARGER_HEALTH:
        errors.append(f"chargerHealth must be one of: {', '.join(_CHARGER_HEALTH)}")

    for name in ("errorLogs", "faultPatterns"):
        value = body.get(name)
        if value is None:
            continue
        if not isinstance(value, list):
            errors.append(f"{name} must be an array")
        elif not all(isinstance(v, str) for v in value):
            errors.append(f"{name} must contain only strings")

    return errors


def validate_decision_payload(body):
    if not isinstance(body, dict):
        return ["request body must be a JSON object"]

    errors = []
    alert_id = body.get("alertId")
    if not alert_id or not isinstance(alert_id, str):
        errors.append("alertId is required and must be a string")

    decision = body.get("decision")
    valid = [d.value for d in DecisionType]
    if not isinstance(decision, str) or decision.upper() not in valid:
        errors.append('decision is required and must be "APPROVE" or "REJECT"')

    if body.get("reason") is not None and not isinstance(body["reason"], str):
        errors.append("reason must be a string")

    return errors
