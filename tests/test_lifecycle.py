"""Tests for the alert decision lifecycle."""
import pytest
from unittest.mock import MagicMock, patch

from alerts.errors import ConflictError, NotFoundError, UpstreamError
from alerts.lifecycle import AlertLifecycle
from models.alerts import AlertCreationRequest
from models.enums import AlertStatus, AlertType, Severity


@pytest.fixture
def lifecycle(temp_db):
    return AlertLifecycle(temp_db)


@pytest.fixture
def pending(temp_db):
    return temp_db.create_alert(AlertCreationRequest(
        station_id="ST-001",
        alert_type=AlertType.HARDWARE,
        severity=Severity.HIGH,
        title="Hardware Fault Pattern Detected",
        description="6 faults",
        recommended_action="Raise maintenance tickets",
    ))


def test_approve_executes(lifecycle, pending, temp_db):
    outcome = lifecycle.decide(pending.alert_id, "approve", user_id="ops-7")
    assert outcome.alert.status == AlertStatus.EXECUTED
    assert outcome.alert.executed_by == "ops-7"
    assert outcome.alert.decision_id == outcome.decision.decision_id
    assert len(temp_db.get_decisions_by_alert(pending.alert_id)) == 1

    d = outcome.to_dict()
    assert d["message"] == "Alert approved successfully"
    assert d["alert"]["status"] == "EXECUTED"
    assert d["decision"]["metadata"]["previousStatus"] == "PENDING"


def test_reject_dismisses_with_reason(lifecycle, pending):
    outcome = lifecycle.decide(pending.alert_id, "REJECT", reason="sensor glitch")
    assert outcome.alert.status == AlertStatus.DISMISSED
    assert outcome.alert.dismissal_reason == "sensor glitch"
    assert outcome.alert.dismissed_by == "ops-manager"
    assert outcome.decision.reason == "sensor glitch"


def test_second_decision_conflicts_and_records_nothing(lifecycle, pending, temp_db):
    lifecycle.decide(pending.alert_id, "APPROVE")
    with pytest.raises(ConflictError) as exc:
        lifecycle.decide(pending.alert_id, "REJECT")
    assert exc.value.status == "EXECUTED"
    assert "already EXECUTED" in str(exc.value)
    assert len(temp_db.get_decisions_by_alert(pending.alert_id)) == 1
    assert temp_db.get_alert(pending.alert_id).status == AlertStatus.EXECUTED


def test_unknown_alert_not_found(lifecycle, temp_db):
    with pytest.raises(NotFoundError):
        lifecycle.decide("no-such-alert", "APPROVE")
    assert temp_db.get_decisions_by_user("ops-manager") == []


def test_lost_race_rolls_back_decision(lifecycle, pending, temp_db):
    # Second caller read the alert while it was still PENDING
    stale = temp_db.get_alert(pending.alert_id)
    lifecycle.decide(pending.alert_id, "APPROVE", user_id="a")
    current = temp_db.get_alert(pending.alert_id)

    with patch.object(temp_db, "get_alert", side_effect=[stale, current]):
        with pytest.raises(ConflictError) as exc:
            lifecycle.decide(pending.alert_id, "REJECT", user_id="b")
    assert exc.value.status == "EXECUTED"

    decisions = temp_db.get_decisions_by_alert(pending.alert_id)
    assert [(d.decision.value, d.user_id) for d in decisions] == [("APPROVE", "a")]
    assert len(temp_db.get_actions_by_type("DECISION_CREATED")) == 1
    assert temp_db.get_alert(pending.alert_id).decision_id == decisions[0].decision_id


def test_store_failure_is_upstream_and_audited(pending, temp_db):
    db = MagicMock(wraps=temp_db)
    db.record_decision.side_effect = RuntimeError("disk full")
    with pytest.raises(UpstreamError):
        AlertLifecycle(db).decide(pending.alert_id, "APPROVE")
    failed = temp_db.get_actions_by_type("ALERT_DECISION_FAILED")
    assert failed[0]["errorMessage"] == "disk full"
    assert temp_db.get_alert(pending.alert_id).status == AlertStatus.PENDING


def test_failed_status_update_rolls_back_insert(lifecycle, pending, temp_db):
    with patch.object(temp_db, "_move_pending", side_effect=RuntimeError("locked")):
        with pytest.raises(UpstreamError):
            lifecycle.decide(pending.alert_id, "APPROVE")
    assert temp_db.get_decisions_by_alert(pending.alert_id) == []
    assert temp_db.get_actions_by_type("DECISION_CREATED") == []


def test_decision_audit_trail(lifecycle, pending, temp_db):
    lifecycle.decide(pending.alert_id, "APPROVE", user_id="ops-7")
    actions = [a["actionType"] for a in temp_db.get_actions_by_alert(pending.alert_id)]
    assert set(actions) == {"DECISION_CREATED", "ALERT_APPROVED"}


def test_list_alerts_includes_decisions(lifecycle, pending, temp_db):
    lifecycle.decide(pending.alert_id, "APPROVE")
    data = lifecycle.list_alerts()
    assert data["count"] == 1
    assert data["total"] == 1
    assert data["filters"] == {"status": "all", "limit": 50}
    assert data["alerts"][0]["decisions"][0]["decision"] == "APPROVE"

    assert lifecycle.list_alerts(status="pending")["count"] == 0
    assert lifecycle.list_alerts(status="EXECUTED")["filters"]["status"] == "EXECUTED"


def test_get_alert_not_found(lifecycle):
    with pytest.raises(NotFoundError):
        lifecycle.get_alert("missing")
