"""Tests for the database module."""
import pytest

from models.alerts import AlertCreationRequest
from models.enums import AlertStatus, AlertType, AuditAction, AuditStatus, DecisionType, Severity
from conftest import NOW, make_sample


def _request(station_id="ST-001", alert_type=AlertType.CONGESTION, severity=Severity.MEDIUM):
    return AlertCreationRequest(
        station_id=station_id,
        alert_type=alert_type,
        severity=severity,
        title="Queue Congestion Detected",
        description="Queue length exceeded 12",
        recommended_action="Reroute drivers",
        metadata={"avgQueue": 16.5},
    )


def test_table_creation(temp_db):
    """Verify all tables exist after init."""
    tables = temp_db.conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table'"
    ).fetchall()
    names = {t["name"] for t in tables}
    assert {"metrics", "alerts", "decisions", "audit_log"} <= names


def test_empty_db(temp_db):
    assert temp_db.get_metrics_by_time_range("ST-001", 0, NOW) == []
    assert temp_db.get_alerts() == []
    assert temp_db.get_alert("missing") is None
    assert temp_db.get_active_stations(0) == []


# --- Metrics ---

def test_save_and_query_metrics_newest_first(temp_db):
    for m in (10, 0, 5):
        temp_db.save_metric(make_sample(minutes_ago=m))
    samples = temp_db.get_metrics_by_time_range("ST-001", NOW - 60 * 60_000, NOW)
    assert [s.timestamp for s in samples] == [NOW, NOW - 5 * 60_000, NOW - 10 * 60_000]


def test_metric_roundtrip_keeps_fault_fields(temp_db):
    temp_db.save_metric(make_sample(error_logs=("E1",), fault_patterns=None))
    temp_db.save_metric(make_sample(minutes_ago=1, error_logs=("E1",), fault_patterns=()))
    latest, older = temp_db.get_recent_metrics("ST-001")
    assert latest.fault_patterns is None
    assert latest.faults() == ("E1",)
    assert older.fault_patterns == ()
    assert older.faults() == ()


def test_metric_same_timestamp_replaces(temp_db):
    temp_db.save_metric(make_sample(queue_length=1.0))
    temp_db.save_metric(make_sample(queue_length=9.0))
    samples = temp_db.get_recent_metrics("ST-001")
    assert len(samples) == 1
    assert samples[0].queue_length == 9.0


def test_active_stations(temp_db):
    temp_db.save_metric(make_sample("ST-001", minutes_ago=1))
    temp_db.save_metric(make_sample("ST-002", minutes_ago=30))
    temp_db.save_metric(make_sample("ST-003", minutes_ago=2))
    assert temp_db.get_active_stations(NOW - 5 * 60_000) == ["ST-001", "ST-003"]


# --- Alerts ---

def test_create_and_get_alert(temp_db):
    alert = temp_db.create_alert(_request())
    assert alert.status == AlertStatus.PENDING
    loaded = temp_db.get_alert(alert.alert_id)
    assert loaded.station_id == "ST-001"
    assert loaded.alert_type == AlertType.CONGESTION
    assert loaded.metadata == {"avgQueue": 16.5}
    assert loaded.decision_id is None


def test_exists_pending(temp_db):
    alert = temp_db.create_alert(_request())
    assert temp_db.exists_pending("ST-001", AlertType.CONGESTION)
    assert not temp_db.exists_pending("ST-001", AlertType.HARDWARE)
    temp_db.update_alert_status(alert.alert_id, AlertStatus.DISMISSED, "ops")
    assert not temp_db.exists_pending("ST-001", AlertType.CONGESTION)


def test_get_alerts_filter_and_count(temp_db):
    a = temp_db.create_alert(_request())
    temp_db.create_alert(_request(alert_type=AlertType.HARDWARE))
    temp_db.update_alert_status(a.alert_id, AlertStatus.EXECUTED, "ops")
    assert len(temp_db.get_alerts()) == 2
    assert [x.alert_id for x in temp_db.get_alerts(AlertStatus.EXECUTED)] == [a.alert_id]
    assert temp_db.count_alerts("PENDING") == 1
    assert len(temp_db.get_alerts(limit=1)) == 1


def test_update_status_sets_actor_fields(temp_db):
    a = temp_db.create_alert(_request())
    updated = temp_db.update_alert_status(
        a.alert_id, AlertStatus.DISMISSED, "ops-1", decision_id="d-1", dismissal_reason="false alarm",
    )
    assert updated.status == AlertStatus.DISMISSED
    assert updated.dismissed_by == "ops-1"
    assert updated.dismissal_reason == "false alarm"
    assert updated.decision_id == "d-1"
    assert updated.executed_at is None


def test_update_status_only_from_pending(temp_db):
    a = temp_db.create_alert(_request())
    assert temp_db.update_alert_status(a.alert_id, AlertStatus.EXECUTED, "ops") is not None
    assert temp_db.update_alert_status(a.alert_id, AlertStatus.DISMISSED, "ops") is None
    assert temp_db.get_alert(a.alert_id).status == AlertStatus.EXECUTED


# --- Decisions ---

def test_create_decision(temp_db):
    a = temp_db.create_alert(_request())
    d = temp_db.create_decision(a.alert_id, "APPROVE", "ops-1", metadata={"stationId": "ST-001"})
    assert d.decision == DecisionType.APPROVE
    assert d.status == AlertStatus.EXECUTED
    assert temp_db.get_decisions_by_alert(a.alert_id)[0].decision_id == d.decision_id
    assert temp_db.get_decisions_by_user("ops-1")[0].metadata == {"stationId": "ST-001"}


def test_record_decision_links_and_moves_alert(temp_db):
    a = temp_db.create_alert(_request())
    d, updated = temp_db.record_decision(a.alert_id, "REJECT", "ops-1", dismissal_reason="noise")
    assert updated.status == AlertStatus.DISMISSED
    assert updated.decision_id == d.decision_id
    assert updated.dismissal_reason == "noise"


def test_record_decision_rolls_back_when_not_pending(temp_db):
    a = temp_db.create_alert(_request())
    temp_db.record_decision(a.alert_id, "APPROVE", "ops-1")
    assert temp_db.record_decision(a.alert_id, "REJECT", "ops-2") == (None, None)
    assert [d.user_id for d in temp_db.get_decisions_by_alert(a.alert_id)] == ["ops-1"]


# --- Audit log ---

def test_audit_log_queries(temp_db):
    temp_db.log_action(AuditAction.METRIC_INGESTED, AuditStatus.SUCCESS, station_id="ST-001")
    temp_db.log_action(AuditAction.ALERT_CREATED, AuditStatus.SUCCESS, alert_id="a-1",
                       details={"severity": "HIGH"})
    assert len(temp_db.get_recent_actions()) == 2
    by_alert = temp_db.get_actions_by_alert("a-1")
    assert by_alert[0]["actionType"] == "ALERT_CREATED"
    assert by_alert[0]["details"] == {"severity": "HIGH"}
    assert by_alert[0]["userId"] == "system"
    assert len(temp_db.get_actions_by_type("METRIC_INGESTED")) == 1


def test_audit_purge_expired(temp_db):
    temp_db.log_action(AuditAction.METRIC_INGESTED, AuditStatus.SUCCESS, timestamp=1_000)
    temp_db.log_action(AuditAction.METRIC_INGESTED, AuditStatus.SUCCESS)
    assert temp_db.purge_expired_audit() == 1
    assert len(temp_db.get_recent_actions()) == 1


def test_context_manager(tmp_path):
    from models.database import Database
    with Database(str(tmp_path / "sub" / "x.db")) as db:
        db.save_metric(make_sample())
        assert len(db.get_recent_metrics("ST-001")) == 1
    assert db.conn is None
