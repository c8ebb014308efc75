"""Tests for AlertEngine and MetricIngestor."""
import pytest
from unittest.mock import MagicMock

from alerts.channels import NotificationResult, Notifier
from alerts.engine import AlertEngine
from alerts.errors import UpstreamError, ValidationError
from models.enums import AlertStatus, AlertType
from monitor.ingestion import MetricIngestor
from conftest import NOW, make_payload, make_sample


class _RecordingChannel:
    name = "recording"

    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    def send(self, alert):
        if self.fail:
            raise RuntimeError("channel down")
        self.sent.append(alert)
        return NotificationResult(success=True, channel=self.name, message_id="msg-1")


@pytest.fixture
def channel():
    return _RecordingChannel()


@pytest.fixture
def engine(temp_db, channel):
    return AlertEngine(temp_db, notifier=Notifier([channel]))


# --- process_station ---

def test_critical_station_creates_single_critical_alert(engine, critical_station, channel):
    result = engine.process_station("ST-001", NOW)
    assert [a["alertType"] for a in result.alerts_created] == ["CRITICAL"]
    assert result.max_severity == "CRITICAL"

    alert = critical_station.get_alerts()[0]
    assert alert.status == AlertStatus.PENDING
    assert alert.recommended_action.startswith("CRITICAL: Station ST-001")
    assert alert.metadata["primaryAction"] == "CRITICAL"
    assert alert.metadata["ruleEvaluation"]["flags"]["CONGESTION"] is True
    assert alert.metadata["congestion"]["avgQueue"] == 16.5
    assert [a.alert_id for a in channel.sent] == [alert.alert_id]


def test_reevaluation_is_idempotent_while_pending(engine, critical_station):
    engine.process_station("ST-001", NOW)
    # Worse conditions, same alert type
    critical_station.save_metric(make_sample(minutes_ago=0, queue_length=40.0, charged_batteries=0.0))
    again = engine.process_station("ST-001", NOW)
    assert again.alerts_created == []
    assert again.alerts_skipped == ["CRITICAL"]
    assert critical_station.count_alerts() == 1


def test_new_alert_after_previous_decided(engine, critical_station):
    first = engine.process_station("ST-001", NOW).alerts_created[0]
    critical_station.update_alert_status(first["alertId"], AlertStatus.DISMISSED, "ops")
    second = engine.process_station("ST-001", NOW)
    assert len(second.alerts_created) == 1
    assert critical_station.count_alerts() == 2


def test_quiet_station_creates_nothing(engine, temp_db):
    temp_db.save_metric(make_sample())
    result = engine.process_station("ST-001", NOW)
    assert result.alerts_created == []
    assert result.max_severity is None
    assert temp_db.count_alerts() == 0


def test_no_metrics_returns_empty_result(engine):
    result = engine.process_station("ST-404", NOW)
    assert result.alerts_created == []
    assert result.flags == {}


def test_multiple_candidates_created_in_priority_order(engine, temp_db):
    temp_db.save_metric(make_sample(minutes_ago=1, queue_length=14.0, swap_rate=5.0))
    temp_db.save_metric(make_sample(minutes_ago=0, queue_length=14.0, swap_rate=5.0,
                                    fault_patterns=("door_jam", "door_jam", "door_jam")))
    result = engine.process_station("ST-001", NOW)
    assert [a["alertType"] for a in result.alerts_created] == ["CONGESTION", "HARDWARE", "OPTIMIZE"]
    # All alerts from one pass share the composed recommendation
    recs = {a["recommendedAction"] for a in result.alerts_created}
    assert len(recs) == 1
    assert "underutilized" in recs.pop()


def test_notification_failure_does_not_fail_creation(temp_db, critical_station):
    engine = AlertEngine(temp_db, notifier=Notifier([_RecordingChannel(fail=True)]))
    result = engine.process_station("ST-001", NOW)
    assert len(result.alerts_created) == 1
    assert temp_db.get_actions_by_type("SNS_NOTIFICATION_SENT") == []


def test_notifier_exception_does_not_fail_creation(temp_db, critical_station):
    notifier = MagicMock()
    notifier.publish.side_effect = RuntimeError("boom")
    result = AlertEngine(temp_db, notifier=notifier).process_station("ST-001", NOW)
    assert len(result.alerts_created) == 1


def test_successful_notification_is_audited(engine, critical_station):
    alert_id = engine.process_station("ST-001", NOW).alerts_created[0]["alertId"]
    actions = {a["actionType"]: a for a in critical_station.get_actions_by_alert(alert_id)}
    assert "ALERT_CREATED" in actions
    assert actions["SNS_NOTIFICATION_SENT"]["details"]["messageId"] == "msg-1"


def test_store_failure_raises_upstream(temp_db, critical_station):
    db = MagicMock(wraps=temp_db)
    db.create_alert.side_effect = RuntimeError("locked")
    with pytest.raises(UpstreamError):
        AlertEngine(db).process_station("ST-001", NOW)


def _fail_second_create(temp_db):
    """Wrapped db whose second create_alert call fails."""
    db = MagicMock(wraps=temp_db)
    calls = []

    def create(request):
        calls.append(request.alert_type)
        if len(calls) == 2:
            raise RuntimeError("locked")
        return temp_db.create_alert(request)

    db.create_alert.side_effect = create
    return db


def _save_multi_candidate_station(temp_db):
    temp_db.save_metric(make_sample(minutes_ago=1, queue_length=14.0, swap_rate=5.0))
    temp_db.save_metric(make_sample(minutes_ago=0, queue_length=14.0, swap_rate=5.0,
                                    fault_patterns=("door_jam", "door_jam", "door_jam")))


def test_partial_creation_failure_keeps_created_alerts(temp_db):
    _save_multi_candidate_station(temp_db)
    with pytest.raises(UpstreamError) as exc:
        AlertEngine(_fail_second_create(temp_db)).process_station("ST-001", NOW)
    created = exc.value.partial.alerts_created
    assert [a["alertType"] for a in created] == ["CONGESTION"]
    assert temp_db.get_alert(created[0]["alertId"]) is not None


def test_sweep_counts_alerts_created_before_failure(temp_db):
    _save_multi_candidate_station(temp_db)
    summary = AlertEngine(_fail_second_create(temp_db)).sweep(NOW)
    assert summary.alerts_created == 1
    assert summary.errors[0]["stationId"] == "ST-001"
    assert summary.results[0].flags["CONGESTION"] is True


def test_engine_config_lookback(temp_db):
    engine = AlertEngine(temp_db, config={"engine": {"lookback_minutes": 5}})
    temp_db.save_metric(make_sample(minutes_ago=0))
    temp_db.save_metric(make_sample(minutes_ago=10))
    assert len(engine.load_window("ST-001", NOW)) == 1


# --- sweep ---

def test_sweep_processes_active_stations(engine, critical_station):
    critical_station.save_metric(make_sample("ST-002", minutes_ago=2))
    critical_station.save_metric(make_sample("ST-003", minutes_ago=30, charged_batteries=0.0))
    summary = engine.sweep(NOW)
    assert summary.stations_processed == 2
    assert summary.alerts_created == 1
    assert summary.rule_stats["CRITICAL"] == 1
    assert summary.rule_stats["CONGESTION"] == 1
    assert summary.rule_stats["HARDWARE"] == 0

    audit = critical_station.get_actions_by_type("RULE_ENGINE_EXECUTION")
    assert audit[0]["status"] == "SUCCESS"
    assert audit[0]["details"]["stationsProcessed"] == 2


def test_sweep_after_ingestion_skips_duplicates(engine, critical_station):
    engine.process_station("ST-001", NOW)
    summary = engine.sweep(NOW)
    assert summary.alerts_created == 0
    assert summary.alerts_skipped == 1
    assert summary.to_dict()["results"][0]["alertsSkipped"] == ["CRITICAL"]


def test_sweep_continues_past_station_error(temp_db):
    temp_db.save_metric(make_sample("ST-001", charged_batteries=0.0))
    temp_db.save_metric(make_sample("ST-002", charged_batteries=0.0))
    db = MagicMock(wraps=temp_db)
    real_range = temp_db.get_metrics_by_time_range

    def flaky(station_id, start, end):
        if station_id == "ST-001":
            raise RuntimeError("read timeout")
        return real_range(station_id, start, end)

    db.get_metrics_by_time_range.side_effect = flaky
    summary = AlertEngine(db).sweep(NOW)
    assert summary.stations_processed == 2
    assert summary.errors[0]["stationId"] == "ST-001"
    assert summary.alerts_created == 1


def test_sweep_listing_failure_is_upstream(temp_db):
    db = MagicMock(wraps=temp_db)
    db.get_active_stations.side_effect = RuntimeError("db gone")
    with pytest.raises(UpstreamError):
        AlertEngine(db).sweep(NOW)
    assert temp_db.get_actions_by_type("RULE_ENGINE_EXECUTION")[0]["status"] == "FAILED"


# --- ingestion ---

def test_ingest_stores_and_evaluates(temp_db, engine):
    ingestor = MetricIngestor(temp_db, engine)
    ingestor.ingest(make_payload(minutes_ago=1, queue=15, chargedBatteries=0), now_ms=NOW)
    result = ingestor.ingest(make_payload(queue=18, chargedBatteries=0), now_ms=NOW)
    assert result.station_id == "ST-001"
    assert result.timestamp == NOW
    d = result.to_dict()
    assert d["alertsCreated"] == 1
    assert d["alerts"][0]["alertType"] == AlertType.CRITICAL.value
    assert len(temp_db.get_actions_by_type("METRIC_INGESTED")) == 2


def test_ingest_defaults_timestamp(temp_db, engine):
    body = make_payload()
    del body["timestamp"]
    result = MetricIngestor(temp_db, engine).ingest(body, now_ms=NOW)
    assert result.timestamp == NOW


def test_ingest_invalid_payload(temp_db, engine):
    with pytest.raises(ValidationError) as exc:
        MetricIngestor(temp_db, engine).ingest({"queue": "long"}, now_ms=NOW)
    assert len(exc.value.errors) == 2
    assert temp_db.get_recent_metrics("ST-001") == []


def test_ingest_survives_engine_failure(temp_db):
    engine = MagicMock()
    engine.process_station.side_effect = UpstreamError("store down")
    result = MetricIngestor(temp_db, engine).ingest(make_payload(), now_ms=NOW)
    assert result.alerts == []
    assert len(temp_db.get_recent_metrics("ST-001")) == 1


def test_ingest_many_reports_failures(temp_db, engine):
    results, failures = MetricIngestor(temp_db, engine).ingest_many(
        [make_payload(), {"stationId": 5}], now_ms=NOW,
    )
    assert len(results) == 1
    assert failures[0]["index"] == 1


def test_ingest_reports_alerts_created_before_failure(temp_db):
    temp_db.save_metric(make_sample(minutes_ago=1, queue_length=14.0, swap_rate=5.0))
    db = _fail_second_create(temp_db)
    payload = make_payload(queue=14.0, swapRate=5.0, faultPatterns=["door_jam", "door_jam", "door_jam"])
    result = MetricIngestor(db, AlertEngine(db)).ingest(payload, now_ms=NOW)
    assert [a["alertType"] for a in result.alerts] == ["CONGESTION"]
    assert result.to_dict()["alertsCreated"] == 1
