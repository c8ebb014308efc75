"""Tests for RuleEvaluator and the classifier."""
from alerts.classifier import (
    AlertClassifier, DeduplicationGate, PendingAlertRegistry, build_creation_request,
)
from alerts.evaluator import RuleEvaluator, max_severity
from models.enums import AlertType, RuleId, Severity
from conftest import NOW, make_sample, make_window


def _critical_window():
    return make_window(
        make_sample(minutes_ago=0, queue_length=18.0, charged_batteries=0.0),
        make_sample(minutes_ago=1, queue_length=15.0, charged_batteries=0.0),
    )


def test_max_severity_ranking():
    assert max_severity([Severity.LOW, Severity.HIGH, Severity.MEDIUM]) == Severity.HIGH
    assert max_severity([Severity.MEDIUM, Severity.CRITICAL]) == Severity.CRITICAL
    assert max_severity([None, Severity.LOW]) == Severity.LOW
    assert max_severity([]) is None


def test_healthy_station_no_flags():
    result = RuleEvaluator().evaluate(make_window(make_sample()), NOW)
    assert result.triggered_alerts == []
    assert result.max_severity is None
    assert not any(result.flags.values())
    assert len(result.rules) == 6


def test_critical_pass_sets_flags():
    result = RuleEvaluator().evaluate(_critical_window(), NOW)
    assert result.flags[AlertType.CONGESTION]
    assert result.flags[AlertType.LOW_INVENTORY]
    assert result.flags[AlertType.CRITICAL]
    assert result.max_severity == Severity.CRITICAL
    assert [o.rule_id for o in result.triggered_alerts] == [
        RuleId.CONGESTION, RuleId.LOW_INVENTORY, RuleId.CRITICAL,
    ]


def test_evaluation_is_deterministic():
    window = _critical_window()
    evaluator = RuleEvaluator()
    assert evaluator.evaluate(window, NOW).to_dict() == evaluator.evaluate(window, NOW).to_dict()


def test_result_to_dict_shape():
    d = RuleEvaluator().evaluate(_critical_window(), NOW).to_dict()
    assert d["stationId"] == "ST-001"
    assert d["timestamp"] == NOW
    assert d["maxSeverity"] == "CRITICAL"
    assert d["flags"]["CRITICAL"] is True
    assert d["rules"]["R5"]["triggered"] is False
    assert len(d["triggeredAlerts"]) == 3


# --- Classifier ---

def test_classifier_critical_folds_congestion_and_inventory():
    result = RuleEvaluator().evaluate(_critical_window(), NOW)
    candidates = AlertClassifier().classify(result)
    assert [c.alert_type for c in candidates] == [AlertType.CRITICAL]
    assert candidates[0].priority == 1


def test_classifier_orders_by_priority():
    window = make_window(
        make_sample(minutes_ago=0, queue_length=14.0, swap_rate=5.0,
                    fault_patterns=("door_jam", "door_jam", "door_jam")),
        make_sample(minutes_ago=1, queue_length=14.0, swap_rate=5.0),
    )
    result = RuleEvaluator().evaluate(window, NOW)
    candidates = AlertClassifier().classify(result)
    assert [c.alert_type for c in candidates] == [
        AlertType.CONGESTION, AlertType.HARDWARE, AlertType.OPTIMIZE,
    ]
    assert [c.priority for c in candidates] == [2, 3, 4]


def test_classifier_equal_priority_keeps_order():
    window = make_window(
        make_sample(minutes_ago=0, charged_batteries=5.0, swap_rate=40.0,
                    fault_patterns=("x", "x", "x")),
        make_sample(minutes_ago=10, swap_rate=20.0),
    )
    result = RuleEvaluator().evaluate(window, NOW)
    types = [c.alert_type for c in AlertClassifier().classify(result)]
    assert types == [AlertType.LOW_INVENTORY, AlertType.HARDWARE, AlertType.DEMAND]


def test_classifier_no_candidates_when_quiet():
    result = RuleEvaluator().evaluate(make_window(make_sample()), NOW)
    assert AlertClassifier().classify(result) == []


class _Registry:
    def __init__(self, pending):
        self.pending = set(pending)

    def exists_pending(self, station_id, alert_type):
        return (station_id, alert_type) in self.pending


def test_dedup_gate_uses_registry():
    registry = _Registry({("ST-001", AlertType.CRITICAL)})
    assert isinstance(registry, PendingAlertRegistry)
    gate = DeduplicationGate(registry)
    assert gate.exists("ST-001", AlertType.CRITICAL)
    assert not gate.exists("ST-001", AlertType.HARDWARE)
    assert not gate.exists("ST-002", AlertType.CRITICAL)


def test_creation_request_carries_rule_and_evaluation_metadata():
    result = RuleEvaluator().evaluate(_critical_window(), NOW)
    candidate = AlertClassifier().classify(result)[0]
    request = build_creation_request(result, candidate, {"primaryAction": "CRITICAL"})
    assert request.alert_type == AlertType.CRITICAL
    assert request.severity == Severity.CRITICAL
    assert request.title == "Critical Station Condition"
    assert request.metadata["congestion"]["avgQueue"] == 16.5
    assert request.metadata["ruleEvaluation"]["maxSeverity"] == "CRITICAL"
    assert request.metadata["ruleEvaluation"]["flags"]["LOW_INVENTORY"] is True
    assert request.metadata["primaryAction"] == "CRITICAL"
