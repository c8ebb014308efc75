"""Runs the rule registry over a station window and aggregates the outcomes."""
import logging

from alerts.rules import RuleThresholds, build_registry
from models.alerts import EvaluationResult
from models.enums import SEVERITY_RANK

logger = logging.getLogger("swapwatch.alerts.evaluator")


def max_severity(severities):
    """Highest severity by CRITICAL > HIGH > MEDIUM > LOW, or None."""
    ranked = [s for s in severities if s is not None]
    if not ranked:
        return None
    return max(ranked, key=lambda s: SEVERITY_RANK[s])


class RuleEvaluator:
    """Pure, I/O-free evaluation of all station rules.

    Safe to share across threads: rules hold only immutable thresholds.
    """

    def __init__(self, thresholds: RuleThresholds = None):
        self.thresholds = thresholds or RuleThresholds()
        self.rules = build_registry(self.thresholds)

    def evaluate(self, window, now_ms) -> EvaluationResult:
        result = EvaluationResult(station_id=window.station_id, evaluated_at=now_ms)

        for rule in self.rules:
            outcome = rule.evaluate(window, now_ms, result.rules)
            result.rules[rule.rule_id] = outcome
            if outcome.triggered:
                result.flags[outcome.alert_type] = True
                result.triggered_alerts.append(outcome)

        result.max_severity = max_severity(o.severity for o in result.triggered_alerts)

        logger.debug(
            f"Evaluated {window.station_id}: {len(result.triggered_alerts)} triggered, "
            f"max severity {result.max_severity.value if result.max_severity else 'none'}"
        )
        return result
