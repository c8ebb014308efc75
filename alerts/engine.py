"""Alert pipeline: window -> rules -> candidates -> dedup -> recommendation -> alert."""
import logging
import time
from dataclasses import dataclass, field
from typing import Optional

from alerts.audit import AuditLog
from alerts.classifier import AlertClassifier, DeduplicationGate, build_creation_request
from alerts.errors import UpstreamError
from alerts.evaluator import RuleEvaluator
from alerts.recommendations import RecommendationComposer
from models.enums import AlertType, AuditAction, AuditStatus
from models.metrics import MINUTE_MS, MetricWindow
from utils.clock import now_ms as wall_clock_ms

logger = logging.getLogger("swapwatch.alerts.engine")

DEFAULT_RECOMMENDED_ACTION = "Monitor station status"


@dataclass
class StationResult:
    station_id: str
    alerts_created: list = field(default_factory=list)
    alerts_skipped: list = field(default_factory=list)
    flags: dict = field(default_factory=dict)
    max_severity: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self):
        d = {
            "stationId": self.station_id,
            "alertsCreated": self.alerts_created,
            "alertsSkipped": self.alerts_skipped,
            "flags": self.flags,
            "maxSeverity": self.max_severity,
        }
        if self.error:
            d["error"] = self.error
        return d


@dataclass
class SweepSummary:
    stations_processed: int = 0
    alerts_created: int = 0
    alerts_skipped: int = 0
    errors: list = field(default_factory=list)
    results: list = field(default_factory=list)
    rule_stats: dict = field(default_factory=lambda: {t.value: 0 for t in AlertType})
    duration_ms: int = 0

    def add(self, result: StationResult):
        self.stations_processed += 1
        self.alerts_created += len(result.alerts_created)
        self.alerts_skipped += len(result.alerts_skipped)
        for flag, fired in result.flags.items():
            if fired:
                self.rule_stats[flag] = self.rule_stats.get(flag, 0) + 1
        if result.error:
            self.errors.append({"stationId": result.station_id, "error": result.error})
        self.results.append(result)

    def to_dict(self):
        return {
            "stationsProcessed": self.stations_processed,
            "alertsCreated": self.alerts_created,
            "alertsSkipped": self.alerts_skipped,
            "errors": self.errors,
            "ruleStats": self.rule_stats,
            "durationMs": self.duration_ms,
            "results": [r.to_dict() for r in self.results],
        }


class AlertEngine:
    """Drives evaluation for one station (ingestion path) or all active stations (sweep)."""

    def __init__(self, db, evaluator=None, notifier=None, config=None, audit=None):
        self.db = db
        self.evaluator = evaluator or RuleEvaluator()
        self.notifier = notifier
        self.audit = audit or AuditLog(db)
        self.classifier = AlertClassifier()
        self.gate = DeduplicationGate(db)
        self.composer = RecommendationComposer()

        engine_cfg = (config or {}).get("engine", {})
        self.lookback_minutes = engine_cfg.get("lookback_minutes", 60)
        self.active_station_minutes = engine_cfg.get("active_station_minutes", 5)

    def load_window(self, station_id, end_ms):
        start_ms = end_ms - self.lookback_minutes * MINUTE_MS
        samples = self.db.get_metrics_by_time_range(station_id, start_ms, end_ms)
        return MetricWindow(station_id, samples)

    def process_station(self, station_id, now_ms=None, window_end_ms=None):
        """Evaluate one station and create the non-duplicate alerts.

        Raises UpstreamError when the store fails, with the alerts created so
        far on its `partial` result. Notification failures are logged and never
        undo a created alert.
        """
        now_ms = now_ms or wall_clock_ms()
        result = StationResult(station_id=station_id)

        try:
            window = self.load_window(station_id, window_end_ms or now_ms)
        except Exception as e:
            raise UpstreamError(f"Failed to load metrics for {station_id}: {e}", cause=e) from e

        if not len(window):
            logger.info(f"No recent metrics for station {station_id}")
            return result

        evaluation = self.evaluator.evaluate(window, now_ms)
        result.flags = evaluation.flags_dict()
        result.max_severity = evaluation.max_severity.value if evaluation.max_severity else None
        logger.info(
            f"Evaluation for {station_id}: {len(evaluation.triggered_alerts)} triggered, "
            f"max severity {result.max_severity or 'none'}"
        )
        if not evaluation.triggered_alerts:
            return result

        candidates = self.classifier.classify(evaluation)
        recommendation = self.composer.compose_for(evaluation)

        for candidate in candidates:
            try:
                if self.gate.exists(station_id, candidate.alert_type):
                    logger.info(f"Skipping duplicate {candidate.alert_type.value} alert for {station_id}")
                    result.alerts_skipped.append(candidate.alert_type.value)
                    continue

                request = build_creation_request(evaluation, candidate, {
                    "recommendation": recommendation.to_dict(),
                    "primaryAction": recommendation.primary_action,
                })
                request.recommended_action = recommendation.human_readable or DEFAULT_RECOMMENDED_ACTION
                alert = self.db.create_alert(request)
            except Exception as e:
                raise UpstreamError(
                    f"Failed to create {candidate.alert_type.value} alert for {station_id}: {e}",
                    cause=e, partial=result,
                ) from e

            self.audit.record(
                AuditAction.ALERT_CREATED,
                alert_id=alert.alert_id,
                station_id=station_id,
                details={
                    "alertType": alert.alert_type.value,
                    "severity": alert.severity.value,
                    "flags": result.flags,
                },
            )
            logger.info(f"Created {alert.alert_type.value} alert {alert.alert_id} for {station_id}")
            self._notify(alert)

            result.alerts_created.append({
                "alertId": alert.alert_id,
                "alertType": alert.alert_type.value,
                "severity": alert.severity.value,
                "title": alert.title,
                "recommendedAction": alert.recommended_action,
                "recommendation": alert.metadata.get("recommendation"),
            })

        return result

    def _notify(self, alert):
        if self.notifier is None:
            return None
        try:
            sent = self.notifier.publish(alert)
        except Exception as e:
            logger.warning(f"Error publishing alert {alert.alert_id}: {e}")
            return None

        if sent.success:
            self.audit.record(
                AuditAction.SNS_NOTIFICATION_SENT,
                alert_id=alert.alert_id,
                station_id=alert.station_id,
                details={"messageId": sent.message_id, "channel": sent.channel},
            )
            logger.info(f"Published alert {alert.alert_id} via {sent.channel}: {sent.message_id}")
        else:
            logger.warning(f"Failed to publish alert {alert.alert_id}: {sent.error}")
        return sent

    def sweep(self, now_ms=None):
        """Scheduled pass over every recently active station."""
        now_ms = now_ms or wall_clock_ms()
        started = time.time()
        summary = SweepSummary()

        try:
            station_ids = self.db.get_active_stations(now_ms - self.active_station_minutes * MINUTE_MS)
        except Exception as e:
            logger.error(f"Sweep failed listing active stations: {e}")
            self.audit.record(
                AuditAction.RULE_ENGINE_EXECUTION,
                AuditStatus.FAILED,
                timestamp=now_ms,
                error_message=str(e),
            )
            raise UpstreamError(f"Rule engine execution failed: {e}", cause=e) from e

        logger.info(f"Found {len(station_ids)} active stations")
        for station_id in station_ids:
            try:
                result = self.process_station(station_id, now_ms)
            except UpstreamError as e:
                logger.error(f"Error processing station {station_id}: {e}")
                result = e.partial or StationResult(station_id=station_id)
                result.error = str(e)
            summary.add(result)

        summary.duration_ms = int((time.time() - started) * 1000)
        self.audit.record(
            AuditAction.RULE_ENGINE_EXECUTION,
            timestamp=now_ms,
            details={
                "stationsProcessed": summary.stations_processed,
                "alertsCreated": summary.alerts_created,
                "alertsSkipped": summary.alerts_skipped,
                "ruleStats": summary.rule_stats,
                "durationMs": summary.duration_ms,
            },
        )
        logger.info(
            f"Sweep complete. Created {summary.alerts_created} alerts, "
            f"skipped {summary.alerts_skipped} duplicates"
        )
        return summary
