"""MetricIngestor - validates, stores, and evaluates incoming station telemetry."""
import logging
from dataclasses import dataclass, field

from alerts.audit import AuditLog
from alerts.errors import UpstreamError, ValidationError
from models.enums import AuditAction, AuditStatus
from models.metrics import MetricSample
from utils.clock import now_ms as wall_clock_ms
from utils.validation import validate_metric_payload

logger = logging.getLogger("swapwatch.monitor.ingestion")


@dataclass
class IngestionResult:
    station_id: str
    timestamp: int
    alerts: list = field(default_factory=list)

    def to_dict(self):
        return {
            "message": "Metric ingested successfully",
            "metric": {"stationId": self.station_id, "timestamp": self.timestamp},
            "alertsCreated": len(self.alerts),
            "alerts": self.alerts,
        }


class MetricIngestor:
    def __init__(self, db, engine, audit=None):
        self.db = db
        self.engine = engine
        self.audit = audit or AuditLog(db)

    def ingest(self, body, now_ms=None) -> IngestionResult:
        """Store one sample, then evaluate its station.

        Raises ValidationError before touching the store. A failing evaluation
        is logged and does not fail the ingestion.
        """
        errors = validate_metric_payload(body)
        if errors:
            raise ValidationError(errors)

        now_ms = now_ms or wall_clock_ms()
        sample = MetricSample.from_payload(body, body.get("timestamp") or now_ms)

        try:
            self.db.save_metric(sample)
        except Exception as e:
            logger.error(f"Error storing metric for {sample.station_id}: {e}")
            self.audit.record(
                AuditAction.METRIC_INGESTED,
                AuditStatus.FAILED,
                station_id=sample.station_id,
                error_message=str(e),
            )
            raise UpstreamError(f"Failed to store metric: {e}", cause=e) from e

        self.audit.record(
            AuditAction.METRIC_INGESTED,
            station_id=sample.station_id,
            timestamp=sample.timestamp,
            details={"metricId": f"{sample.station_id}_{sample.timestamp}"},
        )

        result = IngestionResult(station_id=sample.station_id, timestamp=sample.timestamp)
        try:
            station = self.engine.process_station(sample.station_id, now_ms, window_end_ms=sample.timestamp)
            result.alerts = station.alerts_created
        except UpstreamError as e:
            logger.error(f"Error running rule engine for {sample.station_id}: {e}")
            if e.partial is not None:
                result.alerts = e.partial.alerts_created
        return result

    def ingest_many(self, bodies, now_ms=None):
        """Ingest a batch; invalid payloads are reported, not raised."""
        results, failures = [], []
        for i, body in enumerate(bodies):
            try:
                results.append(self.ingest(body, now_ms))
            except ValidationError as e:
                failures.append({"index": i, "errors": e.errors})
        return results, failures
