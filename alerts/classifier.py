"""Turns an evaluation into prioritized alert candidates and gates duplicates."""
import logging
from typing import Protocol, runtime_checkable

from models.alerts import AlertCandidate, AlertCreationRequest
from models.enums import AlertType

logger = logging.getLogger("swapwatch.alerts.classifier")

# Priority 1 is created first.
CANDIDATE_PRIORITY = {
    AlertType.CRITICAL: 1,
    AlertType.CONGESTION: 2,
    AlertType.LOW_INVENTORY: 2,
    AlertType.HARDWARE: 3,
    AlertType.DEMAND: 3,
    AlertType.OPTIMIZE: 4,
}

# Standalone candidates folded into the CRITICAL candidate when it fires.
SUPERSEDED_BY_CRITICAL = {AlertType.CONGESTION, AlertType.LOW_INVENTORY}


class AlertClassifier:
    def classify(self, result):
        """Ordered AlertCandidates for one EvaluationResult."""
        critical = result.flags.get(AlertType.CRITICAL, False)
        candidates = []
        for alert_type in (
            AlertType.CRITICAL, AlertType.CONGESTION, AlertType.LOW_INVENTORY,
            AlertType.HARDWARE, AlertType.DEMAND, AlertType.OPTIMIZE,
        ):
            if not result.flags.get(alert_type):
                continue
            if critical and alert_type in SUPERSEDED_BY_CRITICAL:
                logger.debug(f"{alert_type.value} folded into CRITICAL for {result.station_id}")
                continue
            candidates.append(AlertCandidate(
                alert_type=alert_type,
                outcome=result.outcome(alert_type),
                priority=CANDIDATE_PRIORITY[alert_type],
            ))
        # sorted() is stable, so equal priorities keep the order above
        return sorted(candidates, key=lambda c: c.priority)


@runtime_checkable
class PendingAlertRegistry(Protocol):
    def exists_pending(self, station_id: str, alert_type) -> bool: ...


class DeduplicationGate:
    """Suppresses a candidate when its (station, type) already has a PENDING alert.

    This is a read-then-write check with no lock: two passes racing on the same
    station can both see "no pending alert" and both create one.
    """

    def __init__(self, registry: PendingAlertRegistry):
        self.registry = registry

    def exists(self, station_id, alert_type) -> bool:
        return self.registry.exists_pending(station_id, alert_type)


def build_creation_request(result, candidate, extra_metadata=None):
    outcome = candidate.outcome
    metadata = {**outcome.metadata_dict(), "ruleEvaluation": result.snapshot()}
    if extra_metadata:
        metadata.update(extra_metadata)
    return AlertCreationRequest(
        station_id=result.station_id,
        alert_type=candidate.alert_type,
        severity=outcome.severity,
        title=outcome.title,
        description=outcome.description,
        recommended_action=outcome.recommended_action,
        metadata=metadata,
    )
