"""Alert lifecycle: operator decisions move PENDING alerts to a terminal state.

PENDING -> EXECUTED   (APPROVE)
PENDING -> DISMISSED  (REJECT)

Both terminal states are final. A decision on a non-PENDING alert raises
ConflictError and records nothing.
"""
import logging
from dataclasses import dataclass

from alerts.audit import AuditLog
from alerts.errors import ConflictError, NotFoundError, UpstreamError
from models.enums import AlertStatus, AuditAction, AuditStatus, DecisionType

logger = logging.getLogger("swapwatch.alerts.lifecycle")

DEFAULT_USER = "ops-manager"


@dataclass
class DecisionOutcome:
    alert: object
    decision: object

    def to_dict(self):
        verb = "approved" if self.decision.decision == DecisionType.APPROVE else "rejected"
        return {
            "message": f"Alert {verb} successfully",
            "alert": {
                "alertId": self.alert.alert_id,
                "status": self.alert.status.value,
                "decisionId": self.decision.decision_id,
            },
            "decision": self.decision.to_dict(),
        }


class AlertLifecycle:
    def __init__(self, db, audit=None):
        self.db = db
        self.audit = audit or AuditLog(db)

    def decide(self, alert_id, decision, user_id=DEFAULT_USER, reason=None) -> DecisionOutcome:
        decision = DecisionType(decision.upper() if isinstance(decision, str) else decision)
        user_id = user_id or DEFAULT_USER
        new_status = decision.resulting_status

        try:
            alert = self.db.get_alert(alert_id)
        except Exception as e:
            self._record_failure(alert_id, user_id, e)
            raise UpstreamError(f"Failed to load alert {alert_id}: {e}", cause=e) from e

        if alert is None:
            raise NotFoundError(alert_id)
        if alert.status != AlertStatus.PENDING:
            raise ConflictError(alert_id, alert.status)

        try:
            record, updated = self.db.record_decision(
                alert_id,
                decision,
                user_id,
                reason=reason,
                metadata={
                    "previousStatus": alert.status.value,
                    "alertType": alert.alert_type.value,
                    "severity": alert.severity.value,
                    "stationId": alert.station_id,
                },
                dismissal_reason=reason if decision == DecisionType.REJECT else None,
            )
        except Exception as e:
            self._record_failure(alert_id, user_id, e)
            raise UpstreamError(f"Failed to process decision: {e}", cause=e) from e

        if updated is None:
            # Another decision moved the alert between our read and our write;
            # our Decision row was rolled back with it.
            current = self.db.get_alert(alert_id)
            raise ConflictError(alert_id, current.status if current else "decided")

        self.audit.record(
            AuditAction.DECISION_CREATED,
            user_id=user_id,
            alert_id=alert_id,
            decision_id=record.decision_id,
            timestamp=record.timestamp,
            details={"decision": decision.value, "status": record.status.value, "reason": reason},
        )
        self.audit.record(
            AuditAction.ALERT_APPROVED if decision == DecisionType.APPROVE else AuditAction.ALERT_REJECTED,
            user_id=user_id,
            alert_id=alert_id,
            decision_id=record.decision_id,
            details={"decision": decision.value, "newStatus": new_status.value, "reason": reason},
        )
        logger.info(f"Alert {alert_id} {new_status.value} by {user_id} (decision {record.decision_id})")
        return DecisionOutcome(alert=updated, decision=record)

    def _record_failure(self, alert_id, user_id, error):
        logger.error(f"Error processing decision for {alert_id}: {error}")
        self.audit.record(
            AuditAction.ALERT_DECISION_FAILED,
            AuditStatus.FAILED,
            user_id=user_id,
            alert_id=alert_id,
            error_message=str(error),
        )

    def list_alerts(self, status=None, limit=50):
        """Alerts (newest first) with their decision summaries."""
        status = AlertStatus(status.upper()) if isinstance(status, str) and status else status
        alerts = self.db.get_alerts(status)
        limited = alerts[:limit] if limit else alerts
        items = []
        for alert in limited:
            d = alert.to_dict()
            d["decisions"] = [dec.summary() for dec in self.db.get_decisions_by_alert(alert.alert_id)]
            items.append(d)
        return {
            "alerts": items,
            "count": len(items),
            "total": len(alerts),
            "filters": {"status": status.value if status else "all", "limit": limit},
        }

    def get_alert(self, alert_id):
        alert = self.db.get_alert(alert_id)
        if alert is None:
            raise NotFoundError(alert_id)
        d = alert.to_dict()
        d["decisions"] = [dec.summary() for dec in self.db.get_decisions_by_alert(alert_id)]
        return d
