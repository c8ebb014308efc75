"""Dataclasses for rule outcomes, evaluation results, alerts, and decisions."""
from dataclasses import dataclass, field
from typing import Optional, Union

from models.enums import AlertStatus, AlertType, DecisionType, RuleId, Severity

RULE_ALERT_TYPES = {
    RuleId.CONGESTION: AlertType.CONGESTION,
    RuleId.LOW_INVENTORY: AlertType.LOW_INVENTORY,
    RuleId.CRITICAL: AlertType.CRITICAL,
    RuleId.HARDWARE: AlertType.HARDWARE,
    RuleId.DEMAND: AlertType.DEMAND,
    RuleId.OPTIMIZE: AlertType.OPTIMIZE,
}


# ── Per-rule metadata ───────────────────────────────────

@dataclass(frozen=True)
class CongestionMetadata:
    avg_queue: float
    max_queue: float
    threshold: float
    cycles_evaluated: int

    def to_dict(self):
        return {
            "avgQueue": self.avg_queue,
            "maxQueue": self.max_queue,
            "threshold": self.threshold,
            "cyclesEvaluated": self.cycles_evaluated,
        }


@dataclass(frozen=True)
class InventoryMetadata:
    charged_batteries: float
    uncharged_batteries: float
    total: float
    threshold: float

    def to_dict(self):
        return {
            "chargedBatteries": self.charged_batteries,
            "unchargedBatteries": self.uncharged_batteries,
            "total": self.total,
            "threshold": self.threshold,
        }


@dataclass(frozen=True)
class CriticalMetadata:
    congestion: CongestionMetadata
    inventory: InventoryMetadata

    def to_dict(self):
        return {
            "congestion": self.congestion.to_dict(),
            "inventory": self.inventory.to_dict(),
        }


@dataclass(frozen=True)
class HardwareMetadata:
    total_faults: int
    fault_counts: dict
    recurring_faults: tuple  # ((fault, count), ...) with count >= 2
    time_window_minutes: int
    threshold: int

    def to_dict(self):
        return {
            "totalFaults": self.total_faults,
            "faultCounts": dict(self.fault_counts),
            "recurringFaults": [{"fault": f, "count": c} for f, c in self.recurring_faults],
            "timeWindowMinutes": self.time_window_minutes,
            "threshold": self.threshold,
        }


@dataclass(frozen=True)
class DemandMetadata:
    current_swap_rate: float
    baseline_swap_rate: float
    spike_percentage: str  # one decimal, e.g. "60.0"
    multiplier: float

    def to_dict(self):
        return {
            "currentSwapRate": self.current_swap_rate,
            "baselineSwapRate": self.baseline_swap_rate,
            "spikePercentage": self.spike_percentage,
            "multiplier": self.multiplier,
        }


@dataclass(frozen=True)
class OptimizeMetadata:
    utilization: float  # rounded to 3 decimals
    avg_swap_rate: float
    max_capacity: float
    threshold: float
    time_window_minutes: int

    def to_dict(self):
        return {
            "utilization": self.utilization,
            "avgSwapRate": self.avg_swap_rate,
            "maxCapacity": self.max_capacity,
            "threshold": self.threshold,
            "timeWindowMinutes": self.time_window_minutes,
        }


RuleMetadata = Union[
    CongestionMetadata, InventoryMetadata, CriticalMetadata,
    HardwareMetadata, DemandMetadata, OptimizeMetadata,
]


# ── Evaluation ──────────────────────────────────────────

@dataclass(frozen=True)
class RuleOutcome:
    """Result of one rule against one window. Never persisted on its own."""
    rule_id: RuleId
    triggered: bool = False
    severity: Optional[Severity] = None
    title: str = ""
    description: str = ""
    recommended_action: str = ""
    metadata: Optional[RuleMetadata] = None
    reason: Optional[str] = None

    @property
    def alert_type(self) -> AlertType:
        return RULE_ALERT_TYPES[self.rule_id]

    @classmethod
    def no_signal(cls, rule_id, reason=None):
        return cls(rule_id=rule_id, triggered=False, reason=reason)

    def metadata_dict(self):
        return self.metadata.to_dict() if self.metadata is not None else {}

    def to_dict(self):
        d = {"ruleId": self.rule_id.value, "triggered": self.triggered}
        if self.triggered:
            d.update({
                "alertType": self.alert_type.value,
                "severity": self.severity.value if self.severity else None,
                "title": self.title,
                "description": self.description,
                "recommendedAction": self.recommended_action,
                "metadata": self.metadata_dict(),
            })
        if self.reason:
            d["reason"] = self.reason
        return d


@dataclass
class EvaluationResult:
    station_id: str
    evaluated_at: int
    flags: dict = field(default_factory=lambda: {t: False for t in AlertType})
    rules: dict = field(default_factory=dict)  # RuleId -> RuleOutcome
    triggered_alerts: list = field(default_factory=list)
    max_severity: Optional[Severity] = None

    def outcome(self, alert_type: AlertType) -> Optional[RuleOutcome]:
        for outcome in self.rules.values():
            if outcome.alert_type == alert_type:
                return outcome
        return None

    def flags_dict(self):
        return {t.value: bool(v) for t, v in self.flags.items()}

    def snapshot(self):
        """Flags and max severity, attached to every created alert."""
        return {
            "flags": self.flags_dict(),
            "maxSeverity": self.max_severity.value if self.max_severity else None,
        }

    def to_dict(self):
        return {
            "stationId": self.station_id,
            "timestamp": self.evaluated_at,
            "flags": self.flags_dict(),
            "rules": {rid.value: o.to_dict() for rid, o in self.rules.items()},
            "triggeredAlerts": [o.to_dict() for o in self.triggered_alerts],
            "maxSeverity": self.max_severity.value if self.max_severity else None,
        }


@dataclass(frozen=True)
class AlertCandidate:
    alert_type: AlertType
    outcome: RuleOutcome
    priority: int  # 1 = highest


@dataclass
class AlertCreationRequest:
    station_id: str
    alert_type: AlertType
    severity: Severity
    title: str
    description: str
    recommended_action: str
    metadata: dict = field(default_factory=dict)


# ── Stored records ──────────────────────────────────────

@dataclass
class Alert:
    alert_id: str
    station_id: str
    alert_type: AlertType
    severity: Severity
    status: AlertStatus = AlertStatus.PENDING
    title: str = ""
    description: str = ""
    recommended_action: str = ""
    metadata: dict = field(default_factory=dict)
    created_at: int = 0
    updated_at: int = 0
    decision_id: Optional[str] = None
    executed_at: Optional[int] = None
    executed_by: Optional[str] = None
    dismissed_at: Optional[int] = None
    dismissed_by: Optional[str] = None
    dismissal_reason: Optional[str] = None

    @property
    def is_pending(self):
        return self.status == AlertStatus.PENDING

    def to_dict(self):
        d = {
            "alertId": self.alert_id,
            "stationId": self.station_id,
            "alertType": self.alert_type.value,
            "severity": self.severity.value,
            "status": self.status.value,
            "title": self.title,
            "description": self.description,
            "recommendedAction": self.recommended_action,
            "metadata": self.metadata,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        optional = {
            "decisionId": self.decision_id,
            "executedAt": self.executed_at,
            "executedBy": self.executed_by,
            "dismissedAt": self.dismissed_at,
            "dismissedBy": self.dismissed_by,
            "dismissalReason": self.dismissal_reason,
        }
        d.update({k: v for k, v in optional.items() if v is not None})
        return d


@dataclass(frozen=True)
class Decision:
    """Operator decision on an alert. Immutable once written."""
    decision_id: str
    alert_id: str
    decision: DecisionType
    status: AlertStatus
    user_id: str
    timestamp: int
    reason: Optional[str] = None
    metadata: dict = field(default_factory=dict)

    def summary(self):
        return {
            "decisionId": self.decision_id,
            "decision": self.decision.value,
            "status": self.status.value,
            "userId": self.user_id,
            "timestamp": self.timestamp,
            "reason": self.reason,
        }

    def to_dict(self):
        d = self.summary()
        d["alertId"] = self.alert_id
        d["metadata"] = self.metadata
        return d
