"""Enums for alert types, severity, status, decisions, and audit actions."""
from enum import Enum


class AlertType(str, Enum):
    CONGESTION = "CONGESTION"
    LOW_INVENTORY = "LOW_INVENTORY"
    CRITICAL = "CRITICAL"
    HARDWARE = "HARDWARE"
    DEMAND = "DEMAND"
    OPTIMIZE = "OPTIMIZE"


class RuleId(str, Enum):
    CONGESTION = "R1"
    LOW_INVENTORY = "R2"
    CRITICAL = "R3"
    HARDWARE = "R4"
    DEMAND = "R5"
    OPTIMIZE = "R6"


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return SEVERITY_RANK[self]


SEVERITY_RANK = {
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}


class AlertStatus(str, Enum):
    PENDING = "PENDING"
    EXECUTED = "EXECUTED"
    DISMISSED = "DISMISSED"


class DecisionType(str, Enum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"

    @property
    def resulting_status(self) -> AlertStatus:
        return AlertStatus.EXECUTED if self is DecisionType.APPROVE else AlertStatus.DISMISSED


class ChargerHealth(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    DOWN = "down"


class ActionType(str, Enum):
    """Recommendation action kinds."""
    REROUTE = "REROUTE"
    TRANSFER = "TRANSFER"
    MAINTENANCE = "MAINTENANCE"
    ESCALATE = "ESCALATE"
    OPTIMIZE = "OPTIMIZE"
    CRITICAL = "CRITICAL"
    MONITOR = "MONITOR"


class AuditAction(str, Enum):
    METRIC_INGESTED = "METRIC_INGESTED"
    ALERT_CREATED = "ALERT_CREATED"
    ALERT_APPROVED = "ALERT_APPROVED"
    ALERT_REJECTED = "ALERT_REJECTED"
    ALERT_DECISION_FAILED = "ALERT_DECISION_FAILED"
    DECISION_CREATED = "DECISION_CREATED"
    RULE_ENGINE_EXECUTION = "RULE_ENGINE_EXECUTION"
    SNS_NOTIFICATION_SENT = "SNS_NOTIFICATION_SENT"


class AuditStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
