"""Data models."""
from models.enums import AlertType, RuleId, Severity, AlertStatus, DecisionType, ChargerHealth, ActionType, AuditAction, AuditStatus
from models.metrics import MetricSample, MetricWindow
from models.alerts import RuleOutcome, EvaluationResult, AlertCandidate, AlertCreationRequest, Alert, Decision
from models.recommendations import Recommendation, RecommendedAction, RecommendationSet
