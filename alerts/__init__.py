"""Alert system module."""
from alerts.engine import AlertEngine
from alerts.evaluator import RuleEvaluator
from alerts.rules import RuleThresholds
from alerts.classifier import AlertClassifier, DeduplicationGate
from alerts.recommendations import RecommendationComposer
from alerts.lifecycle import AlertLifecycle
from alerts.channels import ConsoleChannel, FileChannel, WebhookChannel, Notifier
