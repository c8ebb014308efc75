"""Utility modules for swapwatch."""
from utils.logger import setup_logging
from utils.clock import now_ms, ms_to_datetime
from utils.formatters import format_timestamp, time_ago, format_severity, format_status, format_flags
from utils.http_client import HTTPClient, APIError
from utils.validation import validate_metric_payload, validate_decision_payload
