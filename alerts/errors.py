"""Error taxonomy for ingestion, evaluation, and decision handling."""


class SwapwatchError(Exception):
    """Base error for the alerting core."""


class ValidationError(SwapwatchError):
    """Malformed payload. Carries every violated constraint."""
    def __init__(self, errors, message="Validation failed"):
        super().__init__(message)
        self.errors = list(errors)


class NotFoundError(SwapwatchError):
    """Referenced alert does not exist."""
    def __init__(self, alert_id):
        super().__init__(f"Alert not found: {alert_id}")
        self.alert_id = alert_id


class ConflictError(SwapwatchError):
    """Decision targets an alert that is no longer PENDING."""
    def __init__(self, alert_id, status):
        status = status.value if hasattr(status, "value") else str(status)
        super().__init__(f"Alert is already {status}. Cannot change decision.")
        self.alert_id = alert_id
        self.status = status


class UpstreamError(SwapwatchError):
    """A store or notifier call failed.

    `partial` holds whatever work completed before the failure, e.g. the
    StationResult listing alerts already created for the station.
    """
    def __init__(self, message, cause=None, partial=None):
        super().__init__(message)
        self.cause = cause
        self.partial = partial
