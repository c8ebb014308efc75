"""Best-effort audit trail."""
import logging

from models.enums import AuditStatus

logger = logging.getLogger("swapwatch.alerts.audit")


class AuditLog:
    """Writes audit entries through the store. Never raises."""

    def __init__(self, db):
        self.db = db

    def record(self, action_type, status=AuditStatus.SUCCESS, user_id="system", **fields):
        try:
            return self.db.log_action(action_type, status, user_id=user_id, **fields)
        except Exception as e:
            name = action_type.value if hasattr(action_type, "value") else action_type
            logger.warning(f"Failed to write audit entry {name}: {e}")
            return None
