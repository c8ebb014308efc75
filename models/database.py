"""SQLite database for station metrics, alerts, decisions, and the audit log."""
import json
import sqlite3
import logging
import uuid
from pathlib import Path

from models.alerts import Alert, Decision
from models.enums import AlertStatus, AlertType, DecisionType, Severity
from models.metrics import MetricSample
from utils.clock import now_ms

logger = logging.getLogger("swapwatch.db")

AUDIT_TTL_MS = 90 * 24 * 60 * 60 * 1000


class Database:
    def __init__(self, db_path="data/swapwatch.db"):
        self.db_path = db_path
        self.conn = None

    def connect(self):
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.execute("PRAGMA foreign_keys=ON")
        self._create_tables()
        return self

    def close(self):
        if self.conn:
            self.conn.close()
            self.conn = None

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, *args):
        self.close()

    def _create_tables(self):
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS metrics (
                station_id TEXT NOT NULL,
                timestamp INTEGER NOT NULL,
                swap_rate REAL,
                queue_length REAL,
                demand_surge INTEGER DEFAULT 0,
                charger_uptime_pct REAL,
                charger_health TEXT,
                charged_batteries REAL,
                uncharged_batteries REAL,
                error_logs TEXT,
                fault_patterns TEXT,
                max_capacity REAL,
                PRIMARY KEY (station_id, timestamp)
            );

            CREATE INDEX IF NOT EXISTS idx_metrics_timestamp
                ON metrics(timestamp);

            CREATE TABLE IF NOT EXISTS alerts (
                alert_id TEXT PRIMARY KEY,
                station_id TEXT NOT NULL,
                alert_type TEXT NOT NULL,
                severity TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'PENDING',
                title TEXT,
                description TEXT,
                recommended_action TEXT,
                metadata TEXT,
                created_at INTEGER NOT NULL,
                updated_at INTEGER NOT NULL,
                decision_id TEXT,
                executed_at INTEGER,
                executed_by TEXT,
                dismissed_at INTEGER,
                dismissed_by TEXT,
                dismissal_reason TEXT
            );

            CREATE INDEX IF NOT EXISTS idx_alerts_status
                ON alerts(status, created_at);
            CREATE INDEX IF NOT EXISTS idx_alerts_station_type
                ON alerts(station_id, alert_type, status);

            CREATE TABLE IF NOT EXISTS decisions (
                decision_id TEXT PRIMARY KEY,
                alert_id TEXT NOT NULL,
                decision TEXT NOT NULL,
                status TEXT NOT NULL,
                user_id TEXT NOT NULL,
                timestamp INTEGER NOT NULL,
                reason TEXT,
                metadata TEXT,
                FOREIGN KEY (alert_id) REFERENCES alerts(alert_id)
            );

            CREATE INDEX IF NOT EXISTS idx_decisions_alert
                ON decisions(alert_id, timestamp);
            CREATE INDEX IF NOT EXISTS idx_decisions_user
                ON decisions(user_id, timestamp);

            CREATE TABLE IF NOT EXISTS audit_log (
                task_id TEXT PRIMARY KEY,
                action_type TEXT NOT NULL,
                status TEXT NOT NULL,
                timestamp INTEGER NOT NULL,
                user_id TEXT,
                alert_id TEXT,
                decision_id TEXT,
                station_id TEXT,
                details TEXT,
                error_message TEXT,
                expires_at INTEGER NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_audit_alert
                ON audit_log(alert_id, timestamp);
            CREATE INDEX IF NOT EXISTS idx_audit_type
                ON audit_log(action_type, timestamp);
        """)
        self.conn.commit()

    # --- Metrics ---

    def save_metric(self, sample: MetricSample):
        d = sample.to_dict()
        self.conn.execute("""
            INSERT OR REPLACE INTO metrics
            (station_id, timestamp, swap_rate, queue_length, demand_surge,
             charger_uptime_pct, charger_health, charged_batteries,
             uncharged_batteries, error_logs, fault_patterns, max_capacity)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            d["station_id"], d["timestamp"], d["swap_rate"], d["queue_length"],
            d["demand_surge"], d["charger_uptime_pct"], d["charger_health"],
            d["charged_batteries"], d["uncharged_batteries"], d["error_logs"],
            d["fault_patterns"], d["max_capacity"],
        ))
        self.conn.commit()
        logger.debug(f"Saved metric {d['station_id']}@{d['timestamp']}")
        return sample

    def get_metrics_by_time_range(self, station_id, start_ms, end_ms):
        """Samples for a station in [start_ms, end_ms], newest first."""
        rows = self.conn.execute("""
            SELECT * FROM metrics
            WHERE station_id = ? AND timestamp BETWEEN ? AND ?
            ORDER BY timestamp DESC
        """, (station_id, start_ms, end_ms)).fetchall()
        return [MetricSample.from_dict(dict(r)) for r in rows]

    def get_recent_metrics(self, station_id, limit=10):
        rows = self.conn.execute("""
            SELECT * FROM metrics WHERE station_id = ?
            ORDER BY timestamp DESC LIMIT ?
        """, (station_id, limit)).fetchall()
        return [MetricSample.from_dict(dict(r)) for r in rows]

    def get_active_stations(self, since_ms):
        """Station ids with at least one sample newer than since_ms."""
        rows = self.conn.execute("""
            SELECT DISTINCT station_id FROM metrics
            WHERE timestamp > ? ORDER BY station_id
        """, (since_ms,)).fetchall()
        return [r["station_id"] for r in rows]

    # --- Alerts ---

    def create_alert(self, request) -> Alert:
        created = now_ms()
        alert = Alert(
            alert_id=str(uuid.uuid4()),
            station_id=request.station_id,
            alert_type=AlertType(request.alert_type),
            severity=Severity(request.severity),
            status=AlertStatus.PENDING,
            title=request.title,
            description=request.description,
            recommended_action=request.recommended_action,
            metadata=dict(request.metadata),
            created_at=created,
            updated_at=created,
        )
        self.conn.execute("""
            INSERT INTO alerts
            (alert_id, station_id, alert_type, severity, status, title, description,
             recommended_action, metadata, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            alert.alert_id, alert.station_id, alert.alert_type.value, alert.severity.value,
            alert.status.value, alert.title, alert.description, alert.recommended_action,
            json.dumps(alert.metadata, default=str), alert.created_at, alert.updated_at,
        ))
        self.conn.commit()
        return alert

    def get_alert(self, alert_id):
        row = self.conn.execute(
            "SELECT * FROM alerts WHERE alert_id = ?", (alert_id,)
        ).fetchone()
        return self._row_to_alert(row) if row else None

    def get_alerts(self, status=None, limit=None):
        """Alerts newest first, optionally filtered by status."""
        query = "SELECT * FROM alerts"
        params = []
        if status:
            query += " WHERE status = ?"
            params.append(status.value if hasattr(status, "value") else status)
        query += " ORDER BY created_at DESC"
        if limit:
            query += " LIMIT ?"
            params.append(limit)
        rows = self.conn.execute(query, params).fetchall()
        return [self._row_to_alert(r) for r in rows]

    def count_alerts(self, status=None):
        query = "SELECT COUNT(*) AS cnt FROM alerts"
        params = []
        if status:
            query += " WHERE status = ?"
            params.append(status.value if hasattr(status, "value") else status)
        return self.conn.execute(query, params).fetchone()["cnt"]

    def exists_pending(self, station_id, alert_type) -> bool:
        row = self.conn.execute("""
            SELECT 1 FROM alerts
            WHERE station_id = ? AND alert_type = ? AND status = 'PENDING'
            LIMIT 1
        """, (station_id, alert_type.value if hasattr(alert_type, "value") else alert_type)).fetchone()
        return row is not None

    def update_alert_status(self, alert_id, status, user_id, decision_id=None, dismissal_reason=None):
        """Set the terminal status plus decision linkage and actor fields."""
        cur = self._move_pending(alert_id, status, user_id, decision_id, dismissal_reason)
        self.conn.commit()
        if cur.rowcount == 0:
            return None
        return self.get_alert(alert_id)

    def _move_pending(self, alert_id, status, user_id, decision_id=None, dismissal_reason=None):
        status = AlertStatus(status)
        updated = now_ms()
        sets = ["status = ?", "updated_at = ?", "decision_id = ?"]
        params = [status.value, updated, decision_id]
        if status == AlertStatus.EXECUTED:
            sets += ["executed_at = ?", "executed_by = ?"]
            params += [updated, user_id]
        elif status == AlertStatus.DISMISSED:
            sets += ["dismissed_at = ?", "dismissed_by = ?"]
            params += [updated, user_id]
            if dismissal_reason:
                sets.append("dismissal_reason = ?")
                params.append(dismissal_reason)

        # Only a PENDING row may move; a concurrent decision that landed first wins.
        return self.conn.execute(
            f"UPDATE alerts SET {', '.join(sets)} WHERE alert_id = ? AND status = 'PENDING'",
            params + [alert_id],
        )

    def _row_to_alert(self, row):
        d = dict(row)
        return Alert(
            alert_id=d["alert_id"],
            station_id=d["station_id"],
            alert_type=AlertType(d["alert_type"]),
            severity=Severity(d["severity"]),
            status=AlertStatus(d["status"]),
            title=d["title"] or "",
            description=d["description"] or "",
            recommended_action=d["recommended_action"] or "",
            metadata=json.loads(d["metadata"] or "{}"),
            created_at=d["created_at"],
            updated_at=d["updated_at"],
            decision_id=d["decision_id"],
            executed_at=d["executed_at"],
            executed_by=d["executed_by"],
            dismissed_at=d["dismissed_at"],
            dismissed_by=d["dismissed_by"],
            dismissal_reason=d["dismissal_reason"],
        )

    # --- Decisions ---

    def create_decision(self, alert_id, decision, user_id, reason=None, metadata=None) -> Decision:
        record = self._new_decision(alert_id, decision, user_id, reason, metadata)
        self._insert_decision(record)
        self.conn.commit()
        return record

    def record_decision(self, alert_id, decision, user_id, reason=None, metadata=None,
                        dismissal_reason=None):
        """Insert a Decision and move its PENDING alert in one transaction.

        Returns (decision, updated_alert). When the alert is no longer PENDING
        the insert is rolled back and (None, None) is returned.
        """
        record = self._new_decision(alert_id, decision, user_id, reason, metadata)
        try:
            self._insert_decision(record)
            cur = self._move_pending(
                alert_id, record.status, user_id,
                decision_id=record.decision_id, dismissal_reason=dismissal_reason,
            )
            if cur.rowcount == 0:
                self.conn.rollback()
                return None, None
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise
        return record, self.get_alert(alert_id)

    def _new_decision(self, alert_id, decision, user_id, reason=None, metadata=None):
        decision = DecisionType(decision)
        return Decision(
            decision_id=str(uuid.uuid4()),
            alert_id=alert_id,
            decision=decision,
            status=decision.resulting_status,
            user_id=user_id,
            timestamp=now_ms(),
            reason=reason,
            metadata=dict(metadata or {}),
        )

    def _insert_decision(self, record):
        self.conn.execute("""
            INSERT INTO decisions
            (decision_id, alert_id, decision, status, user_id, timestamp, reason, metadata)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            record.decision_id, record.alert_id, record.decision.value, record.status.value,
            record.user_id, record.timestamp, record.reason, json.dumps(record.metadata),
        ))

    def get_decisions_by_alert(self, alert_id):
        rows = self.conn.execute("""
            SELECT * FROM decisions WHERE alert_id = ?
            ORDER BY timestamp DESC, rowid DESC
        """, (alert_id,)).fetchall()
        return [self._row_to_decision(r) for r in rows]

    def get_decisions_by_user(self, user_id, limit=50):
        rows = self.conn.execute("""
            SELECT * FROM decisions WHERE user_id = ?
            ORDER BY timestamp DESC, rowid DESC LIMIT ?
        """, (user_id, limit)).fetchall()
        return [self._row_to_decision(r) for r in rows]

    def _row_to_decision(self, row):
        d = dict(row)
        return Decision(
            decision_id=d["decision_id"],
            alert_id=d["alert_id"],
            decision=DecisionType(d["decision"]),
            status=AlertStatus(d["status"]),
            user_id=d["user_id"],
            timestamp=d["timestamp"],
            reason=d["reason"],
            metadata=json.loads(d["metadata"] or "{}"),
        )

    # --- Audit Log ---

    def log_action(self, action_type, status, user_id="system", timestamp=None, alert_id=None,
                   decision_id=None, station_id=None, details=None, error_message=None):
        ts = timestamp or now_ms()
        entry = {
            "taskId": str(uuid.uuid4()),
            "actionType": action_type.value if hasattr(action_type, "value") else action_type,
            "status": status.value if hasattr(status, "value") else status,
            "timestamp": ts,
            "userId": user_id,
            "alertId": alert_id,
            "decisionId": decision_id,
            "stationId": station_id,
            "details": details or {},
            "errorMessage": error_message,
        }
        self.conn.execute("""
            INSERT INTO audit_log
            (task_id, action_type, status, timestamp, user_id, alert_id, decision_id,
             station_id, details, error_message, expires_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            entry["taskId"], entry["actionType"], entry["status"], ts, user_id, alert_id,
            decision_id, station_id, json.dumps(entry["details"], default=str),
            error_message, ts + AUDIT_TTL_MS,
        ))
        self.conn.commit()
        return entry

    def get_actions_by_alert(self, alert_id):
        rows = self.conn.execute("""
            SELECT * FROM audit_log WHERE alert_id = ?
            ORDER BY timestamp DESC, rowid DESC
        """, (alert_id,)).fetchall()
        return [self._row_to_action(r) for r in rows]

    def get_actions_by_type(self, action_type, start_ms=None, end_ms=None, limit=100):
        query = "SELECT * FROM audit_log WHERE action_type = ?"
        params = [action_type.value if hasattr(action_type, "value") else action_type]
        if start_ms is not None:
            query += " AND timestamp >= ?"
            params.append(start_ms)
        if end_ms is not None:
            query += " AND timestamp <= ?"
            params.append(end_ms)
        query += " ORDER BY timestamp DESC, rowid DESC LIMIT ?"
        params.append(limit)
        rows = self.conn.execute(query, params).fetchall()
        return [self._row_to_action(r) for r in rows]

    def get_recent_actions(self, limit=50):
        rows = self.conn.execute(
            "SELECT * FROM audit_log ORDER BY timestamp DESC, rowid DESC LIMIT ?", (limit,)
        ).fetchall()
        return [self._row_to_action(r) for r in rows]

    def purge_expired_audit(self, as_of_ms=None):
        cur = self.conn.execute(
            "DELETE FROM audit_log WHERE expires_at < ?", (as_of_ms or now_ms(),)
        )
        self.conn.commit()
        return cur.rowcount

    @staticmethod
    def _row_to_action(row):
        d = dict(row)
        return {
            "taskId": d["task_id"],
            "actionType": d["action_type"],
            "status": d["status"],
            "timestamp": d["timestamp"],
            "userId": d["user_id"],
            "alertId": d["alert_id"],
            "decisionId": d["decision_id"],
            "stationId": d["station_id"],
            "details": json.loads(d["details"] or "{}"),
            "errorMessage": d["error_message"],
        }
