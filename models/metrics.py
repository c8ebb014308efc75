"""Dataclasses for station telemetry samples and lookback windows."""
import json
from dataclasses import dataclass, field
from typing import Optional

MINUTE_MS = 60 * 1000


@dataclass(frozen=True)
class MetricSample:
    """One telemetry reading from a swap station. Immutable once ingested."""
    station_id: str
    timestamp: int  # epoch ms
    swap_rate: float = 0.0
    queue_length: float = 0.0
    demand_surge: bool = False
    charger_uptime_pct: Optional[float] = None
    charger_health: Optional[str] = None
    charged_batteries: float = 0.0
    uncharged_batteries: float = 0.0
    error_logs: tuple = ()
    fault_patterns: Optional[tuple] = None  # None when the station did not report any
    max_capacity: Optional[float] = None

    def faults(self):
        """Fault names reported by this sample, falling back to error logs."""
        return self.fault_patterns if self.fault_patterns is not None else self.error_logs

    def to_dict(self):
        """Flatten to a dict for DB storage."""
        return {
            "station_id": self.station_id,
            "timestamp": self.timestamp,
            "swap_rate": self.swap_rate,
            "queue_length": self.queue_length,
            "demand_surge": int(bool(self.demand_surge)),
            "charger_uptime_pct": self.charger_uptime_pct,
            "charger_health": self.charger_health,
            "charged_batteries": self.charged_batteries,
            "uncharged_batteries": self.uncharged_batteries,
            "error_logs": json.dumps(list(self.error_logs)),
            "fault_patterns": json.dumps(list(self.fault_patterns)) if self.fault_patterns is not None else None,
            "max_capacity": self.max_capacity,
        }

    @classmethod
    def from_dict(cls, d):
        """Reconstruct from a DB row."""
        return cls(
            station_id=d["station_id"],
            timestamp=int(d["timestamp"]),
            swap_rate=d.get("swap_rate") or 0.0,
            queue_length=d.get("queue_length") or 0.0,
            demand_surge=bool(d.get("demand_surge")),
            charger_uptime_pct=d.get("charger_uptime_pct"),
            charger_health=d.get("charger_health"),
            charged_batteries=d.get("charged_batteries") or 0.0,
            uncharged_batteries=d.get("uncharged_batteries") or 0.0,
            error_logs=tuple(json.loads(d.get("error_logs") or "[]")),
            fault_patterns=tuple(json.loads(d["fault_patterns"])) if d.get("fault_patterns") is not None else None,
            max_capacity=d.get("max_capacity"),
        )

    @classmethod
    def from_payload(cls, body, timestamp):
        """Build from a validated ingestion payload (wire field names)."""
        return cls(
            station_id=body["stationId"],
            timestamp=int(timestamp),
            swap_rate=body.get("swapRate") or 0.0,
            queue_length=body.get("queue") or 0.0,
            demand_surge=bool(body.get("demandSurge", False)),
            charger_uptime_pct=body.get("chargerUptime"),
            charger_health=body.get("chargerHealth"),
            charged_batteries=body.get("chargedBatteries") or 0.0,
            uncharged_batteries=body.get("unchargedBatteries") or 0.0,
            error_logs=tuple(body.get("errorLogs") or ()),
            fault_patterns=tuple(body["faultPatterns"]) if body.get("faultPatterns") is not None else None,
            max_capacity=body.get("maxCapacity"),
        )


@dataclass
class MetricWindow:
    """Samples for one station ordered newest first."""
    station_id: str
    samples: list = field(default_factory=list)

    def __post_init__(self):
        self.samples = sorted(self.samples, key=lambda s: s.timestamp, reverse=True)

    def __len__(self):
        return len(self.samples)

    def __iter__(self):
        return iter(self.samples)

    @property
    def latest(self):
        return self.samples[0] if self.samples else None

    def recent(self, n):
        return self.samples[:n]

    def since(self, start_ms):
        """Samples with timestamp >= start_ms."""
        return [s for s in self.samples if s.timestamp >= start_ms]

    def trailing(self, now_ms, minutes):
        """Samples within the trailing `minutes` of now_ms."""
        return self.since(now_ms - minutes * MINUTE_MS)
