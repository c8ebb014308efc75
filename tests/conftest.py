"""Shared test fixtures."""
import os
import sys
import pytest
import tempfile

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models.database import Database
from models.metrics import MINUTE_MS, MetricSample, MetricWindow

# 2023-11-14 22:13:20 UTC
NOW = 1_700_000_000_000


def make_sample(station_id="ST-001", minutes_ago=0, **overrides):
    """A healthy sample; override fields to push a rule over its threshold."""
    fields = dict(
        swap_rate=50.0,
        queue_length=2.0,
        demand_surge=False,
        charger_uptime_pct=99.0,
        charger_health="healthy",
        charged_batteries=20.0,
        uncharged_batteries=5.0,
        error_logs=(),
        fault_patterns=None,
        max_capacity=100.0,
    )
    fields.update(overrides)
    return MetricSample(station_id=station_id, timestamp=NOW - minutes_ago * MINUTE_MS, **fields)


def make_window(*samples, station_id="ST-001"):
    return MetricWindow(station_id, list(samples))


def make_payload(station_id="ST-001", minutes_ago=0, **overrides):
    """Wire-format ingestion payload for a healthy sample."""
    body = {
        "stationId": station_id,
        "timestamp": NOW - minutes_ago * MINUTE_MS,
        "swapRate": 50,
        "queue": 2,
        "demandSurge": False,
        "chargerUptime": 99,
        "chargerHealth": "healthy",
        "chargedBatteries": 20,
        "unchargedBatteries": 5,
        "errorLogs": [],
        "maxCapacity": 100,
    }
    body.update(overrides)
    return body


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name
    db = Database(db_path)
    db.connect()
    yield db
    db.close()
    for suffix in ("", "-wal", "-shm"):
        if os.path.exists(db_path + suffix):
            os.unlink(db_path + suffix)


@pytest.fixture
def critical_station(temp_db):
    """ST-001 congested with zero charged batteries in the last two cycles."""
    temp_db.save_metric(make_sample(minutes_ago=1, queue_length=15.0, charged_batteries=0.0))
    temp_db.save_metric(make_sample(minutes_ago=0, queue_length=18.0, charged_batteries=0.0))
    return temp_db
