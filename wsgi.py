"""WSGI entry point for production deployment.

    gunicorn -w 1 wsgi:app

Set SWAPWATCH_DISABLE_SCHEDULER=1 when sweeps run elsewhere (e.g. `main.py schedule`).
"""
import sys
import os
import logging
from pathlib import Path

# Ensure project root is on path
sys.path.insert(0, str(Path(__file__).parent))

from config import load_config
from utils.logger import setup_logging
from models.database import Database
from alerts.audit import AuditLog
from alerts.engine import AlertEngine
from alerts.evaluator import RuleEvaluator
from alerts.lifecycle import AlertLifecycle
from alerts.rules import RuleThresholds
from monitor.ingestion import MetricIngestor
from monitor.scheduler import SweepScheduler
from main import build_notifier
from web.app import create_app

logger = logging.getLogger("swapwatch.wsgi")

config = load_config(os.environ.get("SWAPWATCH_CONFIG"))
setup_logging(config["logging"]["level"], config["logging"].get("file"))

db = Database(config["database"]["path"]).connect()
audit = AuditLog(db)
engine = AlertEngine(
    db,
    RuleEvaluator(RuleThresholds.from_config(config)),
    build_notifier(config),
    config,
    audit,
)

engines = {
    "engine": engine,
    "ingestor": MetricIngestor(db, engine, audit),
    "lifecycle": AlertLifecycle(db, audit),
    "scheduler": None,
}

if os.environ.get("SWAPWATCH_DISABLE_SCHEDULER") != "1":
    engines["scheduler"] = SweepScheduler(engine, config["engine"]["sweep_interval"])
    engines["scheduler"].start()
else:
    logger.info("Sweep scheduler disabled")

app = create_app(config, engines)
