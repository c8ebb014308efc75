"""Background scheduler for the periodic rule-engine sweep."""
import logging
import threading
import schedule

from utils.clock import now_ms

logger = logging.getLogger("swapwatch.scheduler")

ESCALATE_AFTER_FAILURES = 5


class SweepScheduler:
    """Runs AlertEngine.sweep on a fixed interval in a daemon thread.

    Uses a private schedule.Scheduler so several instances (tests, wsgi
    workers) never share the module-level default job list.
    """

    def __init__(self, engine, interval_seconds=300, run_immediately=True):
        self.engine = engine
        self.interval = interval_seconds
        self.run_immediately = run_immediately
        self._scheduler = schedule.Scheduler()
        self._stop = threading.Event()
        self._thread = None
        self._callbacks = []
        self.consecutive_failures = 0
        self.last_summary = None
        self.last_run_ms = None

    def on_sweep(self, callback):
        """Register callback called with the SweepSummary after each successful sweep."""
        self._callbacks.append(callback)

    @property
    def running(self):
        return self._thread is not None and not self._stop.is_set()

    def start(self):
        if self.running:
            return
        self._stop.clear()
        self._scheduler.every(self.interval).seconds.do(self.run_once)
        self._thread = threading.Thread(target=self._run_loop, name="swapwatch-sweep", daemon=True)
        self._thread.start()
        logger.info(f"Sweep scheduler started (every {self.interval}s)")

    def stop(self):
        self._stop.set()
        self._scheduler.clear()
        if self._thread:
            self._thread.join(timeout=5)
            self._thread = None
        logger.info("Sweep scheduler stopped")

    def status(self):
        return {
            "running": self.running,
            "intervalSeconds": self.interval,
            "lastRunAt": self.last_run_ms,
            "consecutiveFailures": self.consecutive_failures,
            "lastSummary": self.last_summary.to_dict() if self.last_summary else None,
        }

    def _run_loop(self):
        if self.run_immediately:
            self.run_once()
        while not self._stop.wait(1):
            self._scheduler.run_pending()

    def run_once(self):
        """One sweep. Failures are counted and logged, never raised into the loop."""
        self.last_run_ms = now_ms()
        try:
            summary = self.engine.sweep()
        except Exception as e:
            self.consecutive_failures += 1
            logger.error(f"Sweep failed ({self.consecutive_failures} consecutive): {e}")
            if self.consecutive_failures >= ESCALATE_AFTER_FAILURES:
                logger.critical(f"{self.consecutive_failures} consecutive sweep failures")
            return None

        self.consecutive_failures = 0
        self.last_summary = summary
        for cb in self._callbacks:
            try:
                cb(summary)
            except Exception as e:
                logger.warning(f"Sweep callback error: {e}")
        return summary
