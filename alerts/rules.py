"""Operating-condition rules for swap stations.

Each rule is a stateless strategy object: given a MetricWindow, the wall-clock
time and the outcomes of rules evaluated before it in the same pass, it
returns a RuleOutcome. Thresholds come from an injected RuleThresholds.
"""
from collections import Counter
from dataclasses import dataclass, field

from models.alerts import (
    CongestionMetadata, CriticalMetadata, DemandMetadata, HardwareMetadata,
    InventoryMetadata, OptimizeMetadata, RuleOutcome,
)
from models.enums import RuleId, Severity


@dataclass(frozen=True)
class CongestionThresholds:
    queue_threshold: float = 12
    cycles_required: int = 2
    high_queue: float = 20


@dataclass(frozen=True)
class InventoryThresholds:
    min_charged_batteries: float = 8
    high_below: float = 3


@dataclass(frozen=True)
class HardwareThresholds:
    fault_count_threshold: int = 3
    high_fault_count: int = 5
    time_window_minutes: int = 30


@dataclass(frozen=True)
class DemandThresholds:
    spike_multiplier: float = 1.5
    high_spike_pct: float = 100
    baseline_window_minutes: int = 60


@dataclass(frozen=True)
class OptimizeThresholds:
    utilization_threshold: float = 0.2
    time_window_minutes: int = 60
    default_capacity: float = 100


@dataclass(frozen=True)
class RuleThresholds:
    congestion: CongestionThresholds = field(default_factory=CongestionThresholds)
    low_inventory: InventoryThresholds = field(default_factory=InventoryThresholds)
    hardware: HardwareThresholds = field(default_factory=HardwareThresholds)
    demand: DemandThresholds = field(default_factory=DemandThresholds)
    optimize: OptimizeThresholds = field(default_factory=OptimizeThresholds)

    @classmethod
    def from_config(cls, config):
        """Build from the `rules` section of the app config (missing keys use defaults)."""
        rules = (config or {}).get("rules", {}) or {}
        return cls(
            congestion=CongestionThresholds(**rules.get("congestion", {})),
            low_inventory=InventoryThresholds(**rules.get("low_inventory", {})),
            hardware=HardwareThresholds(**rules.get("hardware", {})),
            demand=DemandThresholds(**rules.get("demand", {})),
            optimize=OptimizeThresholds(**rules.get("optimize", {})),
        )


def _mean(values):
    values = list(values)
    return sum(values) / len(values) if values else 0.0


class Rule:
    """Base class for station rules."""
    rule_id = None

    def __init__(self, thresholds: RuleThresholds):
        self.thresholds = thresholds

    def evaluate(self, window, now_ms, prior) -> RuleOutcome:
        raise NotImplementedError

    def _fire(self, severity, title, description, action, metadata):
        return RuleOutcome(
            rule_id=self.rule_id,
            triggered=True,
            severity=severity,
            title=title,
            description=description,
            recommended_action=action,
            metadata=metadata,
        )


class CongestionRule(Rule):
    """R1: queue above threshold for consecutive recent cycles."""
    rule_id = RuleId.CONGESTION

    def evaluate(self, window, now_ms, prior):
        t = self.thresholds.congestion
        if len(window) < t.cycles_required:
            return RuleOutcome.no_signal(self.rule_id, "insufficient samples")

        recent = window.recent(t.cycles_required)
        queues = [s.queue_length for s in recent]
        if not all(q > t.queue_threshold for q in queues):
            return RuleOutcome.no_signal(self.rule_id)

        avg_queue = _mean(queues)
        max_queue = max(queues)
        return self._fire(
            Severity.HIGH if max_queue > t.high_queue else Severity.MEDIUM,
            "Queue Congestion Detected",
            f"Queue length exceeded {t.queue_threshold} for {len(recent)} consecutive cycles. "
            f"Average queue: {avg_queue:.1f}",
            "Reroute drivers to nearby low-load stations",
            CongestionMetadata(
                avg_queue=round(avg_queue, 1),
                max_queue=max_queue,
                threshold=t.queue_threshold,
                cycles_evaluated=len(recent),
            ),
        )


class LowInventoryRule(Rule):
    """R2: too few charged batteries in the latest sample."""
    rule_id = RuleId.LOW_INVENTORY

    def evaluate(self, window, now_ms, prior):
        t = self.thresholds.low_inventory
        latest = window.latest
        if latest is None:
            return RuleOutcome.no_signal(self.rule_id, "no samples")

        charged = latest.charged_batteries
        uncharged = latest.uncharged_batteries
        if charged >= t.min_charged_batteries:
            return RuleOutcome.no_signal(self.rule_id)

        if charged == 0:
            severity = Severity.CRITICAL
        elif charged < t.high_below:
            severity = Severity.HIGH
        else:
            severity = Severity.MEDIUM

        total = charged + uncharged
        return self._fire(
            severity,
            "Low Inventory Alert",
            f"Station has only {charged:g} charged batteries available (total: {total:g}). "
            f"Threshold: {t.min_charged_batteries:g}",
            "Suggest inventory rebalancing between stations",
            InventoryMetadata(
                charged_batteries=charged,
                uncharged_batteries=uncharged,
                total=total,
                threshold=t.min_charged_batteries,
            ),
        )


class CriticalRule(Rule):
    """R3: congestion and low inventory in the same pass."""
    rule_id = RuleId.CRITICAL

    def evaluate(self, window, now_ms, prior):
        congestion = prior.get(RuleId.CONGESTION)
        inventory = prior.get(RuleId.LOW_INVENTORY)
        if not (congestion and congestion.triggered and inventory and inventory.triggered):
            return RuleOutcome.no_signal(self.rule_id)

        c = self.thresholds.congestion
        i = self.thresholds.low_inventory
        return self._fire(
            Severity.CRITICAL,
            "Critical Station Condition",
            f"Station experiencing both congestion (queue > {c.queue_threshold}) and low inventory "
            f"(charged < {i.min_charged_batteries:g}). Immediate action required.",
            "Escalate critical outages early and reroute drivers immediately",
            CriticalMetadata(congestion=congestion.metadata, inventory=inventory.metadata),
        )


class HardwareRule(Rule):
    """R4: recurring hardware faults in the trailing window."""
    rule_id = RuleId.HARDWARE

    def evaluate(self, window, now_ms, prior):
        t = self.thresholds.hardware
        samples = window.trailing(now_ms, t.time_window_minutes)
        if not samples:
            return RuleOutcome.no_signal(self.rule_id, "no samples in window")

        counts = Counter()
        for sample in samples:
            counts.update(sample.faults())
        total = sum(counts.values())
        if total < t.fault_count_threshold:
            return RuleOutcome.no_signal(self.rule_id)

        recurring = tuple((fault, n) for fault, n in counts.most_common() if n >= 2)
        return self._fire(
            Severity.HIGH if total >= t.high_fault_count else Severity.MEDIUM,
            "Hardware Fault Pattern Detected",
            f"Station reported {total} faults in the last {t.time_window_minutes} minutes. "
            f"Threshold: {t.fault_count_threshold}",
            "Raise maintenance tickets with probable root cause",
            HardwareMetadata(
                total_faults=total,
                fault_counts=dict(counts),
                recurring_faults=recurring,
                time_window_minutes=t.time_window_minutes,
                threshold=t.fault_count_threshold,
            ),
        )


class DemandRule(Rule):
    """R5: latest swap rate spiking over the strictly-prior baseline."""
    rule_id = RuleId.DEMAND

    def evaluate(self, window, now_ms, prior):
        t = self.thresholds.demand
        if len(window) < 2:
            return RuleOutcome.no_signal(self.rule_id, "insufficient samples")

        latest = window.latest
        baseline_samples = [
            s for s in window.trailing(now_ms, t.baseline_window_minutes)
            if s.timestamp < latest.timestamp
        ]
        if not baseline_samples:
            return RuleOutcome.no_signal(self.rule_id, "no baseline")

        current = latest.swap_rate
        baseline = _mean(s.swap_rate for s in baseline_samples)
        if baseline <= 0 or current < baseline * t.spike_multiplier:
            return RuleOutcome.no_signal(self.rule_id)

        # Severity follows the reported one-decimal figure
        spike = round((current - baseline) / baseline * 100, 1)
        return self._fire(
            Severity.HIGH if spike > t.high_spike_pct else Severity.MEDIUM,
            "Demand Spike Detected",
            f"Swap rate spiked to {current:g}/hour ({spike:.1f}% above baseline of {baseline:.1f}/hour)",
            "Reroute drivers to nearby low-load stations",
            DemandMetadata(
                current_swap_rate=current,
                baseline_swap_rate=round(baseline, 1),
                spike_percentage=f"{spike:.1f}",
                multiplier=t.spike_multiplier,
            ),
        )


class OptimizeRule(Rule):
    """R6: station running well under capacity."""
    rule_id = RuleId.OPTIMIZE

    def evaluate(self, window, now_ms, prior):
        t = self.thresholds.optimize
        samples = window.trailing(now_ms, t.time_window_minutes)
        if not samples:
            return RuleOutcome.no_signal(self.rule_id, "empty window")

        avg_swap_rate = _mean(s.swap_rate for s in samples)
        max_capacity = max(s.max_capacity or t.default_capacity for s in samples)
        utilization = avg_swap_rate / max_capacity if max_capacity > 0 else 0.0
        if utilization >= t.utilization_threshold:
            return RuleOutcome.no_signal(self.rule_id)

        return self._fire(
            Severity.LOW,
            "Underutilized Station",
            f"Station utilization is {utilization * 100:.1f}% "
            f"(threshold: {t.utilization_threshold * 100:g}%). "
            f"Average swap rate: {avg_swap_rate:.1f}/hour",
            "Consider rebalancing inventory or adjusting station capacity",
            OptimizeMetadata(
                utilization=round(utilization, 3),
                avg_swap_rate=round(avg_swap_rate, 1),
                max_capacity=max_capacity,
                threshold=t.utilization_threshold,
                time_window_minutes=t.time_window_minutes,
            ),
        )


# Evaluation order matters: CriticalRule reads the two outcomes before it.
RULE_CLASSES = (
    CongestionRule,
    LowInventoryRule,
    CriticalRule,
    HardwareRule,
    DemandRule,
    OptimizeRule,
)


def build_registry(thresholds=None):
    """Instantiate the fixed rule registry in evaluation order."""
    thresholds = thresholds or RuleThresholds()
    return tuple(cls(thresholds) for cls in RULE_CLASSES)
