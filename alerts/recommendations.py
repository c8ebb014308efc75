"""Recommendation composer: triggered flags + rule metadata -> operator actions."""
import logging

from models.alerts import (
    CongestionMetadata, CriticalMetadata, DemandMetadata, HardwareMetadata,
    InventoryMetadata, OptimizeMetadata,
)
from models.enums import ActionType, AlertType
from models.recommendations import Recommendation, RecommendationSet, RecommendedAction

logger = logging.getLogger("swapwatch.alerts.recommendations")

AUTO_DETECT = ["AUTO_DETECT"]
DEFAULT_TRANSFER_BATTERIES = 10
MIN_TRANSFER_BATTERIES = 5

_METADATA_KEYS = {
    AlertType.CONGESTION: "congestion",
    AlertType.LOW_INVENTORY: "inventory",
    AlertType.HARDWARE: "hardware",
    AlertType.DEMAND: "demand",
    AlertType.OPTIMIZE: "optimize",
}


def _reroute(reason, **details):
    return RecommendedAction(
        ActionType.REROUTE,
        "Reroute drivers to nearby low-load stations",
        {"reason": reason, **details},
    )


class RecommendationComposer:
    """Builds a prioritized RecommendationSet for one station.

    Metadata is looked up per alert type and must be the typed variant that
    rule produces; absent entries fall back to neutral defaults.
    """

    def compose_for(self, result):
        """Compose from an EvaluationResult."""
        metadata = {}
        for outcome in result.triggered_alerts:
            metadata[outcome.alert_type] = outcome.metadata
        critical = metadata.pop(AlertType.CRITICAL, None)
        if isinstance(critical, CriticalMetadata):
            metadata.setdefault(AlertType.CONGESTION, critical.congestion)
            metadata.setdefault(AlertType.LOW_INVENTORY, critical.inventory)
        return self.compose(result.flags, result.station_id, metadata)

    def compose(self, flags, station_id, metadata=None) -> RecommendationSet:
        metadata = metadata or {}
        congestion = self._typed(metadata, AlertType.CONGESTION, CongestionMetadata)
        inventory = self._typed(metadata, AlertType.LOW_INVENTORY, InventoryMetadata)
        hardware = self._typed(metadata, AlertType.HARDWARE, HardwareMetadata)
        demand = self._typed(metadata, AlertType.DEMAND, DemandMetadata)
        optimize = self._typed(metadata, AlertType.OPTIMIZE, OptimizeMetadata)

        flag_map = {t.value: bool(flags.get(t, False)) for t in AlertType}
        rec_set = RecommendationSet(
            station_id=station_id,
            flags=flag_map,
            metadata={
                _METADATA_KEYS[t]: m.to_dict()
                for t, m in metadata.items()
                if t in _METADATA_KEYS and m is not None
            },
        )

        if flags.get(AlertType.CRITICAL):
            rec_set.recommendations = [self._critical(station_id, hardware)]
            return rec_set

        recs = []
        if flags.get(AlertType.CONGESTION) and flags.get(AlertType.OPTIMIZE):
            recs.append(self._high_relief_reroute(station_id, congestion, optimize))
        elif flags.get(AlertType.CONGESTION):
            recs.append(self._congestion(station_id, congestion))
        if flags.get(AlertType.LOW_INVENTORY):
            recs.append(self._transfer(station_id, inventory))
        if flags.get(AlertType.HARDWARE):
            recs.append(self._maintenance(station_id, hardware))
        if flags.get(AlertType.DEMAND):
            recs.append(self._demand(station_id, demand))
        if flags.get(AlertType.OPTIMIZE) and not flags.get(AlertType.CONGESTION):
            recs.append(self._optimize(station_id, optimize))

        rec_set.recommendations = sorted(recs, key=lambda r: r.priority)
        if not rec_set.recommendations:
            logger.debug(f"No recommendation for {station_id}, falling back to MONITOR")
        return rec_set

    @staticmethod
    def _typed(metadata, alert_type, expected):
        value = metadata.get(alert_type)
        return value if isinstance(value, expected) else None

    # ── individual recommendations ──────────────────────

    def _critical(self, station_id, hardware):
        actions = (
            _reroute("High congestion detected", targetStations=AUTO_DETECT),
            RecommendedAction(
                ActionType.TRANSFER,
                "Transfer charged batteries from nearby stations",
                {
                    "reason": "Low inventory detected",
                    "requiredBatteries": DEFAULT_TRANSFER_BATTERIES,
                    "sourceStations": AUTO_DETECT,
                },
            ),
            RecommendedAction(
                ActionType.MAINTENANCE,
                "Schedule immediate maintenance",
                {
                    "reason": "Hardware faults detected",
                    "faultCount": hardware.total_faults if hardware else 0,
                    "recurringFaults": hardware.to_dict()["recurringFaults"] if hardware else [],
                },
            ),
            RecommendedAction(
                ActionType.ESCALATE,
                "Escalate to operations manager",
                {
                    "reason": "Critical condition requires immediate intervention",
                    "escalationLevel": "HIGH",
                },
            ),
        )
        return Recommendation(
            ActionType.CRITICAL, 1,
            f"CRITICAL: Station {station_id} requires immediate attention. "
            "Multiple critical issues detected simultaneously.",
            actions,
        )

    def _high_relief_reroute(self, station_id, congestion, optimize):
        return Recommendation(
            ActionType.REROUTE, 1,
            f"Reroute drivers from {station_id} to nearby underutilized stations. "
            "High congestion detected while other stations are underutilized.",
            (_reroute(
                "Congestion + Underutilized stations available",
                currentQueue=congestion.avg_queue if congestion else 0,
                targetStations=AUTO_DETECT,
                estimatedRelief="30-50% queue reduction",
            ),),
        )

    def _congestion(self, station_id, congestion):
        queue = congestion.avg_queue if congestion else "N/A"
        return Recommendation(
            ActionType.REROUTE, 2,
            f"Reroute drivers from {station_id} to nearby low-load stations. Queue length: {queue}.",
            (_reroute(
                "High queue congestion",
                currentQueue=congestion.avg_queue if congestion else 0,
                targetStations=AUTO_DETECT,
                estimatedRelief="20-40% queue reduction",
            ),),
        )

    def _transfer(self, station_id, inventory):
        charged = inventory.charged_batteries if inventory else 0
        threshold = inventory.threshold if inventory else 8
        return Recommendation(
            ActionType.TRANSFER, 2,
            f"Transfer charged batteries to {station_id}. Current inventory: {charged:g} charged "
            f"batteries (threshold: {threshold:g}).",
            (RecommendedAction(
                ActionType.TRANSFER,
                "Transfer charged batteries from nearby stations",
                {
                    "reason": "Low inventory detected",
                    "currentCharged": charged,
                    "requiredBatteries": max(threshold - charged, MIN_TRANSFER_BATTERIES),
                    "sourceStations": AUTO_DETECT,
                    "urgency": "CRITICAL" if charged == 0 else "HIGH",
                },
            ),),
        )

    def _maintenance(self, station_id, hardware):
        total = hardware.total_faults if hardware else 0
        minutes = hardware.time_window_minutes if hardware else 30
        hw = hardware.to_dict() if hardware else {}
        return Recommendation(
            ActionType.MAINTENANCE, 2,
            f"Schedule maintenance for {station_id}. {total} faults detected in last {minutes} minutes.",
            (RecommendedAction(
                ActionType.MAINTENANCE,
                "Raise maintenance ticket with probable root cause",
                {
                    "reason": "Recurring hardware faults",
                    "faultCount": total,
                    "recurringFaults": hw.get("recurringFaults", []),
                    "faultPatterns": hw.get("faultCounts", {}),
                    "estimatedDowntime": "1-2 hours",
                },
            ),),
        )

    def _demand(self, station_id, demand):
        spike = demand.spike_percentage if demand else "N/A"
        return Recommendation(
            ActionType.REROUTE, 3,
            f"Demand spike detected at {station_id}. Swap rate increased by {spike}%. Consider rerouting.",
            (_reroute(
                "Demand spike",
                currentSwapRate=demand.current_swap_rate if demand else 0,
                baselineSwapRate=demand.baseline_swap_rate if demand else 0,
                spikePercentage=demand.spike_percentage if demand else 0,
                targetStations=AUTO_DETECT,
            ),),
        )

    def _optimize(self, station_id, optimize):
        utilization = optimize.utilization if optimize else 0
        return Recommendation(
            ActionType.OPTIMIZE, 4,
            f"Station {station_id} is underutilized ({utilization * 100:.1f}% utilization). "
            "Consider rebalancing inventory.",
            (RecommendedAction(
                ActionType.OPTIMIZE,
                "Consider rebalancing inventory or adjusting station capacity",
                {
                    "reason": "Underutilized station",
                    "utilization": utilization,
                    "avgSwapRate": optimize.avg_swap_rate if optimize else 0,
                    "maxCapacity": optimize.max_capacity if optimize else 100,
                    "suggestion": "Transfer excess inventory to high-demand stations",
                },
            ),),
        )
