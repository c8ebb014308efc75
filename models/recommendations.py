"""Dataclasses for composed operator recommendations."""
from dataclasses import dataclass, field

from models.enums import ActionType


@dataclass(frozen=True)
class RecommendedAction:
    type: ActionType
    description: str
    details: dict = field(default_factory=dict)

    def to_dict(self):
        return {"type": self.type.value, "description": self.description, "details": dict(self.details)}


@dataclass(frozen=True)
class Recommendation:
    type: ActionType
    priority: int
    human_readable: str
    actions: tuple = ()

    def to_dict(self):
        return {
            "type": self.type.value,
            "priority": self.priority,
            "humanReadable": self.human_readable,
            "actions": [a.to_dict() for a in self.actions],
        }


@dataclass
class RecommendationSet:
    """Everything the composer produces for one station and flag set."""
    station_id: str
    flags: dict
    recommendations: list = field(default_factory=list)
    metadata: dict = field(default_factory=dict)

    @property
    def primary(self):
        return self.recommendations[0] if self.recommendations else None

    @property
    def primary_action(self) -> str:
        return self.primary.type.value if self.primary else ActionType.MONITOR.value

    @property
    def human_readable(self) -> str:
        return " ".join(r.human_readable for r in self.recommendations)

    @property
    def actions(self):
        return [a for r in self.recommendations for a in r.actions]

    def to_dict(self):
        return {
            "stationId": self.station_id,
            "flags": dict(self.flags),
            "primaryAction": self.primary_action,
            "humanReadable": self.human_readable,
            "actions": [a.to_dict() for a in self.actions],
            "recommendations": [r.to_dict() for r in self.recommendations],
            "metadata": {**self.metadata, "flags": dict(self.flags)},
        }
