"""
Stat and snapshot types returned by stats endpoints.

A snapshot mirrors the JSON body served by an endpoint:

    {"stats": [{"label": "USERS", "value": "1,234",
                "trend": "+12%", "trendDirection": "up"}],
     "updatedAt": "2026-01-24T10:00:00Z"}
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)


class TrendDirection(str, Enum):
    """Direction of a stat's trend."""

    UP = "up"
    DOWN = "down"
    NEUTRAL = "neutral"

    @property
    def icon(self) -> str:
        return {"up": "↑", "down": "↓", "neutral": "→"}[self.value]


@dataclass(frozen=True)
class Stat:
    """A single labelled value, e.g. USERS / 1,234."""

    label: str
    value: str
    trend: Optional[str] = None
    trend_direction: Optional[TrendDirection] = None

    def with_label(self, label: str) -> "Stat":
        """Return a copy of this stat carrying a different label."""
        return Stat(label, self.value, self.trend, self.trend_direction)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"label": self.label, "value": self.value}
        if self.trend is not None:
            data["trend"] = self.trend
        if self.trend_direction is not None:
            data["trendDirection"] = self.trend_direction.value
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "Stat":
        """
        Build a stat from its wire representation.

        Raises:
            ValueError: If any field is missing or has the wrong type
        """
        if not isinstance(data, dict):
            raise ValueError(f"Stat must be an object, got {type(data).__name__}")

        label = data.get("label")
        value = data.get("value")
        if not isinstance(label, str):
            raise ValueError("Stat 'label' must be a string")
        if not isinstance(value, str):
            raise ValueError("Stat 'value' must be a string")

        trend = data.get("trend")
        if trend is not None and not isinstance(trend, str):
            raise ValueError("Stat 'trend' must be a string")

        raw_direction = data.get("trendDirection")
        direction = None
        if raw_direction is not None:
            try:
                direction = TrendDirection(raw_direction)
            except ValueError:
                raise ValueError(f"Unknown trendDirection: {raw_direction!r}")

        return cls(label=label, value=value, trend=trend, trend_direction=direction)


@dataclass(frozen=True)
class StatSnapshot:
    """
    One fetched set of stats.

    Snapshots are immutable: a new fetch always produces a new snapshot.

    Attributes:
        stats: Stats in the order the endpoint returned them
        updated_at: Optional ISO-8601 timestamp reported by the endpoint
    """

    stats: Tuple[Stat, ...] = field(default_factory=tuple)
    updated_at: Optional[str] = None

    def __post_init__(self):
        # Accept any sequence but always store a tuple
        if not isinstance(self.stats, tuple):
            object.__setattr__(self, "stats", tuple(self.stats))

    def __len__(self) -> int:
        return len(self.stats)

    @property
    def updated_at_datetime(self) -> Optional[datetime]:
        """Parsed ``updated_at``, or None if absent or unparseable."""
        if not self.updated_at:
            return None
        text = self.updated_at.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            logger.debug(f"Unparseable updatedAt timestamp: {self.updated_at!r}")
            return None

    def select(
        self,
        indices: Sequence[int],
        custom_labels: Optional[Mapping[int, str]] = None,
    ) -> List[Stat]:
        """
        Return the stats a configuration asked for, in the asked order.

        Args:
            indices: Selected stat indices; empty means all stats in natural order
            custom_labels: Optional map of stat index to replacement label

        Returns:
            Selected stats; indices outside the snapshot are skipped
        """
        custom_labels = custom_labels or {}
        order = list(indices) if indices else list(range(len(self.stats)))

        selected = []
        for index in order:
            if not 0 <= index < len(self.stats):
                continue
            stat = self.stats[index]
            label = custom_labels.get(index)
            selected.append(stat.with_label(label) if label else stat)
        return selected

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"stats": [stat.to_dict() for stat in self.stats]}
        if self.updated_at is not None:
            data["updatedAt"] = self.updated_at
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "StatSnapshot":
        """
        Build a snapshot from a decoded JSON body.

        Raises:
            ValueError: If the payload does not have the snapshot shape
        """
        if not isinstance(data, dict):
            raise ValueError("Stats payload must be a JSON object")

        raw_stats = data.get("stats")
        if not isinstance(raw_stats, list):
            raise ValueError("Stats payload must contain a 'stats' list")

        updated_at = data.get("updatedAt")
        if updated_at is not None and not isinstance(updated_at, str):
            raise ValueError("'updatedAt' must be a string")

        return cls(
            stats=tuple(Stat.from_dict(item) for item in raw_stats),
            updated_at=updated_at,
        )
