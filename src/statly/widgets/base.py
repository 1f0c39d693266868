"""
Widget instances placed on the display surface.
"""

import logging
from datetime import datetime
from typing import Optional

from ..timeline.states import TimelineEntry

logger = logging.getLogger(__name__)

# Display families and how many stats each one shows
FAMILY_STAT_LIMITS = {
    "small": 1,
    "medium": 3,
    "large": 6,
}


class StatsWidget:
    """
    One widget on the display surface.

    A widget is bound to at most one configuration and remembers the last
    timeline entry produced for it.

    Attributes:
        name: Unique widget name
        config_id: Selected configuration, or None until the user picks one
        family: Display size ("small", "medium" or "large")
        last_entry: Most recent TimelineEntry, None before the first tick
    """

    def __init__(self, name: str, config_id: Optional[str] = None, family: str = "medium"):
        """
        Initialize a widget.

        Raises:
            ValueError: If the name is empty or the family is unknown
        """
        if not name:
            raise ValueError("Widget name must not be empty")
        if family not in FAMILY_STAT_LIMITS:
            raise ValueError(
                f"Unknown widget family: {family!r} (expected one of {sorted(FAMILY_STAT_LIMITS)})"
            )

        self.name = name
        self.config_id = config_id
        self.family = family
        self.last_entry: Optional[TimelineEntry] = None
        self._force_update = False

    @property
    def stat_limit(self) -> int:
        return FAMILY_STAT_LIMITS[self.family]

    @property
    def next_refresh_at(self) -> Optional[datetime]:
        return self.last_entry.next_refresh_at if self.last_entry else None

    def should_update(self, now: datetime) -> bool:
        """
        Check whether the widget is due for a tick.

        Args:
            now: Current time

        Returns:
            True before the first tick, after invalidate(), and once
            next_refresh_at has passed
        """
        if self.last_entry is None or self._force_update:
            return True
        return now >= self.last_entry.next_refresh_at

    def select(self, config_id: Optional[str]) -> None:
        """Bind the widget to another configuration and make it due."""
        if config_id != self.config_id:
            logger.debug(f"Widget '{self.name}' now shows configuration {config_id}")
        self.config_id = config_id
        self.invalidate()

    def invalidate(self) -> None:
        """Make the next update tick immediately, keeping the shown entry."""
        self._force_update = True

    def record(self, entry: TimelineEntry) -> None:
        """Store the entry produced by a tick."""
        self.last_entry = entry
        self._force_update = False

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.name}, config={self.config_id}, family={self.family})>"
