"""
Retry and backoff table of the refresh engine.

Every tick ends in one of a few outcomes; each outcome maps to the delay
before the next tick. A successful fetch waits for the configuration's
(tier-clamped) refresh interval instead of a fixed delay.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Optional


class Outcome(str, Enum):
    """How a tick ended."""

    NO_CONFIGURATIONS = "no_configurations"
    NO_SELECTION = "no_selection"
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class RefreshPolicy:
    """
    Delay before the next tick per outcome.

    Attributes:
        empty_backoff: Nothing configured; only the user can change that
        unselected_backoff: Waiting for the user to pick a configuration
        failure_backoff: Last fetch failed; retry sooner than the interval
    """

    empty_backoff: timedelta = timedelta(hours=1)
    unselected_backoff: timedelta = timedelta(minutes=5)
    failure_backoff: timedelta = timedelta(minutes=5)

    def delay_for(self, outcome: Outcome, interval: Optional[timedelta] = None) -> timedelta:
        """
        Return the delay that follows an outcome.

        Args:
            outcome: How the tick ended
            interval: Refresh interval to use after a successful fetch

        Raises:
            ValueError: If outcome is SUCCESS and no interval is given
        """
        if outcome is Outcome.SUCCESS:
            if interval is None:
                raise ValueError("A refresh interval is required after a successful fetch")
            return interval
        return {
            Outcome.NO_CONFIGURATIONS: self.empty_backoff,
            Outcome.NO_SELECTION: self.unselected_backoff,
            Outcome.FAILURE: self.failure_backoff,
        }[Outcome(outcome)]

    def next_refresh(
        self, outcome: Outcome, now: datetime, interval: Optional[timedelta] = None
    ) -> datetime:
        return now + self.delay_for(outcome, interval)

    def as_table(self) -> Dict[str, float]:
        """Backoff table in seconds, keyed by outcome."""
        return {
            Outcome.NO_CONFIGURATIONS.value: self.empty_backoff.total_seconds(),
            Outcome.NO_SELECTION.value: self.unselected_backoff.total_seconds(),
            Outcome.FAILURE.value: self.failure_backoff.total_seconds(),
        }

    @classmethod
    def from_settings(cls, settings: Optional[Dict[str, Any]]) -> "RefreshPolicy":
        """
        Build a policy from the ``policy`` section of the settings file.

        Values are seconds; missing keys keep the defaults.

        Raises:
            ValueError: If a value is not a positive number
        """
        settings = settings or {}
        defaults = cls()
        values = {}
        for name in ("empty_backoff", "unselected_backoff", "failure_backoff"):
            if name not in settings:
                values[name] = getattr(defaults, name)
                continue
            seconds = settings[name]
            if isinstance(seconds, bool) or not isinstance(seconds, (int, float)) or seconds <= 0:
                raise ValueError(f"policy.{name} must be a positive number of seconds, got {seconds!r}")
            values[name] = timedelta(seconds=seconds)
        return cls(**values)
