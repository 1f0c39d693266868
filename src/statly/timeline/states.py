"""
Render states emitted by the refresh engine.

Each tick produces exactly one TimelineEntry: a RenderState variant plus
the time at which the next tick should run. Presenters must handle every
variant; they never guess cache-vs-fresh themselves.
"""

from dataclasses import dataclass
from datetime import datetime

from ..stats.models import StatSnapshot
from ..store.models import Configuration
from ..utils.errors import STALE_DATA_SERVED


class RenderState:
    """Base class of the render state variants."""

    kind: str = "base"


@dataclass(frozen=True)
class NoConfigurationsExist(RenderState):
    """The store holds no configurations at all."""

    kind = "no_configurations"


@dataclass(frozen=True)
class NoConfigurationSelected(RenderState):
    """The widget has no configuration chosen, or the chosen one is gone."""

    kind = "no_selection"
    message: str = "Select a widget"


@dataclass(frozen=True)
class ConfigurationError(RenderState):
    """The fetch failed and nothing is cached."""

    kind = "error"
    config: Configuration = None
    message: str = ""


@dataclass(frozen=True)
class ConfigurationOk(RenderState):
    """Fresh stats from a successful fetch."""

    kind = "ok"
    config: Configuration = None
    snapshot: StatSnapshot = None
    using_cache: bool = False


@dataclass(frozen=True)
class ConfigurationStale(RenderState):
    """The fetch failed; the last cached snapshot is shown instead."""

    kind = "stale"
    config: Configuration = None
    snapshot: StatSnapshot = None
    message: str = ""

    @property
    def annotation(self) -> str:
        return STALE_DATA_SERVED


@dataclass(frozen=True)
class TimelineEntry:
    """
    Output of one tick.

    Attributes:
        date: When the tick ran
        state: What to display
        next_refresh_at: When the host should tick again
    """

    date: datetime
    state: RenderState
    next_refresh_at: datetime

    @property
    def delay_seconds(self) -> float:
        return (self.next_refresh_at - self.date).total_seconds()
