"""
Widget management and local tick scheduling.

This module plays the host scheduler's role: it keeps the widgets placed on
the display surface, ticks the refresh engine for every widget that is
due, and honors the next-refresh time each tick returns.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Callable, Dict, List, Optional

from ..timeline.engine import RefreshEngine, utc_now
from ..timeline.states import TimelineEntry
from ..widgets.base import StatsWidget

logger = logging.getLogger(__name__)


class WidgetManager:
    """
    Manages widgets and their refresh schedule.

    Responsibilities:
    - Widget lifecycle (add, remove, choose configuration)
    - Ticking due widgets, distinct configurations in parallel
    - Remembering each widget's last timeline entry
    """

    # Upper bound on concurrent fetches per update pass
    MAX_WORKERS = 4

    def __init__(
        self,
        engine: RefreshEngine,
        clock: Optional[Callable[[], datetime]] = None,
        max_workers: Optional[int] = None,
    ):
        """
        Initialize the widget manager.

        Args:
            engine: Refresh engine producing timeline entries
            clock: Returns the current time (defaults to the engine's clock)
            max_workers: Thread pool size for concurrent ticks
        """
        self.engine = engine
        self.clock = clock or getattr(engine, "clock", utc_now)
        self.max_workers = max_workers or self.MAX_WORKERS
        self.active_widgets: Dict[str, StatsWidget] = {}
        self._widget_lock = threading.Lock()

    def add_widget(self, name: str, config_id: Optional[str] = None, family: str = "medium") -> StatsWidget:
        """
        Place a widget on the surface.

        Raises:
            ValueError: If a widget with this name already exists
        """
        widget = StatsWidget(name, config_id=config_id, family=family)
        with self._widget_lock:
            if name in self.active_widgets:
                raise ValueError(f"Widget already exists: {name}")
            self.active_widgets[name] = widget
        logger.info(f"Added widget '{name}' ({family}) for configuration {config_id}")
        return widget

    def remove_widget(self, name: str) -> bool:
        with self._widget_lock:
            removed = self.active_widgets.pop(name, None) is not None
        if removed:
            logger.info(f"Removed widget '{name}'")
        return removed

    def select_configuration(self, name: str, config_id: Optional[str]) -> None:
        """
        Choose which configuration a widget shows.

        Raises:
            KeyError: If the widget does not exist
        """
        with self._widget_lock:
            widget = self.active_widgets[name]
            widget.select(config_id)

    def get_widget(self, name: str) -> Optional[StatsWidget]:
        with self._widget_lock:
            return self.active_widgets.get(name)

    def get_entry(self, name: str) -> Optional[TimelineEntry]:
        """Last timeline entry of a widget, without ticking."""
        widget = self.get_widget(name)
        return widget.last_entry if widget else None

    def due_widgets(self, now: Optional[datetime] = None) -> List[StatsWidget]:
        now = now or self.clock()
        with self._widget_lock:
            return [w for w in self.active_widgets.values() if w.should_update(now)]

    def next_wakeup(self) -> Optional[datetime]:
        """Earliest time a widget becomes due; None when there are no widgets."""
        now = self.clock()
        with self._widget_lock:
            widgets = list(self.active_widgets.values())
        if not widgets:
            return None
        if any(w.should_update(now) for w in widgets):
            return now
        return min(w.next_refresh_at for w in widgets)

    def update_widgets(self, now: Optional[datetime] = None) -> Dict[str, TimelineEntry]:
        """
        Tick every widget that is due.

        Widgets showing different configurations are ticked in parallel;
        widgets sharing a configuration share one fetch.

        Args:
            now: Current time (defaults to the clock)

        Returns:
            Dictionary of {widget_name: entry} for widgets that ticked
        """
        due = self.due_widgets(now)
        if not due:
            return {}

        # One tick per configuration id; widgets with no selection tick alone
        groups: Dict[Optional[str], List[StatsWidget]] = {}
        for widget in due:
            groups.setdefault(widget.config_id, []).append(widget)

        updates: Dict[str, TimelineEntry] = {}
        workers = min(self.max_workers, len(groups))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="StatlyTick") as pool:
            futures = {
                config_id: pool.submit(self.engine.tick, config_id) for config_id in groups
            }
            for config_id, future in futures.items():
                entry = future.result()
                for widget in groups[config_id]:
                    with self._widget_lock:
                        # Skip widgets removed or re-pointed while ticking
                        if self.active_widgets.get(widget.name) is not widget or widget.config_id != config_id:
                            continue
                        widget.record(entry)
                    updates[widget.name] = entry
                    logger.debug(
                        f"Widget '{widget.name}' -> {entry.state.kind}, next refresh at "
                        f"{entry.next_refresh_at.isoformat()}"
                    )

        return updates

    def reload_all(self) -> None:
        """Make every widget due, e.g. after a configuration was edited."""
        with self._widget_lock:
            for widget in self.active_widgets.values():
                widget.invalidate()
        logger.debug("Reloading all widget timelines")

    def clear_widgets(self) -> None:
        with self._widget_lock:
            self.active_widgets.clear()
            logger.debug("Cleared all widgets")

    def has_widgets(self) -> bool:
        return len(self.active_widgets) > 0

    def get_widget_count(self) -> int:
        return len(self.active_widgets)
