"""
Main controller for Statly.
"""

import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from .config.loader import SettingsLoader
from .editor import ConfigurationEditor
from .entitlements import EntitlementOracle, EntitlementService, Tier, create_oracle
from .managers import WidgetManager
from .stats import StatsClient
from .store import ConfigurationStore, FileStore, KeyValueStore, StatsCache
from .timeline import RefreshEngine, RefreshPolicy, TimelineEntry
from .timeline.engine import utc_now
from .utils.errors import error_boundary, safe_execute
from .widgets import render_text

logger = logging.getLogger(__name__)


class StatlyController:
    """
    Main controller wiring Statly's services together.

    Delegates to:
    - ConfigurationStore / StatsCache: persistence
    - EntitlementService: subscription tier
    - RefreshEngine: per-tick render state
    - WidgetManager: which widgets are due and when to wake up
    - ConfigurationEditor: create/edit/delete workflow
    """

    # Longest single sleep in the run loop, so shutdown stays responsive
    POLL_INTERVAL = 0.5

    def __init__(
        self,
        config_path: Optional[str] = None,
        *,
        backend: Optional[KeyValueStore] = None,
        client: Optional[StatsClient] = None,
        oracle: Optional[EntitlementOracle] = None,
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """
        Initialize the controller.

        Services are built by load_config(). Any collaborator passed here
        replaces the one the settings file would produce.

        Args:
            config_path: Path to YAML settings file (None for the default)
            backend: Key-value backend (defaults to a FileStore at store.path)
            client: Stats client
            oracle: Entitlement oracle
            clock: Returns the current time
            sleep: Sleep function used by the run loop
        """
        self.config_path = config_path
        self.config: Optional[Dict[str, Any]] = None
        self.running: bool = False

        self.settings_loader = SettingsLoader()
        self.clock = clock or utc_now
        self._sleep = sleep
        self._backend = backend
        self._client = client
        self._oracle = oracle

        self.store: Optional[ConfigurationStore] = None
        self.cache: Optional[StatsCache] = None
        self.client: Optional[StatsClient] = None
        self.entitlements: Optional[EntitlementService] = None
        self.engine: Optional[RefreshEngine] = None
        self.widget_manager: Optional[WidgetManager] = None
        self.editor: Optional[ConfigurationEditor] = None

    def load_config(self) -> bool:
        """
        Load settings and build the services.

        Returns:
            True if successful, False otherwise
        """
        try:
            self.config = self.settings_loader.load(self.config_path)
            self._build_services()
            return True
        except Exception as e:
            logger.error(f"Failed to load settings: {e}")
            return False

    def _build_services(self) -> None:
        config = self.config
        backend = self._backend or FileStore(Path(config["store"]["path"]).expanduser())

        self.cache = StatsCache(backend)
        self.store = ConfigurationStore(backend, self.cache)
        self.client = self._client or StatsClient(
            timeout=config["client"]["timeout"],
            auth_style=config["client"]["auth_style"],
        )
        self.entitlements = EntitlementService(
            self._oracle or create_oracle(config["entitlement"]["tier"])
        )
        self.engine = RefreshEngine(
            self.store,
            self.client,
            self.entitlements,
            cache=self.cache,
            policy=RefreshPolicy.from_settings(config["policy"]),
            clock=self.clock,
        )
        self.widget_manager = WidgetManager(self.engine, clock=self.clock)
        self.editor = ConfigurationEditor(self.store, self.client, self.entitlements)

        # Interval clamps depend on the tier, so recompute every timeline
        self.entitlements.add_listener(self._on_tier_changed)

        for widget in config["widgets"]:
            self.widget_manager.add_widget(
                widget["name"], config_id=widget["configuration"], family=widget["family"]
            )
        logger.debug(f"Services built with {self.widget_manager.get_widget_count()} widgets")

    def _on_tier_changed(self, previous: Tier, current: Tier) -> None:
        logger.info(f"Tier changed from {previous.value} to {current.value}, reloading timelines")
        if self.widget_manager:
            self.widget_manager.reload_all()

    def tick_once(self, config_id: Optional[str]) -> TimelineEntry:
        """Run a single refresh tick outside the daemon loop."""
        if not self.entitlements.is_resolved:
            self.entitlements.refresh()
        return self.engine.tick(config_id)

    @error_boundary(default_return={})
    def update_widgets(self) -> Dict[str, TimelineEntry]:
        """Tick every due widget and log what each one now shows."""
        updates = self.widget_manager.update_widgets(self.clock())
        for name, entry in updates.items():
            widget = self.widget_manager.get_widget(name)
            family = widget.family if widget else "medium"
            logger.info(f"[{name}] {entry.state.kind}\n{render_text(entry, family)}")
        return updates

    def seconds_until_next_wakeup(self) -> float:
        wakeup = self.widget_manager.next_wakeup()
        if wakeup is None:
            return self.POLL_INTERVAL
        return max(0.0, (wakeup - self.clock()).total_seconds())

    def run(self) -> None:
        """
        Main application run loop.

        Resolves the tier, then alternates between ticking due widgets and
        sleeping until the next one is due.
        """
        if not self.load_config():
            logger.error("Cannot start without valid settings")
            return

        safe_execute(self.entitlements.refresh, default=Tier.UNKNOWN)
        logger.info(f"Subscription tier: {self.entitlements.tier.display_name}")

        if not self.widget_manager.has_widgets():
            logger.warning("No widgets defined in settings; nothing will refresh")

        self.running = True
        logger.info("Statly is running. Press Ctrl+C to exit.")

        try:
            while self.running:
                self.update_widgets()

                # Sleep in short slices so stop requests and newly due widgets
                # are noticed quickly
                remaining = self.seconds_until_next_wakeup()
                while self.running and remaining > 0:
                    self._sleep(min(self.POLL_INTERVAL, remaining))
                    remaining = self.seconds_until_next_wakeup()

        except KeyboardInterrupt:
            logger.info("Received shutdown signal")
        except Exception as e:
            logger.error(f"Unexpected error in main loop: {e}", exc_info=True)
        finally:
            logger.info("Shutting down Statly...")
            self.running = False
