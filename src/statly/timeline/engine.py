"""
Refresh engine: decides what a widget shows and when it refreshes next.

Every tick walks the same state machine:

1. No configurations stored         -> NoConfigurationsExist, long backoff
2. Target missing or unresolvable   -> NoConfigurationSelected, short backoff
3. Fetch the target's stats
   - success                        -> cache write-through, ConfigurationOk,
                                       next tick after the clamped interval
   - failure with a cached snapshot -> ConfigurationStale, failure backoff
   - failure without one            -> ConfigurationError, failure backoff

No state is terminal and no exception escapes a tick.
"""

import logging
import threading
from concurrent.futures import Future
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

from ..entitlements import EntitlementService, clamp_refresh_interval
from ..stats.client import StatsClient
from ..store.cache import StatsCache
from ..store.configurations import ConfigurationStore
from ..store.models import Configuration, RefreshInterval
from ..utils.errors import StatsClientError
from . import states
from .policy import Outcome, RefreshPolicy

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RefreshEngine:
    """
    Produce one TimelineEntry per tick.

    Ticks for the same configuration id never overlap: a tick arriving while
    a fetch for that id is outstanding waits for it and returns the same
    entry. Ticks for different ids run independently.
    """

    def __init__(
        self,
        store: ConfigurationStore,
        client: StatsClient,
        entitlements: EntitlementService,
        cache: Optional[StatsCache] = None,
        policy: Optional[RefreshPolicy] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the engine.

        Args:
            store: Configuration store
            client: Stats client used for fetches
            entitlements: Tier cache used to clamp refresh intervals
            cache: Stats cache (defaults to the store's cache)
            policy: Backoff table (defaults to RefreshPolicy())
            clock: Returns the current time (defaults to UTC now)
        """
        self.store = store
        self.client = client
        self.entitlements = entitlements
        self.cache = cache if cache is not None else store.cache
        self.policy = policy or RefreshPolicy()
        self.clock = clock or utc_now

        self._inflight: Dict[str, Future] = {}
        self._inflight_lock = threading.Lock()

    def tick(self, config_id: Optional[str]) -> states.TimelineEntry:
        """
        Run one scheduling tick for the widget showing config_id.

        Args:
            config_id: Configuration chosen for the widget, or None

        Returns:
            Render state and next refresh time
        """
        if config_id is None:
            return self._tick(None)

        with self._inflight_lock:
            pending = self._inflight.get(config_id)
            if pending is None:
                future: Future = Future()
                self._inflight[config_id] = future

        if pending is not None:
            logger.debug(f"Fetch for {config_id} already in flight, waiting for it")
            return pending.result()

        try:
            entry = self._tick(config_id)
            future.set_result(entry)
            return entry
        except BaseException as e:
            future.set_exception(e)
            raise
        finally:
            with self._inflight_lock:
                self._inflight.pop(config_id, None)

    def is_fetching(self, config_id: str) -> bool:
        with self._inflight_lock:
            return config_id in self._inflight

    def effective_interval(self, config: Configuration) -> RefreshInterval:
        """
        Refresh interval used for scheduling config.

        The stored interval is clamped to the current tier. The stored
        record itself is not changed.
        """
        if not self.entitlements.is_resolved:
            self.entitlements.refresh()

        tier = self.entitlements.tier
        clamped = clamp_refresh_interval(tier, config.refresh_interval)
        if clamped != config.refresh_interval:
            logger.info(
                f"Refresh interval for '{config.name}' clamped from "
                f"{config.refresh_interval.display_name} to {clamped.display_name} "
                f"({tier.value} tier)"
            )
        return clamped

    def _tick(self, config_id: Optional[str]) -> states.TimelineEntry:
        now = self.clock()
        try:
            return self._run(now, config_id)
        except Exception as e:
            logger.error(f"Tick for {config_id} failed: {e}", exc_info=True)
            return self._entry(
                now, states.ConfigurationError(config=None, message=f"Unexpected error: {e}"), Outcome.FAILURE
            )

    def _run(self, now: datetime, config_id: Optional[str]) -> states.TimelineEntry:
        configurations = self.store.load_all()
        if not configurations:
            logger.debug("No configurations stored")
            return self._entry(now, states.NoConfigurationsExist(), Outcome.NO_CONFIGURATIONS)

        config = next((c for c in configurations if c.id == config_id), None) if config_id else None
        if config is None:
            if config_id:
                logger.info(f"Configuration {config_id} no longer exists")
            return self._entry(now, states.NoConfigurationSelected(), Outcome.NO_SELECTION)

        interval = self.effective_interval(config)

        try:
            snapshot = self.client.fetch(config.endpoint_url, config.secret_key)
        except StatsClientError as e:
            logger.warning(f"Fetch failed for '{config.name}': {e}")
            return self._fallback(now, config, str(e))
        except Exception as e:
            logger.error(f"Unexpected error fetching '{config.name}': {e}", exc_info=True)
            return self._fallback(now, config, f"Unexpected error: {e}")

        self._write_through(config, snapshot)
        logger.info(f"Fetched {len(snapshot)} stats for '{config.name}'")
        return self._entry(
            now,
            states.ConfigurationOk(config=config, snapshot=snapshot, using_cache=False),
            Outcome.SUCCESS,
            timedelta(seconds=interval.seconds),
        )

    def _fallback(self, now: datetime, config: Configuration, reason: str) -> states.TimelineEntry:
        cached = self.cache.get(config.id)
        if cached is not None:
            logger.info(f"Serving cached stats for '{config.name}'")
            state = states.ConfigurationStale(config=config, snapshot=cached, message=reason)
        else:
            state = states.ConfigurationError(config=config, message=reason)
        return self._entry(now, state, Outcome.FAILURE)

    def _write_through(self, config: Configuration, snapshot) -> None:
        with self.store.holding(config.id) as present:
            if not present:
                logger.warning(f"Configuration {config.id} was deleted during fetch, not caching")
                return
            try:
                self.cache.put(config.id, snapshot)
            except OSError as e:
                logger.error(f"Failed to cache stats for '{config.name}': {e}")

    def _entry(
        self,
        now: datetime,
        state: states.RenderState,
        outcome: Outcome,
        interval: Optional[timedelta] = None,
    ) -> states.TimelineEntry:
        return states.TimelineEntry(
            date=now,
            state=state,
            next_refresh_at=self.policy.next_refresh(outcome, now, interval),
        )
