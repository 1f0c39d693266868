"""
Entitlement oracle abstraction and the in-memory tier cache.

The billing side (purchases, restores, receipts) lives outside Statly. An
oracle only answers which tier is currently active.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, List, Optional

from .policy import Tier

logger = logging.getLogger(__name__)


class EntitlementOracle(ABC):
    """Read-only view of the billing system."""

    name: str = "base"

    @abstractmethod
    def current_tier(self) -> Tier:
        """
        Return the last tier known to the billing system.

        Returns:
            Current tier (may be Tier.UNKNOWN)
        """
        pass

    def check(self) -> Tier:
        """
        Force a fresh check against the billing system and return the result.

        Oracles without a separate verification step return current_tier().
        """
        return self.current_tier()


class StaticEntitlementOracle(EntitlementOracle):
    """Serves a fixed tier, typically from the settings file."""

    name = "static"

    def __init__(self, tier: Tier = Tier.BASIC):
        self._tier = Tier(tier)

    def current_tier(self) -> Tier:
        return self._tier

    def set_tier(self, tier: Tier) -> None:
        self._tier = Tier(tier)


class EntitlementService:
    """
    Process-wide cache of the subscription tier.

    The tier is held in memory without expiry and re-validated on refresh(),
    which callers invoke when the app comes to the foreground and after
    purchase or restore events.
    """

    def __init__(self, oracle: EntitlementOracle):
        self.oracle = oracle
        self._tier = Tier.UNKNOWN
        self._lock = threading.Lock()
        self._listeners: List[Callable[[Tier, Tier], None]] = []

    @property
    def tier(self) -> Tier:
        """Cached tier; Tier.UNKNOWN before the first refresh."""
        with self._lock:
            return self._tier

    @property
    def is_resolved(self) -> bool:
        return self.tier is not Tier.UNKNOWN

    def refresh(self) -> Tier:
        """
        Re-validate the tier with the oracle.

        Oracle failures keep the previously cached tier.

        Returns:
            The cached tier after the check
        """
        try:
            fresh = Tier(self.oracle.check())
        except Exception as e:
            logger.error(f"Entitlement check via {self.oracle.name} oracle failed: {e}", exc_info=True)
            return self.tier

        with self._lock:
            previous, self._tier = self._tier, fresh

        if previous != fresh:
            logger.info(f"Subscription tier changed: {previous.value} -> {fresh.value}")
            for listener in list(self._listeners):
                listener(previous, fresh)
        return fresh

    def on_purchase_event(self) -> Tier:
        """Purchase or restore completed elsewhere; re-check the tier."""
        logger.debug("Purchase event received, refreshing entitlement")
        return self.refresh()

    def add_listener(self, listener: Callable[[Tier, Tier], None]) -> None:
        """Register a callback invoked with (previous, new) on tier changes."""
        self._listeners.append(listener)


def create_oracle(tier: Optional[str]) -> EntitlementOracle:
    """Build the oracle described by the settings file."""
    return StaticEntitlementOracle(Tier(tier) if tier else Tier.BASIC)
