"""
Configuration editing workflow.

Backs the create/edit screens: drafts, connection tests, stat selection,
entitlement coercion and saving.
"""

import logging
import threading
from typing import Any, List, Optional, Set, Tuple

from ..entitlements import (
    EntitlementService,
    allowed_refresh_intervals,
    can_add_configuration,
    can_use_logo,
    clamp_refresh_interval,
    max_configurations,
)
from ..stats.client import StatsClient
from ..stats.models import Stat, StatSnapshot
from ..store.configurations import ConfigurationStore
from ..store.models import Configuration, RefreshInterval, Styling
from ..utils.errors import ConfigurationError, EntitlementError
from .logo import normalize_logo

logger = logging.getLogger(__name__)


class ConfigurationEditor:
    """
    Create, edit and delete configurations under the current entitlement.

    New configurations must pass a connection test before they can be
    saved. Drafts that drift out of policy (for example after a downgrade)
    are coerced silently on save.
    """

    def __init__(
        self,
        store: ConfigurationStore,
        client: StatsClient,
        entitlements: EntitlementService,
    ):
        self.store = store
        self.client = client
        self.entitlements = entitlements

        self._tested: Set[Tuple[str, str, str]] = set()
        self._snapshots = {}
        self._lock = threading.Lock()

    # -------- Drafts --------

    def new_draft(self, **fields: Any) -> Configuration:
        """
        Return a new unsaved configuration with a fresh id.

        Styling fields may be passed as a ``styling`` dict or Styling.
        """
        styling = fields.pop("styling", None)
        if isinstance(styling, dict):
            styling = Styling(**styling)
        draft = Configuration(styling=styling or Styling(), **fields)
        return self.coerce_to_policy(draft)

    def edit(self, config_id: str) -> Configuration:
        """
        Load a stored configuration for editing.

        Raises:
            ConfigurationError: If config_id is unknown
        """
        config = self.store.load_by_id(config_id)
        if config is None:
            raise ConfigurationError(f"Unknown configuration: {config_id}")
        return config

    # -------- Connection test --------

    def test_connection(self, draft: Configuration) -> StatSnapshot:
        """
        Fetch stats for a draft.

        Client errors propagate unchanged so the user can diagnose the
        endpoint.
        """
        snapshot = self.client.test_connection(draft.endpoint_url, draft.secret_key)
        with self._lock:
            self._tested.add(self._test_key(draft))
            self._snapshots[draft.id] = snapshot
        logger.info(f"Connection test for '{draft.name}' returned {len(snapshot)} stats")
        return snapshot

    def has_passed_test(self, draft: Configuration) -> bool:
        with self._lock:
            return self._test_key(draft) in self._tested

    def available_stats(self, draft: Configuration) -> List[Tuple[int, Stat]]:
        """Stats offered for selection, from the draft's last connection test."""
        with self._lock:
            snapshot = self._snapshots.get(draft.id)
        if snapshot is None:
            return []
        return list(enumerate(snapshot.stats))

    def select_stats(self, draft: Configuration, indices: List[int]) -> Configuration:
        """
        Set which stats the draft shows, in order.

        Raises:
            ConfigurationError: If an index is duplicated or unavailable
        """
        available = self.available_stats(draft)
        problems = self._index_problems(indices, len(available) if available else None)
        if problems:
            raise ConfigurationError("; ".join(problems))
        draft.selected_stat_indices = list(indices)
        return draft

    # -------- Policy --------

    def coerce_to_policy(self, draft: Configuration) -> Configuration:
        """
        Bring a draft back within the current tier, in place.

        The refresh interval moves to the nearest allowed value; logo display
        and logo bytes are dropped when logos are not allowed.
        """
        tier = self.entitlements.tier
        clamped = clamp_refresh_interval(tier, draft.refresh_interval)
        if clamped != draft.refresh_interval:
            logger.debug(
                f"Draft '{draft.name}' interval {draft.refresh_interval.display_name} "
                f"coerced to {clamped.display_name}"
            )
            draft.refresh_interval = clamped

        if not can_use_logo(tier) and (draft.styling.shows_logo or draft.has_logo):
            logger.debug(f"Draft '{draft.name}' logo disabled for {tier.value} tier")
            draft.styling.shows_logo = False
            draft.styling.logo_image_data = None
        return draft

    def attach_logo(self, draft: Configuration, image_data: bytes) -> Configuration:
        """
        Normalize and attach a logo image to the draft.

        Raises:
            EntitlementError: If the tier does not allow logos
            ConfigurationError: If the image cannot be read
        """
        if not can_use_logo(self.entitlements.tier):
            raise EntitlementError("Custom logos require a Pro subscription")
        draft.styling.logo_image_data = normalize_logo(image_data)
        draft.styling.shows_logo = True
        return draft

    def remove_logo(self, draft: Configuration) -> Configuration:
        draft.styling.logo_image_data = None
        return draft

    # -------- Validation & save --------

    def validate(self, draft: Configuration) -> List[str]:
        """Return a list of problems; empty means the draft can be saved."""
        problems = []
        if not draft.name.strip():
            problems.append("Name is required")
        if not draft.endpoint_url.strip():
            problems.append("Endpoint URL is required")
        if not draft.secret_key.strip():
            problems.append("API key is required")
        problems.extend(self._index_problems(draft.selected_stat_indices, None))
        return problems

    def save(self, draft: Configuration) -> Configuration:
        """
        Persist a draft.

        Raises:
            ConfigurationError: If the draft is invalid or a new draft has not
                passed a connection test
            EntitlementError: If a new draft exceeds the tier's configuration cap
        """
        self.coerce_to_policy(draft)

        problems = self.validate(draft)
        if problems:
            raise ConfigurationError("; ".join(problems))

        is_new = not self.store.exists(draft.id)
        if is_new:
            tier = self.entitlements.tier
            if not can_add_configuration(tier, self.store.count()):
                raise EntitlementError(
                    f"{tier.display_name} plan allows at most "
                    f"{max_configurations(tier)} widgets; upgrade to add more"
                )
            if not self.has_passed_test(draft):
                raise ConfigurationError("Test the connection before saving")

        self.store.save(draft)
        return draft

    def delete(self, config_id: str) -> bool:
        with self._lock:
            self._snapshots.pop(config_id, None)
        return self.store.delete(config_id)

    def allowed_intervals(self) -> List[RefreshInterval]:
        return allowed_refresh_intervals(self.entitlements.tier)

    @staticmethod
    def _test_key(draft: Configuration) -> Tuple[str, str, str]:
        return (draft.id, draft.endpoint_url.strip(), draft.secret_key)

    @staticmethod
    def _index_problems(indices: List[int], available: Optional[int]) -> List[str]:
        problems = []
        if len(set(indices)) != len(indices):
            problems.append("Selected stats contain duplicates")
        for index in indices:
            if isinstance(index, bool) or not isinstance(index, int) or index < 0:
                problems.append(f"Invalid stat index: {index!r}")
            elif available is not None and index >= available:
                problems.append(f"Stat index {index} is not available")
        return problems
