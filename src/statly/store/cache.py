"""
Last-known-good stats cache.

Holds the most recent successfully fetched snapshot per configuration id.
Staleness is decided by the refresh engine, not here.
"""

import json
import logging
from typing import Optional

from ..stats.models import StatSnapshot
from .backend import KeyValueStore

logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX = "cached_stats_"


def cache_key(config_id: str) -> str:
    return f"{CACHE_KEY_PREFIX}{config_id}"


class StatsCache:
    """Snapshot cache keyed by configuration id."""

    def __init__(self, backend: KeyValueStore):
        self.backend = backend

    def put(self, config_id: str, snapshot: StatSnapshot) -> None:
        """Overwrite the cached snapshot for config_id."""
        payload = json.dumps(snapshot.to_dict()).encode("utf-8")
        self.backend.set(cache_key(config_id), payload)
        logger.debug(f"Cached {len(snapshot)} stats for configuration {config_id}")

    def get(self, config_id: str) -> Optional[StatSnapshot]:
        """Return the cached snapshot, or None if missing or unreadable."""
        payload = self.backend.get(cache_key(config_id))
        if payload is None:
            return None

        try:
            return StatSnapshot.from_dict(json.loads(payload.decode("utf-8")))
        except (UnicodeDecodeError, ValueError) as e:
            logger.warning(f"Ignoring corrupt stats cache for configuration {config_id}: {e}")
            return None

    def delete(self, config_id: str) -> None:
        self.backend.delete(cache_key(config_id))
