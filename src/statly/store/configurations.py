"""
Design (configurations.py)
- Purpose: Durable CRUD for widget configurations over a key-value backend.
- Layout: "configurations" holds a JSON list of records without logo bytes;
          "logo_<id>" holds the raw logo image; the stats cache lives under
          "cached_stats_<id>" (see cache.py).
- Reads: Every configuration handed out has its logo re-attached.
- Thread-safety: One re-entrant lock serializes all operations, so callers
          never observe half-applied saves or deletes.
"""

import json
import logging
import threading
from contextlib import contextmanager
from typing import Iterator, List, Optional

from .backend import KeyValueStore
from .cache import StatsCache
from .models import Configuration

logger = logging.getLogger(__name__)

CONFIGURATIONS_KEY = "configurations"
LOGO_KEY_PREFIX = "logo_"


def logo_key(config_id: str) -> str:
    return f"{LOGO_KEY_PREFIX}{config_id}"


class ConfigurationStore:
    """
    Persist configurations and their logo blobs.

    Example:
        >>> store = ConfigurationStore(MemoryStore())
        >>> config = store.save(Configuration(name="Revenue"))
        >>> store.load_by_id(config.id).name
        'Revenue'
    """

    def __init__(self, backend: KeyValueStore, cache: Optional[StatsCache] = None):
        """
        Initialize the store.

        Args:
            backend: Key-value backend shared with the stats cache
            cache: Stats cache cleared on delete (defaults to one over backend)
        """
        self.backend = backend
        self.cache = cache if cache is not None else StatsCache(backend)
        self._lock = threading.RLock()

    # -------- CRUD --------

    def save(self, config: Configuration) -> Configuration:
        """
        Insert or replace a configuration by id.

        Other stored configurations are left untouched. The logo blob is
        written when present on the configuration and removed otherwise.

        Returns:
            The configuration that was passed in
        """
        with self._lock:
            records = self._read_records()

            record = config.to_record()
            for index, existing in enumerate(records):
                if existing.get("id") == config.id:
                    records[index] = record
                    logger.info(f"Updated configuration '{config.name}' ({config.id})")
                    break
            else:
                records.append(record)
                logger.info(f"Created configuration '{config.name}' ({config.id})")

            # Record first, so a failed write leaves the previous logo in place
            self._write_records(records)

            if config.has_logo:
                self.backend.set(logo_key(config.id), config.styling.logo_image_data)
            else:
                self.backend.delete(logo_key(config.id))
            return config

    def load_all(self) -> List[Configuration]:
        """Return every configuration in insertion order, logos attached."""
        with self._lock:
            configs = []
            for record in self._read_records():
                try:
                    configs.append(self._attach_logo(Configuration.from_record(record)))
                except ValueError as e:
                    logger.warning(f"Skipping unreadable configuration record: {e}")
            return configs

    def load_by_id(self, config_id: str) -> Optional[Configuration]:
        """Return the configuration with config_id, or None."""
        if not config_id:
            return None
        with self._lock:
            for record in self._read_records():
                if record.get("id") == config_id:
                    try:
                        return self._attach_logo(Configuration.from_record(record))
                    except ValueError as e:
                        logger.warning(f"Configuration {config_id} is unreadable: {e}")
                        return None
            return None

    def delete(self, config_id: str) -> bool:
        """
        Remove a configuration together with its cached stats and logo.

        Returns:
            True if a configuration was removed
        """
        with self._lock:
            records = self._read_records()
            remaining = [r for r in records if r.get("id") != config_id]
            removed = len(remaining) != len(records)

            if removed:
                self._write_records(remaining)
            self.cache.delete(config_id)
            self.backend.delete(logo_key(config_id))

            if removed:
                logger.info(f"Deleted configuration {config_id}")
            else:
                logger.debug(f"Delete requested for unknown configuration {config_id}")
            return removed

    # -------- Queries --------

    def count(self) -> int:
        with self._lock:
            return len(self._read_records())

    def exists(self, config_id: str) -> bool:
        with self._lock:
            return any(r.get("id") == config_id for r in self._read_records())

    def load_logo(self, config_id: str) -> Optional[bytes]:
        return self.backend.get(logo_key(config_id))

    @contextmanager
    def holding(self, config_id: str) -> Iterator[bool]:
        """
        Hold the store lock and report whether config_id still exists.

        Used to write cache entries without racing a concurrent delete.
        """
        with self._lock:
            yield self.exists(config_id)

    # -------- Internals --------

    def _attach_logo(self, config: Configuration) -> Configuration:
        logo = self.backend.get(logo_key(config.id))
        if logo is not None:
            config.styling.logo_image_data = logo
        return config

    def _read_records(self) -> List[dict]:
        payload = self.backend.get(CONFIGURATIONS_KEY)
        if payload is None:
            return []
        try:
            records = json.loads(payload.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            logger.error(f"Stored configurations are unreadable, treating as empty: {e}")
            return []
        if not isinstance(records, list):
            logger.error("Stored configurations are not a list, treating as empty")
            return []
        return [r for r in records if isinstance(r, dict)]

    def _write_records(self, records: List[dict]) -> None:
        self.backend.set(CONFIGURATIONS_KEY, json.dumps(records).encode("utf-8"))
