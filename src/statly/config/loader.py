"""
Settings loader for Statly
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from ..entitlements.policy import Tier
from ..stats.client import AUTH_STYLES
from ..timeline.policy import RefreshPolicy
from ..widgets.base import FAMILY_STAT_LIMITS

logger = logging.getLogger(__name__)

# Maximum settings file size (1MB should be plenty for YAML settings)
MAX_CONFIG_SIZE = 1024 * 1024

DEFAULT_STORE_PATH = "~/.statly/store"
DEFAULT_SETTINGS_PATH = "~/.statly/statly.yaml"


class SettingsLoader:
    """Loads and validates YAML settings files"""

    def load(self, config_path: Optional[str] = None) -> Dict[str, Any]:
        """
        Load settings from a YAML file.

        A missing file at the default location yields the defaults; a missing
        file given explicitly is an error.

        Args:
            config_path: Path to YAML settings file

        Returns:
            Validated settings dictionary with defaults applied

        Raises:
            FileNotFoundError: If an explicit settings file doesn't exist
            ValueError: If the settings file is invalid or too large
            PermissionError: If the settings file is not readable
        """
        explicit = config_path is not None
        resolved_path = Path(config_path or DEFAULT_SETTINGS_PATH).expanduser().resolve()

        if not resolved_path.exists():
            if explicit:
                raise FileNotFoundError(f"Settings file not found: {resolved_path}")
            logger.info(f"No settings file at {resolved_path}, using defaults")
            return self.from_dict({})

        self._validate_config_path(resolved_path)

        file_size = resolved_path.stat().st_size
        if file_size > MAX_CONFIG_SIZE:
            raise ValueError(
                f"Settings file too large: {file_size} bytes "
                f"(maximum {MAX_CONFIG_SIZE} bytes)"
            )

        try:
            with open(resolved_path, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in settings file: {e}")
        except PermissionError as e:
            raise PermissionError(f"Cannot read settings file: {e}")

        settings = self.from_dict({} if config is None else config)
        logger.info(f"Loaded settings from {resolved_path}")
        return settings

    def from_dict(self, config: Any) -> Dict[str, Any]:
        """Validate an already-parsed settings mapping and apply defaults."""
        self._validate(config)
        return self._apply_defaults(config)

    def _validate_config_path(self, config_path: Path) -> None:
        if config_path.is_dir():
            raise ValueError(f"Path is a directory, not a file: {config_path}")

        if config_path.suffix.lower() not in [".yaml", ".yml"]:
            logger.warning(
                f"Settings file has unexpected extension: {config_path.suffix}. "
                f"Expected .yaml or .yml"
            )

    def _validate(self, config: Dict[str, Any]) -> None:
        """Validate settings structure"""
        if not isinstance(config, dict):
            raise ValueError("Settings must be a dictionary")

        for section in ("store", "client", "entitlement", "policy"):
            if section in config and not isinstance(config[section], dict):
                raise ValueError(f"'{section}' must be a dictionary")

        client = config.get("client", {})
        if "timeout" in client:
            timeout = client["timeout"]
            if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
                raise ValueError(f"client.timeout must be a positive number, got {timeout!r}")
        if "auth_style" in client and client["auth_style"] not in AUTH_STYLES:
            raise ValueError(f"client.auth_style must be one of {AUTH_STYLES}")

        tier = config.get("entitlement", {}).get("tier")
        if tier is not None and tier not in (Tier.BASIC.value, Tier.PRO.value):
            raise ValueError(f"entitlement.tier must be 'basic' or 'pro', got {tier!r}")

        # Raises ValueError with a readable message
        RefreshPolicy.from_settings(config.get("policy"))

        widgets = config.get("widgets", [])
        if not isinstance(widgets, list):
            raise ValueError("'widgets' must be a list")

        names = set()
        for index, widget in enumerate(widgets):
            if not isinstance(widget, dict):
                raise ValueError(f"Widget #{index + 1} must be a dictionary")
            name = widget.get("name")
            if not name or not isinstance(name, str):
                raise ValueError(f"Widget #{index + 1} must have a 'name'")
            if name in names:
                raise ValueError(f"Duplicate widget name: {name}")
            names.add(name)
            family = widget.get("family", "medium")
            if family not in FAMILY_STAT_LIMITS:
                raise ValueError(f"Widget '{name}' has unknown family '{family}'")

    def _apply_defaults(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply default values to settings"""
        store = config.setdefault("store", {})
        store.setdefault("path", os.environ.get("STATLY_STORE", DEFAULT_STORE_PATH))

        client = config.setdefault("client", {})
        client.setdefault("timeout", 30)
        client.setdefault("auth_style", "bearer")

        entitlement = config.setdefault("entitlement", {})
        entitlement.setdefault("tier", Tier.BASIC.value)

        config.setdefault("policy", {})

        widgets = config.setdefault("widgets", [])
        for widget in widgets:
            widget.setdefault("configuration", None)
            widget.setdefault("family", "medium")

        return config
