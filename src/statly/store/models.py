"""
Widget configuration records.

A configuration binds one stats endpoint to styling and a refresh
interval. Its ``id`` is fixed at creation and joins the configuration to
its logo blob and its cached stats.
"""

import uuid
from dataclasses import asdict, dataclass, field
from enum import IntEnum
from typing import Any, Dict, List, Optional


class RefreshInterval(IntEnum):
    """Supported refresh intervals, in minutes."""

    FIVE_MINUTES = 5
    FIFTEEN_MINUTES = 15
    THIRTY_MINUTES = 30
    ONE_HOUR = 60
    TWO_HOURS = 120

    @property
    def seconds(self) -> int:
        return self.value * 60

    @property
    def display_name(self) -> str:
        if self.value < 60:
            return f"{self.value} minutes"
        hours = self.value // 60
        return "1 hour" if hours == 1 else f"{hours} hours"

    @classmethod
    def parse(cls, value: Any) -> "RefreshInterval":
        """
        Parse minutes given as int or string (e.g. 15, "15", "2h").

        Raises:
            ValueError: If the value is not a supported interval
        """
        if isinstance(value, RefreshInterval):
            return value
        text = str(value).strip().lower()
        try:
            if text.endswith("h"):
                minutes = int(text[:-1]) * 60
            else:
                minutes = int(text.rstrip("m"))
            return cls(minutes)
        except ValueError:
            allowed = ", ".join(str(i.value) for i in cls)
            raise ValueError(f"Unsupported refresh interval {value!r} (allowed minutes: {allowed})")


@dataclass
class Styling:
    """Colors, header toggles and logo of a widget."""

    background_color: str = "#1C1C1E"
    primary_text_color: str = "#8E8E93"
    value_text_color: str = "#FFFFFF"
    trend_up_color: str = "#34C759"
    trend_down_color: str = "#FF3B30"
    trend_neutral_color: str = "#8E8E93"
    logo_url: str = ""
    app_name: str = "My App"
    shows_logo: bool = True
    shows_app_name: bool = True
    # Stored separately from the record, see ConfigurationStore
    logo_image_data: Optional[bytes] = None


@dataclass
class Configuration:
    """
    A named endpoint binding.

    Attributes:
        id: Opaque unique identifier, immutable once set
        name: Display name
        endpoint_url: Stats endpoint
        secret_key: Secret sent with every request
        refresh_interval: Requested refresh interval
        selected_stat_indices: Stats to show, in order; empty shows all
        custom_labels: Optional label overrides keyed by stat index
        styling: Visual styling
    """

    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    name: str = "My Widget"
    endpoint_url: str = ""
    secret_key: str = ""
    refresh_interval: RefreshInterval = RefreshInterval.FIFTEEN_MINUTES
    selected_stat_indices: List[int] = field(default_factory=list)
    custom_labels: Dict[int, str] = field(default_factory=dict)
    styling: Styling = field(default_factory=Styling)

    def __setattr__(self, name, value):
        if name == "id" and "id" in self.__dict__:
            raise AttributeError("Configuration id cannot be changed")
        super().__setattr__(name, value)

    def __post_init__(self):
        if not self.id:
            raise ValueError("Configuration id must not be empty")
        self.refresh_interval = RefreshInterval.parse(self.refresh_interval)

    @property
    def has_logo(self) -> bool:
        return self.styling.logo_image_data is not None

    def to_record(self) -> Dict[str, Any]:
        """Serializable record without the logo bytes."""
        styling = asdict(self.styling)
        styling.pop("logo_image_data")
        return {
            "id": self.id,
            "name": self.name,
            "endpoint_url": self.endpoint_url,
            "secret_key": self.secret_key,
            "refresh_interval": int(self.refresh_interval),
            "selected_stat_indices": list(self.selected_stat_indices),
            # JSON object keys are strings
            "custom_labels": {str(k): v for k, v in self.custom_labels.items()},
            "styling": styling,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Configuration":
        """
        Rebuild a configuration from to_record() output.

        Raises:
            ValueError: If the record is malformed
        """
        if not isinstance(record, dict) or not record.get("id"):
            raise ValueError("Configuration record must be an object with an 'id'")

        styling_fields = {
            k: v for k, v in (record.get("styling") or {}).items() if k in Styling.__dataclass_fields__
        }
        styling_fields.pop("logo_image_data", None)

        try:
            return cls(
                id=str(record["id"]),
                name=record.get("name", "My Widget"),
                endpoint_url=record.get("endpoint_url", ""),
                secret_key=record.get("secret_key", ""),
                refresh_interval=RefreshInterval.parse(
                    record.get("refresh_interval", RefreshInterval.FIFTEEN_MINUTES)
                ),
                selected_stat_indices=[int(i) for i in record.get("selected_stat_indices", [])],
                custom_labels={int(k): str(v) for k, v in (record.get("custom_labels") or {}).items()},
                styling=Styling(**styling_fields),
            )
        except (TypeError, AttributeError) as e:
            raise ValueError(f"Malformed configuration record: {e}")

    def summary(self) -> Dict[str, Any]:
        """Short, secret-free description for listings and logs."""
        return {
            "id": self.id,
            "name": self.name,
            "app_name": self.styling.app_name,
            "endpoint_url": self.endpoint_url,
            "refresh_interval": self.refresh_interval.display_name,
            "selected_stats": list(self.selected_stat_indices),
            "logo_bytes": len(self.styling.logo_image_data) if self.has_logo else 0,
        }
