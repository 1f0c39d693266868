"""
Plain-text rendering of timeline entries.

Used by the CLI and the daemon log. Every render state variant has its own
branch; an unknown variant is a programming error.
"""

from typing import List

from ..stats.models import Stat, StatSnapshot
from ..store.models import Configuration
from ..timeline import states
from .base import FAMILY_STAT_LIMITS


def render_text(entry: states.TimelineEntry, family: str = "medium") -> str:
    """
    Format a timeline entry as multi-line text.

    Args:
        entry: Output of a refresh engine tick
        family: Display size deciding how many stats are shown

    Returns:
        Text with one stat per line

    Raises:
        TypeError: If the entry carries an unknown render state
    """
    limit = FAMILY_STAT_LIMITS.get(family, FAMILY_STAT_LIMITS["medium"])
    state = entry.state

    if isinstance(state, states.NoConfigurationsExist):
        return "No Widget Configured\nCreate a widget in Statly"

    if isinstance(state, states.NoConfigurationSelected):
        return f"{state.message}\nLong-press the widget to choose a configuration"

    if isinstance(state, states.ConfigurationError):
        name = state.config.name if state.config else "Statly"
        return f"{name}\n⚠ {state.message}"

    if isinstance(state, states.ConfigurationOk):
        return "\n".join(_render_stats(state.config, state.snapshot, limit))

    if isinstance(state, states.ConfigurationStale):
        lines = _render_stats(state.config, state.snapshot, limit)
        lines.append(f"{state.annotation} ({state.message})" if state.message else state.annotation)
        return "\n".join(lines)

    raise TypeError(f"Unhandled render state: {type(state).__name__}")


def format_stat(stat: Stat) -> str:
    """Format a stat as ``LABEL: value trend``."""
    text = f"{stat.label}: {stat.value}"
    if stat.trend:
        arrow = f"{stat.trend_direction.icon} " if stat.trend_direction else ""
        text += f" {arrow}{stat.trend}"
    return text


def updated_text(snapshot: StatSnapshot):
    """Return "Updated at HH:MM" or None when the snapshot has no usable time."""
    updated = snapshot.updated_at_datetime
    if updated is None:
        return None
    return f"Updated at {updated.strftime('%H:%M')}"


def _render_stats(config: Configuration, snapshot: StatSnapshot, limit: int) -> List[str]:
    lines = []
    if config.styling.shows_app_name and config.styling.app_name:
        lines.append(config.styling.app_name)

    shown = snapshot.select(config.selected_stat_indices, config.custom_labels)[:limit]
    if shown:
        lines.extend(format_stat(stat) for stat in shown)
    else:
        lines.append("No stats")

    updated = updated_text(snapshot)
    if updated:
        lines.append(updated)
    return lines
