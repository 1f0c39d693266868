#!/usr/bin/env python3
"""
Statly CLI - Unified command-line interface for Statly.

This module provides the daemon entry point and configuration management
commands.
"""

import argparse
import logging
import sys
from typing import Callable, Dict, List, Optional

import yaml

from .config.loader import DEFAULT_SETTINGS_PATH, SettingsLoader
from .controller import StatlyController
from .editor.logo import logo_dimensions
from .store import Configuration, RefreshInterval
from .utils.errors import StatlyError
from .widgets import render_text

logger = logging.getLogger(__name__)


def _parse_indices(text: Optional[str]) -> Optional[List[int]]:
    """Parse "0,2,1" into [0, 2, 1]; None when the option was not given."""
    if text is None:
        return None
    text = text.strip()
    if not text:
        return []
    try:
        return [int(part) for part in text.split(",")]
    except ValueError:
        raise ValueError(f"Stat indices must be comma-separated integers, got {text!r}")


def _parse_labels(pairs: Optional[List[str]]) -> Dict[int, str]:
    """Parse repeated INDEX=LABEL options."""
    labels = {}
    for pair in pairs or []:
        index, sep, label = pair.partition("=")
        if not sep or not index.strip().isdigit():
            raise ValueError(f"Labels must look like INDEX=LABEL, got {pair!r}")
        labels[int(index)] = label
    return labels


class StatlyCLI:
    """Main CLI handler for Statly commands."""

    def __init__(
        self,
        settings_path: Optional[str] = None,
        controller_factory: Callable[..., StatlyController] = StatlyController,
    ) -> None:
        self.settings_path = settings_path
        self.controller_factory = controller_factory
        self._controller: Optional[StatlyController] = None

    @property
    def controller(self) -> StatlyController:
        """Controller with services built from the settings file."""
        if self._controller is None:
            controller = self.controller_factory(self.settings_path)
            if not controller.load_config():
                raise StatlyError(f"Cannot load settings from {self.settings_path or DEFAULT_SETTINGS_PATH}")
            controller.entitlements.refresh()
            self._controller = controller
        return self._controller

    def run_daemon(self, config_path: str, log_level: str = "INFO") -> int:
        """Run the Statly daemon in the foreground."""
        # Import here to keep signal handling out of library imports
        from .main import main as daemon_main

        try:
            daemon_main([config_path, "--log-level", log_level])
            return 0
        except KeyboardInterrupt:
            logger.info("Daemon stopped by user")
            return 0
        except SystemExit as e:
            return e.code if isinstance(e.code, int) else 1

    # -------- Configurations --------

    def list_configs(self) -> int:
        """List stored configurations."""
        configs = self.controller.store.load_all()
        tier = self.controller.entitlements.tier

        if not configs:
            print("No configurations found.")
            print("\nCreate one with: statly config add --name NAME --url URL --key KEY")
            return 0

        print(f"Configurations ({tier.display_name} plan):\n")
        for config in configs:
            print(f"  ○ {config.id}  {config.name}  [{config.refresh_interval.display_name}]")
        return 0

    def show_config(self, config_id: str) -> int:
        """Print one configuration, without its secret."""
        config = self.controller.store.load_by_id(config_id)
        if config is None:
            print(f"Configuration not found: {config_id}")
            return 1
        summary = config.summary()
        if config.has_logo:
            size = logo_dimensions(config.styling.logo_image_data)
            summary["logo_size"] = f"{size[0]}x{size[1]}" if size else "unreadable"
        print(yaml.safe_dump(summary, sort_keys=False, allow_unicode=True).rstrip())
        return 0

    def add_config(
        self,
        name: str,
        url: str,
        key: str,
        interval: Optional[str] = None,
        stats: Optional[str] = None,
        labels: Optional[List[str]] = None,
        app_name: Optional[str] = None,
    ) -> int:
        """Create a configuration after a successful connection test."""
        editor = self.controller.editor
        try:
            fields = {"name": name, "endpoint_url": url, "secret_key": key}
            if interval is not None:
                fields["refresh_interval"] = RefreshInterval.parse(interval)
            draft = editor.new_draft(**fields)
            if app_name is not None:
                draft.styling.app_name = app_name

            self._test_and_print(draft)

            indices = _parse_indices(stats)
            if indices is not None:
                editor.select_stats(draft, indices)
            draft.custom_labels.update(_parse_labels(labels))

            editor.save(draft)
        except (StatlyError, ValueError) as e:
            print(f"\n❌ {e}")
            return 1

        print(f"\n✅ Saved configuration {draft.id}")
        if interval is not None and draft.refresh_interval != RefreshInterval.parse(interval):
            print(f"  Refresh interval adjusted to {draft.refresh_interval.display_name} for your plan")
        return 0

    def edit_config(
        self,
        config_id: str,
        name: Optional[str] = None,
        url: Optional[str] = None,
        key: Optional[str] = None,
        interval: Optional[str] = None,
        stats: Optional[str] = None,
        labels: Optional[List[str]] = None,
        app_name: Optional[str] = None,
    ) -> int:
        """Update fields of a stored configuration."""
        editor = self.controller.editor
        try:
            draft = editor.edit(config_id)
            if name is not None:
                draft.name = name
            if url is not None:
                draft.endpoint_url = url
            if key is not None:
                draft.secret_key = key
            if interval is not None:
                draft.refresh_interval = RefreshInterval.parse(interval)
            if app_name is not None:
                draft.styling.app_name = app_name

            # A changed endpoint must still answer before it is saved
            if url is not None or key is not None:
                self._test_and_print(draft)

            indices = _parse_indices(stats)
            if indices is not None:
                editor.select_stats(draft, indices)
            draft.custom_labels.update(_parse_labels(labels))

            editor.save(draft)
        except (StatlyError, ValueError) as e:
            print(f"\n❌ {e}")
            return 1

        print(f"✅ Updated configuration {draft.id}")
        return 0

    def delete_config(self, config_id: str) -> int:
        if not self.controller.editor.delete(config_id):
            print(f"Configuration not found: {config_id}")
            return 1
        print(f"Deleted configuration {config_id}")
        return 0

    def test_config(self, config_id: str) -> int:
        """Run a connection test against a stored configuration."""
        try:
            draft = self.controller.editor.edit(config_id)
            self._test_and_print(draft)
        except StatlyError as e:
            print(f"\n❌ {e}")
            return 1
        return 0

    def _test_and_print(self, draft: Configuration) -> None:
        print(f"Testing connection to {draft.endpoint_url}...")
        self.controller.editor.test_connection(draft)
        print("✅ Connection OK. Available stats:")
        for index, stat in self.controller.editor.available_stats(draft):
            print(f"  [{index}] {stat.label}: {stat.value}")

    # -------- Engine --------

    def tick(self, config_id: Optional[str]) -> int:
        """Run one refresh tick and print what the widget would show."""
        entry = self.controller.tick_once(config_id)
        print(render_text(entry))
        print(f"\nNext refresh at {entry.next_refresh_at.isoformat()} (in {entry.delay_seconds / 60:g} min)")
        return 0 if entry.state.kind in ("ok", "stale") else 1

    def validate_settings(self, config_path: str) -> int:
        """Validate a settings file."""
        print(f"Validating {config_path}...")
        try:
            settings = SettingsLoader().load(config_path)
        except (FileNotFoundError, PermissionError, ValueError) as e:
            print(f"\n❌ Validation FAILED:\n  {e}")
            return 1

        print("\n✅ Settings are valid")
        if not settings["widgets"]:
            print("\n⚠️  Warnings:")
            print("  WARNING: No widgets defined (the daemon will have nothing to refresh)")
        return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="statly",
        description="Statly - stats widget refresh engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  statly run ~/.statly/statly.yaml               # Run daemon directly
  statly validate ~/.statly/statly.yaml          # Validate settings
  statly config list                             # List configurations
  statly config add --name Shop --url URL --key KEY --interval 2h
  statly config test <id>                        # Test a connection
  statly tick ~/.statly/statly.yaml <id>         # One refresh tick
""",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Logging level for management commands",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    run_parser = subparsers.add_parser("run", help="Run the daemon directly")
    run_parser.add_argument("config", help="Path to settings file")
    run_parser.add_argument(
        "--log-level",
        dest="daemon_log_level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level",
    )

    tick_parser = subparsers.add_parser("tick", help="Run one refresh tick")
    tick_parser.add_argument("config", help="Path to settings file")
    tick_parser.add_argument("config_id", nargs="?", default=None, help="Configuration id")

    validate_parser = subparsers.add_parser("validate", help="Validate a settings file")
    validate_parser.add_argument("config", help="Path to settings file")

    # Config subcommands
    config_parser = subparsers.add_parser("config", help="Configuration management")
    config_parser.add_argument(
        "-s", "--settings", default=None, help=f"Settings file (default: {DEFAULT_SETTINGS_PATH})"
    )
    config_subparsers = config_parser.add_subparsers(dest="config_command")

    config_subparsers.add_parser("list", help="List configurations")

    for command in ("show", "delete", "test"):
        sub = config_subparsers.add_parser(command, help=f"{command.capitalize()} a configuration")
        sub.add_argument("config_id", help="Configuration id")

    add_parser = config_subparsers.add_parser("add", help="Create a configuration")
    add_parser.add_argument("--name", required=True, help="Display name")
    add_parser.add_argument("--url", required=True, help="Stats endpoint URL")
    add_parser.add_argument("--key", required=True, help="Secret key")

    edit_parser = config_subparsers.add_parser("edit", help="Edit a configuration")
    edit_parser.add_argument("config_id", help="Configuration id")
    edit_parser.add_argument("--name", help="Display name")
    edit_parser.add_argument("--url", help="Stats endpoint URL")
    edit_parser.add_argument("--key", help="Secret key")

    for sub in (add_parser, edit_parser):
        sub.add_argument("--interval", help="Refresh interval in minutes, or e.g. 2h")
        sub.add_argument("--stats", help="Comma-separated stat indices to show, in order")
        sub.add_argument(
            "--label", action="append", dest="labels", metavar="INDEX=LABEL", help="Override a stat label"
        )
        sub.add_argument("--app-name", help="App name shown in the widget header")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command == "run":
        return StatlyCLI().run_daemon(args.config, args.daemon_log_level)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        if args.command == "validate":
            return StatlyCLI().validate_settings(args.config)

        elif args.command == "tick":
            return StatlyCLI(args.config).tick(args.config_id)

        elif args.command == "config":
            cli = StatlyCLI(args.settings)
            if args.config_command == "list":
                return cli.list_configs()
            elif args.config_command == "show":
                return cli.show_config(args.config_id)
            elif args.config_command == "add":
                return cli.add_config(
                    args.name, args.url, args.key, args.interval, args.stats, args.labels, args.app_name
                )
            elif args.config_command == "edit":
                return cli.edit_config(
                    args.config_id,
                    name=args.name,
                    url=args.url,
                    key=args.key,
                    interval=args.interval,
                    stats=args.stats,
                    labels=args.labels,
                    app_name=args.app_name,
                )
            elif args.config_command == "delete":
                return cli.delete_config(args.config_id)
            elif args.config_command == "test":
                return cli.test_config(args.config_id)
            else:
                parser.print_help()
                return 1

        else:
            # No command specified, show help
            parser.print_help()
            return 1

    except StatlyError as e:
        print(f"❌ {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
