#!/usr/bin/env python3
"""
Statly - daemon entry point
"""

import argparse
import logging
import os
import signal
import sys
from typing import List, Optional

from statly.controller import StatlyController


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point"""
    parser = argparse.ArgumentParser(description="Statly - stats widget refresh daemon")
    parser.add_argument("config", help="Path to YAML settings file")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )

    args = parser.parse_args(argv)

    # Set up logging
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    logger = logging.getLogger(__name__)

    config_path = os.path.expanduser(args.config)
    if not os.path.exists(config_path):
        logger.error(f"Settings file not found: {config_path}")
        sys.exit(1)

    controller = StatlyController(config_path)

    def signal_handler(signum, frame):
        """Handle shutdown signals gracefully"""
        logger.info(f"Received signal {signum}, shutting down gracefully...")
        controller.running = False
        # Raise KeyboardInterrupt to trigger the normal shutdown flow
        raise KeyboardInterrupt()

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    try:
        controller.run()
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
