#!/usr/bin/env python3
"""Main entry point for the egress supervisor."""

import argparse
import logging
import os
import sys
import time

from prometheus_client import start_http_server

from egress.config import Settings, SettingsError
from egress.errors import EgressError, InvalidSyntaxError
from egress.metrics import EgressMetrics
from egress.supervisor import Supervisor

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
EXIT_NOT_RUNNING = 3

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(
        description='Keep an nginx-rtmp relay in sync with its destinations.'
    )
    parser.add_argument(
        '--config', required=True, help='Path to settings file'
    )
    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        default='INFO',
        help='Set the logging level'
    )
    subparsers = parser.add_subparsers(dest='command', required=True)
    subparsers.add_parser('apply', help='Render, validate and apply once')
    subparsers.add_parser('show', help='Print the installed configuration')
    subparsers.add_parser('status', help='Report whether nginx is running')
    subparsers.add_parser(
        'serve', help='Apply, then monitor nginx and export metrics'
    )
    return parser.parse_args(argv)


def validate_config_file(config_path: str) -> None:
    """Validate settings file exists.

    Raises:
        FileNotFoundError: If settings file does not exist
    """
    if not os.path.isfile(config_path):
        raise FileNotFoundError(f"Configuration file not found: {config_path}")


def run_apply(supervisor: Supervisor) -> int:
    """Apply the configuration once and print it."""
    try:
        result = supervisor.apply_configuration()
    except InvalidSyntaxError as e:
        logger.error("Configuration rejected by nginx")
        print(e.diagnostics, file=sys.stderr)
        return 1
    print(result.rendered_config)
    logger.info("Nginx %s (PID: %d)", result.action, result.pid)
    return 0


def run_show(supervisor: Supervisor) -> int:
    """Print the installed configuration."""
    config = supervisor.get_rendered_configuration()
    print(config if config is not None else 'No config found')
    return 0


def run_status(supervisor: Supervisor) -> int:
    """Print whether the relay is running."""
    running = supervisor.is_egress_running()
    print('running' if running else 'stopped')
    return 0 if running else EXIT_NOT_RUNNING


def run_serve(supervisor: Supervisor, settings: Settings) -> int:
    """Apply once, then monitor the relay until interrupted."""
    start_http_server(settings.metrics.port)
    logger.info("Started metrics server on port %d", settings.metrics.port)

    try:
        supervisor.apply_configuration()
    except EgressError as e:
        logger.error("Initial apply failed: %s", e)

    try:
        while True:
            supervisor.collect_metrics()
            time.sleep(settings.metrics.interval)
    except KeyboardInterrupt:
        logger.info("Shutting down supervisor...")
    finally:
        supervisor.shutdown()
    return 0


def main(argv=None) -> int:
    """Main entry point.

    Returns:
        Exit code
    """
    args = parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level),
                        format=LOG_FORMAT)

    try:
        validate_config_file(args.config)
        settings = Settings.from_yaml(args.config)
        metrics = EgressMetrics() if args.command == 'serve' else None
        supervisor = Supervisor.from_settings(settings, metrics=metrics)

        if args.command == 'apply':
            return run_apply(supervisor)
        if args.command == 'show':
            return run_show(supervisor)
        if args.command == 'status':
            return run_status(supervisor)
        return run_serve(supervisor, settings)

    except (SettingsError, FileNotFoundError, EgressError) as e:
        logger.error("Error: %s", e)
        return 1


if __name__ == '__main__':
    sys.exit(main())
