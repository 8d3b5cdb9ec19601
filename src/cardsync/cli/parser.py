"""
Command-line argument parser configuration.
"""

import argparse


def create_parser() -> argparse.ArgumentParser:
    """
    Create and configure the argument parser for the CLI.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog="cardsync",
        description="Mirror staff card records from Firebird into PostgreSQL",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run one full sync
  cardsync sync

  # Sync nightly at 02:00 and expose Prometheus metrics
  cardsync schedule --cron "0 2 * * *" --metrics-port 9091

  # Sync every 15 minutes using credentials from Vault
  cardsync --use-vault schedule --interval 900

  # Look up a card, search by name, show table statistics
  cardsync lookup --card 0012345678
  cardsync search --term ivanov --limit 20
  cardsync stats

  # Check connectivity to both databases
  cardsync check
        """
    )

    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default='INFO',
        help='Logging level (default: INFO)'
    )
    parser.add_argument(
        '--log-json',
        action='store_true',
        help='Emit logs as JSON lines'
    )
    parser.add_argument(
        '--log-file',
        help='Also write logs to this file (rotated)'
    )
    parser.add_argument(
        '--env-file',
        help='Path to a .env file (default: .env in the working directory)'
    )
    parser.add_argument(
        '--use-vault',
        action='store_true',
        help='Fetch database credentials from HashiCorp Vault'
    )
    parser.add_argument(
        '--otlp-endpoint',
        help='OTLP collector endpoint for traces (default: OTLP_ENDPOINT env var)'
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    subparsers.add_parser('sync', help='Run one full sync')

    schedule_parser = subparsers.add_parser('schedule', help='Run syncs periodically')
    trigger = schedule_parser.add_mutually_exclusive_group(required=True)
    trigger.add_argument(
        '--interval',
        type=int,
        help='Interval in seconds between runs'
    )
    trigger.add_argument(
        '--cron',
        help='Cron expression (e.g., "0 2 * * *" for nightly at 02:00)'
    )
    schedule_parser.add_argument(
        '--metrics-port',
        type=int,
        help='Expose Prometheus metrics on this port'
    )
    schedule_parser.add_argument(
        '--run-now',
        action='store_true',
        help='Run one sync immediately before starting the schedule'
    )

    lookup_parser = subparsers.add_parser('lookup', help='Find a record by card identifier')
    lookup_parser.add_argument('--card', required=True, help='Card identifier')

    search_parser = subparsers.add_parser('search', help='Search records by name or card')
    search_parser.add_argument('--term', required=True, help='Substring to search for')
    search_parser.add_argument('--limit', type=int, help='Maximum number of results')

    subparsers.add_parser('stats', help='Show destination table statistics')

    subparsers.add_parser('check', help='Check connectivity to both databases')

    subparsers.add_parser(
        'init-schema',
        help='Create or migrate the destination table without syncing'
    )

    return parser
