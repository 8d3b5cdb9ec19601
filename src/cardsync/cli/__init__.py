"""
Command-line interface for the staff card sync service.

Available commands:
- sync: Run one full sync
- schedule: Run syncs periodically
- lookup / search / stats: Query the mirrored table
- check: Check connectivity to both databases
- init-schema: Create or migrate the destination table
"""

import sys

from cardsync.errors import ConfigurationError
from cardsync.logging import setup_logging
from cardsync.responses import error_envelope
from cardsync.tracing import initialize_tracing, shutdown_tracing

from .commands import (
    cmd_check,
    cmd_init_schema,
    cmd_lookup,
    cmd_schedule,
    cmd_search,
    cmd_stats,
    cmd_sync,
    emit,
)
from .credentials import resolve_config
from .parser import create_parser

COMMANDS = {
    'sync': cmd_sync,
    'schedule': cmd_schedule,
    'lookup': cmd_lookup,
    'search': cmd_search,
    'stats': cmd_stats,
    'check': cmd_check,
    'init-schema': cmd_init_schema,
}


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the cardsync CLI"""
    parser = create_parser()
    args = parser.parse_args(argv)

    command = COMMANDS.get(args.command)
    if command is None:
        parser.print_help()
        sys.exit(1)

    setup_logging(
        level=args.log_level,
        log_file=args.log_file,
        json_format=args.log_json,
    )

    if args.otlp_endpoint:
        initialize_tracing(otlp_endpoint=args.otlp_endpoint)

    try:
        try:
            config = resolve_config(args)
        except ConfigurationError as e:
            emit(error_envelope(f"Configuration error: {e}"))
            sys.exit(1)

        sys.exit(command(args, config))
    finally:
        shutdown_tracing()


__all__ = [
    'main',
    'create_parser',
    'resolve_config',
    'cmd_sync',
    'cmd_schedule',
    'cmd_lookup',
    'cmd_search',
    'cmd_stats',
    'cmd_check',
    'cmd_init_schema',
]


if __name__ == '__main__':
    main()
