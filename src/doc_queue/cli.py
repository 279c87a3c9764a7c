#!/usr/bin/env python
"""
Command-line interface for the document queue.
"""

import argparse
import json
import logging
import os
import sys

from .engine import QueueEngine
from .errors import QueueError
from .worker import QueueWorker

logger = logging.getLogger(__name__)


def _configure_logging():
    log_level = os.environ.get('LOG_LEVEL', 'INFO')
    log_format = os.environ.get('LOG_FORMAT', '%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    logging.basicConfig(level=getattr(logging, log_level.upper(), logging.INFO), format=log_format)


def _print_json(payload):
    print(json.dumps(payload, indent=2, default=str))


def cmd_enqueue(engine, args):
    """Add a record to the queue."""
    try:
        data = json.loads(args.data)
    except json.JSONDecodeError as e:
        logger.error(f"DATA must be valid JSON: {e}")
        return 1

    record_id = engine.enqueue(data)
    print(record_id)
    return 0


def cmd_process(engine, args):
    """Run a single batch."""
    _print_json(engine.process_next_batch().to_dict())
    return 0


def cmd_cleanup(engine, args):
    """Run a single cleanup sweep."""
    _print_json(engine.cleanup().to_dict())
    return 0


def cmd_status(engine, args):
    """Show record counts per status."""
    _print_json(engine.stats())
    return 0


def cmd_run(engine, args):
    """Process and clean up on fixed intervals until interrupted."""
    worker = QueueWorker(
        engine,
        process_interval=args.process_interval,
        cleanup_interval=args.cleanup_interval or None
    )
    _print_json(worker.run_forever())
    return 0


COMMANDS = {
    'enqueue': cmd_enqueue,
    'process': cmd_process,
    'cleanup': cmd_cleanup,
    'status': cmd_status,
    'run': cmd_run
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='doc-queue', description="Document queue management")
    parser.add_argument('--config', '-c', default=None,
                        help='Configuration file path (default: $DOC_QUEUE_CONFIG_PATH or config.yaml)')

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    enqueue_parser = subparsers.add_parser('enqueue', help='Add a record to the queue')
    enqueue_parser.add_argument('data', help='Record payload as JSON')

    subparsers.add_parser('process', help='Process the next batch')
    subparsers.add_parser('cleanup', help='Delete stale records')
    subparsers.add_parser('status', help='Show record counts per status')

    run_parser = subparsers.add_parser('run', help='Run batches and cleanup on intervals')
    run_parser.add_argument('--process-interval', type=float, default=5.0,
                            help='Seconds between batches (default: 5)')
    run_parser.add_argument('--cleanup-interval', type=float, default=3600.0,
                            help='Seconds between cleanups, 0 to disable (default: 3600)')

    return parser


def main(argv=None):
    """Main CLI entry point."""
    _configure_logging()
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        with QueueEngine.from_file(args.config) as engine:
            return COMMANDS[args.command](engine, args)
    except QueueError as e:
        logger.error(f"Command failed: {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
