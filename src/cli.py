#!/usr/bin/env python3
"""CLI entry point for cfn-driver.

Supports noun-action subcommands:
- Change-sets: cfn-driver change create cs1 -s web
- Termination: cfn-driver terminate web api

Nouns:
- change: Change-set management (create/execute/list/rm/desc)
- terminate: Stack deletion
"""

import argparse
import logging
import subprocess
import sys
from pathlib import Path
from typing import Optional

from botocore.exceptions import BotoCoreError

from clients import build_clients
from config import ConfigError, DriverConfig, load_config
from stacks import ChangeSetOrchestrator, TerminationOrchestrator

# Noun commands (noun-action subcommands)
NOUN_COMMANDS = {
    "change": "Change-set management (create/execute/list/rm/desc)",
    "terminate": "Delete stacks and wait for completion",
}

CHANGE_ACTIONS = {
    "create": "Create a change-set and wait until it settles",
    "execute": "Execute a change-set and stream stack events",
    "list": "List change-sets for a stack",
    "rm": "Delete a change-set",
    "desc": "Print the full change-set description as JSON",
}

logger = logging.getLogger(__name__)


def get_version():
    """Get version from git tags (do not use hardcoded VERSION constant)."""
    try:
        result = subprocess.run(
            ['git', 'describe', '--tags', '--abbrev=0'],
            capture_output=True, text=True,
            cwd=Path(__file__).parent,
            check=False,
        )
        return result.stdout.strip() if result.returncode == 0 else 'dev'
    except OSError:
        return 'dev'


def configure_logging(verbose: bool = False) -> None:
    """Configure root logging for CLI use."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    if not verbose:
        # botocore is chatty at DEBUG only, keep it quiet otherwise
        logging.getLogger('botocore').setLevel(logging.WARNING)


def build_orchestrators(config: DriverConfig) -> tuple[ChangeSetOrchestrator, TerminationOrchestrator]:
    """Create orchestrators wired to boto3 clients for the configured session."""
    cfn, s3 = build_clients(region=config.region, profile=config.profile)
    change = ChangeSetOrchestrator(
        cfn, s3,
        poll_interval=config.poll_interval,
        tail_interval=config.tail_interval,
    )
    terminate = TerminationOrchestrator(cfn, tail_interval=config.tail_interval)
    return change, terminate


def _add_common_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        '--config', '-c',
        help='Path to config file (default: $CFN_DRIVER_CONFIG or ./config.yml)'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose logging'
    )


def change_main(argv: list) -> int:
    """Change-set CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="cfn-driver change",
        description="Change-set management",
    )
    parser.add_argument("action", choices=list(CHANGE_ACTIONS),
                        help="Change-set action")
    parser.add_argument("change_set", nargs="?",
                        help="Change-set name (not used by list)")
    parser.add_argument("--stack", "-s", required=True,
                        help="Stack name from config")
    _add_common_args(parser)

    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    if args.action != "list" and not args.change_set:
        print(f"Error: change-set name required for '{args.action}'")
        return 1

    try:
        config = load_config(args.config)
        stack = config.load_stack(args.stack)
    except ConfigError as e:
        print(f"Error: {e}")
        return 1

    try:
        orchestrator, _ = build_orchestrators(config)
    except BotoCoreError as e:
        print(f"Error: {e}")
        return 1

    result = orchestrator.run(args.action, stack, args.change_set)
    if not result.success:
        print(f"Error: {result.message}")
        return 1
    logger.debug(f"{result.message} ({result.duration:.1f}s)")
    return 0


def terminate_main(argv: list) -> int:
    """Terminate CLI entry point. Stacks are deleted one at a time, in order."""
    parser = argparse.ArgumentParser(
        prog="cfn-driver terminate",
        description="Delete stacks and wait for deletion to complete",
    )
    parser.add_argument("stacks", nargs="+", help="Stack names from config")
    _add_common_args(parser)

    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        config = load_config(args.config)
        stacks = [config.load_stack(name) for name in args.stacks]
    except ConfigError as e:
        print(f"Error: {e}")
        return 1

    try:
        _, orchestrator = build_orchestrators(config)
    except BotoCoreError as e:
        print(f"Error: {e}")
        return 1

    failed = []
    for stack in stacks:
        result = orchestrator.terminate(stack)
        if not result.success:
            print(f"Error: {result.message}")
            failed.append(stack.name)

    if failed:
        logger.error(f"Termination failed for: {', '.join(failed)}")
        return 1
    return 0


def dispatch_noun(noun: str, argv: list) -> int:
    """Dispatch to noun-specific CLI handler.

    Args:
        noun: The noun command (e.g., "change", "terminate")
        argv: Remaining command line arguments

    Returns:
        Exit code
    """
    if noun == "change":
        return change_main(argv)
    if noun == "terminate":
        return terminate_main(argv)

    print(f"Error: Noun '{noun}' not yet implemented")
    return 1


def print_usage():
    """Print top-level usage showing noun commands."""
    print(f"cfn-driver {get_version()}")
    print()
    print("Usage: cfn-driver <noun> [action] [options]")
    print()
    print("Commands:")
    for noun, desc in NOUN_COMMANDS.items():
        print(f"  {noun:<12} {desc}")
    print()
    print("Change-set actions:")
    for action, desc in CHANGE_ACTIONS.items():
        print(f"  {action:<12} {desc}")
    print()
    print("Examples:")
    print("  cfn-driver change create cs1 -s web")
    print("  cfn-driver change execute cs1 -s web")
    print("  cfn-driver change list -s web")
    print("  cfn-driver terminate web")


def main(argv: Optional[list] = None) -> int:
    """CLI entry point: dispatch to noun-action handlers."""
    argv = sys.argv[1:] if argv is None else argv

    if not argv or argv[0] in ('-h', '--help'):
        print_usage()
        return 0

    if argv[0] == '--version':
        print(f"cfn-driver {get_version()}")
        return 0

    noun = argv[0]
    if noun in NOUN_COMMANDS:
        return dispatch_noun(noun, argv[1:])

    print(f"Error: Unknown command '{noun}'")
    print_usage()
    return 1


if __name__ == '__main__':
    sys.exit(main())
