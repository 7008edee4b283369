#!/usr/bin/env python3
"""
Delete unwanted container image tags from GitLab registries.

Tags are selected per registry repository by the retention policies in the
config file. Each policy picks tags matching `include`, spares the newest
`keep` of them and anything younger than `age` days, and never touches tags
matching `exclude` or the `latest` tag.

Usage examples:
  # Show what would be deleted
  python cleanup_registry.py execute --dry-run

  # Delete, showing progress bars
  python cleanup_registry.py --config /etc/cleanup/config.yml execute --progress

  # Only run some policies
  python cleanup_registry.py execute --policy nightly --policy feature-branches

  # Save a JSON report of the run
  python cleanup_registry.py execute --dry-run --output reports/cleanup.json
"""

import argparse
import logging
import sys

from registry_cleanup.config_manager import ConfigManager, ConfigValidationError
from registry_cleanup.cleanup import RegistryCleaner
from registry_cleanup.gitlab_client import GitLabClient
from registry_cleanup.logging_utils import get_logger, log_exception, setup_logging
from registry_cleanup.report_utils import save_json

logger = get_logger(__name__)


def parse_arguments(argv=None):
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        prog="gitlab-registry-cleanup",
        description="A tool for cleaning up GitLab container registries",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Show what would be deleted
  gitlab-registry-cleanup execute --dry-run

  # Only run the 'nightly' policy
  gitlab-registry-cleanup execute --policy nightly
        """
    )

    parser.add_argument(
        '--config',
        default=None,
        help='Config file (default: CONFIG_FILE env var or config.yml)'
    )

    parser.add_argument(
        '--debug',
        action='store_true',
        help='Set logging level to debug'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    execute = subparsers.add_parser('execute', help='Executes cleanup')

    execute.add_argument(
        '--dry-run',
        action='store_true',
        help='Report tags that would be removed without deleting them'
    )

    execute.add_argument(
        '--progress',
        action='store_true',
        help='Output progress bars'
    )

    execute.add_argument(
        '--policy',
        action='append',
        default=[],
        help='Limit policies to execute (repeatable, or comma separated)'
    )

    execute.add_argument(
        '--output',
        help='Write a JSON report of the run to this path'
    )

    subparsers.add_parser('show-config', help='Print the effective configuration')

    return parser.parse_args(argv)


def _split_policies(values):
    policies = []
    for value in values:
        policies.extend(p.strip() for p in value.split(",") if p.strip())
    return policies


def execute_cleanup(args, config_manager: ConfigManager) -> int:
    policy_filter = _split_policies(args.policy)
    known = {p.name for p in config_manager.get_policies()}
    for name in policy_filter:
        if name not in known:
            logger.warning(f"Policy {name} given in policy flag is not defined in the config")

    logger.info("=" * 60)
    logger.info(f"   {'DRY RUN: ' if args.dry_run else ''}Cleaning up GitLab registries")
    logger.info("=" * 60)
    logger.info(f"GitLab URL: {config_manager.get_gitlab_url()}")
    if policy_filter:
        logger.info(f"Policies: {', '.join(policy_filter)}")

    client = GitLabClient.from_config(config_manager)
    cleaner = RegistryCleaner(
        client,
        config_manager,
        dry_run=args.dry_run,
        show_progress=args.progress,
        policy_filter=policy_filter,
    )
    summary = cleaner.run()

    mode = "DRY RUN: " if args.dry_run else ""
    logger.info(f"\n📊 {mode}Cleanup Summary:\n{summary.to_table()}")
    logger.info(f"   Tags selected for removal: {summary.total_candidates}")
    logger.info(f"   {'Would delete' if args.dry_run else 'Successfully deleted'}: "
                f"{summary.total_candidates if args.dry_run else summary.total_deleted}")

    if args.output:
        save_json(args.output, summary.to_dict())

    if summary.has_errors:
        for error in summary.errors:
            logger.error(error)
        logger.error("One or more errors occurred processing repositories")
        return 1
    return 0


def main(argv=None) -> int:
    """Main function"""
    args = parse_arguments(argv)
    setup_logging(logging.DEBUG if args.debug else logging.INFO)

    try:
        config_manager = ConfigManager(config_file=args.config, validate=args.command == 'execute')
    except ConfigValidationError as e:
        logger.error(f"❌ {e}")
        return 1

    try:
        if args.command == 'show-config':
            config_manager.print_config()
            return 0
        return execute_cleanup(args, config_manager)
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130
    except Exception as e:
        log_exception(logger, "Cleanup failed", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
