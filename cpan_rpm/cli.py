"""
Command-line interface for building RPMs from CPAN distributions.
"""

import argparse
import logging
import sys
from pathlib import Path

from .config import ConfigError, load_config
from .reporting import export_status_csv, print_summary, save_results_json
from .runner import BuildRunner
from .runtime import RuntimeBootstrapError


logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Build RPM packages for CPAN distributions and their dependencies"
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="JSON configuration file with build settings and per-distribution overrides"
    )

    parser.add_argument(
        "--perl-version",
        default=None,
        help="Target perl version (e.g. 5.36.0). Default: from config"
    )

    parser.add_argument(
        "--perl",
        default=None,
        help="Path of the target perl binary. Default: from config"
    )

    parser.add_argument(
        "--repository",
        type=Path,
        default=None,
        help="Directory collecting built packages. Default: from config"
    )

    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument(
        "--dist",
        action="append",
        dest="distributions",
        metavar="DISTRIBUTION",
        help="Distribution to build (repeatable)"
    )
    target.add_argument(
        "--all",
        action="store_true",
        help="Build every distribution in the configured catalog"
    )

    parser.add_argument(
        "--fail-fast",
        action="store_true",
        help="Stop after the first requested distribution that fails"
    )

    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("./output"),
        help="Output directory for run reports. Default: ./output"
    )

    parser.add_argument(
        "--no-progress",
        action="store_true",
        help="Disable the progress bar"
    )

    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Only warnings and errors")

    return parser


def main(argv=None):
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    level = logging.INFO
    if args.verbose:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        config = load_config(args.config)
    except ConfigError as e:
        logger.error("%s", e)
        sys.exit(2)

    if args.perl_version:
        config.perl_version = args.perl_version
    if args.perl:
        config.perl = args.perl
    if args.repository:
        config.repository = args.repository
    if args.fail_fast:
        config.fail_fast = True

    distributions = config.catalog if args.all else args.distributions
    if not distributions:
        parser.error("no distributions to build (the configured catalog is empty)")

    try:
        runner = BuildRunner.from_config(config)
    except (ConfigError, RuntimeBootstrapError) as e:
        logger.error("%s", e)
        sys.exit(2)

    report = runner.run(distributions, progress=not args.no_progress)

    print_summary(report, config.perl_version)
    results_file = save_results_json(report, args.output_dir)
    status_file = export_status_csv(report, args.output_dir)
    logger.info("Results saved to: %s", results_file)
    logger.info("Status saved to: %s", status_file)

    if not report.success:
        sys.exit(1)


if __name__ == "__main__":
    main()
