#!/usr/bin/env python3
"""
Main CLI runner for trackx-crawler.

Commands:
- check: verify configuration and database health
- import: load a newline separated list of websites into the site queue
- run: crawl unvisited sites in a real browser, rewriting security
  reporting headers so browser reports reach the telemetry endpoint
"""

import argparse
import asyncio
import os
import sys

from sqlalchemy.exc import SQLAlchemyError

from crawler.exceptions import NoSitesError
from crawler.instrumentation import load_client_script
from crawler.scheduler import CrawlScheduler
from db import CrawlStore, create_db_manager, import_sites, run_health_check
from runner import __version__
from runner.config import (
    BROWSERS,
    DEFAULT_CONFIG_PATH,
    ORDERS,
    ConfigurationError,
    RunOptions,
    load_config,
    validate_run_options,
)
from runner.logging_setup import get_logger, setup_logging


# Initialize logger
logger = get_logger("main")


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line parser."""
    # Global options are accepted before or after the command name
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "-c", "--config",
        default=argparse.SUPPRESS,
        help="Use specified configuration file",
    )
    common.add_argument(
        "-V", "--verbose",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Show verbose output",
    )

    parser = argparse.ArgumentParser(
        prog="trackx-crawler",
        description="trackx-crawler: Crawl websites and collect browser security reports",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Check configuration and database health
  trackx-crawler check

  # Import sites (duplicates are ignored)
  trackx-crawler import ./sites.txt

  # Crawl at most 1000 sites
  trackx-crawler run --max 1000

  # 5 sites in parallel, follow up to 2 links per site
  trackx-crawler run -p 5 -m 10000 -d 3
        """,
    )
    parser.add_argument(
        "-c", "--config",
        default=os.getenv("CONFIG_PATH", DEFAULT_CONFIG_PATH),
        help="Use specified configuration file (default: CONFIG_PATH or crawler.config.json)",
    )
    parser.add_argument(
        "-V", "--verbose",
        action="store_true",
        help="Show verbose output",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser(
        "check",
        parents=[common],
        help="Check configuration and database health",
    )

    import_parser = subparsers.add_parser(
        "import",
        parents=[common],
        help="Import a newline separated list of websites to crawl. Duplicates are ignored.",
    )
    import_parser.add_argument("filepath", help="Text file with one website per line")
    import_parser.add_argument(
        "-o", "--overwrite",
        action="store_true",
        help="Overwrite existing sites",
    )

    run_parser = subparsers.add_parser(
        "run",
        parents=[common],
        help="Run a new site crawl",
    )
    run_parser.add_argument(
        "--browser",
        choices=BROWSERS,
        default="firefox",
        help="Browser to use for crawling (default: firefox)",
    )
    run_parser.add_argument(
        "-d", "--depth",
        type=int,
        default=0,
        help="Try follow a same-origin link picked at random, a number of times (default: 0)",
    )
    run_parser.add_argument(
        "-m", "--max",
        dest="max_sites",
        type=int,
        default=None,
        help="Maximum number of websites to crawl this run (default: no limit)",
    )
    run_parser.add_argument(
        "-b", "--block",
        action="store_true",
        help="Block downloading data heavy resources (images, stylesheets, media, fonts, etc.)",
    )
    run_parser.add_argument(
        "-t", "--timeout",
        type=int,
        default=30,
        help="Maximum time in seconds for navigation and requests (default: 30)",
    )
    run_parser.add_argument(
        "-p", "--parallel",
        type=int,
        default=1,
        help="Number of websites to crawl in parallel (default: 1)",
    )
    run_parser.add_argument(
        "-r", "--restart",
        action="store_true",
        help="Crawl websites even if they have already been crawled",
    )
    run_parser.add_argument(
        "-o", "--order",
        choices=ORDERS,
        default="asc",
        help="Website selection order (default: asc)",
    )
    run_parser.add_argument(
        "--bypass-csp",
        action="store_true",
        help="Bypass content security policy checks",
    )
    run_parser.add_argument(
        "--proxy",
        default=None,
        help="Use a network proxy server (e.g. http://localhost:8080)",
    )
    run_parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging and use a headed browser",
    )

    return parser


def run_check(args) -> int:
    """
    Check configuration and database health.

    Returns:
        Exit code (1 when any check failed)
    """
    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    try:
        db_manager = create_db_manager(config)
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Database connection failed: {e}")
        return 1

    try:
        report = run_health_check(db_manager)
    finally:
        db_manager.close()

    logger.info(report.summary())
    return 0 if report.healthy else 1


def run_import(args) -> int:
    """Import sites from a text file."""
    config = load_config(args.config)
    db_manager = create_db_manager(config)

    try:
        result = import_sites(db_manager, args.filepath, overwrite=args.overwrite)
    except FileNotFoundError as e:
        logger.error(f"{e}")
        return 1
    finally:
        db_manager.close()

    logger.info(
        f"Imported {result.inserted} new sites "
        f"({result.read} read, {result.duplicates} duplicates)"
    )
    return 0


def run_crawl(args) -> int:
    """Run a crawl with the options given on the command line."""
    options = validate_run_options(RunOptions(
        browser=args.browser,
        depth=args.depth,
        max_sites=args.max_sites,
        block=args.block,
        timeout=args.timeout,
        parallel=args.parallel,
        restart=args.restart,
        order=args.order,
        bypass_csp=args.bypass_csp,
        proxy=args.proxy,
        debug=args.debug,
        verbose=args.verbose,
        config=args.config,
    ))

    config = load_config(args.config)
    client_script = load_client_script(config.client_script_path)
    db_manager = create_db_manager(config)

    logger.info("=" * 70)
    logger.info(f"trackx-crawler {__version__}")
    logger.info("=" * 70)
    logger.info(f"Browser:   {options.browser}")
    logger.info(f"Max:       {options.max_sites if options.max_sites is not None else 'no limit'}")
    logger.info(f"Parallel:  {options.parallel}")
    logger.info(f"Depth:     {options.depth}")
    logger.info(f"Order:     {options.order}")
    logger.info(f"Endpoint:  {config.api_endpoint}")
    logger.info("")

    try:
        scheduler = CrawlScheduler(
            store=CrawlStore(db_manager),
            options=options,
            config=config,
            client_script=client_script,
        )
        summary = asyncio.run(scheduler.run())
    finally:
        db_manager.close()

    logger.info("=" * 70)
    logger.info(f"Run {summary.run_id}: {summary.visited} visited, "
                f"{summary.skipped} skipped, {summary.pages} pages")
    logger.info("=" * 70)

    return 1 if summary.error else 0


COMMANDS = {
    "check": run_check,
    "import": run_import,
    "run": run_crawl,
}


def main(argv=None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    setup_logging(verbose=args.verbose or getattr(args, "debug", False))

    exit_code = 0

    try:
        exit_code = COMMANDS[args.command](args)

    except ConfigurationError as e:
        for problem in str(e).split("; "):
            logger.error(problem)
        exit_code = 1

    except NoSitesError:
        exit_code = 1

    except KeyboardInterrupt:
        logger.warning("")
        logger.warning("Interrupted by user (Ctrl+C)")
        exit_code = 130

    except SQLAlchemyError as e:
        logger.error(f"Database error: {e}", exc_info=True)
        exit_code = 1

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
