# main.py

"""Entry point for the IBJA rates API (HTTP server or headless CLI)."""

import argparse
import asyncio
import logging
import sys

from ibja_rates.config.logging_config import setup_logging
from ibja_rates.config.settings import Settings

logger = logging.getLogger("ibja_rates.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="ibja_rates",
        description="IBJA gold, silver and platinum rates API.",
        epilog="Metals: gold, silver, platinum",
    )
    parser.add_argument(
        "--host",
        default=Settings.HOST,
        help=f"Bind address for the HTTP server (default: {Settings.HOST}).",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=Settings.PORT,
        help=f"Port for the HTTP server (default: {Settings.PORT}).",
    )
    parser.add_argument(
        "--rates",
        default=None,
        metavar="METAL",
        help="Print current rates for METAL and exit.",
    )
    parser.add_argument(
        "-f",
        "--format",
        choices=["json", "table"],
        default="table",
        dest="output_format",
        help="Output format for --rates (default: table).",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        metavar="LEVEL",
        help=(
            "Console log level, e.g. INFO or DEBUG "
            f"(default: {Settings.LOG_LEVEL})."
        ),
    )
    parser.add_argument(
        "--health",
        action="store_true",
        default=False,
        help="Run a connectivity health check on all upstream sources.",
    )
    return parser


def _run_server(host: str, port: int) -> None:
    """Serve the API with uvicorn."""
    import uvicorn

    from ibja_rates.api.app import create_app

    try:
        uvicorn.run(create_app(), host=host, port=port, log_config=None)
    except Exception:
        logger.critical("Fatal error during server run", exc_info=True)
        raise
    finally:
        logger.info("ibja_rates server shutting down")


def _run_rates(args: argparse.Namespace) -> None:
    """Print current rates and exit."""
    from ibja_rates.cli.runner import run_rates

    sys.exit(run_rates(args.rates.lower(), args.output_format))


def _run_health_check() -> None:
    """Run upstream connectivity health check."""
    from ibja_rates.cli.runner import run_health_check

    exit_code = asyncio.run(run_health_check())
    sys.exit(exit_code)


def main() -> None:
    """Route to the HTTP server (no command) or a headless command."""
    parser = _build_parser()
    args = parser.parse_args()

    try:
        log_file = setup_logging(args.log_level)
    except ValueError as exc:
        parser.error(str(exc))
    logger.info("ibja_rates starting, log file: %s", log_file)

    if args.health:
        _run_health_check()
    elif args.rates is not None:
        _run_rates(args)
    else:
        _run_server(args.host, args.port)


if __name__ == "__main__":
    main()
