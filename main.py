import argparse
import logging
import os
import sys
from typing import List, Optional, TextIO

import structlog
from pydantic import ValidationError

from config import Settings, get_settings, get_settings_for_environment
from errors import LedgerError
from readers import TransactionReader
from services import Ledger, get_ledger
from writers import write_balances

logger = structlog.get_logger()


def configure_logging(settings: Settings) -> None:
    """Configure structured logging on stderr; stdout carries the balances."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=settings.log_level.upper(),
        force=True,
    )

    if settings.log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def run(stream: TextIO, settings: Optional[Settings] = None) -> Ledger:
    """Replay every transaction in stream and return the resulting ledger."""
    settings = settings or get_settings()
    ledger = get_ledger(detailed_logging=settings.enable_detailed_logging)
    reader = TransactionReader(stream, delimiter=settings.csv_delimiter)
    ledger.process(reader)
    return ledger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ledger-replay",
        description="Replay a CSV log of transactions and print final account balances",
    )
    parser.add_argument("input", help="CSV file with a 'type, client, tx, amount' header")
    parser.add_argument(
        "--env",
        choices=["development", "production", "testing"],
        help="Settings profile (overrides LEDGER_ENV)",
    )
    parser.add_argument("--log-level", help="Logging level (overrides LEDGER_LOG_LEVEL)")
    parser.add_argument(
        "--log-format",
        choices=["json", "text"],
        help="Log output format (overrides LEDGER_LOG_FORMAT)",
    )
    parser.add_argument("--delimiter", help="Field delimiter of the input file")
    return parser


def load_settings(args: argparse.Namespace) -> Settings:
    """Settings for the selected profile with command line overrides applied."""
    env = args.env or os.environ.get("LEDGER_ENV")
    settings = get_settings_for_environment(env) if env else get_settings()

    overrides = {
        key: value
        for key, value in (
            ("log_level", args.log_level),
            ("log_format", args.log_format),
            ("csv_delimiter", args.delimiter),
        )
        if value is not None
    }
    if overrides:
        settings = settings.with_overrides(**overrides)
    return settings


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = load_settings(args)
    except ValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        parser.error(f"invalid settings: {errors}")

    configure_logging(settings)
    logger.info("Starting transaction replay", app=settings.app_name, version=settings.app_version)

    try:
        with open(args.input, newline="", encoding=settings.input_encoding) as stream:
            ledger = run(stream, settings)
        balances = ledger.balances()
    except LedgerError as e:
        logger.error(
            "Transaction stream rejected",
            error_code=e.error_code,
            line=e.line,
            detail=e.detail,
            exc_info=settings.debug
        )
        return 1
    except (OSError, UnicodeDecodeError) as e:
        logger.error(
            "Unable to read transaction file",
            path=args.input,
            error=str(e),
            exc_info=settings.debug
        )
        return 1

    write_balances(balances, sys.stdout)
    return 0


if __name__ == "__main__":
    sys.exit(main())
