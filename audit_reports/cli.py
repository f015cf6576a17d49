"""Command-line entry point for the audit report generator."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional, Sequence

from dotenv import load_dotenv

from .airtable import AirtableClient, ApiError
from .config import AirtableSettings, ConfigurationError, ReportConfig
from .devserver import serve_dev
from .pipeline import RecordNotFoundError, ReportResult, run_pipeline
from .templates import TemplateError

logger = logging.getLogger("audit_reports.cli")

EXIT_FAILURE = 1
EXIT_USAGE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="audit-reports",
        description="Generate per-client UX audit reports from Airtable records.",
        epilog=(
            "Development mode is enabled with DEV=true or APP_ENV=development; it serves "
            "the output folder with live reload and falls back to DEFAULT_RECORD_ID."
        ),
    )
    parser.add_argument("record_id", nargs="?", help="Airtable record id to render")
    parser.add_argument(
        "--record-id",
        dest="record_option",
        help="Airtable record id to render (alternative to the positional argument)",
    )
    parser.add_argument(
        "--all",
        dest="all_records",
        action="store_true",
        help="Render every record in the table, one report per client",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Directory where client report folders are written (default: $OUTPUT_DIR or ./output)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser


def _log_results(results: List[ReportResult], config: ReportConfig) -> None:
    for result in results:
        logger.info("Report for %s saved to %s", result.client, result.output_path)
        if config.dev_mode:
            logger.info("Open http://localhost:%d/%s/ to view it", config.port, result.folder)


def _run_once(config: ReportConfig, client: AirtableClient, record_id: Optional[str]) -> None:
    start = time.perf_counter()
    results = run_pipeline(config, client, record_id)
    _log_results(results, config)
    logger.info("Generated %d report(s) in %.2fs", len(results), time.perf_counter() - start)


def _run_checked(config: ReportConfig, client: AirtableClient, record_id: Optional[str]) -> None:
    try:
        _run_once(config, client, record_id)
    except (RecordNotFoundError, ApiError, TemplateError, OSError) as exc:
        logger.error("Report generation failed: %s", exc)
        raise SystemExit(EXIT_FAILURE) from exc


def _run_dev(config: ReportConfig, client: AirtableClient, record_id: Optional[str]) -> None:
    logger.info("Running in development mode")
    # a missing record stops here, before any server binds a port
    _run_checked(config, client, record_id)
    try:
        asyncio.run(
            serve_dev(
                config,
                lambda: _run_once(config, client, record_id),
                regenerate_first=False,
            )
        )
    except KeyboardInterrupt:
        logger.info("Dev server stopped")


def main(argv: Optional[Sequence[str]] = None) -> None:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(list(sys.argv[1:] if argv is None else argv))
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )

    record_id = args.record_option or args.record_id
    if args.all_records and record_id:
        parser.error("pass either a record id or --all, not both")

    try:
        config = ReportConfig.from_env()
        if args.output is not None:
            config.output_root = args.output.resolve()
        if not args.all_records and not record_id:
            if config.dev_mode and config.default_record_id:
                record_id = config.default_record_id
                logger.info("Using DEFAULT_RECORD_ID %s", record_id)
            else:
                parser.print_usage(sys.stderr)
                logger.error("A record id or --all is required")
                raise SystemExit(EXIT_USAGE)
        client = AirtableClient(AirtableSettings.from_env())
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        raise SystemExit(EXIT_FAILURE) from exc

    if config.dev_mode:
        _run_dev(config, client, record_id)
        return

    _run_checked(config, client, record_id)


if __name__ == "__main__":
    main()
