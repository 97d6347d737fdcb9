#!/usr/bin/env python3
"""
FUV Quote Engine - CLI Entry Point

Evaluates a stored FUV (freiwillige Unfallversicherung) quote:
1. Contract dates: defaulting and end date correction (31.12. after 1-4 years)
2. Terms: outdated AVB versions are replaced by the latest active one
3. Technical assignment: recalculated only when the activities changed
4. Variants: premium figures for A, B, C and income thresholds
5. Checklist: underwriting validity and optional bonity lookup
6. Contract form: dates, position, workload, activity composition

Usage:
    python fuv_quote.py quote.json
    python fuv_quote.py quote.json --output json --output-file report.json
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from clients.assignment_client import AssignmentClient
from clients.bonity_client import BonityClient
from clients.income_ceiling import CachedIncomeCeiling, IncomeCeilingClient
from config import Config, set_config
from engines.base import QuoteEngineError, Severity, ValidationResult
from engines.pipeline import QuotePipeline
from knowledge.code_tables import load_code_tables
from parser.quote_parser import load_quote
from report.console_reporter import ConsoleReporter
from report.json_reporter import JSONReporter

logger = logging.getLogger("fuv_quote")


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=verbose)],
        force=True,
    )


def build_pipeline(config: Config) -> QuotePipeline:
    """Wire the pipeline with the remote services that are configured."""
    code_tables = load_code_tables(config)

    assignment = None
    if config.assignment_api_url:
        assignment = AssignmentClient(config.assignment_api_url, config.api_key, config.http_timeout)

    bonity = None
    if config.bonity_api_url:
        bonity = BonityClient(config.bonity_api_url, config.api_key, config.http_timeout)

    ceiling = None
    if config.income_ceiling_api_url:
        ceiling = CachedIncomeCeiling(
            IncomeCeilingClient(config.income_ceiling_api_url, config.api_key, config.http_timeout)
        )

    return QuotePipeline(
        code_tables,
        config=config,
        assignment_service=assignment,
        bonity_service=bonity,
        income_ceiling=ceiling,
    )


def output_report(
    result: ValidationResult,
    output_format: str,
    output_file: Optional[str],
    source_file: str,
) -> None:
    """Output the report in the specified format."""
    if output_format == "console":
        reporter = ConsoleReporter()
        reporter.report(result, source_file)

    elif output_format == "json":
        reporter = JSONReporter()
        if output_file:
            reporter.write(result, output_file, source_file)
            click.echo(f"JSON-Bericht geschrieben nach: {output_file}")
        else:
            click.echo(reporter.generate(result, source_file))

    else:
        click.echo(f"Unbekanntes Ausgabeformat: {output_format}", err=True)


@click.command()
@click.argument("input_file", type=click.Path(exists=True))
@click.option(
    "--output",
    "-o",
    type=click.Choice(["console", "json"]),
    default="console",
    help="Output format. Default: console",
)
@click.option(
    "--output-file",
    "-f",
    type=click.Path(),
    help="Output file path (for json format)",
)
@click.option(
    "--code-tables",
    type=click.Path(exists=True),
    help="Path to the code table JSON file",
)
@click.option(
    "--assignment-url",
    envvar="FUV_ASSIGNMENT_API_URL",
    help="Base URL of the technical assignment service",
)
@click.option(
    "--bonity-url",
    envvar="FUV_BONITY_API_URL",
    help="Base URL of the bonity lookup service",
)
@click.option(
    "--income-ceiling-url",
    envvar="FUV_INCOME_CEILING_API_URL",
    help="Base URL of the income ceiling service",
)
@click.option(
    "--user",
    "-u",
    help="User name sent with remote calculations",
)
@click.option(
    "--detailed",
    "-d",
    is_flag=True,
    help="Show detailed findings (console output only)",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Verbose output",
)
def main(
    input_file: str,
    output: str,
    output_file: Optional[str],
    code_tables: Optional[str],
    assignment_url: Optional[str],
    bonity_url: Optional[str],
    income_ceiling_url: Optional[str],
    user: Optional[str],
    detailed: bool,
    verbose: bool,
) -> None:
    """
    Evaluate a FUV quote document.

    INPUT_FILE: Path to the quote JSON file.

    Examples:

        python fuv_quote.py quote.json

        python fuv_quote.py quote.json --output json -f report.json

        python fuv_quote.py quote.json --assignment-url https://backend.example.ch --user jdoe
    """
    setup_logging(verbose)

    # Configure
    config = Config.from_env()
    if code_tables:
        config.code_tables_path = Path(code_tables)
    if assignment_url:
        config.assignment_api_url = assignment_url
    if bonity_url:
        config.bonity_api_url = bonity_url
    if income_ceiling_url:
        config.income_ceiling_api_url = income_ceiling_url
    if user:
        config.default_user = user
    set_config(config)

    # Parse input file
    try:
        quote, meta = load_quote(input_file)
    except (QuoteEngineError, OSError) as e:
        click.echo(f"Fehler beim Lesen von {input_file}: {e}", err=True)
        sys.exit(1)

    logger.debug(f"Quote {quote.number}: {len(quote.basis.activities)} activities")

    # Evaluate
    try:
        pipeline = build_pipeline(config)
        result = pipeline.evaluate(quote, meta, requested_by=config.default_user)
    except QuoteEngineError as e:
        click.echo(f"Fehler bei der Auswertung: {e}", err=True)
        sys.exit(1)

    # Output report
    if output == "console" and detailed:
        reporter = ConsoleReporter()
        reporter.report_detailed(result.findings)
    else:
        output_report(result, output, output_file, input_file)

    if output == "console":
        click.echo("\n" + result.get_summary())

    # Exit code based on findings
    has_errors = any(f.severity == Severity.FEHLER for f in result.findings)
    sys.exit(1 if has_errors else 0)


if __name__ == "__main__":
    main()
