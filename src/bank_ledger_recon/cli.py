"""
Command-line interface for the bank/ledger reconciliation tool.
"""

from datetime import datetime
from pathlib import Path
from typing import Optional
import logging
import sys

import click
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .config import ReconConfig, generate_default_config, load_config
from .matching.engine import ReconciliationEngine
from .models.report import ReconciliationReport
from .reports.excel_generator import ExcelReportGenerator
from .repository.base import RecordRepository
from .repository.csv_repository import CsvRecordRepository
from .repository.sql_repository import SqlRecordRepository
from .utils.exceptions import ReconciliationError
from .utils.logging_config import setup_logging

console = Console()

DATE_TYPE = click.DateTime(formats=["%Y-%m-%d"])


def window_options(func):
    """Options shared by the commands that reconcile a period."""
    options = [
        click.option("--tenant", required=True, help="Tenant whose books are reconciled"),
        click.option("--start", "period_start", type=DATE_TYPE, required=True, help="Period start (YYYY-MM-DD)"),
        click.option("--end", "period_end", type=DATE_TYPE, required=True, help="Period end (YYYY-MM-DD)"),
        click.option("--account", default=None, help="Restrict bank transactions to one account"),
        click.option(
            "-c",
            "--config",
            type=click.Path(exists=True, path_type=Path),
            help="Path to configuration file (YAML)",
        ),
        click.option("-o", "--output", type=click.Path(path_type=Path), help="Output Excel file path"),
        click.option("--json", "json_output", type=click.Path(path_type=Path), help="Also write the report as JSON"),
        click.option("--write-back", is_flag=True, help="Flag matched records as reconciled"),
        click.option("--dry-run", is_flag=True, help="Show the summary without writing anything"),
        click.option("-v", "--verbose", is_flag=True, help="Enable verbose output"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@click.group()
@click.version_option(version="0.1.0")
def main():
    """Bank transaction to ledger reconciliation tool."""
    pass


@main.command()
@click.argument("bank_file", type=click.Path(exists=True, path_type=Path))
@click.argument("ledger_file", type=click.Path(exists=True, path_type=Path))
@click.option(
    "--documents",
    type=click.Path(exists=True, path_type=Path),
    help="Candidate documents CSV",
)
@window_options
def reconcile(
    bank_file: Path,
    ledger_file: Path,
    documents: Optional[Path],
    tenant: str,
    period_start: datetime,
    period_end: datetime,
    account: Optional[str],
    config: Optional[Path],
    output: Optional[Path],
    json_output: Optional[Path],
    write_back: bool,
    dry_run: bool,
    verbose: bool,
):
    """
    Reconcile bank transactions with ledger entries from CSV exports.

    BANK_FILE: Path to the bank transactions CSV
    LEDGER_FILE: Path to the ledger entries CSV
    """
    setup_logging(logging.DEBUG if verbose else logging.INFO)

    try:
        recon_config = load_config(config)
        repository = CsvRecordRepository(
            bank_file,
            ledger_file,
            documents_path=documents,
            config=recon_config,
            default_tenant=tenant,
        )
        _run_reconciliation(
            repository,
            recon_config,
            tenant,
            period_start,
            period_end,
            account,
            output,
            json_output,
            write_back,
            dry_run,
        )
    except ReconciliationError as e:
        console.print(f"[red]Error: {e}[/red]")
        if verbose:
            console.print_exception()
        sys.exit(1)


@main.command("reconcile-db")
@click.option("--database-url", default=None, help="SQLAlchemy database URL (overrides config)")
@window_options
def reconcile_db(
    database_url: Optional[str],
    tenant: str,
    period_start: datetime,
    period_end: datetime,
    account: Optional[str],
    config: Optional[Path],
    output: Optional[Path],
    json_output: Optional[Path],
    write_back: bool,
    dry_run: bool,
    verbose: bool,
):
    """Reconcile bank transactions with ledger entries stored in a database."""
    setup_logging(logging.DEBUG if verbose else logging.INFO)

    try:
        recon_config = load_config(config)
        url = database_url or recon_config.database.url
        if not url:
            raise click.UsageError("No database URL given (--database-url or database.url)")

        repository = SqlRecordRepository(url, echo=recon_config.database.echo)
        _run_reconciliation(
            repository,
            recon_config,
            tenant,
            period_start,
            period_end,
            account,
            output,
            json_output,
            write_back,
            dry_run,
        )
    except ReconciliationError as e:
        console.print(f"[red]Error: {e}[/red]")
        if verbose:
            console.print_exception()
        sys.exit(1)


@main.command()
@click.argument("bank_file", type=click.Path(exists=True, path_type=Path))
@click.argument("ledger_file", type=click.Path(exists=True, path_type=Path))
@click.option("--tenant", required=True, help="Tenant owning the transaction")
@click.option("--transaction", "transaction_id", required=True, help="Bank transaction id")
@click.option("--documents", type=click.Path(exists=True, path_type=Path), help="Candidate documents CSV")
@click.option("--threshold", type=float, default=None, help="Minimum similarity (0-1)")
@click.option("-c", "--config", type=click.Path(exists=True, path_type=Path))
def suggest(
    bank_file: Path,
    ledger_file: Path,
    tenant: str,
    transaction_id: str,
    documents: Optional[Path],
    threshold: Optional[float],
    config: Optional[Path],
):
    """
    Suggest ranked match candidates for one bank transaction.

    BANK_FILE: Path to the bank transactions CSV
    LEDGER_FILE: Path to the ledger entries CSV
    """
    try:
        recon_config = load_config(config)
        repository = CsvRecordRepository(
            bank_file,
            ledger_file,
            documents_path=documents,
            config=recon_config,
            default_tenant=tenant,
        )
        engine = ReconciliationEngine(repository, recon_config)
        candidates = engine.suggest_matches(tenant, transaction_id, threshold)
    except ReconciliationError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    if not candidates:
        console.print(f"[yellow]No candidates found for {transaction_id}[/yellow]")
        return

    table = Table(title=f"Match Candidates: {transaction_id}")
    table.add_column("Target")
    table.add_column("Type")
    table.add_column("Date")
    table.add_column("Amount", justify="right")
    table.add_column("Similarity", justify="right")
    table.add_column("Reasons")

    for candidate in candidates:
        table.add_row(
            candidate.target_id,
            candidate.target_type.value,
            str(candidate.date),
            f"{candidate.amount:,.2f}",
            f"{candidate.similarity:.0%}",
            "; ".join(candidate.match_reasons),
        )

    console.print(table)


@main.command()
@click.argument("bank_file", type=click.Path(exists=True, path_type=Path))
@click.argument("ledger_file", type=click.Path(exists=True, path_type=Path))
@click.option("--tenant", required=True, help="Tenant owning the transaction")
@click.option("--transaction", "transaction_id", required=True, help="Bank transaction id")
@click.option("--ledger-entry", "ledger_entry_id", default=None, help="Ledger entry to link")
@click.option("--document", "document_id", default=None, help="Document to link")
@click.option("-c", "--config", type=click.Path(exists=True, path_type=Path))
def confirm(
    bank_file: Path,
    ledger_file: Path,
    tenant: str,
    transaction_id: str,
    ledger_entry_id: Optional[str],
    document_id: Optional[str],
    config: Optional[Path],
):
    """
    Record a reviewed match between a bank transaction and a ledger entry or document.

    BANK_FILE: Path to the bank transactions CSV
    LEDGER_FILE: Path to the ledger entries CSV
    """
    try:
        recon_config = load_config(config)
        repository = CsvRecordRepository(
            bank_file, ledger_file, config=recon_config, default_tenant=tenant
        )
        engine = ReconciliationEngine(repository, recon_config)
        link = engine.confirm_match(tenant, transaction_id, ledger_entry_id, document_id)
    except ReconciliationError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    console.print(
        f"[green]Confirmed {link.bank_transaction_id} -> "
        f"{link.ledger_entry_id or link.document_id}[/green]"
    )


@main.command("init-config")
@click.option(
    "-o", "--output", type=click.Path(path_type=Path), default=Path("config.yaml")
)
def init_config(output: Path):
    """Generate a sample configuration file."""
    generate_default_config(output)
    console.print(f"[green]Configuration file generated: {output}[/green]")


def _run_reconciliation(
    repository: RecordRepository,
    recon_config: ReconConfig,
    tenant: str,
    period_start: datetime,
    period_end: datetime,
    account: Optional[str],
    output: Optional[Path],
    json_output: Optional[Path],
    write_back: bool,
    dry_run: bool,
) -> None:
    """Run a batch reconciliation and write the requested outputs."""
    engine = ReconciliationEngine(repository, recon_config)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task("Running reconciliation...", total=None)
        report = engine.reconcile(
            tenant,
            period_start.date(),
            period_end.date(),
            account_id=account,
            write_back=write_back and not dry_run,
        )
        progress.update(task, completed=True)

    _display_summary(report)

    if dry_run:
        console.print("\n[yellow]Dry run - no report generated[/yellow]")
        return

    if write_back:
        console.print(f"[green]Flagged {report.matched} matches as reconciled[/green]")

    report_generator = ExcelReportGenerator(recon_config)
    if output is None:
        output = Path(report_generator.default_filename(report))
    report_path = report_generator.generate_report(report, output)
    console.print(f"\n[green]Report generated: {report_path}[/green]")

    if json_output is not None:
        json_output.parent.mkdir(parents=True, exist_ok=True)
        json_output.write_text(report.to_json())
        console.print(f"[green]JSON report written: {json_output}[/green]")


def _display_summary(report: ReconciliationReport) -> None:
    """Display reconciliation summary in console."""
    table = Table(title="Reconciliation Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    summary = report.summary
    table.add_row("Period", f"{report.period_start} to {report.period_end}")
    table.add_row("Total Bank Transactions", str(summary.total_bank_transactions))
    table.add_row("Total Ledger Entries", str(summary.total_ledger_entries))
    table.add_row("Matched", str(report.matched))
    table.add_row("Unmatched Bank", str(len(report.unmatched_bank_items)))
    table.add_row("Unmatched Ledger", str(len(report.unmatched_ledger_items)))
    table.add_row("Bank Match Rate", f"{summary.match_rate * 100:.1f}%")
    table.add_row("Bank Balance", f"{report.bank_balance:,.2f}")
    table.add_row("Ledger Balance", f"{report.ledger_balance:,.2f}")
    table.add_row("Difference", f"{report.difference:,.2f}")

    console.print(table)


if __name__ == "__main__":
    main()
