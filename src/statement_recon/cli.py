"""
Command-line interface for the bank statement reconciliation tool.
"""

from datetime import datetime
from pathlib import Path
from typing import Optional
import logging
import sys

import click
from rich.console import Console
from rich.markup import escape
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
)
from rich.table import Table

from . import __version__
from .config import load_config, generate_default_config, ReconConfig
from .matching.arbiter import SelectionArbiter
from .matching.engine import ReconciliationEngine
from .models.transaction import CommitResult, ReconciliationSummary
from .parsers.statement_parser import StatementNormalizer, detect_column_mapping
from .reports.excel_generator import ExcelReportGenerator, format_minor
from .settlement.committer import SettlementCommitter
from .store.tabular import TabularInstallmentStore
from .utils.logging_config import setup_logging

console = Console()


@click.group()
@click.version_option(version=__version__)
def main():
    """Bank statement to payable installments reconciliation tool."""
    pass


@main.command()
@click.argument("statement_file", type=click.Path(exists=True, path_type=Path))
@click.argument("installments_file", type=click.Path(exists=True, path_type=Path))
@click.option(
    "-c",
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file (YAML)",
)
@click.option("-o", "--output", type=click.Path(path_type=Path), help="Output Excel file path")
@click.option(
    "--tolerance-days",
    type=click.IntRange(min=0),
    default=None,
    help="Override date tolerance in days",
)
@click.option(
    "--tolerance-percent",
    type=click.FloatRange(min=0),
    default=None,
    help="Override amount tolerance in percent",
)
@click.option(
    "--chunk-size", type=click.IntRange(min=1), default=None, help="Transactions per chunk"
)
@click.option("--payment-method", default=None, help="Default payment method for settlements")
@click.option("--bank-account", default=None, help="Bank account recorded on settlements")
@click.option(
    "--detect-columns", is_flag=True, help="Guess the column mapping from the header row"
)
@click.option(
    "--commit",
    is_flag=True,
    help="Settle the confirmed matches and write the installment file back",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option(
    "--dry-run", is_flag=True, help="Score transactions and show summary without writing"
)
def reconcile(
    statement_file: Path,
    installments_file: Path,
    config: Optional[Path],
    output: Optional[Path],
    tolerance_days: Optional[int],
    tolerance_percent: Optional[float],
    chunk_size: Optional[int],
    payment_method: Optional[str],
    bank_account: Optional[str],
    detect_columns: bool,
    commit: bool,
    verbose: bool,
    dry_run: bool,
):
    """
    Reconcile a bank statement against payable installments.

    STATEMENT_FILE: Path to the bank statement export (CSV or Excel)
    INSTALLMENTS_FILE: Path to the installment pool (CSV or Excel)
    """
    try:
        recon_config = load_config(config)
        _configure_logging(recon_config, verbose)
        _apply_overrides(
            recon_config,
            tolerance_days=tolerance_days,
            tolerance_percent=tolerance_percent,
            chunk_size=chunk_size,
            payment_method=payment_method,
            bank_account=bank_account,
        )

        normalizer = StatementNormalizer(recon_config)
        rows = normalizer.read_rows(statement_file)
        if detect_columns and rows:
            mapping = detect_column_mapping(
                rows[0].keys(),
                negative_means_outbound=recon_config.statement.columns.negative_means_outbound,
            )
            console.print(f"[cyan]Detected columns: {mapping.model_dump(exclude_none=True)}[/cyan]")
            normalizer = StatementNormalizer(recon_config, columns=mapping)
        transactions = normalizer.normalize_rows(rows)

        store = TabularInstallmentStore.from_file(
            installments_file,
            payment_methods=recon_config.settlement.known_payment_methods,
        )
        engine = ReconciliationEngine(recon_config)
        index = engine.prepare(store)

        start_time = datetime.now()
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            console=console,
        ) as progress:
            task = progress.add_task("Scoring transactions...", total=len(transactions))
            result = engine.reconcile(
                transactions,
                index,
                on_progress=lambda p: progress.update(task, completed=p.processed),
            )

        processing_time = (datetime.now() - start_time).total_seconds()
        summary = engine.generate_summary(result, statement_file.name, processing_time)
        _display_summary(summary)

        if dry_run:
            console.print("\n[yellow]Dry run - nothing written[/yellow]")
            return

        commit_result: Optional[CommitResult] = None
        if commit:
            arbiter = SelectionArbiter(result.items)
            if arbiter.has_conflicts:
                _display_conflicts(arbiter.conflicts(), result.items)
                console.print("[red]Commit blocked until conflicts are resolved[/red]")
            elif not arbiter.can_commit:
                console.print("[yellow]No confirmed matches to commit[/yellow]")
            else:
                committer = SettlementCommitter(store, recon_config.settlement)
                commit_result = committer.commit(result.items)
                store.save(installments_file)
                _display_commit_result(commit_result)

        if output is None:
            now = datetime.now()
            output = Path(
                recon_config.output.excel.filename_template.format(
                    date=now.strftime("%Y%m%d"), time=now.strftime("%H%M%S")
                )
            )

        report_generator = ExcelReportGenerator(recon_config)
        report_path = report_generator.generate_report(
            summary=summary,
            items=result.items,
            output_path=output,
            commit_result=commit_result,
        )

        console.print(f"\n[green]Report generated: {report_path}[/green]")

    except Exception as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        if verbose:
            console.print_exception()
        sys.exit(1)


@main.command("normalize")
@click.argument("statement_file", type=click.Path(exists=True, path_type=Path))
@click.option("-c", "--config", type=click.Path(exists=True, path_type=Path))
@click.option("--detect-columns", is_flag=True, help="Guess the column mapping")
def normalize(statement_file: Path, config: Optional[Path], detect_columns: bool):
    """
    Normalize a statement and display its outbound transactions.

    STATEMENT_FILE: Path to the bank statement export (CSV or Excel)
    """
    try:
        recon_config = load_config(config)
        normalizer = StatementNormalizer(recon_config)
        rows = normalizer.read_rows(statement_file)
        if detect_columns and rows:
            normalizer = StatementNormalizer(
                recon_config, columns=detect_column_mapping(rows[0].keys())
            )
        transactions = normalizer.normalize_rows(rows)

        table = Table(title=f"Outbound Transactions: {statement_file.name}")
        table.add_column("Row", justify="right")
        table.add_column("Date")
        table.add_column("Amount", justify="right")
        table.add_column("Method")
        table.add_column("Identifier")
        table.add_column("Description")

        for txn in transactions[:20]:  # Show first 20
            table.add_row(
                str(txn.row_number),
                txn.date,
                f"{format_minor(txn.amount_minor):,.2f}",
                txn.payment_method_tag or "-",
                txn.external_id or "-",
                (
                    txn.description[:40] + "..."
                    if len(txn.description) > 40
                    else txn.description
                ),
            )

        console.print(table)

        if len(transactions) > 20:
            console.print(f"\n... and {len(transactions) - 20} more transactions")

        console.print(f"\nOutbound transactions: {len(transactions)} of {len(rows)} rows")

    except Exception as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        sys.exit(1)


@main.command("init-config")
@click.option(
    "-o", "--output", type=click.Path(path_type=Path), default=Path("config.yaml")
)
def init_config(output: Path):
    """Generate a sample configuration file."""
    generate_default_config(output)
    console.print(f"[green]Configuration file generated: {output}[/green]")


def _display_summary(summary: ReconciliationSummary) -> None:
    """Display reconciliation summary in console."""
    table = Table(title="Reconciliation Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Outbound Transactions", str(summary.total_transactions))
    table.add_row("With Candidates", str(summary.with_candidates_count))
    table.add_row("Pre-selected", str(summary.auto_selected_count))
    table.add_row("Confirmed", str(summary.confirmed_count))
    table.add_row("Already Settled", str(summary.duplicate_count))
    table.add_row("Unmatched", str(summary.unmatched_count))
    table.add_row("Conflicts", str(summary.conflict_count))
    table.add_row("Match Rate", f"{summary.match_rate:.1f}%")
    table.add_row("Processing Time", f"{summary.processing_time_seconds:.2f}s")

    console.print(table)


def _display_conflicts(conflicts: dict[str, list[int]], items) -> None:
    table = Table(title="Conflicting Selections")
    table.add_column("Installment")
    table.add_column("Statement Rows")

    for installment_id, positions in sorted(conflicts.items()):
        rows = ", ".join(str(items[p].transaction.row_number) for p in positions)
        table.add_row(installment_id, rows)

    console.print(table)


def _display_commit_result(commit_result: CommitResult) -> None:
    table = Table(title="Commit Result")
    table.add_column("Outcome", style="cyan")
    table.add_column("Count", justify="right")

    table.add_row("Inserted", str(commit_result.inserted))
    table.add_row("Overridden", str(commit_result.overridden))
    table.add_row("Errors", str(commit_result.errored))
    console.print(table)

    for message in commit_result.errors:
        console.print(f"[red]{message}[/red]")


def _configure_logging(config: ReconConfig, verbose: bool) -> None:
    if verbose:
        level = logging.DEBUG
    else:
        level = logging.getLevelName(config.logging.level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    setup_logging(
        level,
        log_file=Path(config.logging.file) if config.logging.file else None,
        log_format=config.logging.format,
        file_format=config.logging.file_format,
        max_bytes=config.logging.max_bytes,
        backup_count=config.logging.backup_count,
    )


def _apply_overrides(
    config: ReconConfig,
    tolerance_days: Optional[int] = None,
    tolerance_percent: Optional[float] = None,
    chunk_size: Optional[int] = None,
    payment_method: Optional[str] = None,
    bank_account: Optional[str] = None,
) -> None:
    """Apply command-line overrides to the loaded configuration."""
    if tolerance_days is not None:
        config.matching.tolerance_days = tolerance_days
    if tolerance_percent is not None:
        config.matching.tolerance_percent = tolerance_percent
    if chunk_size is not None:
        config.matching.chunk_size = chunk_size
    if payment_method is not None:
        config.settlement.default_payment_method = payment_method
    if bank_account is not None:
        config.settlement.default_bank_account = bank_account


if __name__ == "__main__":
    main()
