"""SiteDPR CLI.

Commands:
- init: Initialize the document store schema
- ingest: Parse a site update text file into the report for a date
- show: Print the report for a date
- hard-sync: AI backfill of thin items across all reports
- trash list|restore: Inspect and restore soft-deleted objects
- backups list|recover: Browse the raw-input archive and rebuild reports
- estimate: Financial estimate grouped by item type
- web serve: Run the JSON API
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import structlog
import typer
from rich.console import Console
from rich.table import Table

from sitedpr.config import get_config
from sitedpr.core.logging import configure_logging
from sitedpr.db.connection import close_db, get_engine, init_db
from sitedpr.intelligence.autofill import AutofillService
from sitedpr.intelligence.hard_sync import HardSyncError, run_hard_sync
from sitedpr.intelligence.parser import ConstructionParser, ParseError
from sitedpr.models import UserIdentity
from sitedpr.reporting.quantities import financial_estimate
from sitedpr.reports.service import BackupNotFoundError, ReportService
from sitedpr.reports.trash import TrashRestoreError
from sitedpr.startup import StartupValidationError, open_session

app = typer.Typer(
    name="sitedpr",
    help="SiteDPR - Daily progress reports from free-text site updates",
    no_args_is_help=True,
)
trash_cli = typer.Typer(help="Recycle bin")
app.add_typer(trash_cli, name="trash")

backups_cli = typer.Typer(help="Raw-input archive")
app.add_typer(backups_cli, name="backups")

web_cli = typer.Typer(help="Web API")
app.add_typer(web_cli, name="web")

console = Console()
log = structlog.get_logger()


@app.callback()
def main() -> None:
    configure_logging()


async def _session(user: str | None, date: str | None = None) -> ReportService:
    try:
        service, opened = await open_session(UserIdentity(display_name=user))
    except StartupValidationError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1)
    if opened.local_only:
        console.print(f"[yellow]⚠[/yellow] Local-only mode: {opened.reason}")
    if date:
        service.select_date(date)
    return service


async def _close(service: ReportService) -> None:
    await service.reports.stop()
    await close_db()


def _entries_table(service: ReportService) -> Table:
    report = service.reports.current_report
    table = Table(title=f"{report.project_title} - {report.date}" if report else "No report")
    table.add_column("#", justify="right")
    table.add_column("Location")
    table.add_column("Component")
    table.add_column("Area / Chainage")
    table.add_column("Activity")
    table.add_column("Qty", justify="right")
    table.add_column("Unit")
    table.add_column("Type")
    table.add_column("Next")
    for index, item in enumerate(service.reports.current_entries, start=1):
        table.add_row(
            str(index),
            item.location,
            item.component,
            item.chainage_or_area,
            item.activity_description,
            f"{item.quantity:g}" if item.quantity else "",
            item.unit,
            item.item_type,
            item.planned_next_activity,
        )
    return table


@app.command()
def init(
    drop: bool = typer.Option(False, "--drop", help="Drop existing tables"),
):
    """Initialize database schema."""
    config = get_config()
    if not config.db.is_configured:
        console.print("[red]✗[/red] DATABASE_URL is not set")
        raise typer.Exit(1)
    console.print(f"[bold]Initializing database:[/bold] {config.db.url}")

    async def _init():
        get_engine(config.db.url)
        if drop:
            console.print("[yellow]Dropping existing tables...[/yellow]")
        await init_db(drop=drop)
        await close_db()

    asyncio.run(_init())
    console.print("[bold green]✓[/bold green] Database initialized")


@app.command()
def ingest(
    file: Path = typer.Argument(..., exists=True, readable=True, help="Site update text"),
    date: str | None = typer.Option(None, "--date", help="Report date (YYYY-MM-DD)"),
    bulk: bool = typer.Option(False, "--bulk", help="Route rows by the dates found in the text"),
    instructions: str | None = typer.Option(None, "--instructions", help="Extra parser guidance"),
    user: str | None = typer.Option(None, "--user", help="Attribution name"),
):
    """Parse a text file and merge the items into the report."""
    raw_text = file.read_text(encoding="utf-8")

    async def _ingest():
        service = await _session(user, date)
        try:
            parser = ConstructionParser(patterns=service.item_patterns())
            try:
                parsed = await parser.parse(raw_text, instructions=instructions)
            except ParseError as e:
                console.print(f"[red]✗[/red] {e}")
                console.print("[dim]Input was not saved; fix the text and run again.[/dim]")
                raise typer.Exit(1)

            for warning in parsed.warnings:
                console.print(f"[yellow]⚠[/yellow] {warning}")

            if bulk:
                results = await service.ingest_parsed(parsed.items, raw_text)
            else:
                results = [await service.add_items(parsed.items, raw_text)]

            for result in results:
                for warning in result.warnings:
                    console.print(f"[yellow]⚠[/yellow] {warning}")
                if result.report is not None:
                    console.print(
                        f"[green]✓[/green] {len(result.added)} items added to {result.report.date}"
                    )
            log.info("ingest_complete", file=str(file), items=len(parsed.items), bulk=bulk)
            console.print(_entries_table(service))
        finally:
            await _close(service)

    asyncio.run(_ingest())


@app.command()
def show(
    date: str | None = typer.Option(None, "--date", help="Report date (YYYY-MM-DD)"),
):
    """Show the report for a date."""

    async def _show():
        service = await _session(None, date)
        try:
            if service.reports.current_report is None:
                console.print(f"[yellow]No report for {service.reports.active_date}[/yellow]")
                return
            console.print(_entries_table(service))
        finally:
            await _close(service)

    asyncio.run(_show())


@app.command(name="hard-sync")
def hard_sync(
    user: str | None = typer.Option(None, "--user", help="Attribution name"),
):
    """Backfill quantity, unit and type for thin items across all reports."""

    async def _sync():
        service = await _session(user)
        try:
            patterns = service.item_patterns()
            with console.status("[bold]Running hard sync...[/bold]") as status:

                def progress(done: int, total: int) -> None:
                    status.update(f"[bold]Hard sync[/bold] {done}/{total}")

                result = await run_hard_sync(
                    service.reports,
                    AutofillService(patterns=patterns),
                    patterns=patterns,
                    context_limit=get_config().history.learning_context_limit,
                    progress_callback=progress,
                )
        except HardSyncError as e:
            console.print(f"[red]✗[/red] {e}")
            raise typer.Exit(1)
        finally:
            await _close(service)

        console.print(
            f"[bold green]✓[/bold green] Scanned {result.scanned}, repaired {result.repaired}, "
            f"failed {result.failed}, reports updated {result.reports_updated}"
        )
        for err in result.errors[:5]:
            console.print(f"  {err}", style="dim")

    asyncio.run(_sync())


@trash_cli.command("list")
def trash_list():
    """List soft-deleted objects, newest first."""

    async def _list():
        service = await _session(None)
        try:
            items = await service.trash.list()
        finally:
            await _close(service)

        table = Table(title="Recycle Bin")
        table.add_column("Trash ID")
        table.add_column("Type")
        table.add_column("Report date")
        table.add_column("Deleted by")
        table.add_column("Deleted at")
        for item in items:
            table.add_row(
                item.trash_id,
                item.type.value,
                item.report_date,
                item.deleted_by,
                f"{item.deleted_at:%Y-%m-%d %H:%M}",
            )
        console.print(table)

    asyncio.run(_list())


@trash_cli.command("restore")
def trash_restore(
    trash_id: str = typer.Argument(..., help="Trash entry ID"),
    user: str | None = typer.Option(None, "--user", help="Attribution name"),
):
    """Restore a soft-deleted report, item or quantity."""

    async def _restore():
        service = await _session(user)
        try:
            restored = await service.restore(trash_id)
        except TrashRestoreError as e:
            console.print(f"[red]✗[/red] {e}")
            raise typer.Exit(1)
        finally:
            await _close(service)
        console.print(
            f"[bold green]✓[/bold green] Restored {restored.type.value} {restored.original_id}"
        )

    asyncio.run(_restore())


@backups_cli.command("list")
def backups_list(
    limit: int = typer.Option(50, "--limit", help="Maximum entries"),
    start: str | None = typer.Option(None, "--start", help="From date (YYYY-MM-DD)"),
    end: str | None = typer.Option(None, "--end", help="To date (YYYY-MM-DD)"),
):
    """List archived raw inputs, newest first."""

    async def _list():
        service = await _session(None)
        try:
            entries = await service.archive.list(limit=limit, start=start, end=end)
        finally:
            await _close(service)

        table = Table(title="Raw Inputs")
        table.add_column("Backup ID")
        table.add_column("Date")
        table.add_column("User")
        table.add_column("Items", justify="right")
        table.add_column("Input")
        for entry in entries:
            preview = entry.raw_input.replace("\n", " ")
            table.add_row(
                entry.id,
                entry.date,
                entry.user,
                str(len(entry.parsed_items)),
                preview[:60] + ("..." if len(preview) > 60 else ""),
            )
        console.print(table)

    asyncio.run(_list())


@backups_cli.command("recover")
def backups_recover(
    backup_id: str = typer.Argument(..., help="Backup ID"),
    user: str | None = typer.Option(None, "--user", help="Attribution name"),
):
    """Rebuild the report for a backup's date from its archived items."""

    async def _recover():
        service = await _session(user)
        try:
            report = await service.recover_backup(backup_id)
            console.print(
                f"[bold green]✓[/bold green] Recovered {len(report.entries)} items into {report.date}"
            )
            console.print(_entries_table(service))
        except BackupNotFoundError as e:
            console.print(f"[red]✗[/red] {e}")
            raise typer.Exit(1)
        finally:
            await _close(service)

    asyncio.run(_recover())


@app.command()
def estimate(
    location: str | None = typer.Option(None, "--location"),
    component: str | None = typer.Option(None, "--component"),
    item_type: str | None = typer.Option(None, "--type"),
    start: str | None = typer.Option(None, "--start", help="From date (YYYY-MM-DD)"),
    end: str | None = typer.Option(None, "--end", help="To date (YYYY-MM-DD)"),
):
    """Financial estimate grouped by item type at the configured rates."""

    async def _estimate():
        service = await _session(None)
        try:
            rates = service.settings.item_rates if service.settings else {}
            result = financial_estimate(
                service.reports.reports,
                rates,
                location=location,
                component=component,
                item_type=item_type,
                start=start,
                end=end,
            )
        finally:
            await _close(service)

        table = Table(title=f"Financial Estimate ({result.record_count} records)")
        table.add_column("Item type")
        table.add_column("Quantity", justify="right")
        table.add_column("Unit")
        table.add_column("Rate", justify="right")
        table.add_column("Amount", justify="right")
        for group in result.groups.values():
            table.add_row(
                group.item_type,
                f"{group.total_quantity:,.2f}",
                group.unit,
                f"{group.rate:,.2f}",
                f"{group.total_amount:,.2f}",
            )
        table.add_row("[bold]Total[/bold]", "", "", "", f"[bold]{result.grand_total:,.2f}[/bold]")
        console.print(table)

    asyncio.run(_estimate())


@web_cli.command("serve")
def web_serve(
    host: str = typer.Option("0.0.0.0", help="Host to bind"),
    port: int = typer.Option(8001, help="Port to bind"),
    reload: bool = typer.Option(False, help="Enable autoreload (dev only)"),
):
    """Run the FastAPI JSON API."""
    import uvicorn

    typer.echo(f"Starting SiteDPR API on http://{host}:{port}")
    uvicorn.run("sitedpr.web.app:app", host=host, port=port, reload=reload, workers=1)


if __name__ == "__main__":
    app()
