"""CLI interface for CareerDesk."""

import asyncio
import logging
from pathlib import Path
from typing import Annotated

import typer
from beartype import beartype
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from careerdesk.config import Settings
from careerdesk.models.entities import Company, Job
from careerdesk.models.filters import AdvertisementFilters, JobFilters, JobSort
from careerdesk.services.cleanup_service import CleanupService
from careerdesk.services.import_service import import_documents, load_seed_file
from careerdesk.services.storage_adapter import StorageAdapter
from careerdesk.storage.document_store import DocumentStore, StorageError

app = typer.Typer(
    name="careerdesk",
    help="Back-office tool for the CareerDesk job board data files.",
    no_args_is_help=True,
)

jobs_app = typer.Typer(
    name="jobs",
    help="Browse job postings.",
    no_args_is_help=True,
)
app.add_typer(jobs_app, name="jobs")

ads_app = typer.Typer(
    name="ads",
    help="Manage advertisements.",
    no_args_is_help=True,
)
app.add_typer(ads_app, name="ads")

console = Console()

DataDirOption = Annotated[
    Path | None, typer.Option("--data-dir", "-d", help="Collection files directory")
]


@app.callback()
@beartype
def main(
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Enable debug logging")
    ] = False,
) -> None:
    """Configure logging for every command."""
    level = "DEBUG" if verbose else Settings().log_level
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


@beartype
def _get_settings(data_dir: Path | None = None) -> Settings:
    """Create settings with an optional data directory override."""
    if data_dir:
        return Settings(data_dir=data_dir)
    return Settings()


def _text(value: object) -> str:
    """Table cell for a stored value of any type."""
    if value is None or value == "":
        return "-"
    return str(value)


def _company_name(job: Job) -> str:
    return _text(job.company.name) if isinstance(job.company, Company) else "-"


@beartype
def _get_adapter(settings: Settings) -> StorageAdapter:
    store = DocumentStore(settings.data_dir, indent=settings.json_indent)
    return StorageAdapter(store, settings)


@jobs_app.command("list")
@beartype
def list_jobs(
    search: Annotated[
        str | None, typer.Option("--search", "-s", help="Text in title/description/location")
    ] = None,
    country: Annotated[str | None, typer.Option("--country", help="Country")] = None,
    industry: Annotated[str | None, typer.Option("--industry", help="Industry")] = None,
    category: Annotated[str | None, typer.Option("--category", help="Category")] = None,
    sort: Annotated[
        JobSort | None, typer.Option("--sort", help="Sort by date or salary")
    ] = None,
    limit: Annotated[int, typer.Option("--limit", "-n", help="Page size")] = 20,
    offset: Annotated[int, typer.Option("--offset", help="Jobs to skip")] = 0,
    data_dir: DataDirOption = None,
) -> None:
    """List job postings."""
    adapter = _get_adapter(_get_settings(data_dir))
    filters = JobFilters(
        search=search,
        country=country,
        industry=industry,
        category=category,
        sort=sort,
        limit=limit,
        offset=offset,
    )

    try:
        page = asyncio.run(adapter.get_jobs(filters))
    except StorageError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e

    if not page.jobs:
        console.print("[yellow]No jobs found matching your criteria.[/yellow]")
        return

    table = Table(title=f"Jobs ({page.total} matching)")
    table.add_column("Title", style="cyan", max_width=40)
    table.add_column("Company", style="green", max_width=25)
    table.add_column("Location", style="yellow", max_width=20)
    table.add_column("Posted", style="magenta")

    for job in page.jobs:
        table.add_row(
            _text(job.title),
            _company_name(job),
            _text(job.location),
            str(job.posted_at or "")[:10],
        )

    console.print(table)
    console.print(f"[dim]Showing {len(page.jobs)} of {page.total} jobs[/dim]")


@jobs_app.command("featured")
@beartype
def featured_jobs(
    limit: Annotated[
        int | None, typer.Option("--limit", "-n", help="Maximum jobs")
    ] = None,
    data_dir: DataDirOption = None,
) -> None:
    """List featured, published jobs."""
    adapter = _get_adapter(_get_settings(data_dir))
    jobs = asyncio.run(adapter.get_featured_jobs(limit))

    if not jobs:
        console.print("[yellow]No featured jobs.[/yellow]")
        return

    table = Table(title="Featured Jobs")
    table.add_column("Title", style="cyan", max_width=40)
    table.add_column("Company", style="green", max_width=25)
    table.add_column("Location", style="yellow", max_width=20)

    for job in jobs:
        table.add_row(
            _text(job.title),
            _company_name(job),
            _text(job.location),
        )

    console.print(table)


@ads_app.command("list")
@beartype
def list_ads(
    position: Annotated[
        str | None, typer.Option("--position", "-p", help="Page position")
    ] = None,
    active: Annotated[
        bool, typer.Option("--active", "-a", help="Only ads running right now")
    ] = False,
    data_dir: DataDirOption = None,
) -> None:
    """List advertisements, highest priority first."""
    adapter = _get_adapter(_get_settings(data_dir))
    filters = AdvertisementFilters(position=position, is_active=True if active else None)
    ads = asyncio.run(adapter.get_advertisements(filters))

    if not ads:
        console.print("[yellow]No advertisements found.[/yellow]")
        return

    table = Table(title="Advertisements")
    table.add_column("Title", style="cyan", max_width=30)
    table.add_column("Position", style="green")
    table.add_column("Priority", justify="right")
    table.add_column("Window", style="magenta")
    table.add_column("Clicks/Views", justify="right")
    table.add_column("Active", style="blue")

    for ad in ads:
        window = "-"
        if ad.start_date or ad.end_date:
            window = f"{str(ad.start_date or '')[:10]} → {str(ad.end_date or '')[:10]}"
        table.add_row(
            _text(ad.title),
            _text(ad.position),
            _text(ad.priority),
            window,
            f"{ad.click_count}/{ad.impression_count}",
            "[green]Yes[/green]" if ad.is_active else "[red]No[/red]",
        )

    console.print(table)


@ads_app.command("create")
@beartype
def create_ad(
    title: Annotated[str, typer.Option("--title", "-t", help="Ad title")],
    position: Annotated[str, typer.Option("--position", "-p", help="Page position")],
    image_url: Annotated[
        str | None, typer.Option("--image-url", help="Banner image URL")
    ] = None,
    link_url: Annotated[
        str | None, typer.Option("--link-url", help="Click-through URL")
    ] = None,
    priority: Annotated[int, typer.Option("--priority", help="Higher shows first")] = 0,
    start_date: Annotated[
        str | None, typer.Option("--start", help="Start date (ISO-8601)")
    ] = None,
    end_date: Annotated[
        str | None, typer.Option("--end", help="End date (ISO-8601)")
    ] = None,
    data_dir: DataDirOption = None,
) -> None:
    """Create an advertisement, respecting the per-position and total caps."""
    settings = _get_settings(data_dir)
    adapter = _get_adapter(settings)

    in_position = asyncio.run(adapter.count_active_ads_by_position(position))
    if in_position >= settings.max_ads_per_position:
        console.print(
            f"[red]Position '{position}' already has {in_position} active ads "
            f"(max {settings.max_ads_per_position}).[/red]"
        )
        raise typer.Exit(1)

    active = asyncio.run(adapter.get_advertisements(AdvertisementFilters(is_active=True)))
    if len(active) >= settings.max_ads_total:
        console.print(
            f"[red]Already {len(active)} active ads in total "
            f"(max {settings.max_ads_total}).[/red]"
        )
        raise typer.Exit(1)

    ad = asyncio.run(
        adapter.create_advertisement(
            {
                "title": title,
                "position": position,
                "image_url": image_url,
                "link_url": link_url,
                "priority": priority,
                "start_date": start_date,
                "end_date": end_date,
            }
        )
    )
    console.print(f"[green]Created advertisement '{ad.title}' ({ad.id})[/green]")


@ads_app.command("cleanup")
@beartype
def cleanup_ads(data_dir: DataDirOption = None) -> None:
    """Delete advertisements whose end date has passed."""
    settings = _get_settings(data_dir)
    service = CleanupService(_get_adapter(settings), settings.cleanup_interval)

    result = asyncio.run(service.run_cleanup())
    console.print(f"[green]Removed {result.deleted_ads} expired advertisements[/green]")


async def _watch(service: CleanupService) -> None:
    service.start()
    try:
        await asyncio.Event().wait()
    finally:
        await service.stop()


@ads_app.command("watch")
@beartype
def watch_ads(
    interval: Annotated[
        float | None, typer.Option("--interval", "-i", help="Seconds between sweeps")
    ] = None,
    data_dir: DataDirOption = None,
) -> None:
    """Keep deleting expired advertisements until interrupted."""
    settings = _get_settings(data_dir)
    service = CleanupService(
        _get_adapter(settings),
        interval if interval is not None else settings.cleanup_interval,
    )

    console.print("[dim]Press Ctrl+C to stop[/dim]")
    try:
        asyncio.run(_watch(service))
    except KeyboardInterrupt:
        console.print("[yellow]Cleanup service stopped.[/yellow]")


@app.command("collections")
@beartype
def list_collections(data_dir: DataDirOption = None) -> None:
    """Show the document count of every collection file."""
    settings = _get_settings(data_dir)
    store = DocumentStore(settings.data_dir, indent=settings.json_indent)

    async def _counts() -> list[tuple[str, int]]:
        return [
            (name, len(await store.find(name)))
            for name in await store.list_collections()
        ]

    try:
        counts = asyncio.run(_counts())
    except StorageError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e

    if not counts:
        console.print(f"[yellow]No collections in {settings.data_dir}[/yellow]")
        return

    table = Table(title=f"Collections in {settings.data_dir}")
    table.add_column("Collection", style="cyan")
    table.add_column("Documents", justify="right", style="green")
    for name, count in counts:
        table.add_row(name, str(count))

    console.print(table)


@app.command("import")
@beartype
def import_seed(
    seed_file: Annotated[Path, typer.Argument(help="YAML file of documents per collection")],
    data_dir: DataDirOption = None,
) -> None:
    """Import seed documents from a YAML file."""
    settings = _get_settings(data_dir)
    store = DocumentStore(settings.data_dir, indent=settings.json_indent)

    if not seed_file.exists():
        console.print(f"[red]Seed file not found: {seed_file}[/red]")
        raise typer.Exit(1)

    try:
        seed = load_seed_file(seed_file)
        counts = asyncio.run(import_documents(store, seed))
    except (ValueError, StorageError) as e:
        console.print(f"[red]Import failed: {e}[/red]")
        raise typer.Exit(1) from e

    total = sum(counts.values())
    console.print(
        f"[green]Imported {total} documents into {len(counts)} collections[/green]"
    )


if __name__ == "__main__":
    app()
