"""CLI for querying external property feeds."""

from __future__ import annotations

import logging
from pathlib import Path

from dotenv import load_dotenv
from typing import Optional

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import get_feed_settings, load_config
from .errors import FeedError
from .manager import FeedManager
from .models import NormalizedProperty
from .storage import FeedCache, export_csv, export_json

app = typer.Typer(
    name="external-feed",
    help="Search and inspect listings from external property feeds",
)
console = Console()


class _State:
    config_path: Optional[Path] = None
    use_cache: bool = True


state = _State()


@app.callback()
def main(
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config.yaml"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging (includes request URLs)"),
    no_cache: bool = typer.Option(False, "--no-cache", help="Bypass the response cache"),
) -> None:
    """Global options."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
    state.config_path = config_path
    state.use_cache = not no_cache


def _get_manager() -> FeedManager:
    """Manager for the configured provider, with the DuckDB cache unless disabled."""
    try:
        cfg = load_config(state.config_path)
    except FileNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    settings = get_feed_settings(cfg)
    cache = None
    if state.use_cache and settings.cache_path:
        cache = FeedCache(
            settings.cache_path,
            namespace=settings.namespace,
            provider=settings.provider or "",
            ttls=settings.cache_ttls,
        )
    return FeedManager(settings, cache=cache)


def _require_configured(manager: FeedManager) -> None:
    if not manager.is_configured():
        console.print("[yellow]External feed is not enabled or no provider is set in config.[/yellow]")
        raise typer.Exit(1)
    try:
        manager.provider.ensure_configured()
    except FeedError as e:
        console.print(f"[red]{e}[/red]")
        console.print("[dim]Set credentials in config.yaml or .env (e.g. RESALES_ONLINE_API_KEY).[/dim]")
        raise typer.Exit(1)


def _display_properties(properties: list[NormalizedProperty], title: str) -> None:
    if not properties:
        console.print("[yellow]No properties found.[/yellow]")
        return

    table = Table(title=title)
    table.add_column("Ref", style="cyan")
    table.add_column("Title")
    table.add_column("Type", style="dim")
    table.add_column("City", style="dim")
    table.add_column("Price", justify="right")
    table.add_column("Beds", justify="right")
    table.add_column("Baths", justify="right")
    table.add_column("Built m²", justify="right")
    table.add_column("Status", justify="center")

    for p in properties:
        title_display = p.title[:40] + "..." if len(p.title) > 40 else p.title
        table.add_row(
            p.reference,
            title_display,
            p.property_type.value,
            p.city or "",
            p.formatted_price or "POA",
            str(p.bedrooms),
            f"{p.bathrooms:g}",
            str(p.built_area or ""),
            p.status.value,
        )

    console.print(table)


def _display_property(p: NormalizedProperty) -> None:
    table = Table(title=f"{p.reference} - {p.title}", show_header=False)
    table.add_column("Field", style="dim")
    table.add_column("Value")
    rows = [
        ("Type", f"{p.property_type.value} ({p.property_subtype or '-'})"),
        ("Listing", p.listing_type.value),
        ("Status", p.status.value),
        ("Price", p.formatted_price or "POA"),
        ("Location", p.full_location),
        ("Bedrooms", str(p.bedrooms)),
        ("Bathrooms", f"{p.bathrooms:g}"),
        ("Built / Plot / Terrace", f"{p.built_area} / {p.plot_area} / {p.terrace_area} m²"),
        ("Energy", p.energy_rating or "-"),
        ("Images", str(p.image_count)),
    ]
    if p.price_reduced:
        rows.append(("Reduced", f"{p.price_reduction_percent}%"))
    for category, values in p.features_by_category.items():
        rows.append((category, ", ".join(values)))
    for field, value in rows:
        table.add_row(field, value)
    console.print(table)
    if p.description:
        console.print(f"\n[dim]{p.description[:500]}[/dim]")


@app.command()
def search(
    listing_type: str = typer.Option("sale", "--type", "-t", help="sale or rental"),
    location: Optional[str] = typer.Option(None, "--location", "-l"),
    min_price: Optional[int] = typer.Option(None, "--min-price"),
    max_price: Optional[int] = typer.Option(None, "--max-price"),
    min_bedrooms: Optional[int] = typer.Option(None, "--beds"),
    min_bathrooms: Optional[int] = typer.Option(None, "--baths"),
    property_types: Optional[str] = typer.Option(None, "--property-types", help="Comma-separated type codes"),
    features: Optional[str] = typer.Option(None, "--features", help="Comma-separated features"),
    sort: Optional[str] = typer.Option(None, "--sort", "-s", help="price_asc, price_desc, newest, ..."),
    page: int = typer.Option(1, "--page", "-p"),
    per_page: Optional[int] = typer.Option(None, "--per-page", "-n"),
    locale: Optional[str] = typer.Option(None, "--locale", help="Defaults to the provider's default_locale"),
    json_path: Optional[Path] = typer.Option(None, "--json", help="Export result to JSON"),
    csv_path: Optional[Path] = typer.Option(None, "--csv", help="Export properties to CSV"),
) -> None:
    """Search the configured feed."""
    manager = _get_manager()
    _require_configured(manager)
    params = {
        "listing_type": listing_type,
        "location": location,
        "min_price": min_price,
        "max_price": max_price,
        "min_bedrooms": min_bedrooms,
        "min_bathrooms": min_bathrooms,
        "property_types": property_types,
        "features": features,
        "sort": sort,
        "page": page,
        "per_page": per_page,
        "locale": locale,
    }
    result = manager.search({k: v for k, v in params.items() if v is not None})
    manager.close()

    if result.has_error:
        console.print(f"[red]Search failed: {result.error}[/red]")
        raise typer.Exit(1)

    _display_properties(list(result), f"{manager.provider_display_name}: {result.results_range}")
    if result.next_page:
        console.print(f"[dim]Page {result.page} of {result.total_pages}. Next: --page {result.next_page}[/dim]")
    if json_path:
        export_json(result, json_path)
        console.print(f"  JSON: {json_path}")
    if csv_path:
        export_csv(result.properties, csv_path)
        console.print(f"  CSV:  {csv_path}")


@app.command()
def show(
    reference: str = typer.Argument(..., help="Provider reference"),
    listing_type: str = typer.Option("sale", "--type", "-t"),
    locale: Optional[str] = typer.Option(None, "--locale", help="Defaults to the provider's default_locale"),
) -> None:
    """Show one property."""
    manager = _get_manager()
    _require_configured(manager)
    prop = manager.find(reference, {"listing_type": listing_type, "locale": locale})
    manager.close()
    if prop is None:
        console.print(f"[yellow]Listing not found: {reference}[/yellow]")
        raise typer.Exit(1)
    _display_property(prop)


@app.command()
def similar(
    reference: str = typer.Argument(..., help="Reference of the seed property"),
    listing_type: str = typer.Option("sale", "--type", "-t"),
    limit: int = typer.Option(6, "--limit", "-n"),
    locale: Optional[str] = typer.Option(None, "--locale", help="Defaults to the provider's default_locale"),
) -> None:
    """Show properties similar to REFERENCE."""
    manager = _get_manager()
    _require_configured(manager)
    seed = manager.find(reference, {"listing_type": listing_type, "locale": locale})
    if seed is None:
        manager.close()
        console.print(f"[yellow]Listing not found: {reference}[/yellow]")
        raise typer.Exit(1)
    matches = manager.similar(seed, {"limit": limit, "locale": locale})
    manager.close()
    _display_properties(matches, f"Similar to {reference}")


@app.command()
def locations() -> None:
    """List location filter options."""
    manager = _get_manager()
    options = manager.locations()
    manager.close()
    for opt in options:
        console.print(f"{opt['value']}  [dim]{opt['label']}[/dim]")


@app.command()
def types() -> None:
    """List property type filter options."""
    manager = _get_manager()
    options = manager.property_types()
    manager.close()
    for opt in options:
        console.print(f"[bold]{opt['value']}[/bold]  {opt['label']}")
        for sub in opt.get("subtypes", []):
            console.print(f"  {sub['value']}  [dim]{sub['label']}[/dim]")


@app.command()
def check() -> None:
    """Report whether the feed is configured and reachable."""
    manager = _get_manager()
    name = manager.provider_display_name
    if not manager.is_configured():
        console.print(f"[yellow]{name}[/yellow]")
        raise typer.Exit(1)
    try:
        configured = manager.provider.is_configured()
    except FeedError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    available = manager.is_enabled()
    manager.close()
    console.print(f"Provider:   {name}")
    console.print(f"Configured: {'[green]yes[/green]' if configured else '[red]no[/red]'}")
    console.print(f"Available:  {'[green]yes[/green]' if available else '[red]no[/red]'}")
    if not available:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
