"""CLI interface for rent-scout."""

import json
import logging
from pathlib import Path
from typing import Any

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from sqlalchemy.exc import SQLAlchemyError

from rent_scout import __version__
from rent_scout.config import load_settings
from rent_scout.database.engine import get_session, init_db
from rent_scout.database.persistence import PersistenceEngine
from rent_scout.domain.search_url import QueryId, SearchUrl
from rent_scout.exceptions import RentScoutError
from rent_scout.scrapers.station_crawler import get_url_station_info

app = typer.Typer(
    name="rent-scout",
    help="Station-aware rental listing crawler for 591.com.tw searches",
    add_completion=False,
)
console = Console()


def output_json(data: Any) -> None:
    """Output JSON to stdout."""
    print(json.dumps(data, indent=2, ensure_ascii=False))


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"rent-scout version {__version__}")
        raise typer.Exit()


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        help="Log progress and debug details to stderr.",
    ),
) -> None:
    """Station-aware rental listing crawler."""
    configure_logging(verbose)


@app.command()
def init_database(
    db_path: Path | None = typer.Option(
        None,
        "--db",
        "-d",
        help="Path to SQLite database file.",
    ),
    echo: bool = typer.Option(
        False,
        "--echo",
        help="Show SQL statements.",
    ),
) -> None:
    """Initialize the database, creating all tables."""
    console.print("[bold blue]Initializing database...[/bold blue]")

    try:
        init_db(db_path, echo=echo)
        db_location = db_path or "data/rent_scout.db"
        console.print(f"[green]Database initialized at: {db_location}[/green]")
    except Exception as e:
        console.print(f"[red]Error initializing database: {e}[/red]")
        raise typer.Exit(1) from e


@app.command()
def stations(
    url: str = typer.Argument(..., help="Search URL to analyze."),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON.",
    ),
) -> None:
    """Show the station facet of a search URL."""
    info = get_url_station_info(url)

    if json_output:
        output_json(info)
        if not info["is_valid"]:
            raise typer.Exit(1)
        return

    if not info["is_valid"]:
        console.print(f"[red]Invalid search URL: {url}[/red]")
        raise typer.Exit(1)

    if not info["stations"]:
        console.print("[yellow]No station filter in this search.[/yellow]")
        return

    mode = "multi-station" if info["has_multiple"] else "single station"
    console.print(f"[bold]{info['station_count']} station(s)[/bold] ({mode})")
    search_url = SearchUrl(url)
    table = Table(title="Station URLs")
    table.add_column("Station", style="cyan")
    table.add_column("URL", style="white")
    for station_id in info["stations"]:
        table.add_row(station_id, str(search_url.with_station(station_id)))
    console.print(table)


@app.command()
def query_info(
    url: str = typer.Argument(..., help="Search URL to analyze."),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON.",
    ),
) -> None:
    """Show the canonical query id and description of a search URL."""
    search_url = SearchUrl(url)
    if not search_url.is_valid:
        if json_output:
            output_json({"error": f"Invalid search URL: {url}"})
        else:
            console.print(f"[red]Invalid search URL: {url}[/red]")
        raise typer.Exit(1)

    query_id = search_url.query_id() or "unknown"
    parsed = QueryId.parse(query_id)
    data = {
        "query_id": query_id,
        "description": search_url.description(),
        "region": parsed.region,
        "kind": parsed.kind,
        "stations": parsed.stations,
        "metro": parsed.metro,
        "price": parsed.price,
        "sections": parsed.sections,
        "rooms": parsed.rooms,
        "floor": parsed.floor,
        "group_hash": parsed.group_hash(),
    }

    if json_output:
        output_json(data)
        return

    console.print(f"[bold]Query ID:[/bold] {query_id}")
    console.print(f"[bold]Description:[/bold] {data['description']}")
    console.print(f"[bold]Group:[/bold] {data['group_hash']}")


@app.command(name="import")
def import_listings(
    url: str = typer.Argument(..., help="Search URL the listings were found under."),
    file: Path = typer.Argument(..., help="JSON file with a list of parsed listings."),
    config: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to crawler config YAML file.",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON.",
    ),
) -> None:
    """Persist a JSON file of parsed listings for a search URL."""
    try:
        settings = load_settings(config)
        with open(file, "r", encoding="utf-8") as f:
            listings = json.load(f)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        if json_output:
            output_json({"status": "error", "error": str(e)})
        else:
            console.print(f"[red]Error reading input: {e}[/red]")
        raise typer.Exit(1) from e

    init_db()

    try:
        with get_session() as session:
            engine = PersistenceEngine(
                session, settings.persistence, allowed_hosts=settings.allowed_hosts
            )
            result = engine.save(url, listings)
    except (TypeError, RentScoutError, ValidationError, SQLAlchemyError) as e:
        if json_output:
            output_json({"status": "error", "error": str(e)})
        else:
            console.print(f"[red]Error saving listings: {e}[/red]")
        raise typer.Exit(1) from e

    if json_output:
        output_json({"status": "success", "results": result.model_dump()})
        return

    console.print(f"[green]Saved {result.saved_count} listings for {result.query_id}[/green]")
    console.print(f"  Session: #{result.session_id}")
    console.print(f"  New: {result.new_count}")
    console.print(f"  Updated: {result.updated_count}")
    console.print(f"  Unchanged: {result.unchanged_count}")
    console.print(f"  Failed: {result.failed_count}")
    console.print(f"  Skipped (no identity): {result.skipped_count}")


@app.command()
def existing(
    query_id: str = typer.Argument(..., help="Canonical query id."),
    config: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to crawler config YAML file.",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON.",
    ),
) -> None:
    """Show how many listings have ever appeared for a query."""
    settings = load_settings(config)
    init_db()

    with get_session() as session:
        engine = PersistenceEngine(session, settings.persistence)
        identities = sorted(engine.existing_identities_for_query(query_id))

    if json_output:
        output_json({"query_id": query_id, "count": len(identities), "identities": identities})
        return

    if not identities:
        console.print(f"[yellow]No listings stored for {query_id}.[/yellow]")
        return
    console.print(f"[bold]{len(identities)}[/bold] listings stored for {query_id}")
