"""Command line interface for aq.fusion.

This module uses the Typer library to expose the combine engine: a single
combined reading for a coordinate, a listing of the configured sources and a
batch run over a CSV of locations.

Usage examples::

    # combined reading for Denver, with the per-source breakdown
    python -m aq.fusion.cli combine --lat 39.7392 --lon -104.9903 --table

    # machine-readable output
    python -m aq.fusion.cli combine --lat 39.7392 --lon -104.9903 --json

    # which sources are enabled and have credentials
    python -m aq.fusion.cli sources

    # combine every row of a locations CSV and write the results
    python -m aq.fusion.cli batch locations.csv data/combined.csv
"""
from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import List, Tuple

import typer
from rich.console import Console
from rich.table import Table

from .engine import combine as combine_reading
from .config import load_settings
from .messages import confidence_indicator, data_source_message, discrepancy_message
from .models import CombinedReading
from .report import batch_frame, export_to_csv, load_locations, readings_frame
from .utils import configure_logging


app = typer.Typer(add_completion=False, help="Multi-source air quality reconciliation")
console = Console()


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs")) -> None:
    configure_logging(verbose)


def _print_reading(reading: CombinedReading, table: bool) -> None:
    console.print(
        f"[bold]AQI {reading.aqi:g}[/bold] ({reading.level.value}) "
        f"confidence {reading.confidence.value} {confidence_indicator(reading.confidence)}"
    )
    console.print(data_source_message(reading.sources))
    warning = discrepancy_message(reading)
    if warning:
        console.print(f"[yellow]{warning}[/yellow]")
    if reading.error:
        console.print(f"[bold red]{reading.error}[/bold red]")
    if table:
        df = readings_frame(reading)
        grid = Table(*[str(c) for c in df.columns])
        for row in df.itertuples(index=False):
            grid.add_row(*[f"{v:g}" if isinstance(v, float) else str(v) for v in row])
        console.print(grid)


@app.command()
def combine(
    lat: float = typer.Option(..., "--lat", help="Latitude in decimal degrees"),
    lon: float = typer.Option(..., "--lon", help="Longitude in decimal degrees"),
    as_json: bool = typer.Option(False, "--json", help="Print the reading as JSON"),
    table: bool = typer.Option(False, "--table", help="Show the per-source breakdown"),
) -> None:
    """Fetch every enabled source for a coordinate and print the combined reading."""
    if not (-90 <= lat <= 90) or not (-180 <= lon <= 180):
        raise typer.BadParameter("latitude must be in [-90, 90] and longitude in [-180, 180]")
    settings = load_settings()
    reading = asyncio.run(combine_reading(lat, lon, settings=settings))
    if as_json:
        typer.echo(json.dumps(reading.to_dict(), indent=2, ensure_ascii=False))
        return
    _print_reading(reading, table)


@app.command()
def sources() -> None:
    """List the enabled sources, their weights and whether a key is set."""
    settings = load_settings()
    grid = Table("source", "weight", "api key")
    for sid in settings.enabled_sources:
        key_state = "[green]configured[/green]" if settings.api_key(sid) else "[red]missing[/red]"
        grid.add_row(sid, f"{settings.weights.get(sid, 0.0):g}", key_state)
    console.print(grid)
    if not settings.enabled_sources:
        typer.echo("No sources enabled", err=True)


@app.command()
def batch(
    input_csv: Path = typer.Argument(..., exists=True, dir_okay=False, help="CSV with name,latitude,longitude"),
    output_csv: Path = typer.Argument(Path("data/combined.csv"), help="Where to write the results"),
) -> None:
    """Combine readings for every location in a CSV file."""
    settings = load_settings()
    try:
        locations = load_locations(input_csv)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    async def _run() -> List[Tuple[str, float, float, CombinedReading]]:
        rows = list(locations.itertuples(index=False))
        readings = await asyncio.gather(
            *[combine_reading(float(r.latitude), float(r.longitude), settings=settings) for r in rows]
        )
        return [(str(r.name), float(r.latitude), float(r.longitude), c) for r, c in zip(rows, readings)]

    results = asyncio.run(_run())
    export_to_csv(batch_frame(results), output_csv)
    typer.echo(f"Combined {len(results)} locations -> {output_csv}")


if __name__ == "__main__":  # pragma: no cover
    app()
