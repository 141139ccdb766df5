"""CLI entry point for pkgrater."""

import asyncio
import json
from pathlib import Path

# Load .env file if it exists
from dotenv import load_dotenv
load_dotenv()

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from pkgrater.adapters.base import PackageNotFoundError
from pkgrater.analyzers.pipeline import RatingPipeline
from pkgrater.config import Settings, configure_logging
from pkgrater.costs.aggregator import CostCalculationError
from pkgrater.costs.cache import JsonCostCache
from pkgrater.costs.store import PackageExistsError, PackageStore, UnknownPackageError
from pkgrater.models.schemas import PackageRecord, ScoreRecord
from pkgrater.monitoring import MetricsCollector

app = typer.Typer(help="Package trust scoring and dependency cost tool.")

console = Console()


@app.callback()
def main() -> None:
    """Configure logging from the environment before any command runs."""
    settings = Settings()
    configure_logging(settings.log_level, settings.log_file)


def parse_dependencies(values: list[str] | None) -> dict[str, str]:
    """Parse ``name=constraint`` pairs given on the command line.

    Raises:
        typer.BadParameter: If a value has no ``=`` or an empty name.
    """
    dependencies: dict[str, str] = {}
    for value in values or []:
        name, sep, constraint = value.partition("=")
        if not sep or not name.strip():
            raise typer.BadParameter(f"Expected name=constraint, got '{value}'", param_hint="--dep")
        dependencies[name.strip()] = constraint.strip() or "*"
    return dependencies


def _score_bar(score: float, width: int = 20) -> str:
    """Create a visual score bar."""
    filled = int(score * width)
    empty = width - filled
    color = "green" if score >= 0.8 else "yellow" if score >= 0.6 else "red"
    return f"[{color}]{'█' * filled}[/{color}][dim]{'░' * empty}[/dim]"


def _print_score(score: ScoreRecord, title: str) -> None:
    table = Table(title=title, show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Score", justify="right")
    table.add_column("", width=22)
    table.add_column("Latency", justify="right", style="dim")

    for name, metric in score.metrics.items():
        table.add_row(name, f"{metric.value:.2f}", _score_bar(metric.value), f"{metric.latency_seconds:.2f}s")
    table.add_row(
        "[bold]NetScore[/bold]",
        f"[bold]{score.net_score:.2f}[/bold]",
        _score_bar(min(score.net_score, 1.0)),
        f"{score.net_score_latency:.2f}s",
    )
    console.print(table)


def _print_package(record: PackageRecord) -> None:
    console.print()
    console.print(f"[bold cyan]{record.name}[/bold cyan] v{record.version}")
    console.print(f"[bold]ID:[/bold] {record.id}")
    if record.standalone_cost is not None:
        console.print(f"[bold]Size:[/bold] {record.standalone_cost:.3f} MB")
    if record.dependencies:
        console.print(f"[bold]Dependencies:[/bold] {len(record.dependencies)}")
    if record.score is not None:
        console.print()
        _print_score(record.score, "Score Breakdown")


@app.command()
def score(
    url: str = typer.Argument(..., help="GitHub repository or npm package URL"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Append the NDJSON rating to this file"),
) -> None:
    """Rate a repository and print its metric breakdown."""
    asyncio.run(_score(url, output))


async def _score(url: str, output: Path | None) -> None:
    """Async implementation of score."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        progress.add_task("Scoring repository...", total=None)
        async with RatingPipeline(Settings()) as pipeline:
            record = await pipeline.compute_score(url)

    _print_score(record, url)

    if output:
        row = {"URL": url, **record.to_ndjson()}
        with open(output, "a") as f:
            f.write(json.dumps(row) + "\n")
        console.print(f"\n[green]Appended to {output}[/green]")


@app.command()
def ingest(
    name: str = typer.Argument(..., help="npm package name"),
    version: str | None = typer.Option(None, "--version", "-v", help="Exact version (default: latest)"),
) -> None:
    """Add a package from the npm registry, scoring and costing it."""
    asyncio.run(_ingest(name, version))


async def _ingest(name: str, version: str | None) -> None:
    """Async implementation of ingest."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task(f"Ingesting {name}...", total=None)
        async with RatingPipeline(Settings()) as pipeline:
            try:
                record = await pipeline.ingest_package(name, version)
            except (PackageNotFoundError, PackageExistsError) as e:
                console.print(f"[red]{e}[/red]")
                raise typer.Exit(1)
            progress.update(task, description="Calculating dependency cost...")

    _print_package(record)


@app.command()
def register(
    name: str = typer.Argument(..., help="Package name"),
    version: str = typer.Argument(..., help="Package version"),
    size: float = typer.Option(..., "--size", "-s", min=0, help="Standalone size in MB"),
    dep: list[str] | None = typer.Option(None, "--dep", "-d", help="Dependency as name=constraint (repeatable)"),
    url: str | None = typer.Option(None, "--url", help="Repository URL to score"),
) -> None:
    """Register a package whose size and dependencies are known."""
    dependencies = parse_dependencies(dep)
    asyncio.run(_register(name, version, size, dependencies, url))


async def _register(
    name: str,
    version: str,
    size: float,
    dependencies: dict[str, str],
    url: str | None,
) -> None:
    """Async implementation of register."""
    async with RatingPipeline(Settings()) as pipeline:
        try:
            record = await pipeline.register_package(name, version, size, dependencies, url=url)
        except PackageExistsError as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(1)
    _print_package(record)


@app.command()
def cost(
    package_id: str = typer.Argument(..., help="Package ID"),
    dependencies: bool = typer.Option(False, "--dependencies", help="Include every dependency's cost"),
) -> None:
    """Show the standalone and total dependency cost of a package."""
    asyncio.run(_cost(package_id, dependencies))


async def _cost(package_id: str, include_dependencies: bool) -> None:
    """Async implementation of cost."""
    async with RatingPipeline(Settings()) as pipeline:
        try:
            costs = await pipeline.get_cost(package_id, include_dependencies=include_dependencies)
        except UnknownPackageError as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(1)
        except CostCalculationError as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(1)
        records = {pid: pipeline.store.find(pid) for pid in costs}

    table = Table(title=f"Cost of {package_id}")
    table.add_column("ID", style="dim")
    table.add_column("Package", style="cyan")
    table.add_column("Standalone (MB)", justify="right")
    table.add_column("Total (MB)", justify="right")

    for pid, entry in costs.items():
        record = records.get(pid)
        label = f"{record.name}@{record.version}" if record else "-"
        table.add_row(pid, label, f"{entry.standalone_cost:.3f}", f"{entry.total_cost:.3f}")

    console.print(table)


@app.command()
def search(
    name: str = typer.Argument("*", help="Package name, or * for all"),
    version: str = typer.Option("*", "--version", "-v", help="Version constraint (exact, ^, ~ or range)"),
) -> None:
    """Search registered packages by name and version constraint."""
    results = PackageStore(Settings().packages_file).search(name, version)

    if not results:
        console.print("[yellow]No matching packages[/yellow]")
        return

    table = Table(title=f"{len(results)} packages")
    table.add_column("Name", style="cyan")
    table.add_column("Version")
    table.add_column("ID", style="dim")
    table.add_column("Size (MB)", justify="right")
    table.add_column("NetScore", justify="right")

    for record in results:
        size = f"{record.standalone_cost:.3f}" if record.standalone_cost is not None else "-"
        net = f"{record.score.net_score:.2f}" if record.score else "-"
        table.add_row(record.name, record.version, record.id, size, net)

    console.print(table)


@app.command()
def reset(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Remove every registered package and cached cost."""
    if not yes:
        typer.confirm("Delete every package and cached cost?", abort=True)
    settings = Settings()
    PackageStore(settings.packages_file).reset()
    JsonCostCache(settings.cost_cache_file).reset()
    console.print("[green]Registry reset[/green]")


@app.command()
def stats() -> None:
    """Show scoring and cost calculation statistics."""
    metrics = MetricsCollector(Settings().metrics_file).get_metrics()

    table = Table(title="Statistics", show_header=False, box=None)
    table.add_column("Key", style="bold")
    table.add_column("Value")
    table.add_row("Score runs", f"{metrics.score_runs} ({metrics.zeroed_runs} zeroed)")
    if metrics.average_net_score is not None:
        table.add_row("Average NetScore", f"{metrics.average_net_score:.2f}")
    table.add_row("Costs completed", str(metrics.costs_completed))
    table.add_row("Costs failed", str(metrics.costs_failed))
    table.add_row("Cost cache hits", str(metrics.cost_cache_hits))
    if metrics.average_cost_seconds is not None:
        table.add_row("Average cost time", f"{metrics.average_cost_seconds:.2f}s")
    console.print(table)

    if metrics.scorer_timings:
        console.print()
        scorers = Table(title="Scorers")
        scorers.add_column("Metric", style="cyan")
        scorers.add_column("Runs", justify="right")
        scorers.add_column("Failures", justify="right")
        scorers.add_column("Avg latency", justify="right")
        for name, avg in sorted(metrics.scorer_timings.items()):
            scorers.add_row(
                name,
                str(metrics.scorer_counts.get(name, 0)),
                str(metrics.scorer_failures.get(name, 0)),
                f"{avg:.2f}s",
            )
        console.print(scorers)

    if metrics.recent_errors:
        console.print()
        console.print("[bold red]Recent errors:[/bold red]")
        for error in metrics.recent_errors:
            console.print(f"  [red]x[/red] {error.subject}: {error.error_type}: {error.message}")


@app.command()
def version() -> None:
    """Show version information."""
    from pkgrater import __version__

    console.print(f"pkgrater v{__version__}")


if __name__ == "__main__":
    app()
