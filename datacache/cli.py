"""Command line interface for datacache."""

import importlib
import sys
from typing import Any, Callable, Optional

import click
from rich.console import Console
from rich.table import Table

from .cache import DataCache
from .config import config_manager
from .errors import ConfigurationError, create_user_friendly_error
from .frequencies import DEFAULT_STALE
from .inventory import AGE_UNITS
from . import __version__


def import_loader(spec: str) -> Callable[..., Any]:
    """Import a loader given as ``module:function``.

    Args:
        spec: Import path of the loader

    Returns:
        The loader function
    """
    module_name, sep, attr = spec.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigurationError(f"Loader must be given as module:function, got '{spec}'")

    obj: Any = importlib.import_module(module_name)
    for part in attr.split("."):
        obj = getattr(obj, part)

    if not callable(obj):
        raise ConfigurationError(f"Loader '{spec}' is not callable")
    return obj


def _fail(ctx: click.Context, action: str, error: Exception) -> None:
    """Report an error and exit with status 1."""
    click.echo(f"Error {action}: {create_user_friendly_error(error)}", err=True)
    if ctx.obj and ctx.obj.get("verbose"):
        click.echo(f"Details: {error!r}", err=True)
    ctx.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config", "-c", type=click.Path(exists=True), help="Path to configuration file"
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--cache-dir", "-d", default=None, help="Directory containing the cached data files")
@click.option("--cache-name", "-n", default=None, help="Name of the cache")
@click.pass_context
def cli(
    ctx: click.Context,
    config: Optional[str],
    verbose: bool,
    cache_dir: Optional[str],
    cache_name: Optional[str],
):
    """datacache - disk-backed cache for periodically refreshed data."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["console"] = Console()

    try:
        if config:
            config_manager.config_path = config
            config_manager.reload()
        ctx.obj["config"] = config_manager.config
    except ConfigurationError as e:
        _fail(ctx, "loading configuration", e)

    overrides = {}
    if cache_dir:
        overrides["cache_dir"] = cache_dir
    if cache_name:
        overrides["cache_name"] = cache_name
    ctx.obj["overrides"] = overrides


def _get_cache(ctx: click.Context, **extra: Any) -> DataCache:
    options = dict(ctx.obj["overrides"])
    options.update(extra)
    return DataCache.from_config(ctx.obj["config"], **options)


@cli.command()
@click.option(
    "--units",
    "-u",
    type=click.Choice(list(AGE_UNITS)),
    default=None,
    help="Units used for snapshot ages",
)
@click.pass_context
def info(ctx: click.Context, units: Optional[str]):
    """List cached snapshots, most recent first."""
    console = ctx.obj["console"]
    units = units or ctx.obj["config"].output.age_units

    try:
        cache = _get_cache(ctx)
        records = cache.info(units=units)
    except Exception as e:
        _fail(ctx, "reading cache", e)
        return

    if not records:
        console.print(f"[yellow]No snapshots found for '{cache.cache_name}' in {cache.cache_dir}[/yellow]")
        return

    table = Table(title=f"Cache '{cache.cache_name}'", show_header=True, header_style="bold blue")
    table.add_column("File", style="cyan")
    table.add_column("Created")
    table.add_column(f"Age ({units})", justify="right")
    for name in DEFAULT_STALE:
        table.add_column(name.capitalize(), justify="center")

    for record in records:
        table.add_row(
            record.file_name,
            f"{record.created:%Y-%m-%d %H:%M:%S}",
            f"{record.age:,.1f}",
            *("[red]stale[/red]" if record.stale[name] else "[green]fresh[/green]" for name in DEFAULT_STALE),
        )

    console.print(table)


@cli.command()
@click.pass_context
def status(ctx: click.Context):
    """Show the current snapshot and refresh lock."""
    console = ctx.obj["console"]

    try:
        cache = _get_cache(ctx)
        records = cache.info(stale={"stale": cache.frequency})
        lock = cache.lock_info()
    except Exception as e:
        _fail(ctx, "reading cache", e)
        return

    console.print(f"[bold cyan]Cache '{cache.cache_name}'[/bold cyan]")
    console.print(f"[dim]Directory:[/dim] {cache.cache_dir}")
    console.print(f"[dim]Snapshots:[/dim] {len(records)}")

    if records:
        current = records[0]
        state = "[red]stale[/red]" if current.stale["stale"] else "[green]fresh[/green]"
        console.print(
            f"[dim]Current:[/dim] {current.file_name} "
            f"({current.age:,.1f} {current.units} old, {state})"
        )

    if lock:
        console.print(
            f"[yellow]Refresh in progress[/yellow] since {lock.claimed_at:%Y-%m-%d %H:%M:%S} "
            f"({lock.age_seconds:,.0f}s, pid {lock.pid or 'unknown'})"
        )
    else:
        console.print("[dim]No refresh in progress[/dim]")


@cli.command()
@click.argument("loader")
@click.option("--frequency", "-f", default=None, help="Staleness policy (daily, 6h, ...)")
@click.option("--wait", "-w", is_flag=True, help="Wait for stale data to be refreshed")
@click.pass_context
def fetch(ctx: click.Context, loader: str, frequency: Optional[str], wait: bool):
    """Fetch data through the cache using LOADER (module:function)."""
    console = ctx.obj["console"]
    extra: dict = {}
    if frequency:
        extra["frequency"] = frequency
    if wait:
        extra["wait"] = True

    values: dict = {}
    try:
        cache = _get_cache(ctx, **extra)
        timestamp = cache.fetch(import_loader(loader), envir=values)
    except Exception as e:
        _fail(ctx, "fetching data", e)
        return

    console.print(f"[green]Data from {timestamp:%Y-%m-%d %H:%M:%S}[/green]")
    for name in sorted(values):
        console.print(f"  {name}: [dim]{type(values[name]).__name__}[/dim]")


@cli.command()
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def unlock(ctx: click.Context, yes: bool):
    """Remove an orphaned refresh lock."""
    try:
        cache = _get_cache(ctx)
        lock = cache.lock_info()
    except Exception as e:
        _fail(ctx, "reading lock", e)
        return

    if lock is None:
        click.echo("No refresh lock found.")
        return

    if not yes:
        if not click.confirm(
            f"Lock held for {lock.age_seconds:,.0f}s by pid {lock.pid or 'unknown'}. Remove it?"
        ):
            click.echo("Cancelled.")
            return

    cache.unlock()
    click.echo(f"Removed {lock.path}")


def main():
    """Entry point for the datacache command."""
    cli(obj={})


if __name__ == "__main__":
    sys.exit(main())
