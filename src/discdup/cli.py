"""Command-line interface for discdup."""

import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import DiscdupConfig, create_sample_config, load_config
from .core.runner import DiscdupRunner
from .disc.sensor import create_sensor
from .error_handling import (
    ConfigurationError,
    DiscdupError,
    check_dependencies,
    graceful_exit,
    handle_error,
)
from .naming import NamingStrategy, create_naming
from .process_lock import ProcessLock

console = Console()


def setup_logging(
    *,
    verbose: bool = False,
    config: DiscdupConfig | None = None,
) -> None:
    """Set up logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO

    # Clean up existing handlers first to prevent resource leaks
    cleanup_logging()

    show_path = level == logging.DEBUG
    handlers: list[logging.Handler] = [
        RichHandler(console=console, rich_tracebacks=True, show_path=show_path),
    ]

    if config and config.log_dir:
        config.log_dir.mkdir(parents=True, exist_ok=True)
        log_file = config.log_dir / "discdup.log"
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            ),
        )
        handlers.append(file_handler)

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=handlers,
        force=True,
    )


def cleanup_logging() -> None:
    """Clean up logging handlers to prevent ResourceWarnings."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        if isinstance(handler, logging.FileHandler):
            handler.close()
            root_logger.removeHandler(handler)


def build_naming(config: DiscdupConfig, prefix: str | None = None) -> NamingStrategy:
    """Create the naming policy, prompting for a base name until one is valid."""
    if config.naming_scheme == "label":
        return create_naming(config)

    prefix = prefix or config.base_name
    while True:
        if not prefix:
            prefix = click.prompt(
                "Base name for the destination folders (e.g. CD_ARCHIVE_)",
                default="",
                show_default=False,
            )
        try:
            return create_naming(config, prefix)
        except ValueError as e:
            console.print(f"[yellow]{e}. Try again.[/yellow]")
            prefix = None


def ensure_tools(config: DiscdupConfig) -> None:
    """Exit if the copy tool is missing; only warn about the eject tool."""
    fatal = False
    for dep in check_dependencies(config):
        if dep.required:
            fatal = True
            console.print(f"[red]✗[/red] {dep.message}")
        else:
            console.print(f"[yellow]⚠[/yellow] {dep.message}")
        if dep.solution:
            console.print(f"  [dim]{dep.solution}[/dim]")
    if fatal:
        sys.exit(1)


def _run_until_stopped(target, *args) -> None:
    """Run a session and exit with a summary of how it ended."""
    try:
        target(*args)
    except (DiscdupError, OSError) as e:
        handle_error(e)
        graceful_exit(1)
    graceful_exit(0)


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Configuration file path",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx: click.Context, config: Path | None, verbose: bool) -> None:
    """discdup - Unattended bulk copying of CDs and DVDs."""
    try:
        ctx.ensure_object(dict)
        loaded_config = load_config(config)
        ctx.obj["config"] = loaded_config
        ctx.obj["verbose"] = verbose

        setup_logging(verbose=verbose, config=loaded_config)
    except (OSError, ValueError, RuntimeError) as e:
        ConfigurationError(
            f"Failed to load configuration: {e}",
            config_path=config,
            original_error=e,
        ).display_to_user()
        sys.exit(1)


@cli.group("config")
@click.pass_context
def config_cmd(ctx: click.Context) -> None:
    """Configuration management commands."""


@config_cmd.command("show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Show current configuration."""
    config: DiscdupConfig = ctx.obj["config"]

    table = Table()
    table.add_column("Setting")
    table.add_column("Value")

    table.add_row("Drives", ", ".join(str(slot) for slot in config.drives))
    table.add_row("Destination Root", str(config.destination_root))
    table.add_row("Copy Log", str(config.log_file))
    table.add_row("Log Directory", str(config.log_dir))
    table.add_row("Naming Scheme", config.naming_scheme)
    if config.naming_scheme == "counter":
        table.add_row("Base Name", config.base_name or "Prompted at start")
        table.add_row("Counter Start", str(config.counter_start))
    table.add_row("Poll Interval", f"{config.poll_interval}s")
    table.add_row("HTTP API", f"http://{config.api_host}:{config.api_port}")
    table.add_row("Ntfy Topic", config.ntfy_topic or "Not configured")

    console.print(table)


@config_cmd.command("validate")
@click.pass_context
def config_validate(ctx: click.Context) -> None:
    """Validate current configuration."""
    config: DiscdupConfig = ctx.obj["config"]

    console.print("[bold]Configuration Validation[/bold]")

    errors = []

    for name, path in [
        ("Destination", config.destination_root),
        ("Copy log", config.log_file.parent),
        ("Log", config.log_dir),
    ]:
        try:
            path.mkdir(parents=True, exist_ok=True)
            console.print(f"[green]✓[/green] {name} directory: {path}")
        except OSError as e:
            console.print(f"[red]✗[/red] {name} directory: {e}")
            errors.append(f"{name} directory: {e}")

    if config.naming_scheme == "counter" and config.base_name:
        try:
            create_naming(config)
            console.print(f"[green]✓[/green] Base name: {config.base_name}")
        except ValueError as e:
            console.print(f"[red]✗[/red] Base name: {e}")
            errors.append(f"Base name: {e}")

    for dep in check_dependencies(config):
        console.print(f"[yellow]⚠[/yellow] {dep.message}")

    if errors:
        console.print(f"\n[red]Found {len(errors)} configuration errors[/red]")
        sys.exit(1)
    else:
        console.print("\n[green]Configuration is valid[/green]")


@config_cmd.command("init")
@click.option(
    "--path",
    "-p",
    type=click.Path(path_type=Path),
    default=Path.home() / ".config" / "discdup" / "config.toml",
    help="Path for the configuration file",
)
def config_init(path: Path) -> None:
    """Create a sample configuration file."""
    try:
        create_sample_config(path)
        console.print(f"[green]Created sample configuration at {path}[/green]")
        console.print("Please edit the configuration file with your settings.")
    except OSError as e:
        console.print(f"[red]Error creating configuration: {e}[/red]")
        sys.exit(1)


@cli.command()
@click.pass_context
def drives(ctx: click.Context) -> None:
    """Show which configured drives currently hold a disc."""
    config: DiscdupConfig = ctx.obj["config"]
    sensor = create_sensor(config)

    table = Table()
    table.add_column("Drive")
    table.add_column("Media")
    table.add_column("Label")
    table.add_column("Source")

    for slot in config.drives:
        media = sensor.query(slot)
        source = "-"
        if media.present:
            source = media.mount_point or slot.source_root or "[red]not mounted[/red]"
        table.add_row(
            str(slot),
            "[green]Disc loaded[/green]" if media.present else "[dim]Empty[/dim]",
            media.label or "-",
            source,
        )

    console.print(table)


@cli.command()
@click.option("--prefix", "-p", help="Base name for counter-named folders")
@click.pass_context
def run(ctx: click.Context, prefix: str | None) -> None:
    """Start copying now; Ctrl+C stops after the current pass."""
    config: DiscdupConfig = ctx.obj["config"]

    ensure_tools(config)
    naming = build_naming(config, prefix)

    console.print(
        f"\nMonitoring {', '.join(str(s) for s in config.drives)}. "
        "Press Ctrl+C to stop after the current pass.",
    )
    _run_until_stopped(DiscdupRunner(config, naming).run_console)


@cli.command()
@click.option("--host", help="Address to bind (default from config)")
@click.option("--port", type=int, help="Port to bind (default from config)")
@click.option("--prefix", "-p", help="Base name for counter-named folders")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None, prefix: str | None) -> None:
    """Serve the HTTP control API; copying starts on POST /api/start."""
    config: DiscdupConfig = ctx.obj["config"]

    ensure_tools(config)
    naming = build_naming(config, prefix)

    _run_until_stopped(DiscdupRunner(config, naming).run_server, host, port)


@cli.command()
@click.pass_context
def stop(ctx: click.Context) -> None:
    """Ask a running discdup to stop after its current pass."""
    config: DiscdupConfig = ctx.obj["config"]
    pid = ProcessLock(config).read_pid()

    if pid is None:
        console.print("[yellow]discdup is not running[/yellow]")
        return

    if ProcessLock.request_stop(pid):
        console.print(f"[green]Stop requested (PID {pid}). It halts after the current pass.[/green]")
    else:
        console.print(f"[red]Failed to signal discdup process {pid}[/red]")
        sys.exit(1)


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
