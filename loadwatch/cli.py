"""Command-line entry point.

    loadwatch --url https://example.com/ --stream results.jsonl -o out.json

The remote engine is external; ``--stream`` names a recorded stream of
result envelopes (JSON lines, ``-`` for stdin) that is replayed through
the live dashboard exactly as a live run would be.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

import click
from dotenv import load_dotenv
from rich.console import Console

from loadwatch import __version__
from loadwatch.config import ConfigError, ConfigOverrides, build_config
from loadwatch.engine import Engine, ReplayEngine
from loadwatch.log import configure_cli_logging
from loadwatch.models import FinalResult
from loadwatch.monitor import ResultSlot, run_dashboard_session
from loadwatch.summary import report_final_result
from loadwatch.surface import RichSurface, Surface, SurfaceInitError

# Load environment variables from .env file
load_dotenv(override=True)

logger = logging.getLogger(__name__)


def run_session(
    engine: Engine,
    *,
    surface_factory: Callable[[], Surface] = RichSurface,
    console: Console | None = None,
    poll_keys: bool | None = None,
) -> FinalResult:
    """Run the dashboard, then always report whatever results arrived.

    Raises:
        SurfaceInitError: If the terminal cannot be taken over. No summary
            is printed in that case.
    """
    console = console or Console()
    try:
        surface = surface_factory()
    except SurfaceInitError:
        engine.clean()
        raise

    slot = ResultSlot()
    try:
        try:
            asyncio.run(
                run_dashboard_session(engine, surface, slot=slot, poll_keys=poll_keys)
            )
        finally:
            engine.clean()
    finally:
        report_final_result(slot.to_final(), engine.config.output, console)
    return slot.to_final()


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("-u", "--url", default=None, help="URL to load test")
@click.option("-m", "--method", default=None, help="HTTP method [default: GET]")
@click.option("-b", "--body", default=None, help="HTTP request body")
@click.option(
    "-c", "--concurrency", type=int, default=None,
    help="Number of concurrent requests [default: 10]",
)
@click.option(
    "-n", "--requests", type=int, default=None,
    help="Total number of requests to make [default: 1000]",
)
@click.option(
    "-N", "--timelimit", type=int, default=None,
    help="Seconds to max. to spend on benchmarking [default: 3600]",
)
@click.option(
    "-t", "--timeout", type=int, default=None,
    help="Request timeout in seconds [default: 15]",
)
@click.option(
    "-r", "--region", "regions", multiple=True,
    help="Region to run in (repeat, or comma-separate, for more than one)",
)
@click.option("-p", "--profile", default=None, help="Cloud credentials profile to use")
@click.option(
    "-o", "--output", default=None,
    help="Optional path to JSON file for result storage",
)
@click.option(
    "-H", "--header", "headers", multiple=True,
    help="HTTP request header (repeat for more than one)",
)
@click.option(
    "-s", "--settings", type=click.Path(exists=True, dir_okay=False), default=None,
    help="Load settings from file [default: loadwatch.toml]",
)
@click.option(
    "--stream", "stream_path", required=True,
    type=click.Path(exists=True, dir_okay=False, allow_dash=True),
    help="Recorded result stream to replay (JSON lines, '-' for stdin)",
)
@click.option(
    "--delay", type=float, default=0.0, show_default=True,
    help="Seconds between replayed envelopes",
)
@click.option("-v", "--verbose", is_flag=True, help="Debug-level log file")
@click.version_option(__version__, prog_name="loadwatch")
def main(
    url: str | None,
    method: str | None,
    body: str | None,
    concurrency: int | None,
    requests: int | None,
    timelimit: int | None,
    timeout: int | None,
    regions: tuple[str, ...],
    profile: str | None,
    output: str | None,
    headers: tuple[str, ...],
    settings: str | None,
    stream_path: str,
    delay: float,
    verbose: bool,
) -> None:
    """Live dashboard for a distributed load-test run.

    Shows per-region statistics while results stream in, then prints a
    summary (and writes a JSON export with --output). Press ctrl-c to stop
    early; partial results are still reported.
    """
    overrides = ConfigOverrides(
        url=url,
        method=method,
        body=body,
        concurrency=concurrency,
        requests=requests,
        timelimit=timelimit,
        timeout=timeout,
        regions=regions or None,
        profile=profile,
        output=output,
        headers=headers or None,
        settings=settings,
    )
    try:
        config = build_config(overrides)
    except ConfigError as e:
        raise click.UsageError(str(e)) from e

    log_file = configure_cli_logging("loadwatch", verbose=verbose)
    logger.info(
        "Run: %s %s, regions=%s, requests=%d, timelimit=%ds (log: %s)",
        config.method,
        config.url,
        ",".join(config.regions),
        config.requests,
        config.timelimit,
        log_file,
    )

    engine = ReplayEngine(config, stream_path, delay=delay)
    try:
        run_session(engine)
    except SurfaceInitError as e:
        logger.error("Terminal initialization failed: %s", e)
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1) from e


if __name__ == "__main__":
    main()
