"""CLI entrypoint for the treasury oracle."""

from __future__ import annotations

import asyncio
import json
import os
import sys
from enum import Enum
from pathlib import Path
from typing import Annotated, Any

import typer
from pydantic import ValidationError

from .domain import TreasurySnapshot
from .logger import get_logger, setup_logging
from .settings import TreasurySettings

logger = get_logger(__name__)


class OutputFormat(str, Enum):
    TABLE = "table"
    JSON = "json"


app = typer.Typer(
    add_completion=False,
    no_args_is_help=False,
    add_help_option=True,
    pretty_exceptions_enable=True,
    pretty_exceptions_short=True,
    pretty_exceptions_show_locals=False,
    rich_markup_mode="rich",
    help="Reconciled multi-provider balances for the DAO treasury.",
)


def _render(snapshot: TreasurySnapshot, output: OutputFormat) -> None:
    match output:
        case OutputFormat.JSON:
            typer.echo(json.dumps(snapshot.to_dict(), indent=2))
        case OutputFormat.TABLE:
            from .report import format_snapshot_table

            format_snapshot_table(snapshot)


async def _run_once(settings: TreasurySettings, force: bool) -> TreasurySnapshot:
    from .aggregator import TreasuryAggregator

    aggregator = TreasuryAggregator.from_settings(settings)
    aggregator.load_from_cache()
    return await aggregator.refresh(force=force)


async def _watch(settings: TreasurySettings, output: OutputFormat) -> None:
    from .aggregator import TreasuryAggregator

    aggregator = TreasuryAggregator.from_settings(settings)
    aggregator.channel.subscribe(lambda snapshot: _render(snapshot, output))
    await aggregator.start()
    try:
        await asyncio.Event().wait()
    finally:
        await aggregator.stop()


@app.callback(invoke_without_command=True)
def report(
    config_path: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to a TOML config file (can include [treasury_oracle] table).",
        ),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            help="Override logging verbosity (TRACE, DEBUG, INFO, WARNING, ERROR, CRITICAL).",
        ),
    ] = None,
    force: Annotated[
        bool,
        typer.Option(
            "--force/--no-force",
            help="Refresh even when the cached snapshot is still fresh.",
        ),
    ] = True,
    output: Annotated[
        OutputFormat,
        typer.Option("--format", "-f", help="Output format."),
    ] = OutputFormat.TABLE,
    watch: Annotated[
        bool,
        typer.Option(
            "--watch",
            help="Keep running and print every refreshed snapshot until interrupted.",
        ),
    ] = False,
    cache_dir: Annotated[
        Path | None,
        typer.Option("--cache-dir", help="Directory for the snapshot cache."),
    ] = None,
    server_proxy_url: Annotated[
        str | None,
        typer.Option(
            "--server-proxy-url",
            help="Pre-aggregated balance endpoint to try before direct reconciliation.",
        ),
    ] = None,
    show_config: Annotated[
        bool,
        typer.Option(
            "--show-config",
            help="Print effective config (with secrets redacted) and exit.",
        ),
    ] = False,
):
    """Reconcile treasury balances and print the snapshot.

    Loads configuration, restores the cached snapshot, runs one
    reconciliation cycle and prints the result. With --watch the periodic
    refresh timer runs until interrupted.
    """
    if config_path:
        if not config_path.exists():
            raise typer.BadParameter(
                f"config file {config_path} does not exist", param_hint="--config"
            )
        os.environ["TREASURY_ORACLE_CONFIG"] = str(config_path)

    init_kwargs: dict[str, Any] = {}
    if log_level is not None:
        init_kwargs["log_level"] = log_level.upper()
    if cache_dir is not None:
        init_kwargs["cache_dir"] = cache_dir
    if server_proxy_url is not None:
        init_kwargs["server_proxy_url"] = server_proxy_url

    try:
        settings = TreasurySettings(**init_kwargs)
    except (ValidationError, ValueError) as e:
        raise typer.BadParameter(str(e)) from e

    machine_output = output is OutputFormat.JSON
    setup_logging(settings.log_level, stream=sys.stderr if machine_output else None)

    if show_config:
        typer.echo(json.dumps(settings.as_safe_dict(), indent=2))
        raise typer.Exit(code=0)

    if watch:
        try:
            asyncio.run(_watch(settings, output))
        except KeyboardInterrupt:
            logger.info("Interrupted; exiting")
        return

    snapshot = asyncio.run(_run_once(settings, force))
    _render(snapshot, output)


def run() -> None:
    """Entrypoint used by the console script."""
    app()


if __name__ == "__main__":
    run()
